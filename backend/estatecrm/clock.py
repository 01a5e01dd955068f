"""
EstateCRM Reminders - Clock

Purpose: Single source of "now" for reminder logic, plus timestamp helpers.
All timestamps are timezone-aware UTC. Stored as fixed-width ISO strings so
DynamoDB string comparisons order them chronologically.
"""

from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime for storage"""
    return ensure_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp (None passes through)"""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


class Clock:
    """System clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant (used by tests and replays)"""

    def __init__(self, instant: datetime):
        self.instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta) -> None:
        self.instant = self.instant + delta
