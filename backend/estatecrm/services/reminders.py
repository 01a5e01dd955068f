"""
EstateCRM Reminders - Reminder Service

Purpose: Owner-facing reminder operations (create, complete, snooze, dismiss,
edit, delete), listing and reporting. Ownership is checked here against the
identity supplied by the auth gate; the identity itself is trusted.

Every mutating operation loads the reminder, works on a deep copy, runs the
lifecycle transition, and saves only when the transition succeeded.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import shortuuid

from estatecrm.clock import Clock, ensure_utc
from estatecrm.config import settings
from estatecrm.errors import AuthorizationError, NotFoundError, ValidationError
from estatecrm.models.reminder import (
    AssignmentType,
    Reminder,
    ReminderStatus,
    RepeatInterval,
)
from estatecrm.services import lifecycle

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
TOP_OWNERS_LIMIT = 5


class ReminderService:
    """
    Reminder lifecycle operations backed by a reminder store
    """

    def __init__(self, store, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or Clock()
        self.title_max_length = settings.REMINDER_TITLE_MAX_LENGTH
        self.default_snooze_minutes = settings.DEFAULT_SNOOZE_MINUTES

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(
        self,
        owner_id: str,
        title: str,
        body: str,
        due_at: datetime,
        is_repeating: bool = False,
        repeat_interval: Optional[RepeatInterval] = None,
        timezone: str = "UTC",
        client_name: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        location: Optional[str] = None,
        assignment_id: Optional[str] = None,
        assignment_type: Optional[AssignmentType] = None,
    ) -> Reminder:
        """
        Create a pending reminder

        Repeating reminders start with next_trigger = due_at.
        """
        if not owner_id:
            raise ValidationError("Owner is required")
        if due_at is None:
            raise ValidationError("Reminder time is required")

        now = self.clock.now()
        due_at = ensure_utc(due_at)

        reminder = Reminder(
            reminder_id=f"reminder_{shortuuid.uuid()}",
            owner_id=owner_id,
            title=lifecycle.validate_title(title, self.title_max_length),
            body=body or "",
            due_at=due_at,
            timezone=timezone or "UTC",
            repeat=lifecycle.new_repeat_policy(repeat_interval, due_at) if is_repeating else None,
            client_name=lifecycle.clean_text(client_name),
            phone=lifecycle.clean_text(phone),
            email=lifecycle.clean_text(email),
            location=lifecycle.clean_text(location),
            assignment_id=assignment_id,
            assignment_type=assignment_type,
            created_at=now,
            updated_at=now,
        )

        await self.store.save_reminder(reminder)
        logger.info(f"Reminder created: {reminder.reminder_id} for {owner_id}")

        return reminder

    async def create_from_lead(
        self,
        owner_id: str,
        name: str,
        reminder_time: datetime,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        location: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Reminder:
        """Create a standalone follow-up reminder from lead contact details"""
        if not reminder_time:
            raise ValidationError("Reminder time is required")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required")

        return await self.create(
            owner_id=owner_id,
            title=f"Follow up with {name}"[:self.title_max_length],
            body=note or f"Reminder to follow up with {name}",
            due_at=reminder_time,
            client_name=name,
            phone=phone,
            email=email,
            location=location,
            assignment_type=AssignmentType.LEAD,
        )

    # =========================================================================
    # OWNER TRANSITIONS
    # =========================================================================

    async def complete(self, reminder_id: str, owner_id: str, note: str, is_admin: bool = False) -> Reminder:
        """Complete a reminder; the response note is required"""
        reminder = await self._load_owned(reminder_id, owner_id, is_admin)
        completion = lifecycle.complete(reminder, note, self.clock.now())

        await self.store.save_reminder(reminder)
        logger.info(
            f"Reminder completed: {reminder_id} status={reminder.status.value} "
            f"words={completion.word_count} color={completion.color.value}"
        )
        return reminder

    async def snooze(self, reminder_id: str, owner_id: str, minutes: Optional[int] = None,
                     is_admin: bool = False) -> Reminder:
        """Snooze a reminder (default 15 minutes)"""
        if minutes is None:
            minutes = self.default_snooze_minutes

        reminder = await self._load_owned(reminder_id, owner_id, is_admin)
        until = lifecycle.snooze(reminder, minutes, self.clock.now())

        await self.store.save_reminder(reminder)
        logger.info(f"Reminder snoozed: {reminder_id} until {until.isoformat()}")
        return reminder

    async def dismiss(self, reminder_id: str, owner_id: str, is_admin: bool = False) -> Reminder:
        """Dismiss a reminder (repeating reminders are deactivated instead)"""
        reminder = await self._load_owned(reminder_id, owner_id, is_admin)
        lifecycle.dismiss(reminder, self.clock.now())

        await self.store.save_reminder(reminder)
        logger.info(f"Reminder dismissed: {reminder_id} status={reminder.status.value} active={reminder.active}")
        return reminder

    async def edit(self, reminder_id: str, owner_id: str, changes: Dict[str, Any],
                   is_admin: bool = False) -> Reminder:
        """Edit reminder content and settings"""
        reminder = await self._load_owned(reminder_id, owner_id, is_admin)
        content_changed = lifecycle.apply_edit(
            reminder, changes, owner_id, self.clock.now(), self.title_max_length
        )

        await self.store.save_reminder(reminder)
        logger.info(f"Reminder updated: {reminder_id} content_changed={content_changed}")
        return reminder

    async def delete(self, reminder_id: str, owner_id: str, is_admin: bool = False) -> None:
        """Hard delete"""
        await self._load_owned(reminder_id, owner_id, is_admin)
        await self.store.delete_reminder(reminder_id)
        logger.info(f"Reminder deleted: {reminder_id}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get(self, reminder_id: str, owner_id: str, is_admin: bool = False) -> Reminder:
        return await self._load_owned(reminder_id, owner_id, is_admin)

    async def list_for_owner(
        self,
        owner_id: str,
        status: Optional[ReminderStatus] = None,
        assignment_type: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Reminder], int]:
        """
        One page of an owner's reminders sorted by due time

        Returns:
            (reminders on the page, total matching reminders)
        """
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        reminders = await self.store.list_reminders(
            owner_id=owner_id,
            status=status,
            assignment_type=assignment_type,
        )

        start = (page - 1) * limit
        return reminders[start:start + limit], len(reminders)

    async def due_for_owner(self, owner_id: str, now: Optional[datetime] = None) -> List[Reminder]:
        """Reminders due now for one owner (popup list)"""
        now = now or self.clock.now()
        reminders = await self.store.find_due_reminders(now, owner_ids=[owner_id])
        logger.info(f"Found {len(reminders)} due reminders for employee {owner_id}")
        return reminders

    async def owner_stats(self, owner_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        """Counts by status plus how many are due now"""
        now = now or self.clock.now()
        reminders = await self.store.list_reminders(owner_id=owner_id)

        stats = {status.value: 0 for status in ReminderStatus}
        for reminder in reminders:
            stats[reminder.status.value] += 1

        stats["total"] = len(reminders)
        stats["due"] = sum(1 for r in reminders if lifecycle.is_due(r, now))
        return stats

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def admin_due_by_employee(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Due reminders of employees with the admin popup enabled, grouped by employee"""
        now = now or self.clock.now()

        employees = await self.store.list_employees(popup_enabled=True)
        if not employees:
            return []

        by_id = {employee.employee_id: employee for employee in employees}
        reminders = await self.store.find_due_reminders(now, owner_ids=list(by_id))

        groups: Dict[str, Dict[str, Any]] = {}
        for reminder in reminders:
            group = groups.setdefault(
                reminder.owner_id,
                {"employee": by_id[reminder.owner_id], "reminders": []},
            )
            group["reminders"].append(reminder)

        return list(groups.values())

    async def admin_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Dashboard counters across all employees"""
        now = now or self.clock.now()

        reminders = await self.store.list_reminders()
        employees = await self.store.list_employees()

        by_status = Counter(r.status.value for r in reminders)
        by_color = Counter(
            r.last_completion.color.value for r in reminders if r.last_completion
        )
        active = [r for r in reminders if r.active]
        per_owner = Counter(r.owner_id for r in active)
        names = {e.employee_id: e.name for e in employees}

        return {
            "employees": {
                "total": len(employees),
                "with_popup_enabled": sum(1 for e in employees if e.admin_reminder_popup_enabled),
            },
            "reminders": {
                "total": len(active),
                "pending": sum(1 for r in active if r.status == ReminderStatus.PENDING),
                "completed": by_status.get(ReminderStatus.COMPLETED.value, 0),
                "currently_due": sum(1 for r in reminders if lifecycle.is_due(r, now)),
                "by_status": {status.value: by_status.get(status.value, 0) for status in ReminderStatus},
                "by_response_color": dict(by_color),
            },
            "top_employees": [
                {"employee_id": owner_id, "name": names.get(owner_id), "reminder_count": count}
                for owner_id, count in per_owner.most_common(TOP_OWNERS_LIMIT)
            ],
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_owned(self, reminder_id: str, owner_id: str, is_admin: bool) -> Reminder:
        reminder = await self.store.get_reminder(reminder_id)

        if not reminder:
            raise NotFoundError(f"Reminder {reminder_id} not found")

        if reminder.owner_id != owner_id and not is_admin:
            logger.warning(f"Employee {owner_id} denied access to reminder {reminder_id}")
            raise AuthorizationError("Not authorized to access this reminder")

        return reminder.model_copy(deep=True)
