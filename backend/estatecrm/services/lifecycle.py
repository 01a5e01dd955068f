"""
EstateCRM Reminders - Reminder Lifecycle

Purpose: State machine for a single reminder. Every function here is pure with
respect to I/O: it mutates the Reminder it is given and takes `now` explicitly.
ReminderService hands in a copy and persists it only when no error was raised,
so a failed transition never leaves a partial mutation behind.

States:
    pending -> completed | snoozed | dismissed
    snoozed -> pending (due-check fires)
    completed -> pending (repeating reminders, same transition)

Repeating reminders are never moved to dismissed; dismissing one flips
`active` off and keeps its status and history.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta

from estatecrm.clock import ensure_utc
from estatecrm.errors import ValidationError
from estatecrm.models.reminder import (
    Completion,
    CompletedState,
    DismissedState,
    EditContent,
    EditHistoryEntry,
    NotificationAction,
    NotificationLogEntry,
    PendingState,
    Reminder,
    ReminderStatus,
    RepeatInterval,
    RepeatPolicy,
    ResponseColor,
    SnoozedState,
)


COMPLETION_NOTE_MAX_LENGTH = 1000

# One year
MAX_SNOOZE_MINUTES = 60 * 24 * 365

# Word-count thresholds for the completion quality tag
YELLOW_MIN_WORDS = 10
GREEN_MIN_WORDS = 21

EDITABLE_FIELDS = (
    'title', 'body', 'due_at', 'timezone', 'is_repeating', 'repeat_interval',
    'active', 'client_name', 'phone', 'email', 'location',
)


# =============================================================================
# RESPONSE QUALITY
# =============================================================================

def count_words(note: str) -> int:
    """Count non-empty whitespace-separated tokens"""
    return len([word for word in (note or "").split() if word])


def classify_response(word_count: int) -> ResponseColor:
    """Tag a completion note by length: <10 red, 10-20 yellow, >20 green"""
    if word_count < YELLOW_MIN_WORDS:
        return ResponseColor.RED
    if word_count < GREEN_MIN_WORDS:
        return ResponseColor.YELLOW
    return ResponseColor.GREEN


# =============================================================================
# REPEAT SCHEDULE
# =============================================================================

def next_occurrence(anchor: datetime, interval: RepeatInterval, now: datetime) -> datetime:
    """
    First occurrence of a repeating schedule strictly after `now`

    Occurrences are `anchor + n * interval`. Months are added to the anchor
    itself (day clamped to the month end), so a reminder anchored on the 31st
    comes back on the 31st whenever the month has one.
    """
    anchor = ensure_utc(anchor)
    if anchor > now:
        return anchor

    if interval == RepeatInterval.MONTHLY:
        months = max(1, (now.year - anchor.year) * 12 + now.month - anchor.month)
        candidate = anchor + relativedelta(months=months)
        while candidate <= now:
            months += 1
            candidate = anchor + relativedelta(months=months)
        return candidate

    step = timedelta(days=7) if interval == RepeatInterval.WEEKLY else timedelta(days=1)
    periods = (now - anchor) // step + 1
    return anchor + step * periods


def new_repeat_policy(interval: Optional[RepeatInterval], due_at: datetime, active: bool = True) -> RepeatPolicy:
    """Repeat policy for a newly created reminder: first trigger is the due time"""
    return RepeatPolicy(
        interval=interval or RepeatInterval.DAILY,
        next_trigger=ensure_utc(due_at) if active else None,
    )


def recompute_next_trigger(reminder: Reminder, now: datetime) -> None:
    """Advance `next_trigger` past `now`, or clear it when the reminder is inactive"""
    if reminder.repeat is None:
        return

    if not reminder.active:
        reminder.repeat.next_trigger = None
        return

    reminder.repeat.next_trigger = next_occurrence(reminder.due_at, reminder.repeat.interval, now)


# =============================================================================
# DUE SELECTION
# =============================================================================

def is_due(reminder: Reminder, now: datetime) -> bool:
    """
    Due-selection predicate

    A reminder is due when it is active, neither completed nor dismissed, and
    one of: its snooze has expired; it repeats and its next trigger has passed;
    it does not repeat, is pending and its due time has passed. For repeating
    reminders the current cycle's due time is `next_trigger`, which equals
    `due_at` until the first trigger.
    """
    if not reminder.active:
        return False

    status = reminder.status
    if status in (ReminderStatus.COMPLETED, ReminderStatus.DISMISSED):
        return False

    if status == ReminderStatus.SNOOZED and reminder.snoozed_until <= now:
        return True

    if reminder.is_repeating:
        return reminder.next_trigger is not None and reminder.next_trigger <= now

    return status == ReminderStatus.PENDING and reminder.due_at <= now


# =============================================================================
# OWNER TRANSITIONS
# =============================================================================

def _ensure_open(reminder: Reminder, action: str) -> None:
    if reminder.status in (ReminderStatus.COMPLETED, ReminderStatus.DISMISSED):
        raise ValidationError(f"Cannot {action} a {reminder.status.value} reminder")


def _log_action(reminder: Reminder, action: NotificationAction, now: datetime) -> None:
    reminder.notification_log.append(NotificationLogEntry(action=action, at=now))
    reminder.updated_at = now


def complete(reminder: Reminder, note: Optional[str], now: datetime) -> Completion:
    """
    Complete a reminder with the owner's response note

    Repeating, active reminders are completed for this cycle only: the next
    trigger is recomputed and the status returns to pending.

    Raises:
        ValidationError: empty note, note too long, or reminder already closed
    """
    text = (note or "").strip()
    if not text:
        raise ValidationError("Response is required to complete reminder")
    if len(text) > COMPLETION_NOTE_MAX_LENGTH:
        raise ValidationError(f"Response must be at most {COMPLETION_NOTE_MAX_LENGTH} characters")
    _ensure_open(reminder, "complete")

    words = count_words(text)
    completion = Completion(
        note=text,
        word_count=words,
        color=classify_response(words),
        completed_at=now,
    )

    reminder.last_completion = completion
    reminder.state = CompletedState(completion=completion)

    if reminder.is_repeating and reminder.active:
        recompute_next_trigger(reminder, now)
        reminder.state = PendingState()

    _log_action(reminder, NotificationAction.COMPLETED, now)
    return completion


def snooze(reminder: Reminder, minutes: int, now: datetime) -> datetime:
    """
    Snooze a reminder for `minutes`

    Raises:
        ValidationError: minutes not in 1..MAX_SNOOZE_MINUTES or reminder already closed
    """
    if minutes is None or minutes <= 0:
        raise ValidationError("Snooze minutes must be a positive number")
    if minutes > MAX_SNOOZE_MINUTES:
        raise ValidationError(f"Snooze minutes must be at most {MAX_SNOOZE_MINUTES}")
    _ensure_open(reminder, "snooze")

    until = now + timedelta(minutes=minutes)
    reminder.state = SnoozedState(until=until)
    reminder.snooze_count += 1

    _log_action(reminder, NotificationAction.SNOOZED, now)
    return until


def dismiss(reminder: Reminder, now: datetime) -> None:
    """
    Dismiss a reminder

    Non-repeating reminders move to the terminal dismissed state. Repeating
    reminders are switched off (`active = False`) and keep their status.
    """
    _ensure_open(reminder, "dismiss")

    if reminder.is_repeating:
        reminder.active = False
        recompute_next_trigger(reminder, now)
    else:
        reminder.state = DismissedState()

    _log_action(reminder, NotificationAction.DISMISSED, now)


def apply_edit(reminder: Reminder, changes: Dict[str, Any], editor_id: str, now: datetime,
               title_max_length: int = 100) -> bool:
    """
    Apply owner edits

    Args:
        changes: subset of EDITABLE_FIELDS to change (absent keys are untouched)

    Returns:
        True when title, body or due time changed (an edit history entry was added)
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    _ensure_open(reminder, "edit")

    old_content = EditContent(title=reminder.title, body=reminder.body, due_at=reminder.due_at)

    if 'title' in changes:
        reminder.title = validate_title(changes['title'], title_max_length)
    if 'body' in changes:
        reminder.body = changes['body'] or ""
    if changes.get('due_at') is not None:
        reminder.due_at = ensure_utc(changes['due_at'])
    if changes.get('timezone'):
        reminder.timezone = changes['timezone']
    for field in ('client_name', 'phone', 'email', 'location'):
        if field in changes:
            setattr(reminder, field, clean_text(changes[field]))
    if changes.get('active') is not None:
        reminder.active = changes['active']

    if changes.get('is_repeating') is True and reminder.repeat is None:
        reminder.repeat = RepeatPolicy()
    elif changes.get('is_repeating') is False:
        reminder.repeat = None
    if changes.get('repeat_interval') is not None and reminder.repeat is not None:
        reminder.repeat.interval = RepeatInterval(changes['repeat_interval'])

    recompute_next_trigger(reminder, now)

    new_content = EditContent(title=reminder.title, body=reminder.body, due_at=reminder.due_at)
    content_changed = new_content != old_content
    if content_changed:
        reminder.edit_history.append(EditHistoryEntry(
            old_content=old_content,
            new_content=new_content,
            edited_at=now,
            edited_by=editor_id,
        ))

    reminder.updated_at = now
    return content_changed


# =============================================================================
# DISPATCH BOOKKEEPING
# =============================================================================

def mark_triggered(reminder: Reminder, now: datetime) -> None:
    """Record a delivery: snoozed reminders return to pending, repeating ones move to the next cycle"""
    reminder.last_triggered_at = now
    reminder.trigger_count += 1

    if isinstance(reminder.state, SnoozedState):
        reminder.state = PendingState()

    if reminder.is_repeating and reminder.active:
        recompute_next_trigger(reminder, now)

    reminder.updated_at = now


def validate_title(title: Optional[str], max_length: int = 100) -> str:
    """Trimmed, non-empty, bounded title"""
    text = (title or "").strip()
    if not text:
        raise ValidationError("Title is required")
    if len(text) > max_length:
        raise ValidationError(f"Title must be at most {max_length} characters")
    return text


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None
