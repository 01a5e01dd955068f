"""
EstateCRM Reminders - Reminder Model

Purpose: Follow-up reminder owned by an employee. The lifecycle status is a
tagged union (pending / completed / snoozed / dismissed) and the repeat
settings live in a separate RepeatPolicy, so a snooze time can only exist on a
snoozed reminder and a completion note only on a completion.
"""

from typing import Annotated, Optional, Dict, Any, List, Union, Literal
from datetime import datetime
from pydantic import BaseModel, Field
from enum import Enum

from estatecrm.clock import format_timestamp, parse_timestamp


class ReminderStatus(str, Enum):
    """Reminder status"""
    PENDING = "pending"
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"


class RepeatInterval(str, Enum):
    """Repeat cadence"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ResponseColor(str, Enum):
    """Completion note quality tag (reporting only)"""
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


class AssignmentType(str, Enum):
    """Kind of lead record a reminder is linked to"""
    LEAD_ASSIGNMENT = "LeadAssignment"
    USER_LEAD_ASSIGNMENT = "UserLeadAssignment"
    LEAD = "Lead"
    MANUAL_INQUIRY = "ManualInquiry"


# =============================================================================
# LIFECYCLE STATE
# =============================================================================

class Completion(BaseModel):
    """Owner's completion response"""
    note: str
    word_count: int
    color: ResponseColor
    completed_at: datetime


class PendingState(BaseModel):
    status: Literal["pending"] = "pending"


class CompletedState(BaseModel):
    status: Literal["completed"] = "completed"
    completion: Completion


class SnoozedState(BaseModel):
    status: Literal["snoozed"] = "snoozed"
    until: datetime


class DismissedState(BaseModel):
    status: Literal["dismissed"] = "dismissed"


ReminderState = Annotated[
    Union[PendingState, CompletedState, SnoozedState, DismissedState],
    Field(discriminator="status"),
]


class RepeatPolicy(BaseModel):
    """Present only on repeating reminders"""
    interval: RepeatInterval = RepeatInterval.DAILY
    next_trigger: Optional[datetime] = None


# =============================================================================
# HISTORY
# =============================================================================

class EditContent(BaseModel):
    title: str
    body: str
    due_at: datetime


class EditHistoryEntry(BaseModel):
    old_content: EditContent
    new_content: EditContent
    edited_at: datetime
    edited_by: str


class NotificationAction(str, Enum):
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"


class NotificationLogEntry(BaseModel):
    """Owner acknowledgement of a reminder"""
    action: NotificationAction
    at: datetime


# =============================================================================
# REMINDER
# =============================================================================

class Reminder(BaseModel):
    """Reminder model"""

    # Primary key
    reminder_id: str = Field(..., description="Unique reminder identifier")

    # Owner (employee)
    owner_id: str = Field(..., description="Employee responsible for the reminder")

    # Reminder data
    title: str = Field(..., description="Short label")
    body: str = Field(default="", description="Free-form text/HTML note")
    due_at: datetime = Field(..., description="When the reminder first fires")
    timezone: str = Field(default="UTC", description="Informational only")

    # Scheduling
    repeat: Optional[RepeatPolicy] = None
    active: bool = Field(default=True, description="Master kill switch")
    state: ReminderState = Field(default_factory=PendingState)

    # Trigger bookkeeping
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    snooze_count: int = 0
    last_completion: Optional[Completion] = None

    # Client contact shown in notifications
    client_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None

    # Link to an external lead/inquiry record
    assignment_id: Optional[str] = None
    assignment_type: Optional[AssignmentType] = None

    # History
    edit_history: List[EditHistoryEntry] = Field(default_factory=list)
    notification_log: List[NotificationLogEntry] = Field(default_factory=list)

    # Timestamps
    created_at: datetime
    updated_at: datetime

    @property
    def status(self) -> ReminderStatus:
        return ReminderStatus(self.state.status)

    @property
    def is_repeating(self) -> bool:
        return self.repeat is not None

    @property
    def repeat_interval(self) -> Optional[RepeatInterval]:
        return self.repeat.interval if self.repeat else None

    @property
    def next_trigger(self) -> Optional[datetime]:
        return self.repeat.next_trigger if self.repeat else None

    @property
    def snoozed_until(self) -> Optional[datetime]:
        if isinstance(self.state, SnoozedState):
            return self.state.until
        return None

    @property
    def completion_note(self) -> Optional[str]:
        return self.last_completion.note if self.last_completion else None

    @property
    def completed_at(self) -> Optional[datetime]:
        return self.last_completion.completed_at if self.last_completion else None

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item"""
        item = {
            'reminder_id': self.reminder_id,
            'owner_id': self.owner_id,
            'title': self.title,
            'body': self.body,
            'due_at': format_timestamp(self.due_at),
            'timezone': self.timezone,
            'is_repeating': self.is_repeating,
            'active': self.active,
            'status': self.status.value,
            'trigger_count': self.trigger_count,
            'snooze_count': self.snooze_count,
            'edit_history': [
                {
                    'old_content': _content_to_item(entry.old_content),
                    'new_content': _content_to_item(entry.new_content),
                    'edited_at': format_timestamp(entry.edited_at),
                    'edited_by': entry.edited_by,
                }
                for entry in self.edit_history
            ],
            'notification_log': [
                {'action': entry.action.value, 'at': format_timestamp(entry.at)}
                for entry in self.notification_log
            ],
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        }

        # Add optional fields
        if self.repeat:
            item['repeat_interval'] = self.repeat.interval.value
            if self.repeat.next_trigger:
                item['next_trigger'] = format_timestamp(self.repeat.next_trigger)
        if self.snoozed_until:
            item['snoozed_until'] = format_timestamp(self.snoozed_until)
        if self.last_triggered_at:
            item['last_triggered_at'] = format_timestamp(self.last_triggered_at)
        if self.last_completion:
            item['completion_note'] = self.last_completion.note
            item['response_word_count'] = self.last_completion.word_count
            item['response_color'] = self.last_completion.color.value
            item['completed_at'] = format_timestamp(self.last_completion.completed_at)
        for field in ('client_name', 'phone', 'email', 'location', 'assignment_id'):
            value = getattr(self, field)
            if value:
                item[field] = value
        if self.assignment_type:
            item['assignment_type'] = self.assignment_type.value

        return item

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> 'Reminder':
        """Create from DynamoDB item"""
        last_completion = None
        if item.get('completed_at'):
            last_completion = Completion(
                note=item.get('completion_note', ''),
                word_count=int(item.get('response_word_count', 0)),
                color=ResponseColor(item.get('response_color', ResponseColor.RED.value)),
                completed_at=parse_timestamp(item['completed_at']),
            )

        status = item.get('status', ReminderStatus.PENDING.value)
        if status == ReminderStatus.COMPLETED.value:
            state = CompletedState(completion=last_completion)
        elif status == ReminderStatus.SNOOZED.value:
            state = SnoozedState(until=parse_timestamp(item['snoozed_until']))
        elif status == ReminderStatus.DISMISSED.value:
            state = DismissedState()
        else:
            state = PendingState()

        repeat = None
        if item.get('is_repeating'):
            repeat = RepeatPolicy(
                interval=RepeatInterval(item.get('repeat_interval', RepeatInterval.DAILY.value)),
                next_trigger=parse_timestamp(item.get('next_trigger')),
            )

        return cls(
            reminder_id=item['reminder_id'],
            owner_id=item['owner_id'],
            title=item['title'],
            body=item.get('body', ''),
            due_at=parse_timestamp(item['due_at']),
            timezone=item.get('timezone', 'UTC'),
            repeat=repeat,
            active=item.get('active', True),
            state=state,
            last_triggered_at=parse_timestamp(item.get('last_triggered_at')),
            trigger_count=int(item.get('trigger_count', 0)),
            snooze_count=int(item.get('snooze_count', 0)),
            last_completion=last_completion,
            client_name=item.get('client_name'),
            phone=item.get('phone'),
            email=item.get('email'),
            location=item.get('location'),
            assignment_id=item.get('assignment_id'),
            assignment_type=item.get('assignment_type'),
            edit_history=[
                EditHistoryEntry(
                    old_content=_content_from_item(entry['old_content']),
                    new_content=_content_from_item(entry['new_content']),
                    edited_at=parse_timestamp(entry['edited_at']),
                    edited_by=entry['edited_by'],
                )
                for entry in item.get('edit_history', [])
            ],
            notification_log=[
                NotificationLogEntry(action=entry['action'], at=parse_timestamp(entry['at']))
                for entry in item.get('notification_log', [])
            ],
            created_at=parse_timestamp(item['created_at']),
            updated_at=parse_timestamp(item['updated_at']),
        )


def _content_to_item(content: EditContent) -> Dict[str, Any]:
    return {
        'title': content.title,
        'body': content.body,
        'due_at': format_timestamp(content.due_at),
    }


def _content_from_item(item: Dict[str, Any]) -> EditContent:
    return EditContent(
        title=item['title'],
        body=item.get('body', ''),
        due_at=parse_timestamp(item['due_at']),
    )
