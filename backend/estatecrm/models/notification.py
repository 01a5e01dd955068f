"""
EstateCRM Reminders - In-App Notification Model

Purpose: Notification record stored for every reminder delivery and shown in
the employee's in-app notification list.
"""

from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from estatecrm.clock import format_timestamp, parse_timestamp


class ReminderPayload(BaseModel):
    """Delivery payload composed for a due reminder"""

    reminder_id: str
    owner_id: str
    title: str
    note: str = ""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    reminder_time: datetime

    def to_data(self) -> Dict[str, str]:
        """Flat string map (push data payloads only accept strings)"""
        return {
            'type': 'reminder',
            'reminderId': self.reminder_id,
            'title': self.title,
            'name': self.name or '',
            'email': self.email or '',
            'phone': self.phone or '',
            'location': self.location or '',
            'note': self.note or '',
            'reminderTime': format_timestamp(self.reminder_time),
        }


class InAppNotification(BaseModel):
    """In-app notification model"""

    # Primary key
    notification_id: str = Field(..., description="Unique notification identifier")

    owner_id: str
    reminder_id: str

    title: str
    message: str
    reminder_data: Dict[str, str] = Field(default_factory=dict)

    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item"""
        item = {
            'notification_id': self.notification_id,
            'owner_id': self.owner_id,
            'reminder_id': self.reminder_id,
            'title': self.title,
            'message': self.message,
            'reminder_data': self.reminder_data,
            'is_read': self.is_read,
            'created_at': format_timestamp(self.created_at),
        }

        if self.read_at:
            item['read_at'] = format_timestamp(self.read_at)

        return item

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> 'InAppNotification':
        """Create from DynamoDB item"""
        return cls(
            notification_id=item['notification_id'],
            owner_id=item['owner_id'],
            reminder_id=item['reminder_id'],
            title=item['title'],
            message=item['message'],
            reminder_data=item.get('reminder_data', {}),
            is_read=item.get('is_read', False),
            read_at=parse_timestamp(item.get('read_at')),
            created_at=parse_timestamp(item['created_at']),
        )
