"""
EstateCRM Reminders - Employee Delivery Profile

Purpose: Per-employee push settings (device token, admin popup flag)
"""

from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from estatecrm.clock import format_timestamp, parse_timestamp


class Employee(BaseModel):
    """Employee delivery profile"""

    # Primary key
    employee_id: str = Field(..., description="Employee identifier")

    name: Optional[str] = None
    email: Optional[str] = None

    # Push device registration token (FCM/APNS)
    device_token: Optional[str] = None

    # Show this employee's due reminders in the admin popup
    admin_reminder_popup_enabled: bool = False

    updated_at: datetime

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item"""
        item = {
            'employee_id': self.employee_id,
            'admin_reminder_popup_enabled': self.admin_reminder_popup_enabled,
            'updated_at': format_timestamp(self.updated_at),
        }

        if self.name:
            item['name'] = self.name
        if self.email:
            item['email'] = self.email
        if self.device_token:
            item['device_token'] = self.device_token

        return item

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> 'Employee':
        """Create from DynamoDB item"""
        return cls(
            employee_id=item['employee_id'],
            name=item.get('name'),
            email=item.get('email'),
            device_token=item.get('device_token'),
            admin_reminder_popup_enabled=item.get('admin_reminder_popup_enabled', False),
            updated_at=parse_timestamp(item['updated_at']),
        )
