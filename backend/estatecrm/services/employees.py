"""
EstateCRM Reminders - Employee Notification Settings

Purpose: Device token registration, admin popup toggle, in-app notification
inbox, and cleanup of device tokens the push provider rejected.
"""

import logging
from typing import List, Optional

from estatecrm.clock import Clock
from estatecrm.errors import AuthorizationError, NotFoundError, TransportError, ValidationError
from estatecrm.models.employee import Employee
from estatecrm.models.notification import InAppNotification

logger = logging.getLogger(__name__)


class EmployeeService:
    """
    Employee delivery profiles and in-app notifications
    """

    def __init__(self, store, clock: Optional[Clock] = None, push_service=None):
        self.store = store
        self.clock = clock or Clock()
        self.push_service = push_service

    async def register_device_token(self, employee_id: str, device_token: str,
                                    name: Optional[str] = None, email: Optional[str] = None) -> Employee:
        """Store the push device token for an employee (creates the profile if needed)"""
        device_token = (device_token or "").strip()
        if not device_token:
            raise ValidationError("Device token is required")

        if self.push_service is not None:
            try:
                await self.push_service.register_device(device_token)
            except TransportError as e:
                if e.is_token_invalid:
                    raise ValidationError(f"Device token rejected by push provider: {e.message}")
                logger.warning(f"Push endpoint registration failed for employee {employee_id}: {e.message}")

        employee = await self._get_or_new(employee_id)
        employee.device_token = device_token
        if name:
            employee.name = name
        if email:
            employee.email = email
        employee.updated_at = self.clock.now()

        await self.store.save_employee(employee)
        logger.info(f"Device token saved for employee {employee_id}")
        return employee

    async def set_admin_popup(self, employee_id: str, enabled: bool) -> Employee:
        """Toggle whether an employee's due reminders appear in the admin popup"""
        employee = await self._get_or_new(employee_id)
        employee.admin_reminder_popup_enabled = enabled
        employee.updated_at = self.clock.now()

        await self.store.save_employee(employee)
        logger.info(f"Admin reminder popup {'enabled' if enabled else 'disabled'} for employee {employee_id}")
        return employee

    async def clear_invalid_tokens(self, reports) -> int:
        """
        Clear device tokens reported invalid by a dispatch tick

        Returns:
            Number of tokens cleared
        """
        cleared = 0
        for report in reports:
            if not report.token_invalid or not report.device_token:
                continue
            try:
                if await self.store.clear_device_token(report.owner_id, report.device_token):
                    cleared += 1
            except Exception as e:
                logger.error(f"Failed to clear device token for {report.owner_id}: {e}")
        return cleared

    async def list_notifications(self, employee_id: str, unread_only: bool = False) -> List[InAppNotification]:
        return await self.store.list_notifications(employee_id, unread_only=unread_only)

    async def mark_notification_read(self, notification_id: str, employee_id: str) -> InAppNotification:
        notification = await self.store.get_notification(notification_id)

        if not notification:
            raise NotFoundError(f"Notification {notification_id} not found")
        if notification.owner_id != employee_id:
            raise AuthorizationError("Not authorized to access this notification")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = self.clock.now()
            await self.store.save_notification(notification)

        return notification

    async def _get_or_new(self, employee_id: str) -> Employee:
        if not employee_id:
            raise ValidationError("Employee is required")

        employee = await self.store.get_employee(employee_id)
        if employee:
            return employee
        return Employee(employee_id=employee_id, updated_at=self.clock.now())
