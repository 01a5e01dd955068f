"""
EstateCRM Reminders - Notification Dispatcher

Purpose: Deliver due reminders and record trigger bookkeeping.

For each due reminder:
    1. Skip it entirely if it was delivered within the cooldown window
    2. Compose the payload (title, note, client contact)
    3. Store an in-app notification, broadcast it, push it to the owner's device
    4. Mark the reminder triggered (snoozed -> pending, repeating -> next cycle)
    5. Persist the reminder

Delivery failures in step 3 are logged and recorded in the DispatchReport;
they never stop step 4/5 and never abort the rest of the batch.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

import shortuuid
from pydantic import BaseModel, Field

from estatecrm.config import settings
from estatecrm.errors import TransportError
from estatecrm.models.reminder import Reminder
from estatecrm.models.notification import InAppNotification, ReminderPayload
from estatecrm.services import lifecycle
from estatecrm.services.broadcast import notification_event
from estatecrm.services.push import DeliveryResult

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    DEDUPED = "deduped"
    FAILED = "failed"


class DispatchReport(BaseModel):
    """Per-reminder result of a tick"""
    reminder_id: str
    owner_id: str
    outcome: DispatchOutcome
    push: Optional[DeliveryResult] = None
    broadcast_clients: int = 0
    persisted: bool = False
    errors: List[str] = Field(default_factory=list)

    # Set when the push provider rejected the owner's device token; the
    # caller decides whether to clear it
    token_invalid: bool = False
    device_token: Optional[str] = Field(default=None, repr=False)


class NotificationDispatcher:
    """
    Dispatches due reminders to the push transport and broadcast channel
    """

    def __init__(
        self,
        store,
        push_service,
        broadcast_channel,
        cooldown: Optional[timedelta] = None,
        push_enabled: Optional[bool] = None,
        broadcast_enabled: Optional[bool] = None,
    ):
        self.store = store
        self.push_service = push_service
        self.broadcast_channel = broadcast_channel
        self.cooldown = cooldown if cooldown is not None else timedelta(minutes=settings.REMINDER_COOLDOWN_MINUTES)
        self.push_enabled = settings.ENABLE_PUSH if push_enabled is None else push_enabled
        self.broadcast_enabled = settings.ENABLE_BROADCAST if broadcast_enabled is None else broadcast_enabled

    # =========================================================================
    # TICK
    # =========================================================================

    async def tick(self, now: datetime) -> List[DispatchReport]:
        """
        Process every reminder due at `now`, one at a time

        Returns:
            One DispatchReport per due reminder
        """
        reminders = await self.store.find_due_reminders(now)
        logger.info(f"Found {len(reminders)} due reminders")

        reports = []
        for reminder in reminders:
            try:
                report = await self.dispatch(reminder, now)
            except Exception as e:
                logger.error(f"Failed to dispatch reminder {reminder.reminder_id}: {e}", exc_info=True,
                             extra={"reminder_id": reminder.reminder_id})
                report = DispatchReport(
                    reminder_id=reminder.reminder_id,
                    owner_id=reminder.owner_id,
                    outcome=DispatchOutcome.FAILED,
                    errors=[str(e)],
                )
            reports.append(report)

        return reports

    def in_cooldown(self, reminder: Reminder, now: datetime) -> bool:
        """True when the reminder was delivered less than one cooldown window ago"""
        if reminder.last_triggered_at is None:
            return False
        return now - reminder.last_triggered_at < self.cooldown

    # =========================================================================
    # SINGLE REMINDER
    # =========================================================================

    async def dispatch(self, reminder: Reminder, now: datetime) -> DispatchReport:
        """Deliver one due reminder and persist its bookkeeping"""
        report = DispatchReport(
            reminder_id=reminder.reminder_id,
            owner_id=reminder.owner_id,
            outcome=DispatchOutcome.DELIVERED,
        )

        if self.in_cooldown(reminder, now):
            logger.debug(f"Reminder {reminder.reminder_id} delivered recently, skipping")
            report.outcome = DispatchOutcome.DEDUPED
            return report

        logger.info(f"Processing reminder: {reminder.reminder_id} ({reminder.title})",
                    extra={"reminder_id": reminder.reminder_id, "employee_id": reminder.owner_id})

        payload = self.compose_payload(reminder)
        notification = await self._record_notification(payload, now, report)

        if self.broadcast_enabled:
            await self._broadcast(notification, report)

        if self.push_enabled:
            await self._push(payload, report)

        lifecycle.mark_triggered(reminder, now)

        try:
            await self.store.save_reminder(reminder)
            report.persisted = True
        except Exception as e:
            logger.error(f"Failed to persist reminder {reminder.reminder_id} after dispatch: {e}")
            report.errors.append(f"persist: {e}")

        if report.errors:
            report.outcome = DispatchOutcome.FAILED

        logger.info(f"Reminder processed: {reminder.reminder_id} outcome={report.outcome.value}",
                    extra={"reminder_id": reminder.reminder_id})
        return report

    def compose_payload(self, reminder: Reminder) -> ReminderPayload:
        """Build the delivery payload from the reminder and its client contact"""
        return ReminderPayload(
            reminder_id=reminder.reminder_id,
            owner_id=reminder.owner_id,
            title=reminder.title,
            note=reminder.body,
            name=reminder.client_name,
            phone=reminder.phone,
            email=reminder.email,
            location=reminder.location,
            reminder_time=reminder.due_at,
        )

    async def _record_notification(self, payload: ReminderPayload, now: datetime,
                                   report: DispatchReport) -> InAppNotification:
        notification = InAppNotification(
            notification_id=f"notif_{shortuuid.uuid()}",
            owner_id=payload.owner_id,
            reminder_id=payload.reminder_id,
            title=settings.PUSH_NOTIFICATION_TITLE,
            message=payload.title or "You have a reminder",
            reminder_data=payload.to_data(),
            created_at=now,
        )

        try:
            await self.store.save_notification(notification)
        except Exception as e:
            logger.error(f"Failed to store in-app notification for {payload.reminder_id}: {e}")
            report.errors.append(f"notification: {e}")

        return notification

    async def _broadcast(self, notification: InAppNotification, report: DispatchReport):
        try:
            report.broadcast_clients = await self.broadcast_channel.publish(
                settings.BROADCAST_EVENT_NAME,
                notification_event(notification),
            )
        except Exception as e:
            logger.error(f"Broadcast failed for reminder {notification.reminder_id}: {e}")
            report.errors.append(f"broadcast: {e}")

    async def _push(self, payload: ReminderPayload, report: DispatchReport):
        try:
            employee = await self.store.get_employee(payload.owner_id)
        except Exception as e:
            logger.error(f"Failed to load device token for {payload.owner_id}: {e}")
            report.errors.append(f"push: {e}")
            return

        if not employee or not employee.device_token:
            logger.info(f"Employee {payload.owner_id} has no device token, push skipped")
            return

        try:
            result = await self.push_service.send(employee.device_token, payload)
        except TransportError as e:
            logger.error(f"Push transport raised for reminder {payload.reminder_id}: {e.message}")
            result = DeliveryResult(ok=False, error=e.message, is_token_invalid=e.is_token_invalid)
        except Exception as e:
            logger.error(f"Push transport raised for reminder {payload.reminder_id}: {e}")
            result = DeliveryResult(ok=False, error=str(e))

        report.push = result
        if not result.ok:
            report.errors.append(f"push: {result.error}")
            if result.is_token_invalid:
                report.token_invalid = True
                report.device_token = employee.device_token
