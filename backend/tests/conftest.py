"""
Pytest configuration and fixtures
"""

import pytest
import os
import sys
from datetime import datetime, timedelta, timezone

# Add app to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient

from estatecrm.clock import FixedClock
from estatecrm.dependencies import get_employee_service, get_reminder_service
from estatecrm.main import app
from estatecrm.models.employee import Employee
from estatecrm.models.notification import InAppNotification
from estatecrm.models.reminder import Reminder, ReminderStatus
from estatecrm.services import lifecycle
from estatecrm.services.dispatcher import NotificationDispatcher
from estatecrm.services.employees import EmployeeService
from estatecrm.services.push import DeliveryResult
from estatecrm.services.reminders import ReminderService


NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


class InMemoryStore:
    """
    Reminder store kept in dicts of DynamoDB items

    Records go through to_dynamodb_item/from_dynamodb_item so callers never
    share objects with the store, same as the real table.
    """

    def __init__(self):
        self.reminders = {}
        self.employees = {}
        self.notifications = {}
        self.save_count = 0
        self.fail_reminder_saves = False

    async def save_reminder(self, reminder):
        if self.fail_reminder_saves:
            raise RuntimeError("store unavailable")
        self.reminders[reminder.reminder_id] = reminder.to_dynamodb_item()
        self.save_count += 1
        return True

    async def get_reminder(self, reminder_id):
        item = self.reminders.get(reminder_id)
        return Reminder.from_dynamodb_item(item) if item else None

    async def delete_reminder(self, reminder_id):
        self.reminders.pop(reminder_id, None)
        return True

    async def list_reminders(self, owner_id=None, status=None, assignment_type=None):
        reminders = [Reminder.from_dynamodb_item(item) for item in self.reminders.values()]
        if owner_id:
            reminders = [r for r in reminders if r.owner_id == owner_id]
        if status:
            reminders = [r for r in reminders if r.status == ReminderStatus(status)]
        if assignment_type:
            reminders = [r for r in reminders if r.assignment_type == assignment_type]
        return sorted(reminders, key=lambda r: r.due_at)

    async def find_due_reminders(self, now, owner_ids=None):
        reminders = await self.list_reminders()
        if owner_ids is not None:
            reminders = [r for r in reminders if r.owner_id in owner_ids]
        return [r for r in reminders if lifecycle.is_due(r, now)]

    async def get_employee(self, employee_id):
        item = self.employees.get(employee_id)
        return Employee.from_dynamodb_item(item) if item else None

    async def save_employee(self, employee):
        self.employees[employee.employee_id] = employee.to_dynamodb_item()
        return True

    async def list_employees(self, popup_enabled=None):
        employees = [Employee.from_dynamodb_item(item) for item in self.employees.values()]
        if popup_enabled is not None:
            employees = [e for e in employees if e.admin_reminder_popup_enabled == popup_enabled]
        return employees

    async def clear_device_token(self, employee_id, device_token):
        item = self.employees.get(employee_id)
        if not item or item.get('device_token') != device_token:
            return False
        item.pop('device_token')
        return True

    async def save_notification(self, notification):
        self.notifications[notification.notification_id] = notification.to_dynamodb_item()
        return True

    async def get_notification(self, notification_id):
        item = self.notifications.get(notification_id)
        return InAppNotification.from_dynamodb_item(item) if item else None

    async def list_notifications(self, owner_id, unread_only=False):
        notifications = [InAppNotification.from_dynamodb_item(item) for item in self.notifications.values()]
        notifications = [n for n in notifications if n.owner_id == owner_id]
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]
        return sorted(notifications, key=lambda n: n.created_at, reverse=True)

    async def list_notifications_since(self, since):
        notifications = [InAppNotification.from_dynamodb_item(item) for item in self.notifications.values()]
        return sorted((n for n in notifications if n.created_at > since), key=lambda n: n.created_at)


class RecordingPushService:
    """Push transport that records sends and returns a configurable result"""

    def __init__(self):
        self.sent = []
        self.result = DeliveryResult(ok=True, message_id="msg-1")
        self.error = None

    async def send(self, device_token, payload):
        self.sent.append((device_token, payload))
        if self.error:
            raise self.error
        return self.result


class RecordingBroadcast:
    """Broadcast channel that records published events"""

    def __init__(self):
        self.events = []
        self.error = None

    async def publish(self, event, payload):
        if self.error:
            raise self.error
        self.events.append((event, payload))
        return 1


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def push():
    return RecordingPushService()


@pytest.fixture
def broadcast():
    return RecordingBroadcast()


@pytest.fixture
def reminder_service(store, clock):
    return ReminderService(store, clock=clock)


@pytest.fixture
def employee_service(store, clock):
    return EmployeeService(store, clock=clock)


@pytest.fixture
def dispatcher(store, push, broadcast):
    return NotificationDispatcher(
        store=store,
        push_service=push,
        broadcast_channel=broadcast,
        cooldown=timedelta(hours=1),
        push_enabled=True,
        broadcast_enabled=True,
    )


@pytest.fixture
def client(reminder_service, employee_service):
    """FastAPI test client backed by the in-memory store"""
    app.dependency_overrides[get_reminder_service] = lambda: reminder_service
    app.dependency_overrides[get_employee_service] = lambda: employee_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def employee_headers():
    return {"X-Employee-Id": "emp_1"}


@pytest.fixture
def admin_headers():
    return {"X-Employee-Id": "admin_1", "X-Employee-Role": "admin"}
