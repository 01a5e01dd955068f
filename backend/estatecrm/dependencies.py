"""
EstateCRM Reminders - FastAPI Dependencies

Purpose: Shared dependencies for dependency injection

Identity:
    The API sits behind the CRM gateway, which authenticates the employee and
    forwards X-Employee-Id and X-Employee-Role. These headers are trusted.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

from estatecrm.config import settings
from estatecrm.errors import AuthorizationError
from estatecrm.services.db import DatabaseService
from estatecrm.services.push import PushService
from estatecrm.services.broadcast import ConnectionManager, NotificationRelay
from estatecrm.services.dispatcher import NotificationDispatcher
from estatecrm.services.reminders import ReminderService
from estatecrm.services.employees import EmployeeService


class CurrentEmployee(BaseModel):
    """Authenticated caller"""
    employee_id: str
    role: str = "employee"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# Service dependencies
@lru_cache
def get_db_service() -> DatabaseService:
    """Get database service instance"""
    return DatabaseService()


@lru_cache
def get_push_service() -> PushService:
    """Get push notification service instance"""
    return PushService()


@lru_cache
def get_broadcast_channel() -> ConnectionManager:
    """Get the shared WebSocket broadcast channel"""
    return ConnectionManager()


def get_reminder_service(db: DatabaseService = Depends(get_db_service)) -> ReminderService:
    """Get reminder service instance"""
    return ReminderService(db)


def get_employee_service(
    db: DatabaseService = Depends(get_db_service),
    push: PushService = Depends(get_push_service),
) -> EmployeeService:
    """Get employee service instance"""
    return EmployeeService(db, push_service=push)


def get_dispatcher() -> NotificationDispatcher:
    """
    Get notification dispatcher wired to the shared services

    Under EventBridge the dispatcher runs in Lambda with no WebSocket clients;
    broadcasting is left to the NotificationRelay in the API processes.
    """
    return NotificationDispatcher(
        store=get_db_service(),
        push_service=get_push_service(),
        broadcast_channel=get_broadcast_channel(),
        broadcast_enabled=settings.ENABLE_BROADCAST and settings.SCHEDULER_PROVIDER == "apscheduler",
    )


@lru_cache
def get_notification_relay() -> NotificationRelay:
    """Get the relay feeding this process's broadcast clients"""
    return NotificationRelay(
        store=get_db_service(),
        channel=get_broadcast_channel(),
        event_name=settings.BROADCAST_EVENT_NAME,
        lookback=timedelta(seconds=settings.BROADCAST_RELAY_LOOKBACK_SECONDS),
    )


# Identity dependencies
def get_current_employee(
    x_employee_id: Optional[str] = Header(None),
    x_employee_role: Optional[str] = Header(None),
) -> CurrentEmployee:
    """Get the employee identity forwarded by the gateway"""
    if not x_employee_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing employee identity"
        )
    return CurrentEmployee(employee_id=x_employee_id, role=(x_employee_role or "employee").lower())


def require_admin(current: CurrentEmployee = Depends(get_current_employee)) -> CurrentEmployee:
    """Allow administrators only"""
    if not current.is_admin:
        raise AuthorizationError("Admin access required")
    return current
