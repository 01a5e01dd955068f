"""
EstateCRM Reminders - Notification Endpoints

Purpose: Device token registration, in-app notification inbox and the
realtime broadcast WebSocket

API Endpoints:
    PUT /api/v1/devices/token - Register the caller's push device token
    GET /api/v1/notifications - List the caller's in-app notifications
    PUT /api/v1/notifications/{notification_id}/read - Mark notification read
    WS /api/v1/ws/notifications - Realtime "newNotification" events

Testing:
    curl -X PUT http://localhost:8080/api/v1/devices/token \\
      -H "Content-Type: application/json" \\
      -H "X-Employee-Id: emp_123" \\
      -d '{"device_token": "fcm-token"}'
"""

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
import logging

from estatecrm.dependencies import (
    CurrentEmployee,
    get_broadcast_channel,
    get_current_employee,
    get_employee_service,
)
from estatecrm.models.notification import InAppNotification
from estatecrm.services.broadcast import ConnectionManager
from estatecrm.services.employees import EmployeeService

logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class DeviceTokenRequest(BaseModel):
    """Register device token request"""
    device_token: str = Field(..., description="FCM/APNS device token")
    name: Optional[str] = None
    email: Optional[str] = None


class DeviceTokenResponse(BaseModel):
    """Register device token response"""
    employee_id: str
    registered: bool
    updated_at: datetime


class NotificationResponse(BaseModel):
    """In-app notification"""
    notification_id: str
    reminder_id: Optional[str]
    title: str
    message: str
    reminder_data: Dict[str, str]
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime


class ListNotificationsResponse(BaseModel):
    """List notifications response"""
    notifications: List[NotificationResponse]
    total: int
    unread: int


def _to_response(notification: InAppNotification) -> NotificationResponse:
    return NotificationResponse(
        notification_id=notification.notification_id,
        reminder_id=notification.reminder_id,
        title=notification.title,
        message=notification.message,
        reminder_data=notification.reminder_data,
        is_read=notification.is_read,
        read_at=notification.read_at,
        created_at=notification.created_at,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.put("/devices/token", response_model=DeviceTokenResponse)
async def register_device_token(
    request: DeviceTokenRequest,
    current: CurrentEmployee = Depends(get_current_employee),
    service: EmployeeService = Depends(get_employee_service),
) -> DeviceTokenResponse:
    """Store the caller's push device token"""
    logger.info(f"Registering device token for employee {current.employee_id}")

    employee = await service.register_device_token(
        current.employee_id,
        request.device_token,
        name=request.name,
        email=request.email,
    )
    return DeviceTokenResponse(
        employee_id=employee.employee_id,
        registered=True,
        updated_at=employee.updated_at,
    )


@router.get("/notifications", response_model=ListNotificationsResponse)
async def list_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    current: CurrentEmployee = Depends(get_current_employee),
    service: EmployeeService = Depends(get_employee_service),
) -> ListNotificationsResponse:
    """List the caller's in-app notifications, newest first"""
    notifications = await service.list_notifications(current.employee_id, unread_only=unread_only)
    return ListNotificationsResponse(
        notifications=[_to_response(n) for n in notifications],
        total=len(notifications),
        unread=sum(1 for n in notifications if not n.is_read),
    )


@router.put("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    current: CurrentEmployee = Depends(get_current_employee),
    service: EmployeeService = Depends(get_employee_service),
) -> NotificationResponse:
    """Mark an in-app notification as read"""
    notification = await service.mark_notification_read(notification_id, current.employee_id)
    return _to_response(notification)


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    manager: ConnectionManager = Depends(get_broadcast_channel),
):
    """Realtime channel; the server only pushes, client messages are ignored"""
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
