"""
EstateCRM Reminders - Reminder Endpoints

Purpose: Employees create and manage their own follow-up reminders

API Endpoints:
    POST /api/v1/reminders - Create reminder
    POST /api/v1/reminders/from-lead - Create follow-up reminder from lead details
    GET /api/v1/reminders - List own reminders (filter by status/assignment type, paginated)
    GET /api/v1/reminders/due - Reminders due now (popup list)
    GET /api/v1/reminders/stats - Counts by status
    GET /api/v1/reminders/{reminder_id} - Get reminder
    PUT /api/v1/reminders/{reminder_id} - Edit reminder
    PUT /api/v1/reminders/{reminder_id}/complete - Complete with response note
    PUT /api/v1/reminders/{reminder_id}/snooze - Snooze
    PUT /api/v1/reminders/{reminder_id}/dismiss - Dismiss
    DELETE /api/v1/reminders/{reminder_id} - Delete reminder

Testing:
    curl -X POST http://localhost:8080/api/v1/reminders \\
      -H "Content-Type: application/json" \\
      -H "X-Employee-Id: emp_123" \\
      -d '{
        "title": "Call back buyer",
        "body": "Discuss the 3BHK listing",
        "due_at": "2024-02-15T10:00:00Z",
        "is_repeating": false
      }'

AWS Deployment Notes:
    - EventBridge rule triggers Lambda every minute to dispatch due reminders
    - Push notifications sent via SNS mobile push
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
import logging

from estatecrm.config import settings
from estatecrm.dependencies import CurrentEmployee, get_current_employee, get_reminder_service
from estatecrm.models.reminder import (
    AssignmentType,
    EditHistoryEntry,
    Reminder,
    ReminderStatus,
    RepeatInterval,
    ResponseColor,
)
from estatecrm.services.reminders import ReminderService, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateReminderRequest(BaseModel):
    """Create reminder request"""
    title: str = Field(..., description="Reminder title")
    body: str = Field(default="", description="Optional note")
    due_at: datetime = Field(..., description="When the reminder fires")
    timezone: str = Field(default="UTC", description="Display timezone of the creator")
    is_repeating: bool = Field(default=False)
    repeat_interval: Optional[RepeatInterval] = Field(None, description="daily, weekly, monthly")
    client_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    assignment_id: Optional[str] = None
    assignment_type: Optional[AssignmentType] = None


class CreateFromLeadRequest(BaseModel):
    """Create follow-up reminder from lead details"""
    name: str = Field(..., description="Client name")
    reminder_time: datetime = Field(..., description="When to follow up")
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None


class UpdateReminderRequest(BaseModel):
    """Update reminder request (absent fields are left untouched)"""
    title: Optional[str] = None
    body: Optional[str] = None
    due_at: Optional[datetime] = None
    timezone: Optional[str] = None
    is_repeating: Optional[bool] = None
    repeat_interval: Optional[RepeatInterval] = None
    active: Optional[bool] = None
    client_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None


class CompleteReminderRequest(BaseModel):
    """Complete reminder request"""
    response: str = Field(..., description="What was done (1-1000 characters)")


class SnoozeReminderRequest(BaseModel):
    """Snooze reminder request"""
    snooze_minutes: Optional[int] = Field(
        default=None,
        description=f"Minutes to snooze (default {settings.DEFAULT_SNOOZE_MINUTES})",
    )


class ReminderResponse(BaseModel):
    """Reminder response"""
    reminder_id: str
    owner_id: str
    title: str
    body: str
    due_at: datetime
    timezone: str
    status: ReminderStatus
    is_repeating: bool
    repeat_interval: Optional[RepeatInterval]
    next_trigger: Optional[datetime]
    active: bool
    snoozed_until: Optional[datetime]
    snooze_count: int
    trigger_count: int
    last_triggered_at: Optional[datetime]
    completion_note: Optional[str]
    response_word_count: Optional[int]
    response_color: Optional[ResponseColor]
    completed_at: Optional[datetime]
    client_name: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    location: Optional[str]
    assignment_id: Optional[str]
    assignment_type: Optional[AssignmentType]
    edit_history: List[EditHistoryEntry]
    created_at: datetime
    updated_at: datetime


class CompleteReminderResponse(ReminderResponse):
    """Complete reminder response"""
    word_count: int


class ListRemindersResponse(BaseModel):
    """List reminders response"""
    reminders: List[ReminderResponse]
    total: int
    page: int
    limit: int
    pages: int


class DueRemindersResponse(BaseModel):
    """Due reminders response"""
    reminders: List[ReminderResponse]
    count: int


class ReminderStatsResponse(BaseModel):
    """Reminder stats response"""
    pending: int
    completed: int
    snoozed: int
    dismissed: int
    total: int
    due: int


def to_response(reminder: Reminder) -> ReminderResponse:
    """Flatten a reminder into its API representation"""
    completion = reminder.last_completion
    return ReminderResponse(
        reminder_id=reminder.reminder_id,
        owner_id=reminder.owner_id,
        title=reminder.title,
        body=reminder.body,
        due_at=reminder.due_at,
        timezone=reminder.timezone,
        status=reminder.status,
        is_repeating=reminder.is_repeating,
        repeat_interval=reminder.repeat_interval,
        next_trigger=reminder.next_trigger,
        active=reminder.active,
        snoozed_until=reminder.snoozed_until,
        snooze_count=reminder.snooze_count,
        trigger_count=reminder.trigger_count,
        last_triggered_at=reminder.last_triggered_at,
        completion_note=completion.note if completion else None,
        response_word_count=completion.word_count if completion else None,
        response_color=completion.color if completion else None,
        completed_at=completion.completed_at if completion else None,
        client_name=reminder.client_name,
        phone=reminder.phone,
        email=reminder.email,
        location=reminder.location,
        assignment_id=reminder.assignment_id,
        assignment_type=reminder.assignment_type,
        edit_history=reminder.edit_history,
        created_at=reminder.created_at,
        updated_at=reminder.updated_at,
    )


def _ensure_enabled():
    if not settings.ENABLE_REMINDERS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminders feature is disabled"
        )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/reminders", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    request: CreateReminderRequest,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """
    Create a new reminder owned by the caller

    Args:
        request: Reminder details

    Returns:
        ReminderResponse with created reminder
    """
    logger.info(f"Creating reminder for employee {current.employee_id}")
    _ensure_enabled()

    reminder = await service.create(
        owner_id=current.employee_id,
        title=request.title,
        body=request.body,
        due_at=request.due_at,
        is_repeating=request.is_repeating,
        repeat_interval=request.repeat_interval,
        timezone=request.timezone,
        client_name=request.client_name,
        phone=request.phone,
        email=request.email,
        location=request.location,
        assignment_id=request.assignment_id,
        assignment_type=request.assignment_type,
    )
    return to_response(reminder)


@router.post("/reminders/from-lead", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder_from_lead(
    request: CreateFromLeadRequest,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """Create a follow-up reminder from lead contact details"""
    logger.info(f"Creating lead follow-up reminder for employee {current.employee_id}")
    _ensure_enabled()

    reminder = await service.create_from_lead(
        owner_id=current.employee_id,
        name=request.name,
        reminder_time=request.reminder_time,
        email=request.email,
        phone=request.phone,
        location=request.location,
        note=request.note,
    )
    return to_response(reminder)


@router.get("/reminders", response_model=ListRemindersResponse)
async def list_reminders(
    status_filter: Optional[ReminderStatus] = Query(None, alias="status", description="Filter by status"),
    assignment_type: Optional[AssignmentType] = Query(None, description="Filter by assignment type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ListRemindersResponse:
    """
    List the caller's reminders sorted by due time

    Returns:
        ListRemindersResponse with one page of reminders
    """
    logger.info(f"Listing reminders for employee {current.employee_id}")

    reminders, total = await service.list_for_owner(
        owner_id=current.employee_id,
        status=status_filter,
        assignment_type=assignment_type,
        page=page,
        limit=limit,
    )

    return ListRemindersResponse(
        reminders=[to_response(r) for r in reminders],
        total=total,
        page=page,
        limit=limit,
        pages=(total + limit - 1) // limit,
    )


@router.get("/reminders/due", response_model=DueRemindersResponse)
async def get_due_reminders(
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> DueRemindersResponse:
    """Reminders due now for the caller"""
    reminders = await service.due_for_owner(current.employee_id)
    return DueRemindersResponse(
        reminders=[to_response(r) for r in reminders],
        count=len(reminders),
    )


@router.get("/reminders/stats", response_model=ReminderStatsResponse)
async def get_reminder_stats(
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderStatsResponse:
    """Counts of the caller's reminders by status"""
    stats = await service.owner_stats(current.employee_id)
    return ReminderStatsResponse(**stats)


@router.get("/reminders/{reminder_id}", response_model=ReminderResponse)
async def get_reminder(
    reminder_id: str,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """Get reminder by ID"""
    logger.info(f"Getting reminder: {reminder_id}")
    reminder = await service.get(reminder_id, current.employee_id, is_admin=current.is_admin)
    return to_response(reminder)


@router.put("/reminders/{reminder_id}", response_model=ReminderResponse)
async def update_reminder(
    reminder_id: str,
    request: UpdateReminderRequest,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """Edit reminder content and settings"""
    logger.info(f"Updating reminder: {reminder_id}")

    reminder = await service.edit(
        reminder_id,
        current.employee_id,
        request.model_dump(exclude_unset=True),
        is_admin=current.is_admin,
    )
    return to_response(reminder)


@router.put("/reminders/{reminder_id}/complete", response_model=CompleteReminderResponse)
async def complete_reminder(
    reminder_id: str,
    request: CompleteReminderRequest,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> CompleteReminderResponse:
    """
    Complete a reminder with a response note

    The response is graded by word count: red under 10 words, yellow 10-20,
    green above 20.
    """
    logger.info(f"Completing reminder: {reminder_id}")
    reminder = await service.complete(reminder_id, current.employee_id, request.response, is_admin=current.is_admin)

    response = to_response(reminder)
    return CompleteReminderResponse(
        **response.model_dump(),
        word_count=reminder.last_completion.word_count,
    )


@router.put("/reminders/{reminder_id}/snooze", response_model=ReminderResponse)
async def snooze_reminder(
    reminder_id: str,
    request: Optional[SnoozeReminderRequest] = None,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """Snooze a reminder"""
    minutes = request.snooze_minutes if request else None
    logger.info(f"Snoozing reminder: {reminder_id} (minutes={minutes}, default {settings.DEFAULT_SNOOZE_MINUTES})")
    reminder = await service.snooze(reminder_id, current.employee_id, minutes, is_admin=current.is_admin)
    return to_response(reminder)


@router.put("/reminders/{reminder_id}/dismiss", response_model=ReminderResponse)
async def dismiss_reminder(
    reminder_id: str,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    """Dismiss a reminder"""
    logger.info(f"Dismissing reminder: {reminder_id}")
    reminder = await service.dismiss(reminder_id, current.employee_id, is_admin=current.is_admin)
    return to_response(reminder)


@router.delete("/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder(
    reminder_id: str,
    current: CurrentEmployee = Depends(get_current_employee),
    service: ReminderService = Depends(get_reminder_service),
):
    """Delete reminder"""
    logger.info(f"Deleting reminder: {reminder_id}")
    await service.delete(reminder_id, current.employee_id, is_admin=current.is_admin)
