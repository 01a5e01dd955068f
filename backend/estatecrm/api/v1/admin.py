"""
EstateCRM Reminders - Admin Endpoints

Purpose: Back-office view of employee reminders (admin role only)

API Endpoints:
    GET /api/v1/admin/reminders/due - Due reminders of popup-enabled employees, grouped
    GET /api/v1/admin/reminders/stats - Dashboard counters
    GET /api/v1/admin/employees/{employee_id}/reminders - One employee's reminders
    PUT /api/v1/admin/employees/{employee_id}/reminder-popup - Toggle admin popup

Testing:
    curl http://localhost:8080/api/v1/admin/reminders/stats \\
      -H "X-Employee-Id: admin_1" -H "X-Employee-Role: admin"
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, List, Optional
from pydantic import BaseModel
from datetime import datetime
import logging

from estatecrm.api.v1.reminders import ListRemindersResponse, ReminderResponse, to_response
from estatecrm.dependencies import (
    CurrentEmployee,
    get_employee_service,
    get_reminder_service,
    require_admin,
)
from estatecrm.models.reminder import AssignmentType, ReminderStatus
from estatecrm.services.employees import EmployeeService
from estatecrm.services.reminders import ReminderService, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class EmployeeSummary(BaseModel):
    employee_id: str
    name: Optional[str]
    email: Optional[str]


class EmployeeDueReminders(BaseModel):
    employee: EmployeeSummary
    reminders: List[ReminderResponse]
    count: int


class AdminDueRemindersResponse(BaseModel):
    """Due reminders grouped by employee"""
    employees: List[EmployeeDueReminders]
    total: int


class EmployeeCounts(BaseModel):
    total: int
    with_popup_enabled: int


class ReminderCounts(BaseModel):
    total: int
    pending: int
    completed: int
    currently_due: int
    by_status: Dict[str, int]
    by_response_color: Dict[str, int]


class TopEmployee(BaseModel):
    employee_id: str
    name: Optional[str]
    reminder_count: int


class AdminStatsResponse(BaseModel):
    """Admin dashboard counters"""
    employees: EmployeeCounts
    reminders: ReminderCounts
    top_employees: List[TopEmployee]


class ReminderPopupRequest(BaseModel):
    """Toggle admin popup request"""
    enabled: bool


class ReminderPopupResponse(BaseModel):
    employee_id: str
    admin_reminder_popup_enabled: bool
    updated_at: datetime


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/admin/reminders/due", response_model=AdminDueRemindersResponse)
async def get_admin_due_reminders(
    admin: CurrentEmployee = Depends(require_admin),
    service: ReminderService = Depends(get_reminder_service),
) -> AdminDueRemindersResponse:
    """Due reminders for employees with the admin popup enabled"""
    logger.info(f"Admin {admin.employee_id} fetching due reminders")

    groups = await service.admin_due_by_employee()

    employees = [
        EmployeeDueReminders(
            employee=EmployeeSummary(
                employee_id=group["employee"].employee_id,
                name=group["employee"].name,
                email=group["employee"].email,
            ),
            reminders=[to_response(r) for r in group["reminders"]],
            count=len(group["reminders"]),
        )
        for group in groups
    ]

    return AdminDueRemindersResponse(
        employees=employees,
        total=sum(group.count for group in employees),
    )


@router.get("/admin/reminders/stats", response_model=AdminStatsResponse)
async def get_admin_stats(
    admin: CurrentEmployee = Depends(require_admin),
    service: ReminderService = Depends(get_reminder_service),
) -> AdminStatsResponse:
    """Reminder counters across all employees"""
    stats = await service.admin_stats()
    return AdminStatsResponse(**stats)


@router.get("/admin/employees/{employee_id}/reminders", response_model=ListRemindersResponse)
async def get_employee_reminders(
    employee_id: str,
    status_filter: Optional[ReminderStatus] = Query(None, alias="status", description="Filter by status"),
    assignment_type: Optional[AssignmentType] = Query(None, description="Filter by assignment type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    admin: CurrentEmployee = Depends(require_admin),
    service: ReminderService = Depends(get_reminder_service),
) -> ListRemindersResponse:
    """List any employee's reminders"""
    logger.info(f"Admin {admin.employee_id} listing reminders of {employee_id}")

    reminders, total = await service.list_for_owner(
        owner_id=employee_id,
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


@router.put("/admin/employees/{employee_id}/reminder-popup", response_model=ReminderPopupResponse)
async def set_reminder_popup(
    employee_id: str,
    request: ReminderPopupRequest,
    admin: CurrentEmployee = Depends(require_admin),
    service: EmployeeService = Depends(get_employee_service),
) -> ReminderPopupResponse:
    """Enable or disable an employee's due reminders in the admin popup"""
    logger.info(f"Admin {admin.employee_id} setting reminder popup for {employee_id} to {request.enabled}")

    employee = await service.set_admin_popup(employee_id, request.enabled)
    return ReminderPopupResponse(
        employee_id=employee.employee_id,
        admin_reminder_popup_enabled=employee.admin_reminder_popup_enabled,
        updated_at=employee.updated_at,
    )
