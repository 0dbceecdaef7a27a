"""
Employee lifecycle endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_scope
from app.schemas.common import ApiResponse
from app.schemas.employee import EmployeeStatusOut
from app.schemas.leave import LeaveRequestOut, TimeOffStatusOut
from app.services import employee_status_service, leave_service
from app.services.scope_gate import ScopeContext
from app.utils.datetime_utils import today_utc

router = APIRouter()


@router.get("/{employee_id}/time-off-status")
async def time_off_status(
    employee_id: int,
    on_date: Optional[date] = Query(None, alias="date", description="Defaults to today (UTC)"),
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Whether an approved leave covers the given day"""
    day = on_date or today_utc()
    leave_request = leave_service.is_employee_on_time_off(db, scope, employee_id, day)
    result = TimeOffStatusOut(
        employee_id=employee_id,
        on_date=day,
        on_time_off=leave_request is not None,
        leave_request=LeaveRequestOut.model_validate(leave_request) if leave_request is not None else None,
    )
    return ApiResponse.ok(data=result.model_dump(mode="json")).to_dict()


@router.post("/{employee_id}/status/sync")
async def sync_status(
    employee_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Recompute on_leave / active from approved vacations (admin only)"""
    employee = employee_status_service.sync_vacation_status(db, scope, employee_id)
    return ApiResponse.ok(data=EmployeeStatusOut.model_validate(employee).model_dump(mode="json")).to_dict()
