"""
Leave endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db, get_scope
from app.models.leave import LeaveStatus, LeaveType
from app.schemas.common import ApiResponse, PageMeta
from app.schemas.leave import (
    LeaveDecisionRequest,
    LeaveRequestOut,
    LeaveSubmitRequest,
)
from app.services import leave_service
from app.services.scope_gate import ScopeContext

router = APIRouter()


def _out(leave_request) -> dict:
    return LeaveRequestOut.model_validate(leave_request).model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_leave(
    payload: LeaveSubmitRequest,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """
    Submit a leave request

    employee_id defaults to the caller; only admins may submit for someone else.
    """
    leave_request = leave_service.submit_leave(
        db,
        scope,
        employee_id=payload.employee_id or scope.employee_id,
        leave_type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    return ApiResponse.ok(data=_out(leave_request)).to_dict()


@router.get("")
async def list_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    type_filter: Optional[LeaveType] = Query(None, alias="type"),
    employee_id: Optional[int] = Query(None, ge=1),
    from_date: Optional[date] = Query(None, description="Only requests ending on or after this date"),
    to_date: Optional[date] = Query(None, description="Only requests starting on or before this date"),
    search: Optional[str] = Query(None, max_length=200, description="Match on reason or employee name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """
    List leave requests

    Non-admins only ever see their own requests; employee_id is ignored for them.
    """
    items, total_items = leave_service.list_leaves(
        db,
        scope,
        status=status_filter,
        leave_type=type_filter,
        employee_id=employee_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        page_size=page_size,
    )
    return ApiResponse.ok(
        data=[_out(item) for item in items],
        meta=PageMeta.build(page=page, page_size=page_size, total_items=total_items),
    ).to_dict()


@router.get("/{leave_request_id}")
async def get_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    leave_request = leave_service.get_leave(db, scope, leave_request_id)
    return ApiResponse.ok(data=_out(leave_request)).to_dict()


@router.post("/{leave_request_id}/decision")
async def decide_leave(
    leave_request_id: int,
    payload: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Approve or reject a pending leave request (admin only)"""
    leave_request = leave_service.decide_leave(db, scope, leave_request_id, payload.outcome)
    return ApiResponse.ok(data=_out(leave_request)).to_dict()


@router.delete("/{leave_request_id}")
async def withdraw_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Withdraw a pending leave request (owner or admin)"""
    leave_service.withdraw_leave(db, scope, leave_request_id)
    return ApiResponse.ok().to_dict()
