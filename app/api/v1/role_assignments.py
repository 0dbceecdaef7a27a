"""
Role assignment ledger endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_scope
from app.schemas.common import ApiResponse
from app.schemas.role_assignment import (
    AssignRoleRequest,
    EndRoleAssignmentRequest,
    RoleAssignmentOut,
    UpdateRoleAssignmentRequest,
)
from app.services import role_assignment_service as ledger
from app.services.scope_gate import ScopeContext

router = APIRouter()


def _out(assignment) -> dict:
    return RoleAssignmentOut.model_validate(assignment).model_dump(mode="json")


@router.post("/employees/{employee_id}/roles", status_code=status.HTTP_201_CREATED)
async def assign_role(
    employee_id: int,
    payload: AssignRoleRequest,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """
    Assign a role to an employee (admin only)

    The previous current assignment is closed on payload.start_date.
    """
    assignment = ledger.assign_role(
        db,
        scope,
        employee_id=employee_id,
        role_id=payload.role_id,
        start_date=payload.start_date,
        notes=payload.notes,
    )
    return ApiResponse.ok(data=_out(assignment)).to_dict()


@router.get("/employees/{employee_id}/roles")
async def get_role_history(
    employee_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Role history, current assignment first"""
    rows = ledger.get_role_history(db, scope, employee_id)
    return ApiResponse.ok(data=[_out(row) for row in rows]).to_dict()


@router.get("/employees/{employee_id}/roles/current")
async def get_current_role(
    employee_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    current = ledger.get_current_role(db, scope, employee_id)
    return ApiResponse.ok(data=_out(current) if current is not None else None).to_dict()


@router.get("/role-assignments/{assignment_id}")
async def get_role_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    assignment = ledger.get_role_assignment(db, scope, assignment_id)
    return ApiResponse.ok(data=_out(assignment)).to_dict()


@router.patch("/role-assignments/{assignment_id}")
async def update_role_assignment(
    assignment_id: int,
    payload: UpdateRoleAssignmentRequest,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Correct the role, dates or notes of an assignment (admin only)"""
    assignment = ledger.update_role_assignment(
        db,
        scope,
        assignment_id,
        role_id=payload.role_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        notes=payload.notes,
    )
    return ApiResponse.ok(data=_out(assignment)).to_dict()


@router.post("/role-assignments/{assignment_id}/end")
async def end_role_assignment(
    assignment_id: int,
    payload: EndRoleAssignmentRequest,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Close the current assignment without replacing it (admin only)"""
    assignment = ledger.end_role_assignment(db, scope, assignment_id, payload.end_date)
    return ApiResponse.ok(data=_out(assignment)).to_dict()


@router.delete("/role-assignments/{assignment_id}")
async def delete_role_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    scope: ScopeContext = Depends(get_scope),
):
    """Administrative correction: remove an assignment recorded in error"""
    ledger.delete_role_assignment(db, scope, assignment_id)
    return ApiResponse.ok().to_dict()
