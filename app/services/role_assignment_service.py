"""
Role assignment ledger - temporal history of the roles an employee held

Invariant: per employee at most one row has is_current = True, and that row
has no end_date. A new current row is only ever created in the same
transaction that closes the previous one.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.constants import ENTITY_ROLE_ASSIGNMENT
from app.core.exceptions import (
    ConcurrencyConflictError,
    CrossCompanyReferenceError,
    EmployeeNotFoundError,
    InvalidStateTransitionError,
    NotFoundError,
    RoleNotFoundError,
    ValidationError,
)
from app.models.role import RoleModel
from app.models.role_assignment import RoleAssignment
from app.services.audit_service import log_audit
from app.services.scope_gate import (
    ScopeContext,
    authorize,
    ensure_same_company,
    load_employee,
    require_admin,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_NOT_FOUND = "Role assignment not found"


def _load_current_assignment(db: Session, employee_id: int) -> Optional[RoleAssignment]:
    return (
        db.query(RoleAssignment)
        .filter(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.is_current == True,  # noqa: E712
        )
        .first()
    )


def _load_assignment(db: Session, scope: ScopeContext, assignment_id: int) -> RoleAssignment:
    """Fetch an assignment; absent and other-company rows both raise NotFoundError."""
    assignment = db.query(RoleAssignment).filter(RoleAssignment.id == assignment_id).first()
    if assignment is None:
        raise NotFoundError(ASSIGNMENT_NOT_FOUND)
    authorize(scope, assignment.company_id, not_found_message=ASSIGNMENT_NOT_FOUND)
    ensure_same_company(assignment.company_id, assignment.employee, ENTITY_ROLE_ASSIGNMENT, assignment.id)
    return assignment


def _load_role(db: Session, scope: ScopeContext, role_id: int) -> RoleModel:
    role = db.query(RoleModel).filter(RoleModel.id == role_id).first()
    if role is None:
        raise RoleNotFoundError()
    if role.company_id != scope.company_id:
        raise CrossCompanyReferenceError(RoleNotFoundError.default_message)
    return role


def _is_current_uniqueness_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "uq_role_assignments_one_current" in message or (
        "unique" in message and "employee_id" in message
    )


def _translate_write_error(db: Session, exc: Exception, employee_id: int, action: str) -> None:
    """
    Roll back and raise ConcurrencyConflictError when a ledger write lost a race

    StaleDataError: the row being closed was changed by another writer (version mismatch).
    IntegrityError on the partial unique index: another writer inserted a current row first.
    Any other IntegrityError is re-raised unchanged.
    """
    db.rollback()
    if isinstance(exc, StaleDataError):
        logger.warning("Concurrent ledger update lost: employee_id=%s action=%s", employee_id, action)
        raise ConcurrencyConflictError() from exc
    if isinstance(exc, IntegrityError) and _is_current_uniqueness_violation(exc):
        logger.warning("Second current assignment rejected: employee_id=%s action=%s", employee_id, action)
        raise ConcurrencyConflictError() from exc
    raise exc


def assign_role(
    db: Session,
    scope: ScopeContext,
    employee_id: int,
    role_id: int,
    start_date: date,
    notes: Optional[str] = None,
) -> RoleAssignment:
    """
    Make role_id the employee's current role from start_date

    Closes the existing current assignment (end_date = start_date,
    is_current = False) and inserts the new current row in one transaction.

    Raises:
        EmployeeNotFoundError / RoleNotFoundError: unknown or other-company references
        AuthorizationError: caller is not an admin
        ValidationError: start_date precedes the current assignment's start_date
        ConcurrencyConflictError: another assign/end for the employee won the race
    """
    require_admin(scope)
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)
    role = _load_role(db, scope, role_id)

    previous = _load_current_assignment(db, employee.id)
    if previous is not None:
        ensure_same_company(previous.company_id, employee, ENTITY_ROLE_ASSIGNMENT, previous.id)
        if start_date < previous.start_date:
            raise ValidationError(
                f"start_date {start_date} is before the current assignment's start_date {previous.start_date}"
            )

    # A failed flush expires every loaded instance; keep plain ids for the error path
    employee_id = employee.id
    company_id = employee.company_id
    role_id = role.id
    previous_id = previous.id if previous is not None else None
    try:
        if previous is not None:
            previous.is_current = False
            previous.end_date = start_date
            # Close first so the partial unique index never sees two current rows
            db.flush()

        assignment = RoleAssignment(
            employee_id=employee_id,
            role_id=role_id,
            company_id=company_id,
            start_date=start_date,
            end_date=None,
            is_current=True,
            notes=notes,
        )
        db.add(assignment)
        db.flush()

        log_audit(
            db=db,
            company_id=scope.company_id,
            actor_id=scope.employee_id,
            action="ROLE_ASSIGN",
            entity_type=ENTITY_ROLE_ASSIGNMENT,
            entity_id=assignment.id,
            meta={
                "employee_id": employee_id,
                "role_id": role_id,
                "start_date": start_date,
                "closed_assignment_id": previous_id,
            },
        )
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        _translate_write_error(db, e, employee_id, "assign")

    db.refresh(assignment)
    logger.info(
        "Role assigned: employee_id=%s role_id=%s assignment_id=%s closed=%s",
        employee_id, role_id, assignment.id, previous_id,
    )
    return assignment


def end_role_assignment(
    db: Session,
    scope: ScopeContext,
    assignment_id: int,
    end_date: date,
) -> RoleAssignment:
    """
    Close the current assignment without opening a new one

    Raises:
        NotFoundError: assignment absent or in another company
        AuthorizationError: caller is not an admin
        InvalidStateTransitionError: assignment is already closed
        ValidationError: end_date precedes start_date
    """
    require_admin(scope)
    assignment = _load_assignment(db, scope, assignment_id)

    if not assignment.is_current:
        raise InvalidStateTransitionError("Role assignment is already ended")
    if end_date < assignment.start_date:
        raise ValidationError(
            f"end_date {end_date} is before the assignment's start_date {assignment.start_date}"
        )

    employee_id = assignment.employee_id
    try:
        assignment.is_current = False
        assignment.end_date = end_date
        db.flush()
        log_audit(
            db=db,
            company_id=scope.company_id,
            actor_id=scope.employee_id,
            action="ROLE_END",
            entity_type=ENTITY_ROLE_ASSIGNMENT,
            entity_id=assignment.id,
            meta={"employee_id": employee_id, "end_date": end_date},
        )
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        _translate_write_error(db, e, employee_id, "end")

    db.refresh(assignment)
    logger.info("Role assignment ended: assignment_id=%s employee_id=%s end_date=%s",
                assignment.id, employee_id, end_date)
    return assignment


def update_role_assignment(
    db: Session,
    scope: ScopeContext,
    assignment_id: int,
    role_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> RoleAssignment:
    """
    Administrative correction of an assignment's role, dates or notes

    None leaves a field unchanged. is_current is never touched here: a current
    row cannot be given an end_date (use end_role_assignment), and a closed
    row keeps an end_date.

    Raises:
        AuthorizationError: caller is not an admin
        NotFoundError: assignment absent or in another company
        RoleNotFoundError: role_id unknown or in another company
        ValidationError: the corrected dates are out of order
        ConcurrencyConflictError: the row was changed by another writer
    """
    require_admin(scope)
    assignment = _load_assignment(db, scope, assignment_id)

    if assignment.is_current and end_date is not None:
        raise ValidationError("The current assignment cannot be given an end_date; end it instead")

    new_start = start_date if start_date is not None else assignment.start_date
    new_end = end_date if end_date is not None else assignment.end_date
    if new_end is not None and new_end < new_start:
        raise ValidationError(f"end_date {new_end} is before start_date {new_start}")

    if assignment.is_current and start_date is not None:
        latest_closed = (
            db.query(RoleAssignment)
            .filter(
                RoleAssignment.employee_id == assignment.employee_id,
                RoleAssignment.id != assignment.id,
            )
            .order_by(RoleAssignment.start_date.desc(), RoleAssignment.id.desc())
            .first()
        )
        if latest_closed is not None and new_start < latest_closed.start_date:
            raise ValidationError(
                f"start_date {new_start} is before the previous assignment's start_date {latest_closed.start_date}"
            )

    changes = {}
    if role_id is not None and role_id != assignment.role_id:
        role = _load_role(db, scope, role_id)
        changes["role_id"] = role.id
    if start_date is not None and start_date != assignment.start_date:
        changes["start_date"] = start_date
    if end_date is not None and end_date != assignment.end_date:
        changes["end_date"] = end_date
    if notes is not None and notes != assignment.notes:
        changes["notes"] = notes

    if not changes:
        return assignment

    employee_id = assignment.employee_id
    try:
        for field, value in changes.items():
            setattr(assignment, field, value)
        db.flush()
        log_audit(
            db=db,
            company_id=scope.company_id,
            actor_id=scope.employee_id,
            action="ROLE_UPDATE",
            entity_type=ENTITY_ROLE_ASSIGNMENT,
            entity_id=assignment_id,
            meta={"employee_id": employee_id, "changes": changes},
        )
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        _translate_write_error(db, e, employee_id, "update")

    db.refresh(assignment)
    logger.info("Role assignment updated: assignment_id=%s employee_id=%s fields=%s",
                assignment_id, employee_id, sorted(changes))
    return assignment


def get_role_history(db: Session, scope: ScopeContext, employee_id: int) -> List[RoleAssignment]:
    """
    All assignments of an employee: the current one first, then by start_date descending.
    Visible to the employee and to admins of the company.
    """
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)
    authorize(scope, employee.company_id, owner_employee_id=employee.id)

    rows = (
        db.query(RoleAssignment)
        .filter(RoleAssignment.employee_id == employee.id)
        .order_by(
            RoleAssignment.is_current.desc(),
            RoleAssignment.start_date.desc(),
            RoleAssignment.id.desc(),
        )
        .all()
    )
    for row in rows:
        ensure_same_company(row.company_id, employee, ENTITY_ROLE_ASSIGNMENT, row.id)
    return rows


def get_current_role(db: Session, scope: ScopeContext, employee_id: int) -> Optional[RoleAssignment]:
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)
    authorize(scope, employee.company_id, owner_employee_id=employee.id)

    current = _load_current_assignment(db, employee.id)
    if current is not None:
        ensure_same_company(current.company_id, employee, ENTITY_ROLE_ASSIGNMENT, current.id)
    return current


def get_role_assignment(db: Session, scope: ScopeContext, assignment_id: int) -> RoleAssignment:
    assignment = _load_assignment(db, scope, assignment_id)
    authorize(scope, assignment.company_id, owner_employee_id=assignment.employee_id)
    return assignment


def delete_role_assignment(db: Session, scope: ScopeContext, assignment_id: int) -> None:
    """
    Remove an assignment recorded in error

    Deleting the current row reopens the most recent remaining assignment
    (latest start_date) as current, so the ledger still has a current role
    whenever it has any rows.
    """
    require_admin(scope)
    assignment = _load_assignment(db, scope, assignment_id)

    employee_id = assignment.employee_id
    was_current = bool(assignment.is_current)
    reopened_id = None
    try:
        db.delete(assignment)
        db.flush()

        if was_current:
            latest = (
                db.query(RoleAssignment)
                .filter(RoleAssignment.employee_id == employee_id)
                .order_by(RoleAssignment.start_date.desc(), RoleAssignment.id.desc())
                .first()
            )
            if latest is not None:
                latest.is_current = True
                latest.end_date = None
                db.flush()
                reopened_id = latest.id

        log_audit(
            db=db,
            company_id=scope.company_id,
            actor_id=scope.employee_id,
            action="ROLE_DELETE",
            entity_type=ENTITY_ROLE_ASSIGNMENT,
            entity_id=assignment_id,
            meta={"employee_id": employee_id, "was_current": was_current, "reopened_assignment_id": reopened_id},
        )
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        _translate_write_error(db, e, employee_id, "delete")

    logger.info("Role assignment deleted: assignment_id=%s employee_id=%s reopened=%s",
                assignment_id, employee_id, reopened_id)
