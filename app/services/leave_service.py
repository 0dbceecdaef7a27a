"""
Leave service - the leave request state machine

    pending --decide(approved)--> approved
    pending --decide(rejected)--> rejected
    pending --withdraw--> (deleted)

Approved and rejected are terminal. Decide and withdraw are conditional on
status = pending at write time, so of two concurrent callers exactly one wins.
"""
import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.constants import ENTITY_LEAVE_REQUEST
from app.core.exceptions import (
    ConcurrencyConflictError,
    EmployeeNotFoundError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.employee import Employee
from app.models.leave import (
    DecisionOutcome,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    TERMINAL_LEAVE_STATUSES,
)
from app.services.audit_service import log_audit
from app.services.domain_events import LeaveApproved, publish
from app.services.scope_gate import (
    ScopeContext,
    authorize,
    ensure_same_company,
    load_employee,
    require_admin,
)
from app.utils.datetime_utils import now_utc, today_utc

logger = logging.getLogger(__name__)

LEAVE_NOT_FOUND = "Leave request not found"
MIN_REASON_LENGTH = 3


def calculate_total_days(start_date: date, end_date: date) -> int:
    """
    Inclusive calendar day count between two dates

    Raises:
        ValidationError: start_date is after end_date
    """
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    total_days = (end_date - start_date).days + 1
    if total_days < 1:
        raise ValidationError("total_days must be at least 1")
    return total_days


def _validate_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if len(cleaned) < MIN_REASON_LENGTH:
        raise ValidationError(f"reason must be at least {MIN_REASON_LENGTH} characters")
    return cleaned


def _load_leave(db: Session, scope: ScopeContext, leave_request_id: int) -> LeaveRequest:
    """Fetch a leave request; absent and other-company rows both raise NotFoundError."""
    leave_request = (
        db.query(LeaveRequest)
        .options(joinedload(LeaveRequest.employee))
        .filter(LeaveRequest.id == leave_request_id)
        .first()
    )
    if leave_request is None:
        raise NotFoundError(LEAVE_NOT_FOUND)
    authorize(scope, leave_request.company_id, not_found_message=LEAVE_NOT_FOUND)
    ensure_same_company(leave_request.company_id, leave_request.employee, ENTITY_LEAVE_REQUEST, leave_request.id)
    return leave_request


def _reread_status(db: Session, leave_request_id: int) -> Optional[LeaveStatus]:
    row = (
        db.query(LeaveRequest)
        .populate_existing()
        .filter(LeaveRequest.id == leave_request_id)
        .first()
    )
    return row.status if row is not None else None


def submit_leave(
    db: Session,
    scope: ScopeContext,
    employee_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: str,
) -> LeaveRequest:
    """
    Create a pending leave request

    A non-admin may only submit for themselves; an admin may submit for any
    employee of the company.

    Raises:
        EmployeeNotFoundError: employee absent or in another company
        AuthorizationError: non-admin submitting for someone else
        ValidationError: bad date range or reason
    """
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)
    authorize(scope, employee.company_id, owner_employee_id=employee.id)

    total_days = calculate_total_days(start_date, end_date)
    cleaned_reason = _validate_reason(reason)

    leave_request = LeaveRequest(
        employee_id=employee.id,
        company_id=employee.company_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        reason=cleaned_reason,
        status=LeaveStatus.PENDING,
    )
    db.add(leave_request)
    db.flush()

    log_audit(
        db=db,
        company_id=scope.company_id,
        actor_id=scope.employee_id,
        action="LEAVE_SUBMIT",
        entity_type=ENTITY_LEAVE_REQUEST,
        entity_id=leave_request.id,
        meta={
            "employee_id": employee.id,
            "leave_type": leave_type,
            "start_date": start_date,
            "end_date": end_date,
            "total_days": total_days,
        },
    )
    db.commit()
    db.refresh(leave_request)

    logger.info(
        "leave submitted: leave_request_id=%s employee_id=%s type=%s days=%s",
        leave_request.id, employee.id, leave_type.value, total_days,
    )
    return leave_request


def get_leave(db: Session, scope: ScopeContext, leave_request_id: int) -> LeaveRequest:
    leave_request = _load_leave(db, scope, leave_request_id)
    authorize(scope, leave_request.company_id, owner_employee_id=leave_request.employee_id)
    return leave_request


def decide_leave(
    db: Session,
    scope: ScopeContext,
    leave_request_id: int,
    outcome: DecisionOutcome,
) -> LeaveRequest:
    """
    Approve or reject a pending leave request

    The transition is a compare-and-swap on status = pending. When no row is
    updated the request is re-read: a terminal status means another decision
    already landed (InvalidStateTransitionError), anything else is reported
    as ConcurrencyConflictError.

    LeaveApproved is published only after the decision has committed.
    """
    require_admin(scope)
    leave_request = _load_leave(db, scope, leave_request_id)

    if leave_request.status != LeaveStatus.PENDING:
        raise InvalidStateTransitionError(
            f"Cannot decide leave request with status {leave_request.status.value}"
        )

    target = LeaveStatus.APPROVED if outcome == DecisionOutcome.APPROVED else LeaveStatus.REJECTED
    decided_at = now_utc()

    result = db.execute(
        update(LeaveRequest)
        .where(
            LeaveRequest.id == leave_request_id,
            LeaveRequest.status == LeaveStatus.PENDING,
        )
        .values(
            status=target,
            approved_by=scope.employee_id,
            approved_at=decided_at,
            version=LeaveRequest.version + 1,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        db.rollback()
        current_status = _reread_status(db, leave_request_id)
        if current_status is None:
            raise NotFoundError(LEAVE_NOT_FOUND)
        if current_status in TERMINAL_LEAVE_STATUSES:
            logger.info(
                "leave decision lost race: leave_request_id=%s status=%s",
                leave_request_id, current_status.value,
            )
            raise InvalidStateTransitionError(
                f"Cannot decide leave request with status {current_status.value}"
            )
        raise ConcurrencyConflictError()

    log_audit(
        db=db,
        company_id=scope.company_id,
        actor_id=scope.employee_id,
        action="LEAVE_APPROVE" if target == LeaveStatus.APPROVED else "LEAVE_REJECT",
        entity_type=ENTITY_LEAVE_REQUEST,
        entity_id=leave_request_id,
        meta={
            "employee_id": leave_request.employee_id,
            "before": LeaveStatus.PENDING,
            "after": target,
        },
    )
    db.commit()

    leave_request = (
        db.query(LeaveRequest)
        .populate_existing()
        .filter(LeaveRequest.id == leave_request_id)
        .one()
    )
    logger.info(
        "leave status transition: leave_request_id=%s before=pending after=%s approver_id=%s",
        leave_request_id, target.value, scope.employee_id,
    )

    if target == LeaveStatus.APPROVED:
        publish(
            db,
            LeaveApproved(
                company_id=leave_request.company_id,
                leave_request_id=leave_request.id,
                employee_id=leave_request.employee_id,
                leave_type=leave_request.leave_type.value,
                start_date=leave_request.start_date,
                end_date=leave_request.end_date,
                approved_by=scope.employee_id,
            ),
        )
    return leave_request


def withdraw_leave(db: Session, scope: ScopeContext, leave_request_id: int) -> None:
    """
    Delete a pending leave request (owner or admin)

    Raises:
        InvalidStateTransitionError: request already decided; the row is left unchanged
    """
    leave_request = _load_leave(db, scope, leave_request_id)
    authorize(scope, leave_request.company_id, owner_employee_id=leave_request.employee_id)

    if leave_request.status != LeaveStatus.PENDING:
        raise InvalidStateTransitionError(
            f"Cannot withdraw leave request with status {leave_request.status.value}"
        )

    employee_id = leave_request.employee_id
    result = db.execute(
        delete(LeaveRequest)
        .where(
            LeaveRequest.id == leave_request_id,
            LeaveRequest.status == LeaveStatus.PENDING,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        current_status = _reread_status(db, leave_request_id)
        if current_status is None:
            raise NotFoundError(LEAVE_NOT_FOUND)
        if current_status in TERMINAL_LEAVE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot withdraw leave request with status {current_status.value}"
            )
        raise ConcurrencyConflictError()

    db.expunge(leave_request)
    log_audit(
        db=db,
        company_id=scope.company_id,
        actor_id=scope.employee_id,
        action="LEAVE_WITHDRAW",
        entity_type=ENTITY_LEAVE_REQUEST,
        entity_id=leave_request_id,
        meta={"employee_id": employee_id},
    )
    db.commit()
    logger.info("leave withdrawn: leave_request_id=%s employee_id=%s actor_id=%s",
                leave_request_id, employee_id, scope.employee_id)


def list_leaves(
    db: Session,
    scope: ScopeContext,
    status: Optional[LeaveStatus] = None,
    leave_type: Optional[LeaveType] = None,
    employee_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Tuple[List[LeaveRequest], int]:
    """
    List leave requests visible to the caller

    Non-admins always see only their own requests (employee_id is forced to
    the caller); admins see the whole company. from_date/to_date select
    requests overlapping the window. Ordered by created_at desc, id desc.

    Returns:
        (items for the page, total matching items)
    """
    if page_size is None:
        page_size = settings.DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("page must be at least 1")
    if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"page_size must be between 1 and {settings.MAX_PAGE_SIZE}")
    if from_date and to_date and from_date > to_date:
        raise ValidationError("from_date must be on or before to_date")

    if not scope.is_admin:
        employee_id = scope.employee_id

    query = (
        db.query(LeaveRequest)
        .options(joinedload(LeaveRequest.employee))
        .filter(LeaveRequest.company_id == scope.company_id)
    )
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    if leave_type is not None:
        query = query.filter(LeaveRequest.leave_type == leave_type)
    if from_date:
        query = query.filter(LeaveRequest.end_date >= from_date)
    if to_date:
        query = query.filter(LeaveRequest.start_date <= to_date)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.join(Employee, LeaveRequest.employee_id == Employee.id).filter(
            or_(LeaveRequest.reason.ilike(pattern), Employee.full_name.ilike(pattern))
        )

    total_items = query.count()
    items = (
        query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total_items


def find_approved_leave_covering(
    db: Session,
    employee_id: int,
    on_date: date,
    leave_type: Optional[LeaveType] = None,
) -> Optional[LeaveRequest]:
    """Approved request of the employee whose window contains on_date, if any."""
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status == LeaveStatus.APPROVED,
        LeaveRequest.start_date <= on_date,
        LeaveRequest.end_date >= on_date,
    )
    if leave_type is not None:
        query = query.filter(LeaveRequest.leave_type == leave_type)
    return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).first()


def is_employee_on_time_off(
    db: Session,
    scope: ScopeContext,
    employee_id: int,
    on_date: Optional[date] = None,
) -> Optional[LeaveRequest]:
    """
    The approved leave covering on_date (default: today, UTC), or None

    Visible to the employee and to admins of the company.
    """
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)
    authorize(scope, employee.company_id, owner_employee_id=employee.id)
    return find_approved_leave_covering(db, employee.id, on_date or today_utc())
