"""
Employee status collaborator - keeps Employee.status in step with approved vacations
"""
import logging

from sqlalchemy.orm import Session

from app.core.constants import ENTITY_EMPLOYEE
from app.core.exceptions import EmployeeNotFoundError
from app.models.employee import Employee, EmployeeStatus
from app.models.leave import LeaveType
from app.services.audit_service import log_audit
from app.services.domain_events import LeaveApproved
from app.services.leave_service import find_approved_leave_covering
from app.services.scope_gate import ScopeContext, load_employee, require_admin
from app.utils.datetime_utils import today_utc, window_contains

logger = logging.getLogger(__name__)

# Statuses an approved vacation never overrides
FROZEN_STATUSES = frozenset({EmployeeStatus.INACTIVE.value, EmployeeStatus.TERMINATED.value})


def handle_leave_approved(db: Session, event: LeaveApproved) -> None:
    """
    Mark the employee on_leave when an approved vacation covers today

    Runs after the approval has committed; errors propagate to the publisher,
    which logs them without touching the approval.
    """
    if event.leave_type != LeaveType.VACATION.value:
        return
    if not window_contains(event.start_date, event.end_date, today_utc()):
        return

    employee = db.query(Employee).filter(
        Employee.id == event.employee_id,
        Employee.company_id == event.company_id,
    ).first()
    if employee is None:
        logger.warning(
            "LeaveApproved for unknown employee: employee_id=%s company_id=%s",
            event.employee_id, event.company_id,
        )
        return
    if employee.status in FROZEN_STATUSES or employee.status == EmployeeStatus.ON_LEAVE.value:
        return

    before = employee.status
    try:
        employee.status = EmployeeStatus.ON_LEAVE.value
        log_audit(
            db=db,
            company_id=event.company_id,
            actor_id=event.approved_by,
            action="EMPLOYEE_STATUS_ON_LEAVE",
            entity_type=ENTITY_EMPLOYEE,
            entity_id=employee.id,
            meta={"before": before, "after": employee.status, "leave_request_id": event.leave_request_id},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "employee status transition: employee_id=%s before=%s after=%s leave_request_id=%s",
        employee.id, before, EmployeeStatus.ON_LEAVE.value, event.leave_request_id,
    )


def sync_vacation_status(db: Session, scope: ScopeContext, employee_id: int) -> Employee:
    """
    Recompute on_leave / active from the approved vacations covering today

    Admin only. Inactive and terminated employees are returned unchanged.
    """
    require_admin(scope)
    employee = load_employee(db, scope, employee_id, EmployeeNotFoundError)

    if employee.status in FROZEN_STATUSES:
        return employee

    on_vacation = find_approved_leave_covering(
        db, employee.id, today_utc(), leave_type=LeaveType.VACATION
    ) is not None
    target = EmployeeStatus.ON_LEAVE.value if on_vacation else EmployeeStatus.ACTIVE.value
    if employee.status == target:
        return employee

    before = employee.status
    employee.status = target
    log_audit(
        db=db,
        company_id=scope.company_id,
        actor_id=scope.employee_id,
        action="EMPLOYEE_STATUS_SYNC",
        entity_type=ENTITY_EMPLOYEE,
        entity_id=employee.id,
        meta={"before": before, "after": target},
    )
    db.commit()
    db.refresh(employee)

    logger.info("employee status transition: employee_id=%s before=%s after=%s action=sync",
                employee.id, before, target)
    return employee
