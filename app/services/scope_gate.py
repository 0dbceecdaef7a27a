"""
Scoping gate - tenant isolation and role checks for every engine operation

`resolve` turns an authenticated identity into a ScopeContext once per
request; `authorize` is the guard every ledger and leave operation calls
before touching data. Admin-only operations call `require_admin` first,
before any row is loaded.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InternalError,
    NotFoundError,
)
from app.models.employee import Employee, EmployeeStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeContext:
    company_id: int
    employee_id: int
    is_admin: bool


def resolve(db: Session, identity: Optional[str]) -> ScopeContext:
    """
    Map an identity (token subject) to the caller's scope

    Raises:
        AuthenticationError: identity missing or not linked to an employee
        AuthorizationError: the employee has been terminated
    """
    if not identity:
        raise AuthenticationError()

    employee = db.query(Employee).filter(Employee.user_id == identity).first()
    if employee is None:
        raise AuthenticationError("Identity is not linked to an employee")

    if employee.status == EmployeeStatus.TERMINATED:
        raise AuthorizationError("Inactive user")

    return ScopeContext(
        company_id=employee.company_id,
        employee_id=employee.id,
        is_admin=bool(employee.is_admin),
    )


def authorize(
    scope: ScopeContext,
    resource_company_id: Optional[int],
    require_admin: bool = False,
    owner_employee_id: Optional[int] = None,
    not_found_message: Optional[str] = None,
) -> None:
    """
    Authorize an operation on a resource owned by resource_company_id

    Checks run in this order:
    1. tenant: a resource in another company is reported exactly like a missing one
    2. require_admin: caller must be an admin of the company
    3. owner_employee_id: caller must be that employee or an admin

    Raises:
        NotFoundError: resource missing or outside the caller's company
        AuthorizationError: caller lacks the required role
    """
    if resource_company_id is None or resource_company_id != scope.company_id:
        raise NotFoundError(not_found_message)

    if require_admin and not scope.is_admin:
        raise AuthorizationError("Administrator privileges are required")

    if owner_employee_id is not None and not scope.is_admin and owner_employee_id != scope.employee_id:
        raise AuthorizationError("You can only access your own records")


def require_admin(scope: ScopeContext) -> None:
    """
    Role check that does not depend on any resource

    Admin-only operations call this before loading their target, so a
    non-admin learns nothing about whether the id exists.
    """
    if not scope.is_admin:
        raise AuthorizationError("Administrator privileges are required")


def ensure_same_company(row_company_id: int, employee: Employee, entity_type: str, entity_id: int) -> None:
    """
    Data-integrity check: a ledger/leave row must live in its employee's company

    A mismatch is never a valid state; it is logged and surfaced as InternalError.
    """
    if row_company_id != employee.company_id:
        logger.error(
            "Company mismatch: %s id=%s company_id=%s employee_id=%s employee.company_id=%s",
            entity_type, entity_id, row_company_id, employee.id, employee.company_id,
        )
        raise InternalError(
            "Data integrity violation",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


def load_employee(db: Session, scope: ScopeContext, employee_id: int, not_found_error=NotFoundError) -> Employee:
    """
    Fetch an employee visible to the caller

    Raises:
        not_found_error: employee absent or in another company
    """
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None or employee.company_id != scope.company_id:
        raise not_found_error()
    return employee
