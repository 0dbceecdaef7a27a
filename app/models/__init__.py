"""
Database models
"""
from app.models.company import Company
from app.models.employee import Employee, EmployeeStatus
from app.models.role import RoleModel
from app.models.role_assignment import RoleAssignment
from app.models.leave import (
    LeaveRequest,
    LeaveType,
    LeaveStatus,
    DecisionOutcome,
    TERMINAL_LEAVE_STATUSES,
)
from app.models.audit_log import AuditLog

__all__ = [
    "Company",
    "Employee",
    "EmployeeStatus",
    "RoleModel",
    "RoleAssignment",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
    "DecisionOutcome",
    "TERMINAL_LEAVE_STATUSES",
    "AuditLog",
]
