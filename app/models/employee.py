"""
Employee model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.db.base import Base


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    # Opaque reference issued by the identity provider (token `sub`)
    user_id = Column(String, unique=True, nullable=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    status = Column(String, default=EmployeeStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    # Relationships
    company = relationship("Company", back_populates="employees")
    role_assignments = relationship("RoleAssignment", back_populates="employee")
    leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.employee_id", back_populates="employee")
    approved_leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.approved_by", back_populates="approver")
