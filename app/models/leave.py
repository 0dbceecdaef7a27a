"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Text,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from app.db.base import Base


class LeaveType(str, enum.Enum):
    VACATION = "vacation"
    SICK_LEAVE = "sick_leave"
    MATERNITY_LEAVE = "maternity_leave"
    PATERNITY_LEAVE = "paternity_leave"
    BEREAVEMENT = "bereavement"
    PERSONAL = "personal"
    OTHER = "other"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionOutcome(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


# Approve/reject are final
TERMINAL_LEAVE_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED})


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    leave_type = Column(
        "type",
        SQLEnum(LeaveType, name="leave_type", values_callable=_enum_values),
        nullable=False,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(
        SQLEnum(LeaveStatus, name="leave_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveStatus.PENDING,
        server_default=text("'pending'"),
    )
    approved_by = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    approver = relationship("Employee", foreign_keys=[approved_by], back_populates="approved_leave_requests")

    __mapper_args__ = {"version_id_col": version}

    # Indexes
    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        Index("ix_leave_requests_company_status", "company_id", "status"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
        CheckConstraint("total_days >= 1", name="check_total_days_positive"),
    )
