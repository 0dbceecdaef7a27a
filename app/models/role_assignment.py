"""
Role assignment ledger model

One row per period an employee held a role. At most one row per employee is
current; the partial unique index backs that up at the database level.
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Boolean,
    Text,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text
from app.db.base import Base


class RoleAssignment(Base):
    __tablename__ = "role_assignments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", back_populates="role_assignments")
    role = relationship("RoleModel", lazy="joined")

    # UPDATEs carry "WHERE version = :loaded"; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index(
            "uq_role_assignments_one_current",
            "employee_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        Index("ix_role_assignments_employee_start", "employee_id", "start_date"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="check_role_assignment_end_after_start",
        ),
        CheckConstraint(
            "NOT is_current OR end_date IS NULL",
            name="check_role_assignment_current_open",
        ),
    )
