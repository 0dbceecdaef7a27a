"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.leave import DecisionOutcome, LeaveStatus, LeaveType


class LeaveSubmitRequest(BaseModel):
    """Schema for submitting a leave request"""
    employee_id: Optional[int] = Field(
        None, ge=1, description="Employee the request is for; defaults to the caller"
    )
    type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave (inclusive)")
    reason: str = Field(..., max_length=2000, description="Reason for leave")

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return v.strip()


class LeaveDecisionRequest(BaseModel):
    """Schema for approving or rejecting a leave request"""
    outcome: DecisionOutcome = Field(..., description="approved or rejected")


class LeaveRequestOut(BaseModel):
    id: int
    employee_id: int
    company_id: int
    type: LeaveType = Field(..., validation_alias="leave_type")
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TimeOffStatusOut(BaseModel):
    employee_id: int
    on_date: date
    on_time_off: bool
    leave_request: Optional[LeaveRequestOut] = None
