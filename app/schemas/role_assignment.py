"""
Role assignment schemas
"""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.role import RoleOut


class AssignRoleRequest(BaseModel):
    """Schema for assigning a role to an employee"""
    role_id: int = Field(..., ge=1, description="Role from the company's catalog")
    start_date: date = Field(..., description="First day in the new role")
    notes: Optional[str] = Field(None, max_length=2000)


class EndRoleAssignmentRequest(BaseModel):
    """Schema for closing the current assignment"""
    end_date: date = Field(..., description="Last day in the role")


class UpdateRoleAssignmentRequest(BaseModel):
    """Schema for correcting an assignment; omitted fields stay unchanged"""
    role_id: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=2000)


class RoleAssignmentOut(BaseModel):
    id: int
    employee_id: int
    company_id: int
    role_id: int
    role: Optional[RoleOut] = None
    start_date: date
    end_date: Optional[date] = None
    is_current: bool
    notes: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
