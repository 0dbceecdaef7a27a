"""
Employee schemas
"""
from pydantic import BaseModel, ConfigDict

from app.models.employee import EmployeeStatus


class EmployeeStatusOut(BaseModel):
    """Employee status after a vacation sync"""
    id: int
    company_id: int
    full_name: str
    status: EmployeeStatus
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)
