"""
Role schemas
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RoleOut(BaseModel):
    """Role catalog entry as embedded in assignment responses"""
    id: int
    title: str
    level: Optional[str] = None
    description: Optional[str] = None
    active: bool

    model_config = ConfigDict(from_attributes=True)
