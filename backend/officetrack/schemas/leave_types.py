from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LeaveTypeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    annual_quota: int = Field(default=0, ge=0)  # minutes
    carry_forward: bool = False
    requires_approval: bool = True
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    annual_quota: Optional[int] = Field(None, ge=0)
    carry_forward: Optional[bool] = None
    requires_approval: Optional[bool] = None
    is_active: Optional[bool] = None


class LeaveTypeResponse(BaseModel):
    id: UUID
    code: str
    name: str
    annual_quota: int
    carry_forward: bool
    requires_approval: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
