from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from officetrack.schemas.auth import UserSummary


class LeaveApplyRequest(BaseModel):
    leave_type: str  # id or code
    start_date: str  # YYYY-MM-DD
    end_date: str  # YYYY-MM-DD
    duration: str = Field(default="full-day", pattern="^(full-day|half-first|half-second)$")
    reason: str
    cc_users: list[UUID] = []


class LeaveDecisionRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class LeaveTypeSummary(BaseModel):
    id: UUID
    code: str
    name: str

    model_config = {"from_attributes": True}


class AttachmentResponse(BaseModel):
    id: UUID
    url: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None

    model_config = {"from_attributes": True}


class LeaveRequestResponse(BaseModel):
    id: UUID
    user_id: UUID
    user: Optional[UserSummary] = None
    leave_type: LeaveTypeSummary
    start_date: str
    end_date: str
    duration: str
    reason: str
    status: str
    manager_id: Optional[UUID] = None
    manager_comment: Optional[str] = None
    debited_minutes: int
    applied_at: datetime
    decided_at: Optional[datetime] = None
    cc_users: list[UserSummary] = []
    attachments: list[AttachmentResponse] = []

    model_config = {"from_attributes": True}

    @classmethod
    def from_detail(cls, detail) -> "LeaveRequestResponse":
        response = cls.model_validate(detail.request)
        response.attachments = [
            AttachmentResponse.model_validate(a) for a in detail.attachments
        ]
        return response


class LeaveRequestListResponse(BaseModel):
    items: list[LeaveRequestResponse]
    total: int


class LeaveBalanceResponse(BaseModel):
    id: UUID
    user_id: UUID
    year: int
    leave_type: LeaveTypeSummary
    total_allocated: int  # minutes
    used: int  # minutes
    remaining: int  # minutes

    model_config = {"from_attributes": True}


class AllocateRequest(BaseModel):
    user_id: UUID
    year: int = Field(..., ge=1970, le=9999)
    leave_type: str  # id or code
    total_allocated: int = Field(..., ge=0)  # minutes
