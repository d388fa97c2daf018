from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClockInRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)
    device_type: str = Field(default="web", pattern="^(web|mobile|kiosk)$")


class BreakStartRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class ClockOutRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


class ManualEntryRequest(BaseModel):
    user_id: UUID
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    clock_in: datetime
    clock_out: datetime
    reason: str = Field(..., min_length=1, max_length=1000)


class TimeSessionResponse(BaseModel):
    id: UUID
    user_id: UUID
    date: str
    clock_in: datetime
    clock_out: Optional[datetime] = None
    status: str
    total_work_minutes: int
    total_break_minutes: int
    device_type: str
    notes: Optional[str] = None
    late_clock_in: bool
    early_clock_out: bool
    is_overtime: bool

    model_config = {"from_attributes": True}


class BreakResponse(BaseModel):
    id: UUID
    break_start: datetime
    break_end: Optional[datetime] = None
    duration_minutes: int
    reason: str

    model_config = {"from_attributes": True}


class ActiveSessionResponse(BaseModel):
    id: UUID
    date: str
    clock_in: datetime
    elapsed_minutes: int
    work_minutes: int
    break_minutes: int
    breaks: list[BreakResponse] = []

    model_config = {"from_attributes": True}


class ClockOutResponse(BaseModel):
    id: UUID
    date: str
    clock_in: datetime
    clock_out: datetime
    total_minutes: int
    work_minutes: int
    break_minutes: int
    late_clock_in: bool
    early_clock_out: bool
    is_overtime: bool
    overtime_minutes: int

    model_config = {"from_attributes": True}


class WorkingNowResponse(BaseModel):
    session_id: UUID
    user_id: UUID
    full_name: str
    email: str
    role: str
    clock_in: datetime
    elapsed_minutes: int
    work_minutes: int
    break_minutes: int

    model_config = {"from_attributes": True}


class DayStatsResponse(BaseModel):
    date: str
    worked_minutes: int
    break_minutes: int
    overtime_minutes: int

    model_config = {"from_attributes": True}


class DailyStatsResponse(BaseModel):
    days: list[DayStatsResponse]
    total_worked_minutes: int
    total_break_minutes: int
    total_overtime_minutes: int

    model_config = {"from_attributes": True}


class TodayResponse(BaseModel):
    date: str
    status: str
    session_id: Optional[UUID] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    work_minutes: int
    break_minutes: int
    on_break: bool

    model_config = {"from_attributes": True}
