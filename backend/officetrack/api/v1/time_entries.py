"""Clock-in/out and break endpoints on the caller's own session.

Admins and managers can also record a completed session for someone else.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from officetrack.core.exceptions import InvalidState, NotFound
from officetrack.core.permissions import Action, ensure_allowed
from officetrack.core.security import Identity
from officetrack.core.dependencies import get_clock_engine, get_identity
from officetrack.core.timeutil import day_string, utcnow
from officetrack.schemas.time_entries import (
    ActiveSessionResponse,
    BreakResponse,
    BreakStartRequest,
    ClockInRequest,
    ClockOutRequest,
    ClockOutResponse,
    DailyStatsResponse,
    ManualEntryRequest,
    TimeSessionResponse,
    TodayResponse,
    WorkingNowResponse,
)
from officetrack.services.clock_engine import ClockEngine

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


@router.post("/clock-in", response_model=TimeSessionResponse, status_code=201)
async def clock_in(
    body: Optional[ClockInRequest] = None,
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    ensure_allowed(identity.role, Action.TIME_TRACK)
    body = body or ClockInRequest()
    return await engine.clock_in(
        identity.user_id, note=body.note, device_type=body.device_type
    )


@router.post("/break-start", response_model=BreakResponse, status_code=201)
async def break_start(
    body: Optional[BreakStartRequest] = None,
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    ensure_allowed(identity.role, Action.TIME_TRACK)
    session = await engine.current_session(identity.user_id)
    if session is None:
        raise InvalidState("No active session. Clock in first.")
    return await engine.start_break(
        session.id, reason=(body.reason if body else None), user_id=identity.user_id
    )


@router.post("/break-end", response_model=BreakResponse)
async def break_end(
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    ensure_allowed(identity.role, Action.TIME_TRACK)
    brk = await engine.open_break(identity.user_id)
    if brk is None:
        raise NotFound("No break in progress")
    return await engine.end_break(brk.id, user_id=identity.user_id)


@router.post("/clock-out", response_model=ClockOutResponse)
async def clock_out(
    body: Optional[ClockOutRequest] = None,
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    ensure_allowed(identity.role, Action.TIME_TRACK)
    session = await engine.current_session(identity.user_id)
    if session is None:
        raise InvalidState("No active session to clock out")
    return await engine.clock_out(
        session.id, note=(body.note if body else None), user_id=identity.user_id
    )


@router.get("/active", response_model=Optional[ActiveSessionResponse])
async def get_active(
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    """The caller's live session, or null when clocked out."""
    return await engine.get_active(identity.user_id)


@router.get("/stats", response_model=DailyStatsResponse)
async def get_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    """Per-day totals for the caller. Defaults to the last 7 days."""
    today = utcnow()
    end_date = end_date or day_string(today)
    start_date = start_date or day_string(today - timedelta(days=6))
    return await engine.daily_stats(identity.user_id, start_date, end_date)


@router.get("/who-is-working", response_model=list[WorkingNowResponse])
async def who_is_working(
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    ensure_allowed(identity.role, Action.TIME_VIEW_TEAM)
    return await engine.who_is_working()


@router.get("/today", response_model=TodayResponse)
async def get_today(
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    """The caller's session for the current UTC day."""
    return await engine.today(identity.user_id)


@router.post("/manual", response_model=TimeSessionResponse, status_code=201)
async def create_manual_entry(
    body: ManualEntryRequest,
    identity: Identity = Depends(get_identity),
    engine: ClockEngine = Depends(get_clock_engine),
):
    return await engine.manual_entry(
        identity,
        body.user_id,
        body.date,
        body.clock_in,
        body.clock_out,
        body.reason,
    )
