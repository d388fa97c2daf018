"""Time-session lifecycle: clock-in, breaks, clock-out and derived durations.

A user has at most one ``active`` session at any time and at most one
session per calendar day; once completed, the day is closed. Both rules are
checked up front for a readable error and enforced by unique indexes on
``time_sessions``; clock-out and break-end are compare-and-swap updates so
two concurrent requests cannot both apply.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from officetrack.core.config import Settings
from officetrack.core.exceptions import Conflict, InvalidInput, InvalidState, NotFound
from officetrack.core.permissions import Action, ensure_allowed
from officetrack.core.security import Identity
from officetrack.core.timeutil import (
    as_utc,
    day_string,
    iter_days,
    minute_of_day,
    minutes_between,
    parse_day,
    utcnow,
)
from officetrack.models.time_session import SessionBreak, TimeSession
from officetrack.models.user import User
from officetrack.services.audit import AuditSink, ClientInfo

logger = logging.getLogger(__name__)

DEVICE_TYPES = ("web", "mobile", "kiosk")
MAX_STATS_DAYS = 366


@dataclass
class BreakView:
    id: UUID
    break_start: datetime
    break_end: Optional[datetime]
    duration_minutes: int
    reason: str


@dataclass
class ActiveSessionView:
    id: UUID
    date: str
    clock_in: datetime
    elapsed_minutes: int
    work_minutes: int
    break_minutes: int
    breaks: list[BreakView] = field(default_factory=list)


@dataclass
class ClockOutSummary:
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


@dataclass
class TodaySummary:
    date: str
    status: str  # no-session, active, completed
    session_id: Optional[UUID] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    work_minutes: int = 0
    break_minutes: int = 0
    on_break: bool = False


@dataclass
class WorkingNow:
    session_id: UUID
    user_id: UUID
    full_name: str
    email: str
    role: str
    clock_in: datetime
    elapsed_minutes: int
    work_minutes: int
    break_minutes: int


@dataclass
class DayStats:
    date: str
    worked_minutes: int = 0
    break_minutes: int = 0
    overtime_minutes: int = 0


@dataclass
class DailyStats:
    days: list[DayStats]
    total_worked_minutes: int
    total_break_minutes: int
    total_overtime_minutes: int


class ClockEngine:
    """Owns TimeSession and SessionBreak state transitions.

    Every mutating method is one transaction: it commits its own write and
    then hands an entry to the audit sink.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        audit: Optional[AuditSink] = None,
        client: Optional[ClientInfo] = None,
    ):
        self.db = db
        self.settings = settings
        self.audit = audit
        self.client = client

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def current_session(self, user_id: UUID) -> Optional[TimeSession]:
        result = await self.db.execute(
            select(TimeSession)
            .where(TimeSession.user_id == user_id, TimeSession.status == "active")
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def open_break(self, user_id: UUID) -> Optional[SessionBreak]:
        result = await self.db.execute(
            select(SessionBreak)
            .join(TimeSession, SessionBreak.session_id == TimeSession.id)
            .where(
                TimeSession.user_id == user_id,
                TimeSession.status == "active",
                SessionBreak.break_end.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def session_on(self, user_id: UUID, day: str) -> Optional[TimeSession]:
        """The user's session for calendar day ``day``, whatever its status."""
        result = await self.db.execute(
            select(TimeSession)
            .where(TimeSession.user_id == user_id, TimeSession.date == day)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_session(
        self, session_id: UUID, user_id: Optional[UUID] = None
    ) -> TimeSession:
        result = await self.db.execute(
            select(TimeSession)
            .where(TimeSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if session is None or (user_id is not None and session.user_id != user_id):
            raise NotFound("Time session not found")
        return session

    async def _has_open_break(self, session_id: UUID) -> bool:
        result = await self.db.execute(
            select(SessionBreak.id).where(
                SessionBreak.session_id == session_id,
                SessionBreak.break_end.is_(None),
            )
        )
        return result.first() is not None

    # ── Transitions ──────────────────────────────────────────────────────────

    async def clock_in(
        self,
        user_id: UUID,
        now: Optional[datetime] = None,
        note: Optional[str] = None,
        device_type: str = "web",
    ) -> TimeSession:
        now = as_utc(now or utcnow())
        if device_type not in DEVICE_TYPES:
            raise InvalidInput(f"device_type must be one of {', '.join(DEVICE_TYPES)}")

        existing = await self.current_session(user_id)
        if existing is not None:
            raise Conflict(
                f"An active session already exists (clocked in on {existing.date})"
            )
        today = day_string(now)
        if await self.session_on(user_id, today) is not None:
            raise Conflict(f"Already clocked out for {today}")

        session = TimeSession(
            user_id=user_id,
            date=today,
            clock_in=now,
            status="active",
            total_work_minutes=0,
            total_break_minutes=0,
            device_type=device_type,
            notes=note,
            late_clock_in=minute_of_day(now) > self.settings.WORKDAY_START_MINUTES,
        )
        self.db.add(session)
        try:
            await self.db.flush()
        except IntegrityError:
            # another request clocked this user in between the check and the insert
            await self.db.rollback()
            raise Conflict("An active session already exists for this user or day")
        await self.db.commit()

        logger.info("User %s clocked in (session %s)", user_id, session.id)
        await self._audit(
            "clock_in",
            user_id,
            "TimeSession",
            session.id,
            new_values={
                "date": session.date,
                "clockIn": now.isoformat(),
                "clockInType": device_type,
                "note": note,
            },
        )
        return session

    async def start_break(
        self,
        session_id: UUID,
        now: Optional[datetime] = None,
        reason: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> SessionBreak:
        now = as_utc(now or utcnow())
        session = await self._get_session(session_id, user_id)
        if session.status != "active":
            raise InvalidState("Session is not active. Clock in first.")
        if await self._has_open_break(session.id):
            raise InvalidState("A break is already in progress")

        brk = SessionBreak(
            session_id=session.id,
            break_start=now,
            reason=reason or "Unspecified",
        )
        self.db.add(brk)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise InvalidState("A break is already in progress")
        await self.db.commit()

        logger.info("Break %s started on session %s", brk.id, session.id)
        await self._audit(
            "break_start",
            session.user_id,
            "TimeSessionBreak",
            brk.id,
            new_values={"breakStart": now.isoformat(), "reason": brk.reason},
        )
        return brk

    async def end_break(
        self,
        break_id: UUID,
        now: Optional[datetime] = None,
        user_id: Optional[UUID] = None,
    ) -> SessionBreak:
        now = as_utc(now or utcnow())
        result = await self.db.execute(
            select(SessionBreak)
            .options(selectinload(SessionBreak.session))
            .where(SessionBreak.id == break_id)
            .execution_options(populate_existing=True)
        )
        brk = result.scalar_one_or_none()
        if brk is None or (user_id is not None and brk.session.user_id != user_id):
            raise NotFound("Break not found")
        if brk.break_end is not None:
            raise InvalidState("Break already ended")

        duration = max(0, minutes_between(brk.break_start, now))
        closed = await self.db.execute(
            update(SessionBreak)
            .where(SessionBreak.id == break_id, SessionBreak.break_end.is_(None))
            .values(break_end=now, duration_minutes=duration)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            await self.db.rollback()
            raise InvalidState("Break already ended")

        await self.db.execute(
            update(TimeSession)
            .where(TimeSession.id == brk.session_id)
            .values(total_break_minutes=TimeSession.total_break_minutes + duration)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        session = brk.session
        await self.db.refresh(brk, attribute_names=["break_end", "duration_minutes"])
        await self.db.refresh(session, attribute_names=["total_break_minutes"])

        logger.info(
            "Break %s ended after %d min (session total %d min)",
            brk.id,
            duration,
            session.total_break_minutes,
        )
        await self._audit(
            "break_end",
            session.user_id,
            "TimeSessionBreak",
            brk.id,
            old_values={"breakEnd": None, "durationMinutes": 0},
            new_values={"breakEnd": now.isoformat(), "durationMinutes": duration},
        )
        return brk

    async def clock_out(
        self,
        session_id: UUID,
        now: Optional[datetime] = None,
        note: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> ClockOutSummary:
        now = as_utc(now or utcnow())
        session = await self._get_session(session_id, user_id)
        if session.status != "active":
            raise InvalidState("No active session to clock out")
        if await self._has_open_break(session.id):
            raise InvalidState("End the current break before clocking out")

        break_minutes = session.total_break_minutes or 0
        total_minutes = minutes_between(session.clock_in, now)
        work_minutes = max(0, total_minutes - break_minutes)
        threshold = self.settings.OVERTIME_THRESHOLD_MINUTES
        is_overtime = work_minutes > threshold
        early_clock_out = work_minutes < self.settings.WORKDAY_MINUTES

        values = {
            "status": "completed",
            "clock_out": now,
            "total_work_minutes": work_minutes,
            "is_overtime": is_overtime,
            "early_clock_out": early_clock_out,
        }
        if note:
            values["notes"] = note
        no_open_break = ~(
            select(SessionBreak.id)
            .where(
                SessionBreak.session_id == TimeSession.id,
                SessionBreak.break_end.is_(None),
            )
            .correlate(TimeSession)
            .exists()
        )
        closed = await self.db.execute(
            update(TimeSession)
            .where(
                TimeSession.id == session.id,
                TimeSession.status == "active",
                TimeSession.total_break_minutes == break_minutes,
                no_open_break,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            await self.db.rollback()
            raise InvalidState(
                "Session changed while clocking out (already closed or a break is open)"
            )
        await self.db.commit()
        await self.db.refresh(session)

        logger.info(
            "User %s clocked out (session %s, work %d min)",
            session.user_id,
            session.id,
            work_minutes,
        )
        await self._audit(
            "clock_out",
            session.user_id,
            "TimeSession",
            session.id,
            old_values={"status": "active", "clockOut": None, "totalWorkMinutes": 0},
            new_values={
                "status": "completed",
                "clockOut": now.isoformat(),
                "totalWorkMinutes": work_minutes,
                "note": note,
            },
        )
        return ClockOutSummary(
            id=session.id,
            date=session.date,
            clock_in=as_utc(session.clock_in),
            clock_out=now,
            total_minutes=total_minutes,
            work_minutes=work_minutes,
            break_minutes=break_minutes,
            late_clock_in=session.late_clock_in,
            early_clock_out=early_clock_out,
            is_overtime=is_overtime,
            overtime_minutes=max(0, work_minutes - threshold),
        )

    async def manual_entry(
        self,
        actor: Identity,
        user_id: UUID,
        day: str,
        clock_in: datetime,
        clock_out: datetime,
        reason: str,
    ) -> TimeSession:
        """Record a completed session on behalf of ``user_id``.

        Used to correct missed punches. The day must not already hold a
        session for that user, and the entry carries no breaks.
        """
        ensure_allowed(actor.role, Action.TIME_MANUAL_ENTRY)
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("A reason is required")
        if parse_day(day) is None:
            raise InvalidInput("Dates must use the YYYY-MM-DD format")
        clock_in, clock_out = as_utc(clock_in), as_utc(clock_out)
        if clock_out <= clock_in:
            raise InvalidInput("Clock out time must be after clock in time")
        if day_string(clock_in) != day:
            raise InvalidInput(f"Clock in must fall on {day} (UTC)")
        if await self.db.get(User, user_id) is None:
            raise NotFound("User not found")
        if await self.session_on(user_id, day) is not None:
            raise Conflict("A time entry already exists for this user on this date")

        work_minutes = minutes_between(clock_in, clock_out)
        session = TimeSession(
            user_id=user_id,
            date=day,
            clock_in=clock_in,
            clock_out=clock_out,
            status="completed",
            total_work_minutes=work_minutes,
            total_break_minutes=0,
            device_type="manual",
            notes=reason,
            late_clock_in=minute_of_day(clock_in) > self.settings.WORKDAY_START_MINUTES,
            early_clock_out=work_minutes < self.settings.WORKDAY_MINUTES,
            is_overtime=work_minutes > self.settings.OVERTIME_THRESHOLD_MINUTES,
        )
        self.db.add(session)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("A time entry already exists for this user on this date")
        await self.db.commit()

        logger.info(
            "Manual entry %s for %s on %s by %s (%d min)",
            session.id,
            user_id,
            day,
            actor.user_id,
            work_minutes,
        )
        await self._audit(
            "manual_entry_create",
            user_id,
            "TimeSession",
            session.id,
            actor_id=actor.user_id,
            reason=reason,
            new_values={
                "date": day,
                "clockIn": clock_in.isoformat(),
                "clockOut": clock_out.isoformat(),
                "workMinutes": work_minutes,
            },
        )
        return session

    # ── Projections ──────────────────────────────────────────────────────────

    async def get_active(
        self, user_id: UUID, now: Optional[datetime] = None
    ) -> Optional[ActiveSessionView]:
        """Live view of the user's active session, or None when clocked out."""
        now = as_utc(now or utcnow())
        result = await self.db.execute(
            select(TimeSession)
            .options(selectinload(TimeSession.breaks))
            .where(TimeSession.user_id == user_id, TimeSession.status == "active")
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return None

        elapsed = minutes_between(session.clock_in, now)
        break_minutes = session.total_break_minutes or 0
        breaks = [
            BreakView(
                id=b.id,
                break_start=as_utc(b.break_start),
                break_end=as_utc(b.break_end) if b.break_end else None,
                duration_minutes=(
                    b.duration_minutes or 0
                    if b.break_end
                    else max(0, minutes_between(b.break_start, now))
                ),
                reason=b.reason,
            )
            for b in session.breaks
        ]
        return ActiveSessionView(
            id=session.id,
            date=session.date,
            clock_in=as_utc(session.clock_in),
            elapsed_minutes=elapsed,
            work_minutes=max(0, elapsed - break_minutes),
            break_minutes=break_minutes,
            breaks=breaks,
        )

    async def today(self, user_id: UUID, now: Optional[datetime] = None) -> TodaySummary:
        now = as_utc(now or utcnow())
        day = day_string(now)
        result = await self.db.execute(
            select(TimeSession)
            .options(selectinload(TimeSession.breaks))
            .where(TimeSession.user_id == user_id, TimeSession.date == day)
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return TodaySummary(date=day, status="no-session")

        break_minutes = session.total_break_minutes or 0
        if session.status == "active":
            work_minutes = max(0, minutes_between(session.clock_in, now) - break_minutes)
        else:
            work_minutes = session.total_work_minutes or 0
        return TodaySummary(
            date=day,
            status=session.status,
            session_id=session.id,
            clock_in=as_utc(session.clock_in),
            clock_out=as_utc(session.clock_out) if session.clock_out else None,
            work_minutes=work_minutes,
            break_minutes=break_minutes,
            on_break=any(b.break_end is None for b in session.breaks),
        )

    async def who_is_working(self, now: Optional[datetime] = None) -> list[WorkingNow]:
        now = as_utc(now or utcnow())
        result = await self.db.execute(
            select(TimeSession)
            .options(selectinload(TimeSession.user))
            .where(TimeSession.status == "active")
            .order_by(TimeSession.clock_in.desc())
        )
        working = []
        for session in result.scalars().all():
            elapsed = minutes_between(session.clock_in, now)
            break_minutes = session.total_break_minutes or 0
            working.append(
                WorkingNow(
                    session_id=session.id,
                    user_id=session.user_id,
                    full_name=session.user.full_name,
                    email=session.user.email,
                    role=session.user.role,
                    clock_in=as_utc(session.clock_in),
                    elapsed_minutes=elapsed,
                    work_minutes=max(0, elapsed - break_minutes),
                    break_minutes=break_minutes,
                )
            )
        return working

    async def daily_stats(
        self, user_id: UUID, start_date: str, end_date: str
    ) -> DailyStats:
        """Worked, break and overtime minutes per day over an inclusive range.

        Only completed sessions count; an active session has no settled
        work total yet.
        """
        start, end = parse_day(start_date), parse_day(end_date)
        if start is None or end is None:
            raise InvalidInput("Dates must use the YYYY-MM-DD format")
        if start > end:
            raise InvalidInput("Start date must not be after end date")
        if (end - start).days >= MAX_STATS_DAYS:
            raise InvalidInput(f"Range is limited to {MAX_STATS_DAYS} days")

        buckets = {day.isoformat(): DayStats(date=day.isoformat()) for day in iter_days(start, end)}
        result = await self.db.execute(
            select(TimeSession).where(
                TimeSession.user_id == user_id,
                TimeSession.status == "completed",
                TimeSession.date >= start_date,
                TimeSession.date <= end_date,
            )
        )
        for session in result.scalars().all():
            bucket = buckets.get(session.date)
            if bucket is None:
                continue
            bucket.worked_minutes += session.total_work_minutes or 0
            bucket.break_minutes += session.total_break_minutes or 0

        days = list(buckets.values())
        for day in days:
            day.overtime_minutes = max(0, day.worked_minutes - self.settings.WORKDAY_MINUTES)
        return DailyStats(
            days=days,
            total_worked_minutes=sum(d.worked_minutes for d in days),
            total_break_minutes=sum(d.break_minutes for d in days),
            total_overtime_minutes=sum(d.overtime_minutes for d in days),
        )

    async def _audit(
        self,
        action: str,
        user_id: UUID,
        entity: str,
        entity_id: UUID,
        actor_id: Optional[UUID] = None,
        **kwargs,
    ) -> None:
        if self.audit is None:
            return
        await self.audit.record(
            action=action,
            actor_id=actor_id or user_id,
            affected_user_id=user_id,
            entity=entity,
            entity_id=entity_id,
            client=self.client,
            **kwargs,
        )
