"""Leave request lifecycle and balance accounting.

Requests move ``pending -> approved | rejected | cancelled`` and an approved
request may later be cancelled. Every transition is a compare-and-swap on
the current status, so a request is decided at most once and its balance
is debited (or credited back) at most once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from officetrack.core.config import Settings
from officetrack.core.exceptions import (
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidState,
    NotFound,
)
from officetrack.core.permissions import Action, ensure_allowed, is_allowed
from officetrack.core.security import Identity
from officetrack.core.timeutil import as_utc, is_weekend, iter_days, parse_day, utcnow
from officetrack.models.leave_attachment import LeaveAttachment
from officetrack.models.leave_balance import LeaveBalance
from officetrack.models.leave_request import LeaveRequest
from officetrack.models.user import User
from officetrack.services.audit import AuditSink, ClientInfo
from officetrack.services.directory import (
    AttachmentStore,
    LocalAttachmentStore,
    LocalDirectory,
    OrganizationDirectory,
)
from officetrack.services.leave_types import resolve_leave_type

logger = logging.getLogger(__name__)

DURATIONS = ("full-day", "half-first", "half-second")
STATUSES = ("pending", "approved", "rejected", "cancelled")
ACTIVE_STATUSES = ("pending", "approved")

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def overlapping(start_date: Optional[str] = None, end_date: Optional[str] = None) -> list:
    """Criteria for requests whose inclusive range touches ``[start_date, end_date]``.

    Either bound may be omitted to leave that side open.
    """
    criteria = []
    if end_date is not None:
        criteria.append(LeaveRequest.start_date <= end_date)
    if start_date is not None:
        criteria.append(LeaveRequest.end_date >= start_date)
    return criteria


@dataclass
class LeaveRequestDetail:
    """A request plus the attachments stored for it."""

    request: LeaveRequest
    attachments: list[LeaveAttachment] = field(default_factory=list)


class LeaveLedger:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        audit: Optional[AuditSink] = None,
        client: Optional[ClientInfo] = None,
        directory: Optional[OrganizationDirectory] = None,
        attachments: Optional[AttachmentStore] = None,
    ):
        self.db = db
        self.settings = settings
        self.audit = audit
        self.client = client
        self.directory = directory or LocalDirectory(db)
        self.attachments = attachments or LocalAttachmentStore(db)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def requested_minutes(self, request: LeaveRequest) -> int:
        """Minutes a request takes from its balance when approved."""
        day_minutes = self.settings.LEAVE_DAY_MINUTES
        if request.duration != "full-day":
            return day_minutes // 2
        start, end = parse_day(request.start_date), parse_day(request.end_date)
        days = (end - start).days + 1
        return days * day_minutes

    async def get_request(self, request_id: UUID) -> LeaveRequest:
        result = await self.db.execute(
            select(LeaveRequest)
            .options(
                selectinload(LeaveRequest.user),
                selectinload(LeaveRequest.leave_type),
                selectinload(LeaveRequest.cc_users),
            )
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFound("Leave request not found")
        return request

    async def _swap_status(
        self, request_id: UUID, expected: str, **values
    ) -> bool:
        result = await self.db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == request_id, LeaveRequest.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _ensure_balance_row(
        self, user_id: UUID, year: int, leave_type_id: UUID
    ) -> None:
        """Create a zero balance row for (user, year, type) unless one exists."""
        insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if insert is not None:
            await self.db.execute(
                insert(LeaveBalance)
                .values(
                    user_id=user_id,
                    year=year,
                    leave_type_id=leave_type_id,
                    total_allocated=0,
                    used=0,
                )
                .on_conflict_do_nothing(
                    index_elements=["user_id", "year", "leave_type_id"]
                )
            )
            return

        existing = await self.db.execute(
            select(LeaveBalance.id).where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == year,
                LeaveBalance.leave_type_id == leave_type_id,
            )
        )
        if existing.first() is None:
            self.db.add(
                LeaveBalance(
                    user_id=user_id,
                    year=year,
                    leave_type_id=leave_type_id,
                    total_allocated=0,
                    used=0,
                )
            )
            await self.db.flush()

    def _balance_filter(self, request: LeaveRequest):
        return (
            LeaveBalance.user_id == request.user_id,
            LeaveBalance.year == int(request.start_date[:4]),
            LeaveBalance.leave_type_id == request.leave_type_id,
        )

    # ── Transitions ──────────────────────────────────────────────────────────

    async def apply(
        self,
        user_id: UUID,
        leave_type: str | UUID,
        start_date: str,
        end_date: str,
        duration: str,
        reason: str,
        cc_users: Optional[Iterable[UUID]] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequest:
        now = as_utc(now or utcnow())
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInput("A reason is required")
        if duration not in DURATIONS:
            raise InvalidInput(f"duration must be one of {', '.join(DURATIONS)}")

        start, end = parse_day(start_date), parse_day(end_date)
        if start is None or end is None:
            raise InvalidInput("Dates must use the YYYY-MM-DD format")
        if start_date > end_date:
            raise InvalidInput("Start date must be on or before end date")
        if duration != "full-day" and start != end:
            raise InvalidInput("Half-day leave is allowed only for a single date")
        if self.settings.LEAVE_BLOCK_WEEKENDS and any(
            is_weekend(day) for day in iter_days(start, end)
        ):
            raise InvalidInput("Cannot apply leave on weekends")

        lt = await resolve_leave_type(self.db, leave_type)
        if lt is None:
            raise NotFound("Leave type not found")
        if not lt.is_active:
            raise InvalidInput(f"Leave type '{lt.code}' is not active")

        cc_ids = list(dict.fromkeys(cc_users or []))
        cc_members: list[User] = []
        if cc_ids:
            result = await self.db.execute(select(User).where(User.id.in_(cc_ids)))
            cc_members = list(result.scalars().all())
            if len(cc_members) != len(cc_ids):
                raise InvalidInput("One or more CC users do not exist")

        clash_result = await self.db.execute(
            select(LeaveRequest.id, LeaveRequest.start_date, LeaveRequest.end_date)
            .where(
                LeaveRequest.user_id == user_id,
                LeaveRequest.status.in_(ACTIVE_STATUSES),
                *overlapping(start_date, end_date),
            )
            .limit(1)
        )
        clash = clash_result.first()
        if clash is not None:
            raise Conflict(
                f"Overlapping leave exists ({clash.start_date} to {clash.end_date})"
            )

        request = LeaveRequest(
            user_id=user_id,
            leave_type_id=lt.id,
            start_date=start_date,
            end_date=end_date,
            duration=duration,
            reason=reason,
            status="pending",
            applied_at=now,
            cc_users=cc_members,
        )
        self.db.add(request)
        await self.db.flush()
        await self.db.commit()

        logger.info(
            "Leave %s applied by %s (%s %s..%s)",
            request.id,
            user_id,
            lt.code,
            start_date,
            end_date,
        )
        await self._audit(
            "leave_apply",
            user_id,
            request,
            new_values={"status": "pending", "startDate": start_date, "endDate": end_date},
        )
        return await self.get_request(request.id)

    async def approve(
        self,
        request_id: UUID,
        actor: Identity,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequest:
        ensure_allowed(actor.role, Action.LEAVE_DECIDE)
        now = as_utc(now or utcnow())
        request = await self.get_request(request_id)
        if request.status != "pending":
            raise InvalidState(f"Cannot approve a leave request that is {request.status}")

        minutes = self.requested_minutes(request)
        swapped = await self._swap_status(
            request.id,
            "pending",
            status="approved",
            manager_id=actor.user_id,
            manager_comment=comment or "",
            decided_at=now,
            debited_minutes=minutes,
        )
        if not swapped:
            await self.db.rollback()
            raise InvalidState("Leave request was already decided")

        year = int(request.start_date[:4])
        await self._ensure_balance_row(request.user_id, year, request.leave_type_id)
        await self.db.execute(
            update(LeaveBalance)
            .where(*self._balance_filter(request))
            .values(used=LeaveBalance.used + minutes)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        logger.info(
            "Leave %s approved by %s, debited %d min", request.id, actor.user_id, minutes
        )
        await self._audit(
            "leave_approve",
            actor.user_id,
            request,
            old_values={"status": "pending"},
            new_values={"status": "approved", "debitedMinutes": minutes},
            reason=comment or "",
        )
        return await self.get_request(request.id)

    async def reject(
        self,
        request_id: UUID,
        actor: Identity,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequest:
        ensure_allowed(actor.role, Action.LEAVE_DECIDE)
        now = as_utc(now or utcnow())
        request = await self.get_request(request_id)
        if request.status != "pending":
            raise InvalidState(f"Cannot reject a leave request that is {request.status}")

        swapped = await self._swap_status(
            request.id,
            "pending",
            status="rejected",
            manager_id=actor.user_id,
            manager_comment=comment or "",
            decided_at=now,
        )
        if not swapped:
            await self.db.rollback()
            raise InvalidState("Leave request was already decided")
        await self.db.commit()

        logger.info("Leave %s rejected by %s", request.id, actor.user_id)
        await self._audit(
            "leave_reject",
            actor.user_id,
            request,
            old_values={"status": "pending"},
            new_values={"status": "rejected"},
            reason=comment or "",
        )
        return await self.get_request(request.id)

    async def cancel(self, request_id: UUID, actor: Identity) -> LeaveRequest:
        """Cancel a pending request (owner or admin) or an approved one (admin).

        Cancelling an approved request credits back what its approval debited.
        """
        request = await self.get_request(request_id)
        is_owner = request.user_id == actor.user_id
        can_cancel_any = is_allowed(actor.role, Action.LEAVE_CANCEL_ANY)
        if not is_owner and not can_cancel_any:
            raise Forbidden("You can only cancel your own leave requests")

        previous = request.status
        if previous == "pending":
            if not await self._swap_status(request.id, "pending", status="cancelled"):
                await self.db.rollback()
                raise InvalidState("Leave request was already decided")
            credited = 0
        elif previous == "approved":
            if not can_cancel_any:
                raise Forbidden("Cancelling an approved leave requires an administrator")
            if not await self._swap_status(request.id, "approved", status="cancelled"):
                await self.db.rollback()
                raise InvalidState("Leave request was already cancelled")
            credited = request.debited_minutes or 0
            await self.db.execute(
                update(LeaveBalance)
                .where(*self._balance_filter(request))
                .values(
                    used=case(
                        (LeaveBalance.used > credited, LeaveBalance.used - credited),
                        else_=0,
                    )
                )
                .execution_options(synchronize_session=False)
            )
        else:
            raise InvalidState(f"Cannot cancel a leave request that is {previous}")
        await self.db.commit()

        logger.info(
            "Leave %s cancelled by %s (was %s, credited %d min)",
            request.id,
            actor.user_id,
            previous,
            credited,
        )
        await self._audit(
            "leave_cancel",
            actor.user_id,
            request,
            old_values={"status": previous},
            new_values={"status": "cancelled", "creditedMinutes": credited},
        )
        return await self.get_request(request.id)

    # ── Balances ─────────────────────────────────────────────────────────────

    async def get_balances(
        self, user_id: UUID, year: Optional[int] = None
    ) -> list[LeaveBalance]:
        query = (
            select(LeaveBalance)
            .options(selectinload(LeaveBalance.leave_type))
            .where(LeaveBalance.user_id == user_id)
            .order_by(LeaveBalance.year.desc())
            .execution_options(populate_existing=True)
        )
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def allocate(
        self,
        user_id: UUID,
        year: int,
        leave_type: str | UUID,
        total_allocated: int,
        actor: Identity,
    ) -> LeaveBalance:
        """Set the yearly allocation (minutes) of one leave type for a user."""
        ensure_allowed(actor.role, Action.LEAVE_ALLOCATE)
        if total_allocated < 0:
            raise InvalidInput("Allocation cannot be negative")
        if await self.db.get(User, user_id) is None:
            raise NotFound("User not found")
        lt = await resolve_leave_type(self.db, leave_type)
        if lt is None:
            raise NotFound("Leave type not found")

        await self._ensure_balance_row(user_id, year, lt.id)
        await self.db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == year,
                LeaveBalance.leave_type_id == lt.id,
            )
            .values(total_allocated=total_allocated)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        balances = await self.get_balances(user_id, year)
        balance = next(b for b in balances if b.leave_type_id == lt.id)
        logger.info(
            "Allocated %d min of %s for %s in %d", total_allocated, lt.code, user_id, year
        )
        if self.audit is not None:
            await self.audit.record(
                action="balance_allocate",
                actor_id=actor.user_id,
                affected_user_id=user_id,
                entity="LeaveBalance",
                entity_id=balance.id,
                new_values={"year": year, "leaveType": lt.code, "totalAllocated": total_allocated},
                client=self.client,
            )
        return balance

    # ── Projections ──────────────────────────────────────────────────────────

    async def _details(self, *criteria) -> list[LeaveRequestDetail]:
        result = await self.db.execute(
            select(LeaveRequest)
            .options(
                selectinload(LeaveRequest.user),
                selectinload(LeaveRequest.leave_type),
                selectinload(LeaveRequest.cc_users),
            )
            .where(*criteria)
            .order_by(LeaveRequest.applied_at.desc())
            .execution_options(populate_existing=True)
        )
        requests = list(result.scalars().all())
        by_request = await self.attachments.attachments_for(r.id for r in requests)
        return [
            LeaveRequestDetail(request=r, attachments=list(by_request.get(r.id, [])))
            for r in requests
        ]

    async def list_for_user(self, user_id: UUID) -> list[LeaveRequestDetail]:
        return await self._details(LeaveRequest.user_id == user_id)

    async def list_all(self, actor: Identity) -> list[LeaveRequestDetail]:
        ensure_allowed(actor.role, Action.LEAVE_VIEW_ALL)
        return await self._details()

    async def list_pending_for_manager(self, manager_id: UUID) -> list[LeaveRequestDetail]:
        """Pending requests of the users who report directly to ``manager_id``."""
        member_ids = await self.directory.reports_of(manager_id)
        if not member_ids:
            return []
        return await self._details(
            LeaveRequest.user_id.in_(member_ids),
            LeaveRequest.status == "pending",
        )

    async def list_team(
        self,
        actor: Identity,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> list[LeaveRequestDetail]:
        """Requests visible to a team lead, optionally filtered.

        Admin and HR see everyone and may narrow to ``user_id``. A manager
        sees their direct reports and themselves. The date filter keeps
        requests whose range intersects ``[start_date, end_date]``,
        inclusive at both ends.
        """
        ensure_allowed(actor.role, Action.LEAVE_VIEW_TEAM)
        if status is not None and status not in STATUSES:
            raise InvalidInput(f"status must be one of {', '.join(STATUSES)}")
        for value in (start_date, end_date):
            if value is not None and parse_day(value) is None:
                raise InvalidInput("Dates must use the YYYY-MM-DD format")
        if start_date and end_date and start_date > end_date:
            raise InvalidInput("Start date must be on or before end date")

        criteria = overlapping(start_date, end_date)
        if status is not None:
            criteria.append(LeaveRequest.status == status)

        if is_allowed(actor.role, Action.LEAVE_VIEW_ALL):
            if user_id is not None:
                criteria.append(LeaveRequest.user_id == user_id)
        else:
            members = [*await self.directory.reports_of(actor.user_id), actor.user_id]
            if user_id is not None:
                if user_id not in members:
                    raise Forbidden("User is not a member of your team")
                criteria.append(LeaveRequest.user_id == user_id)
            else:
                criteria.append(LeaveRequest.user_id.in_(members))
        return await self._details(*criteria)

    async def _audit(
        self, action: str, actor_id: UUID, request: LeaveRequest, **kwargs
    ) -> None:
        if self.audit is None:
            return
        await self.audit.record(
            action=action,
            actor_id=actor_id,
            affected_user_id=request.user_id,
            entity="LeaveRequest",
            entity_id=request.id,
            client=self.client,
            **kwargs,
        )
