import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from officetrack.core.exceptions import Conflict, InvalidInput, NotFound
from officetrack.core.permissions import Action, ensure_allowed
from officetrack.core.security import Identity
from officetrack.models.leave_type import LeaveType
from officetrack.services.audit import AuditSink, ClientInfo

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "annual_quota",
    "carry_forward",
    "requires_approval",
    "is_active",
)


async def resolve_leave_type(db: AsyncSession, value: str | UUID) -> Optional[LeaveType]:
    """Find a leave type by id or by (case-insensitive) code."""
    if isinstance(value, UUID):
        return await db.get(LeaveType, value)
    text = str(value).strip()
    if not text:
        return None
    clauses = [LeaveType.code == text.upper()]
    try:
        clauses.append(LeaveType.id == UUID(text))
    except ValueError:
        pass
    result = await db.execute(select(LeaveType).where(or_(*clauses)))
    return result.scalars().first()


class LeaveTypeCatalog:
    """CRUD over leave types. Types are deactivated, never deleted."""

    def __init__(
        self,
        db: AsyncSession,
        audit: Optional[AuditSink] = None,
        client: Optional[ClientInfo] = None,
    ):
        self.db = db
        self.audit = audit
        self.client = client

    async def list_types(self, include_inactive: bool = True) -> list[LeaveType]:
        query = select(LeaveType).order_by(LeaveType.name.asc())
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_type(self, type_id: UUID) -> LeaveType:
        leave_type = await self.db.get(LeaveType, type_id)
        if leave_type is None:
            raise NotFound("Leave type not found")
        return leave_type

    async def create_type(
        self,
        actor: Identity,
        code: str,
        name: str,
        annual_quota: int = 0,
        carry_forward: bool = False,
        requires_approval: bool = True,
        is_active: bool = True,
    ) -> LeaveType:
        ensure_allowed(actor.role, Action.LEAVE_TYPE_MANAGE)
        code = (code or "").strip().upper()
        name = (name or "").strip()
        if not code or not name:
            raise InvalidInput("Leave type code and name are required")
        if annual_quota < 0:
            raise InvalidInput("Annual quota cannot be negative")

        leave_type = LeaveType(
            code=code,
            name=name,
            annual_quota=annual_quota,
            carry_forward=carry_forward,
            requires_approval=requires_approval,
            is_active=is_active,
        )
        self.db.add(leave_type)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(f"Leave type code '{code}' already exists")
        await self.db.commit()

        logger.info("Leave type %s (%s) created", code, leave_type.id)
        await self._audit(
            "leave_type_create",
            actor,
            leave_type.id,
            new_values={"code": code, "name": name, "annualQuota": annual_quota},
        )
        return leave_type

    async def update_type(
        self, actor: Identity, type_id: UUID, **changes: Any
    ) -> LeaveType:
        ensure_allowed(actor.role, Action.LEAVE_TYPE_MANAGE)
        leave_type = await self.get_type(type_id)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInput(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if changes.get("annual_quota") is not None and changes["annual_quota"] < 0:
            raise InvalidInput("Annual quota cannot be negative")

        old_values = {}
        new_values = {}
        for name, value in changes.items():
            if value is None:
                continue
            old_values[name] = getattr(leave_type, name)
            new_values[name] = value
            setattr(leave_type, name, value)
        await self.db.commit()

        await self._audit(
            "leave_type_update", actor, leave_type.id, old_values=old_values, new_values=new_values
        )
        return leave_type

    async def deactivate_type(self, actor: Identity, type_id: UUID) -> LeaveType:
        return await self.update_type(actor, type_id, is_active=False)

    async def _audit(self, action: str, actor: Identity, entity_id: UUID, **kwargs) -> None:
        if self.audit is None:
            return
        await self.audit.record(
            action=action,
            actor_id=actor.user_id,
            entity="LeaveType",
            entity_id=entity_id,
            client=self.client,
            **kwargs,
        )
