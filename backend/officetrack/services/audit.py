"""Best-effort audit trail.

Entries are written in their own session after the primary transition has
committed. A failure here is logged and swallowed; it never undoes or blocks
the operation being audited.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from officetrack.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from, copied onto audit entries."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        action: str,
        actor_id: UUID,
        entity: str,
        entity_id: UUID,
        affected_user_id: Optional[UUID] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> None:
        client = client or ClientInfo()
        try:
            async with self._session_factory() as db:
                db.add(
                    AuditLog(
                        action=action,
                        actor_id=actor_id,
                        affected_user_id=affected_user_id,
                        entity=entity,
                        entity_id=entity_id,
                        old_values=old_values,
                        new_values=new_values,
                        reason=reason,
                        ip_address=client.ip_address,
                        user_agent=client.user_agent,
                    )
                )
                await db.commit()
        except Exception:
            logger.warning(
                "Failed to write audit log %s for %s %s",
                action,
                entity,
                entity_id,
                exc_info=True,
            )
