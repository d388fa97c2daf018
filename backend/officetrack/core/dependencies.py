from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from officetrack.core.config import Settings
from officetrack.core.exceptions import Unauthenticated
from officetrack.core.security import Identity, TokenGate
from officetrack.models.user import User
from officetrack.services.audit import AuditSink, ClientInfo
from officetrack.services.clock_engine import ClockEngine
from officetrack.services.directory import LocalAttachmentStore, get_directory
from officetrack.services.leave_ledger import LeaveLedger
from officetrack.services.leave_types import LeaveTypeCatalog


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_gate(request: Request) -> TokenGate:
    return request.app.state.token_gate


def get_audit_sink(request: Request) -> AuditSink:
    return request.app.state.audit


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip_address = forwarded.split(",")[0].strip() or (
        request.client.host if request.client else None
    )
    return ClientInfo(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


def get_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthenticated("Authentication required")
    return identity


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    result = await db.execute(select(User).where(User.id == identity.user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise Unauthenticated("User not found or inactive")
    return user


def get_clock_engine(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    audit: AuditSink = Depends(get_audit_sink),
    client: ClientInfo = Depends(get_client_info),
) -> ClockEngine:
    return ClockEngine(db, settings, audit=audit, client=client)


def get_leave_ledger(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    audit: AuditSink = Depends(get_audit_sink),
    client: ClientInfo = Depends(get_client_info),
) -> LeaveLedger:
    return LeaveLedger(
        db,
        settings,
        audit=audit,
        client=client,
        directory=get_directory(db, settings),
        attachments=LocalAttachmentStore(db),
    )


def get_leave_type_catalog(
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    client: ClientInfo = Depends(get_client_info),
) -> LeaveTypeCatalog:
    return LeaveTypeCatalog(db, audit=audit, client=client)
