"""Collaborators the leave ledger reads from but does not own.

OrganizationDirectory answers "who reports to whom" with two
implementations:
1. LocalDirectory - uses the ``users.manager_id`` column
2. ExternalDirectoryProxy - asks a configured HR directory over HTTP

AttachmentStore lists the files attached to leave requests.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Iterable
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from officetrack.core.config import Settings
from officetrack.models.leave_attachment import LeaveAttachment
from officetrack.models.user import User


class OrganizationDirectory(ABC):
    """Abstract base class for reporting-line lookups."""

    @abstractmethod
    async def reports_of(self, manager_id: UUID) -> list[UUID]:
        ...


class LocalDirectory(OrganizationDirectory):
    """Implementation that uses the local database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def reports_of(self, manager_id: UUID) -> list[UUID]:
        result = await self.db.execute(
            select(User.id).where(User.manager_id == manager_id)
        )
        return list(result.scalars().all())


class ExternalDirectoryProxy(OrganizationDirectory):
    """Proxy that asks an external HR directory for reporting lines."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.request(
                method, f"{self.base_url}{path}", headers=self.headers, **kwargs
            )
            response.raise_for_status()
            return response.json()

    async def reports_of(self, manager_id: UUID) -> list[UUID]:
        payload = await self._request("GET", f"/managers/{manager_id}/reports")
        items = payload.get("items", []) if isinstance(payload, dict) else payload
        return [UUID(str(item["id"] if isinstance(item, dict) else item)) for item in items]


def get_directory(db: AsyncSession, settings: Settings) -> OrganizationDirectory:
    """Use the external directory when one is configured, otherwise the local DB."""
    if settings.DIRECTORY_API_URL:
        return ExternalDirectoryProxy(settings.DIRECTORY_API_URL, settings.DIRECTORY_API_KEY)
    return LocalDirectory(db)


class AttachmentStore(ABC):
    """Abstract base class for leave request attachments."""

    @abstractmethod
    async def list_attachments(self, request_id: UUID) -> list[LeaveAttachment]:
        ...

    async def attachments_for(
        self, request_ids: Iterable[UUID]
    ) -> dict[UUID, list[LeaveAttachment]]:
        return {rid: await self.list_attachments(rid) for rid in request_ids}


class LocalAttachmentStore(AttachmentStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_attachments(self, request_id: UUID) -> list[LeaveAttachment]:
        result = await self.db.execute(
            select(LeaveAttachment)
            .where(LeaveAttachment.leave_request_id == request_id)
            .order_by(LeaveAttachment.created_at.asc())
        )
        return list(result.scalars().all())

    async def attachments_for(
        self, request_ids: Iterable[UUID]
    ) -> dict[UUID, list[LeaveAttachment]]:
        ids = list(request_ids)
        grouped: dict[UUID, list[LeaveAttachment]] = defaultdict(list)
        if not ids:
            return grouped
        result = await self.db.execute(
            select(LeaveAttachment)
            .where(LeaveAttachment.leave_request_id.in_(ids))
            .order_by(LeaveAttachment.created_at.asc())
        )
        for attachment in result.scalars().all():
            grouped[attachment.leave_request_id].append(attachment)
        return grouped
