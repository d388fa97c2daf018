from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from officetrack.core.dependencies import get_identity, get_leave_type_catalog
from officetrack.core.security import Identity
from officetrack.schemas.leave_types import (
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from officetrack.services.leave_types import LeaveTypeCatalog

router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@router.get("", response_model=list[LeaveTypeResponse])
async def list_leave_types(
    include_inactive: bool = Query(False),
    identity: Identity = Depends(get_identity),
    catalog: LeaveTypeCatalog = Depends(get_leave_type_catalog),
):
    return await catalog.list_types(include_inactive=include_inactive)


@router.get("/{type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    type_id: UUID,
    identity: Identity = Depends(get_identity),
    catalog: LeaveTypeCatalog = Depends(get_leave_type_catalog),
):
    return await catalog.get_type(type_id)


@router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    data: LeaveTypeCreate,
    identity: Identity = Depends(get_identity),
    catalog: LeaveTypeCatalog = Depends(get_leave_type_catalog),
):
    return await catalog.create_type(identity, **data.model_dump())


@router.patch("/{type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    type_id: UUID,
    data: LeaveTypeUpdate,
    identity: Identity = Depends(get_identity),
    catalog: LeaveTypeCatalog = Depends(get_leave_type_catalog),
):
    return await catalog.update_type(identity, type_id, **data.model_dump(exclude_unset=True))


@router.delete("/{type_id}", response_model=LeaveTypeResponse)
async def deactivate_leave_type(
    type_id: UUID,
    identity: Identity = Depends(get_identity),
    catalog: LeaveTypeCatalog = Depends(get_leave_type_catalog),
):
    """Deactivate; leave types referenced by requests are never deleted."""
    return await catalog.deactivate_type(identity, type_id)
