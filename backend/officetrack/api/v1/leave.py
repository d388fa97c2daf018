from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from officetrack.core.dependencies import get_identity, get_leave_ledger
from officetrack.core.permissions import Action, ensure_allowed
from officetrack.core.security import Identity
from officetrack.schemas.leave import (
    AllocateRequest,
    LeaveApplyRequest,
    LeaveBalanceResponse,
    LeaveDecisionRequest,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from officetrack.services.leave_ledger import LeaveLedger, LeaveRequestDetail

router = APIRouter(prefix="/leaves", tags=["leaves"])


def _as_list(details: list[LeaveRequestDetail]) -> LeaveRequestListResponse:
    items = [LeaveRequestResponse.from_detail(d) for d in details]
    return LeaveRequestListResponse(items=items, total=len(items))


@router.post("/apply", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def apply_leave(
    data: LeaveApplyRequest,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    """Submit a new leave request for the caller."""
    ensure_allowed(identity.role, Action.LEAVE_APPLY)
    request = await ledger.apply(
        identity.user_id,
        data.leave_type,
        data.start_date,
        data.end_date,
        data.duration,
        data.reason,
        cc_users=data.cc_users,
    )
    return LeaveRequestResponse.from_detail(LeaveRequestDetail(request=request))


@router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_leave(
    request_id: UUID,
    data: Optional[LeaveDecisionRequest] = None,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    request = await ledger.approve(
        request_id, identity, comment=(data.comment if data else None)
    )
    return LeaveRequestResponse.from_detail(LeaveRequestDetail(request=request))


@router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_leave(
    request_id: UUID,
    data: Optional[LeaveDecisionRequest] = None,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    request = await ledger.reject(
        request_id, identity, comment=(data.comment if data else None)
    )
    return LeaveRequestResponse.from_detail(LeaveRequestDetail(request=request))


@router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave(
    request_id: UUID,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    request = await ledger.cancel(request_id, identity)
    return LeaveRequestResponse.from_detail(LeaveRequestDetail(request=request))


@router.get("/my", response_model=LeaveRequestListResponse)
async def my_leaves(
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return _as_list(await ledger.list_for_user(identity.user_id))


@router.get("/all", response_model=LeaveRequestListResponse)
async def all_leaves(
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return _as_list(await ledger.list_all(identity))


@router.get("/pending", response_model=LeaveRequestListResponse)
async def pending_for_team(
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    """Pending requests of the caller's direct reports."""
    ensure_allowed(identity.role, Action.LEAVE_VIEW_TEAM)
    return _as_list(await ledger.list_pending_for_manager(identity.user_id))


@router.get("/team", response_model=LeaveRequestListResponse)
async def team_leaves(
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    """Team leaves, filtered by status, user and an overlapping date range."""
    return _as_list(
        await ledger.list_team(
            identity,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
            user_id=user_id,
        )
    )


@router.get("/balances", response_model=list[LeaveBalanceResponse])
async def get_balances(
    user_id: Optional[UUID] = None,
    year: Optional[int] = None,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    """Balances of the caller. Admin and HR may pass ``user_id``."""
    target = identity.user_id
    if user_id is not None and user_id != identity.user_id:
        ensure_allowed(identity.role, Action.LEAVE_VIEW_ALL)
        target = user_id
    return await ledger.get_balances(target, year)


@router.post("/balances", response_model=LeaveBalanceResponse)
async def allocate_balance(
    data: AllocateRequest,
    identity: Identity = Depends(get_identity),
    ledger: LeaveLedger = Depends(get_leave_ledger),
):
    return await ledger.allocate(
        data.user_id, data.year, data.leave_type, data.total_allocated, identity
    )
