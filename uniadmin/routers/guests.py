from __future__ import annotations

from fastapi import APIRouter, Body, Depends, status

from uniadmin.errors import BadRequest
from uniadmin.models.enums import GuestStatus, Operation
from uniadmin.models.workflow import Guest
from uniadmin.schemas.workflow import GuestEditIn, GuestIn, GuestOut, ReasonIn, StatisticsOut
from uniadmin.security.dependencies import get_current_principal, get_guest_service
from uniadmin.security.principal import Principal
from uniadmin.services.guests import GuestService

router = APIRouter(prefix="/guests", tags=["guests"])


@router.get("", response_model=list[GuestOut])
def list_guests(
    status_filter: GuestStatus | None = None,
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> list[Guest]:
    return service.list_visible(principal, status_filter)


@router.post("", response_model=GuestOut, status_code=status.HTTP_201_CREATED)
def create_guest(
    payload: GuestIn,
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> Guest:
    data = payload.model_dump()
    members = data.pop("members")
    return service.create(principal, members=members, **data)


@router.get("/statistics", response_model=StatisticsOut)
def guest_statistics(
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> dict:
    by_status = service.status_counts(principal)
    return {"total": sum(by_status.values()), "by_status": by_status}


@router.get("/{guest_id}", response_model=GuestOut)
def get_guest(
    guest_id: int,
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> Guest:
    return service.get(principal, guest_id)


@router.patch("/{guest_id}", response_model=GuestOut)
def edit_guest(
    guest_id: int,
    payload: GuestEditIn,
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> Guest:
    return service.edit(principal, guest_id, payload.model_dump(exclude_unset=True))


@router.post("/{guest_id}/{operation}", response_model=GuestOut)
def transition_guest(
    guest_id: int,
    operation: Operation,
    payload: ReasonIn | None = Body(default=None),
    principal: Principal = Depends(get_current_principal),
    service: GuestService = Depends(get_guest_service),
) -> Guest:
    """approve, checkin, checkout, reject or delete (withdraw)."""

    if operation is Operation.UPDATE:
        raise BadRequest("Use PATCH to edit a guest")
    params = {"reason": payload.reason} if payload and payload.reason else {}
    return service.transition(principal, guest_id, operation, params)
