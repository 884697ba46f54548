from __future__ import annotations

from fastapi import APIRouter, Body, Depends, status

from uniadmin.errors import BadRequest
from uniadmin.models.enums import Operation, VisaStatus
from uniadmin.models.workflow import Visa, VisaExtension
from uniadmin.schemas.workflow import ExtensionIn, ExtensionOut, ReasonIn, StatisticsOut, VisaEditIn, VisaIn, VisaOut
from uniadmin.security.dependencies import get_current_principal, get_visa_service
from uniadmin.security.principal import Principal
from uniadmin.services.visas import VisaService

router = APIRouter(prefix="/visas", tags=["visas"])


@router.get("", response_model=list[VisaOut])
def list_visas(
    status_filter: VisaStatus | None = None,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> list[Visa]:
    return service.list_visible(principal, status_filter)


@router.post("", response_model=VisaOut, status_code=status.HTTP_201_CREATED)
def create_visa(
    payload: VisaIn,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> Visa:
    return service.create(principal, **payload.model_dump())


@router.get("/statistics", response_model=StatisticsOut)
def visa_statistics(
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> dict:
    by_status = service.status_counts(principal)
    return {"total": sum(by_status.values()), "by_status": by_status}


# ---- Extensions (fixed prefix, registered before "/{visa_id}/{operation}") -----------


@router.post("/extensions/{extension_id}/{operation}", response_model=ExtensionOut)
def transition_extension(
    extension_id: int,
    operation: Operation,
    payload: ReasonIn | None = Body(default=None),
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> VisaExtension:
    """approve or reject."""

    params = {"reason": payload.reason} if payload and payload.reason else {}
    return service.transition_extension(principal, extension_id, operation, params)


@router.get("/{visa_id}", response_model=VisaOut)
def get_visa(
    visa_id: int,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> Visa:
    return service.get(principal, visa_id)


@router.patch("/{visa_id}", response_model=VisaOut)
def edit_visa(
    visa_id: int,
    payload: VisaEditIn,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> Visa:
    return service.edit(principal, visa_id, payload.model_dump(exclude_unset=True))


@router.get("/{visa_id}/extensions", response_model=list[ExtensionOut])
def list_extensions(
    visa_id: int,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> list[VisaExtension]:
    return service.list_extensions(principal, visa_id)


@router.post("/{visa_id}/extensions", response_model=ExtensionOut, status_code=status.HTTP_201_CREATED)
def request_extension(
    visa_id: int,
    payload: ExtensionIn,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> VisaExtension:
    return service.request_extension(principal, visa_id, **payload.model_dump())


@router.post("/{visa_id}/{operation}", response_model=VisaOut)
def transition_visa(
    visa_id: int,
    operation: Operation,
    principal: Principal = Depends(get_current_principal),
    service: VisaService = Depends(get_visa_service),
) -> Visa:
    """cancel or expire."""

    if operation is Operation.UPDATE:
        raise BadRequest("Use PATCH to edit a visa")
    return service.transition(principal, visa_id, operation)
