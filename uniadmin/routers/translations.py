from __future__ import annotations

from fastapi import APIRouter, Body, Depends, status

from uniadmin.errors import BadRequest
from uniadmin.models.enums import Operation, TranslationStatus
from uniadmin.models.workflow import Translation
from uniadmin.schemas.workflow import CompleteIn, ReasonIn, StatisticsOut, TranslationEditIn, TranslationIn, TranslationOut
from uniadmin.security.dependencies import get_current_principal, get_translation_service
from uniadmin.security.principal import Principal
from uniadmin.services.translations import TranslationService

router = APIRouter(prefix="/translations", tags=["translations"])


@router.get("", response_model=list[TranslationOut])
def list_translations(
    status_filter: TranslationStatus | None = None,
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> list[Translation]:
    return service.list_visible(principal, status_filter)


@router.post("", response_model=TranslationOut, status_code=status.HTTP_201_CREATED)
def create_translation(
    payload: TranslationIn,
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> Translation:
    return service.create(principal, **payload.model_dump())


@router.get("/statistics", response_model=StatisticsOut)
def translation_statistics(
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> dict:
    by_status = service.status_counts(principal)
    return {"total": sum(by_status.values()), "by_status": by_status}


@router.get("/{translation_id}", response_model=TranslationOut)
def get_translation(
    translation_id: int,
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> Translation:
    return service.get(principal, translation_id)


@router.patch("/{translation_id}", response_model=TranslationOut)
def edit_translation(
    translation_id: int,
    payload: TranslationEditIn,
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> Translation:
    return service.edit(principal, translation_id, payload.model_dump(exclude_unset=True))


@router.post("/{translation_id}/complete", response_model=TranslationOut)
def complete_translation(
    translation_id: int,
    payload: CompleteIn,
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> Translation:
    return service.complete(principal, translation_id, payload.translated_file_url)


@router.post("/{translation_id}/{operation}", response_model=TranslationOut)
def transition_translation(
    translation_id: int,
    operation: Operation,
    payload: ReasonIn | None = Body(default=None),
    principal: Principal = Depends(get_current_principal),
    service: TranslationService = Depends(get_translation_service),
) -> Translation:
    """approve, reject or cancel."""

    if operation is Operation.UPDATE:
        raise BadRequest("Use PATCH to edit a translation")
    params = {"reason": payload.reason} if payload and payload.reason else {}
    return service.transition(principal, translation_id, operation, params)
