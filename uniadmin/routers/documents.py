from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Response, status

from uniadmin.errors import BadRequest
from uniadmin.models.enums import DocumentStatus, Operation
from uniadmin.models.workflow import Document
from uniadmin.schemas.workflow import DocumentEditIn, DocumentIn, DocumentOut, ReasonIn, StatisticsOut
from uniadmin.security.dependencies import get_current_principal, get_document_service
from uniadmin.security.principal import Principal
from uniadmin.services.documents import DocumentService

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=list[DocumentOut])
def list_documents(
    status_filter: DocumentStatus | None = None,
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> list[Document]:
    # Rows outside the caller's view scope are filtered out (uniadmin/db/filters.py).
    return service.list_visible(principal, status_filter)


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentIn,
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> Document:
    return service.create(principal, **payload.model_dump())


@router.get("/statistics", response_model=StatisticsOut)
def document_statistics(
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> dict:
    return service.statistics(principal)


@router.get("/{document_id}", response_model=DocumentOut)
def get_document(
    document_id: int,
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> Document:
    return service.get(principal, document_id)


@router.patch("/{document_id}", response_model=DocumentOut)
def edit_document(
    document_id: int,
    payload: DocumentEditIn,
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> Document:
    return service.edit(principal, document_id, payload.model_dump(exclude_unset=True))


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: int,
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> Response:
    service.hard_delete(principal, document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{document_id}/{operation}", response_model=DocumentOut)
def transition_document(
    document_id: int,
    operation: Operation,
    payload: ReasonIn | None = Body(default=None),
    principal: Principal = Depends(get_current_principal),
    service: DocumentService = Depends(get_document_service),
) -> Document:
    """submit, start_review, approve, reject, sign, activate, expire or cancel."""

    if operation is Operation.UPDATE:
        raise BadRequest("Use PATCH to edit a document")
    params = {"reason": payload.reason} if payload and payload.reason else {}
    return service.transition(principal, document_id, operation, params)
