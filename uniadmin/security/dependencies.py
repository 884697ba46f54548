from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from uniadmin.db.session import get_db
from uniadmin.security.auth import extract_bearer_token
from uniadmin.security.principal import Principal
from uniadmin.security.rbac import IdentityGraphService
from uniadmin.security.tokens import TokenIssuer
from uniadmin.services.documents import DocumentService
from uniadmin.services.guests import GuestService
from uniadmin.services.translations import TranslationService
from uniadmin.services.visas import VisaService
from uniadmin.settings import Settings, get_settings
from uniadmin.workflow.engine import WorkflowRegistry
from uniadmin.workflow.events import EventBus


def get_registry(request: Request) -> WorkflowRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Workflow registry not built. Did app startup run?")
    return registry


def get_bus(request: Request) -> EventBus:
    bus = getattr(request.app.state, "bus", None)
    if bus is None:
        raise RuntimeError("Event bus not built. Did app startup run?")
    return bus


def get_token_issuer(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TokenIssuer:
    return TokenIssuer(db, settings)


def get_current_principal(
    request: Request,
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Principal:
    """
    Authentication boundary: verified access token -> `Principal`.

    The principal is built once here and passed explicitly to services; it is
    also kept on `request.state` for logging.
    """

    token = extract_bearer_token(request)
    principal = issuer.decode_access(token)
    request.state.principal = principal
    return principal


def get_rbac_service(db: Session = Depends(get_db)) -> IdentityGraphService:
    return IdentityGraphService(db)


def get_document_service(
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
    bus: EventBus = Depends(get_bus),
) -> DocumentService:
    return DocumentService(db, registry, bus)


def get_guest_service(
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
    bus: EventBus = Depends(get_bus),
) -> GuestService:
    return GuestService(db, registry, bus)


def get_visa_service(
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
    bus: EventBus = Depends(get_bus),
) -> VisaService:
    return VisaService(db, registry, bus)


def get_translation_service(
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
    bus: EventBus = Depends(get_bus),
) -> TranslationService:
    return TranslationService(db, registry, bus)
