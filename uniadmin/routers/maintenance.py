from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from uniadmin.db.session import get_db
from uniadmin.models.workflow import Document
from uniadmin.schemas.workflow import DocumentOut
from uniadmin.security.actions import ActionCode
from uniadmin.security.dependencies import get_bus, get_current_principal, get_registry, get_token_issuer
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.security.tokens import TokenIssuer
from uniadmin.services.reminders import (
    expire_overdue,
    find_expiring_documents,
    reset_visa_reminders,
    send_visa_expiry_reminders,
)
from uniadmin.settings import Settings, get_settings
from uniadmin.workflow.engine import WorkflowRegistry, utcnow
from uniadmin.workflow.events import EventBus

# Sweeps a scheduler (or an operator) triggers. Each runs as the calling principal.
router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/visa-reminders")
def run_visa_reminders(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_bus),
    settings: Settings = Depends(get_settings),
) -> dict[str, int]:
    sent = send_visa_expiry_reminders(
        db,
        bus,
        utcnow().date(),
        settings.visa_reminder_window_days,
        principal=principal,
    )
    return {"sent": sent}


@router.post("/visa-reminders/reset")
def reset_reminders(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    ActionGate().check(ActionCode.VISA_REMIND, principal)
    return {"reset": reset_visa_reminders(db)}


@router.post("/expire-overdue")
def run_expire_overdue(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    registry: WorkflowRegistry = Depends(get_registry),
) -> dict[str, Any]:
    summary = expire_overdue(db, registry, principal, utcnow().date())
    return {"expired": summary.expired, "skipped": summary.skipped}


@router.get("/expiring-documents", response_model=list[DocumentOut])
def expiring_documents(
    days: int = Query(default=30, ge=1, le=365),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> list[Document]:
    ActionGate().check(ActionCode.DOCUMENT_VIEW_ALL, principal)
    return find_expiring_documents(db, utcnow().date(), days)


@router.post("/purge-refresh-tokens")
def purge_refresh_tokens(
    principal: Principal = Depends(get_current_principal),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> dict[str, int]:
    ActionGate().check(ActionCode.RBAC_MANAGE, principal)
    return {"purged": issuer.purge_expired()}
