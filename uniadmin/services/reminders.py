"""
Expiry sweeps for visas and documents.

Meant to run from a scheduler (cron, a management command). Status changes
go through the workflow engines like any other caller, with the sweep's own
principal, so the sweep holds no extra privileges and a row that another
request moved first is simply skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from uniadmin.errors import InvalidTransition
from uniadmin.models.enums import DocumentStatus, EntityKind, Operation, VisaStatus
from uniadmin.models.workflow import Document, Visa
from uniadmin.security.actions import ActionCode
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.workflow.engine import WorkflowRegistry
from uniadmin.workflow.events import EventBus, VisaExpiring

logger = logging.getLogger(__name__)


@dataclass
class ExpirySummary:
    expired: dict[str, list[int]] = field(default_factory=dict)
    skipped: dict[str, list[int]] = field(default_factory=dict)

    @property
    def expired_count(self) -> int:
        return sum(len(ids) for ids in self.expired.values())


def send_visa_expiry_reminders(
    db: Session,
    bus: EventBus,
    today: date,
    window_days: int = 30,
    *,
    principal: Principal | None = None,
) -> int:
    """
    Publish one `VisaExpiring` per ACTIVE visa expiring within `window_days`
    that has not been reminded yet, and mark it reminded. Returns the count.
    """

    if principal is not None:
        ActionGate().check(ActionCode.VISA_REMIND, principal)

    horizon = today + timedelta(days=window_days)
    visas = db.scalars(
        select(Visa)
        .where(
            Visa.status == VisaStatus.ACTIVE,
            Visa.reminder_sent.is_(False),
            Visa.expiration_date >= today,
            Visa.expiration_date <= horizon,
        )
        .order_by(Visa.expiration_date)
    ).all()

    messages: list[VisaExpiring] = []
    for visa in visas:
        visa.reminder_sent = True
        messages.append(
            VisaExpiring(
                visa_id=visa.id,
                visa_number=visa.visa_number,
                holder_name=visa.holder_name,
                expiration_date=visa.expiration_date,
                days_left=(visa.expiration_date - today).days,
                created_by_id=visa.created_by_id,
            )
        )
    db.commit()

    for message in messages:
        bus.publish(message)

    logger.info("Visa reminder sweep today=%s window_days=%s sent=%s", today, window_days, len(messages))
    return len(messages)


def reset_visa_reminders(db: Session) -> int:
    """Clear `reminder_sent` on every ACTIVE visa so the next sweep reminds again."""

    result = db.execute(
        update(Visa)
        .where(Visa.status == VisaStatus.ACTIVE, Visa.reminder_sent.is_(True))
        .values(reminder_sent=False)
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    count = result.rowcount or 0
    logger.info("Reset visa reminders count=%s", count)
    return count


def expire_overdue(db: Session, registry: WorkflowRegistry, principal: Principal, today: date) -> ExpirySummary:
    """Move ACTIVE documents and visas whose expiration date has passed to EXPIRED."""

    summary = ExpirySummary()
    targets = (
        (EntityKind.DOCUMENT, Document, DocumentStatus.ACTIVE),
        (EntityKind.VISA, Visa, VisaStatus.ACTIVE),
    )
    for kind, model, active in targets:
        ids = db.scalars(
            select(model.id)
            .where(model.status == active, model.expiration_date.is_not(None), model.expiration_date < today)
            .order_by(model.id)
        ).all()

        engine = registry[kind]
        for entity_id in ids:
            try:
                engine.transition(db, entity_id, Operation.EXPIRE, principal)
            except InvalidTransition:
                logger.info("Expiry skipped kind=%s id=%s (status changed concurrently)", kind.value, entity_id)
                summary.skipped.setdefault(kind.value, []).append(entity_id)
                continue
            summary.expired.setdefault(kind.value, []).append(entity_id)

    logger.info("Expiry sweep today=%s expired=%s skipped=%s", today, summary.expired_count, summary.skipped)
    return summary


def find_expiring_documents(db: Session, today: date, days: int) -> list[Document]:
    horizon = today + timedelta(days=days)
    stmt = (
        select(Document)
        .where(
            Document.status == DocumentStatus.ACTIVE,
            Document.expiration_date.is_not(None),
            Document.expiration_date >= today,
            Document.expiration_date <= horizon,
        )
        .order_by(Document.expiration_date)
    )
    return list(db.scalars(stmt).all())
