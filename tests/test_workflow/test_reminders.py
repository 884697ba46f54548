"""Visa reminder and expiry sweeps."""
from __future__ import annotations

from datetime import timedelta

import pytest

from uniadmin.errors import Forbidden
from uniadmin.models.enums import DocumentStatus, EntityKind, VisaStatus
from uniadmin.services.notifier import LoggingNotifier
from uniadmin.services.reminders import (
    expire_overdue,
    find_expiring_documents,
    reset_visa_reminders,
    send_visa_expiry_reminders,
)
from uniadmin.workflow import VisaExpiring


def _visa(entity_factory, db_session, principal, today, expires_in_days, status=VisaStatus.ACTIVE):
    visa = entity_factory(EntityKind.VISA, status, principal.id, principal.unit_id)
    visa.expiration_date = today + timedelta(days=expires_in_days)
    db_session.commit()
    return visa


def test_reminders_sent_once_per_visa_in_window(db_session, bus, superuser, entity_factory, today):
    soon = _visa(entity_factory, db_session, superuser, today, 10)
    _visa(entity_factory, db_session, superuser, today, 90)
    _visa(entity_factory, db_session, superuser, today, 5, status=VisaStatus.CANCELLED)
    received = []
    bus.subscribe(VisaExpiring, received.append)

    assert send_visa_expiry_reminders(db_session, bus, today, window_days=30, principal=superuser) == 1
    assert [(m.visa_id, m.days_left) for m in received] == [(soon.id, 10)]

    # Already reminded: a second sweep sends nothing until reminders are reset.
    assert send_visa_expiry_reminders(db_session, bus, today, window_days=30) == 0
    assert reset_visa_reminders(db_session) == 1
    assert send_visa_expiry_reminders(db_session, bus, today, window_days=30) == 1


def test_reminder_sweep_is_gated_when_run_for_a_user(db_session, bus, identity, today):
    clerk = identity.principal(identity.user_with_actions("visa.view_all"))
    with pytest.raises(Forbidden):
        send_visa_expiry_reminders(db_session, bus, today, principal=clerk)


def test_notifier_turns_reminders_into_messages(db_session, bus, superuser, entity_factory, today):
    notifier = LoggingNotifier()
    notifier.attach(bus)
    visa = _visa(entity_factory, db_session, superuser, today, 3)

    send_visa_expiry_reminders(db_session, bus, today)

    assert len(notifier.sent) == 1
    assert notifier.sent[0].recipient_id == superuser.id
    assert visa.visa_number in notifier.sent[0].subject


def test_expire_overdue_moves_documents_and_visas(db_session, registry, superuser, entity_factory, events, today):
    overdue_visa = _visa(entity_factory, db_session, superuser, today, -1)
    _visa(entity_factory, db_session, superuser, today, 0)
    overdue_doc = entity_factory(EntityKind.DOCUMENT, DocumentStatus.ACTIVE, superuser.id, superuser.unit_id)
    overdue_doc.expiration_date = today - timedelta(days=3)
    draft = entity_factory(EntityKind.DOCUMENT, DocumentStatus.DRAFT, superuser.id, superuser.unit_id)
    draft.expiration_date = today - timedelta(days=3)
    db_session.commit()

    summary = expire_overdue(db_session, registry, superuser, today)

    assert summary.expired == {"document": [overdue_doc.id], "visa": [overdue_visa.id]}
    assert summary.expired_count == 2
    assert summary.skipped == {}
    assert sorted((e.entity_kind, e.to_status) for e in events) == [("document", "EXPIRED"), ("visa", "EXPIRED")]


def test_expire_overdue_is_gated(db_session, registry, identity, superuser, entity_factory, today):
    _visa(entity_factory, db_session, superuser, today, -1)
    clerk = identity.principal(identity.user_with_actions("visa.view_all"))

    with pytest.raises(Forbidden):
        expire_overdue(db_session, registry, clerk, today)


def test_find_expiring_documents_window(db_session, superuser, entity_factory, today):
    soon = entity_factory(EntityKind.DOCUMENT, DocumentStatus.ACTIVE, superuser.id)
    soon.expiration_date = today + timedelta(days=20)
    later = entity_factory(EntityKind.DOCUMENT, DocumentStatus.ACTIVE, superuser.id)
    later.expiration_date = today + timedelta(days=200)
    db_session.commit()

    assert [d.id for d in find_expiring_documents(db_session, today, 30)] == [soon.id]
