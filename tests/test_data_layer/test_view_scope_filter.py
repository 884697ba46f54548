"""
Tests for the view-scope listener (uniadmin/db/filters.py).

Rows outside the caller's scope must be invisible to every SELECT issued while
the scope is attached, and visible again once it is removed.
"""
from __future__ import annotations

from sqlalchemy import select

from uniadmin.models.enums import DocumentStatus, EntityKind
from uniadmin.models.workflow import Document
from uniadmin.services.base import VIEW_SCOPE_KEY, scoped


def _setup(identity, entity_factory):
    eng, sci = identity.unit("ENG"), identity.unit("SCI")
    author = identity.user_with_actions("document.view_own", unit=eng)
    colleague = identity.user_with_actions("document.view_own", unit=eng)
    outsider = identity.user_with_actions("document.view_own", unit=sci)
    docs = {
        "author": entity_factory(EntityKind.DOCUMENT, DocumentStatus.DRAFT, author.id, eng.id),
        "colleague": entity_factory(EntityKind.DOCUMENT, DocumentStatus.DRAFT, colleague.id, eng.id),
        "outsider": entity_factory(EntityKind.DOCUMENT, DocumentStatus.DRAFT, outsider.id, sci.id),
    }
    return eng, author, docs


def test_own_scope_returns_only_creators_rows(db_session, identity, entity_factory):
    _, author, docs = _setup(identity, entity_factory)
    principal = identity.principal(author)

    with scoped(db_session, EntityKind.DOCUMENT, principal):
        ids = set(db_session.scalars(select(Document.id)).all())
        rows = db_session.scalars(select(Document)).all()

    assert {d.id for d in rows} == {docs["author"].id}
    assert ids == {docs["author"].id}


def test_unit_scope_returns_rows_of_callers_unit(db_session, identity, entity_factory):
    eng, _, docs = _setup(identity, entity_factory)
    head = identity.user_with_actions("document.view_unit", unit=eng)
    principal = identity.principal(head)

    with scoped(db_session, EntityKind.DOCUMENT, principal):
        rows = db_session.scalars(select(Document)).all()

    assert {d.id for d in rows} == {docs["author"].id, docs["colleague"].id}


def test_all_scope_returns_everything(db_session, identity, entity_factory):
    _, _, docs = _setup(identity, entity_factory)
    officer = identity.user_with_actions("document.view_all", unit=identity.unit("INTL"))

    with scoped(db_session, EntityKind.DOCUMENT, identity.principal(officer)):
        rows = db_session.scalars(select(Document)).all()

    assert {d.id for d in rows} == {d.id for d in docs.values()}


def test_scope_applies_to_rows_already_in_identity_map(db_session, identity, entity_factory):
    _, author, docs = _setup(identity, entity_factory)
    # The outsider's row is loaded (and cached) before the scope is attached.
    assert db_session.get(Document, docs["outsider"].id) is not None

    with scoped(db_session, EntityKind.DOCUMENT, identity.principal(author)):
        found = db_session.scalars(select(Document).where(Document.id == docs["outsider"].id)).first()

    assert found is None


def test_scope_is_removed_after_the_block(db_session, identity, entity_factory):
    _, author, docs = _setup(identity, entity_factory)

    with scoped(db_session, EntityKind.DOCUMENT, identity.principal(author)):
        assert db_session.info[VIEW_SCOPE_KEY].user_id == author.id

    assert VIEW_SCOPE_KEY not in db_session.info
    assert len(db_session.scalars(select(Document)).all()) == len(docs)
