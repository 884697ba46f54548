"""
Tests for the transition tables themselves: construction checks and the
complete grid of illegal (status, operation) pairs.
"""
from __future__ import annotations

import pytest

from uniadmin.errors import InvalidTransition
from uniadmin.models.enums import DocumentStatus, EntityKind, Operation
from uniadmin.models.workflow import Document
from uniadmin.security.actions import ActionCode
from uniadmin.workflow import ALL_WORKFLOWS, Transition, Workflow, WorkflowDefinitionError

S = DocumentStatus


def _workflow(*transitions: Transition, initial=S.DRAFT, terminal=(S.CANCELLED,)) -> Workflow:
    return Workflow(
        kind=EntityKind.DOCUMENT,
        model=Document,
        initial_state=initial,
        states=(S.DRAFT, S.SUBMITTED, S.CANCELLED),
        terminal_states=terminal,
        transitions=transitions,
    )


def _t(operation, sources, target, action=ActionCode.DOCUMENT_CREATE) -> Transition:
    return Transition(operation=operation, from_states=frozenset(sources), to_state=target, action=action)


def test_valid_definition_builds_lookup():
    wf = _workflow(_t(Operation.SUBMIT, {S.DRAFT}, S.SUBMITTED), _t(Operation.CANCEL, {S.DRAFT, S.SUBMITTED}, S.CANCELLED))

    assert wf.operations == {Operation.SUBMIT, Operation.CANCEL}
    assert wf.is_legal(S.DRAFT, Operation.SUBMIT)
    assert not wf.is_legal(S.SUBMITTED, Operation.SUBMIT)
    assert not wf.is_legal(S.DRAFT, Operation.SIGN)
    assert wf.table()[(S.SUBMITTED, Operation.CANCEL)] == (ActionCode.DOCUMENT_CREATE, S.CANCELLED)


@pytest.mark.parametrize(
    "build,message",
    [
        (lambda: _workflow(initial=S.ACTIVE), "initial state"),
        (lambda: _workflow(terminal=(S.EXPIRED,)), "unknown terminal"),
        (lambda: _workflow(_t(Operation.SUBMIT, {S.DRAFT}, S.SIGNED)), "unknown target"),
        (lambda: _workflow(_t(Operation.SUBMIT, {S.REVIEWING}, S.SUBMITTED)), "unknown source"),
        (lambda: _workflow(_t(Operation.SUBMIT, set(), S.SUBMITTED)), "empty source"),
        (lambda: _workflow(_t(Operation.SUBMIT, {S.CANCELLED}, S.DRAFT)), "terminal states"),
        (
            lambda: _workflow(_t(Operation.SUBMIT, {S.DRAFT}, S.SUBMITTED), _t(Operation.SUBMIT, {S.SUBMITTED}, S.DRAFT)),
            "duplicate operation",
        ),
    ],
)
def test_inconsistent_definitions_rejected(build, message):
    with pytest.raises(WorkflowDefinitionError, match=message):
        build()


def test_edit_rows_keep_status_in_flattened_table():
    wf = _workflow(_t(Operation.UPDATE, {S.DRAFT}, None, ActionCode.DOCUMENT_UPDATE))
    assert wf.table()[(S.DRAFT, Operation.UPDATE)] == (ActionCode.DOCUMENT_UPDATE, S.DRAFT)
    assert not wf.transition_for(Operation.UPDATE).changes_status


def test_shipped_workflows_cover_every_kind_once():
    assert sorted(wf.kind.value for wf in ALL_WORKFLOWS) == sorted(k.value for k in EntityKind)
    for wf in ALL_WORKFLOWS:
        assert wf.initial_state in wf.states
        for t in wf.transitions:
            assert isinstance(t.action, ActionCode)


@pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda wf: wf.kind.value)
def test_every_illegal_pair_is_rejected_even_for_superuser(workflow, registry, superuser, entity_factory, events, db_session):
    engine = registry[workflow.kind]

    for status in workflow.states:
        entity = entity_factory(workflow.kind, status, superuser.id, superuser.unit_id)
        for operation in Operation:
            if workflow.is_legal(status, operation):
                continue
            with pytest.raises(InvalidTransition) as exc_info:
                engine.transition(db_session, entity.id, operation, superuser, {"reason": "x"})
            assert exc_info.value.status == status.value
            assert exc_info.value.operation == operation.value
            db_session.refresh(entity)
            assert entity.status == status

    assert events == []
