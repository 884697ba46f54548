"""Tests for the action gate and view-scope resolution (no database)."""
from __future__ import annotations

import pytest

from uniadmin.errors import Forbidden
from uniadmin.models.enums import EntityKind
from uniadmin.security.actions import ALL_ACTION_CODES, ActionCode
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.security.scope import SCOPE_RULES, Visibility, view_scope_for


def _principal(*codes: str, unit_id: int | None = 7) -> Principal:
    return Principal(id=1, unit_id=unit_id, action_codes=frozenset(codes))


def test_gate_allows_when_nothing_required():
    ActionGate().check(None, _principal())


def test_gate_allows_held_action():
    ActionGate().check(ActionCode.DOCUMENT_APPROVE, _principal("document.approve"))
    ActionGate().check("document.approve", _principal("document.approve"))


def test_gate_denial_names_missing_action():
    with pytest.raises(Forbidden) as exc_info:
        ActionGate().check(ActionCode.VISA_APPROVE, _principal("visa.view_all"))
    assert exc_info.value.missing_action == "visa.approve"
    assert exc_info.value.status_code == 403


def test_gate_allows_reports_without_raising():
    gate = ActionGate()
    assert gate.allows(ActionCode.GUEST_CHECKIN, _principal("guest.checkin"))
    assert not gate.allows(ActionCode.GUEST_CHECKIN, _principal())
    assert gate.allows(None, _principal())


def test_action_catalogue_codes_are_unique_and_categorised():
    assert len(ALL_ACTION_CODES) == len(list(ActionCode))
    assert ActionCode.VISA_REMIND.category == "VISA"
    assert ActionCode.RBAC_MANAGE.category == "RBAC"


def test_every_workflow_kind_except_extensions_has_a_scope_rule():
    assert set(SCOPE_RULES) == set(EntityKind) - {EntityKind.VISA_EXTENSION}


@pytest.mark.parametrize(
    "codes,expected",
    [
        (("document.view_all", "document.view_own"), Visibility.ALL),
        (("document.view_unit", "document.view_own"), Visibility.UNIT),
        (("document.view_own",), Visibility.OWN),
    ],
)
def test_strongest_visibility_wins(codes, expected):
    scope = view_scope_for(EntityKind.DOCUMENT, _principal(*codes))
    assert scope.visibility is expected
    assert scope.user_id == 1
    assert scope.unit_id == 7


def test_unit_visibility_without_a_unit_degrades_to_own():
    scope = view_scope_for(EntityKind.GUEST, _principal("guest.view_unit", unit_id=None))
    assert scope.visibility is Visibility.OWN


def test_no_view_action_is_forbidden():
    with pytest.raises(Forbidden) as exc_info:
        view_scope_for(EntityKind.TRANSLATION, _principal("translation.create"))
    assert exc_info.value.missing_action == "translation.view_own"
