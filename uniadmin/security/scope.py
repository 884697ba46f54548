"""
View scope: the secondary filter predicate attached to a resolved view action.

The action gate answers "may the caller list/read this kind at all"; the scope
answers "which rows". Every entity kind declares one `ScopeRule` and the same
resolution + SQL filter applies to all of them (see `uniadmin.db.filters`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from uniadmin.errors import Forbidden
from uniadmin.models.enums import EntityKind
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal


class Visibility(str, Enum):
    ALL = "all"
    UNIT = "unit"
    OWN = "own"


@dataclass(frozen=True)
class ScopeRule:
    kind: EntityKind
    all_action: ActionCode
    own_action: ActionCode
    unit_action: ActionCode | None = None


@dataclass(frozen=True)
class ViewScope:
    """Attached to `Session.info["view_scope"]` for the duration of a read request."""

    kind: EntityKind
    visibility: Visibility
    user_id: int
    unit_id: int | None


SCOPE_RULES: dict[EntityKind, ScopeRule] = {
    EntityKind.DOCUMENT: ScopeRule(
        kind=EntityKind.DOCUMENT,
        all_action=ActionCode.DOCUMENT_VIEW_ALL,
        unit_action=ActionCode.DOCUMENT_VIEW_UNIT,
        own_action=ActionCode.DOCUMENT_VIEW_OWN,
    ),
    EntityKind.GUEST: ScopeRule(
        kind=EntityKind.GUEST,
        all_action=ActionCode.GUEST_VIEW_ALL,
        unit_action=ActionCode.GUEST_VIEW_UNIT,
        own_action=ActionCode.GUEST_VIEW_OWN,
    ),
    EntityKind.VISA: ScopeRule(
        kind=EntityKind.VISA,
        all_action=ActionCode.VISA_VIEW_ALL,
        own_action=ActionCode.VISA_VIEW_OWN,
    ),
    EntityKind.TRANSLATION: ScopeRule(
        kind=EntityKind.TRANSLATION,
        all_action=ActionCode.TRANSLATION_VIEW_ALL,
        own_action=ActionCode.TRANSLATION_VIEW_OWN,
    ),
}


def resolve_visibility(rule: ScopeRule, principal: Principal) -> Visibility:
    """Strongest visibility the principal holds for `rule.kind`; `Forbidden` if none."""

    if principal.has(rule.all_action.value):
        return Visibility.ALL
    # Unit scope needs a unit to compare against; without one it degrades to own.
    if rule.unit_action is not None and principal.has(rule.unit_action.value) and principal.unit_id is not None:
        return Visibility.UNIT
    if principal.has(rule.own_action.value):
        return Visibility.OWN
    if rule.unit_action is not None and principal.has(rule.unit_action.value):
        return Visibility.OWN
    raise Forbidden("Missing required action", missing_action=rule.own_action.value)


def view_scope_for(kind: EntityKind, principal: Principal) -> ViewScope:
    rule = SCOPE_RULES[kind]
    return ViewScope(
        kind=kind,
        visibility=resolve_visibility(rule, principal),
        user_id=principal.id,
        unit_id=principal.unit_id,
    )
