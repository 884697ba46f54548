"""
Guest registration workflow.

REGISTERED -> APPROVED -> ARRIVED -> DEPARTED, with REGISTERED/APPROVED ->
CANCELLED by rejection or withdrawal. DEPARTED and CANCELLED are terminal and
block every further operation, edits included.
"""

from __future__ import annotations

from typing import Any

from uniadmin.errors import ValidationFailed
from uniadmin.models.enums import EntityKind, GuestStatus, Operation
from uniadmin.models.workflow import Guest
from uniadmin.security.actions import ActionCode
from uniadmin.workflow.definition import Guard, Ownership, Transition, TransitionContext, Workflow
from uniadmin.workflow.tables.common import approval_writes, edit_writes, effective, ensure_date_order, reason_writes

S = GuestStatus

EDITABLE_FIELDS = (
    "full_name",
    "nationality",
    "passport_number",
    "organization",
    "purpose",
    "arrival_date",
    "departure_date",
)


def _check_stay(ctx: TransitionContext) -> None:
    ensure_date_order(
        effective(ctx, "arrival_date"),
        effective(ctx, "departure_date"),
        "Arrival date must be before departure date",
    )
    changes = ctx.param("changes") or {}
    arrival = changes.get("arrival_date")
    if arrival is not None and arrival < ctx.now.date():
        raise ValidationFailed("Arrival date cannot be in the past")


STAY_DATES_VALID = Guard(
    name="guest_stay_dates_valid",
    description="Arrival precedes departure; a rescheduled arrival is not in the past",
    check=_check_stay,
)


def _checkin_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"actual_arrival_at": ctx.now}


def _checkout_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"actual_departure_at": ctx.now}


GUEST_WORKFLOW = Workflow(
    kind=EntityKind.GUEST,
    model=Guest,
    initial_state=S.REGISTERED,
    states=tuple(S),
    terminal_states=(S.DEPARTED, S.CANCELLED),
    transitions=(
        Transition(
            operation=Operation.UPDATE,
            from_states=frozenset({S.REGISTERED, S.APPROVED}),
            to_state=None,
            action=ActionCode.GUEST_UPDATE,
            ownership=Ownership(override=ActionCode.GUEST_APPROVE),
            guards=(STAY_DATES_VALID,),
            writes=edit_writes(EDITABLE_FIELDS),
        ),
        Transition(
            operation=Operation.APPROVE,
            from_states=frozenset({S.REGISTERED}),
            to_state=S.APPROVED,
            action=ActionCode.GUEST_APPROVE,
            writes=approval_writes,
        ),
        Transition(
            operation=Operation.CHECKIN,
            from_states=frozenset({S.APPROVED}),
            to_state=S.ARRIVED,
            action=ActionCode.GUEST_CHECKIN,
            writes=_checkin_writes,
        ),
        Transition(
            operation=Operation.CHECKOUT,
            from_states=frozenset({S.ARRIVED}),
            to_state=S.DEPARTED,
            action=ActionCode.GUEST_CHECKOUT,
            writes=_checkout_writes,
        ),
        Transition(
            operation=Operation.REJECT,
            from_states=frozenset({S.REGISTERED, S.APPROVED}),
            to_state=S.CANCELLED,
            action=ActionCode.GUEST_REJECT,
            writes=reason_writes,
        ),
        Transition(
            operation=Operation.DELETE,
            from_states=frozenset({S.REGISTERED, S.APPROVED}),
            to_state=S.CANCELLED,
            action=ActionCode.GUEST_DELETE,
            ownership=Ownership(override=ActionCode.GUEST_APPROVE),
        ),
    ),
)
