"""
Document (MOU / cooperation agreement) workflow.

DRAFT -> SUBMITTED -> [REVIEWING] -> APPROVED -> SIGNED -> ACTIVE -> EXPIRED
Rejection sends SUBMITTED/REVIEWING/APPROVED back to DRAFT. Only DRAFT or
SUBMITTED documents can be cancelled. Submitting and editing a draft are
restricted to its creator unless the caller can approve documents.
"""

from __future__ import annotations

from typing import Any

from uniadmin.models.enums import DocumentStatus, EntityKind, Operation
from uniadmin.models.workflow import Document
from uniadmin.security.actions import ActionCode
from uniadmin.workflow.definition import Guard, Ownership, Transition, TransitionContext, Workflow
from uniadmin.workflow.tables.common import approval_writes, edit_writes, effective, ensure_date_order, reason_writes

S = DocumentStatus

EDITABLE_FIELDS = (
    "title",
    "document_type",
    "partner_name",
    "partner_country",
    "content",
    "effective_date",
    "expiration_date",
)


def _check_dates(ctx: TransitionContext) -> None:
    ensure_date_order(
        effective(ctx, "effective_date"),
        effective(ctx, "expiration_date"),
        "Expiration date must be after the effective date",
    )


DATES_ORDERED = Guard(
    name="document_dates_ordered",
    description="Expiration date, when set, is after the effective date",
    check=_check_dates,
)


def _submit_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"submitted_at": ctx.now, "rejection_reason": None}


def _reject_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {**reason_writes(ctx), "approved_by_id": None, "approved_at": None}


def _sign_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"signed_at": ctx.now}


def _activate_writes(ctx: TransitionContext) -> dict[str, Any]:
    if ctx.entity.effective_date is None:
        return {"effective_date": ctx.now.date()}
    return {}


DOCUMENT_WORKFLOW = Workflow(
    kind=EntityKind.DOCUMENT,
    model=Document,
    initial_state=S.DRAFT,
    states=tuple(S),
    terminal_states=(S.EXPIRED, S.CANCELLED),
    transitions=(
        Transition(
            operation=Operation.UPDATE,
            from_states=frozenset({S.DRAFT}),
            to_state=None,
            action=ActionCode.DOCUMENT_UPDATE,
            ownership=Ownership(override=ActionCode.DOCUMENT_APPROVE),
            guards=(DATES_ORDERED,),
            writes=edit_writes(EDITABLE_FIELDS),
            description="Edit a draft",
        ),
        Transition(
            operation=Operation.SUBMIT,
            from_states=frozenset({S.DRAFT}),
            to_state=S.SUBMITTED,
            # Authors submit their own drafts; no separate submit grant exists.
            action=ActionCode.DOCUMENT_CREATE,
            ownership=Ownership(override=ActionCode.DOCUMENT_APPROVE),
            writes=_submit_writes,
        ),
        Transition(
            operation=Operation.START_REVIEW,
            from_states=frozenset({S.SUBMITTED}),
            to_state=S.REVIEWING,
            action=ActionCode.DOCUMENT_REVIEW,
        ),
        Transition(
            operation=Operation.APPROVE,
            from_states=frozenset({S.SUBMITTED, S.REVIEWING}),
            to_state=S.APPROVED,
            action=ActionCode.DOCUMENT_APPROVE,
            writes=approval_writes,
        ),
        Transition(
            operation=Operation.REJECT,
            from_states=frozenset({S.SUBMITTED, S.REVIEWING, S.APPROVED}),
            to_state=S.DRAFT,
            action=ActionCode.DOCUMENT_REJECT,
            writes=_reject_writes,
        ),
        Transition(
            operation=Operation.SIGN,
            from_states=frozenset({S.APPROVED}),
            to_state=S.SIGNED,
            action=ActionCode.DOCUMENT_SIGN,
            writes=_sign_writes,
        ),
        Transition(
            operation=Operation.ACTIVATE,
            from_states=frozenset({S.SIGNED}),
            to_state=S.ACTIVE,
            action=ActionCode.DOCUMENT_ACTIVATE,
            writes=_activate_writes,
        ),
        Transition(
            operation=Operation.EXPIRE,
            from_states=frozenset({S.ACTIVE}),
            to_state=S.EXPIRED,
            action=ActionCode.DOCUMENT_EXPIRE,
        ),
        Transition(
            operation=Operation.CANCEL,
            from_states=frozenset({S.DRAFT, S.SUBMITTED}),
            to_state=S.CANCELLED,
            action=ActionCode.DOCUMENT_CANCEL,
            ownership=Ownership(override=ActionCode.DOCUMENT_DELETE),
        ),
    ),
)
