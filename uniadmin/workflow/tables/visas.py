"""
Visa and visa extension workflows.

A visa is ACTIVE from registration until it expires or is cancelled. An
extension request is PENDING until approved or rejected; approving it moves
the parent visa's expiration date in the same transaction as the extension's
own status write.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from uniadmin.errors import InvalidTransition, ValidationFailed
from uniadmin.models.enums import EntityKind, ExtensionStatus, Operation, VisaStatus
from uniadmin.models.workflow import Visa, VisaExtension
from uniadmin.security.actions import ActionCode
from uniadmin.workflow.definition import Guard, Ownership, Transition, TransitionContext, Workflow
from uniadmin.workflow.tables.common import approval_writes, edit_writes, effective, ensure_date_order, reason_writes

# expiration_date only moves through an approved extension.
EDITABLE_FIELDS = (
    "holder_name",
    "holder_country",
    "passport_number",
    "issue_date",
    "purpose",
    "sponsor_unit",
)


def _check_validity(ctx: TransitionContext) -> None:
    ensure_date_order(
        effective(ctx, "issue_date"),
        effective(ctx, "expiration_date"),
        "Expiration date must be after the issue date",
    )


VALIDITY_ORDERED = Guard(
    name="visa_validity_ordered",
    description="Expiration date is after the issue date",
    check=_check_validity,
)


def _check_no_approved_extension(ctx: TransitionContext) -> None:
    approved = ctx.db.scalar(
        select(
            exists().where(
                VisaExtension.visa_id == ctx.entity.id,
                VisaExtension.status == ExtensionStatus.APPROVED,
            )
        )
    )
    if approved:
        raise ValidationFailed("Cannot cancel a visa that has an approved extension")


NO_APPROVED_EXTENSION = Guard(
    name="visa_no_approved_extension",
    description="A visa with an approved extension cannot be cancelled",
    check=_check_no_approved_extension,
)


VISA_WORKFLOW = Workflow(
    kind=EntityKind.VISA,
    model=Visa,
    initial_state=VisaStatus.ACTIVE,
    states=tuple(VisaStatus),
    terminal_states=(VisaStatus.EXPIRED, VisaStatus.CANCELLED),
    transitions=(
        Transition(
            operation=Operation.UPDATE,
            from_states=frozenset({VisaStatus.ACTIVE}),
            to_state=None,
            action=ActionCode.VISA_UPDATE,
            ownership=Ownership(),
            guards=(VALIDITY_ORDERED,),
            writes=edit_writes(EDITABLE_FIELDS),
        ),
        Transition(
            operation=Operation.CANCEL,
            from_states=frozenset({VisaStatus.ACTIVE}),
            to_state=VisaStatus.CANCELLED,
            action=ActionCode.VISA_DELETE,
            ownership=Ownership(),
            guards=(NO_APPROVED_EXTENSION,),
        ),
        Transition(
            operation=Operation.EXPIRE,
            from_states=frozenset({VisaStatus.ACTIVE}),
            to_state=VisaStatus.EXPIRED,
            action=ActionCode.VISA_EXPIRE,
        ),
    ),
)


# ---- Extensions ----------------------------------------------------------------------


def _check_extends_parent(ctx: TransitionContext) -> None:
    visa = ctx.entity.visa
    if visa.status != VisaStatus.ACTIVE:
        raise InvalidTransition(EntityKind.VISA.value, visa.id, visa.status.value, "extend")
    if ctx.entity.new_expiration_date <= visa.expiration_date:
        raise ValidationFailed("New expiration date must be after the current expiration date")


EXTENDS_ACTIVE_VISA = Guard(
    name="extension_extends_active_visa",
    description="Parent visa is ACTIVE and the new date is after its current expiration",
    check=_check_extends_parent,
)


def extend_visa(db: Session, visa_id: int, new_expiration_date: date, now: datetime) -> None:
    """Move the parent visa's expiration date; the visa must still be ACTIVE."""

    result = db.execute(
        update(Visa)
        .where(Visa.id == visa_id, Visa.status == VisaStatus.ACTIVE)
        .values(expiration_date=new_expiration_date, reminder_sent=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        status = db.scalar(select(Visa.status).where(Visa.id == visa_id))
        raise InvalidTransition(EntityKind.VISA.value, visa_id, getattr(status, "value", status), "extend")


def _approve_effects(ctx: TransitionContext) -> None:
    extend_visa(ctx.db, ctx.entity.visa_id, ctx.entity.new_expiration_date, ctx.now)


VISA_EXTENSION_WORKFLOW = Workflow(
    kind=EntityKind.VISA_EXTENSION,
    model=VisaExtension,
    initial_state=ExtensionStatus.PENDING,
    states=tuple(ExtensionStatus),
    terminal_states=(ExtensionStatus.APPROVED, ExtensionStatus.REJECTED),
    transitions=(
        Transition(
            operation=Operation.APPROVE,
            from_states=frozenset({ExtensionStatus.PENDING}),
            to_state=ExtensionStatus.APPROVED,
            action=ActionCode.VISA_APPROVE,
            guards=(EXTENDS_ACTIVE_VISA,),
            writes=approval_writes,
            effects=_approve_effects,
        ),
        Transition(
            operation=Operation.REJECT,
            from_states=frozenset({ExtensionStatus.PENDING}),
            to_state=ExtensionStatus.REJECTED,
            action=ActionCode.VISA_REJECT,
            writes=reason_writes,
        ),
    ),
)
