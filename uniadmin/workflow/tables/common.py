"""Helpers shared by the entity transition tables."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

from sqlalchemy import inspect

from uniadmin.errors import ValidationFailed
from uniadmin.workflow.definition import Guard, TransitionContext


def edit_writes(editable: Iterable[str]) -> Callable[[TransitionContext], dict[str, Any]]:
    """Field writer for edit operations: copies `params["changes"]`, rejecting non-editable fields and nulls in NOT NULL columns."""

    allowed = frozenset(editable)

    def writes(ctx: TransitionContext) -> dict[str, Any]:
        changes = dict(ctx.param("changes") or {})
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationFailed(f"Fields not editable: {sorted(unknown)}")
        columns = inspect(type(ctx.entity)).columns
        cleared = sorted(name for name, value in changes.items() if value is None and not columns[name].nullable)
        if cleared:
            raise ValidationFailed(f"Fields cannot be null: {cleared}")
        return changes

    return writes


def approval_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"approved_by_id": ctx.principal.id, "approved_at": ctx.now}


def reason_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"rejection_reason": ctx.param("reason")}


def _require_reason(ctx: TransitionContext) -> None:
    reason = ctx.param("reason")
    if not reason or not str(reason).strip():
        raise ValidationFailed("A reason is required")


REASON_REQUIRED = Guard(
    name="reason_required",
    description="A non-empty reason must accompany the transition",
    check=_require_reason,
)


def effective(ctx: TransitionContext, name: str) -> Any:
    """Value of `name` after an edit: the pending change if present, else the stored value."""

    changes = ctx.param("changes") or {}
    if name in changes:
        return changes[name]
    return getattr(ctx.entity, name)


def ensure_date_order(start: date | None, end: date | None, message: str) -> None:
    if start is not None and end is not None and end <= start:
        raise ValidationFailed(message)
