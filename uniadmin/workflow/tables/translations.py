"""Translation request workflow: PENDING -> APPROVED -> COMPLETED, or -> REJECTED."""

from __future__ import annotations

from typing import Any

from uniadmin.errors import ValidationFailed
from uniadmin.models.enums import EntityKind, Operation, TranslationStatus
from uniadmin.models.workflow import Translation
from uniadmin.security.actions import ActionCode
from uniadmin.workflow.definition import Guard, Ownership, Transition, TransitionContext, Workflow
from uniadmin.workflow.tables.common import REASON_REQUIRED, approval_writes, edit_writes, reason_writes

S = TranslationStatus

EDITABLE_FIELDS = ("title", "source_language", "target_language", "original_file_url", "notes")


def _require_translated_file(ctx: TransitionContext) -> None:
    url = ctx.param("translated_file_url")
    if not url or not str(url).strip():
        raise ValidationFailed("translated_file_url is required to complete a translation")


TRANSLATED_FILE_REQUIRED = Guard(
    name="translated_file_required",
    description="Completion must carry the translated file location",
    check=_require_translated_file,
)


def _complete_writes(ctx: TransitionContext) -> dict[str, Any]:
    return {"translated_file_url": ctx.param("translated_file_url"), "completed_at": ctx.now}


TRANSLATION_WORKFLOW = Workflow(
    kind=EntityKind.TRANSLATION,
    model=Translation,
    initial_state=S.PENDING,
    states=tuple(S),
    terminal_states=(S.COMPLETED, S.REJECTED),
    transitions=(
        Transition(
            operation=Operation.UPDATE,
            from_states=frozenset({S.PENDING}),
            to_state=None,
            action=ActionCode.TRANSLATION_UPDATE,
            ownership=Ownership(),
            writes=edit_writes(EDITABLE_FIELDS),
        ),
        Transition(
            operation=Operation.APPROVE,
            from_states=frozenset({S.PENDING}),
            to_state=S.APPROVED,
            action=ActionCode.TRANSLATION_APPROVE,
            writes=approval_writes,
        ),
        Transition(
            operation=Operation.COMPLETE,
            from_states=frozenset({S.APPROVED}),
            to_state=S.COMPLETED,
            action=ActionCode.TRANSLATION_COMPLETE,
            guards=(TRANSLATED_FILE_REQUIRED,),
            writes=_complete_writes,
        ),
        Transition(
            operation=Operation.REJECT,
            from_states=frozenset({S.PENDING, S.APPROVED}),
            to_state=S.REJECTED,
            action=ActionCode.TRANSLATION_REJECT,
            guards=(REASON_REQUIRED,),
            writes=reason_writes,
        ),
        Transition(
            operation=Operation.CANCEL,
            from_states=frozenset({S.PENDING}),
            to_state=S.REJECTED,
            action=ActionCode.TRANSLATION_DELETE,
            ownership=Ownership(),
            description="Requester withdraws a pending request",
        ),
    ),
)
