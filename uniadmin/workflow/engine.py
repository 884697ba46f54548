"""
Table-driven workflow engine.

`WorkflowEngine.transition` is the only code path that writes an entity's
`status`. Order of checks:

1. entity exists                              -> NotFound
2. operation defined for this entity kind     -> InvalidTransition
3. action gate on the operation's action      -> Forbidden
4. current status is a legal source           -> InvalidTransition
5. ownership guard (when declared)            -> Forbidden
6. per-entity guards                          -> ValidationFailed / Conflict,
   or InvalidTransition when the status moved while they ran
7. conditional UPDATE ... WHERE status = observed, plus side effects,
   in one transaction; zero rows updated      -> InvalidTransition
8. commit, then publish one TransitionEvent

Two concurrent callers may both pass step 4, but only one conditional update
matches the observed status; the other rolls back with InvalidTransition.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from uniadmin.errors import Conflict, Forbidden, InvalidTransition, NotFound, StorageUnavailable, ValidationFailed
from uniadmin.models.enums import EntityKind, Operation
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.workflow.definition import Transition, TransitionContext, Workflow
from uniadmin.workflow.events import EventBus, TransitionEvent

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.utcnow()


class WorkflowEngine:
    def __init__(
        self,
        workflow: Workflow,
        gate: ActionGate,
        bus: EventBus,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.workflow = workflow
        self._gate = gate
        self._bus = bus
        self._clock = clock

    @property
    def kind(self) -> EntityKind:
        return self.workflow.kind

    def transition(
        self,
        db: Session,
        entity_id: int,
        operation: Operation,
        principal: Principal,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        model = self.workflow.model
        kind = self.workflow.kind.value

        entity = db.get(model, entity_id)
        if entity is None:
            raise NotFound(f"{kind} {entity_id} not found")

        transition = self.workflow.transition_for(operation)
        if transition is None:
            raise InvalidTransition(kind, entity_id, entity.status.value, operation.value)

        self._gate.check(transition.action, principal)

        observed = entity.status
        if observed not in transition.from_states:
            logger.info(
                "Invalid transition kind=%s id=%s status=%s operation=%s user_id=%s",
                kind,
                entity_id,
                observed.value,
                operation.value,
                principal.id,
            )
            raise InvalidTransition(kind, entity_id, observed.value, operation.value)

        now = self._clock()
        ctx = TransitionContext(
            db=db,
            entity=entity,
            principal=principal,
            operation=operation,
            params=dict(params or {}),
            now=now,
        )

        self._check_ownership(transition, ctx)
        try:
            for guard in transition.guards:
                guard.check(ctx)
        except (ValidationFailed, Conflict):
            # A guard may read rows a concurrent winner has already changed.
            self._raise_if_moved(db, ctx, observed)
            raise

        self._apply(db, transition, ctx, observed)

        if transition.changes_status:
            event = TransitionEvent(
                entity_kind=kind,
                entity_id=entity_id,
                operation=operation.value,
                from_status=observed.value,
                to_status=transition.to_state.value,
                actor_id=principal.id,
                occurred_at=now,
                extra=self._event_extra(ctx),
            )
            logger.info(
                "Transition kind=%s id=%s %s -> %s operation=%s user_id=%s",
                kind,
                entity_id,
                event.from_status,
                event.to_status,
                event.operation,
                principal.id,
            )
            self._bus.publish(event)
        else:
            logger.info("Edited kind=%s id=%s operation=%s user_id=%s", kind, entity_id, operation.value, principal.id)

        db.refresh(entity)
        return entity

    # ---- Steps -----------------------------------------------------------------------

    def _check_ownership(self, transition: Transition, ctx: TransitionContext) -> None:
        if transition.ownership is None:
            return
        if ctx.entity.created_by_id == ctx.principal.id:
            return
        override = transition.ownership.override
        if override is not None and ctx.principal.has(override.value):
            return
        logger.info(
            "Ownership guard denied kind=%s id=%s operation=%s user_id=%s",
            self.workflow.kind.value,
            ctx.entity.id,
            ctx.operation.value,
            ctx.principal.id,
        )
        raise Forbidden(f"Only the creator may {ctx.operation.value} this {self.workflow.kind.value}")

    def _raise_if_moved(self, db: Session, ctx: TransitionContext, observed: Any) -> None:
        model = self.workflow.model
        current = db.scalar(select(model.status).where(model.id == ctx.entity.id))
        if current != observed:
            logger.info(
                "Lost transition race kind=%s id=%s expected_status=%s operation=%s",
                self.workflow.kind.value,
                ctx.entity.id,
                observed.value,
                ctx.operation.value,
            )
            raise InvalidTransition(self.workflow.kind.value, ctx.entity.id, observed.value, ctx.operation.value)

    def _apply(self, db: Session, transition: Transition, ctx: TransitionContext, observed: Any) -> None:
        model = self.workflow.model
        values: dict[str, Any] = dict(transition.writes(ctx)) if transition.writes is not None else {}
        if transition.changes_status:
            values["status"] = transition.to_state
        values["updated_at"] = ctx.now

        stmt = (
            update(model)
            .where(model.id == ctx.entity.id, model.status == observed)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        try:
            result = db.execute(stmt)
            if result.rowcount != 1:
                # Another transaction moved the entity out of the observed status.
                logger.info(
                    "Lost transition race kind=%s id=%s expected_status=%s operation=%s",
                    self.workflow.kind.value,
                    ctx.entity.id,
                    observed.value,
                    ctx.operation.value,
                )
                raise InvalidTransition(self.workflow.kind.value, ctx.entity.id, observed.value, ctx.operation.value)
            if transition.effects is not None:
                transition.effects(ctx)
            db.commit()
        except (OperationalError, InterfaceError, DisconnectionError) as exc:
            db.rollback()
            logger.error("Storage failure during transition kind=%s id=%s", self.workflow.kind.value, ctx.entity.id)
            raise StorageUnavailable("Workflow storage unavailable") from exc
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def _event_extra(ctx: TransitionContext) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        for key in ("reason", "translated_file_url"):
            value = ctx.params.get(key)
            if value:
                extra[key] = value
        return extra


class WorkflowRegistry:
    """One engine per entity kind, built once at startup and shared by requests."""

    def __init__(self, engines: Mapping[EntityKind, WorkflowEngine]) -> None:
        self._engines = dict(engines)

    def __getitem__(self, kind: EntityKind) -> WorkflowEngine:
        return self._engines[kind]

    def __contains__(self, kind: object) -> bool:
        return kind in self._engines

    def kinds(self) -> frozenset[EntityKind]:
        return frozenset(self._engines)
