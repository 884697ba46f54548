"""
Shared plumbing for the entity services.

A service wraps one entity kind: it gates creation on the kind's `create`
action, narrows reads with the caller's view scope, and delegates every status
change and field edit to the kind's workflow engine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import func, select
from sqlalchemy.exc import DisconnectionError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from uniadmin.errors import Conflict, NotFound, StorageUnavailable
from uniadmin.models.enums import EntityKind, Operation
from uniadmin.security.actions import ActionCode
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.security.scope import view_scope_for
from uniadmin.workflow.engine import WorkflowRegistry, utcnow
from uniadmin.workflow.events import EntityCreated, EventBus

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)

VIEW_SCOPE_KEY = "view_scope"


@contextmanager
def scoped(db: Session, kind: EntityKind, principal: Principal) -> Iterator[None]:
    """Attach the caller's view scope to `db` for the duration of a read."""

    scope = view_scope_for(kind, principal)
    previous = db.info.get(VIEW_SCOPE_KEY)
    db.info[VIEW_SCOPE_KEY] = scope
    try:
        yield
    finally:
        if previous is None:
            db.info.pop(VIEW_SCOPE_KEY, None)
        else:
            db.info[VIEW_SCOPE_KEY] = previous


class EntityService:
    kind: ClassVar[EntityKind]
    model: ClassVar[type]
    create_action: ClassVar[ActionCode]

    def __init__(
        self,
        db: Session,
        registry: WorkflowRegistry,
        bus: EventBus,
        gate: ActionGate | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.registry = registry
        self.bus = bus
        self.gate = gate or ActionGate()
        self.clock = clock

    # ---- Reads -----------------------------------------------------------------------

    def list_visible(self, principal: Principal, status: Any = None) -> list[Any]:
        stmt = select(self.model).order_by(self.model.id.desc())
        if status is not None:
            stmt = stmt.where(self.model.status == status)
        with scoped(self.db, self.kind, principal):
            return list(self.db.scalars(stmt).all())

    def get(self, principal: Principal, entity_id: int) -> Any:
        # A SELECT (not Session.get) so the scope criteria apply even to rows already in the identity map.
        with scoped(self.db, self.kind, principal):
            entity = self.db.scalars(select(self.model).where(self.model.id == entity_id)).first()
        if entity is None:
            raise NotFound(f"{self.kind.value} {entity_id} not found")
        return entity

    def status_counts(self, principal: Principal) -> dict[str, int]:
        stmt = select(self.model.status, func.count()).group_by(self.model.status)
        with scoped(self.db, self.kind, principal):
            rows = self.db.execute(stmt).all()
        return {status.value: count for status, count in rows}

    # ---- Writes ----------------------------------------------------------------------

    def transition(
        self,
        principal: Principal,
        entity_id: int,
        operation: Operation,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        return self.registry[self.kind].transition(self.db, entity_id, operation, principal, params)

    def edit(self, principal: Principal, entity_id: int, changes: Mapping[str, Any]) -> Any:
        return self.transition(principal, entity_id, Operation.UPDATE, {"changes": dict(changes)})

    def _stamp(self, entity: Any, principal: Principal) -> None:
        now = self.clock()
        entity.created_by_id = principal.id
        entity.unit_id = principal.unit_id
        entity.created_at = now
        entity.updated_at = now

    def _insert(
        self,
        entity: Any,
        principal: Principal,
        on_integrity_error: Callable[[IntegrityError], Exception] | None = None,
        kind: EntityKind | None = None,
    ) -> Any:
        """Add and commit a new entity (plus anything cascaded from it), then publish `EntityCreated`."""

        kind = kind or self.kind
        self.db.add(entity)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if on_integrity_error is None:
                raise Conflict(f"{kind.value} conflicts with an existing record") from exc
            raise on_integrity_error(exc) from exc
        except STORAGE_ERRORS as exc:
            self.db.rollback()
            logger.error("Storage failure creating %s", kind.value)
            raise StorageUnavailable("Workflow storage unavailable") from exc

        self.db.refresh(entity)
        logger.info("Created kind=%s id=%s user_id=%s", kind.value, entity.id, principal.id)
        self.bus.publish(
            EntityCreated(
                entity_kind=kind.value,
                entity_id=entity.id,
                status=entity.status.value,
                actor_id=principal.id,
                occurred_at=entity.created_at,
            )
        )
        return entity
