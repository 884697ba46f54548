"""
Workflow state machine definitions (``uniadmin.workflow.definition``).

Pure value objects. One `Workflow` per entity kind declares its status enum,
initial and terminal statuses, and a table of `Transition`s keyed by
operation. Each transition maps a set of legal source statuses to a single
target status and names exactly one required action code.

Invariants enforced at construction (`WorkflowDefinitionError`):
* every source/target status belongs to ``states``;
* ``initial_state`` belongs to ``states``;
* terminal states have no outgoing transitions;
* an operation appears at most once per workflow.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from uniadmin.models.enums import EntityKind, Operation
from uniadmin.security.actions import ActionCode

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from uniadmin.security.principal import Principal


class WorkflowDefinitionError(ValueError):
    """Raised when a transition table is inconsistent."""


@dataclass(frozen=True)
class TransitionContext:
    """Everything a guard, field writer or side effect may look at."""

    db: Session
    entity: Any
    principal: Principal
    operation: Operation
    params: Mapping[str, Any]
    now: datetime

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)


@dataclass(frozen=True)
class Guard:
    """A precondition evaluated after the status check; `check` raises on failure."""

    name: str
    description: str
    check: Callable[[TransitionContext], None]


@dataclass(frozen=True)
class Ownership:
    """Only the entity's creator passes, unless the caller holds `override`."""

    override: ActionCode | None = None


@dataclass(frozen=True)
class Transition:
    """
    One row of a transition table.

    ``to_state=None`` marks a field edit: the status must be in ``from_states``
    but is left unchanged and no transition event is published.
    """

    operation: Operation
    from_states: frozenset[Enum]
    to_state: Enum | None
    action: ActionCode
    ownership: Ownership | None = None
    guards: tuple[Guard, ...] = ()
    writes: Callable[[TransitionContext], dict[str, Any]] | None = None
    effects: Callable[[TransitionContext], None] | None = None
    description: str = ""

    @property
    def changes_status(self) -> bool:
        return self.to_state is not None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one entity kind."""

    kind: EntityKind
    model: type
    initial_state: Enum
    states: tuple[Enum, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[Enum, ...] = ()
    _by_operation: dict[Operation, Transition] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        states = set(self.states)
        if self.initial_state not in states:
            raise WorkflowDefinitionError(f"{self.kind.value}: initial state {self.initial_state} not in states")

        unknown_terminal = set(self.terminal_states) - states
        if unknown_terminal:
            raise WorkflowDefinitionError(f"{self.kind.value}: unknown terminal states {sorted(s.value for s in unknown_terminal)}")

        for t in self.transitions:
            if t.operation in self._by_operation:
                raise WorkflowDefinitionError(f"{self.kind.value}: duplicate operation {t.operation.value!r}")
            if not t.from_states:
                raise WorkflowDefinitionError(f"{self.kind.value}.{t.operation.value}: empty source status set")
            unknown = set(t.from_states) - states
            if unknown:
                raise WorkflowDefinitionError(
                    f"{self.kind.value}.{t.operation.value}: unknown source states {sorted(s.value for s in unknown)}"
                )
            if t.to_state is not None and t.to_state not in states:
                raise WorkflowDefinitionError(f"{self.kind.value}.{t.operation.value}: unknown target state {t.to_state}")
            leaving_terminal = set(t.from_states) & set(self.terminal_states)
            if leaving_terminal:
                raise WorkflowDefinitionError(
                    f"{self.kind.value}.{t.operation.value}: terminal states cannot have outgoing transitions"
                )
            self._by_operation[t.operation] = t

    @property
    def operations(self) -> frozenset[Operation]:
        return frozenset(self._by_operation)

    def transition_for(self, operation: Operation) -> Transition | None:
        return self._by_operation.get(operation)

    def is_legal(self, status: Enum, operation: Operation) -> bool:
        t = self._by_operation.get(operation)
        return t is not None and status in t.from_states

    def table(self) -> dict[tuple[Enum, Operation], tuple[ActionCode, Enum | None]]:
        """Flattened `(status, operation) -> (required action, next status)` view."""

        rows: dict[tuple[Enum, Operation], tuple[ActionCode, Enum | None]] = {}
        for t in self.transitions:
            for source in t.from_states:
                rows[(source, t.operation)] = (t.action, t.to_state if t.to_state is not None else source)
        return rows
