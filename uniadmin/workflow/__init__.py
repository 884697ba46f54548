"""
Workflow core: transition tables, the engine that enforces them, and the typed event channel.

Build a registry with `build_registry(gate, bus)`; services and routers ask it
for the engine of an entity kind and call `engine.transition(...)`.
"""

from .definition import Guard, Ownership, Transition, TransitionContext, Workflow, WorkflowDefinitionError
from .engine import WorkflowEngine, WorkflowRegistry
from .events import EntityCreated, EventBus, TransitionEvent, VisaExpiring
from .tables import ALL_WORKFLOWS, build_registry

__all__ = [
    "ALL_WORKFLOWS",
    "EntityCreated",
    "EventBus",
    "Guard",
    "Ownership",
    "Transition",
    "TransitionContext",
    "TransitionEvent",
    "VisaExpiring",
    "Workflow",
    "WorkflowDefinitionError",
    "WorkflowEngine",
    "WorkflowRegistry",
    "build_registry",
]
