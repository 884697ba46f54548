from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from uniadmin.security.gate import ActionGate
from uniadmin.workflow.engine import WorkflowEngine, WorkflowRegistry, utcnow
from uniadmin.workflow.events import EventBus
from uniadmin.workflow.tables.documents import DOCUMENT_WORKFLOW
from uniadmin.workflow.tables.guests import GUEST_WORKFLOW
from uniadmin.workflow.tables.translations import TRANSLATION_WORKFLOW
from uniadmin.workflow.tables.visas import VISA_EXTENSION_WORKFLOW, VISA_WORKFLOW

ALL_WORKFLOWS = (
    DOCUMENT_WORKFLOW,
    GUEST_WORKFLOW,
    VISA_WORKFLOW,
    VISA_EXTENSION_WORKFLOW,
    TRANSLATION_WORKFLOW,
)


def build_registry(gate: ActionGate, bus: EventBus, clock: Callable[[], datetime] = utcnow) -> WorkflowRegistry:
    return WorkflowRegistry({wf.kind: WorkflowEngine(wf, gate, bus, clock=clock) for wf in ALL_WORKFLOWS})
