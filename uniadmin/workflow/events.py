"""
Typed event channel between the workflow core and its collaborators.

Subscriptions are keyed by message class, not by topic strings, so a
misspelled topic cannot silently swallow events. Handlers run synchronously
after the originating transaction has committed; a failing handler is logged
and does not affect the committed transition or other handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    """Published exactly once per successful status transition."""

    entity_kind: str
    entity_id: int
    operation: str
    from_status: str
    to_status: str
    actor_id: int
    occurred_at: datetime
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityCreated:
    entity_kind: str
    entity_id: int
    status: str
    actor_id: int
    occurred_at: datetime


@dataclass(frozen=True)
class VisaExpiring:
    visa_id: int
    visa_number: str
    holder_name: str
    expiration_date: date
    days_left: int
    created_by_id: int


M = TypeVar("M")


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, message_type: type[M], handler: Callable[[M], None]) -> None:
        self._handlers.setdefault(message_type, []).append(handler)

    def publish(self, message: object) -> int:
        """Deliver `message` to every handler subscribed to its exact class. Returns the delivery count."""

        handlers = self._handlers.get(type(message), [])
        if not handlers:
            logger.debug("No subscribers for %s", type(message).__name__)

        delivered = 0
        for handler in list(handlers):
            try:
                handler(message)
                delivered += 1
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, type(message).__name__)
        return delivered
