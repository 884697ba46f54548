"""
Notification collaborator.

Subscribes to the workflow event bus and turns events into notifications.
Delivery is log-only; `sent` keeps what was produced so callers and tests can
inspect it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from uniadmin.workflow.events import EntityCreated, EventBus, TransitionEvent, VisaExpiring

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    recipient_id: int | None
    subject: str
    body: str


class LoggingNotifier:
    def __init__(self, max_kept: int = 500) -> None:
        self.sent: list[Notification] = []
        self._max_kept = max_kept

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(TransitionEvent, self.on_transition)
        bus.subscribe(EntityCreated, self.on_created)
        bus.subscribe(VisaExpiring, self.on_visa_expiring)

    def on_transition(self, event: TransitionEvent) -> None:
        subject = f"{event.entity_kind} {event.entity_id} is now {event.to_status}"
        body = f"{event.operation} by user {event.actor_id} ({event.from_status} -> {event.to_status})"
        reason = event.extra.get("reason")
        if reason:
            body = f"{body}: {reason}"
        self._send(Notification(recipient_id=None, subject=subject, body=body))

    def on_created(self, event: EntityCreated) -> None:
        self._send(
            Notification(
                recipient_id=event.actor_id,
                subject=f"{event.entity_kind} {event.entity_id} created",
                body=f"Initial status {event.status}",
            )
        )

    def on_visa_expiring(self, event: VisaExpiring) -> None:
        self._send(
            Notification(
                recipient_id=event.created_by_id,
                subject=f"Visa {event.visa_number} expires in {event.days_left} days",
                body=f"Visa of {event.holder_name} expires on {event.expiration_date.isoformat()}",
            )
        )

    def _send(self, notification: Notification) -> None:
        logger.info("Notify recipient_id=%s subject=%s", notification.recipient_id, notification.subject)
        self.sent.append(notification)
        if len(self.sent) > self._max_kept:
            del self.sent[: len(self.sent) - self._max_kept]
