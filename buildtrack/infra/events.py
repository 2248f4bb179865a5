from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog
from sqlmodel import Session

from buildtrack.domain.models import EventEnvelope, EventRecord
from buildtrack.infra.db import engine

EventHandler = Callable[[EventEnvelope], None]

ANY_EVENT = "*"

logger = structlog.get_logger(__name__)


class EventBus:
    """Persists domain events to ``event_records`` and fans them out in-process.

    Events are published after the state change they describe has committed, so
    a subscriber that raises is logged and skipped rather than propagated.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def _store(self, event: EventEnvelope, session: Session | None) -> None:
        record = EventRecord.model_validate(event.model_dump())
        if session is not None:
            session.add(record)
            return
        with Session(engine) as own_session:
            own_session.add(record)
            own_session.commit()

    def publish(self, event: EventEnvelope, session: Session | None = None) -> None:
        """Store ``event``; when ``session`` is given the caller owns the commit."""
        self._store(event, session)
        logger.info("event_published", event_type=event.event_type, event_id=event.event_id)
        for handler in [*self._handlers.get(event.event_type, []), *self._handlers.get(ANY_EVENT, [])]:
            try:
                handler(event)
            except Exception:
                logger.exception("event_handler_failed", event_type=event.event_type, event_id=event.event_id)

    def publish_dict(
        self,
        event_type: str,
        organization_id: str,
        payload: dict[str, Any],
        *,
        actor_id: str | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(
            event_type=event_type,
            organization_id=organization_id,
            actor_id=actor_id,
            payload=payload,
        )
        self.publish(event)
        return event


event_bus = EventBus()
