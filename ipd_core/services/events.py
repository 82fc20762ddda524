# FILE: ipd_core/services/events.py
"""
In-process domain events for notification / dashboard subscribers.

Events are published only after the transaction that produced them has
committed. A failing subscriber is logged and skipped: the state change it
reports is already durable.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

from ipd_core.utils.timezone import now_utc_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=now_utc_naive, kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


@dataclass(frozen=True)
class PatientAdmitted(DomainEvent):
    encounter_id: int
    bed_id: int
    bed_type: str


@dataclass(frozen=True)
class PatientTransferred(DomainEvent):
    encounter_id: int
    from_bed_id: int
    to_bed_id: int


@dataclass(frozen=True)
class BedReleased(DomainEvent):
    encounter_id: int
    bed_id: int


@dataclass(frozen=True)
class PatientDischarged(DomainEvent):
    encounter_id: int
    bed_id: Optional[int] = None


Handler = Callable[[DomainEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)
        logger.info("Registered handler for event type: %s", event_type.__name__)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = [
                h for etype, hs in self._handlers.items()
                if isinstance(event, etype) for h in hs
            ]
        logger.debug("Publishing event: %s", event.event_type)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, event.event_type)


event_bus = EventBus()


def publish_event(event: DomainEvent) -> None:
    event_bus.publish(event)


def subscribe_to_event(event_type: Type[DomainEvent], handler: Handler) -> None:
    event_bus.subscribe(event_type, handler)
