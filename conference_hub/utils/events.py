"""In-process publish/subscribe for booking lifecycle events.

The bus lives on ``app.state`` and reaches handlers through ``get_event_bus``.
Recent events are kept in a bounded history so clients can poll for changes
after a sequence number.
"""
import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from fastapi import Request
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    BOOKING_CREATED = "booking.created"
    BOOKING_STATUS_CHANGED = "booking.status_changed"
    BOOKING_EXPIRED = "booking.expired"
    BOOKING_RELEASED = "booking.released"
    BOOKING_DELETED = "booking.deleted"
    BOOKING_CHECKED_IN = "booking.checked_in"
    INVITATIONS_CREATED = "invitations.created"
    INVITATION_RESPONDED = "invitation.responded"
    ROOM_CHANGED = "room.changed"


@dataclass
class Event:
    sequence: int
    type: EventType
    payload: Dict[str, Any]
    created_at: Any = field(default_factory=utcnow)


class EventBus:
    def __init__(self, history_size: int = 500):
        self._lock = threading.Lock()
        self._history = deque(maxlen=history_size)
        self._sequence = 0
        self._subscribers: Dict[EventType, List[Callable[[Event], None]]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable[[Event], None]):
        with self._lock:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable[[Event], None]):
        with self._lock:
            if handler in self._subscribers[event_type]:
                self._subscribers[event_type].remove(handler)

    def publish(self, event_type: EventType, **payload) -> Event:
        with self._lock:
            self._sequence += 1
            event = Event(sequence=self._sequence, type=event_type, payload=payload)
            self._history.append(event)
            handlers = list(self._subscribers[event_type])

        logger.debug(f"Published {event_type.value} #{event.sequence}: {payload}")
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # pylint: disable=broad-except
                # Subscribers never fail the request that published the event
                logger.exception(f"Subscriber {handler!r} failed on {event_type.value}")
        return event

    def since(self, sequence: int = 0, event_type: Optional[EventType] = None) -> List[Event]:
        with self._lock:
            events = [event for event in self._history if event.sequence > sequence]
        if event_type is not None:
            events = [event for event in events if event.type == event_type]
        return events


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus
