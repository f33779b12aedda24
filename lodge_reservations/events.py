"""
Outbound domain events consumed by notification, invoice and housekeeping
collaborators.

Events carry full snapshots so consumers never need to read the engine's
tables. Delivery is in-process and synchronous; a failing subscriber is
logged and never undoes the write that produced the event.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

RESERVATION_CREATED = "ReservationCreated"
GROUP_BOOKING_CREATED = "GroupBookingCreated"
RESERVATION_CONFIRMED = "Confirmed"
CHECKED_IN = "CheckedIn"
CHECKED_OUT = "CheckedOut"
CANCELLED = "Cancelled"

EVENT_TYPES = (
    RESERVATION_CREATED,
    GROUP_BOOKING_CREATED,
    RESERVATION_CONFIRMED,
    CHECKED_IN,
    CHECKED_OUT,
    CANCELLED,
)

Handler = Callable[[str, dict[str, Any]], None]


class EventPublisher:
    """
    Fan-out publisher for engine events.

    Example:
        >>> publisher = EventPublisher()
        >>> publisher.subscribe(CHECKED_IN, lambda name, payload: print(payload["id"]))
        >>> publisher.publish(CHECKED_IN, {"id": "r-1"})
        r-1
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one event type.

        Returns:
            Callable that removes the handler again
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event_type, []))

        logger.info("event_published", event_type=event_type, subscribers=len(handlers))

        for handler in handlers:
            try:
                handler(event_type, payload)
            except Exception as e:
                logger.exception("event_handler_failed", event_type=event_type, error=str(e))

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


# Global publisher instance
publisher = EventPublisher()
