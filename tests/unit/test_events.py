"""
Unit tests for the in-process event publisher.
"""

from __future__ import annotations

from typing import Any

import pytest

from lodge_reservations.events import CHECKED_IN, CHECKED_OUT, EventPublisher


@pytest.mark.unit
def test_subscribers_receive_only_their_event() -> None:
    publisher = EventPublisher()
    received: list[tuple[str, dict[str, Any]]] = []
    publisher.subscribe(CHECKED_IN, lambda name, payload: received.append((name, payload)))

    publisher.publish(CHECKED_IN, {"id": "r-1"})
    publisher.publish(CHECKED_OUT, {"id": "r-1"})

    assert received == [(CHECKED_IN, {"id": "r-1"})]


@pytest.mark.unit
def test_failing_subscriber_does_not_stop_others() -> None:
    publisher = EventPublisher()
    received: list[str] = []

    def broken(name: str, payload: dict[str, Any]) -> None:
        raise RuntimeError("mail server down")

    publisher.subscribe(CHECKED_OUT, broken)
    publisher.subscribe(CHECKED_OUT, lambda name, payload: received.append(payload["id"]))

    publisher.publish(CHECKED_OUT, {"id": "r-2"})

    assert received == ["r-2"]


@pytest.mark.unit
def test_unsubscribe_and_unknown_event() -> None:
    publisher = EventPublisher()
    received: list[str] = []
    unsubscribe = publisher.subscribe(CHECKED_IN, lambda name, payload: received.append(name))

    unsubscribe()
    publisher.publish(CHECKED_IN, {})

    assert received == []
    with pytest.raises(ValueError):
        publisher.subscribe("RoomPainted", lambda name, payload: None)
