"""
Unit tests for per-resource locks.
"""

from __future__ import annotations

import threading
import time

import pytest

from lodge_reservations.services.locks import LockRegistry


@pytest.mark.unit
def test_same_key_serializes() -> None:
    """Two holders of one key never run their critical sections at once."""
    registry = LockRegistry("test")
    inside = 0
    max_inside = 0
    guard = threading.Lock()

    def worker() -> None:
        nonlocal inside, max_inside
        with registry.hold("room-101"):
            with guard:
                inside += 1
                max_inside = max(max_inside, inside)
            time.sleep(0.01)
            with guard:
                inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert max_inside == 1


@pytest.mark.unit
def test_different_keys_do_not_block() -> None:
    registry = LockRegistry("test")
    with registry.hold("room-101"):
        acquired = threading.Event()

        def other() -> None:
            with registry.hold("room-102"):
                acquired.set()

        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(timeout=1.0)
        t.join()


@pytest.mark.unit
def test_hold_many_releases_everything() -> None:
    registry = LockRegistry("test")
    with registry.hold_many(["b", "a", "b"]):
        assert registry.size() == 2

    # Re-acquirable without blocking
    with registry.hold("a"), registry.hold("b"):
        pass


@pytest.mark.unit
def test_hold_many_releases_on_error() -> None:
    registry = LockRegistry("test")
    with pytest.raises(RuntimeError):
        with registry.hold_many(["a", "b"]):
            raise RuntimeError("boom")

    with registry.hold_many(["a", "b"]):
        pass
