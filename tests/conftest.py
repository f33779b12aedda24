"""
Shared fixtures: a throwaway SQLite store seeded with a small property.

    Deluxe Room (capacity 2):  101, 102, 103 (maintenance)
    Family Suite (capacity 4): 201
"""

from __future__ import annotations

import os

# Configuration is read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "*")
os.environ.setdefault("PROPERTY_NAME", "Lakeside Lodge")

from datetime import date
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert
from sqlalchemy.engine import Engine

from lodge_reservations.db.engine import build_engine
from lodge_reservations.dependencies import get_db_engine, get_publisher
from lodge_reservations.events import EVENT_TYPES, EventPublisher
from lodge_reservations.main import app
from lodge_reservations.models.base import Base
from lodge_reservations.models.channels import ChannelConnection, ChannelRoomMapping  # noqa: F401
from lodge_reservations.models.reservations import Reservation  # noqa: F401
from lodge_reservations.models.rooms import ROOM_MAINTENANCE, Room, RoomType
from lodge_reservations.schemas.reservations import ReservationDraft

DELUXE = "rt-deluxe"
FAMILY = "rt-family"

ROOMS = [
    {"id": "room-101", "room_number": "101", "room_type_id": DELUXE},
    {"id": "room-102", "room_number": "102", "room_type_id": DELUXE},
    {"id": "room-103", "room_number": "103", "room_type_id": DELUXE, "status": ROOM_MAINTENANCE},
    {"id": "room-201", "room_number": "201", "room_type_id": FAMILY},
]


@pytest.fixture
def engine(tmp_path: Any) -> Generator[Engine, None, None]:
    """Empty schema in a per-test SQLite file, seeded with room types and rooms."""
    test_engine = build_engine(f"sqlite:///{tmp_path}/lodge.db")
    Base.metadata.create_all(test_engine)

    with test_engine.begin() as conn:
        conn.execute(
            insert(RoomType),
            [
                {"id": DELUXE, "name": "Deluxe Room", "capacity": 2, "base_price": 120},
                {"id": FAMILY, "name": "Family Suite", "capacity": 4, "base_price": 210},
            ],
        )
        for room in ROOMS:
            conn.execute(insert(Room).values(**room))

    yield test_engine

    test_engine.dispose()


class RecordingPublisher(EventPublisher):
    """Publisher that also keeps every event it delivered."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, dict[str, Any]]] = []
        for event_type in EVENT_TYPES:
            self.subscribe(event_type, lambda name, payload: self.events.append((name, payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def make_draft() -> Callable[..., ReservationDraft]:
    """Factory for reservation drafts with sensible defaults."""

    def _make(
        room_id: str = "room-101",
        check_in: date = date(2025, 1, 10),
        check_out: date = date(2025, 1, 15),
        guest_name: str = "Ana Silva",
        **kwargs: Any,
    ) -> ReservationDraft:
        return ReservationDraft(
            room_id=room_id,
            guest_name=guest_name,
            check_in=check_in,
            check_out=check_out,
            **kwargs,
        )

    return _make


@pytest.fixture
def client(engine: Engine, publisher: RecordingPublisher) -> Generator[TestClient, None, None]:
    """API client wired to the test store and publisher."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    app.dependency_overrides[get_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()
