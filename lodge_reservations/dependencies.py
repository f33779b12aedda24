"""
FastAPI dependency injection providers.

Routes receive the engine and the event publisher through ``Depends`` so that
tests can swap them with ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from lodge_reservations.db.engine import engine
from lodge_reservations.events import EventPublisher, publisher


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> test_engine = build_engine(f"sqlite:///{tmp_path}/test.db")
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
        >>> client = TestClient(app)
        >>> client.get("/availability", params={...})
    """
    yield engine


def get_publisher() -> EventPublisher:
    """Provide the process-wide event publisher."""
    return publisher
