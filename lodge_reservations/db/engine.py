"""
SQLAlchemy engine singleton with production-ready connection pooling.

The module-level ``engine`` is built from DATABASE_URL. ``build_engine`` is
also used directly by tests and scripts that need an engine for another URL
(for example a throwaway SQLite file).
"""

from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from lodge_reservations.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    PostgreSQL gets a sized connection pool; SQLite gets a thread-shareable
    connection because the booking services are called from worker threads.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL (development only)

    Returns:
        Engine: configured SQLAlchemy engine
    """
    kwargs: dict[str, Any] = {"future": True, "echo": echo}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=10,  # Number of connections to maintain in the pool
            max_overflow=20,  # Additional connections when pool is exhausted
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,  # Recycle connections after 1 hour
        )

    return create_engine(url, **kwargs)


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Engine | None = None) -> bool:
    """
    Check if database engine is healthy and connections are working.

    Used by the /ready endpoint before allowing traffic to the service.

    Args:
        target: Engine to check (defaults to the module engine)

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
