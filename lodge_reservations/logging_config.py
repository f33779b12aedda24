from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping

import structlog

from lodge_reservations.config import LOG_FORMAT, LOG_LEVEL, PROPERTY_NAME

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Libraries whose INFO output drowns booking and sync events
QUIET_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "alembic", "uvicorn.access")


def add_property(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Tag every event with the property it belongs to."""
    event_dict.setdefault("property", PROPERTY_NAME)
    return event_dict


def _renderer() -> Processor:
    if LOG_FORMAT == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging() -> None:
    """
    Configure structlog for the API, the sync poller and the scripts.

    JSON lines by default; ``LOG_FORMAT=console`` (or ``LOG_LEVEL=DEBUG``)
    switches to the coloured development renderer. Request ids bound by the
    middleware come through ``merge_contextvars``.
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=LOG_LEVEL,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_property,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if LOG_FORMAT == "console":
        processors.append(structlog.dev.set_exc_info)
    else:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
