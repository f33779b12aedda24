from typing import Any, Callable, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from lodge_reservations.db.readers.reservations import list_reservations as read_reservations
from lodge_reservations.dependencies import get_db_engine, get_publisher
from lodge_reservations.errors import ReservationEngineError, ValidationError
from lodge_reservations.events import EventPublisher
from lodge_reservations.models.reservations import STATUSES
from lodge_reservations.schemas.reservations import ReservationDraft, ReservationOut
from lodge_reservations.services import booking
from lodge_reservations.services.conflicts import find_conflicts_in_store
from lodge_reservations.services.dedup import find_duplicates, resolve

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED, response_model=ReservationOut)
def create_reservation(
    payload: ReservationDraft,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    """
    Book one room.

    Responds 409 with ``availability_conflict`` when another reservation holds
    the room, or ``channel_conflict`` when an external channel does.
    """
    try:
        record = booking.create_reservation(engine, payload, publisher=publisher)
        return record.snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("reservation_creation_failed", room_id=payload.room_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations")
def list_reservations(
    status_filter: Optional[list[str]] = Query(None, alias="status", description="Statuses to include"),
    room_id: Optional[str] = Query(None, description="Only this room"),
    include_duplicates: bool = Query(False, description="Return suppressed duplicates too"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    List reservations, oldest first.

    Duplicates (same guest, room and dates) are collapsed to the record with
    the most advanced status unless ``include_duplicates`` is set.
    """
    try:
        if status_filter:
            unknown = [s for s in status_filter if s not in STATUSES]
            if unknown:
                raise ValidationError(f"Unknown status: {', '.join(unknown)}")

        with engine.connect() as conn:
            records = read_reservations(conn, statuses=status_filter, room_id=room_id)

        visible = records if include_duplicates else resolve(records)
        return {
            "count": len(visible),
            "suppressed": len(records) - len(visible),
            "reservations": [r.snapshot() for r in visible],
        }
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("reservation_listing_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/conflicts")
def list_conflicts(engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    """Overlapping holding reservations on the same room, and duplicate records."""
    try:
        pairs = find_conflicts_in_store(engine)
        with engine.connect() as conn:
            duplicates = find_duplicates(read_reservations(conn))
        return {
            "conflicts": [p.snapshot() for p in pairs],
            "duplicates": duplicates,
        }
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("conflict_listing_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


def _transition(
    action: Callable[..., Any],
    reservation_id: str,
    engine: Engine,
    publisher: EventPublisher,
) -> dict[str, Any]:
    try:
        return action(engine, reservation_id, publisher=publisher).snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_transition_failed",
            reservation_id=reservation_id,
            action=action.__name__,
            error=str(e),
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationOut)
def confirm_reservation(
    reservation_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    return _transition(booking.confirm, reservation_id, engine, publisher)


@router.post("/reservations/{reservation_id}/check-in", response_model=ReservationOut)
def check_in_reservation(
    reservation_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    return _transition(booking.check_in, reservation_id, engine, publisher)


@router.post("/reservations/{reservation_id}/check-out", response_model=ReservationOut)
def check_out_reservation(
    reservation_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    return _transition(booking.check_out, reservation_id, engine, publisher)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_reservation(
    reservation_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    return _transition(booking.cancel, reservation_id, engine, publisher)
