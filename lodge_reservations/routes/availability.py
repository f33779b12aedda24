from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from lodge_reservations.dependencies import get_db_engine
from lodge_reservations.errors import ReservationEngineError
from lodge_reservations.services.availability import (
    availability_by_room_type,
    check_availability,
    count_available,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/availability")
def get_availability(
    room_id: str = Query(..., description="Room to check"),
    check_in: date = Query(..., description="First night"),
    check_out: date = Query(..., description="Departure date"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Check whether one room is free for a stay.

    Returns the decision and, when the room is not free, why: maintenance,
    internal_conflict, channel_conflict, unknown_room or read_error.
    """
    try:
        return check_availability(engine, room_id, check_in, check_out).snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("availability_check_failed", room_id=room_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/availability/room-types/{room_type_id}/count")
def get_available_count(
    room_type_id: str,
    check_in: Optional[date] = Query(None, description="First night; omit for 'available now'"),
    check_out: Optional[date] = Query(None, description="Departure date"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Count free rooms of a type.

    Without dates the count means "not occupied today".
    """
    try:
        available = count_available(engine, room_type_id, check_in, check_out)
        return {
            "room_type_id": room_type_id,
            "check_in": check_in.isoformat() if check_in else None,
            "check_out": check_out.isoformat() if check_out else None,
            "available": available,
        }
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("availability_count_failed", room_type_id=room_type_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/availability/search")
def search_availability(
    check_in: date = Query(..., description="First night"),
    check_out: date = Query(..., description="Departure date"),
    guests: int = Query(1, ge=1, description="Guests that must fit in one room"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Free rooms per room type for a stay, for the public booking page."""
    try:
        results = availability_by_room_type(engine, check_in, check_out, guests=guests)
        return {
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
            "guests": guests,
            "room_types": [r.snapshot() for r in results],
        }
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("availability_search_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
