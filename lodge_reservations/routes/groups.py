from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from lodge_reservations.dependencies import get_db_engine, get_publisher
from lodge_reservations.errors import ReservationEngineError
from lodge_reservations.events import EventPublisher
from lodge_reservations.schemas.groups import GroupBookingPayload
from lodge_reservations.schemas.reservations import ReservationDraft, ReservationOut
from lodge_reservations.services import groups

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/groups", status_code=status.HTTP_201_CREATED)
def create_group_booking(
    payload: GroupBookingPayload,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    """
    Book several rooms under one group and billing contact.

    A failure after some rooms were written responds 500 with
    ``partial_group_failure`` naming committed, failed and compensated rooms.
    """
    try:
        result = groups.create_group(
            engine,
            payload.lines,
            billing_contact=payload.billing_contact.model_dump(exclude_none=True),
            additional_charges=payload.charges_as_dicts(),
            discount=payload.discount.model_dump(exclude_none=True) if payload.discount else None,
            publisher=publisher,
        )
        return result.snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("group_booking_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/groups/{group_id}")
def get_group(group_id: str, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    try:
        members = groups.list_group(engine, group_id)
        primary = members[0]
        return {
            "group_id": group_id,
            "group_reference": primary.group_reference,
            "billing_contact": primary.billing_contact,
            "reservations": [m.snapshot() for m in members],
        }
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("group_lookup_failed", group_id=group_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/groups/{group_id}/members",
    status_code=status.HTTP_201_CREATED,
    response_model=ReservationOut,
)
def add_group_member(
    group_id: str,
    payload: ReservationDraft,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    try:
        return groups.add_to_group(engine, group_id, payload, publisher=publisher).snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("group_member_add_failed", group_id=group_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/groups/members/{reservation_id}")
def remove_group_member(
    reservation_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    """Cancel a member and detach it from its group."""
    try:
        return groups.remove_from_group(engine, reservation_id, publisher=publisher)
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("group_member_remove_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/groups/{group_id}/check-out")
def check_out_group(
    group_id: str,
    engine: Engine = Depends(get_db_engine),
    publisher: EventPublisher = Depends(get_publisher),
) -> dict[str, Any]:
    """Check out every member together; refused until all members are checked in."""
    try:
        records = groups.group_check_out(engine, group_id, publisher=publisher)
        return {"group_id": group_id, "reservations": [r.snapshot() for r in records]}
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("group_check_out_failed", group_id=group_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
