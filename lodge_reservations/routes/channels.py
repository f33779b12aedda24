from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.engine import Engine

from lodge_reservations.config import DRY_RUN
from lodge_reservations.dependencies import get_db_engine
from lodge_reservations.errors import ReservationEngineError
from lodge_reservations.schemas.channels import (
    ChannelConnectionPayload,
    ChannelMappingPayload,
    ChannelTogglePayload,
)
from lodge_reservations.services import channel_export
from lodge_reservations.services.channel_sync import sync_all_mappings

logger = structlog.get_logger(__name__)
router = APIRouter()

CALENDAR_MEDIA_TYPE = "text/calendar; charset=utf-8"


@router.get("/export", response_class=Response)
def export_calendar(
    token: Optional[str] = Query(None, description="Export token of a channel mapping"),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    """
    Public iCal feed of busy periods for the room type behind ``token``.

    Carries no guest data. 400 without a token, 404 for an unknown token.
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing export token")

    try:
        body = channel_export.render_export_feed(engine, token)
        return Response(content=body, media_type=CALENDAR_MEDIA_TYPE)
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_export_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/sync-channels")
def sync_channels(
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Import every active channel mapping now.

    Used by the "Sync All" button and by cron. Per-mapping failures are
    reported in ``results`` and never fail the request.
    """
    use_dry_run = DRY_RUN if dry_run is None else dry_run
    try:
        summary = sync_all_mappings(engine, dry_run=use_dry_run)
        logger.info("sync_triggered", dry_run=use_dry_run, **{k: summary[k] for k in ("synced", "failed")})
        return summary
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("sync_trigger_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/channels/connections", status_code=status.HTTP_201_CREATED)
def create_connection(
    payload: ChannelConnectionPayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return channel_export.create_connection(
            engine, payload.channel, is_active=payload.is_active, settings=payload.settings
        )
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_connection_failed", channel=payload.channel, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/channels/connections/{channel}")
def toggle_connection(
    channel: str, payload: ChannelTogglePayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return channel_export.toggle_connection(engine, channel, payload.is_active)
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_toggle_failed", channel=channel, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/channels/mappings")
def list_mappings(engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    """Mappings with their sync status and export token."""
    try:
        mappings = channel_export.list_channel_mappings(engine)
        return {"mappings": [m.snapshot() for m in mappings]}
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_mapping_listing_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/channels/mappings", status_code=status.HTTP_201_CREATED)
def create_mapping(
    payload: ChannelMappingPayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    """Map a room type to a channel calendar; the response carries the new export token."""
    try:
        mapping = channel_export.create_mapping(
            engine, payload.channel, payload.room_type_id, payload.import_url
        )
        return mapping.snapshot()
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_mapping_failed", channel=payload.channel, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/channels/mappings/{mapping_id}")
def delete_mapping(mapping_id: str, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    """Delete a mapping; recreate it to rotate the export token."""
    try:
        cancelled = channel_export.delete_mapping(engine, mapping_id)
        return {"message": f"Mapping {mapping_id} deleted", "holds_cancelled": cancelled}
    except (HTTPException, ReservationEngineError):
        raise
    except Exception as e:
        logger.exception("channel_mapping_delete_failed", mapping_id=mapping_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
