"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP lodge_reservation_writes_total Reservation write attempts by operation and outcome
        # TYPE lodge_reservation_writes_total counter
        lodge_reservation_writes_total{operation="create",outcome="success"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose booking, availability and channel sync metrics for scraping."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
