"""
Translate engine errors into HTTP responses.

    ValidationError        -> 422
    NotFound               -> 404
    ConflictError          -> 409 (code availability_conflict / channel_conflict)
    InvalidTransition      -> 409
    PartialGroupFailure    -> 500 with committed/failed/compensated lines
    SyncMappingError       -> 502
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from lodge_reservations.errors import (
    ConflictError,
    InvalidTransition,
    NotFound,
    PartialGroupFailure,
    ReservationEngineError,
    SyncMappingError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES: list[tuple[type[ReservationEngineError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (PartialGroupFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (SyncMappingError, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(error: ReservationEngineError) -> int:
    for error_type, code in STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def engine_error_handler(request: Request, exc: ReservationEngineError) -> JSONResponse:
    code = status_code_for(exc)
    log = logger.error if code >= 500 else logger.info
    log(
        "request_rejected",
        path=request.url.path,
        status_code=code,
        error_code=exc.code,
        detail=str(exc),
    )
    return JSONResponse(status_code=code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationEngineError, engine_error_handler)
