# lodge_reservations/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lodge_reservations.config import ALLOWED_ORIGINS
from lodge_reservations.logging_config import setup_logging
from lodge_reservations.middleware import RequestIDMiddleware
from lodge_reservations.routes.availability import router as availability_router
from lodge_reservations.routes.channels import router as channels_router
from lodge_reservations.routes.errors import register_exception_handlers
from lodge_reservations.routes.groups import router as groups_router
from lodge_reservations.routes.health import router as health_router
from lodge_reservations.routes.metrics import router as metrics_router
from lodge_reservations.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Lodge Reservations API",
    description="Room availability, group bookings and channel calendar sync",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(availability_router, tags=["Availability"])
app.include_router(reservations_router, tags=["Reservations"])
app.include_router(groups_router, tags=["Groups"])
app.include_router(channels_router, tags=["Channels"])


@app.on_event("startup")
def startup_event() -> None:
    logger.info("lodge_reservations_started")
