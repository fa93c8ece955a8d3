"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from artist_booking_platform.config import settings
from artist_booking_platform.api import api_router
from artist_booking_platform.database import init_database, close_database, get_db_session, get_session_factory
from artist_booking_platform.middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    install_exception_handlers,
)
from artist_booking_platform.utils.dependencies import build_lifecycle_service
from artist_booking_platform.utils.logging_config import setup_logging

setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/artist_booking.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
    environment=settings.environment
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database and assemble the lifecycle service once per process."""
    logger.info("Starting Artist Booking Platform")
    await init_database()
    app.state.lifecycle_service = build_lifecycle_service(settings, get_session_factory())
    yield
    logger.info("Shutting down Artist Booking Platform")
    await close_database()

app = FastAPI(
    title="Artist Booking Platform API",
    description="""
    ## Artist Booking Platform

    Booking lifecycle service for appointments between customers and artists.

    ### Booking lifecycle

    `pending` → `confirmed` → `in_progress` → `completed`, with `declined` and
    `cancelled` as the other terminal statuses. Artists accept, decline, start
    and complete; customers cancel pending bookings; admins may cancel any
    booking that has not finished.

    ### Authentication

    Every endpoint expects `Authorization: Bearer <token>` issued by the
    platform's auth service. The token's `sub` claim is the acting user and its
    `role` claim is `customer`, `artist` or `admin`.

    ### Error Handling

    ```json
    {
      "error": {
        "error_code": "INVALID_TRANSITION",
        "message": "Invalid booking transition: completed -> cancelled",
        "details": {"from_status": "completed", "to_status": "cancelled"}
      },
      "error_id": "…",
      "timestamp": "…"
    }
    ```

    A transition that loses a race with another request returns `409` with
    `CONCURRENCY_CONFLICT`; reload the booking and retry.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "bookings",
            "description": "Booking creation and status transitions"
        },
        {
            "name": "health",
            "description": "System health and monitoring endpoints"
        }
    ],
    lifespan=lifespan,
)

# Outermost middleware is added last
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging,
    log_responses=settings.enable_request_logging
)

if settings.debug:
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

install_exception_handlers(app)
app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    return {
        "message": "Artist Booking Platform API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness check."""
    return {"status": "healthy", "service": "artist-booking-platform"}


@app.get("/health/detailed", tags=["health"])
async def detailed_health_check():
    """Readiness check: database connectivity and circuit breaker states."""
    checks = {}
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"

    service = getattr(app.state, "lifecycle_service", None)
    breakers = {}
    if service is not None and service.payments.breaker is not None:
        breakers["payment"] = service.payments.breaker.get_stats()

    return {
        "status": "healthy" if checks["database"] == "healthy" else "degraded",
        "checks": checks,
        "circuit_breakers": breakers,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
