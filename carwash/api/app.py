"""
FastAPI application entry point with health check route.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from carwash.api.middleware import (
    AppException,
    CorrelationIdMiddleware,
    app_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from carwash.api.routes import auth, availability, bookings, cron, reminders, services, staff, tracking
from carwash.jobs.reminder_runner import register_reminder_jobs
from carwash.jobs.scheduler import get_scheduler
from carwash.lib.logging import get_logger, setup_logging
from carwash.lib.metrics import get_metrics_collector
from carwash.lib.settings import settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    # Startup
    setup_logging("DEBUG" if settings.debug else "INFO")
    logger.info(f"{settings.app_name} starting up...")

    scheduler = None
    if settings.reminder_scheduler_enabled:
        scheduler = get_scheduler()
        register_reminder_jobs(scheduler)
        scheduler.start()

    yield

    # Shutdown
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Car wash bookings: availability, live progress tracking and reminders",
    lifespan=lifespan,
)


# CORS middleware - configure allowed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)


# Correlation ID middleware
app.add_middleware(CorrelationIdMiddleware)


# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# Include routers
app.include_router(auth.router)
app.include_router(services.router)
app.include_router(availability.router)
app.include_router(reminders.router)
app.include_router(bookings.router)
app.include_router(tracking.router)
app.include_router(staff.router)
app.include_router(cron.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.

    Metrics exposed:
    - booking_reminders_sent_total: Reminder deliveries by type, channel and status
    - availability_checks_total: Availability lookups by mode (single, batch)
    - booking_transitions_total: Booking status changes by from/to status

    Returns:
        Prometheus text format metrics
    """
    metrics = get_metrics_collector()
    return PlainTextResponse(
        content=metrics.export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
