# pyright: reportMissingTypeStubs=false
"""
Slot Engine Backend API

A FastAPI application exposing facility availability management and running
the availability slot background jobs.

Features:
- Availability rules and exceptions per facility and doctor
- Daily slot generation and on-demand generation
- Periodic release of expired slot reservations
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import availability
from core.config import ENABLE_SCHEDULERS
from core.constants import CORS_ORIGINS
from services.reservation_release_service import (
    start_reservation_release_scheduler, stop_reservation_release_scheduler,
)
from services.slot_generation_scheduler import start_slot_generation_scheduler, stop_slot_generation_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Slot Engine API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Slot Engine Backend API")

    if ENABLE_SCHEDULERS:
        # Note: Database sessions are created fresh for each scheduler run
        try:
            await start_slot_generation_scheduler()
            logger.info("✅ Slot generation scheduler started")
        except Exception as e:
            logger.exception(f"❌ Failed to start slot generation scheduler: {e}")

        try:
            await start_reservation_release_scheduler()
            logger.info("✅ Reservation release scheduler started")
        except Exception as e:
            logger.exception(f"❌ Failed to start reservation release scheduler: {e}")
    else:
        logger.info("⏸️  Schedulers disabled (ENABLE_SCHEDULERS=false)")

    yield

    if ENABLE_SCHEDULERS:
        try:
            await stop_slot_generation_scheduler()
            logger.info("🛑 Slot generation scheduler stopped")
        except Exception as e:
            logger.exception(f"❌ Error stopping slot generation scheduler: {e}")

        try:
            await stop_reservation_release_scheduler()
            logger.info("🛑 Reservation release scheduler stopped")
        except Exception as e:
            logger.exception(f"❌ Error stopping reservation release scheduler: {e}")

    logger.info("🛑 Shutting down Slot Engine Backend API")


# Create FastAPI application
app = FastAPI(
    title="Slot Engine Backend",
    description="Availability slot generation for healthcare scheduling",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    availability.router,
    prefix="/api/facilities",
    tags=["availability"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Slot Engine Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(LookupError)
async def lookup_error_handler(request: Request, exc: LookupError):
    """Handle not-found errors raised by services."""
    logger.info(f"LookupError: {exc}")
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc), "type": "not_found"},
    )
