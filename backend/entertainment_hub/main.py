"""
Entertainment Hub Bookings API - application entry point.

Reservations for three kinds of inventory:
- Movie showtimes (seat counter per showtime)
- Event ticket tiers (sold counter per tier)
- Restaurant time slots (confirmed bookings per slot, capped by table count)

Concurrent requests on the same inventory are serialized per key; see
core/locks.py and services/booking_service.py.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from entertainment_hub.api.exception_handlers import register_exception_handlers
from entertainment_hub.api.middleware import RequestLoggingMiddleware
from entertainment_hub.api.router import api_router
from entertainment_hub.core.config import get_settings
from entertainment_hub.core.logging import get_logger, setup_logging
from entertainment_hub.core.metrics import metrics_endpoint
from entertainment_hub.db.session import dispose_engine
from entertainment_hub.infrastructure import close_redis, get_redis, get_redis_status

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        lock_backend=settings.LOCK_BACKEND,
    )

    if settings.LOCK_BACKEND == "redis":
        if await get_redis():
            logger.info("redis_ready")
        else:
            logger.warning("redis_unavailable", message="Inventory locks limited to this worker")

    yield

    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Concurrency-safe reservations for movies, events and restaurants",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "lock_backend": settings.LOCK_BACKEND,
        "redis": await get_redis_status(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
