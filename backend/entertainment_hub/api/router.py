"""
Versioned API router.
"""

from fastapi import APIRouter

from entertainment_hub.api.routes import bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
