"""
Booking endpoints: reserve, inspect, update and cancel bookings.

Handlers stay thin; every rule lives in the service layer and surfaces as a
BookingError, which api/exception_handlers.py turns into a status code.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Body, Query, status

from entertainment_hub.api.deps import AppSettings, Caller, LockManager, SessionFactory
from entertainment_hub.core.logging import get_logger
from entertainment_hub.models.booking import BookingStatus, BookingType
from entertainment_hub.schemas.booking import (
    AnyReservationRequest,
    AvailabilityResult,
    BookingCancelResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    ReservationResponse,
)
from entertainment_hub.services import (
    availability_service,
    booking_service,
    cancellation_service,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])

ReservationBody = Annotated[AnyReservationRequest, Body(discriminator="booking_type")]


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: ReservationBody,
    session_factory: SessionFactory,
    locks: LockManager,
    caller: Caller,
    settings: AppSettings,
):
    """
    Reserve a movie showtime, event ticket tier or restaurant slot.

    The body is tagged by `booking_type`. Concurrent requests for the same
    inventory are serialized; a request that finds the inventory exhausted
    gets a 409.
    """
    booking = await booking_service.reserve(session_factory, caller, request, locks, settings)
    return ReservationResponse(
        message="Booking created successfully",
        booking_id=booking.id,
        confirmation_code=booking.confirmation_code,
        status=booking.status,
    )


@router.post("/validate", response_model=AvailabilityResult)
async def validate_booking(
    request: ReservationBody,
    session_factory: SessionFactory,
    caller: Caller,
    settings: AppSettings,
):
    """Advisory availability check; nothing is reserved."""
    async with session_factory() as db:
        return await availability_service.validate_reservation(
            db, request, max_tables=settings.RESTAURANT_MAX_TABLES
        )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    session_factory: SessionFactory,
    caller: Caller,
    settings: AppSettings,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    booking_type: Optional[BookingType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
):
    """The caller's bookings, newest first."""
    bookings, total, limit = await booking_service.list_for_user(
        session_factory,
        caller.user_id,
        status=status_filter.value if status_filter else None,
        booking_type=booking_type.value if booking_type else None,
        page=page,
        limit=limit,
        settings=settings,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=booking_service.total_pages(total, limit),
    )


@router.get("/upcoming", response_model=list[BookingResponse])
async def list_upcoming_bookings(
    session_factory: SessionFactory,
    caller: Caller,
    limit: int = Query(10, ge=1, le=50),
):
    return await booking_service.list_upcoming(session_factory, caller.user_id, limit=limit)


@router.get("/history", response_model=list[BookingResponse])
async def list_booking_history(
    session_factory: SessionFactory,
    caller: Caller,
    limit: int = Query(20, ge=1, le=50),
):
    return await booking_service.list_history(session_factory, caller.user_id, limit=limit)


@router.get("/code/{confirmation_code}", response_model=BookingResponse)
async def get_booking_by_code(
    confirmation_code: str,
    session_factory: SessionFactory,
    caller: Caller,
):
    return await booking_service.get_booking_by_code(session_factory, confirmation_code, caller)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    session_factory: SessionFactory,
    caller: Caller,
):
    return await booking_service.get_booking(session_factory, booking_id, caller)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    changes: BookingUpdate,
    session_factory: SessionFactory,
    locks: LockManager,
    caller: Caller,
):
    """
    Owners may edit special_requests. Admins may also set status and
    payment_status; setting status to cancelled releases the inventory.
    """
    return await booking_service.update_booking(session_factory, booking_id, caller, changes, locks)


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: int,
    session_factory: SessionFactory,
    locks: LockManager,
    caller: Caller,
    settings: AppSettings,
):
    """Cancel a booking and release its seats, tickets or table."""
    if not caller.is_admin:
        booking = await booking_service.get_booking(session_factory, booking_id, caller)
        if not booking.is_cancelled:
            cancellation_service.ensure_outside_cancellation_window(
                booking, settings.CANCELLATION_WINDOW_HOURS
            )

    booking = await cancellation_service.cancel_booking(session_factory, booking_id, caller, locks)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    session_factory: SessionFactory,
    locks: LockManager,
    caller: Caller,
):
    """Admin only: remove the booking, releasing inventory if it was still live."""
    await cancellation_service.delete_booking(session_factory, booking_id, caller, locks)
