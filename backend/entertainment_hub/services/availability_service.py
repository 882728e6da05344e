"""
Availability checks: read-only admit/reject decisions.

These never lock or write. Called on their own (the /validate endpoint) they
are advisory; the reservation path re-runs them inside its unit of work,
under the per-key lock, with for_update=True.
"""

from datetime import date, time
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession

from entertainment_hub.core.exceptions import (
    BookingError,
    InsufficientInventoryError,
    InvalidRequestError,
    NotFoundError,
)
from entertainment_hub.core.logging import get_logger
from entertainment_hub.models.event import EventTicket
from entertainment_hub.models.movie import Showtime
from entertainment_hub.models.restaurant import Restaurant
from entertainment_hub.schemas.booking import (
    AvailabilityResult,
    EventReservationRequest,
    MovieReservationRequest,
    RestaurantReservationRequest,
)
from entertainment_hub.services import inventory_service

logger = get_logger(__name__)


def require_positive(value: int, field: str) -> None:
    if value < 1:
        raise InvalidRequestError(
            f"{field} must be at least 1",
            details={field: value},
        )


async def check_movie_availability(
    db: AsyncSession,
    showtime_id: int,
    seat_count: int,
    for_update: bool = False,
) -> Showtime:
    require_positive(seat_count, "seat_count")
    showtime = await inventory_service.get_showtime(db, showtime_id, for_update=for_update)
    if showtime is None:
        raise NotFoundError(f"Showtime {showtime_id} not found")

    if showtime.available_seats < seat_count:
        logger.warning(
            "availability_rejected",
            booking_type="movie",
            showtime_id=showtime_id,
            requested=seat_count,
            available=showtime.available_seats,
        )
        raise InsufficientInventoryError(
            f"Not enough seats. Requested: {seat_count}, Available: {showtime.available_seats}",
            details={"requested": seat_count, "available": showtime.available_seats},
        )
    return showtime


async def check_event_availability(
    db: AsyncSession,
    event_id: int,
    ticket_tier_id: int,
    quantity: int,
    for_update: bool = False,
) -> EventTicket:
    require_positive(quantity, "quantity")
    tier = await inventory_service.get_ticket_tier(
        db, event_id, ticket_tier_id, for_update=for_update
    )
    if tier is None:
        raise NotFoundError(f"Event {event_id} or ticket type {ticket_tier_id} not found")

    available = tier.remaining
    if available < quantity:
        logger.warning(
            "availability_rejected",
            booking_type="event",
            event_id=event_id,
            ticket_type_id=ticket_tier_id,
            requested=quantity,
            available=available,
        )
        raise InsufficientInventoryError(
            f"Not enough tickets. Requested: {quantity}, Available: {available}",
            details={"requested": quantity, "available": available},
        )
    return tier


async def check_restaurant_availability(
    db: AsyncSession,
    restaurant_id: int,
    slot_date: date,
    slot_time: time,
    party_size: int,
    max_tables: int,
) -> Restaurant:
    """
    Slot-level capacity: at most `max_tables` confirmed bookings per exact
    (restaurant, date, time). This is a table count, not a per-table
    assignment; party size does not change how many tables a booking uses.
    """
    require_positive(party_size, "party_size")
    restaurant = await inventory_service.get_active_restaurant(db, restaurant_id)
    if restaurant is None:
        raise NotFoundError(f"Restaurant {restaurant_id} not found")

    booked = await inventory_service.count_confirmed_slot_bookings(
        db, restaurant_id, slot_date, slot_time
    )
    if booked >= max_tables:
        logger.warning(
            "availability_rejected",
            booking_type="restaurant",
            restaurant_id=restaurant_id,
            slot_date=slot_date.isoformat(),
            slot_time=slot_time.isoformat(),
            booked=booked,
            max_tables=max_tables,
        )
        raise InsufficientInventoryError(
            "No tables available at requested time",
            details={"booked_tables": booked, "max_tables": max_tables},
        )
    return restaurant


async def validate_reservation(
    db: AsyncSession,
    request: Union[MovieReservationRequest, EventReservationRequest, RestaurantReservationRequest],
    max_tables: int,
) -> AvailabilityResult:
    """Advisory pre-check for any booking type; reports instead of raising."""
    try:
        if isinstance(request, MovieReservationRequest):
            showtime = await check_movie_availability(db, request.showtime_id, len(request.seats))
            details = {"available_seats": showtime.available_seats}
        elif isinstance(request, EventReservationRequest):
            tier = await check_event_availability(
                db, request.event_id, request.ticket_type_id, request.quantity
            )
            details = {"available_tickets": tier.remaining}
        else:
            await check_restaurant_availability(
                db,
                request.restaurant_id,
                request.booking_date,
                request.booking_time,
                request.party_size,
                max_tables,
            )
            booked = await inventory_service.count_confirmed_slot_bookings(
                db, request.restaurant_id, request.booking_date, request.booking_time
            )
            details = {"available_tables": max_tables - booked}
    except BookingError as exc:
        return AvailabilityResult(
            valid=False,
            message=exc.message,
            details={"error_code": exc.error_code.value, **exc.details},
        )

    return AvailabilityResult(
        valid=True,
        message=f"{request.booking_type.capitalize()} booking is available",
        details=details,
    )
