"""
Tests for the reservation transaction: movies, events and restaurant slots.
"""

import re
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from booking_helpers import count_bookings, fetch
from entertainment_hub.core.config import Settings
from entertainment_hub.core.exceptions import (
    InsufficientInventoryError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from entertainment_hub.models import Booking, Event, EventTicket, Restaurant, Showtime
from entertainment_hub.models.booking import BookingStatus, PaymentStatus
from entertainment_hub.schemas.booking import (
    EventReservationRequest,
    MovieReservationRequest,
    RestaurantReservationRequest,
)
from entertainment_hub.schemas.booking_details import RestaurantBookingDetails, dump_booking_details
from entertainment_hub.services import booking_repository, booking_service, inventory_service


def movie_request(showtime_id, seats, total="25.00"):
    return MovieReservationRequest(showtime_id=showtime_id, seats=seats, total_amount=Decimal(total))


def event_request(event_id, tier_id, quantity, total="80.00"):
    return EventReservationRequest(
        event_id=event_id, ticket_type_id=tier_id, quantity=quantity, total_amount=Decimal(total)
    )


def restaurant_request(restaurant_id, slot_date, slot_time, party_size=4):
    return RestaurantReservationRequest(
        restaurant_id=restaurant_id,
        booking_date=slot_date,
        booking_time=slot_time,
        party_size=party_size,
    )


async def seed_restaurant_bookings(session_factory, restaurant, slot_date, slot_time, count, status):
    details = dump_booking_details(
        RestaurantBookingDetails(
            restaurant_id=restaurant.id,
            restaurant_name=restaurant.name,
            restaurant_address=restaurant.address,
            party_size=2,
            booking_date=slot_date,
            booking_time=slot_time,
        )
    )
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                Booking(
                    user_id=100 + i,
                    booking_type="restaurant",
                    reference_id=restaurant.id,
                    status=status,
                    payment_status=PaymentStatus.NOT_REQUIRED.value,
                    booking_date=datetime.combine(slot_date, slot_time),
                    quantity=2,
                    total_amount=Decimal("0"),
                    booking_details=details,
                    confirmation_code=booking_repository.generate_confirmation_code(),
                )
                for i in range(count)
            ])


# --- Movies -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reserve_movie_seats(session_factory, locks, user, movie, showtime):
    """A movie booking is pending, snapshots the showtime and takes its seats."""
    booking = await booking_service.reserve(
        session_factory, user, movie_request(showtime.id, ["A1", "A2"]), locks
    )

    assert booking.id is not None
    assert booking.user_id == user.user_id
    assert booking.booking_type == "movie"
    assert booking.reference_id == movie.id
    assert booking.status == BookingStatus.PENDING.value
    assert booking.payment_status == PaymentStatus.PENDING.value
    assert booking.quantity == 2
    assert booking.booking_date == showtime.starts_at
    assert re.fullmatch(r"[A-Z0-9]{8}", booking.confirmation_code)

    details = booking.booking_details
    assert details["showtime_id"] == showtime.id
    assert details["movie_title"] == movie.title
    assert details["theater_name"] == "Hall 1"
    assert details["seats"] == ["A1", "A2"]
    assert details["poster_url"] == movie.poster_url

    refreshed = await fetch(session_factory, Showtime, showtime.id)
    assert refreshed.available_seats == 98


@pytest.mark.asyncio
async def test_movie_scenario_last_seats(session_factory, locks, user, small_showtime):
    """Two seats: the first booking takes both, the next one is refused."""
    await booking_service.reserve(session_factory, user, movie_request(small_showtime.id, ["B1", "B2"]), locks)
    assert (await fetch(session_factory, Showtime, small_showtime.id)).available_seats == 0

    with pytest.raises(InsufficientInventoryError):
        await booking_service.reserve(session_factory, user, movie_request(small_showtime.id, ["B3"]), locks)

    assert await count_bookings(session_factory, reference_id=small_showtime.movie_id) == 1


@pytest.mark.asyncio
async def test_reserve_unknown_showtime(session_factory, locks, user, showtime):
    with pytest.raises(NotFoundError):
        await booking_service.reserve(session_factory, user, movie_request(9999, ["A1"]), locks)
    assert await count_bookings(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("seats", [[], ["A1", "A1"], ["A1", "  "], ["C4", " C4 "]])
async def test_reserve_rejects_bad_seat_lists(session_factory, locks, user, showtime, seats):
    with pytest.raises(InvalidRequestError):
        await booking_service.reserve(session_factory, user, movie_request(showtime.id, seats), locks)

    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100
    assert await count_bookings(session_factory) == 0


@pytest.mark.asyncio
async def test_failed_decrement_rolls_back_booking_row(
    session_factory, locks, user, showtime, monkeypatch
):
    """A storage failure after the insert leaves neither the row nor a seat change."""

    async def broken_take_seats(db, showtime_id, seat_count):
        raise OperationalError("UPDATE showtimes", {}, Exception("disk I/O error"))

    monkeypatch.setattr(inventory_service, "take_seats", broken_take_seats)

    with pytest.raises(PersistenceError) as exc_info:
        await booking_service.reserve(session_factory, user, movie_request(showtime.id, ["D1"]), locks)

    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert await count_bookings(session_factory) == 0
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100


# --- Events -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_event_scenario_tier_nearly_sold_out(session_factory, locks, user, event, ticket_tier):
    """50 available / 48 sold: 3 is refused, 2 sells the tier out."""
    with pytest.raises(InsufficientInventoryError) as exc_info:
        await booking_service.reserve(
            session_factory, user, event_request(event.id, ticket_tier.id, 3), locks
        )
    assert exc_info.value.details["available"] == 2
    assert (await fetch(session_factory, EventTicket, ticket_tier.id)).quantity_sold == 48

    booking = await booking_service.reserve(
        session_factory, user, event_request(event.id, ticket_tier.id, 2), locks
    )

    tier = await fetch(session_factory, EventTicket, ticket_tier.id)
    assert tier.quantity_sold == 50
    assert (await fetch(session_factory, Event, event.id)).current_attendees == 50

    assert booking.status == BookingStatus.PENDING.value
    assert booking.reference_id == event.id
    assert booking.booking_date == datetime.combine(event.event_date, event.event_time)
    assert booking.booking_details == {
        "event_id": event.id,
        "event_title": "Harbour Jazz Night",
        "event_date": event.event_date.isoformat(),
        "event_time": "19:30:00",
        "venue_name": "Pier Hall",
        "location": "Old Harbour",
        "ticket_type": "General",
        "ticket_type_id": ticket_tier.id,
    }


@pytest.mark.asyncio
async def test_event_tiers_are_independent(session_factory, locks, user, event, ticket_tier, vip_tier):
    await booking_service.reserve(session_factory, user, event_request(event.id, vip_tier.id, 5), locks)

    assert (await fetch(session_factory, EventTicket, vip_tier.id)).quantity_sold == 5
    assert (await fetch(session_factory, EventTicket, ticket_tier.id)).quantity_sold == 48


@pytest.mark.asyncio
async def test_event_tier_must_belong_to_event(session_factory, locks, user, event, ticket_tier):
    with pytest.raises(NotFoundError):
        await booking_service.reserve(
            session_factory, user, event_request(event.id + 1, ticket_tier.id, 1), locks
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1])
async def test_event_quantity_must_be_positive(session_factory, locks, user, event, ticket_tier, quantity):
    with pytest.raises(InvalidRequestError):
        await booking_service.reserve(
            session_factory, user, event_request(event.id, ticket_tier.id, quantity), locks
        )


# --- Restaurants --------------------------------------------------------------


@pytest.mark.asyncio
async def test_reserve_restaurant_table(session_factory, locks, user, restaurant):
    """Restaurant bookings are confirmed at once, free, and need no payment."""
    slot_date = date(2030, 5, 17)
    booking = await booking_service.reserve(
        session_factory, user, restaurant_request(restaurant.id, slot_date, time(19, 0)), locks
    )

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.payment_status == PaymentStatus.NOT_REQUIRED.value
    assert booking.total_amount == Decimal("0")
    assert booking.quantity == 4
    assert booking.booking_date == datetime(2030, 5, 17, 19, 0)
    assert booking.booking_details["restaurant_name"] == "Casa Lupa"
    assert booking.booking_details["booking_date"] == "2030-05-17"
    assert booking.booking_details["booking_time"] == "19:00:00"


@pytest.mark.asyncio
async def test_restaurant_scenario_slot_full(session_factory, locks, user, restaurant):
    """Ten confirmed tables fill 19:00; 20:00 the same night is still open."""
    slot_date = date(2025, 1, 1)
    await seed_restaurant_bookings(
        session_factory, restaurant, slot_date, time(19, 0), 10, BookingStatus.CONFIRMED.value
    )

    with pytest.raises(InsufficientInventoryError):
        await booking_service.reserve(
            session_factory, user, restaurant_request(5, slot_date, time(19, 0)), locks
        )

    booking = await booking_service.reserve(
        session_factory, user, restaurant_request(5, slot_date, time(20, 0)), locks
    )
    assert booking.status == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_cancelled_tables_do_not_count(session_factory, locks, user, restaurant):
    slot_date = date(2030, 2, 14)
    await seed_restaurant_bookings(
        session_factory, restaurant, slot_date, time(19, 0), 9, BookingStatus.CONFIRMED.value
    )
    await seed_restaurant_bookings(
        session_factory, restaurant, slot_date, time(19, 0), 5, BookingStatus.CANCELLED.value
    )

    await booking_service.reserve(
        session_factory, user, restaurant_request(5, slot_date, time(19, 0)), locks
    )
    with pytest.raises(InsufficientInventoryError):
        await booking_service.reserve(
            session_factory, user, restaurant_request(5, slot_date, time(19, 0)), locks
        )


@pytest.mark.asyncio
async def test_restaurant_capacity_is_configurable(session_factory, locks, user, restaurant):
    settings = Settings(RESTAURANT_MAX_TABLES=1)
    request = restaurant_request(5, date(2030, 3, 1), time(12, 30))

    await booking_service.reserve(session_factory, user, request, locks, settings)
    with pytest.raises(InsufficientInventoryError):
        await booking_service.reserve(session_factory, user, request, locks, settings)


@pytest.mark.asyncio
async def test_inactive_restaurant_is_not_bookable(session_factory, locks, user):
    async with session_factory() as session:
        async with session.begin():
            session.add(Restaurant(id=7, name="Closed Kitchen", is_active=False))

    with pytest.raises(NotFoundError):
        await booking_service.reserve(
            session_factory, user, restaurant_request(7, date(2030, 1, 1), time(19, 0)), locks
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("party_size", [0, 21])
async def test_party_size_bounds(session_factory, locks, user, restaurant, party_size):
    with pytest.raises(InvalidRequestError):
        await booking_service.reserve(
            session_factory,
            user,
            restaurant_request(5, date(2030, 1, 1), time(19, 0), party_size=party_size),
            locks,
        )
