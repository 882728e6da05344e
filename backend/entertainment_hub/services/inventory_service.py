"""
Inventory store: reads and mutations of bookable capacity.

Three inventory models:
  - showtimes.available_seats        decremented on reserve, incremented on cancel
  - event_tickets.quantity_sold      incremented on reserve, decremented on cancel
  - restaurant slots                 derived: COUNT of confirmed bookings at the
                                     exact (restaurant, date, time) slot

Counter writes are compare-and-set UPDATEs: the WHERE clause carries the
capacity condition, so a stale read can never push a counter out of range.
Callers must hold the per-key lock from core/locks.py and run inside a
unit of work; nothing here commits.
"""

import hashlib
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from entertainment_hub.core.exceptions import InsufficientInventoryError
from entertainment_hub.core.logging import get_logger
from entertainment_hub.db.session import dialect_name
from entertainment_hub.models.booking import Booking, BookingStatus, BookingType
from entertainment_hub.models.event import Event, EventTicket
from entertainment_hub.models.movie import Showtime
from entertainment_hub.models.restaurant import Restaurant

logger = get_logger(__name__)


def slot_datetime(slot_date: date, slot_time: time) -> datetime:
    return datetime.combine(slot_date, slot_time.replace(second=0, microsecond=0))


# --- Catalog lookups -------------------------------------------------------


async def get_showtime(
    db: AsyncSession, showtime_id: int, for_update: bool = False
) -> Optional[Showtime]:
    query = (
        select(Showtime)
        .options(joinedload(Showtime.movie, innerjoin=True))
        .where(Showtime.id == showtime_id)
    )
    if for_update:
        query = query.with_for_update(of=Showtime)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_ticket_tier(
    db: AsyncSession, event_id: int, ticket_tier_id: int, for_update: bool = False
) -> Optional[EventTicket]:
    query = (
        select(EventTicket)
        .options(joinedload(EventTicket.event, innerjoin=True))
        .where(EventTicket.id == ticket_tier_id, EventTicket.event_id == event_id)
    )
    if for_update:
        query = query.with_for_update(of=EventTicket)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_active_restaurant(db: AsyncSession, restaurant_id: int) -> Optional[Restaurant]:
    result = await db.execute(
        select(Restaurant).where(Restaurant.id == restaurant_id, Restaurant.is_active.is_(True))
    )
    return result.scalar_one_or_none()


# --- Restaurant slots ------------------------------------------------------


def _advisory_key(key: str) -> int:
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def lock_restaurant_slot(db: AsyncSession, key: str) -> None:
    """
    Serialize a restaurant slot across database connections.

    Slots have no row to lock, so PostgreSQL gets a transaction-scoped
    advisory lock keyed on the slot; it is released at commit/rollback.
    Other dialects rely on the in-process lock alone.
    """
    if dialect_name(db) != "postgresql":
        return
    await db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": _advisory_key(key)})


async def count_confirmed_slot_bookings(
    db: AsyncSession, restaurant_id: int, slot_date: date, slot_time: time
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .where(
            Booking.booking_type == BookingType.RESTAURANT.value,
            Booking.reference_id == restaurant_id,
            Booking.booking_date == slot_datetime(slot_date, slot_time),
            Booking.status == BookingStatus.CONFIRMED.value,
        )
    )
    return result.scalar_one()


# --- Counter mutations -----------------------------------------------------


async def take_seats(db: AsyncSession, showtime_id: int, seat_count: int) -> None:
    result = await db.execute(
        update(Showtime)
        .where(Showtime.id == showtime_id, Showtime.available_seats >= seat_count)
        .values(available_seats=Showtime.available_seats - seat_count)
    )
    if result.rowcount == 0:
        logger.warning("seat_decrement_refused", showtime_id=showtime_id, requested=seat_count)
        raise InsufficientInventoryError(
            "Not enough seats available",
            details={"showtime_id": showtime_id, "requested": seat_count},
        )


async def return_seats(db: AsyncSession, showtime_id: int, seat_count: int) -> bool:
    """Give seats back; returns False if the showtime no longer exists."""
    result = await db.execute(
        update(Showtime)
        .where(Showtime.id == showtime_id)
        .values(available_seats=Showtime.available_seats + seat_count)
    )
    return result.rowcount > 0


async def sell_tickets(
    db: AsyncSession, event_id: int, ticket_tier_id: int, quantity: int
) -> None:
    result = await db.execute(
        update(EventTicket)
        .where(
            EventTicket.id == ticket_tier_id,
            EventTicket.event_id == event_id,
            EventTicket.quantity_sold + quantity <= EventTicket.quantity_available,
        )
        .values(quantity_sold=EventTicket.quantity_sold + quantity)
    )
    if result.rowcount == 0:
        logger.warning("ticket_sale_refused", ticket_type_id=ticket_tier_id, requested=quantity)
        raise InsufficientInventoryError(
            "Not enough tickets available",
            details={"ticket_type_id": ticket_tier_id, "requested": quantity},
        )

    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(current_attendees=Event.current_attendees + quantity)
    )


async def unsell_tickets(
    db: AsyncSession, event_id: int, ticket_tier_id: int, quantity: int
) -> bool:
    """Return tickets to the tier; returns False if the tier no longer exists."""
    result = await db.execute(
        update(EventTicket)
        .where(EventTicket.id == ticket_tier_id)
        .values(quantity_sold=EventTicket.quantity_sold - quantity)
    )
    if result.rowcount == 0:
        return False

    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(current_attendees=Event.current_attendees - quantity)
    )
    return True
