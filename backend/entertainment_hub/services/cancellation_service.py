"""
Cancellation / compensation: reverse a booking's inventory effect.

Symmetric to booking_service.reserve:

  1. Load the booking outside the lock to learn its inventory key,
     and fail fast on NotFound / Forbidden / AlreadyCancelled.
  2. Take the per-key lock, open a unit of work, reload the booking
     FOR UPDATE and re-check its status. A concurrent cancel that won
     the race is seen here, so inventory is credited exactly once.
  3. Restore inventory from the booking_details snapshot and flip the
     status (or delete the row, for the admin hard-delete path).

The cancellation-window policy is not enforced here; the API layer applies
ensure_outside_cancellation_window() before calling cancel_booking().
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entertainment_hub.core.exceptions import (
    AlreadyCancelledError,
    ForbiddenError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
)
from entertainment_hub.core.locks import (
    InventoryLockManager,
    get_lock_manager,
    restaurant_slot_key,
    showtime_key,
    ticket_tier_key,
)
from entertainment_hub.core.logging import get_logger
from entertainment_hub.core.metrics import record_cancellation
from entertainment_hub.core.security import CallerIdentity
from entertainment_hub.db.session import unit_of_work
from entertainment_hub.models.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    can_transition,
)
from entertainment_hub.schemas.booking_details import (
    EventBookingDetails,
    MovieBookingDetails,
    RestaurantBookingDetails,
    parse_booking_details,
)
from entertainment_hub.services import booking_repository, inventory_service

logger = get_logger(__name__)


def inventory_key_for_booking(booking: Booking) -> str:
    details = parse_booking_details(booking.booking_type, booking.booking_details)
    if isinstance(details, MovieBookingDetails):
        return showtime_key(details.showtime_id)
    if isinstance(details, EventBookingDetails):
        return ticket_tier_key(details.ticket_type_id)
    return restaurant_slot_key(details.restaurant_id, details.booking_date, details.booking_time)


async def restore_availability(db: AsyncSession, booking: Booking) -> None:
    """
    Give the booking's quantity back to its inventory counter.

    Restaurant bookings hold no counter. A catalog row that has since been
    removed is logged and skipped; the booking is still retired.
    """
    details = parse_booking_details(booking.booking_type, booking.booking_details)

    if isinstance(details, MovieBookingDetails):
        restored = await inventory_service.return_seats(db, details.showtime_id, booking.quantity)
    elif isinstance(details, EventBookingDetails):
        restored = await inventory_service.unsell_tickets(
            db, details.event_id, details.ticket_type_id, booking.quantity
        )
    elif isinstance(details, RestaurantBookingDetails):
        return
    else:
        raise InvalidRequestError(f"Unknown booking type {booking.booking_type}")

    if restored:
        logger.info(
            "inventory_restored",
            booking_id=booking.id,
            booking_type=booking.booking_type,
            quantity=booking.quantity,
        )
    else:
        logger.warning(
            "inventory_restore_skipped",
            booking_id=booking.id,
            booking_type=booking.booking_type,
            reason="inventory_row_missing",
        )


def mark_cancelled(booking: Booking) -> None:
    booking.status = BookingStatus.CANCELLED.value
    if booking.payment_status == PaymentStatus.PAID.value:
        booking.payment_status = PaymentStatus.REFUNDED.value
    booking.updated_at = datetime.now(timezone.utc)


async def apply_cancellation(db: AsyncSession, booking: Booking) -> None:
    """Compensate and cancel a booking already loaded FOR UPDATE in `db`."""
    if booking.is_cancelled:
        raise AlreadyCancelledError(booking.id)
    if not can_transition(booking.status, BookingStatus.CANCELLED.value):
        raise InvalidStateTransitionError(booking.status, BookingStatus.CANCELLED.value)

    await restore_availability(db, booking)
    mark_cancelled(booking)
    await db.flush()


async def _load_for_caller(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
) -> Booking:
    async with session_factory() as db:
        booking = await booking_repository.get_booking(db, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    if not caller.can_access(booking.user_id):
        logger.warning("booking_access_denied", booking_id=booking_id, caller_id=caller.user_id)
        raise ForbiddenError("You do not have access to this booking")
    return booking


async def reload_for_update(db: AsyncSession, booking_id: int) -> Booking:
    booking = await booking_repository.get_booking(db, booking_id, for_update=True)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def cancel_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    locks: Optional[InventoryLockManager] = None,
    path: str = "cancel",
) -> Booking:
    """Cancel a booking and release its inventory exactly once."""
    locks = locks or get_lock_manager()
    booking = await _load_for_caller(session_factory, booking_id, caller)
    if booking.is_cancelled:
        raise AlreadyCancelledError(booking_id)

    async with locks.hold(inventory_key_for_booking(booking)):
        async with unit_of_work(session_factory) as db:
            booking = await reload_for_update(db, booking_id)
            await apply_cancellation(db, booking)

    record_cancellation(booking.booking_type, path)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        booking_type=booking.booking_type,
        user_id=booking.user_id,
        cancelled_by=caller.user_id,
        quantity=booking.quantity,
    )
    return booking


async def delete_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    locks: Optional[InventoryLockManager] = None,
) -> None:
    """
    Admin hard delete. Compensates first unless the booking was already
    cancelled (its inventory is back already), then removes the row.
    """
    if not caller.is_admin:
        raise ForbiddenError("Only admins can delete bookings")

    locks = locks or get_lock_manager()
    booking = await _load_for_caller(session_factory, booking_id, caller)

    async with locks.hold(inventory_key_for_booking(booking)):
        async with unit_of_work(session_factory) as db:
            booking = await reload_for_update(db, booking_id)
            booking_type = booking.booking_type
            compensated = not booking.is_cancelled
            if compensated:
                await restore_availability(db, booking)
            await booking_repository.delete_booking_record(db, booking)

    if compensated:
        record_cancellation(booking_type, "delete")
    logger.info(
        "booking_deleted",
        booking_id=booking_id,
        booking_type=booking_type,
        deleted_by=caller.user_id,
        inventory_restored=compensated,
    )


def ensure_outside_cancellation_window(
    booking: Booking,
    window_hours: int,
    now: Optional[datetime] = None,
) -> None:
    """
    Caller-side policy: owners may not cancel within `window_hours` of the
    booking date. booking_date is venue-local wall-clock time (naive).
    """
    if window_hours <= 0:
        return
    now = now or datetime.now()
    if booking.booking_date - now < timedelta(hours=window_hours):
        raise InvalidRequestError(
            f"Bookings can only be cancelled {window_hours} hours in advance",
            details={"booking_date": booking.booking_date.isoformat()},
        )
