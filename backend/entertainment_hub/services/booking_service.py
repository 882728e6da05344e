"""
Booking service: the reservation transaction plus booking reads and updates.

CONCURRENCY STRATEGY: Per-key serialization + compare-and-set
=============================================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every reservation names exactly one inventory key (a showtime, a ticket
  tier, or a restaurant date+time slot). For that key we:

  1. Take the per-key lock (core/locks.py); other keys are not blocked.
  2. Open one unit of work (db/session.py) and, inside it,
     a. re-run the availability check with row locks (FOR UPDATE / advisory);
     b. insert the booking row;
     c. decrement the counter with a conditional UPDATE that refuses to go
        below zero (rowcount 0 -> InsufficientInventoryError).
  3. Commit, then release the lock.

  Any error in 2a-2c rolls back both the booking row and the counter.
  There is no retry: a request that loses the race fails with
  InsufficientInventoryError and the caller may resubmit.

Restaurant slots have no counter. Capacity is the number of confirmed
bookings at the exact slot, compared against RESTAURANT_MAX_TABLES; the
per-key lock makes count-then-insert safe.

Status writes (confirm, complete, admin updates) hold the same key as the
booking's cancel, so a confirm can never land on top of a cancellation
that has already returned the inventory.
"""

import math
import time
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entertainment_hub.core.config import Settings, get_settings
from entertainment_hub.core.exceptions import (
    BookingError,
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
from entertainment_hub.core.metrics import (
    observe_reservation_latency,
    record_booking_attempt,
    record_cancellation,
)
from entertainment_hub.core.security import CallerIdentity
from entertainment_hub.db.session import unit_of_work
from entertainment_hub.models.booking import (
    Booking,
    BookingStatus,
    BookingType,
    PaymentStatus,
    can_transition,
)
from entertainment_hub.schemas.booking import (
    AnyReservationRequest,
    BookingUpdate,
    EventReservationRequest,
    MovieReservationRequest,
    RestaurantReservationRequest,
)
from entertainment_hub.schemas.booking_details import (
    EventBookingDetails,
    MovieBookingDetails,
    RestaurantBookingDetails,
    dump_booking_details,
    parse_booking_details,
)
from entertainment_hub.services import (
    availability_service,
    booking_repository,
    cancellation_service,
    inventory_service,
)

logger = get_logger(__name__)


# --- Request validation ----------------------------------------------------


def validate_request(request: AnyReservationRequest, settings: Settings) -> None:
    """Reject malformed requests before any inventory is touched."""
    if isinstance(request, MovieReservationRequest):
        seats = [seat.strip() for seat in request.seats]
        if not seats:
            raise InvalidRequestError("At least one seat is required")
        if any(not seat for seat in seats):
            raise InvalidRequestError("Seat labels must not be blank")
        if len(set(seats)) != len(seats):
            raise InvalidRequestError(
                "Seat list contains duplicates", details={"seats": request.seats}
            )
    elif isinstance(request, EventReservationRequest):
        availability_service.require_positive(request.quantity, "quantity")
    elif isinstance(request, RestaurantReservationRequest):
        availability_service.require_positive(request.party_size, "party_size")
        if request.party_size > settings.RESTAURANT_MAX_PARTY_SIZE:
            raise InvalidRequestError(
                f"party_size must be at most {settings.RESTAURANT_MAX_PARTY_SIZE}",
                details={"party_size": request.party_size},
            )
    else:
        raise InvalidRequestError("Invalid booking type")

    total_amount = getattr(request, "total_amount", None)
    if total_amount is not None and total_amount < 0:
        raise InvalidRequestError("total_amount must not be negative")


def inventory_key_for_request(request: AnyReservationRequest) -> str:
    if isinstance(request, MovieReservationRequest):
        return showtime_key(request.showtime_id)
    if isinstance(request, EventReservationRequest):
        return ticket_tier_key(request.ticket_type_id)
    return restaurant_slot_key(request.restaurant_id, request.booking_date, request.booking_time)


# --- Per-type reservation steps (run inside the unit of work) -------------


async def _reserve_movie(
    db: AsyncSession,
    caller: CallerIdentity,
    request: MovieReservationRequest,
    settings: Settings,
) -> Booking:
    seats = [seat.strip() for seat in request.seats]
    seat_count = len(seats)
    showtime = await availability_service.check_movie_availability(
        db, request.showtime_id, seat_count, for_update=True
    )

    details = MovieBookingDetails(
        showtime_id=showtime.id,
        movie_title=showtime.movie.title,
        theater_name=showtime.theater_name,
        showtime=showtime.starts_at,
        seats=seats,
        poster_url=showtime.movie.poster_url,
    )
    booking = await booking_repository.add_booking(
        db,
        Booking(
            user_id=caller.user_id,
            booking_type=BookingType.MOVIE.value,
            reference_id=showtime.movie_id,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            booking_date=showtime.starts_at,
            quantity=seat_count,
            total_amount=request.total_amount,
            special_requests=request.special_requests,
            booking_details=dump_booking_details(details),
            confirmation_code=booking_repository.generate_confirmation_code(),
        ),
    )
    await inventory_service.take_seats(db, showtime.id, seat_count)
    return booking


async def _reserve_event(
    db: AsyncSession,
    caller: CallerIdentity,
    request: EventReservationRequest,
    settings: Settings,
) -> Booking:
    tier = await availability_service.check_event_availability(
        db, request.event_id, request.ticket_type_id, request.quantity, for_update=True
    )
    event = tier.event

    details = EventBookingDetails(
        event_id=event.id,
        event_title=event.title,
        event_date=event.event_date,
        event_time=event.event_time,
        venue_name=event.venue_name,
        location=event.location,
        ticket_type=tier.ticket_type,
        ticket_type_id=tier.id,
    )
    booking = await booking_repository.add_booking(
        db,
        Booking(
            user_id=caller.user_id,
            booking_type=BookingType.EVENT.value,
            reference_id=event.id,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            booking_date=datetime.combine(event.event_date, event.event_time or datetime.min.time()),
            quantity=request.quantity,
            total_amount=request.total_amount,
            special_requests=request.special_requests,
            booking_details=dump_booking_details(details),
            confirmation_code=booking_repository.generate_confirmation_code(),
        ),
    )
    await inventory_service.sell_tickets(db, event.id, tier.id, request.quantity)
    return booking


async def _reserve_restaurant(
    db: AsyncSession,
    caller: CallerIdentity,
    request: RestaurantReservationRequest,
    settings: Settings,
) -> Booking:
    await inventory_service.lock_restaurant_slot(db, inventory_key_for_request(request))
    restaurant = await availability_service.check_restaurant_availability(
        db,
        request.restaurant_id,
        request.booking_date,
        request.booking_time,
        request.party_size,
        max_tables=settings.RESTAURANT_MAX_TABLES,
    )

    slot = inventory_service.slot_datetime(request.booking_date, request.booking_time)
    details = RestaurantBookingDetails(
        restaurant_id=restaurant.id,
        restaurant_name=restaurant.name,
        restaurant_address=restaurant.address,
        party_size=request.party_size,
        booking_date=slot.date(),
        booking_time=slot.time(),
    )
    # No payment gate: restaurant bookings are confirmed on creation
    return await booking_repository.add_booking(
        db,
        Booking(
            user_id=caller.user_id,
            booking_type=BookingType.RESTAURANT.value,
            reference_id=restaurant.id,
            status=BookingStatus.CONFIRMED.value,
            payment_status=PaymentStatus.NOT_REQUIRED.value,
            booking_date=slot,
            quantity=request.party_size,
            total_amount=0,
            special_requests=request.special_requests,
            booking_details=dump_booking_details(details),
            confirmation_code=booking_repository.generate_confirmation_code(),
        ),
    )


_RESERVERS = {
    BookingType.MOVIE.value: _reserve_movie,
    BookingType.EVENT.value: _reserve_event,
    BookingType.RESTAURANT.value: _reserve_restaurant,
}


# --- Reservation transaction -----------------------------------------------


async def reserve(
    session_factory: async_sessionmaker[AsyncSession],
    caller: CallerIdentity,
    request: AnyReservationRequest,
    locks: Optional[InventoryLockManager] = None,
    settings: Optional[Settings] = None,
) -> Booking:
    """
    Atomically admit a booking: re-check, insert, decrement, commit.
    All-or-nothing; errors propagate unchanged to the caller.
    """
    settings = settings or get_settings()
    locks = locks or get_lock_manager()
    booking_type = request.booking_type

    try:
        validate_request(request, settings)
    except InvalidRequestError as exc:
        record_booking_attempt(booking_type, exc.error_code.value.lower())
        raise

    key = inventory_key_for_request(request)
    reserver = _RESERVERS[booking_type]
    started = time.perf_counter()
    try:
        async with locks.hold(key):
            async with unit_of_work(session_factory) as db:
                booking = await reserver(db, caller, request, settings)
    except BookingError as exc:
        record_booking_attempt(booking_type, exc.error_code.value.lower())
        logger.info(
            "booking_rejected",
            booking_type=booking_type,
            inventory_key=key,
            user_id=caller.user_id,
            reason=exc.error_code.value,
        )
        raise
    finally:
        observe_reservation_latency(booking_type, time.perf_counter() - started)

    record_booking_attempt(booking_type, "success")
    logger.info(
        "booking_reserved",
        booking_id=booking.id,
        booking_type=booking_type,
        inventory_key=key,
        user_id=caller.user_id,
        quantity=booking.quantity,
        status=booking.status,
    )
    return booking


# --- Reads -----------------------------------------------------------------


def _authorize(booking: Optional[Booking], booking_ref, caller: CallerIdentity) -> Booking:
    if booking is None:
        raise NotFoundError(f"Booking {booking_ref} not found")
    if not caller.can_access(booking.user_id):
        logger.warning("booking_access_denied", booking=booking_ref, caller_id=caller.user_id)
        raise ForbiddenError("You do not have access to this booking")
    return booking


async def get_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
) -> Booking:
    async with session_factory() as db:
        booking = await booking_repository.get_booking(db, booking_id)
    return _authorize(booking, booking_id, caller)


async def get_booking_by_code(
    session_factory: async_sessionmaker[AsyncSession],
    confirmation_code: str,
    caller: CallerIdentity,
) -> Booking:
    async with session_factory() as db:
        booking = await booking_repository.get_booking_by_code(db, confirmation_code)
    return _authorize(booking, confirmation_code, caller)


async def list_for_user(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    status: Optional[str] = None,
    booking_type: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> Tuple[List[Booking], int, int]:
    """Returns (bookings, total, effective_limit)."""
    settings = settings or get_settings()
    try:
        if status is not None:
            status = BookingStatus(status).value
        if booking_type is not None:
            booking_type = BookingType(booking_type).value
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc
    page = max(1, page)
    limit = min(settings.MAX_PAGE_SIZE, max(1, limit or settings.DEFAULT_PAGE_SIZE))

    async with session_factory() as db:
        bookings, total = await booking_repository.list_user_bookings(
            db, user_id, status=status, booking_type=booking_type, page=page, limit=limit
        )
    return bookings, total, limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def list_upcoming(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    limit: int = 10,
    today: Optional[date] = None,
) -> List[Booking]:
    async with session_factory() as db:
        return await booking_repository.list_upcoming_bookings(
            db, user_id, today or date.today(), limit=limit
        )


async def list_history(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    limit: int = 20,
) -> List[Booking]:
    async with session_factory() as db:
        return await booking_repository.list_booking_history(db, user_id, limit=limit)


# --- Updates and status transitions -----------------------------------------


async def update_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    changes: BookingUpdate,
    locks: Optional[InventoryLockManager] = None,
    settings: Optional[Settings] = None,
) -> Booking:
    """
    Owners may edit special_requests; admins may also set status and
    payment_status. A move to `cancelled` always goes through the
    compensator, whoever asks. Other admin status changes are force-set,
    except that a cancelled booking is never reopened (its inventory has
    already been released).

    Every write holds the booking's inventory key, the same lock that
    reserve, cancel and delete take.
    """
    if not changes.has_changes():
        raise InvalidRequestError("No valid fields to update")
    if not caller.is_admin and (changes.status is not None or changes.payment_status is not None):
        raise ForbiddenError("Only admins can change booking or payment status")

    locks = locks or get_lock_manager()
    settings = settings or get_settings()
    booking = await get_booking(session_factory, booking_id, caller)
    cancelling = changes.status == BookingStatus.CANCELLED

    async with locks.hold(cancellation_service.inventory_key_for_booking(booking)):
        async with unit_of_work(session_factory) as db:
            booking = await cancellation_service.reload_for_update(db, booking_id)
            if cancelling:
                # Field changes first so the refund marker has the last word
                _apply_field_changes(booking, changes)
                await cancellation_service.apply_cancellation(db, booking)
            else:
                if changes.status is not None and changes.status.value != booking.status:
                    await _force_status(db, booking, changes.status, caller, settings)
                _apply_field_changes(booking, changes)
            await db.flush()

    if cancelling:
        record_cancellation(booking.booking_type, "admin_update")
        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            cancelled_by=caller.user_id,
            path="admin_update",
        )
    else:
        logger.info("booking_updated", booking_id=booking_id, updated_by=caller.user_id,
                    fields=sorted(changes.model_dump(exclude_none=True)))
    return booking


async def _ensure_table_free(db: AsyncSession, booking: Booking, settings: Settings) -> None:
    """A restaurant booking only holds a table while confirmed; re-check the slot before it does."""
    if booking.booking_type != BookingType.RESTAURANT.value:
        return
    details = parse_booking_details(booking.booking_type, booking.booking_details)
    await inventory_service.lock_restaurant_slot(
        db, restaurant_slot_key(details.restaurant_id, details.booking_date, details.booking_time)
    )
    await availability_service.check_restaurant_availability(
        db,
        details.restaurant_id,
        details.booking_date,
        details.booking_time,
        details.party_size,
        max_tables=settings.RESTAURANT_MAX_TABLES,
    )


async def _force_status(
    db: AsyncSession,
    booking: Booking,
    target: BookingStatus,
    caller: CallerIdentity,
    settings: Settings,
) -> None:
    if booking.is_cancelled:
        raise InvalidStateTransitionError(booking.status, target.value)
    if target == BookingStatus.CONFIRMED:
        await _ensure_table_free(db, booking, settings)
    if not can_transition(booking.status, target.value):
        logger.warning(
            "booking_status_forced",
            booking_id=booking.id,
            from_status=booking.status,
            to_status=target.value,
            admin_id=caller.user_id,
        )
    booking.status = target.value


def _apply_field_changes(booking: Booking, changes: BookingUpdate) -> None:
    if changes.payment_status is not None:
        booking.payment_status = changes.payment_status.value
    if changes.special_requests is not None:
        booking.special_requests = changes.special_requests
    booking.updated_at = datetime.now(timezone.utc)


async def _transition(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    target: BookingStatus,
    locks: Optional[InventoryLockManager],
    settings: Optional[Settings],
) -> Booking:
    if not caller.is_admin:
        raise ForbiddenError("Only admins can change booking status")

    locks = locks or get_lock_manager()
    settings = settings or get_settings()
    booking = await get_booking(session_factory, booking_id, caller)

    async with locks.hold(cancellation_service.inventory_key_for_booking(booking)):
        async with unit_of_work(session_factory) as db:
            booking = await cancellation_service.reload_for_update(db, booking_id)
            if not can_transition(booking.status, target.value):
                raise InvalidStateTransitionError(booking.status, target.value)
            if target == BookingStatus.CONFIRMED:
                await _ensure_table_free(db, booking, settings)
            booking.status = target.value
            if target == BookingStatus.CONFIRMED and booking.payment_status == PaymentStatus.PENDING.value:
                booking.payment_status = PaymentStatus.PAID.value
            booking.updated_at = datetime.now(timezone.utc)
            await db.flush()

    logger.info("booking_status_changed", booking_id=booking_id, status=target.value,
                changed_by=caller.user_id)
    return booking


async def confirm_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    locks: Optional[InventoryLockManager] = None,
    settings: Optional[Settings] = None,
) -> Booking:
    """pending -> confirmed, marking a pending payment as paid."""
    return await _transition(
        session_factory, booking_id, caller, BookingStatus.CONFIRMED, locks, settings
    )


async def complete_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: int,
    caller: CallerIdentity,
    locks: Optional[InventoryLockManager] = None,
    settings: Optional[Settings] = None,
) -> Booking:
    return await _transition(
        session_factory, booking_id, caller, BookingStatus.COMPLETED, locks, settings
    )
