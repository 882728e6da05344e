"""
Read-side helpers for assertions against the test database.
"""

from sqlalchemy import select

from entertainment_hub.models import Booking
from entertainment_hub.models.booking import BookingStatus


async def fetch(session_factory, model, row_id):
    async with session_factory() as session:
        return await session.get(model, row_id)


async def count_bookings(session_factory, **filters) -> int:
    async with session_factory() as session:
        query = select(Booking)
        for column, value in filters.items():
            query = query.where(getattr(Booking, column) == value)
        result = await session.execute(query)
        return len(result.scalars().all())


async def live_quantity(session_factory, booking_type: str, reference_id: int) -> int:
    """Sum of quantity over non-cancelled bookings against one catalog item."""
    async with session_factory() as session:
        result = await session.execute(
            select(Booking).where(
                Booking.booking_type == booking_type,
                Booking.reference_id == reference_id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        )
        return sum(b.quantity for b in result.scalars().all())


