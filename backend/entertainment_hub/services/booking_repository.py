"""
Booking record repository: durable storage of Booking rows.

Plain session-level helpers; transactions belong to the caller.
"""

import secrets
import string
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from entertainment_hub.models.booking import Booking, BookingStatus

CONFIRMATION_CODE_LENGTH = 8
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))


async def add_booking(db: AsyncSession, booking: Booking) -> Booking:
    """Insert and flush so the id and server-side timestamps are populated."""
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


async def get_booking(
    db: AsyncSession, booking_id: int, for_update: bool = False
) -> Optional[Booking]:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_booking_by_code(db: AsyncSession, confirmation_code: str) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.confirmation_code == confirmation_code.upper())
    )
    return result.scalar_one_or_none()


async def list_user_bookings(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    booking_type: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Booking], int]:
    """Page of a user's bookings, newest first, plus the unpaged total."""
    query = select(Booking).where(Booking.user_id == user_id)
    if status:
        query = query.where(Booking.status == status)
    if booking_type:
        query = query.where(Booking.booking_type == booking_type)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    result = await db.execute(
        query
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_upcoming_bookings(
    db: AsyncSession, user_id: int, today: date, limit: int = 10
) -> List[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.user_id == user_id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.booking_date >= datetime.combine(today, datetime.min.time()),
        )
        .order_by(Booking.booking_date.asc(), Booking.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_booking_history(db: AsyncSession, user_id: int, limit: int = 20) -> List[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.user_id == user_id,
            Booking.status.in_([BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value]),
        )
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_booking_record(db: AsyncSession, booking: Booking) -> None:
    await db.delete(booking)
    await db.flush()
