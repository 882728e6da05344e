"""
Booking model: one row per reservation of any type.

Key design decisions:
- booking_type selects the inventory model and the booking_details schema
- booking_details is a snapshot taken at booking time, so history stays
  readable after catalog changes; compensation reads its ids from here
- No foreign keys to catalog tables: admins may retire catalog rows while
  historical bookings keep pointing at them
"""

import enum
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, Text

from entertainment_hub.db.base import Base, TimestampMixin, json_type


class BookingType(str, enum.Enum):
    MOVIE = "movie"
    EVENT = "event"
    RESTAURANT = "restaurant"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    NOT_REQUIRED = "not_required"


# pending -> confirmed -> completed; pending|confirmed -> cancelled
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def can_transition(current: str, target: str) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    booking_type = Column(String(20), nullable=False)
    reference_id = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    booking_date = Column(DateTime, nullable=False)
    quantity = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    special_requests = Column(Text, nullable=True)
    booking_details = Column(json_type, nullable=False)
    confirmation_code = Column(String(12), nullable=False, unique=True, index=True)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_booking_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "booking_type IN ('movie', 'event', 'restaurant')", name="check_booking_type"
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'not_required')",
            name="check_booking_payment_status",
        ),
        # Restaurant slot occupancy: type + restaurant + exact slot + status
        Index("ix_bookings_slot", "booking_type", "reference_id", "booking_date", "status"),
        Index("ix_bookings_user_created", "user_id", "created_at"),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, type={self.booking_type}, user={self.user_id}, "
            f"status={self.status}, quantity={self.quantity})>"
        )
