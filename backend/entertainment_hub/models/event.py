"""
Event model with ticket tiers.

Key design decisions:
- Each tier keeps its own `quantity_available` (stock) and `quantity_sold`
  counters; remaining = available - sold
- `current_attendees` on the event mirrors the sum sold across tiers and
  moves in the same transaction as the tier counter
"""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String, Time
from sqlalchemy.orm import relationship

from entertainment_hub.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    event_date = Column(Date, nullable=False, index=True)
    event_time = Column(Time, nullable=True)
    venue_name = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=True)
    current_attendees = Column(Integer, nullable=False, default=0)

    ticket_tiers = relationship("EventTicket", back_populates="event")

    __table_args__ = (
        CheckConstraint("current_attendees >= 0", name="check_event_attendees_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, attendees={self.current_attendees})>"


class EventTicket(Base, TimestampMixin):
    __tablename__ = "event_tickets"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    ticket_type = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    quantity_available = Column(Integer, nullable=False)
    quantity_sold = Column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="ticket_tiers")

    __table_args__ = (
        CheckConstraint("quantity_available >= 0", name="check_ticket_available_non_negative"),
        CheckConstraint("quantity_sold >= 0", name="check_ticket_sold_non_negative"),
        CheckConstraint("quantity_sold <= quantity_available", name="check_ticket_sold_lte_available"),
    )

    @property
    def remaining(self) -> int:
        return self.quantity_available - self.quantity_sold

    def __repr__(self) -> str:
        return f"<EventTicket(id={self.id}, event={self.event_id}, sold={self.quantity_sold}/{self.quantity_available})>"
