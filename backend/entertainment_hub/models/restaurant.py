"""
Restaurant catalog row. Table capacity is not stored: it is derived per
(restaurant, date, time) from confirmed bookings against RESTAURANT_MAX_TABLES.
"""

from sqlalchemy import Boolean, Column, Integer, String

from entertainment_hub.db.base import Base, TimestampMixin


class Restaurant(Base, TimestampMixin):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, name={self.name}, active={self.is_active})>"
