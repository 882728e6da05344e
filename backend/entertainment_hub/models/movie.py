"""
Movie catalog rows and the seat-counted showtimes booked against them.

`available_seats` is the inventory counter. Only the reservation and
compensation paths write it; CHECK constraints keep it in [0, total_seats].
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from entertainment_hub.db.base import Base, TimestampMixin


class Movie(Base, TimestampMixin):
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    poster_url = Column(String(500), nullable=True)

    showtimes = relationship("Showtime", back_populates="movie")

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title={self.title})>"


class Showtime(Base, TimestampMixin):
    __tablename__ = "showtimes"

    id = Column(Integer, primary_key=True, index=True)
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=False, index=True)
    theater_name = Column(String(255), nullable=True)
    starts_at = Column(DateTime, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)

    movie = relationship("Movie", back_populates="showtimes")

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_showtime_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="check_showtime_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="check_showtime_available_lte_total"),
        Index("ix_showtimes_movie_starts_at", "movie_id", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Showtime(id={self.id}, movie={self.movie_id}, available={self.available_seats}/{self.total_seats})>"
