"""Initial schema: catalog tables (movies, showtimes, events, ticket tiers,
restaurants) and the bookings table.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Movies + showtimes
    op.create_table(
        "movies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("poster_url", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_movies_id", "movies", ["id"])

    op.create_table(
        "showtimes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("movie_id", sa.Integer(), sa.ForeignKey("movies.id"), nullable=False),
        sa.Column("theater_name", sa.String(255), nullable=True),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_showtime_total_seats_positive"),
        sa.CheckConstraint("available_seats >= 0", name="check_showtime_available_non_negative"),
        sa.CheckConstraint("available_seats <= total_seats", name="check_showtime_available_lte_total"),
    )
    op.create_index("ix_showtimes_id", "showtimes", ["id"])
    op.create_index("ix_showtimes_movie_id", "showtimes", ["movie_id"])
    op.create_index("ix_showtimes_movie_starts_at", "showtimes", ["movie_id", "starts_at"])

    # Events + ticket tiers
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("event_time", sa.Time(), nullable=True),
        sa.Column("venue_name", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("current_attendees", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("current_attendees >= 0", name="check_event_attendees_non_negative"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_event_date", "events", ["event_date"])

    op.create_table(
        "event_tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("ticket_type", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("quantity_available", sa.Integer(), nullable=False),
        sa.Column("quantity_sold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("quantity_available >= 0", name="check_ticket_available_non_negative"),
        sa.CheckConstraint("quantity_sold >= 0", name="check_ticket_sold_non_negative"),
        sa.CheckConstraint("quantity_sold <= quantity_available", name="check_ticket_sold_lte_available"),
    )
    op.create_index("ix_event_tickets_id", "event_tickets", ["id"])
    op.create_index("ix_event_tickets_event_id", "event_tickets", ["event_id"])

    # Restaurants
    op.create_table(
        "restaurants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_restaurants_id", "restaurants", ["id"])

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("booking_type", sa.String(20), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("booking_date", sa.DateTime(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("booking_details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("confirmation_code", sa.String(12), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="check_booking_quantity_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint("booking_type IN ('movie', 'event', 'restaurant')", name="check_booking_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'not_required')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_confirmation_code", "bookings", ["confirmation_code"], unique=True)
    # Restaurant slot occupancy count: WHERE booking_type, reference_id, booking_date, status
    op.create_index(
        "ix_bookings_slot", "bookings", ["booking_type", "reference_id", "booking_date", "status"]
    )
    # listForUser: WHERE user_id ORDER BY created_at DESC
    op.create_index("ix_bookings_user_created", "bookings", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("restaurants")
    op.drop_table("event_tickets")
    op.drop_table("events")
    op.drop_table("showtimes")
    op.drop_table("movies")
