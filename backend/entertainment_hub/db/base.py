"""
Declarative base and shared column mixins.
"""

from sqlalchemy import Column, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import JSON

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON on SQLite (test suite)
json_type = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
