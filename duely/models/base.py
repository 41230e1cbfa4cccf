"""Shared SQLAlchemy declarative base for all Duely models."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Single Base so foreign keys resolve across model modules
Base = declarative_base()


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an offset-aware datetime to naive UTC; naive values pass through.

    DateTime columns store naive UTC, so incoming ``...Z`` or ``+07:00``
    timestamps are normalised before they reach a query or a comparison.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
