from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _uuid_factory() -> uuid.UUID:
    """Generate a new UUID v4."""
    return uuid.uuid4()


def _now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def days_column(default: float = 0) -> sa.Column:
    """Column for a quantity of leave days (half-day precision and better)."""
    return sa.Column(sa.Numeric(6, 2, asdecimal=False), nullable=False, server_default=str(default))


def optional_days_column() -> sa.Column:
    """Nullable day quantity, for limits that may be left unset."""
    return sa.Column(sa.Numeric(6, 2, asdecimal=False), nullable=True)


class UUIDBase(SQLModel):
    """Base model with UUID primary key."""

    id: uuid.UUID = Field(
        default_factory=_uuid_factory,
        primary_key=True,
        sa_type=sa.Uuid,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
