"""Base models for SQLModel tables.

All tables use UUID primary keys. Timestamps are timezone-aware UTC on
both PostgreSQL and SQLite (see UTCDateTime).
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from publisher.db.custom_types import UTCDateTime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UUIDModel(SQLModel):
    """Base model with UUID primary key."""

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )


class TimestampMixin(SQLModel):
    """Mixin for created_at and updated_at timestamps.

    Use with UUIDModel:
        class User(UUIDModel, TimestampMixin, table=True):
            email: str
    """

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime,
        nullable=False,
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_type=UTCDateTime,
        sa_column_kwargs={"onupdate": utc_now},
    )
