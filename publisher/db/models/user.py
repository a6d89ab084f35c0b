"""User model."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlmodel import Field, SQLModel

from publisher.db.models.base import UUIDModel, TimestampMixin


class UserBase(SQLModel):
    """Base user fields shared across Create/Read."""

    full_name: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None, unique=True, index=True)


class User(UUIDModel, UserBase, TimestampMixin, table=True):
    """User table - the local identity that owns credentials and posts."""

    __tablename__ = "users"

    is_active: bool = Field(default=True)


class UserCreate(UserBase):
    """Schema for creating a new user."""


class UserRead(UserBase):
    """Schema for reading user data."""

    id: UUID
    created_at: datetime
    is_active: bool = True
