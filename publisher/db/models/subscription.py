"""Subscription model used for premium feature gating."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlmodel import Field, SQLModel

from publisher.db.custom_types import UTCDateTime
from publisher.db.models.base import UUIDModel, TimestampMixin


class SubscriptionPlan(str, Enum):
    """Billing plans. Only the premium plans unlock publishing."""

    free = "FREE"
    premium_monthly = "PREMIUM_MONTHLY"
    premium_yearly = "PREMIUM_YEARLY"


class SubscriptionStatus(str, Enum):
    """Subscription status as reported by the billing provider."""

    active = "ACTIVE"
    canceled = "CANCELED"
    past_due = "PAST_DUE"
    incomplete = "INCOMPLETE"


PREMIUM_PLANS = frozenset({SubscriptionPlan.premium_monthly, SubscriptionPlan.premium_yearly})


class SubscriptionBase(SQLModel):
    """Base subscription fields."""

    user_id: UUID = Field(
        foreign_key="users.id", nullable=False, unique=True, index=True
    )
    plan: SubscriptionPlan = Field(default=SubscriptionPlan.free)
    status: SubscriptionStatus = Field(default=SubscriptionStatus.active)
    current_period_end: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class Subscription(UUIDModel, SubscriptionBase, TimestampMixin, table=True):
    """A user's billing subscription. One row per user."""

    __tablename__ = "subscriptions"


class SubscriptionRead(SubscriptionBase):
    """Schema for reading subscription data."""

    id: UUID
    created_at: datetime
