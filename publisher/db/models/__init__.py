"""SQLModel table definitions.

This module exports all SQLModel table classes and their Create/Read variants.
All primary keys use UUID.

Model Categories:
- Core: User
- Billing: Subscription
- Social: Credential
"""

from publisher.db.models.base import UUIDModel, TimestampMixin, utc_now, as_utc

from publisher.db.models.user import User, UserCreate, UserRead
from publisher.db.models.subscription import (
    Subscription, SubscriptionRead,
    SubscriptionPlan, SubscriptionStatus, PREMIUM_PLANS,
)
from publisher.db.models.credential import (
    Credential, CredentialData, CredentialRead,
    SocialPlatform,
)

__all__ = [
    # Base
    "UUIDModel",
    "TimestampMixin",
    "utc_now",
    "as_utc",
    # Core
    "User",
    "UserCreate",
    "UserRead",
    # Billing
    "Subscription",
    "SubscriptionRead",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "PREMIUM_PLANS",
    # Social
    "Credential",
    "CredentialData",
    "CredentialRead",
    "SocialPlatform",
]
