"""API services module."""

from api.services.subscription_service import FeatureNotAvailable, SubscriptionService

__all__ = [
    "FeatureNotAvailable",
    "SubscriptionService",
]
