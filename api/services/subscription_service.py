"""Premium feature gating based on the user's subscription.

Premium means a PREMIUM_* plan with ACTIVE status whose current period
has not ended. Features outside PREMIUM_FEATURES are open to every plan.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Session, select

from publisher.db.models import (
    PREMIUM_PLANS,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    as_utc,
    utc_now,
)
from publisher.logging.structured import get_logger

logger = get_logger(__name__)


class FeatureNotAvailable(Exception):
    """Raised when a feature is not available on the user's plan."""

    def __init__(self, feature_key: str, plan: SubscriptionPlan):
        self.feature_key = feature_key
        self.plan = plan
        super().__init__(
            f"Feature '{feature_key}' is not available on {plan.value}. "
            "Upgrade to a premium plan to access this feature."
        )


class SubscriptionService:
    """Plan lookups and feature checks for one session."""

    PREMIUM_FEATURES = frozenset(
        {"posting", "ai_assistant", "unlimited_history", "export_data"}
    )

    def __init__(self, session: Session):
        self.session = session

    def get_subscription(self, user_id: UUID) -> Optional[Subscription]:
        statement = select(Subscription).where(Subscription.user_id == user_id)
        return self.session.exec(statement).first()

    def is_premium(self, subscription: Optional[Subscription]) -> bool:
        if subscription is None:
            return False
        if subscription.plan not in PREMIUM_PLANS:
            return False
        if subscription.status != SubscriptionStatus.active:
            return False
        period_end = subscription.current_period_end
        return period_end is None or as_utc(period_end) > utc_now()

    def has_feature(self, user_id: UUID, feature_key: str) -> bool:
        if feature_key not in self.PREMIUM_FEATURES:
            return True
        return self.is_premium(self.get_subscription(user_id))

    def require_feature(self, user_id: UUID, feature_key: str) -> None:
        """Raise FeatureNotAvailable unless the user may use feature_key."""
        if self.has_feature(user_id, feature_key):
            return

        subscription = self.get_subscription(user_id)
        plan = subscription.plan if subscription else SubscriptionPlan.free
        logger.info(
            "feature_denied",
            user_id=str(user_id),
            feature=feature_key,
            plan=plan.value,
        )
        raise FeatureNotAvailable(feature_key, plan)
