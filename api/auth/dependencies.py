"""FastAPI dependencies for authentication and feature gating.

Provides:
- get_current_user: Extract and validate user from JWT token
- require_feature: Dependency factory enforcing premium features
"""

from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from api.auth.jwt import decode_user_id
from api.exceptions import PremiumRequiredError
from api.services.subscription_service import FeatureNotAvailable, SubscriptionService
from publisher.db.engine import get_session_dependency
from publisher.db.models import User
from publisher.logging.structured import bind_context


# Security scheme for JWT Bearer tokens
security = HTTPBearer(auto_error=False)


class CurrentUser:
    """Container for the authenticated user."""

    def __init__(self, user: User):
        self.user = user

    @property
    def user_id(self) -> UUID:
        return self.user.id


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: Session = Depends(get_session_dependency),
) -> CurrentUser:
    """Extract and validate current user from JWT token.

    This dependency:
    1. Extracts JWT from Authorization header
    2. Resolves the user id from a valid access token
    3. Loads the user from the database

    Raises:
        HTTPException 401: Missing or invalid token, unknown or inactive user
    """
    if not credentials:
        raise _unauthorized("Authentication required")

    user_id = decode_user_id(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Invalid or expired token")

    user = session.get(User, user_id)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("User account is deactivated")

    request.state.user = user
    bind_context(user_id=user.id)
    return CurrentUser(user=user)


def require_feature(feature_key: str) -> Callable:
    """Create a dependency that checks the user's plan includes a feature.

    ```python
    @router.post("")
    async def create_post(
        current_user: CurrentUser = Depends(require_feature("posting"))
    ):
        ...
    ```

    Raises:
        HTTPException 401: Not authenticated
        PremiumRequiredError: The plan does not include the feature
    """

    async def feature_checker(
        current_user: CurrentUser = Depends(get_current_user),
        session: Session = Depends(get_session_dependency),
    ) -> CurrentUser:
        try:
            SubscriptionService(session).require_feature(current_user.user_id, feature_key)
        except FeatureNotAvailable as e:
            raise PremiumRequiredError(details={"feature": e.feature_key}) from e
        return current_user

    return feature_checker
