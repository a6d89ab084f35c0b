"""Authentication and feature gating for the API."""

from api.auth.jwt import (
    create_access_token,
    decode_user_id,
)
from api.auth.dependencies import (
    CurrentUser,
    get_current_user,
    require_feature,
)

__all__ = [
    # JWT
    "create_access_token",
    "decode_user_id",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "require_feature",
]
