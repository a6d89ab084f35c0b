"""Credential storage, account connection and token refresh."""

from publisher.credentials.oauth import (
    OAuthConnector,
    OAuthError,
    PendingAuthorizations,
    build_connectors,
)
from publisher.credentials.refresh import (
    RefreshOutcome,
    RefreshReport,
    TokenRefreshError,
    TokenRefreshManager,
)
from publisher.credentials.store import CredentialStore, DatabaseError

__all__ = [
    "CredentialStore",
    "DatabaseError",
    "OAuthConnector",
    "OAuthError",
    "PendingAuthorizations",
    "RefreshOutcome",
    "RefreshReport",
    "TokenRefreshError",
    "TokenRefreshManager",
    "build_connectors",
]
