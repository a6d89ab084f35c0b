"""Connected platform account routes."""

from datetime import datetime
from typing import Annotated, Optional, Union

import httpx
from fastapi import APIRouter, Depends
from sqlmodel import Session

from api.auth.dependencies import CurrentUser, get_current_user
from api.dependencies import (
    get_http_transport,
    get_oauth_connectors,
    get_pending_authorizations,
)
from api.exceptions import NotFoundError, OAuthCallbackError
from api.responses import CamelModel, DataResponse, SuccessResponse
from publisher import config
from publisher.credentials import (
    CredentialStore,
    OAuthError,
    PendingAuthorizations,
    TokenRefreshManager,
)
from publisher.credentials.oauth import ConnectorRegistry
from publisher.db.engine import get_session_dependency
from publisher.db.models import Credential, SocialPlatform
from publisher.logging.structured import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/connections", tags=["connections"])


class ConnectionResponse(CamelModel):
    """A connected account. Tokens are never returned."""

    platform: SocialPlatform
    external_account_id: str
    username: Optional[str] = None
    account_name: Optional[str] = None
    scopes: list[str]
    expires_at: Optional[datetime] = None
    connected_at: datetime

    @classmethod
    def from_credential(cls, credential: Credential) -> "ConnectionResponse":
        return cls(
            platform=credential.platform,
            external_account_id=credential.external_account_id,
            username=credential.username,
            account_name=credential.account_name,
            scopes=credential.scope_list,
            expires_at=credential.expires_at,
            connected_at=credential.created_at,
        )


class AuthorizeResponse(CamelModel):
    platform: SocialPlatform
    authorization_url: str
    state: str


class RefreshResultResponse(CamelModel):
    platform: SocialPlatform
    refreshed: bool
    message: Optional[str] = None
    error: Optional[str] = None
    expires_at: Optional[datetime] = None


class RefreshResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    results: list[RefreshResultResponse]


@router.get("", response_model=DataResponse[list[ConnectionResponse]])
def list_connections(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[Session, Depends(get_session_dependency)],
):
    """List accounts with a usable (non-expired) token."""
    credentials = CredentialStore(session).find_active(current_user.user_id)
    return DataResponse(
        data=[ConnectionResponse.from_credential(c) for c in credentials]
    )


@router.delete("/{platform}", response_model=SuccessResponse)
def disconnect(
    platform: SocialPlatform,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[Session, Depends(get_session_dependency)],
):
    """Delete the user's credential for a platform."""
    removed = CredentialStore(session).remove(current_user.user_id, platform)
    if not removed:
        raise NotFoundError(
            f"No {platform.value} connection found",
            details={"platform": platform.value},
        )
    return SuccessResponse(message=f"Disconnected from {platform.value}")


@router.post("/refresh", response_model=DataResponse[RefreshResponse])
async def refresh_connections(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[Session, Depends(get_session_dependency)],
    transport: Annotated[
        Union[httpx.AsyncBaseTransport, None], Depends(get_http_transport)
    ],
):
    """Refresh every expiring token of the current user."""
    manager = TokenRefreshManager(CredentialStore(session), transport=transport)
    report = await manager.refresh_all_for_user(current_user.user_id)
    return DataResponse(
        data=RefreshResponse(
            success=report.success,
            message=report.message,
            results=[
                RefreshResultResponse(
                    platform=outcome.platform,
                    refreshed=outcome.refreshed,
                    message=outcome.message,
                    error=outcome.error,
                    expires_at=outcome.expires_at,
                )
                for outcome in report.results
            ],
        )
    )


# =============================================================================
# Account connection (OAuth authorization-code flow)
# =============================================================================


def _callback_url(platform: SocialPlatform) -> str:
    return f"{config.APP_URL}/api/connections/{platform.value}/callback"


@router.get("/{platform}/authorize", response_model=DataResponse[AuthorizeResponse])
def authorize(
    platform: SocialPlatform,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    pending: Annotated[PendingAuthorizations, Depends(get_pending_authorizations)],
    connectors: Annotated[ConnectorRegistry, Depends(get_oauth_connectors)],
):
    """Start connecting a platform account; returns the consent URL."""
    connector = connectors[platform]
    redirect_uri = _callback_url(platform)
    authorization = pending.create(
        current_user.user_id,
        platform,
        redirect_uri,
        code_verifier=connector.new_code_verifier(),
    )
    url = connector.authorization_url(
        authorization.state, redirect_uri, authorization.code_verifier
    )
    logger.info("oauth_initiated", platform=platform.value)
    return DataResponse(
        data=AuthorizeResponse(
            platform=platform, authorization_url=url, state=authorization.state
        ),
        message="OAuth flow initiated successfully",
    )


@router.get("/{platform}/callback", response_model=DataResponse[ConnectionResponse])
async def oauth_callback(
    platform: SocialPlatform,
    session: Annotated[Session, Depends(get_session_dependency)],
    pending: Annotated[PendingAuthorizations, Depends(get_pending_authorizations)],
    connectors: Annotated[ConnectorRegistry, Depends(get_oauth_connectors)],
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Finish the OAuth flow and store the account's credential.

    The platform redirects the browser here, so the user comes from the
    state parameter rather than a bearer token.
    """
    if error:
        logger.warning("oauth_denied", platform=platform.value, error=error)
        raise OAuthCallbackError(f"OAuth authentication failed: {error}")
    if not code or not state:
        raise OAuthCallbackError("Missing required OAuth parameters")

    authorization = pending.consume(state)
    if authorization is None or authorization.platform != platform:
        logger.warning("oauth_state_rejected", platform=platform.value)
        raise OAuthCallbackError("Invalid OAuth state")

    try:
        data = await connectors[platform].connect(
            code, authorization.redirect_uri, authorization.code_verifier
        )
    except (OAuthError, httpx.HTTPError, ValueError) as e:
        logger.warning("oauth_exchange_failed", platform=platform.value, error=str(e))
        raise OAuthCallbackError(str(e), details={"platform": platform.value}) from e

    credential = CredentialStore(session).upsert(authorization.user_id, platform, data)
    logger.info(
        "oauth_connected",
        user_id=str(authorization.user_id),
        platform=platform.value,
        external_account_id=credential.external_account_id,
    )
    return DataResponse(
        data=ConnectionResponse.from_credential(credential),
        message=f"Successfully connected to {platform.value}",
    )
