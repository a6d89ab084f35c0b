"""Token refresh for connected platform credentials.

Each credential is refreshed through its platform's OAuth flow:
- Facebook/Instagram: long-lived token exchange (fb_exchange_token grant)
- Twitter: OAuth 2.0 refresh-token grant with Basic client auth
- TikTok: OAuth 2.0 refresh-token grant through the Business API

Failures of any kind are recorded per platform in the report and never
raised, so one broken account cannot block the others. Refresh is not retried
within a pass.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError

from publisher import config
from publisher.adapters.tiktok import TikTokApiError, TikTokClient
from publisher.credentials.store import CredentialStore, DatabaseError
from publisher.db.models import Credential, SocialPlatform, as_utc, utc_now
from publisher.logging.structured import get_logger

logger = get_logger(__name__)

FACEBOOK_TOKEN_URL = f"{config.FACEBOOK_GRAPH_URL}/oauth/access_token"
TWITTER_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"

REFRESH_WINDOW = timedelta(hours=24)
LONG_LIVED_EXCHANGE_WINDOW = timedelta(days=5)

FACEBOOK_DEFAULT_LIFETIME = 60 * 24 * 60 * 60  # 60 days
TWITTER_DEFAULT_LIFETIME = 7200  # 2 hours
TIKTOK_DEFAULT_LIFETIME = 24 * 60 * 60


class TokenRefreshError(Exception):
    """A platform rejected a refresh request."""


@dataclass
class RefreshOutcome:
    """Result of one credential's refresh attempt."""

    platform: SocialPlatform
    refreshed: bool
    message: Optional[str] = None
    error: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class RefreshReport:
    success: bool
    results: list[RefreshOutcome] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def refreshed_count(self) -> int:
        return sum(1 for outcome in self.results if outcome.refreshed)


@dataclass(frozen=True)
class _Grant:
    access_token: str
    refresh_token: Optional[str]
    expires_in: int


class TokenRefreshManager:
    """Refresh expiring tokens for every active credential of a user."""

    def __init__(
        self,
        store: CredentialStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.transport = transport

    async def refresh_all_for_user(self, user_id: UUID) -> RefreshReport:
        credentials = self.store.find_active(user_id)
        if not credentials:
            logger.info("token_refresh_no_credentials", user_id=str(user_id))
            return RefreshReport(success=False, message="No active credentials")

        logger.info(
            "token_refresh_started",
            user_id=str(user_id),
            platforms=[c.platform.value for c in credentials],
        )

        results = []
        for credential in credentials:
            outcome = await self.refresh_credential(credential)
            results.append(outcome)

        report = RefreshReport(success=True, results=results)
        logger.info(
            "token_refresh_completed",
            user_id=str(user_id),
            refreshed=report.refreshed_count,
            total=len(results),
        )
        return report

    async def refresh_credential(self, credential: Credential) -> RefreshOutcome:
        """Refresh one credential if it is due; never raises."""
        platform = credential.platform
        now = utc_now()
        expires_at = as_utc(credential.expires_at)

        if expires_at is not None and expires_at - now > REFRESH_WINDOW:
            return RefreshOutcome(platform, refreshed=False, message="Not expiring soon")

        try:
            if platform in (SocialPlatform.facebook, SocialPlatform.instagram):
                near_expiry = (
                    expires_at is not None and expires_at - now < LONG_LIVED_EXCHANGE_WINDOW
                )
                if not (credential.refresh_token or near_expiry):
                    return RefreshOutcome(
                        platform, refreshed=False, message="Not due for token exchange"
                    )
                grant = await self._exchange_long_lived(credential.access_token or "")
            elif platform == SocialPlatform.twitter:
                if not credential.refresh_token:
                    return RefreshOutcome(
                        platform, refreshed=False, message="No refresh token available"
                    )
                grant = await self._refresh_twitter(credential.refresh_token)
            elif platform == SocialPlatform.tiktok:
                if not credential.refresh_token:
                    return RefreshOutcome(
                        platform, refreshed=False, message="No refresh token available"
                    )
                grant = await self._refresh_tiktok(credential.refresh_token)
            else:
                return RefreshOutcome(
                    platform, refreshed=False, message="Refresh not supported"
                )

            new_expiry = now + timedelta(seconds=grant.expires_in)
            # A still-valid expiry is never moved earlier
            if expires_at is not None and expires_at > now and expires_at > new_expiry:
                new_expiry = expires_at

            self.store.update_tokens(
                credential.id,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=new_expiry,
            )
        except (TokenRefreshError, TikTokApiError, httpx.HTTPError, ValueError, DatabaseError) as e:
            logger.error(
                "token_refresh_failed",
                platform=platform.value,
                credential_id=str(credential.id),
                error=str(e),
            )
            return RefreshOutcome(platform, refreshed=False, error=str(e))
        except SQLAlchemyError:
            self.store.session.rollback()
            logger.exception(
                "token_refresh_persist_failed",
                platform=platform.value,
                credential_id=str(credential.id),
            )
            return RefreshOutcome(
                platform, refreshed=False, error="Failed to save refreshed token"
            )
        except Exception as e:
            logger.exception(
                "token_refresh_crashed",
                platform=platform.value,
                credential_id=str(credential.id),
            )
            return RefreshOutcome(platform, refreshed=False, error=str(e) or type(e).__name__)

        logger.info(
            "token_refreshed",
            platform=platform.value,
            credential_id=str(credential.id),
            expires_at=new_expiry.isoformat(),
        )
        return RefreshOutcome(
            platform,
            refreshed=True,
            message="Token refreshed successfully",
            expires_at=new_expiry,
        )

    # =========================================================================
    # Platform flows
    # =========================================================================

    async def _exchange_long_lived(self, access_token: str) -> _Grant:
        """Exchange a Facebook/Instagram token for a long-lived one."""
        async with httpx.AsyncClient(transport=self.transport, timeout=30.0) as client:
            response = await client.post(
                FACEBOOK_TOKEN_URL,
                data={
                    "grant_type": "fb_exchange_token",
                    "client_id": config.FACEBOOK_CLIENT_ID,
                    "client_secret": config.FACEBOOK_CLIENT_SECRET,
                    "fb_exchange_token": access_token,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        if response.is_error:
            raise TokenRefreshError(
                f"Failed to exchange for long-lived token ({response.status_code})"
            )

        data = _token_payload(response)
        if not data.get("access_token"):
            raise TokenRefreshError("Could not obtain long-lived token")
        return _Grant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or FACEBOOK_DEFAULT_LIFETIME),
        )

    async def _refresh_twitter(self, refresh_token: str) -> _Grant:
        if not config.TWITTER_CLIENT_ID or not config.TWITTER_CLIENT_SECRET:
            raise TokenRefreshError("Twitter OAuth credentials not configured")

        async with httpx.AsyncClient(transport=self.transport, timeout=15.0) as client:
            response = await client.post(
                TWITTER_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": config.TWITTER_CLIENT_ID,
                },
                auth=(config.TWITTER_CLIENT_ID, config.TWITTER_CLIENT_SECRET),
            )
        if response.is_error:
            raise TokenRefreshError(f"Token refresh failed ({response.status_code})")

        data = _token_payload(response)
        if not data.get("access_token"):
            raise TokenRefreshError("Token refresh failed")
        return _Grant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or TWITTER_DEFAULT_LIFETIME),
        )

    async def _refresh_tiktok(self, refresh_token: str) -> _Grant:
        grant = await TikTokClient.refresh_access_token(refresh_token, transport=self.transport)
        return _Grant(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_in=int(grant.expires_in or TIKTOK_DEFAULT_LIFETIME),
        )


def _token_payload(response: httpx.Response) -> dict:
    data = response.json()
    if not isinstance(data, dict):
        raise TokenRefreshError("Unexpected token response")
    return data
