"""OAuth authorization-code flows that connect platform accounts.

A connector builds the platform's consent URL and turns the code handed
back to the callback into a CredentialData for CredentialStore.upsert.
State parameters are single use and expire after OAUTH_STATE_TTL_SECONDS.

Twitter uses PKCE (S256). Facebook and Instagram tokens are upgraded to
long-lived tokens when the exchange succeeds.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlencode
from uuid import UUID

import httpx
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from publisher import config
from publisher.adapters.tiktok import TikTokApiError, TikTokClient
from publisher.db.models import CredentialData, SocialPlatform, utc_now
from publisher.logging.structured import get_logger

logger = get_logger(__name__)


class OAuthError(Exception):
    """The platform refused the code exchange or returned unusable data."""


# =============================================================================
# Pending authorizations
# =============================================================================


@dataclass
class PendingAuthorization:
    """An authorize request waiting for its callback."""

    state: str
    user_id: UUID
    platform: SocialPlatform
    redirect_uri: str
    code_verifier: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def expired(self) -> bool:
        age = utc_now() - self.created_at
        return age > timedelta(seconds=config.OAUTH_STATE_TTL_SECONDS)


class PendingAuthorizations:
    """In-memory, process-wide store of OAuth state parameters."""

    def __init__(self):
        self._pending: dict[str, PendingAuthorization] = {}

    def create(
        self,
        user_id: UUID,
        platform: SocialPlatform,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> PendingAuthorization:
        self._purge_expired()
        pending = PendingAuthorization(
            state=secrets.token_urlsafe(32),
            user_id=user_id,
            platform=platform,
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
        )
        self._pending[pending.state] = pending
        return pending

    def consume(self, state: str) -> Optional[PendingAuthorization]:
        """Pop the authorization for state; None if unknown or expired."""
        pending = self._pending.pop(state, None)
        if pending is None or pending.expired:
            return None
        return pending

    def __len__(self) -> int:
        return len(self._pending)

    def _purge_expired(self) -> None:
        for state in [s for s, p in self._pending.items() if p.expired]:
            del self._pending[state]


# =============================================================================
# Connectors
# =============================================================================


class OAuthConnector:
    """Authorization-code flow for one platform."""

    platform: SocialPlatform
    authorize_url: str = ""
    scopes: tuple[str, ...] = ()
    scope_separator = " "
    uses_pkce = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    @property
    def client_id(self) -> str:
        raise NotImplementedError

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=30.0)

    def new_code_verifier(self) -> Optional[str]:
        return generate_token(64) if self.uses_pkce else None

    def authorization_url(
        self, state: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "state": state,
        }
        if self.scopes:
            params["scope"] = self.scope_separator.join(self.scopes)
        if code_verifier:
            params["code_challenge"] = create_s256_code_challenge(code_verifier)
            params["code_challenge_method"] = "S256"
        return f"{self.authorize_url}?{urlencode(params)}"

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        raise NotImplementedError

    @staticmethod
    def _json(response: httpx.Response, failure: str) -> dict[str, Any]:
        if response.is_error:
            raise OAuthError(f"{failure} ({response.status_code})")
        data = response.json()
        if not isinstance(data, dict):
            raise OAuthError(failure)
        return data

    @staticmethod
    def _expiry(expires_in: Any) -> Optional[datetime]:
        if not expires_in:
            return None
        return utc_now() + timedelta(seconds=int(expires_in))


class _GraphConnector(OAuthConnector):
    """Shared Facebook Login flow for Facebook Pages and Instagram."""

    scope_separator = ","

    @property
    def client_id(self) -> str:
        return config.FACEBOOK_CLIENT_ID

    @property
    def graph_url(self) -> str:
        return config.FACEBOOK_GRAPH_URL

    @property
    def authorize_url(self) -> str:
        version = self.graph_url.rstrip("/").rsplit("/", 1)[-1]
        return f"https://www.facebook.com/{version}/dialog/oauth"

    async def _user_token(
        self, client: httpx.AsyncClient, code: str, redirect_uri: str
    ) -> dict[str, Any]:
        token_url = f"{self.graph_url}/oauth/access_token"
        response = await client.get(
            token_url,
            params={
                "client_id": config.FACEBOOK_CLIENT_ID,
                "client_secret": config.FACEBOOK_CLIENT_SECRET,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        token = self._json(response, "Failed to exchange authorization code")
        if not token.get("access_token"):
            raise OAuthError("Failed to exchange authorization code")

        response = await client.post(
            token_url,
            data={
                "grant_type": "fb_exchange_token",
                "client_id": config.FACEBOOK_CLIENT_ID,
                "client_secret": config.FACEBOOK_CLIENT_SECRET,
                "fb_exchange_token": token["access_token"],
            },
        )
        long_lived = response.json() if response.is_success else {}
        if isinstance(long_lived, dict) and long_lived.get("access_token"):
            return long_lived

        logger.warning(
            "long_lived_token_unavailable",
            platform=self.platform.value,
            status=response.status_code,
        )
        return token

    async def _pages(self, client: httpx.AsyncClient, access_token: str) -> list[dict]:
        response = await client.get(
            f"{self.graph_url}/me/accounts",
            params={
                "fields": "id,name,instagram_business_account{id,username}",
                "access_token": access_token,
            },
        )
        return self._json(response, "Failed to list Facebook Pages").get("data") or []


class FacebookConnector(_GraphConnector):
    platform = SocialPlatform.facebook
    scopes = ("pages_show_list", "pages_manage_posts", "pages_read_engagement")

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        async with self.client() as client:
            token = await self._user_token(client, code, redirect_uri)
            pages = await self._pages(client, token["access_token"])

        if not pages:
            raise OAuthError("No Facebook Page available for publishing")
        page = pages[0]
        return CredentialData(
            external_account_id=str(page["id"]),
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            expires_at=self._expiry(token.get("expires_in")),
            scopes=list(self.scopes),
            account_name=page.get("name"),
            account_metadata={
                "pages": [{"id": str(p["id"]), "name": p.get("name")} for p in pages],
            },
        )


class InstagramConnector(_GraphConnector):
    platform = SocialPlatform.instagram
    scopes = (
        "instagram_basic",
        "instagram_content_publish",
        "pages_show_list",
        "pages_read_engagement",
    )

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        async with self.client() as client:
            token = await self._user_token(client, code, redirect_uri)
            pages = await self._pages(client, token["access_token"])

        for page in pages:
            account = page.get("instagram_business_account") or {}
            if account.get("id"):
                return CredentialData(
                    external_account_id=str(account["id"]),
                    access_token=token["access_token"],
                    refresh_token=token.get("refresh_token"),
                    expires_at=self._expiry(token.get("expires_in")),
                    scopes=list(self.scopes),
                    username=account.get("username"),
                    account_name=page.get("name"),
                    account_metadata={
                        "instagram_business_account_id": str(account["id"]),
                        "page_id": str(page["id"]),
                    },
                )
        raise OAuthError("No Instagram Business account linked to your Facebook Pages")


class TwitterConnector(OAuthConnector):
    platform = SocialPlatform.twitter
    authorize_url = "https://twitter.com/i/oauth2/authorize"
    token_url = "https://api.twitter.com/2/oauth2/token"
    profile_url = "https://api.twitter.com/2/users/me"
    scopes = ("tweet.read", "tweet.write", "users.read", "offline.access")
    uses_pkce = True

    @property
    def client_id(self) -> str:
        return config.TWITTER_CLIENT_ID

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        if not code_verifier:
            raise OAuthError("Missing code verifier for Twitter OAuth")

        async with self.client() as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "code_verifier": code_verifier,
                    "client_id": config.TWITTER_CLIENT_ID,
                },
                auth=(config.TWITTER_CLIENT_ID, config.TWITTER_CLIENT_SECRET),
            )
            token = self._json(response, "Failed to exchange authorization code")
            if not token.get("access_token"):
                raise OAuthError("Failed to exchange authorization code")

            response = await client.get(
                self.profile_url,
                headers={"Authorization": f"Bearer {token['access_token']}"},
            )
            profile = self._json(response, "Failed to fetch Twitter profile").get("data") or {}

        if not profile.get("id"):
            raise OAuthError("Failed to fetch Twitter profile")
        granted = token.get("scope")
        return CredentialData(
            external_account_id=str(profile["id"]),
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            expires_at=self._expiry(token.get("expires_in") or 7200),
            scopes=granted.split() if granted else list(self.scopes),
            username=profile.get("username"),
            account_name=profile.get("name"),
        )


class TikTokConnector(OAuthConnector):
    """TikTok for Business advertiser authorization."""

    platform = SocialPlatform.tiktok
    authorize_url = "https://business-api.tiktok.com/portal/auth"

    @property
    def client_id(self) -> str:
        return config.TIKTOK_CLIENT_KEY

    def authorization_url(
        self, state: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> str:
        params = {"app_id": self.client_id, "state": state, "redirect_uri": redirect_uri}
        return f"{self.authorize_url}?{urlencode(params)}"

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        try:
            grant = await TikTokClient.exchange_auth_code(code, transport=self.transport)
        except TikTokApiError as e:
            raise OAuthError(str(e)) from e

        if not grant.advertiser_ids:
            raise OAuthError("No TikTok advertiser account was authorized")
        advertiser_id = grant.advertiser_ids[0]
        return CredentialData(
            external_account_id=advertiser_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=self._expiry(grant.expires_in),
            account_metadata={
                "advertiser_id": advertiser_id,
                "advertiser_ids": list(grant.advertiser_ids),
            },
        )


class AmazonConnector(OAuthConnector):
    """Login with Amazon for brand store posting."""

    platform = SocialPlatform.amazon
    authorize_url = "https://www.amazon.com/ap/oa"
    token_url = "https://api.amazon.com/auth/o2/token"
    profile_url = "https://api.amazon.com/user/profile"
    scopes = ("profile",)

    @property
    def client_id(self) -> str:
        return config.AMAZON_CLIENT_ID

    async def connect(
        self, code: str, redirect_uri: str, code_verifier: Optional[str] = None
    ) -> CredentialData:
        async with self.client() as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": config.AMAZON_CLIENT_ID,
                    "client_secret": config.AMAZON_CLIENT_SECRET,
                },
            )
            token = self._json(response, "Failed to exchange authorization code")
            if not token.get("access_token"):
                raise OAuthError("Failed to exchange authorization code")

            response = await client.get(
                self.profile_url,
                headers={"Authorization": f"Bearer {token['access_token']}"},
            )
            profile = self._json(response, "Failed to fetch Amazon profile")

        if not profile.get("user_id"):
            raise OAuthError("Failed to fetch Amazon profile")
        return CredentialData(
            external_account_id=str(profile["user_id"]),
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            expires_at=self._expiry(token.get("expires_in")),
            scopes=list(self.scopes),
            username=profile.get("name"),
            account_metadata={"email": profile.get("email")} if profile.get("email") else {},
        )


ConnectorRegistry = dict[SocialPlatform, OAuthConnector]


def build_connectors(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ConnectorRegistry:
    connectors = (
        FacebookConnector(transport),
        InstagramConnector(transport),
        TwitterConnector(transport),
        TikTokConnector(transport),
        AmazonConnector(transport),
    )
    return {connector.platform: connector for connector in connectors}
