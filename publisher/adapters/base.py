"""Common adapter types.

Adapters receive authentication explicitly on every call; no client
holds tokens between requests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx

from publisher.db.models import Credential, SocialPlatform, as_utc, utc_now
from publisher.posting.media import ResolvedMedia
from publisher.posting.models import MediaType, PlatformExtension


@dataclass(frozen=True)
class AuthContext:
    """Per-call authentication for one platform account."""

    platform: SocialPlatform
    access_token: str
    external_account_id: str
    access_token_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    username: Optional[str] = None
    account_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_credential(cls, credential: Credential) -> "AuthContext":
        return cls(
            platform=credential.platform,
            access_token=credential.access_token or "",
            external_account_id=credential.external_account_id,
            access_token_secret=credential.access_token_secret,
            refresh_token=credential.refresh_token,
            expires_at=credential.expires_at,
            username=credential.username,
            account_metadata=dict(credential.account_metadata or {}),
        )

    @property
    def is_valid(self) -> bool:
        """True when the token is present and not expired."""
        if not self.access_token:
            return False
        return self.expires_at is None or as_utc(self.expires_at) > utc_now()


@dataclass(frozen=True)
class PlatformPayload:
    """Composed content handed to an adapter."""

    text: str
    hashtags: list[str] = field(default_factory=list)
    mentions: list[str] = field(default_factory=list)
    link: Optional[str] = None
    media: list[ResolvedMedia] = field(default_factory=list)
    extension: Optional[PlatformExtension] = None

    @property
    def images(self) -> list[ResolvedMedia]:
        return [item for item in self.media if item.type == MediaType.image]

    @property
    def videos(self) -> list[ResolvedMedia]:
        return [item for item in self.media if item.type == MediaType.video]


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one adapter call."""

    success: bool
    platform_post_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, platform_post_id: str, url: Optional[str]) -> "AdapterResult":
        return cls(success=True, platform_post_id=platform_post_id, url=url)

    @classmethod
    def fail(cls, error: str) -> "AdapterResult":
        return cls(success=False, error=error)


class PlatformAdapter:
    """Base class for platform publishing adapters.

    Subclasses implement publish(). An optional httpx transport lets
    callers route outbound traffic (tests use httpx.MockTransport).
    """

    platform: SocialPlatform
    timeout: float = 30.0

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, **kwargs)

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        raise NotImplementedError


class PlatformApiError(Exception):
    """A platform rejected a request; the message is safe to show users."""


def graph_error_message(data: dict, default: str) -> str:
    """Extract the message from a Graph-style {"error": {...}} body."""
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or default
    if isinstance(error, str):
        return error
    return default
