"""Platform publishing adapters."""

from typing import Mapping, Optional

import httpx

from publisher.adapters.amazon import AmazonAdapter
from publisher.adapters.base import (
    AdapterResult,
    AuthContext,
    PlatformAdapter,
    PlatformApiError,
    PlatformPayload,
)
from publisher.adapters.facebook import FacebookAdapter
from publisher.adapters.instagram import InstagramAdapter
from publisher.adapters.tiktok import TikTokAdapter, TikTokApiError, TikTokClient
from publisher.adapters.twitter import TwitterAdapter
from publisher.db.models import SocialPlatform
from publisher.resilience.retry import RetryPolicy

AdapterRegistry = Mapping[SocialPlatform, PlatformAdapter]


def build_adapters(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    tiktok_poll_policy: Optional[RetryPolicy] = None,
) -> dict[SocialPlatform, PlatformAdapter]:
    """Create one adapter per supported platform sharing a transport."""
    return {
        SocialPlatform.facebook: FacebookAdapter(transport),
        SocialPlatform.instagram: InstagramAdapter(transport),
        SocialPlatform.twitter: TwitterAdapter(transport),
        SocialPlatform.tiktok: TikTokAdapter(transport, poll_policy=tiktok_poll_policy),
        SocialPlatform.amazon: AmazonAdapter(transport),
    }


async def post_to_platform(
    auth: AuthContext,
    platform: SocialPlatform,
    payload: PlatformPayload,
    adapters: Optional[AdapterRegistry] = None,
) -> AdapterResult:
    """Dispatch a payload to the adapter for platform."""
    registry = adapters if adapters is not None else build_adapters()
    adapter = registry.get(platform)
    if adapter is None:
        name = platform.value if isinstance(platform, SocialPlatform) else platform
        return AdapterResult.fail(f"Platform {name} not supported")
    return await adapter.publish(auth, payload)


__all__ = [
    "AdapterRegistry",
    "AdapterResult",
    "AmazonAdapter",
    "AuthContext",
    "FacebookAdapter",
    "InstagramAdapter",
    "PlatformAdapter",
    "PlatformApiError",
    "PlatformPayload",
    "TikTokAdapter",
    "TikTokApiError",
    "TikTokClient",
    "TwitterAdapter",
    "build_adapters",
    "post_to_platform",
]
