"""Instagram publishing through the Facebook Graph API.

Instagram feed posts use a two-step container flow:
1. Create a media container (image, reel or carousel)
2. Publish the container with media_publish
"""

from typing import Any, Optional

import httpx

from publisher import config
from publisher.adapters.base import (
    AdapterResult,
    AuthContext,
    PlatformAdapter,
    PlatformApiError,
    PlatformPayload,
    graph_error_message,
)
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.media import ResolvedMedia
from publisher.posting.models import MediaType

logger = get_logger(__name__)

MEDIA_REQUIRED_ERROR = "Instagram requires media for posting. Text-only posts are not supported."
NO_BUSINESS_ACCOUNT_ERROR = (
    "Instagram Business Account not found. "
    "Make sure your Instagram account is connected to a Facebook Page."
)


class InstagramAdapter(PlatformAdapter):
    """Publish images, reels and carousels to an Instagram Business account."""

    platform = SocialPlatform.instagram

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        graph_url: Optional[str] = None,
    ):
        super().__init__(transport)
        self.graph_url = graph_url or config.INSTAGRAM_GRAPH_URL

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        if not payload.media:
            return AdapterResult.fail(MEDIA_REQUIRED_ERROR)

        try:
            async with self.client() as client:
                account_id = await self._business_account_id(client, auth)
                if not account_id:
                    return AdapterResult.fail(NO_BUSINESS_ACCOUNT_ERROR)

                creation_id = await self._create_container(
                    client, account_id, auth.access_token, payload
                )
                published = await self._call(
                    client,
                    "POST",
                    f"{self.graph_url}/{account_id}/media_publish",
                    data={"creation_id": creation_id, "access_token": auth.access_token},
                    default_error="Failed to publish Instagram media",
                )
                media_id = str(published["id"])

                details = await self._call(
                    client,
                    "GET",
                    f"{self.graph_url}/{media_id}",
                    params={"fields": "id,permalink", "access_token": auth.access_token},
                    default_error="Failed to fetch Instagram permalink",
                )
        except PlatformApiError as e:
            return AdapterResult.fail(str(e))

        permalink = details.get("permalink") or f"https://instagram.com/p/{media_id}"
        return AdapterResult.ok(media_id, permalink)

    async def _business_account_id(
        self, client: httpx.AsyncClient, auth: AuthContext
    ) -> Optional[str]:
        """Find the Instagram Business account attached to one of the user's pages."""
        known = auth.account_metadata.get("instagram_business_account_id")
        if known:
            return str(known)

        pages = await self._call(
            client,
            "GET",
            f"{self.graph_url}/me/accounts",
            params={"access_token": auth.access_token},
            default_error="Failed to list Facebook Pages",
        )
        for page in pages.get("data") or []:
            response = await client.get(
                f"{self.graph_url}/{page['id']}",
                params={
                    "fields": "instagram_business_account",
                    "access_token": page.get("access_token", auth.access_token),
                },
            )
            account = response.json().get("instagram_business_account") or {}
            if account.get("id"):
                return str(account["id"])

        logger.warning("instagram_business_account_missing", user=auth.external_account_id)
        return None

    async def _create_container(
        self,
        client: httpx.AsyncClient,
        account_id: str,
        access_token: str,
        payload: PlatformPayload,
    ) -> str:
        endpoint = f"{self.graph_url}/{account_id}/media"

        if len(payload.media) > 1:
            children = []
            for item in payload.media:
                fields = self._media_fields(item)
                fields["is_carousel_item"] = "true"
                fields["access_token"] = access_token
                child = await self._call(
                    client, "POST", endpoint, data=fields,
                    default_error="Failed to create carousel item",
                )
                children.append(str(child["id"]))
            data = {
                "media_type": "CAROUSEL",
                "children": ",".join(children),
                "caption": payload.text,
                "access_token": access_token,
            }
        else:
            data = self._media_fields(payload.media[0])
            data["caption"] = payload.text
            data["access_token"] = access_token

        container = await self._call(
            client, "POST", endpoint, data=data,
            default_error="Failed to create Instagram media container",
        )
        return str(container["id"])

    @staticmethod
    def _media_fields(item: ResolvedMedia) -> dict[str, str]:
        if item.type == MediaType.video:
            return {"media_type": "REELS", "video_url": item.url}
        return {"image_url": item.url}

    @staticmethod
    async def _call(
        client: httpx.AsyncClient,
        method: str,
        url: str,
        default_error: str,
        **kwargs: Any,
    ) -> dict:
        response = await client.request(method, url, **kwargs)
        data = response.json()
        if response.is_error or "error" in data:
            raise PlatformApiError(graph_error_message(data, default_error))
        if method == "POST" and not data.get("id"):
            raise PlatformApiError(default_error)
        return data
