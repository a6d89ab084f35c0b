"""Facebook Page publishing through the Graph API."""

from typing import Optional

import httpx

from publisher import config
from publisher.adapters.base import (
    AdapterResult,
    AuthContext,
    PlatformAdapter,
    PlatformPayload,
    graph_error_message,
)
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.models import MediaType

logger = get_logger(__name__)


class FacebookAdapter(PlatformAdapter):
    """Publish to the Facebook Page linked to a credential.

    Posts are made with the page access token, looked up from the
    user token on every call. Media items are uploaded as their own page
    posts; the first uploaded id identifies the result.
    """

    platform = SocialPlatform.facebook

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        graph_url: Optional[str] = None,
    ):
        super().__init__(transport)
        self.graph_url = graph_url or config.FACEBOOK_GRAPH_URL

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        page_id = auth.account_metadata.get("page_id") or auth.external_account_id

        async with self.client() as client:
            response = await client.get(
                f"{self.graph_url}/{page_id}",
                params={"fields": "access_token", "access_token": auth.access_token},
            )
            if response.is_error:
                logger.warning(
                    "facebook_page_token_failed",
                    page_id=page_id,
                    status_code=response.status_code,
                )
                return AdapterResult.fail("Failed to get page access token")

            data = response.json()
            if "error" in data:
                return AdapterResult.fail(
                    graph_error_message(data, "Failed to get page access token")
                )
            page_token = data.get("access_token")
            if not page_token:
                return AdapterResult.fail("No page access token received")

            if payload.media:
                media_ids = await self._upload_media(client, page_id, str(page_token), payload)
                if media_ids:
                    return AdapterResult.ok(media_ids[0], f"https://facebook.com/{media_ids[0]}")

            body = {"message": payload.text, "access_token": str(page_token)}
            if payload.link:
                body["link"] = payload.link
            response = await client.post(f"{self.graph_url}/{page_id}/feed", json=body)
            result = response.json()

        post_id = result.get("id")
        if post_id:
            return AdapterResult.ok(str(post_id), f"https://facebook.com/{post_id}")
        return AdapterResult.fail(graph_error_message(result, "Facebook posting failed"))

    async def _upload_media(
        self,
        client: httpx.AsyncClient,
        page_id: str,
        page_token: str,
        payload: PlatformPayload,
    ) -> list[str]:
        """Upload each media item; failed items are skipped."""
        media_ids = []
        for item in payload.media:
            if item.type == MediaType.video:
                endpoint = f"{self.graph_url}/{page_id}/videos"
                data = {
                    "file_url": item.url,
                    "description": payload.text,
                    "access_token": page_token,
                }
            else:
                endpoint = f"{self.graph_url}/{page_id}/photos"
                data = {"url": item.url, "caption": payload.text, "access_token": page_token}

            try:
                response = await client.post(endpoint, data=data)
                response.raise_for_status()
                media_id = response.json().get("id")
            except httpx.HTTPError as e:
                logger.warning(
                    "facebook_media_upload_failed",
                    page_id=page_id,
                    media_id=item.ref.id,
                    error=str(e),
                )
                continue

            if media_id:
                media_ids.append(str(media_id))
        return media_ids
