"""Twitter/X publishing.

Credentials carrying a token secret use OAuth 1.0a user context
(signed with authlib); all others use an OAuth 2.0 bearer token.
"""

from typing import Optional

import httpx
from authlib.integrations.httpx_client import AsyncOAuth1Client

from publisher import config
from publisher.adapters.base import AdapterResult, AuthContext, PlatformAdapter, PlatformPayload
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.media import ResolvedMedia
from publisher.posting.models import MediaType

logger = get_logger(__name__)


class TwitterAdapter(PlatformAdapter):
    """Publish tweets with optional media through the v2 API."""

    platform = SocialPlatform.twitter

    API_URL = "https://api.twitter.com/2"
    UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"

    def client(self, auth: Optional[AuthContext] = None, **kwargs) -> httpx.AsyncClient:
        if auth is not None and auth.access_token_secret:
            return AsyncOAuth1Client(
                client_id=config.TWITTER_API_KEY,
                client_secret=config.TWITTER_API_SECRET,
                token=auth.access_token,
                token_secret=auth.access_token_secret,
                transport=self.transport,
                timeout=self.timeout,
                **kwargs,
            )
        headers = {"Authorization": f"Bearer {auth.access_token}"} if auth else None
        return super().client(headers=headers, **kwargs)

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        async with self.client(auth) as client:
            media_ids = []
            for item in payload.media:
                media_id = await self._upload_media(client, item)
                if media_id:
                    media_ids.append(media_id)

            tweet: dict = {"text": payload.text}
            if media_ids:
                tweet["media"] = {"media_ids": media_ids}

            response = await client.post(f"{self.API_URL}/tweets", json=tweet)
            body = response.json()

        data = body.get("data") or {}
        tweet_id = data.get("id")
        if response.is_error or not tweet_id:
            return AdapterResult.fail(_twitter_error(body) or "Twitter posting failed")

        if auth.username:
            url = f"https://x.com/{auth.username}/status/{tweet_id}"
        else:
            url = f"https://x.com/i/status/{tweet_id}"
        return AdapterResult.ok(str(tweet_id), url)

    async def _upload_media(
        self, client: httpx.AsyncClient, item: ResolvedMedia
    ) -> Optional[str]:
        """Download a media item and upload it; failures skip the item."""
        category = "tweet_video" if item.type == MediaType.video else "tweet_image"
        try:
            async with super().client() as fetcher:
                source = await fetcher.get(item.url)
                source.raise_for_status()

            response = await client.post(
                self.UPLOAD_URL,
                data={"media_category": category},
                files={
                    "media": (
                        item.ref.filename,
                        source.content,
                        item.ref.mime_type or "application/octet-stream",
                    )
                },
            )
            response.raise_for_status()
            return response.json().get("media_id_string")
        except httpx.HTTPError as e:
            logger.warning("twitter_media_upload_failed", media_id=item.ref.id, error=str(e))
            return None


def _twitter_error(body: dict) -> Optional[str]:
    errors = body.get("errors")
    if errors and isinstance(errors, list):
        first = errors[0]
        return first.get("detail") or first.get("message")
    return body.get("detail") or body.get("title")
