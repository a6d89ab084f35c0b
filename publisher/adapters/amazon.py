"""Amazon brand Posts publishing.

A post is created as a draft with its products and media, then
submitted for review. Both calls must succeed for a published result.
"""

from typing import Optional

import httpx

from publisher import config
from publisher.adapters.base import AdapterResult, AuthContext, PlatformAdapter, PlatformPayload
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.models import AmazonExtension

logger = get_logger(__name__)

MAX_PRODUCTS = 5
MAX_TAGS = 10


class AmazonAdapter(PlatformAdapter):
    """Publish brand posts featuring up to five products."""

    platform = SocialPlatform.amazon

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        api_url: Optional[str] = None,
        marketplace_id: Optional[str] = None,
    ):
        super().__init__(transport)
        self.api_url = (api_url or config.AMAZON_POSTS_API_URL).rstrip("/")
        self.marketplace_id = marketplace_id or config.AMAZON_MARKETPLACE_ID

    def build_post(self, payload: PlatformPayload, extension: AmazonExtension) -> dict:
        brand = extension.brand_content
        text = payload.text
        return {
            "marketplaceId": self.marketplace_id,
            "headline": brand.headline or text[:80] or "Check out our products",
            "bodyText": text[:500],
            "callToAction": "SHOP_NOW",
            "products": [{"asin": asin} for asin in extension.product_asins[:MAX_PRODUCTS]],
            "mediaAssets": [
                {"assetType": item.type.value.upper(), "url": item.url}
                for item in payload.media
            ],
            "brandContent": {
                "brandName": brand.brand_name,
                "brandStoryTitle": brand.headline or "Our Brand Story",
                "targetAudience": brand.target_audience,
                "brandValues": brand.product_highlights[:5],
            },
            "tags": payload.hashtags[:MAX_TAGS],
        }

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        extension = payload.extension
        if not isinstance(extension, AmazonExtension):
            return AdapterResult.fail("Amazon posts require brand content information")
        if not extension.product_asins:
            return AdapterResult.fail("Amazon posts require at least one product ASIN")

        headers = {
            "Authorization": f"Bearer {auth.access_token}",
            "x-amz-access-token": auth.access_token,
        }
        async with self.client(headers=headers) as client:
            response = await client.post(
                f"{self.api_url}/posts", json=self.build_post(payload, extension)
            )
            if response.is_error:
                logger.warning("amazon_post_create_failed", status_code=response.status_code)
                return AdapterResult.fail("Failed to create Amazon post")
            post_id = response.json().get("postId")
            if not post_id:
                return AdapterResult.fail("Failed to create Amazon post")

            response = await client.post(f"{self.api_url}/posts/{post_id}/submit")
            if response.is_error:
                logger.warning(
                    "amazon_post_submit_failed",
                    post_id=post_id,
                    status_code=response.status_code,
                )
                return AdapterResult.fail("Failed to publish Amazon post")

        return AdapterResult.ok(
            str(post_id), f"https://www.amazon.com/brand-store/post/{post_id}"
        )
