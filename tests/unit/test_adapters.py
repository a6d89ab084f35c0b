"""Tests for platform adapters using httpx.MockTransport."""

import json
from typing import Callable
from uuid import uuid4

import httpx
import pytest

from publisher.adapters import (
    AmazonAdapter,
    AuthContext,
    FacebookAdapter,
    InstagramAdapter,
    PlatformPayload,
    TwitterAdapter,
    build_adapters,
    post_to_platform,
)
from publisher.db.models import SocialPlatform
from publisher.posting.media import ResolvedMedia
from publisher.posting.models import (
    AmazonExtension,
    BrandContent,
    MediaRef,
    MediaType,
)

GRAPH = "https://graph.facebook.com/v23.0"
INSTAGRAM_GRAPH = GRAPH


class Recorder:
    """MockTransport handler that answers from a route table and records calls."""

    def __init__(self, routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        handler = self.routes.get((request.method, url))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": f"No route for {url}"}})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and str(r.url).split("?")[0] == url
        ]


def reply(status_code: int = 200, **body) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status_code, json=body)


def auth(platform: SocialPlatform, **kwargs) -> AuthContext:
    kwargs.setdefault("external_account_id", f"{platform.value}-account")
    return AuthContext(platform=platform, access_token="user-token", **kwargs)


def media(url: str, media_type: MediaType = MediaType.image, **kwargs) -> ResolvedMedia:
    filename = "clip.mp4" if media_type == MediaType.video else "photo.jpg"
    ref = MediaRef(
        filename=filename,
        type=media_type,
        size_bytes=2048,
        mime_type="video/mp4" if media_type == MediaType.video else "image/jpeg",
        **kwargs,
    )
    return ResolvedMedia(ref=ref, url=url)


def form(request: httpx.Request) -> dict[str, str]:
    return dict(httpx.QueryParams(request.content.decode()))


class TestFacebookAdapter:
    @pytest.mark.asyncio
    async def test_text_post_uses_page_token(self):
        recorder = Recorder(
            {
                ("GET", f"{GRAPH}/page-1"): reply(access_token="page-token"),
                ("POST", f"{GRAPH}/page-1/feed"): reply(id="page-1_42"),
            }
        )
        adapter = FacebookAdapter(recorder.transport)

        result = await adapter.publish(
            auth(SocialPlatform.facebook, external_account_id="page-1"),
            PlatformPayload(text="Hello", link="https://example.com"),
        )

        assert result.success
        assert result.platform_post_id == "page-1_42"
        assert result.url == "https://facebook.com/page-1_42"
        body = json.loads(recorder.calls("POST", f"{GRAPH}/page-1/feed")[0].content)
        assert body == {
            "message": "Hello",
            "access_token": "page-token",
            "link": "https://example.com",
        }

    @pytest.mark.asyncio
    async def test_page_id_from_metadata(self):
        recorder = Recorder(
            {
                ("GET", f"{GRAPH}/page-9"): reply(access_token="page-token"),
                ("POST", f"{GRAPH}/page-9/photos"): reply(id="photo-1"),
            }
        )

        result = await FacebookAdapter(recorder.transport).publish(
            auth(SocialPlatform.facebook, account_metadata={"page_id": "page-9"}),
            PlatformPayload(text="Look", media=[media("https://cdn.test/a.jpg")]),
        )

        assert result.platform_post_id == "photo-1"
        assert form(recorder.calls("POST", f"{GRAPH}/page-9/photos")[0])["url"] == (
            "https://cdn.test/a.jpg"
        )

    @pytest.mark.asyncio
    async def test_page_token_failure(self):
        recorder = Recorder({("GET", f"{GRAPH}/page-1"): reply(400, error={"message": "bad"})})

        result = await FacebookAdapter(recorder.transport).publish(
            auth(SocialPlatform.facebook, external_account_id="page-1"),
            PlatformPayload(text="Hello"),
        )

        assert not result.success
        assert result.error == "Failed to get page access token"

    @pytest.mark.asyncio
    async def test_feed_error_message_surfaces(self):
        recorder = Recorder(
            {
                ("GET", f"{GRAPH}/page-1"): reply(access_token="page-token"),
                ("POST", f"{GRAPH}/page-1/feed"): reply(
                    400, error={"message": "Duplicate status message"}
                ),
            }
        )

        result = await FacebookAdapter(recorder.transport).publish(
            auth(SocialPlatform.facebook, external_account_id="page-1"),
            PlatformPayload(text="Hello"),
        )

        assert result.error == "Duplicate status message"


class TestInstagramAdapter:
    @pytest.mark.asyncio
    async def test_requires_media(self):
        result = await InstagramAdapter().publish(
            auth(SocialPlatform.instagram), PlatformPayload(text="No media")
        )

        assert not result.success
        assert "Instagram requires media" in result.error

    @pytest.mark.asyncio
    async def test_single_image_container_flow(self):
        recorder = Recorder(
            {
                ("POST", f"{INSTAGRAM_GRAPH}/ig-1/media"): reply(id="container-1"),
                ("POST", f"{INSTAGRAM_GRAPH}/ig-1/media_publish"): reply(id="media-1"),
                ("GET", f"{INSTAGRAM_GRAPH}/media-1"): reply(
                    id="media-1", permalink="https://instagram.com/p/abc"
                ),
            }
        )

        result = await InstagramAdapter(recorder.transport).publish(
            auth(
                SocialPlatform.instagram,
                account_metadata={"instagram_business_account_id": "ig-1"},
            ),
            PlatformPayload(text="Caption", media=[media("https://cdn.test/a.jpg")]),
        )

        assert result.success
        assert result.platform_post_id == "media-1"
        assert result.url == "https://instagram.com/p/abc"
        container = form(recorder.calls("POST", f"{INSTAGRAM_GRAPH}/ig-1/media")[0])
        assert container["image_url"] == "https://cdn.test/a.jpg"
        assert container["caption"] == "Caption"

    @pytest.mark.asyncio
    async def test_carousel_creates_children(self):
        created = iter(["child-1", "child-2", "carousel-1"])
        recorder = Recorder(
            {
                ("POST", f"{INSTAGRAM_GRAPH}/ig-1/media"): (
                    lambda request: httpx.Response(200, json={"id": next(created)})
                ),
                ("POST", f"{INSTAGRAM_GRAPH}/ig-1/media_publish"): reply(id="media-1"),
                ("GET", f"{INSTAGRAM_GRAPH}/media-1"): reply(id="media-1"),
            }
        )

        result = await InstagramAdapter(recorder.transport).publish(
            auth(
                SocialPlatform.instagram,
                account_metadata={"instagram_business_account_id": "ig-1"},
            ),
            PlatformPayload(
                text="Two",
                media=[
                    media("https://cdn.test/a.jpg"),
                    media("https://cdn.test/b.mp4", MediaType.video),
                ],
            ),
        )

        assert result.url == "https://instagram.com/p/media-1"
        calls = [form(r) for r in recorder.calls("POST", f"{INSTAGRAM_GRAPH}/ig-1/media")]
        assert calls[1]["media_type"] == "REELS"
        assert calls[2]["media_type"] == "CAROUSEL"
        assert calls[2]["children"] == "child-1,child-2"

    @pytest.mark.asyncio
    async def test_business_account_lookup_through_pages(self):
        recorder = Recorder(
            {
                ("GET", f"{INSTAGRAM_GRAPH}/me/accounts"): reply(
                    data=[{"id": "page-1", "access_token": "page-token"}]
                ),
                ("GET", f"{INSTAGRAM_GRAPH}/page-1"): reply(
                    instagram_business_account={"id": "ig-7"}
                ),
                ("POST", f"{INSTAGRAM_GRAPH}/ig-7/media"): reply(id="container-1"),
                ("POST", f"{INSTAGRAM_GRAPH}/ig-7/media_publish"): reply(id="media-7"),
                ("GET", f"{INSTAGRAM_GRAPH}/media-7"): reply(id="media-7"),
            }
        )

        result = await InstagramAdapter(recorder.transport).publish(
            auth(SocialPlatform.instagram),
            PlatformPayload(text="Found", media=[media("https://cdn.test/a.jpg")]),
        )

        assert result.platform_post_id == "media-7"

    @pytest.mark.asyncio
    async def test_missing_business_account(self):
        recorder = Recorder({("GET", f"{INSTAGRAM_GRAPH}/me/accounts"): reply(data=[])})

        result = await InstagramAdapter(recorder.transport).publish(
            auth(SocialPlatform.instagram),
            PlatformPayload(text="Lost", media=[media("https://cdn.test/a.jpg")]),
        )

        assert "Business Account not found" in result.error


class TestTwitterAdapter:
    @pytest.mark.asyncio
    async def test_text_tweet_with_bearer_token(self):
        recorder = Recorder({("POST", "https://api.twitter.com/2/tweets"): reply(data={"id": "99"})})

        result = await TwitterAdapter(recorder.transport).publish(
            auth(SocialPlatform.twitter, username="acme"), PlatformPayload(text="Hello")
        )

        assert result.success
        assert result.url == "https://x.com/acme/status/99"
        request = recorder.calls("POST", "https://api.twitter.com/2/tweets")[0]
        assert request.headers["Authorization"] == "Bearer user-token"
        assert json.loads(request.content) == {"text": "Hello"}

    @pytest.mark.asyncio
    async def test_media_is_uploaded_and_attached(self):
        recorder = Recorder(
            {
                ("GET", "https://cdn.test/a.jpg"): lambda r: httpx.Response(200, content=b"img"),
                ("POST", TwitterAdapter.UPLOAD_URL): reply(media_id_string="m-1"),
                ("POST", "https://api.twitter.com/2/tweets"): reply(data={"id": "100"}),
            }
        )

        result = await TwitterAdapter(recorder.transport).publish(
            auth(SocialPlatform.twitter),
            PlatformPayload(text="Pic", media=[media("https://cdn.test/a.jpg")]),
        )

        assert result.url == "https://x.com/i/status/100"
        tweet = json.loads(recorder.calls("POST", "https://api.twitter.com/2/tweets")[0].content)
        assert tweet["media"] == {"media_ids": ["m-1"]}

    @pytest.mark.asyncio
    async def test_failed_media_download_is_skipped(self):
        recorder = Recorder(
            {
                ("GET", "https://cdn.test/a.jpg"): reply(500),
                ("POST", "https://api.twitter.com/2/tweets"): reply(data={"id": "101"}),
            }
        )

        result = await TwitterAdapter(recorder.transport).publish(
            auth(SocialPlatform.twitter),
            PlatformPayload(text="Pic", media=[media("https://cdn.test/a.jpg")]),
        )

        assert result.success
        tweet = json.loads(recorder.calls("POST", "https://api.twitter.com/2/tweets")[0].content)
        assert "media" not in tweet

    @pytest.mark.asyncio
    async def test_api_error_detail(self):
        recorder = Recorder(
            {
                ("POST", "https://api.twitter.com/2/tweets"): reply(
                    403, detail="You are not allowed to create a Tweet with duplicate content."
                )
            }
        )

        result = await TwitterAdapter(recorder.transport).publish(
            auth(SocialPlatform.twitter), PlatformPayload(text="Again")
        )

        assert not result.success
        assert "duplicate content" in result.error


class TestAmazonAdapter:
    API = "https://sellingpartnerapi-na.amazon.com"

    def extension(self, asins=("B000000001",)) -> AmazonExtension:
        return AmazonExtension(
            brand_content=BrandContent(
                brand_name="Acme",
                headline="New arrivals",
                product_highlights=["Durable", "Light"],
            ),
            product_asins=list(asins),
        )

    @pytest.mark.asyncio
    async def test_requires_extension(self):
        result = await AmazonAdapter().publish(
            auth(SocialPlatform.amazon), PlatformPayload(text="Shop")
        )

        assert result.error == "Amazon posts require brand content information"

    @pytest.mark.asyncio
    async def test_requires_product(self):
        result = await AmazonAdapter().publish(
            auth(SocialPlatform.amazon),
            PlatformPayload(text="Shop", extension=self.extension(asins=())),
        )

        assert result.error == "Amazon posts require at least one product ASIN"

    @pytest.mark.asyncio
    async def test_create_then_submit(self):
        recorder = Recorder(
            {
                ("POST", f"{self.API}/posts"): reply(postId="p-1"),
                ("POST", f"{self.API}/posts/p-1/submit"): reply(status="SUBMITTED"),
            }
        )

        result = await AmazonAdapter(recorder.transport).publish(
            auth(SocialPlatform.amazon),
            PlatformPayload(
                text="Shop now",
                hashtags=["deals"],
                extension=self.extension(asins=[f"B00000000{i}" for i in range(7)]),
            ),
        )

        assert result.success
        assert result.url == "https://www.amazon.com/brand-store/post/p-1"
        body = json.loads(recorder.calls("POST", f"{self.API}/posts")[0].content)
        assert len(body["products"]) == 5
        assert body["headline"] == "New arrivals"
        assert body["tags"] == ["deals"]
        assert body["brandContent"]["brandName"] == "Acme"
        assert len(recorder.calls("POST", f"{self.API}/posts/p-1/submit")) == 1

    @pytest.mark.asyncio
    async def test_submit_failure(self):
        recorder = Recorder(
            {
                ("POST", f"{self.API}/posts"): reply(postId="p-1"),
                ("POST", f"{self.API}/posts/p-1/submit"): reply(500),
            }
        )

        result = await AmazonAdapter(recorder.transport).publish(
            auth(SocialPlatform.amazon),
            PlatformPayload(text="Shop", extension=self.extension()),
        )

        assert result.error == "Failed to publish Amazon post"


class TestDispatch:
    def test_registry_covers_every_platform(self):
        assert set(build_adapters()) == set(SocialPlatform)

    @pytest.mark.asyncio
    async def test_unknown_platform(self):
        result = await post_to_platform(
            auth(SocialPlatform.twitter), SocialPlatform.twitter, PlatformPayload(text="x"), {}
        )

        assert result.error == "Platform twitter not supported"

    @pytest.mark.asyncio
    async def test_dispatches_to_registered_adapter(self):
        recorder = Recorder({("POST", "https://api.twitter.com/2/tweets"): reply(data={"id": "7"})})

        result = await post_to_platform(
            auth(SocialPlatform.twitter),
            SocialPlatform.twitter,
            PlatformPayload(text="x"),
            build_adapters(recorder.transport),
        )

        assert result.platform_post_id == "7"


def test_auth_context_validity():
    from datetime import timedelta

    from publisher.db.models import utc_now

    assert auth(SocialPlatform.twitter).is_valid
    assert not auth(
        SocialPlatform.twitter, expires_at=utc_now() - timedelta(minutes=1)
    ).is_valid
    assert not AuthContext(
        platform=SocialPlatform.twitter, access_token="", external_account_id=str(uuid4())
    ).is_valid
