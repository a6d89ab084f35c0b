"""Tests for OAuth state handling and platform connectors."""

from datetime import timedelta
from uuid import uuid4

import httpx
import pytest

from publisher.credentials.oauth import (
    AmazonConnector,
    InstagramConnector,
    OAuthError,
    PendingAuthorizations,
    TikTokConnector,
    TwitterConnector,
)
from publisher.db.models import SocialPlatform, utc_now

GRAPH = "https://graph.facebook.com/v23.0"
TIKTOK_TOKEN = "https://business-api.tiktok.com/open_api/v1.3/oauth2/access_token/"


def routes(table: dict) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, str(request.url).split("?")[0])
        status, body = table.get(key, (404, {"error": "unexpected request"}))
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


class TestPendingAuthorizations:
    def test_consume_is_single_use(self):
        pending = PendingAuthorizations()
        created = pending.create(uuid4(), SocialPlatform.twitter, "https://cb", "verifier")

        consumed = pending.consume(created.state)

        assert consumed.code_verifier == "verifier"
        assert pending.consume(created.state) is None
        assert len(pending) == 0

    def test_expired_state_is_rejected(self):
        pending = PendingAuthorizations()
        created = pending.create(uuid4(), SocialPlatform.facebook, "https://cb")
        created.created_at = utc_now() - timedelta(hours=1)

        assert pending.consume(created.state) is None

    def test_expired_entries_are_purged(self):
        pending = PendingAuthorizations()
        stale = pending.create(uuid4(), SocialPlatform.facebook, "https://cb")
        stale.created_at = utc_now() - timedelta(hours=1)

        pending.create(uuid4(), SocialPlatform.facebook, "https://cb")

        assert len(pending) == 1

    def test_unknown_state(self):
        assert PendingAuthorizations().consume("nope") is None


class TestConnectors:
    def test_only_twitter_uses_pkce(self):
        assert TwitterConnector().new_code_verifier()
        assert AmazonConnector().new_code_verifier() is None

    @pytest.mark.asyncio
    async def test_twitter_requires_verifier(self):
        with pytest.raises(OAuthError, match="Missing code verifier"):
            await TwitterConnector().connect("code", "https://cb")

    @pytest.mark.asyncio
    async def test_instagram_picks_page_with_business_account(self):
        transport = routes(
            {
                ("GET", f"{GRAPH}/oauth/access_token"): (200, {"access_token": "short"}),
                ("POST", f"{GRAPH}/oauth/access_token"): (400, {"error": "nope"}),
                ("GET", f"{GRAPH}/me/accounts"): (
                    200,
                    {
                        "data": [
                            {"id": "p-1", "name": "Plain"},
                            {
                                "id": "p-2",
                                "name": "Shop",
                                "instagram_business_account": {"id": "ig-9", "username": "shop"},
                            },
                        ]
                    },
                ),
            }
        )

        data = await InstagramConnector(transport).connect("code", "https://cb")

        assert data.external_account_id == "ig-9"
        assert data.username == "shop"
        assert data.access_token == "short"
        assert data.expires_at is None
        assert data.account_metadata == {"instagram_business_account_id": "ig-9", "page_id": "p-2"}

    @pytest.mark.asyncio
    async def test_instagram_without_business_account(self):
        transport = routes(
            {
                ("GET", f"{GRAPH}/oauth/access_token"): (200, {"access_token": "short"}),
                ("POST", f"{GRAPH}/oauth/access_token"): (200, {"access_token": "long"}),
                ("GET", f"{GRAPH}/me/accounts"): (200, {"data": [{"id": "p-1"}]}),
            }
        )

        with pytest.raises(OAuthError, match="No Instagram Business account"):
            await InstagramConnector(transport).connect("code", "https://cb")

    @pytest.mark.asyncio
    async def test_tiktok_uses_first_advertiser(self):
        transport = routes(
            {
                ("POST", TIKTOK_TOKEN): (
                    200,
                    {
                        "code": 0,
                        "message": "OK",
                        "data": {"access_token": "tt", "advertiser_ids": ["adv-1", "adv-2"]},
                    },
                )
            }
        )

        data = await TikTokConnector(transport).connect("auth-code", "https://cb")

        assert data.external_account_id == "adv-1"
        assert data.account_metadata["advertiser_ids"] == ["adv-1", "adv-2"]

    @pytest.mark.asyncio
    async def test_tiktok_error_becomes_oauth_error(self):
        transport = routes(
            {("POST", TIKTOK_TOKEN): (200, {"code": 40001, "message": "auth_code expired"})}
        )

        with pytest.raises(OAuthError, match="auth_code expired"):
            await TikTokConnector(transport).connect("auth-code", "https://cb")

    def test_tiktok_consent_url(self):
        url = httpx.URL(TikTokConnector().authorization_url("s-1", "https://cb"))

        assert url.params["state"] == "s-1"
        assert url.params["redirect_uri"] == "https://cb"
        assert "app_id" in url.params
