"""Integration tests for the /api/posting endpoints."""

from datetime import timedelta

import pytest

from publisher.db.models import SocialPlatform
from publisher.posting.models import now_utc

TWEETS_URL = "https://api.twitter.com/2/tweets"
GRAPH = "https://graph.facebook.com/v23.0"


@pytest.fixture
def connected_user(premium_user, make_credential):
    make_credential(premium_user.id, SocialPlatform.twitter, username="acme")
    make_credential(premium_user.id, SocialPlatform.facebook, external_account_id="page-1")
    return premium_user


def post_body(**overrides) -> dict:
    body = {
        "platforms": ["twitter"],
        "content": {"content": "Hello from the API", "hashtags": ["launch"]},
    }
    body.update(overrides)
    return body


class TestCreatePostGuards:
    def test_requires_authentication(self, client):
        response = client.post("/api/posting", json=post_body())

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    def test_rejects_invalid_token(self, client):
        response = client.post(
            "/api/posting", json=post_body(), headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid or expired token"

    def test_requires_premium(self, client, free_user, auth_headers):
        response = client.post("/api/posting", json=post_body(), headers=auth_headers(free_user))

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["code"] == "PREMIUM_REQUIRED"
        assert error["message"] == "Premium subscription required for posting features"

    def test_premium_checked_before_body(self, client, free_user, auth_headers):
        response = client.post("/api/posting", json={}, headers=auth_headers(free_user))

        assert response.status_code == 403

    def test_schema_errors(self, client, connected_user, auth_headers):
        response = client.post(
            "/api/posting",
            json=post_body(platforms=[]),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_CONTENT"
        assert error["message"] == "Invalid request data"

    def test_unknown_platform_is_schema_error(self, client, connected_user, auth_headers):
        response = client.post(
            "/api/posting",
            json=post_body(platforms=["myspace"]),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_CONTENT"

    def test_schedule_in_past_is_rejected(self, client, connected_user, auth_headers):
        past = (now_utc() - timedelta(hours=1)).isoformat()

        response = client.post(
            "/api/posting",
            json=post_body(schedule={"scheduledAt": past}),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400

    def test_missing_connection(self, client, connected_user, auth_headers):
        response = client.post(
            "/api/posting",
            json=post_body(platforms=["twitter", "instagram", "tiktok"]),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400
        assert response.json()["error"] == {
            "code": "PLATFORM_NOT_CONNECTED",
            "message": "Please connect to: instagram, tiktok",
            "details": {"missingPlatforms": ["instagram", "tiktok"]},
        }

    def test_content_validation(self, client, connected_user, auth_headers, platform_api):
        response = client.post(
            "/api/posting",
            json=post_body(content={"content": "x" * 281}),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_CONTENT"
        assert error["message"] == "Content validation failed for some platforms"
        assert error["details"]["errors"] == [
            {
                "platform": "twitter",
                "field": "content",
                "message": "Content exceeds maximum length of 280 characters",
            }
        ]
        assert platform_api.requests == []

    def test_instagram_without_media_is_rejected(
        self, client, connected_user, make_credential, auth_headers, platform_api
    ):
        make_credential(connected_user.id, SocialPlatform.instagram, external_account_id="ig-1")

        response = client.post(
            "/api/posting",
            json=post_body(platforms=["instagram", "twitter"], content={"content": "No photo"}),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_CONTENT"
        assert error["details"]["errors"] == [
            {
                "platform": "instagram",
                "field": "media",
                "message": "Instagram requires at least one media item",
            }
        ]
        assert platform_api.requests == []


class TestCreatePost:
    def test_draft_round_trip(self, client, connected_user, auth_headers, platform_api):
        headers = auth_headers(connected_user)

        response = client.post("/api/posting", json=post_body(isDraft=True), headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Post saved as draft"
        post = body["data"]
        assert post["status"] == "draft"
        assert post["isDraft"] is True
        assert post["results"] == {}
        assert post["platforms"] == [
            {
                "platform": "twitter",
                "status": "pending",
                "platformPostId": None,
                "url": None,
                "error": None,
                "publishedAt": None,
            }
        ]
        assert platform_api.requests == []

        listing = client.get("/api/posting?status=draft", headers=headers).json()
        assert [item["id"] for item in listing["data"]] == [post["id"]]
        assert listing["data"][0]["content"]["hashtags"] == ["launch"]

    def test_scheduled_post(self, client, connected_user, auth_headers, platform_api):
        when = (now_utc() + timedelta(days=1)).isoformat()

        response = client.post(
            "/api/posting",
            json=post_body(schedule={"scheduledAt": when, "timezone": "America/New_York"}),
            headers=auth_headers(connected_user),
        )

        body = response.json()
        assert body["message"] == "Post scheduled successfully"
        assert body["data"]["status"] == "scheduled"
        assert body["data"]["timezone"] == "America/New_York"
        assert platform_api.requests == []

    def test_publish_now(self, client, connected_user, auth_headers, platform_api):
        platform_api.add("POST", TWEETS_URL, data={"id": "1234"})
        platform_api.add("GET", f"{GRAPH}/page-1", access_token="page-token")
        platform_api.add("POST", f"{GRAPH}/page-1/feed", id="page-1_9")

        response = client.post(
            "/api/posting",
            json=post_body(platforms=["twitter", "facebook", "twitter"]),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Post published successfully"
        post = body["data"]
        assert post["status"] == "published"
        assert post["publishedAt"] is not None
        assert post["results"]["twitter"]["url"] == "https://x.com/acme/status/1234"
        assert post["results"]["facebook"]["platformPostId"] == "page-1_9"
        assert [p["platform"] for p in post["platforms"]] == ["twitter", "facebook"]

    def test_partial_failure_is_reported_per_platform(
        self, client, connected_user, auth_headers, platform_api
    ):
        platform_api.add("POST", TWEETS_URL, 403, detail="Forbidden by policy")
        platform_api.add("GET", f"{GRAPH}/page-1", access_token="page-token")
        platform_api.add("POST", f"{GRAPH}/page-1/feed", id="page-1_9")

        response = client.post(
            "/api/posting",
            json=post_body(platforms=["twitter", "facebook"]),
            headers=auth_headers(connected_user),
        )

        assert response.status_code == 200
        post = response.json()["data"]
        assert post["status"] == "partial"
        assert post["results"]["twitter"]["status"] == "failed"
        assert post["results"]["twitter"]["error"] == "Forbidden by policy"
        assert post["results"]["facebook"]["status"] == "published"

    def test_media_urls_are_storage_paths(self, client, connected_user, auth_headers):
        response = client.post(
            "/api/posting",
            json=post_body(
                isDraft=True,
                media=[
                    {
                        "type": "image",
                        "size": 2048,
                        "mimeType": "image/png",
                        "filename": "chart.png",
                        "url": "/uploads/abc/chart.png",
                    }
                ],
            ),
            headers=auth_headers(connected_user),
        )

        media = response.json()["data"]["media"]
        assert media[0]["url"] == "/api/uploads/abc/chart.png"
        assert media[0]["mimeType"] == "image/png"


class TestListPosts:
    def test_requires_authentication(self, client):
        assert client.get("/api/posting").status_code == 401

    def test_limit_is_capped(self, client, connected_user, auth_headers):
        response = client.get("/api/posting?limit=500", headers=auth_headers(connected_user))

        assert response.status_code == 200
        assert response.json()["pagination"] == {
            "total": 0,
            "limit": 100,
            "offset": 0,
            "hasMore": False,
        }

    def test_only_own_posts_listed(
        self, client, connected_user, make_user, auth_headers
    ):
        other = make_user("other@example.com")
        client.post("/api/posting", json=post_body(isDraft=True), headers=auth_headers(connected_user))

        listing = client.get("/api/posting", headers=auth_headers(other)).json()

        assert listing["data"] == []
        assert listing["pagination"]["total"] == 0

    def test_pagination(self, client, connected_user, auth_headers):
        headers = auth_headers(connected_user)
        for i in range(3):
            client.post(
                "/api/posting",
                json=post_body(isDraft=True, content={"content": f"Draft {i}"}),
                headers=headers,
            )

        page = client.get("/api/posting?limit=2&offset=0", headers=headers).json()

        assert len(page["data"]) == 2
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["hasMore"] is True


class TestPublishStoredPost:
    def test_publish_draft(self, client, connected_user, auth_headers, platform_api):
        headers = auth_headers(connected_user)
        draft = client.post("/api/posting", json=post_body(isDraft=True), headers=headers).json()
        platform_api.add("POST", TWEETS_URL, data={"id": "77"})

        response = client.post(f"/api/posting/{draft['data']['id']}/publish", headers=headers)

        assert response.status_code == 200
        post = response.json()["data"]
        assert post["isDraft"] is False
        assert post["status"] == "published"
        assert post["results"]["twitter"]["platformPostId"] == "77"

    def test_other_users_post_is_not_found(
        self, client, connected_user, make_user, auth_headers
    ):
        draft = client.post(
            "/api/posting", json=post_body(isDraft=True), headers=auth_headers(connected_user)
        ).json()
        other = make_user("other@example.com")

        response = client.post(
            f"/api/posting/{draft['data']['id']}/publish", headers=auth_headers(other)
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Post not found"

    def test_platform_outside_post_is_rejected(self, client, connected_user, auth_headers):
        headers = auth_headers(connected_user)
        draft = client.post("/api/posting", json=post_body(isDraft=True), headers=headers).json()

        response = client.post(
            f"/api/posting/{draft['data']['id']}/publish",
            json={"platforms": ["facebook"]},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"platforms": ["facebook"]}
