"""TikTok publishing through the TikTok Business API.

Publishing is a multi-step protocol:
1. Request an upload destination (signed URL + video id, 30 minute expiry)
2. PUT the raw video bytes to that destination
3. Poll upload status until the video is UPLOADED (bounded attempts)
4. Publish a post referencing the video id

Every API call is authorized with the bearer token from the AuthContext
it was built with, and advertiser-scoped calls carry the advertiser id.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Any, Optional

import httpx

from publisher import config
from publisher.adapters.base import AdapterResult, AuthContext, PlatformAdapter, PlatformPayload
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.models import TikTokExtension
from publisher.posting.video import validate_video
from publisher.resilience.retry import RetryPolicy, fixed_interval

logger = get_logger(__name__)

UPLOAD_URL_TTL = timedelta(minutes=30)

STATUS_UPLOADED = "UPLOADED"
STATUS_PROCESSING = "PROCESSING"
STATUS_FAILED = "FAILED"


class TikTokApiError(Exception):
    """TikTok returned a non-zero response code or an HTTP error."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class TikTokUploadTimeout(TikTokApiError):
    """The uploaded video never reached UPLOADED within the poll budget."""


@dataclass(frozen=True)
class UploadTicket:
    upload_url: str
    video_id: str
    expires_at: datetime
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]
    advertiser_ids: tuple[str, ...] = ()


def default_poll_policy() -> RetryPolicy:
    return fixed_interval(
        attempts=config.TIKTOK_STATUS_POLL_ATTEMPTS,
        interval=config.TIKTOK_STATUS_POLL_INTERVAL,
    )


class TikTokClient:
    """Stateless client for one authenticated advertiser account."""

    def __init__(
        self,
        auth: AuthContext,
        advertiser_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_policy: Optional[RetryPolicy] = None,
        api_url: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        self.auth = auth
        self.advertiser_id = advertiser_id
        self.transport = transport
        self.poll_policy = poll_policy or default_poll_policy()
        self.api_url = (api_url or config.TIKTOK_API_URL).rstrip("/")
        self.api_version = api_version or config.TIKTOK_API_VERSION

    def _endpoint(self, path: str) -> str:
        return f"{self.api_url}/open_api/{self.api_version}/{path}"

    def _require_advertiser(self) -> str:
        if not self.advertiser_id:
            raise TikTokApiError("Advertiser ID is required")
        return self.advertiser_id

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict:
        headers = {"Authorization": f"Bearer {self.auth.access_token}"}
        async with httpx.AsyncClient(transport=self.transport, timeout=60.0) as client:
            response = await client.request(
                method, self._endpoint(path), headers=headers, **kwargs
            )
        return _unwrap(response)

    # =========================================================================
    # OAuth
    # =========================================================================

    @classmethod
    async def refresh_access_token(
        cls,
        refresh_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        api_url: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> TokenGrant:
        """Exchange a refresh token for a new access token."""
        base = (api_url or config.TIKTOK_API_URL).rstrip("/")
        version = api_version or config.TIKTOK_API_VERSION
        async with httpx.AsyncClient(transport=transport, timeout=30.0) as client:
            response = await client.post(
                f"{base}/open_api/{version}/oauth2/access_token/",
                data={
                    "client_id": config.TIKTOK_CLIENT_KEY,
                    "client_secret": config.TIKTOK_CLIENT_SECRET,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        data = _unwrap(response)
        if not data.get("access_token"):
            raise TikTokApiError("TikTok token refresh returned no access token")
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
        )

    @classmethod
    async def exchange_auth_code(
        cls,
        auth_code: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        api_url: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> TokenGrant:
        """Exchange the auth_code from the advertiser consent page."""
        base = (api_url or config.TIKTOK_API_URL).rstrip("/")
        version = api_version or config.TIKTOK_API_VERSION
        async with httpx.AsyncClient(transport=transport, timeout=30.0) as client:
            response = await client.post(
                f"{base}/open_api/{version}/oauth2/access_token/",
                data={
                    "client_id": config.TIKTOK_CLIENT_KEY,
                    "client_secret": config.TIKTOK_CLIENT_SECRET,
                    "grant_type": "authorization_code",
                    "auth_code": auth_code,
                },
            )
        data = _unwrap(response)
        if not data.get("access_token"):
            raise TikTokApiError("TikTok authorization returned no access token")
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            advertiser_ids=tuple(str(a) for a in data.get("advertiser_ids") or ()),
        )

    # =========================================================================
    # Upload protocol
    # =========================================================================

    async def request_upload_url(self, file_size: int, file_format: str) -> UploadTicket:
        data = await self._call(
            "POST",
            "file/video/ad/upload/",
            json={
                "advertiser_id": self._require_advertiser(),
                "file_size": file_size,
                "file_type": file_format.upper(),
                "upload_type": "DIRECT",
            },
        )
        if not data.get("upload_url") or not data.get("video_id"):
            raise TikTokApiError("TikTok did not return an upload destination")
        return UploadTicket(
            upload_url=data["upload_url"],
            video_id=str(data["video_id"]),
            expires_at=datetime.now(timezone.utc) + UPLOAD_URL_TTL,
            headers=dict(data.get("headers") or {}),
        )

    async def upload_video(self, ticket: UploadTicket, video: bytes) -> None:
        if datetime.now(timezone.utc) >= ticket.expires_at:
            raise TikTokApiError("Upload URL expired before the video was sent")

        # Signed URL: no bearer token
        headers = {"Content-Type": "video/mp4", **ticket.headers}
        async with httpx.AsyncClient(transport=self.transport, timeout=300.0) as client:
            response = await client.put(ticket.upload_url, content=video, headers=headers)
        if response.is_error:
            raise TikTokApiError(f"Video upload failed with status {response.status_code}")

    async def get_upload_status(self, video_id: str) -> str:
        data = await self._call(
            "GET",
            "file/video/get/",
            params={"advertiser_id": self._require_advertiser(), "video_id": video_id},
        )
        return str(data.get("status", STATUS_PROCESSING)).upper()

    async def wait_until_uploaded(self, video_id: str) -> None:
        """Poll status until UPLOADED.

        Raises:
            TikTokApiError: If processing fails
            TikTokUploadTimeout: If the attempt budget runs out
        """
        async for attempt in self.poll_policy.attempts():
            status = await self.get_upload_status(video_id)
            if status == STATUS_UPLOADED:
                return
            if status == STATUS_FAILED:
                raise TikTokApiError("TikTok video processing failed")
            if not attempt.should_retry:
                break
            await attempt.wait()

        raise TikTokUploadTimeout(
            f"TikTok video {video_id} was not ready after "
            f"{self.poll_policy.max_attempts} status checks"
        )

    async def publish_video(
        self, video_id: str, caption: str, extension: Optional[TikTokExtension] = None
    ) -> dict:
        settings = extension or TikTokExtension()
        return await self._call(
            "POST",
            "post/publish/",
            json={
                "advertiser_id": self._require_advertiser(),
                "video_id": video_id,
                "text": caption,
                "privacy_type": settings.privacy,
                "comment_disabled": not settings.allow_comments,
                "duet_disabled": not settings.allow_duet,
                "stitch_disabled": not settings.allow_stitch,
                "branded_content_toggle": settings.branded_content,
                "auto_add_music": False,
            },
        )


def _unwrap(response: httpx.Response) -> dict:
    """Return the data object of a TikTok envelope {code, message, data}."""
    try:
        body = response.json()
    except ValueError as e:
        raise TikTokApiError(
            f"TikTok returned a non-JSON response ({response.status_code})"
        ) from e
    code = body.get("code", 0 if response.is_success else response.status_code)
    if response.is_error or code != 0:
        raise TikTokApiError(body.get("message") or "TikTok API request failed", code=code)
    return body.get("data") or {}


class TikTokAdapter(PlatformAdapter):
    """Upload and publish one video per post."""

    platform = SocialPlatform.tiktok

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(transport)
        self.poll_policy = poll_policy

    async def publish(self, auth: AuthContext, payload: PlatformPayload) -> AdapterResult:
        videos = payload.videos
        if not videos:
            return AdapterResult.fail("TikTok posts require video content")
        video = videos[0]

        extension = payload.extension if isinstance(payload.extension, TikTokExtension) else None
        advertiser_id = (
            (extension.advertiser_id if extension else None)
            or auth.account_metadata.get("advertiser_id")
            or auth.external_account_id
        )
        if not advertiser_id:
            return AdapterResult.fail("Advertiser ID is required")

        try:
            async with self.client() as client:
                response = await client.get(video.url)
                response.raise_for_status()
                content = response.content
        except httpx.HTTPError as e:
            logger.warning("tiktok_video_fetch_failed", url=video.url, error=str(e))
            return AdapterResult.fail("Failed to fetch video file for upload")

        ref = video.ref
        check = validate_video(
            size_bytes=len(content),
            filename=ref.filename,
            mime_type=ref.mime_type,
            duration_seconds=ref.duration_seconds,
            width=ref.dimensions.width if ref.dimensions else None,
            height=ref.dimensions.height if ref.dimensions else None,
        )
        if check.warnings:
            logger.info("tiktok_video_warnings", media_id=ref.id, warnings=check.warnings)
        if not check.valid:
            return AdapterResult.fail("; ".join(check.errors))

        client = TikTokClient(
            auth,
            advertiser_id=str(advertiser_id),
            transport=self.transport,
            poll_policy=self.poll_policy,
        )
        file_format = PurePosixPath(ref.filename).suffix.lstrip(".") or "mp4"

        try:
            ticket = await client.request_upload_url(len(content), file_format)
            await client.upload_video(ticket, content)
            await client.wait_until_uploaded(ticket.video_id)
            published = await client.publish_video(ticket.video_id, payload.text, extension)
        except TikTokApiError as e:
            logger.warning("tiktok_publish_failed", error=str(e), code=e.code)
            return AdapterResult.fail(str(e))

        post_id = published.get("post_id")
        if not post_id:
            return AdapterResult.fail("Failed to create TikTok post")

        url = published.get("video_url") or (
            f"https://www.tiktok.com/@{auth.username or 'user'}/video/{ticket.video_id}"
        )
        return AdapterResult.ok(str(post_id), url)
