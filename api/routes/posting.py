"""Post composition and publishing routes.

POST /posting runs the request through, in order: authentication,
premium gating, schema validation, platform connection checks and
per-platform content validation. Only then is the post stored and,
unless it is a draft or scheduled, published to every platform.
"""

from datetime import datetime
from typing import Annotated, Optional
from urllib.parse import urlparse
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from sqlmodel import Session

from api.auth.dependencies import CurrentUser, get_current_user, require_feature
from api.dependencies import get_adapters, get_media_resolver, get_post_repository
from api.exceptions import InvalidContentError, NotFoundError, PlatformNotConnectedError
from api.responses import CamelModel, DataResponse, PaginatedResponse, Pagination
from publisher.adapters import AdapterRegistry
from publisher.credentials.store import CredentialStore
from publisher.db.engine import get_session_dependency
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.media import MediaResolver
from publisher.posting.models import (
    AmazonExtension,
    Dimensions,
    MediaRef,
    MediaType,
    PostContent,
    PostRecord,
    PostStatus,
    PublishResult,
    TikTokExtension,
    now_utc,
)
from publisher.posting.orchestrator import PublishOrchestrator
from publisher.posting.repository import PostRepository
from publisher.posting.validator import validate

logger = get_logger(__name__)

router = APIRouter(prefix="/posting", tags=["posting"])

MAX_PAGE_SIZE = 100


# =============================================================================
# Request Models
# =============================================================================


class MediaUploadRequest(CamelModel):
    """An uploaded media item attached to a post."""

    id: Optional[str] = None
    type: MediaType
    size: int = Field(ge=0, description="Size in bytes")
    mime_type: Optional[str] = None
    filename: str = Field(min_length=1, max_length=255)
    duration: Optional[float] = Field(default=None, ge=0, description="Seconds (videos)")
    dimensions: Optional[Dimensions] = None
    url: Optional[str] = Field(default=None, description="Storage path or absolute URL")

    def to_ref(self) -> MediaRef:
        fields = {
            "filename": self.filename,
            "type": self.type,
            "size_bytes": self.size,
            "dimensions": self.dimensions,
            "duration_seconds": self.duration,
            "mime_type": self.mime_type,
            "url": self.url,
        }
        if self.id:
            fields["id"] = self.id
        return MediaRef(**fields)


class PostContentRequest(CamelModel):
    content: str = ""
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    link: Optional[str] = None

    @field_validator("hashtags")
    @classmethod
    def _hashtags_are_words(cls, value: list[str]) -> list[str]:
        tags = []
        for tag in value:
            tag = tag.lstrip("#")
            if not tag or not all(ch.isalnum() or ch == "_" for ch in tag):
                raise ValueError(f"Invalid hashtag: {tag!r}")
            tags.append(tag)
        return tags

    @field_validator("link")
    @classmethod
    def _link_is_http_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Link must be an absolute http(s) URL")
        return value


class ScheduleRequest(CamelModel):
    scheduled_at: datetime
    timezone: str = "UTC"

    @field_validator("scheduled_at")
    @classmethod
    def _in_the_future(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=now_utc().tzinfo)
        if value <= now_utc():
            raise ValueError("Scheduled time must be in the future")
        return value


class PlatformExtensionsRequest(CamelModel):
    amazon: Optional[AmazonExtension] = None
    tiktok: Optional[TikTokExtension] = None

    def as_list(self) -> list:
        return [ext for ext in (self.amazon, self.tiktok) if ext is not None]


class PostRequest(CamelModel):
    """Body of POST /posting."""

    platforms: list[SocialPlatform] = Field(min_length=1)
    content: PostContentRequest
    media: list[MediaUploadRequest] = Field(default_factory=list, max_length=30)
    schedule: Optional[ScheduleRequest] = None
    is_draft: bool = False
    platform_extensions: Optional[PlatformExtensionsRequest] = None

    @field_validator("platforms")
    @classmethod
    def _unique_platforms(cls, value: list[SocialPlatform]) -> list[SocialPlatform]:
        return list(dict.fromkeys(value))


class PublishRequest(CamelModel):
    """Body of POST /posting/{post_id}/publish."""

    platforms: Optional[list[SocialPlatform]] = None


# =============================================================================
# Response Models
# =============================================================================


class PlatformStatusResponse(CamelModel):
    platform: SocialPlatform
    status: str = Field(description="pending, published or failed")
    platform_post_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_result(cls, result: PublishResult) -> "PlatformStatusResponse":
        return cls(
            platform=result.platform,
            status=result.status.value,
            platform_post_id=result.platform_post_id,
            url=result.url,
            error=result.error,
            published_at=result.published_at,
        )


class ContentResponse(CamelModel):
    text: str
    hashtags: list[str]
    mentions: list[str]
    link: Optional[str] = None


class MediaResponse(CamelModel):
    id: str
    url: str
    filename: str
    type: MediaType
    size: int
    mime_type: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    duration: Optional[float] = None


class PostResponse(CamelModel):
    id: UUID
    status: PostStatus
    is_draft: bool
    platforms: list[PlatformStatusResponse]
    results: dict[str, PlatformStatusResponse]
    content: ContentResponse
    media: list[MediaResponse]
    scheduled_at: Optional[datetime] = None
    timezone: str
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, post: PostRecord, resolver: MediaResolver) -> "PostResponse":
        platforms = []
        for platform in post.platforms:
            result = post.results.get(platform)
            if result is None:
                platforms.append(PlatformStatusResponse(platform=platform, status="pending"))
            else:
                platforms.append(PlatformStatusResponse.from_result(result))

        return cls(
            id=post.id,
            status=post.status,
            is_draft=post.is_draft,
            platforms=platforms,
            results={
                platform.value: PlatformStatusResponse.from_result(result)
                for platform, result in post.results.items()
            },
            content=ContentResponse(
                text=post.content.text,
                hashtags=post.content.hashtags,
                mentions=post.content.mentions,
                link=post.content.link,
            ),
            media=[
                MediaResponse(
                    id=ref.id,
                    url=resolver.storage_path(post.user_id, ref),
                    filename=ref.filename,
                    type=ref.type,
                    size=ref.size_bytes,
                    mime_type=ref.mime_type,
                    dimensions=ref.dimensions,
                    duration=ref.duration_seconds,
                )
                for ref in post.media
            ],
            scheduled_at=post.scheduled_at,
            timezone=post.timezone,
            published_at=post.published_at,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=DataResponse[PostResponse])
async def create_post(
    request: PostRequest,
    current_user: Annotated[CurrentUser, Depends(require_feature("posting"))],
    session: Annotated[Session, Depends(get_session_dependency)],
    repository: Annotated[PostRepository, Depends(get_post_repository)],
    resolver: Annotated[MediaResolver, Depends(get_media_resolver)],
    adapters: Annotated[AdapterRegistry, Depends(get_adapters)],
):
    """Create a post, publishing it now unless it is a draft or scheduled."""
    user_id = current_user.user_id
    store = CredentialStore(session)

    connected = {c.platform for c in store.find_active(user_id, request.platforms)}
    missing = [p.value for p in request.platforms if p not in connected]
    if missing:
        raise PlatformNotConnectedError(missing)

    media = [item.to_ref() for item in request.media]
    issues = validate(request.platforms, request.content.content, media)
    if issues:
        raise InvalidContentError(
            "Content validation failed for some platforms",
            details={"errors": [issue.to_dict() for issue in issues]},
        )

    extensions = request.platform_extensions.as_list() if request.platform_extensions else []
    orchestrator = PublishOrchestrator(repository, store, resolver, adapters)
    post, outcome = await orchestrator.submit(
        user_id=user_id,
        platforms=request.platforms,
        content=PostContent(
            text=request.content.content,
            hashtags=request.content.hashtags,
            mentions=request.content.mentions,
            link=request.content.link,
        ),
        media=media,
        scheduled_at=request.schedule.scheduled_at if request.schedule else None,
        timezone=request.schedule.timezone if request.schedule else "UTC",
        is_draft=request.is_draft,
        extensions=[ext for ext in extensions if SocialPlatform(ext.platform) in request.platforms],
    )

    if request.is_draft:
        message = "Post saved as draft"
    elif request.schedule:
        message = "Post scheduled successfully"
    else:
        message = "Post published successfully"

    return DataResponse(data=PostResponse.from_record(post, resolver), message=message)


@router.get("", response_model=PaginatedResponse[PostResponse])
async def list_posts(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    repository: Annotated[PostRepository, Depends(get_post_repository)],
    resolver: Annotated[MediaResolver, Depends(get_media_resolver)],
    status: Optional[PostStatus] = None,
    platform: Optional[SocialPlatform] = None,
    limit: int = Query(default=20),
    offset: int = Query(default=0),
):
    """List the user's posts, newest first."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    posts, total = await repository.list_for_user(
        current_user.user_id,
        status=status,
        platform=platform,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        data=[PostResponse.from_record(post, resolver) for post in posts],
        pagination=Pagination.create(total=total, limit=limit, offset=offset),
    )


@router.post("/{post_id}/publish", response_model=DataResponse[PostResponse])
async def publish_post(
    post_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_feature("posting"))],
    session: Annotated[Session, Depends(get_session_dependency)],
    repository: Annotated[PostRepository, Depends(get_post_repository)],
    resolver: Annotated[MediaResolver, Depends(get_media_resolver)],
    adapters: Annotated[AdapterRegistry, Depends(get_adapters)],
    request: Optional[PublishRequest] = None,
):
    """Publish a stored draft or scheduled post now."""
    post = await repository.get(post_id)
    if post is None or post.user_id != current_user.user_id:
        raise NotFoundError("Post not found")

    platforms = request.platforms if request and request.platforms else None
    if platforms:
        unknown = [p.value for p in platforms if p not in post.platforms]
        if unknown:
            raise InvalidContentError(
                f"Post does not target: {', '.join(unknown)}",
                details={"platforms": unknown},
            )

    orchestrator = PublishOrchestrator(repository, CredentialStore(session), resolver, adapters)
    await orchestrator.publish(post_id, platforms)

    post = await repository.get(post_id) or post
    return DataResponse(
        data=PostResponse.from_record(post, resolver),
        message="Post published successfully",
    )
