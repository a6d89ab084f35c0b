"""Post, media and publish-result models.

Posts are held by a PostRepository rather than the relational store, so
these are plain Pydantic models instead of SQLModel tables.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from publisher.db.models import SocialPlatform


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class MediaType(str, Enum):
    image = "image"
    video = "video"


class PublishStatus(str, Enum):
    """Outcome of one platform attempt."""

    published = "published"
    failed = "failed"


class PostStatus(str, Enum):
    """Aggregate status derived from a post's flags and results."""

    draft = "draft"
    scheduled = "scheduled"
    pending = "pending"
    published = "published"
    partial = "partial"
    failed = "failed"


class Dimensions(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class MediaRef(BaseModel):
    """Media item owned by a post.

    url is a storage path or absolute URL; it is only made absolute at
    publish time.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    filename: str
    type: MediaType
    size_bytes: int = Field(ge=0)
    dimensions: Optional[Dimensions] = None
    duration_seconds: Optional[float] = None
    mime_type: Optional[str] = None
    url: Optional[str] = None


class PostContent(BaseModel):
    text: str = ""
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    link: Optional[str] = None


# =============================================================================
# Platform extensions (tagged union keyed by platform)
# =============================================================================


class BrandContent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    brand_name: str
    headline: Optional[str] = None
    target_audience: Optional[str] = None
    product_highlights: list[str] = Field(default_factory=list)


class AmazonExtension(BaseModel):
    """Brand and product fields required by Amazon posts."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    platform: Literal["amazon"] = "amazon"
    brand_content: BrandContent
    product_asins: list[str] = Field(default_factory=list)


class VideoProperties(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    language: str = "en"
    thumbnail_time: Optional[float] = None


class TikTokExtension(BaseModel):
    """Video properties, privacy and interaction settings for TikTok."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    platform: Literal["tiktok"] = "tiktok"
    advertiser_id: Optional[str] = None
    video_properties: Optional[VideoProperties] = None
    privacy: Literal["PUBLIC", "PRIVATE", "FOLLOWERS_ONLY"] = "PUBLIC"
    allow_comments: bool = True
    allow_duet: bool = True
    allow_stitch: bool = True
    branded_content: bool = False
    promotional_content: bool = False


PlatformExtension = Annotated[
    Union[AmazonExtension, TikTokExtension],
    Field(discriminator="platform"),
]


# =============================================================================
# Results and records
# =============================================================================


class PublishResult(BaseModel):
    """Per-platform outcome of one publish attempt."""

    platform: SocialPlatform
    status: PublishStatus
    platform_post_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    published_at: Optional[datetime] = None

    @classmethod
    def failed(cls, platform: SocialPlatform, error: str) -> "PublishResult":
        return cls(platform=platform, status=PublishStatus.failed, error=error)


class PostRecord(BaseModel):
    """A normalized post and its per-platform publish results."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    platforms: list[SocialPlatform]
    content: PostContent
    media: list[MediaRef] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None
    timezone: str = "UTC"
    is_draft: bool = False
    extensions: list[PlatformExtension] = Field(default_factory=list)
    results: dict[SocialPlatform, PublishResult] = Field(default_factory=dict)
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator("scheduled_at")
    @classmethod
    def _schedule_is_utc_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("extensions")
    @classmethod
    def _one_extension_per_platform(cls, value: list) -> list:
        seen = set()
        for extension in value:
            if extension.platform in seen:
                raise ValueError(f"Duplicate extension for platform: {extension.platform}")
            seen.add(extension.platform)
        return value

    def extension_for(self, platform: SocialPlatform) -> Optional[PlatformExtension]:
        for extension in self.extensions:
            if extension.platform == platform.value:
                return extension
        return None

    def status_at(self, now: datetime) -> PostStatus:
        if self.is_draft:
            return PostStatus.draft
        if not self.results:
            if self.scheduled_at is not None and self.scheduled_at > now:
                return PostStatus.scheduled
            return PostStatus.pending

        published = sum(
            1 for result in self.results.values() if result.status == PublishStatus.published
        )
        if published == len(self.results):
            return PostStatus.published
        if published:
            return PostStatus.partial
        return PostStatus.failed

    @property
    def status(self) -> PostStatus:
        return self.status_at(now_utc())
