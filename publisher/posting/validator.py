"""Per-platform content validation.

Every applicable rule is evaluated and every violation collected; a post
is publishable only when validate() returns an empty list.
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

from publisher.posting.constraints import MB, PlatformConstraints, get_constraints
from publisher.posting.models import MediaRef, MediaType


@dataclass(frozen=True)
class ValidationIssue:
    """One constraint violation for one platform."""

    platform: str
    field: str  # "platform", "content" or "media"
    message: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _format_size(limit: int) -> str:
    return f"{limit / MB:g}MB"


def _check_content(
    platform: str, constraints: PlatformConstraints, text: str, media: Sequence[MediaRef]
) -> list[ValidationIssue]:
    issues = []
    if len(text) > constraints.max_content_length:
        issues.append(
            ValidationIssue(
                platform,
                "content",
                f"Content exceeds maximum length of {constraints.max_content_length} characters",
            )
        )
    if constraints.requires_text_or_media and not text.strip() and not media:
        issues.append(
            ValidationIssue(
                platform,
                "content",
                f"{constraints.display_name} posts require text or media",
            )
        )
    return issues


def _check_media_counts(
    platform: str, constraints: PlatformConstraints, media: Sequence[MediaRef]
) -> list[ValidationIssue]:
    issues = []
    if len(media) < constraints.min_media:
        needed = "one media item" if constraints.min_media == 1 else f"{constraints.min_media} media items"
        issues.append(
            ValidationIssue(
                platform,
                "media",
                f"{constraints.display_name} requires at least {needed}",
            )
        )
    if len(media) > constraints.max_media:
        issues.append(
            ValidationIssue(
                platform,
                "media",
                f"Too many media files. Maximum allowed: {constraints.max_media}",
            )
        )

    images = sum(1 for item in media if item.type == MediaType.image)
    videos = sum(1 for item in media if item.type == MediaType.video)
    if constraints.max_images is not None and images > constraints.max_images:
        issues.append(
            ValidationIssue(
                platform, "media", f"Too many images. Maximum allowed: {constraints.max_images}"
            )
        )
    if constraints.max_videos is not None and videos > constraints.max_videos:
        issues.append(
            ValidationIssue(
                platform, "media", f"Too many videos. Maximum allowed: {constraints.max_videos}"
            )
        )
    if not constraints.allow_mixed_media and images and videos:
        issues.append(
            ValidationIssue(
                platform,
                "media",
                f"{constraints.display_name} posts cannot mix images and videos",
            )
        )
    return issues


def _check_media_item(
    platform: str, constraints: PlatformConstraints, item: MediaRef
) -> list[ValidationIssue]:
    issues = []
    if item.mime_type and item.mime_type not in constraints.supported_media_types:
        issues.append(
            ValidationIssue(platform, "media", f"Unsupported media type: {item.mime_type}")
        )

    is_video = item.type == MediaType.video
    limit = constraints.max_video_size if is_video else constraints.max_image_size
    if limit is None:
        issues.append(
            ValidationIssue(
                platform,
                "media",
                f"{constraints.display_name} does not support {item.type.value} media",
            )
        )
    elif item.size_bytes > limit:
        issues.append(
            ValidationIssue(
                platform, "media", f"Media file too large. Maximum size: {_format_size(limit)}"
            )
        )

    if (
        is_video
        and constraints.max_video_duration is not None
        and item.duration_seconds is not None
        and item.duration_seconds > constraints.max_video_duration
    ):
        issues.append(
            ValidationIssue(
                platform,
                "media",
                f"Video duration exceeds maximum of {constraints.max_video_duration:g} seconds",
            )
        )
    return issues


def validate(
    platforms: Iterable[str], content: str, media: Sequence[MediaRef] = ()
) -> list[ValidationIssue]:
    """Check a post against every requested platform's constraints.

    Args:
        platforms: Platform names (or SocialPlatform members)
        content: Post text
        media: Media items attached to the post

    Returns:
        All violations found; empty when the post is publishable
    """
    issues: list[ValidationIssue] = []
    for platform in platforms:
        name = getattr(platform, "value", platform)
        constraints = get_constraints(name)
        if constraints is None:
            issues.append(ValidationIssue(name, "platform", f"Unsupported platform: {name}"))
            continue

        issues.extend(_check_content(name, constraints, content, media))
        issues.extend(_check_media_counts(name, constraints, media))
        for item in media:
            issues.extend(_check_media_item(name, constraints, item))
    return issues
