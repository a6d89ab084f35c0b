"""Static per-platform publishing constraints.

Read-only configuration consulted by the content validator.
"""

from dataclasses import dataclass
from typing import Optional

from publisher.db.models import SocialPlatform

MB = 1024 * 1024
GB = 1024 * MB


@dataclass(frozen=True)
class PlatformConstraints:
    """Limits a post must satisfy before it is sent to a platform.

    A size limit of None means the media type is not accepted at all;
    a duration limit of None means duration is unchecked.
    """

    display_name: str
    max_content_length: int
    max_media: int
    supported_media_types: frozenset[str]
    max_image_size: Optional[int]
    max_video_size: Optional[int]
    max_video_duration: Optional[float]
    min_media: int = 0
    max_images: Optional[int] = None
    max_videos: Optional[int] = None
    allow_mixed_media: bool = True
    requires_text_or_media: bool = False


PLATFORM_CONSTRAINTS: dict[SocialPlatform, PlatformConstraints] = {
    SocialPlatform.instagram: PlatformConstraints(
        display_name="Instagram",
        max_content_length=2200,
        min_media=1,
        max_media=10,
        supported_media_types=frozenset({"image/jpeg", "image/png", "video/mp4"}),
        max_image_size=8 * MB,
        max_video_size=100 * MB,
        max_video_duration=60,
    ),
    SocialPlatform.facebook: PlatformConstraints(
        display_name="Facebook",
        max_content_length=63206,
        max_media=30,
        supported_media_types=frozenset(
            {"image/jpeg", "image/png", "image/gif", "video/mp4"}
        ),
        max_image_size=4 * MB,
        max_video_size=10 * GB,
        max_video_duration=240,
    ),
    SocialPlatform.twitter: PlatformConstraints(
        display_name="Twitter",
        max_content_length=280,
        max_media=4,
        supported_media_types=frozenset(
            {"image/jpeg", "image/png", "image/gif", "video/mp4"}
        ),
        max_image_size=5 * MB,
        max_video_size=512 * MB,
        max_video_duration=140,
        max_images=4,
        max_videos=1,
        allow_mixed_media=False,
        requires_text_or_media=True,
    ),
    SocialPlatform.tiktok: PlatformConstraints(
        display_name="TikTok",
        max_content_length=2200,
        min_media=1,
        max_media=1,
        supported_media_types=frozenset(
            {"video/mp4", "video/quicktime", "video/webm", "video/x-msvideo"}
        ),
        max_image_size=None,
        max_video_size=500 * MB,
        max_video_duration=180,
    ),
    SocialPlatform.amazon: PlatformConstraints(
        display_name="Amazon",
        max_content_length=500,
        max_media=10,
        supported_media_types=frozenset({"image/jpeg", "image/png", "video/mp4"}),
        max_image_size=5 * MB,
        max_video_size=100 * MB,
        max_video_duration=None,
    ),
}


def get_constraints(platform: str) -> Optional[PlatformConstraints]:
    """Look up constraints by platform name; None for unknown platforms."""
    try:
        return PLATFORM_CONSTRAINTS[SocialPlatform(platform)]
    except ValueError:
        return None
