"""Video file validation ahead of upload.

Hard limits (size, container, duration, resolution) are errors that
block the upload. Aspect ratio and resolution mismatches against the
recommended vertical format are warnings only.
"""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from publisher.posting.constraints import MB


@dataclass(frozen=True)
class VideoRequirements:
    """Upload limits and recommendations for one platform's video API."""

    max_size: int
    min_size: int
    min_duration: float
    max_duration: float
    mime_types: frozenset[str]
    extensions: frozenset[str]
    min_width: int
    max_width: int
    min_height: int
    max_height: int
    recommended_width: int
    recommended_height: int
    portrait_ratio: tuple[float, float]
    large_file_warning: int


TIKTOK_VIDEO_REQUIREMENTS = VideoRequirements(
    max_size=500 * MB,
    min_size=1024,
    min_duration=3,
    max_duration=180,
    mime_types=frozenset({"video/mp4", "video/quicktime", "video/webm", "video/x-msvideo"}),
    extensions=frozenset({".mp4", ".mov", ".webm", ".avi"}),
    min_width=540,
    max_width=1920,
    min_height=960,
    max_height=1920,
    recommended_width=1080,
    recommended_height=1920,
    portrait_ratio=(0.5625, 1.778),
    large_file_warning=100 * MB,
)

# 9:16 with rounding slack
_VERTICAL_RATIO = 9 / 16
_RATIO_TOLERANCE = 0.01


@dataclass
class VideoValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_video(
    size_bytes: int,
    filename: str,
    mime_type: Optional[str] = None,
    duration_seconds: Optional[float] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    requirements: VideoRequirements = TIKTOK_VIDEO_REQUIREMENTS,
) -> VideoValidation:
    """Validate video metadata against upload requirements.

    Unknown metadata (duration, dimensions) is not checked.
    """
    result = VideoValidation()

    if size_bytes > requirements.max_size:
        result.errors.append(
            f"Video file too large. Maximum size: {requirements.max_size // MB}MB"
        )
    elif size_bytes < requirements.min_size:
        result.errors.append(
            f"Video file too small. Minimum size: {requirements.min_size // 1024}KB"
        )
    elif size_bytes > requirements.large_file_warning:
        result.warnings.append("Large video file; upload may take a while")

    extension = PurePosixPath(filename).suffix.lower()
    if mime_type and mime_type not in requirements.mime_types:
        result.errors.append(f"Unsupported video format: {mime_type}")
    elif not mime_type and extension not in requirements.extensions:
        result.errors.append(f"Unsupported video file extension: {extension or 'none'}")
    elif (mime_type or "video/mp4") != "video/mp4" or (extension and extension != ".mp4"):
        result.warnings.append("MP4 is the recommended video format")

    if duration_seconds is not None:
        if duration_seconds < requirements.min_duration:
            result.errors.append(
                f"Video too short. Minimum duration: {requirements.min_duration:g} seconds"
            )
        elif duration_seconds > requirements.max_duration:
            result.errors.append(
                f"Video too long. Maximum duration: {requirements.max_duration:g} seconds"
            )

    if width is not None and height is not None:
        _check_resolution(result, width, height, requirements)

    return result


def _check_resolution(
    result: VideoValidation, width: int, height: int, requirements: VideoRequirements
) -> None:
    if not requirements.min_width <= width <= requirements.max_width:
        result.errors.append(
            f"Video width must be between {requirements.min_width} and "
            f"{requirements.max_width} pixels"
        )
    if not requirements.min_height <= height <= requirements.max_height:
        result.errors.append(
            f"Video height must be between {requirements.min_height} and "
            f"{requirements.max_height} pixels"
        )

    ratio = width / height
    low, high = requirements.portrait_ratio
    if not low <= ratio <= high:
        result.warnings.append(
            f"Aspect ratio {ratio:.2f} is outside the supported range {low}-{high}"
        )
    elif abs(ratio - _VERTICAL_RATIO) > _RATIO_TOLERANCE:
        result.warnings.append("A 9:16 vertical aspect ratio is recommended")

    if (width, height) != (requirements.recommended_width, requirements.recommended_height):
        result.warnings.append(
            f"Recommended resolution is {requirements.recommended_width}x"
            f"{requirements.recommended_height}"
        )
