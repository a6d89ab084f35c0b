"""Late binding of media references to externally fetchable URLs.

Platforms download media themselves, so every reference must become an
absolute http(s) URL at publish time. Storage paths written under the
old "/uploads/" scheme are rewritten to the current "/api/uploads/" one.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse
from uuid import UUID

from publisher import config
from publisher.posting.models import MediaRef, MediaType

UPLOADS_PREFIX = "/api/uploads/"
LEGACY_UPLOADS_PREFIX = "/uploads/"


class MediaResolutionError(Exception):
    """Raised when a media reference cannot be turned into a URL."""


@dataclass(frozen=True)
class ResolvedMedia:
    """A media item with its absolute URL."""

    ref: MediaRef
    url: str

    @property
    def type(self) -> MediaType:
        return self.ref.type


class MediaResolver:
    """Resolve MediaRefs against the public application URL."""

    def __init__(self, app_url: Optional[str] = None):
        self.app_url = (app_url if app_url is not None else config.APP_URL).rstrip("/")

    def storage_path(self, user_id: UUID, ref: MediaRef) -> str:
        if ref.url:
            path = ref.url
        elif ref.filename:
            path = f"{UPLOADS_PREFIX}{user_id}/{ref.filename}"
        else:
            raise MediaResolutionError(f"Media {ref.id} has neither a URL nor a filename")

        if path.startswith(LEGACY_UPLOADS_PREFIX):
            path = UPLOADS_PREFIX + path[len(LEGACY_UPLOADS_PREFIX):]
        return path

    def resolve(self, user_id: UUID, ref: MediaRef) -> ResolvedMedia:
        """Return the absolute URL for a media reference.

        Raises:
            MediaResolutionError: If the reference has no usable location
        """
        path = self.storage_path(user_id, ref)
        parsed = urlparse(path)

        if parsed.scheme in ("http", "https"):
            if not parsed.netloc:
                raise MediaResolutionError(f"Media {ref.id} has an invalid URL: {path}")
            return ResolvedMedia(ref=ref, url=path)
        if parsed.scheme:
            raise MediaResolutionError(
                f"Media {ref.id} uses unsupported URL scheme: {parsed.scheme}"
            )
        if not self.app_url:
            raise MediaResolutionError("APP_URL is not configured")

        if not path.startswith("/"):
            path = f"/{path}"
        return ResolvedMedia(ref=ref, url=f"{self.app_url}{path}")
