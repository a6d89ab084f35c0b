"""Multi-platform publish orchestration.

Publishing one post:
1. Load the post record
2. Resolve active credentials into per-platform AuthContexts
3. Resolve media references to absolute URLs
4. Compose the text payload and attach the platform's extension
5. Call each platform adapter in turn
6. Persist the per-platform results

Every requested platform gets exactly one PublishResult, including
when the post is missing or no credential is usable. Adapter failures
never abort sibling platforms.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from publisher.adapters import AdapterRegistry, build_adapters, post_to_platform
from publisher.adapters.base import AdapterResult, AuthContext, PlatformPayload
from publisher.credentials.store import CredentialStore
from publisher.db.models import SocialPlatform
from publisher.logging.structured import get_logger
from publisher.posting.media import MediaResolutionError, MediaResolver, ResolvedMedia
from publisher.posting.models import (
    MediaRef,
    PlatformExtension,
    PostContent,
    PostRecord,
    PublishResult,
    PublishStatus,
    now_utc,
)
from publisher.posting.repository import PostRepository

logger = get_logger(__name__)

POST_NOT_FOUND_ERROR = "Post not found"
CREDENTIALS_UNAVAILABLE_ERROR = "Failed to load platform credentials"


def not_connected_error(platform: SocialPlatform) -> str:
    return f"{platform.value} account not connected or token expired"


@dataclass
class PublishOutcome:
    """Aggregate result of one publish call."""

    results: dict[SocialPlatform, PublishResult] = field(default_factory=dict)
    published_at: Optional[datetime] = None

    @property
    def published(self) -> list[SocialPlatform]:
        return [
            platform
            for platform, result in self.results.items()
            if result.status == PublishStatus.published
        ]

    @property
    def failed(self) -> list[SocialPlatform]:
        return [
            platform
            for platform, result in self.results.items()
            if result.status == PublishStatus.failed
        ]


def compose_text(content: PostContent) -> str:
    """Base text, a blank line, one #tag per line, then the link."""
    lines = [f"#{tag.lstrip('#')}" for tag in content.hashtags if tag.strip("#")]
    if content.link:
        lines.append(content.link)

    text = content.text.strip()
    if not lines:
        return text
    if not text:
        return "\n".join(lines)
    return text + "\n\n" + "\n".join(lines)


class PublishOrchestrator:
    """Create post records and publish them to their platforms."""

    def __init__(
        self,
        repository: PostRepository,
        store: CredentialStore,
        resolver: Optional[MediaResolver] = None,
        adapters: Optional[AdapterRegistry] = None,
    ):
        self.repository = repository
        self.store = store
        self.resolver = resolver or MediaResolver()
        self.adapters = adapters if adapters is not None else build_adapters()

    async def create_post(
        self,
        user_id: UUID,
        platforms: Sequence[SocialPlatform],
        content: PostContent,
        media: Sequence[MediaRef] = (),
        scheduled_at: Optional[datetime] = None,
        timezone: str = "UTC",
        is_draft: bool = False,
        extensions: Sequence[PlatformExtension] = (),
    ) -> PostRecord:
        post = PostRecord(
            user_id=user_id,
            platforms=list(dict.fromkeys(platforms)),
            content=content,
            media=list(media),
            scheduled_at=scheduled_at,
            timezone=timezone,
            is_draft=is_draft,
            extensions=list(extensions),
        )
        await self.repository.add(post)
        logger.info(
            "post_created",
            post_id=str(post.id),
            user_id=str(user_id),
            platforms=[p.value for p in post.platforms],
            is_draft=is_draft,
            scheduled=scheduled_at is not None,
        )
        return post

    async def submit(self, **kwargs) -> tuple[PostRecord, Optional[PublishOutcome]]:
        """Create a post and publish it now unless it is a draft or scheduled.

        Accepts the same keyword arguments as create_post.

        Returns:
            The stored post (reloaded after publishing) and the publish
            outcome, or None when nothing was published
        """
        post = await self.create_post(**kwargs)
        if post.is_draft or post.scheduled_at is not None:
            return post, None

        outcome = await self.publish(post.id)
        return await self.repository.get(post.id) or post, outcome

    async def publish(
        self,
        post_id: UUID,
        platforms: Optional[Iterable[SocialPlatform]] = None,
    ) -> PublishOutcome:
        """Publish a stored post to the requested platforms.

        Args:
            post_id: Post to publish
            platforms: Subset of platforms to publish to (default: all of
                the post's platforms)

        Returns:
            One PublishResult per requested platform
        """
        async with self.repository.locked(post_id):
            post = await self.repository.get(post_id)
            if post is None:
                targets = list(dict.fromkeys(platforms or []))
                logger.error("publish_post_not_found", post_id=str(post_id))
                return PublishOutcome(
                    results={p: PublishResult.failed(p, POST_NOT_FOUND_ERROR) for p in targets}
                )

            targets = list(dict.fromkeys(platforms if platforms is not None else post.platforms))
            return await self._publish_locked(post, targets)

    async def _publish_locked(
        self, post: PostRecord, targets: list[SocialPlatform]
    ) -> PublishOutcome:
        results: dict[SocialPlatform, PublishResult] = {}

        # Platforms already published on this record are not re-attempted
        pending = []
        for platform in targets:
            existing = post.results.get(platform)
            if existing is not None and existing.status == PublishStatus.published:
                results[platform] = existing
            else:
                pending.append(platform)

        auth = self._authenticate(post.user_id, pending, results)
        attempted = []

        if pending and not auth:
            logger.warning(
                "publish_no_valid_credentials",
                post_id=str(post.id),
                platforms=[p.value for p in pending],
            )
        elif pending:
            media = self._resolve_media(post)
            for platform in pending:
                if platform in results:
                    continue
                payload = self._payload(post, platform, media)
                result = await self._attempt(post.id, auth[platform], platform, payload)
                results[platform] = result
                attempted.append(platform)

        ordered = {platform: results[platform] for platform in targets}
        outcome = PublishOutcome(results=ordered, published_at=post.published_at)
        if any(
            results[p].status == PublishStatus.published for p in attempted
        ):
            outcome.published_at = now_utc()

        post.results.update(ordered)
        post.is_draft = False
        post.published_at = outcome.published_at
        await self.repository.save(post)

        logger.info(
            "post_published",
            post_id=str(post.id),
            published=[p.value for p in outcome.published],
            failed=[p.value for p in outcome.failed],
        )
        return outcome

    def _authenticate(
        self,
        user_id: UUID,
        platforms: list[SocialPlatform],
        results: dict[SocialPlatform, PublishResult],
    ) -> dict[SocialPlatform, AuthContext]:
        """Map platforms to auth contexts; unusable platforms are marked failed."""
        if not platforms:
            return {}

        try:
            credentials = self.store.find_active(user_id, platforms)
        except SQLAlchemyError:
            logger.exception("publish_credentials_unavailable", user_id=str(user_id))
            for platform in platforms:
                results[platform] = PublishResult.failed(platform, CREDENTIALS_UNAVAILABLE_ERROR)
            return {}

        auth: dict[SocialPlatform, AuthContext] = {}
        for credential in credentials:
            # Newest first; keep the first usable credential per platform
            if credential.platform not in auth:
                context = AuthContext.from_credential(credential)
                if context.is_valid:
                    auth[credential.platform] = context

        for platform in platforms:
            if platform not in auth:
                results[platform] = PublishResult.failed(platform, not_connected_error(platform))
        return auth

    def _resolve_media(self, post: PostRecord) -> list[ResolvedMedia]:
        resolved = []
        for ref in post.media:
            try:
                resolved.append(self.resolver.resolve(post.user_id, ref))
            except MediaResolutionError as e:
                logger.warning(
                    "media_resolution_failed",
                    post_id=str(post.id),
                    media_id=ref.id,
                    error=str(e),
                )
        return resolved

    @staticmethod
    def _payload(
        post: PostRecord, platform: SocialPlatform, media: list[ResolvedMedia]
    ) -> PlatformPayload:
        return PlatformPayload(
            text=compose_text(post.content),
            hashtags=list(post.content.hashtags),
            mentions=list(post.content.mentions),
            link=post.content.link,
            media=list(media),
            extension=post.extension_for(platform),
        )

    async def _attempt(
        self,
        post_id: UUID,
        auth: AuthContext,
        platform: SocialPlatform,
        payload: PlatformPayload,
    ) -> PublishResult:
        try:
            result: AdapterResult = await post_to_platform(
                auth, platform, payload, self.adapters
            )
        except Exception:
            logger.exception(
                "platform_publish_error", post_id=str(post_id), platform=platform.value
            )
            return PublishResult.failed(platform, f"Failed to publish to {platform.value}")

        if not result.success:
            logger.warning(
                "platform_publish_failed",
                post_id=str(post_id),
                platform=platform.value,
                error=result.error,
            )
            return PublishResult.failed(
                platform, result.error or f"Unknown error posting to {platform.value}"
            )

        return PublishResult(
            platform=platform,
            status=PublishStatus.published,
            platform_post_id=result.platform_post_id,
            url=result.url,
            published_at=now_utc(),
        )
