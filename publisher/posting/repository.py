"""Post record storage.

The orchestrator and routes depend only on the PostRepository protocol.
InMemoryPostRepository is non-durable: records are lost on restart, so
production deployments must provide a transactional implementation.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol
from uuid import UUID

from publisher.db.models import SocialPlatform
from publisher.posting.models import PostRecord, PostStatus, now_utc


class PostRepository(Protocol):
    """Storage contract for post records."""

    async def add(self, post: PostRecord) -> PostRecord: ...

    async def get(self, post_id: UUID) -> Optional[PostRecord]: ...

    async def save(self, post: PostRecord) -> PostRecord: ...

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[PostStatus] = None,
        platform: Optional[SocialPlatform] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[PostRecord], int]: ...

    def locked(self, post_id: UUID) -> AsyncIterator[None]:
        """Async context manager serializing publishes of one post."""
        ...


class InMemoryPostRepository:
    """Dict-backed PostRepository for a single process."""

    def __init__(self):
        self._posts: dict[UUID, PostRecord] = {}
        self._lock = asyncio.Lock()
        self._post_locks: dict[UUID, asyncio.Lock] = {}
        self._lock_users: dict[UUID, int] = {}

    async def add(self, post: PostRecord) -> PostRecord:
        async with self._lock:
            self._posts[post.id] = post.model_copy(deep=True)
        return post

    async def get(self, post_id: UUID) -> Optional[PostRecord]:
        async with self._lock:
            post = self._posts.get(post_id)
            return post.model_copy(deep=True) if post else None

    async def save(self, post: PostRecord) -> PostRecord:
        post.updated_at = now_utc()
        async with self._lock:
            self._posts[post.id] = post.model_copy(deep=True)
        return post

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[PostStatus] = None,
        platform: Optional[SocialPlatform] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[PostRecord], int]:
        """Newest-first page of a user's posts plus the filtered total."""
        now = now_utc()
        async with self._lock:
            posts = [post for post in self._posts.values() if post.user_id == user_id]

        if status is not None:
            posts = [post for post in posts if post.status_at(now) == status]
        if platform is not None:
            posts = [post for post in posts if platform in post.platforms]

        posts.sort(key=lambda post: post.created_at, reverse=True)
        page = posts[offset : offset + limit]
        return [post.model_copy(deep=True) for post in page], len(posts)

    @asynccontextmanager
    async def locked(self, post_id: UUID) -> AsyncIterator[None]:
        """Hold the post's lock; it is dropped once no task holds or awaits it."""
        async with self._lock:
            post_lock = self._post_locks.setdefault(post_id, asyncio.Lock())
            self._lock_users[post_id] = self._lock_users.get(post_id, 0) + 1
        try:
            async with post_lock:
                yield
        finally:
            async with self._lock:
                users = self._lock_users.pop(post_id, 1) - 1
                if users:
                    self._lock_users[post_id] = users
                elif self._post_locks.get(post_id) is post_lock:
                    del self._post_locks[post_id]

    async def clear(self) -> None:
        async with self._lock:
            self._posts.clear()
            self._post_locks.clear()
            self._lock_users.clear()
