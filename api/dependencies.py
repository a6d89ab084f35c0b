"""Shared FastAPI dependencies for publishing routes.

The post repository and pending OAuth states are process-wide and
non-durable. Tests replace these providers through
app.dependency_overrides.
"""

from typing import Optional

import httpx
from fastapi import Depends

from publisher.adapters import AdapterRegistry, build_adapters
from publisher.credentials.oauth import ConnectorRegistry, PendingAuthorizations, build_connectors
from publisher.posting.media import MediaResolver
from publisher.posting.repository import InMemoryPostRepository, PostRepository

_post_repository = InMemoryPostRepository()


def get_post_repository() -> PostRepository:
    return _post_repository


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport for platform calls (None = real network)."""
    return None


def get_media_resolver() -> MediaResolver:
    return MediaResolver()


def get_adapters(
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AdapterRegistry:
    return build_adapters(transport)


_pending_authorizations = PendingAuthorizations()


def get_pending_authorizations() -> PendingAuthorizations:
    return _pending_authorizations


def get_oauth_connectors(
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> ConnectorRegistry:
    return build_connectors(transport)
