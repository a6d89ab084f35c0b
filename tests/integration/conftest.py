"""Shared fixtures for integration tests."""

import asyncio
from typing import Any, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel import Session

from api.auth.jwt import create_access_token
from api.dependencies import (
    get_http_transport,
    get_pending_authorizations,
    get_post_repository,
)
from api.main import app
from publisher.credentials import PendingAuthorizations
from publisher.db.engine import get_session_dependency
from publisher.posting.repository import InMemoryPostRepository


class SyncClient:
    """Synchronous wrapper around httpx AsyncClient for testing."""

    def __init__(self, app):
        self.app = app
        self.transport = ASGITransport(app=app)
        self.base_url = "http://testserver"

    def _run_async(self, coro):
        """Run async coroutine synchronously."""
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """Make async request."""
        async with AsyncClient(transport=self.transport, base_url=self.base_url) as client:
            response = await client.request(method, url, **kwargs)
            return response

    def get(self, url: str, **kwargs):
        return self._run_async(self._request("GET", url, **kwargs))

    def post(self, url: str, **kwargs):
        return self._run_async(self._request("POST", url, **kwargs))

    def delete(self, url: str, **kwargs):
        return self._run_async(self._request("DELETE", url, **kwargs))


class PlatformApi:
    """Outbound platform traffic stub: routes keyed by (method, url without query)."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, status_code: int = 200, **body) -> None:
        self.routes[(method, url)] = lambda request: httpx.Response(status_code, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, str(request.url).split("?")[0]))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": "unexpected request"}})
        return handler(request)


@pytest.fixture
def platform_api():
    return PlatformApi()


@pytest.fixture
def post_repository():
    return InMemoryPostRepository()


@pytest.fixture
def pending_authorizations():
    return PendingAuthorizations()


@pytest.fixture
def client(test_engine, platform_api, post_repository, pending_authorizations):
    """SyncClient with the test database, fresh in-memory stores and stubbed platforms."""

    def session_override():
        with Session(test_engine) as session:
            yield session

    transport = httpx.MockTransport(platform_api)
    app.dependency_overrides[get_session_dependency] = session_override
    app.dependency_overrides[get_post_repository] = lambda: post_repository
    app.dependency_overrides[get_http_transport] = lambda: transport
    app.dependency_overrides[get_pending_authorizations] = lambda: pending_authorizations
    yield SyncClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user."""

    def factory(user) -> dict[str, str]:
        token = create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return factory
