"""Middleware module for the API."""

from api.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
]
