"""Structured logging for the publishing service."""

from publisher.logging.structured import (
    configure_structlog,
    get_logger,
    bind_context,
    clear_context,
)

__all__ = [
    "configure_structlog",
    "get_logger",
    "bind_context",
    "clear_context",
]
