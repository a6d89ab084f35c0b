"""Tests for structured logging context."""

from uuid import uuid4

from publisher.logging.structured import (
    add_request_context,
    add_service_info,
    bind_context,
    clear_context,
)


def test_bound_context_is_added_to_events():
    user_id = uuid4()
    bind_context(request_id="req-1", user_id=user_id)
    try:
        event = add_request_context(None, "info", {"event": "post_created"})
    finally:
        clear_context()

    assert event == {"event": "post_created", "request_id": "req-1", "user_id": str(user_id)}


def test_clear_context():
    bind_context(request_id="req-1")
    clear_context()

    assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}


def test_service_name():
    assert add_service_info(None, "info", {})["service"] == "crosspost"
