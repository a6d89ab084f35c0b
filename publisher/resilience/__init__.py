"""Bounded retry helpers for outbound platform calls."""

from publisher.resilience.retry import RetryAttempt, RetryPolicy, fixed_interval

__all__ = ["RetryAttempt", "RetryPolicy", "fixed_interval"]
