# src/llm/retry.py - v3
"""Retry with classified errors and exponential backoff.

Failures are sorted into classes from the HTTP status the provider SDKs
attach to their exceptions, falling back to the exception type and
message. Each class has its own policy; a class without one (bad
request, bad key, unknown) fails on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class LLMRetryExhausted(Exception):
    """Raised once a call has failed more often than its policy allows."""

    def __init__(self, operation: str, error_type: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation}: gave up after {attempts} attempt(s) on {error_type}: {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for one error class."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    jitter: bool = True

    def delay(self, retry: int, rng: Callable[[], float] = random.random) -> float:
        """Seconds to wait before retry number retry (0-based)."""
        delay = min(self.max_delay_s, self.base_delay_s * self.backoff_factor ** retry)
        if self.jitter:
            delay *= 0.5 + rng()
        return delay


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=1, base_delay_s=0.5, backoff_factor=1.0),
    "connection": RetryConfig(max_retries=1, base_delay_s=0.5, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=2, base_delay_s=1.0),
    "parse_error": RetryConfig(max_retries=1, base_delay_s=0.0, backoff_factor=1.0),
}

_STATUS_CLASSES: dict[int, str] = {408: "timeout", 429: "rate_limit", 529: "server_error"}


def _status_of(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def classify_error(error: Exception) -> str:
    """Error class of a failed call."""
    status = _status_of(error)
    if status is not None:
        if status in _STATUS_CLASSES:
            return _STATUS_CLASSES[status]
        return "server_error" if status >= 500 else "client_error"

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    name = type(error).__name__.lower()
    msg = str(error).lower()
    if "ratelimit" in name or "429" in msg or "rate limit" in msg:
        return "rate_limit"
    if "timeout" in name or "timed out" in msg:
        return "timeout"
    if "connection" in name:
        return "connection"
    if any(code in msg for code in ("500", "502", "503", "504")) or "overloaded" in msg:
        return "server_error"
    if "json" in msg or "parse" in msg:
        return "parse_error"
    if "token" in msg and ("limit" in msg or "exceed" in msg):
        return "token_limit"
    return "unknown"


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "llm",
    retry_configs: dict[str, RetryConfig] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Await fn(*args, **kwargs), retrying per error class.

    Cancellation is never retried.

    Raises:
        LLMRetryExhausted: The policy of the last error class is used up.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    failures = 0
    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            failures += 1
            error_type = classify_error(e)
            config = configs.get(error_type)
            if config is None or failures > config.max_retries:
                raise LLMRetryExhausted(operation, error_type, failures, e) from e

            delay = config.delay(failures - 1)
            logger.warning(
                "%s: %s on attempt %d of %d, retrying in %.1fs",
                operation, error_type, failures, config.max_retries + 1, delay,
            )
            await sleep(delay)
