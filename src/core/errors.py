# src/core/errors.py - v1
"""Error taxonomy shared by the cache, resolver, curator and pipeline.

Only ValidationError is surfaced to callers as a hard failure. The other
kinds are caught at the component boundary and degrade the result.
"""

from __future__ import annotations


class PromptLiftError(Exception):
    """Base class for all promptlift errors."""


class ExternalServiceError(PromptLiftError):
    """A collaborator call failed (network, timeout, non-2xx, bad payload)."""

    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        self.detail = detail
        super().__init__(f"{service}: {detail}")


class CacheCorruptionError(PromptLiftError):
    """A stored cache entry could not be deserialized."""

    def __init__(self, key: str, detail: str = "") -> None:
        self.key = key
        self.detail = detail
        message = f"Corrupted cache entry {key!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BudgetExceededError(PromptLiftError):
    """The summarization cost ceiling refuses the call."""

    def __init__(self, reason: str, spent_usd: float = 0.0, ceiling_usd: float = 0.0) -> None:
        self.reason = reason
        self.spent_usd = spent_usd
        self.ceiling_usd = ceiling_usd
        super().__init__(
            f"Budget exceeded ({reason}): spent ${spent_usd:.4f} of ${ceiling_usd:.4f}"
        )


class ValidationError(PromptLiftError):
    """Malformed enhancement request (missing prompt, unknown context field...)."""


class StoreUnavailableError(PromptLiftError):
    """The durable store did not answer within its timeout or failed on I/O."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Durable store {operation} unavailable: {detail}")
