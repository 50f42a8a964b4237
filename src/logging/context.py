# src/logging/context.py - v3
"""Per-request logging context.

One ContextVar holds an immutable snapshot (request id, prompt
fingerprint, pipeline phase). Every asyncio task works on its own copy,
so concurrent requests never see each other's fields, and the
single-flight tasks spawned by a request inherit the leader's fields.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any, Iterator

CONTEXT_FIELDS = ("request_id", "fingerprint", "phase")


@dataclass(frozen=True)
class RequestLogContext:
    request_id: str | None = None
    fingerprint: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Fields that are set, for the JSON "context" object."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = RequestLogContext()
_current: contextvars.ContextVar[RequestLogContext] = contextvars.ContextVar(
    "promptlift_log_context", default=_EMPTY
)


def current_log_context() -> RequestLogContext:
    return _current.get()


def bind_log_context(**fields: str | None) -> None:
    """Replace some fields of the current context (phase=..., fingerprint=...)."""
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
    _current.set(replace(_current.get(), **fields))


@contextmanager
def request_scope(request_id: str) -> Iterator[RequestLogContext]:
    """Fresh context for one request, restored to the previous one on exit."""
    token = _current.set(RequestLogContext(request_id=request_id))
    try:
        yield _current.get()
    finally:
        _current.reset(token)
