# src/cache/coalescer.py - v1
"""Cache-stampede protection: one upstream call per key at a time.

Concurrent callers asking for the same key while a call is in flight
await the same task instead of starting their own. The shared task is
cancelled once every waiter has gone away, so a cancelled request never
leaves orphaned work behind (and its partial results are never cached).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _InFlight:
    task: asyncio.Task[Any]
    waiters: int = 0


class SingleFlight(Generic[T]):
    """In-flight request map keyed by fingerprint / context key."""

    def __init__(self, name: str = "singleflight") -> None:
        self._name = name
        self._inflight: dict[str, _InFlight] = {}
        self.coalesced = 0

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """Run fn once per key; returns (result, is_leader)."""
        call = self._inflight.get(key)
        leader = call is None
        if call is None:
            call = _InFlight(task=asyncio.ensure_future(fn()))
            self._inflight[key] = call
            call.task.add_done_callback(lambda _t, k=key, c=call: self._forget(k, c))
        else:
            self.coalesced += 1
            logger.debug("%s: joined in-flight call for %s", self._name, key)

        call.waiters += 1
        try:
            result = await asyncio.shield(call.task)
        except asyncio.CancelledError:
            if not call.task.done() and call.waiters == 1:
                self._forget(key, call)
                call.task.cancel()
                logger.debug("%s: cancelled abandoned call for %s", self._name, key)
            raise
        finally:
            call.waiters -= 1
        return result, leader

    def _forget(self, key: str, call: _InFlight) -> None:
        if self._inflight.get(key) is call:
            del self._inflight[key]
