"""Per-run cache of acquired account handles with single-flight acquisition."""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from peering_audit.directory.base import AccountHandle
from peering_audit.utils.time import utc_now


@dataclass
class CacheEntry:
    handle: AccountHandle
    cached_at: datetime

    @classmethod
    def from_handle(cls, handle: AccountHandle) -> "CacheEntry":
        return cls(handle=handle, cached_at=utc_now())


class ContextCache:
    """Async handle cache; concurrent requests for one account share one acquisition.

    Failed acquisitions are not cached: each caller that asked for the account
    sees the same error, and a later request tries again.
    """

    def __init__(self, max_entries: int = 256) -> None:
        self._max_entries = max_entries
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._in_flight: dict[str, asyncio.Future[AccountHandle]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    async def get_or_acquire(
        self,
        account_id: str,
        acquire_fn: Callable[[], Awaitable[AccountHandle]],
    ) -> AccountHandle:
        key = account_id.lower()
        async with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                self._cache.move_to_end(key)
                return entry.handle

            in_flight = self._in_flight.get(key)
            if in_flight is None:
                in_flight = asyncio.get_running_loop().create_future()
                self._in_flight[key] = in_flight
                should_acquire = True
            else:
                should_acquire = False

        if not should_acquire:
            return await asyncio.shield(in_flight)

        try:
            handle = await acquire_fn()
        except BaseException as exc:
            async with self._lock:
                future = self._in_flight.pop(key, None)
                if future and not future.done():
                    future.set_exception(exc)
                    # Mark retrieved so an unawaited future does not log a warning.
                    future.exception()
            raise

        async with self._lock:
            self._cache[key] = CacheEntry.from_handle(handle)
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_entries:
                self._cache.popitem(last=False)

            future = self._in_flight.pop(key, None)
            if future and not future.done():
                future.set_result(handle)

        return handle
