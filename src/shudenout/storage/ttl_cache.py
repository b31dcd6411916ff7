"""In-memory, time-boxed caches with lazy expiry."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Generic, Hashable, Mapping, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


def make_key(prefix: str, params: Mapping[str, object]) -> str:
    """Stable key for request parameters, independent of insertion order."""
    joined = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return f"{prefix}:{joined}"


class TtlCache(Generic[K, V]):
    """Mapping whose entries expire ``ttl_s`` seconds after being written.

    Expiry is checked on read; :meth:`sweep` may be called to reclaim memory.
    """

    def __init__(self, ttl_s: float, *, clock: Clock = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: Dict[K, Tuple[float, V]] = {}

    def get(self, key: K) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V, *, ttl_s: Optional[float] = None) -> None:
        ttl = self.ttl_s if ttl_s is None else ttl_s
        self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)


class RequestDeduplicator(Generic[V]):
    """Share one in-flight computation between identical concurrent requests.

    Completed results are stored in ``cache`` when ``cacheable`` accepts them.
    Failed or cancelled computations are never cached, and the shared task is
    cancelled once every waiter has gone away.
    """

    def __init__(
        self,
        cache: TtlCache[str, V],
        *,
        cacheable: Callable[[V], bool] = lambda _value: True,
    ) -> None:
        self._cache = cache
        self._cacheable = cacheable
        self._pending: Dict[str, asyncio.Task[V]] = {}
        self._waiters: Dict[str, int] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[V]]) -> V:
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Serving %s from cache", key)
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            self._waiters[key] = 0
            task.add_done_callback(lambda done, key=key: self._finish(key, done))
        else:
            logger.debug("Joining in-flight request %s", key)

        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            remaining = self._waiters.get(key, 1) - 1
            self._waiters[key] = remaining
            if remaining <= 0 and not task.done():
                task.cancel()
            raise

    def _finish(self, key: str, task: asyncio.Task[V]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
            self._waiters.pop(key, None)
        if task.cancelled() or task.exception() is not None:
            return
        result = task.result()
        if self._cacheable(result):
            self._cache.set(key, result)

    def pending(self) -> int:
        return len(self._pending)
