"""In-process TTL cache for corporation role listings."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cachetools import TTLCache
from structlog import get_logger

logger = get_logger()

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 10_000


def role_cache_key(corporation_id: str, active_only: bool) -> str:
    """Key format: "<corporation_id>:<true|false>"."""
    return f"{corporation_id}:{str(active_only).lower()}"


def corporation_of(key: str) -> str:
    """Corporation id part of a role cache key."""
    return key.rpartition(":")[0]


class RoleCache:
    """
    Read-through, write-invalidate cache keyed by corporation and activity filter.

    Local to the owning process. Callers invalidate synchronously after every
    role grant/revoke, so a read that follows a write never sees the old list.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache[str, Any] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=timer
        )
        self._hits = 0
        self._misses = 0
        # Bumped on every invalidation; a fill started under an older
        # generation is discarded instead of stored
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def _generation(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(corporation_of(key), 0)

    def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for key, or await compute() and cache its result.

        If the key's corporation is invalidated while compute() is in flight,
        the result is returned to this caller but not stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        generation = self._generation(key)
        value = await compute()
        if self._generation(key) == generation:
            self.set(key, value)
        else:
            logger.debug("role_cache_fill_discarded", key=key)
        return value

    def invalidate(self, key: str) -> None:
        corporation_id = corporation_of(key)
        self._generations[corporation_id] = self._generations.get(corporation_id, 0) + 1
        self._cache.pop(key, None)

    def invalidate_corporation(self, corporation_id: str) -> None:
        """Drop both the active-only and the full listing for a corporation."""
        self.invalidate(role_cache_key(corporation_id, True))
        self.invalidate(role_cache_key(corporation_id, False))
        logger.debug("role_cache_invalidated", corporation_id=corporation_id)

    def clear(self) -> None:
        self._cache.clear()
        self._generations.clear()
        self._epoch += 1
        self._hits = 0
        self._misses = 0

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> dict[str, Any]:
        """Cache statistics for the health endpoint."""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0.0
        return {
            "size": len(self._cache),
            "maxsize": self._cache.maxsize,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 2),
        }
