"""General-purpose value cache with hit/miss accounting."""

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from cardbot.core.ttl_store import Clock, TTLStore
from cardbot.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
MAX_SIZE = 1000

T = TypeVar("T")


@dataclass(frozen=True)
class CacheStats:
    """Cumulative cache counters."""

    hits: int
    misses: int
    size: int
    hit_rate: float

    def to_dict(self) -> dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "hit_rate": self.hit_rate,
        }


class Cache:
    """TTL cache bounded to ``max_size`` entries with insertion-order eviction.

    Hit and miss counters only grow until :meth:`clear` resets them.
    """

    def __init__(
        self,
        name: str = "cache",
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = MAX_SIZE,
        clock: Clock = time.time,
    ) -> None:
        self.name = name
        self._store: TTLStore[str, Any] = TTLStore(
            default_ttl=default_ttl,
            max_size=max_size,
            clock=clock,
            name=name,
        )
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss (expired entries are dropped)."""
        with self._store.locked():
            entry = self._store.get_entry(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Cache ``value`` for ``ttl`` seconds (default 5 minutes)."""
        self._store.set(key, value, ttl)

    def has(self, key: str) -> bool:
        """True when a live entry exists. Does not touch the counters."""
        return self._store.has(key)

    def delete(self, key: str) -> bool:
        return self._store.delete(key)

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns how many were removed."""
        with self._store.locked():
            matching = [key for key in self._store.keys() if key.startswith(prefix)]
            for key in matching:
                self._store.delete(key)
        return len(matching)

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        with self._store.locked():
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def cleanup(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        removed = self._store.sweep()
        if removed:
            logger.debug(f"Cleaned up {removed} expired entries from {self.name}")
        return removed

    def get_stats(self) -> CacheStats:
        with self._store.locked():
            total = self._hits + self._misses
            hit_rate = (self._hits / total) * 100 if total > 0 else 0.0
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._store),
                hit_rate=round(hit_rate, 2),
            )

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T | None:
        """Return the cached value for ``key`` or await ``loader`` and cache its result.

        ``None`` results are returned but never cached.
        """
        hit = self.get(key)
        if hit is not None:
            return hit

        value = await loader()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def keys(self) -> list[str]:
        return self._store.keys()

    def size(self) -> int:
        return len(self._store)


class CacheKeys:
    """Key builders shared by every caller of the caches."""

    @staticmethod
    def user(telegram_id: int) -> str:
        return f"user:{telegram_id}"

    @staticmethod
    def user_by_username(username: str) -> str:
        return f"user:username:{username.lower()}"

    @staticmethod
    def connections(user_id: int) -> str:
        return f"connections:{user_id}"

    @staticmethod
    def pending_requests(user_id: int) -> str:
        return f"pending:{user_id}"

    @staticmethod
    def page(base: str, limit: int, offset: int) -> str:
        """Key for one page of a list cached under ``base``."""
        return f"{base}:{limit}:{offset}"

    @staticmethod
    def search(query: str, limit: int, offset: int) -> str:
        return f"search:{query}:{limit}:{offset}"

    @staticmethod
    def total_users() -> str:
        return "stats:total_users"

    @staticmethod
    def total_connections() -> str:
        return "stats:total_connections"
