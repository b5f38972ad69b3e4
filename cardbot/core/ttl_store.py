"""In-memory keyed store with per-entry time-to-live.

Shared substrate for conversation sessions, cache entries, rate-limit
counters and search pagination state. Expiry is enforced lazily on read
and eagerly by :meth:`TTLStore.sweep`, which callers run on a timer.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from cardbot.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class TTLEntry(Generic[V]):
    """A stored value with its insertion time and time-to-live (seconds)."""

    value: V
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return (now - self.inserted_at) > self.ttl


class TTLStore(Generic[K, V]):
    """Thread-safe map of key -> (value, inserted_at, ttl).

    When ``max_size`` is set, inserting a new key into a full store evicts the
    entry with the oldest insertion time first (insertion order, not LRU).
    Overwriting a key counts as a fresh insertion.
    """

    def __init__(
        self,
        default_ttl: float,
        max_size: int | None = None,
        clock: Clock = time.time,
        name: str = "store",
    ) -> None:
        """Initialize the store.

        Args:
            default_ttl: TTL in seconds used when ``set`` is called without one
            max_size: Optional capacity bound; ``None`` means unbounded
            clock: Time source returning seconds, injectable for tests
            name: Label used in log lines
        """
        self._entries: dict[K, TTLEntry[V]] = {}
        self._lock = threading.RLock()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self.name = name

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def now(self) -> float:
        """Current time according to the store's clock."""
        return self._clock()

    def get(self, key: K) -> V | None:
        """Return the live value for ``key``, or None.

        An expired entry is removed as a side effect.
        """
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: K) -> TTLEntry[V] | None:
        """Return the live entry for ``key`` (lazy expiry), or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    def peek(self, key: K) -> TTLEntry[V] | None:
        """Return the raw entry without checking or removing on expiry."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: K, value: V, ttl: float | None = None) -> None:
        """Store ``value`` under ``key`` stamped with the current time."""
        with self._lock:
            # Re-inserting moves the key to the end so dict order == insertion time
            existed = self._entries.pop(key, None) is not None
            if not existed and self._max_size is not None:
                while len(self._entries) >= self._max_size:
                    self._evict_oldest()
            self._entries[key] = TTLEntry(
                value=value,
                inserted_at=self._clock(),
                ttl=self._default_ttl if ttl is None else ttl,
            )

    def has(self, key: K) -> bool:
        """True when a live entry exists for ``key``."""
        return self.get_entry(key) is not None

    def delete(self, key: K) -> bool:
        """Remove ``key``. Returns whether an entry was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Swept {len(expired)} expired entries from {self.name}")
        return len(expired)

    def keys(self) -> list[K]:
        """Snapshot of stored keys, including not-yet-swept expired ones."""
        with self._lock:
            return list(self._entries.keys())

    def values(self) -> list[V]:
        """Snapshot of live values."""
        with self._lock:
            now = self._clock()
            return [e.value for e in self._entries.values() if not e.expired(now)]

    def locked(self) -> threading.RLock:
        """The store's lock, for callers doing read-modify-write on one key."""
        return self._lock

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_oldest(self) -> None:
        oldest_key = next(iter(self._entries))
        del self._entries[oldest_key]
        logger.debug(f"Evicted oldest entry from {self.name}: {oldest_key}")
