"""Fixed-window per-user request limiter."""

import time
from dataclasses import dataclass

from cardbot.core.ttl_store import Clock, TTLStore
from cardbot.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60
MAX_REQUESTS = 20


@dataclass
class RateLimitEntry:
    """Request count within the window that closes at ``reset_at``."""

    count: int
    reset_at: float


class RateLimiter:
    """Allows ``max_requests`` per user in each fixed ``window_seconds`` window.

    The first request seeds a window; once ``now`` passes ``reset_at`` the next
    request starts a fresh one with a count of 1.
    """

    def __init__(
        self,
        window_seconds: float = WINDOW_SECONDS,
        max_requests: int = MAX_REQUESTS,
        clock: Clock = time.time,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._store: TTLStore[int, RateLimitEntry] = TTLStore(
            default_ttl=window_seconds,
            clock=clock,
            name="rate_limits",
        )

    def is_rate_limited(self, user_id: int) -> bool:
        """Count one request for ``user_id`` and report whether it exceeds the ceiling."""
        with self._store.locked():
            now = self._store.now()
            entry = self._store.get_entry(user_id)

            if entry is None:
                # First request, or the previous window has rolled over
                self._store.set(
                    user_id,
                    RateLimitEntry(count=1, reset_at=now + self.window_seconds),
                )
                return False

            state = entry.value
            state.count += 1

            if state.count > self.max_requests:
                if state.count == self.max_requests + 1:
                    logger.warning(
                        f"Rate limit exceeded for user {user_id}: {state.count} requests"
                    )
                return True

            return False

    def get_remaining_requests(self, user_id: int) -> int:
        """Requests left in the current window (read-only)."""
        entry = self._store.peek(user_id)
        if entry is None or self._store.now() > entry.value.reset_at:
            return self.max_requests
        return max(0, self.max_requests - entry.value.count)

    def get_time_until_reset(self, user_id: int) -> float:
        """Seconds until the current window closes, 0 when there is none."""
        entry = self._store.peek(user_id)
        if entry is None:
            return 0.0
        return max(0.0, entry.value.reset_at - self._store.now())

    def cleanup(self) -> int:
        """Drop entries whose window has elapsed. Returns how many were removed."""
        return self._store.sweep()

    def reset(self, user_id: int) -> None:
        """Forget ``user_id``'s window (admin/testing)."""
        self._store.delete(user_id)

    def __len__(self) -> int:
        return len(self._store)
