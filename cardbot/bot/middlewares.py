"""Dispatcher middlewares: per-user rate limiting and update timing."""

import time
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from cardbot.bot.messages import rate_limited
from cardbot.bot.sender import reply, safe_answer_callback
from cardbot.core.rate_limiter import RateLimiter
from cardbot.core.ttl_store import TTLStore
from cardbot.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]]


def _user_id(event: TelegramObject) -> int | None:
    user = getattr(event, "from_user", None)
    return user.id if user else None


class RateLimitMiddleware(BaseMiddleware):
    """Drops updates from users over the limit before any handler runs.

    The user is told once per window; further updates in the same window are
    dropped silently.
    """

    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter
        self._notified: TTLStore[int, bool] = TTLStore(
            default_ttl=limiter.window_seconds,
            name="rate_limit_notices",
        )

    async def __call__(
        self,
        handler: Handler,
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user_id = _user_id(event)
        if user_id is None or not self.limiter.is_rate_limited(user_id):
            return await handler(event, data)

        if not self._notified.has(user_id):
            self._notified.set(user_id, True)
            wait = self.limiter.get_time_until_reset(user_id)
            if isinstance(event, Message):
                await reply(event, rate_limited(wait))
            elif isinstance(event, CallbackQuery):
                await safe_answer_callback(event, rate_limited(wait), show_alert=True)

        return None

    def cleanup(self) -> int:
        return self._notified.sweep()


class LoggingMiddleware(BaseMiddleware):
    """Logs how long each handled update took."""

    async def __call__(
        self,
        handler: Handler,
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        started = time.perf_counter()
        try:
            return await handler(event, data)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(
                f"Handled {type(event).__name__} from {_user_id(event)} in {elapsed_ms:.1f}ms"
            )
