"""Router configuration and wiring for all bot handlers."""

from aiogram import Dispatcher, Router

from cardbot.bot.handlers_connections import router as connections_router
from cardbot.bot.handlers_conversation import router as conversation_router
from cardbot.bot.handlers_fallback import router as fallback_router
from cardbot.bot.handlers_profile import router as profile_router
from cardbot.bot.handlers_search import router as search_router
from cardbot.bot.handlers_start import router as start_router
from cardbot.bot.middlewares import LoggingMiddleware, RateLimitMiddleware
from cardbot.services import Services

main_router = Router(name="main")


def setup_routers(dp: Dispatcher, services: Services) -> RateLimitMiddleware:
    """Wire all routers and middlewares to the dispatcher.

    Order matters. The conversation router goes first so an active dialog
    receives the user's text before command dispatch; the fallback router
    goes last.

    Args:
        dp: The aiogram Dispatcher instance
        services: Component graph made available to every handler

    Returns:
        The rate limit middleware, whose notice store needs periodic sweeping
    """
    dp["services"] = services

    rate_limit = RateLimitMiddleware(services.rate_limiter)
    logging_mw = LoggingMiddleware()
    for observer in (dp.message, dp.callback_query):
        observer.outer_middleware(logging_mw)
        observer.outer_middleware(rate_limit)

    main_router.include_router(conversation_router)
    main_router.include_router(start_router)
    main_router.include_router(profile_router)
    main_router.include_router(connections_router)
    main_router.include_router(search_router)
    main_router.include_router(fallback_router)

    dp.include_router(main_router)
    return rate_limit
