"""Handlers for /search, /advancedsearch and result pagination."""

from aiogram import Bot, F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from cardbot.bot.keyboards import kb_search_pages
from cardbot.bot.messages import (
    advanced_search_menu,
    first_page,
    no_active_search,
    no_more_results,
    search_empty,
    search_results,
    search_usage,
)
from cardbot.bot.sender import reply, safe_answer_callback, safe_send_message
from cardbot.core.search import SearchState, normalize_query, parse_search_filters
from cardbot.logging import get_logger
from cardbot.services import Services

router = Router(name="search")
logger = get_logger(__name__)


async def send_search_page(
    bot: Bot | None,
    chat_id: int,
    services: Services,
    user_id: int,
    state: SearchState,
) -> bool:
    """Run the user's saved search for ``state.page`` and send the results.

    Returns:
        True if a page of results was sent
    """
    page_size = services.page_size
    async with services.session_factory() as session:
        directory = services.directory(session)
        # One extra row tells us whether a next page exists
        if state.filters is not None:
            results = await directory.advanced_search(
                state.filters, page_size + 1, state.offset(page_size), exclude_id=user_id
            )
        else:
            results = await directory.search(
                state.query or "", page_size + 1, state.offset(page_size), exclude_id=user_id
            )

    if not results:
        if state.page > 0:
            services.search_sessions.set_page(user_id, state.page - 1)
            await safe_send_message(bot, chat_id, no_more_results())
        else:
            services.search_sessions.clear(user_id)
            await safe_send_message(bot, chat_id, search_empty())
        return False

    has_next = len(results) > page_size
    text = search_results(
        results[:page_size],
        state.page,
        page_size,
        query=state.query,
        filters=state.filters.describe() if state.filters is not None else None,
    )
    await safe_send_message(
        bot,
        chat_id,
        text,
        reply_markup=kb_search_pages(state.page > 0, has_next),
        disable_web_page_preview=True,
    )
    logger.info(f"User {user_id} viewed search page {state.page + 1}")
    return True


@router.message(Command("search"))
async def handle_search(message: Message, command: CommandObject, services: Services) -> None:
    """Handle /search <query>."""
    user = message.from_user
    if not user:
        return

    query = normalize_query((command.args or "").strip().strip("\"'"))
    if query is None:
        await reply(message, search_usage())
        return

    state = services.search_sessions.begin_query(user.id, query)
    logger.info(f"User {user.id} searched for: {query}")
    await send_search_page(message.bot, message.chat.id, services, user.id, state)


@router.message(Command("advancedsearch"))
async def handle_advanced_search(
    message: Message,
    command: CommandObject,
    services: Services,
) -> None:
    """Handle /advancedsearch [filters]; without filters, asks for them."""
    user = message.from_user
    if not user:
        return

    filters = parse_search_filters(command.args or "")
    if filters.is_empty():
        services.engine.start_advanced_search(user.id)
        await reply(message, advanced_search_menu())
        return

    state = services.search_sessions.begin_filters(user.id, filters)
    logger.info(f"User {user.id} ran advanced search: {filters.describe()}")
    await send_search_page(message.bot, message.chat.id, services, user.id, state)


async def _turn_page(
    bot: Bot | None,
    chat_id: int,
    services: Services,
    user_id: int,
    delta: int,
) -> None:
    current = services.search_sessions.get(user_id)
    if current is None:
        await safe_send_message(bot, chat_id, no_active_search())
        return
    if delta < 0 and current.page == 0:
        await safe_send_message(bot, chat_id, first_page())
        return

    state = services.search_sessions.move(user_id, delta)
    if state is not None:
        await send_search_page(bot, chat_id, services, user_id, state)


@router.message(Command("next"))
async def handle_next(message: Message, services: Services) -> None:
    if message.from_user:
        await _turn_page(message.bot, message.chat.id, services, message.from_user.id, 1)


@router.message(Command("prev"))
async def handle_prev(message: Message, services: Services) -> None:
    if message.from_user:
        await _turn_page(message.bot, message.chat.id, services, message.from_user.id, -1)


@router.callback_query(F.data.in_({"n:next", "n:prev"}))
async def handle_page_button(callback: CallbackQuery, services: Services) -> None:
    """Handle the Prev/Next buttons under search results."""
    await safe_answer_callback(callback)

    if not callback.message or not callback.from_user:
        return

    delta = 1 if callback.data == "n:next" else -1
    await _turn_page(
        callback.bot, callback.message.chat.id, services, callback.from_user.id, delta
    )
