"""Message sending with retry on Telegram rate limits and server errors."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from aiogram import Bot
from aiogram.exceptions import (
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
    TelegramServerError,
)
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message

from cardbot.logging import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 3

T = TypeVar("T")


async def _with_retries(
    call: Callable[[], Awaitable[T]],
    chat_id: int,
    what: str,
) -> T | None:
    """Run ``call``, retrying on 429 and 5xx up to ``MAX_RETRIES`` times.

    Blocked chats and bad requests are logged and give up immediately.
    """
    last_error: Exception | None = None

    for attempt in range(MAX_RETRIES):
        try:
            return await call()

        except TelegramRetryAfter as e:
            logger.warning(
                f"Rate limited sending {what} to {chat_id}, "
                f"retry after {e.retry_after}s (attempt {attempt + 1}/{MAX_RETRIES})"
            )
            last_error = e
            if attempt < MAX_RETRIES - 1:
                await asyncio.sleep(e.retry_after)

        except TelegramServerError as e:
            logger.warning(
                f"Telegram server error sending {what} to {chat_id}: {e} "
                f"(attempt {attempt + 1}/{MAX_RETRIES})"
            )
            last_error = e
            if attempt < MAX_RETRIES - 1:
                await asyncio.sleep(2 ** attempt)

        except TelegramForbiddenError:
            logger.info(f"User {chat_id} has blocked the bot or chat is unavailable")
            return None

        except TelegramBadRequest as e:
            logger.error(f"Bad request sending {what} to {chat_id}: {e}")
            return None

    logger.error(f"Failed to send {what} to {chat_id} after {MAX_RETRIES} attempts: {last_error}")
    return None


async def safe_send_message(
    bot: Bot | None,
    chat_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
    **kwargs: Any,
) -> Message | None:
    """Send a message, retrying on rate limits.

    Args:
        bot: The aiogram Bot instance
        chat_id: Target chat ID
        text: HTML message text
        reply_markup: Optional inline keyboard
        **kwargs: Additional arguments passed to send_message

    Returns:
        The sent Message object, or None if sending failed
    """
    if bot is None:
        logger.error("Bot instance is None, cannot send message")
        return None

    return await _with_retries(
        lambda: bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_markup=reply_markup,
            **kwargs,
        ),
        chat_id,
        "message",
    )


async def reply(
    message: Message,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
) -> Message | None:
    """Reply in the chat the message came from."""
    return await safe_send_message(
        message.bot,
        message.chat.id,
        text,
        reply_markup=reply_markup,
        disable_web_page_preview=True,
    )


async def notify_user(
    bot: Bot | None,
    user_id: int,
    text: str,
    reply_markup: InlineKeyboardMarkup | None = None,
) -> bool:
    """Best-effort notification to another user. Returns whether it was delivered."""
    sent = await safe_send_message(
        bot,
        user_id,
        text,
        reply_markup=reply_markup,
        disable_web_page_preview=True,
    )
    if sent is None:
        logger.info(f"Notification to user {user_id} was not delivered")
    return sent is not None


async def safe_answer_callback(
    callback_query: CallbackQuery,
    text: str | None = None,
    show_alert: bool = False,
) -> bool:
    """Answer a callback query, ignoring Telegram errors.

    Returns:
        True if answered successfully, False otherwise
    """
    try:
        await callback_query.answer(text=text, show_alert=show_alert)
        return True
    except (TelegramBadRequest, TelegramForbiddenError, TelegramServerError) as e:
        logger.warning(f"Failed to answer callback: {e}")
        return False


async def safe_edit_markup(message: Message | None) -> None:
    """Drop the inline keyboard from a message once it has been acted on."""
    if message is None:
        return
    try:
        await message.edit_reply_markup(reply_markup=None)
    except TelegramBadRequest as e:
        logger.debug(f"Could not remove keyboard: {e}")
