"""Catch-all handlers: unknown input and unhandled exceptions."""

from aiogram import Router
from aiogram.types import ErrorEvent, Message

from cardbot.bot.messages import GENERIC_ERROR, unknown_input
from cardbot.bot.sender import reply, safe_answer_callback
from cardbot.logging import get_logger

router = Router(name="fallback")
logger = get_logger(__name__)


@router.message()
async def handle_unknown(message: Message) -> None:
    """Anything no other router claimed."""
    await reply(message, unknown_input())


@router.errors()
async def handle_error(event: ErrorEvent) -> bool:
    """Log the failure and tell the user, so a crashed handler is never silent."""
    update = event.update
    logger.exception(
        f"Unhandled error in update {update.update_id}: {event.exception}",
        exc_info=event.exception,
    )

    if update.message is not None:
        await reply(update.message, GENERIC_ERROR)
    elif update.callback_query is not None:
        await safe_answer_callback(update.callback_query, GENERIC_ERROR, show_alert=True)
    return True
