"""Handlers for /start and /help."""

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from cardbot.bot.messages import HELP_MESSAGE, start_message
from cardbot.bot.sender import reply
from cardbot.logging import get_logger
from cardbot.services import Services

router = Router(name="start")
logger = get_logger(__name__)


@router.message(CommandStart())
async def handle_start(message: Message, services: Services) -> None:
    """Greet the user and point them at the next useful command."""
    user = message.from_user
    if not user:
        return

    logger.info(f"User {user.id} started the bot")

    async with services.session_factory() as session:
        profile = await services.directory(session).get_profile(user.id)

    await reply(message, start_message(user.first_name, has_profile=profile is not None))


@router.message(Command("help"))
async def handle_help(message: Message) -> None:
    await reply(message, HELP_MESSAGE)
