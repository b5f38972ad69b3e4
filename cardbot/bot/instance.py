"""Bot construction, kept apart from ``main`` so handlers never import it."""

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from cardbot.config import Config


def create_bot(config: Config) -> Bot:
    """Bot whose outgoing messages are parsed as HTML by default."""
    return Bot(
        token=config.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
