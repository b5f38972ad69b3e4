"""Bot module containing handlers, keyboards, and messaging utilities."""

from cardbot.bot.router import setup_routers

__all__ = [
    "setup_routers",
]
