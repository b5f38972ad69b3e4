"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _int_env(name: str, default: int) -> int:
    """Read an integer variable, falling back to the default when malformed."""
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Bot settings
    bot_token: str
    bot_mode: Literal["webhook", "polling"]
    webhook_url: str | None
    webhook_path: str
    host: str
    port: int
    database_url: str
    admin_token: str | None
    log_level: str

    # Search
    search_page_size: int

    # Background sweeps
    session_sweep_minutes: int
    cache_sweep_minutes: int
    rate_limit_sweep_minutes: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        bot_token = os.getenv("BOT_TOKEN")
        if not bot_token:
            raise ConfigurationError("BOT_TOKEN environment variable is required")

        bot_mode = os.getenv("BOT_MODE", "polling").lower()
        if bot_mode not in ("webhook", "polling"):
            raise ConfigurationError("BOT_MODE must be 'webhook' or 'polling'")

        webhook_url = os.getenv("WEBHOOK_URL")
        webhook_path = os.getenv("WEBHOOK_PATH", "/telegram/webhook")

        if bot_mode == "webhook" and not webhook_url:
            raise ConfigurationError("WEBHOOK_URL is required when BOT_MODE=webhook")

        host = os.getenv("HOST", "0.0.0.0")
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cardbot.db")
        admin_token = os.getenv("ADMIN_TOKEN") or None
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        search_page_size = _int_env("SEARCH_PAGE_SIZE", 5)
        if search_page_size <= 0:
            search_page_size = 5

        return cls(
            bot_token=bot_token,
            bot_mode=bot_mode,  # type: ignore[arg-type]
            webhook_url=webhook_url,
            webhook_path=webhook_path,
            host=host,
            port=port,
            database_url=database_url,
            admin_token=admin_token,
            log_level=log_level,
            search_page_size=search_page_size,
            session_sweep_minutes=_int_env("SESSION_SWEEP_MINUTES", 5),
            cache_sweep_minutes=_int_env("CACHE_SWEEP_MINUTES", 10),
            rate_limit_sweep_minutes=_int_env("RATE_LIMIT_SWEEP_MINUTES", 5),
        )


config = Config.from_env()
