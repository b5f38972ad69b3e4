"""Storage module for database operations."""

from cardbot.storage.db import (
    Base,
    close_engine,
    create_tables,
    get_engine,
    get_session_factory,
    make_session_factory,
)
from cardbot.storage.models import Connection, Feedback, User, pair_key
from cardbot.storage.repo_connections import ConnectionsRepo
from cardbot.storage.repo_feedback import FeedbackRepo
from cardbot.storage.repo_users import UsersRepo

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "make_session_factory",
    "create_tables",
    "close_engine",
    # Models
    "User",
    "Connection",
    "Feedback",
    "pair_key",
    # Repositories
    "UsersRepo",
    "ConnectionsRepo",
    "FeedbackRepo",
]
