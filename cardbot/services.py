"""Process-wide components, constructed once and injected into handlers and jobs."""

import time
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardbot.core.cache import Cache
from cardbot.core.connections import ConnectionService
from cardbot.core.conversation import ConversationManager
from cardbot.core.directory import DirectoryService
from cardbot.core.flows import ConversationEngine
from cardbot.core.rate_limiter import RateLimiter
from cardbot.core.search import PAGE_SIZE, SearchSessions
from cardbot.core.ttl_store import Clock


@dataclass
class Services:
    """Everything a handler needs besides the Telegram objects.

    Aiogram passes this to handlers as the ``services`` keyword argument.
    """

    session_factory: async_sessionmaker[AsyncSession]
    conversations: ConversationManager
    engine: ConversationEngine
    rate_limiter: RateLimiter
    user_cache: Cache
    connection_cache: Cache
    search_sessions: SearchSessions
    page_size: int = PAGE_SIZE

    def directory(self, session: AsyncSession) -> DirectoryService:
        return DirectoryService(session, self.user_cache, self.connection_cache)

    def connections(self, session: AsyncSession) -> ConnectionService:
        return ConnectionService(session, self.connection_cache)

    def caches(self) -> list[Cache]:
        return [self.user_cache, self.connection_cache]


def build_services(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    page_size: int | None = None,
    clock: Clock = time.time,
) -> Services:
    """Build the component graph.

    Args:
        session_factory: Database session factory; defaults to the configured one
        page_size: Search results per page; defaults to ``SEARCH_PAGE_SIZE``
        clock: Time source shared by every in-memory store
    """
    if session_factory is None:
        from cardbot.storage.db import get_session_factory
        session_factory = get_session_factory()

    if page_size is None:
        from cardbot.config import config
        page_size = config.search_page_size

    conversations = ConversationManager(clock=clock)
    return Services(
        session_factory=session_factory,
        conversations=conversations,
        engine=ConversationEngine(conversations),
        rate_limiter=RateLimiter(clock=clock),
        user_cache=Cache(name="user_cache", clock=clock),
        connection_cache=Cache(name="connection_cache", clock=clock),
        search_sessions=SearchSessions(clock=clock),
        page_size=page_size,
    )
