"""Profile directory backed by the users table with a read-through cache."""

from sqlalchemy.ext.asyncio import AsyncSession

from cardbot.core.cache import Cache, CacheKeys
from cardbot.core.contracts import ProfileData, SearchFilters, UserProfile
from cardbot.logging import get_logger
from cardbot.storage.repo_users import UsersRepo

logger = get_logger(__name__)

STATS_TTL_SECONDS = 60
SEARCH_TTL_SECONDS = 60


class DirectoryService:
    """Profile reads and writes for one database session.

    Reads of single profiles go through ``user_cache`` when one is given;
    every write drops the affected user's keys. Profile edits also drop the
    cached connection and request lists in ``connection_cache``, since those
    embed the other party's name and title.
    """

    def __init__(
        self,
        session: AsyncSession,
        user_cache: Cache | None = None,
        connection_cache: Cache | None = None,
    ) -> None:
        self.users = UsersRepo(session)
        self.cache = user_cache
        self.connection_cache = connection_cache

    async def user_exists(self, telegram_id: int) -> bool:
        return await self.users.user_exists(telegram_id)

    async def get_profile(self, telegram_id: int) -> UserProfile | None:
        async def load() -> UserProfile | None:
            user = await self.users.get_profile(telegram_id)
            return user.to_user_profile() if user else None

        if self.cache is None:
            return await load()
        return await self.cache.get_or_load(CacheKeys.user(telegram_id), load)

    async def get_by_username(self, username: str) -> UserProfile | None:
        name = username.strip().lstrip("@")
        if not name:
            return None

        async def load() -> UserProfile | None:
            user = await self.users.get_by_username(name)
            return user.to_user_profile() if user else None

        if self.cache is None:
            return await load()
        return await self.cache.get_or_load(CacheKeys.user_by_username(name), load)

    async def resolve(self, target: str) -> UserProfile | None:
        """Find a user by numeric id or ``@username``."""
        target = target.strip()
        if target.isdigit():
            return await self.get_profile(int(target))
        return await self.get_by_username(target)

    async def create_profile(
        self,
        telegram_id: int,
        username: str | None,
        profile: ProfileData,
    ) -> UserProfile:
        user = await self.users.create_profile(telegram_id, username, profile)
        self._invalidate(telegram_id, username)
        if self.cache is not None:
            self.cache.delete(CacheKeys.total_users())
        logger.info(f"Profile created for user {telegram_id}")
        return user.to_user_profile()

    async def update_profile(
        self,
        telegram_id: int,
        profile: ProfileData,
        username: str | None = None,
    ) -> UserProfile | None:
        current = await self.users.get_profile(telegram_id)
        previous_username = current.username if current else None

        user = await self.users.update_profile(telegram_id, profile, username)
        if user is None:
            return None
        self._invalidate(telegram_id, user.username)
        if previous_username and previous_username != user.username:
            self._invalidate(telegram_id, previous_username)
        self._invalidate_connection_views()
        logger.info(f"Profile updated for user {telegram_id}")
        return user.to_user_profile()

    async def update_privacy_settings(
        self,
        telegram_id: int,
        changes: dict[str, bool],
    ) -> UserProfile | None:
        user = await self.users.update_privacy_settings(telegram_id, changes)
        if user is None:
            return None
        self._invalidate(telegram_id, user.username)
        logger.info(f"Privacy settings updated for user {telegram_id}: {changes}")
        return user.to_user_profile()

    async def search(
        self,
        query: str,
        limit: int,
        offset: int = 0,
        exclude_id: int | None = None,
    ) -> list[UserProfile]:
        """Profiles matching ``query``. Pages are cached briefly per searcher."""

        async def load() -> list[UserProfile]:
            users = await self.users.search_profiles(query, limit, offset, exclude_id)
            return [u.to_user_profile() for u in users]

        if self.cache is None:
            return await load()
        key = CacheKeys.search(f"{query.lower()}|{exclude_id}", limit, offset)
        return await self.cache.get_or_load(key, load, SEARCH_TTL_SECONDS)

    async def advanced_search(
        self,
        filters: SearchFilters,
        limit: int,
        offset: int = 0,
        exclude_id: int | None = None,
    ) -> list[UserProfile]:
        users = await self.users.advanced_search(filters, limit, offset, exclude_id)
        return [u.to_user_profile() for u in users]

    async def count_users(self) -> int:
        async def load() -> int:
            return await self.users.count_users()

        if self.cache is None:
            return await load()
        return await self.cache.get_or_load(CacheKeys.total_users(), load, STATS_TTL_SECONDS)

    def _invalidate(self, telegram_id: int, username: str | None) -> None:
        if self.cache is None:
            return
        self.cache.delete(CacheKeys.user(telegram_id))
        if username:
            self.cache.delete(CacheKeys.user_by_username(username))
        # Search pages may embed the old profile or privacy flags
        self.cache.delete_prefix("search:")

    def _invalidate_connection_views(self) -> None:
        if self.connection_cache is None:
            return
        self.connection_cache.delete_prefix("connections:")
        self.connection_cache.delete_prefix("pending:")
