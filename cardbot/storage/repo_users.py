"""Repository for user profile operations."""

from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardbot.core.contracts import PrivacySettings, ProfileData, SearchFilters
from cardbot.storage.models import User


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _matches(term: str):
    pattern = _like_pattern(term)
    return or_(
        User.name.ilike(pattern, escape="\\"),
        User.title.ilike(pattern, escape="\\"),
        User.description.ilike(pattern, escape="\\"),
    )


class UsersRepo:
    """Repository for profile CRUD and directory search."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def user_exists(self, telegram_id: int) -> bool:
        stmt = select(User.telegram_id).where(User.telegram_id == telegram_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_profile(self, telegram_id: int) -> User | None:
        """Get an active user's profile.

        Args:
            telegram_id: Telegram user ID

        Returns:
            User instance or None
        """
        stmt = select(User).where(User.telegram_id == telegram_id, User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        """Get an active user by Telegram username (case-insensitive, ``@`` optional)."""
        name = username.strip().lstrip("@").lower()
        if not name:
            return None
        stmt = select(User).where(func.lower(User.username) == name, User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_many(self, telegram_ids: list[int]) -> list[User]:
        if not telegram_ids:
            return []
        stmt = (
            select(User)
            .where(User.telegram_id.in_(telegram_ids), User.is_active.is_(True))
            .order_by(User.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_profile(
        self,
        telegram_id: int,
        username: str | None,
        profile: ProfileData,
    ) -> User:
        """Create a profile with default privacy settings.

        A previously deactivated row for the same id is reactivated and
        overwritten.
        """
        now = datetime.now(timezone.utc)
        user = await self.session.get(User, telegram_id)
        if user is None:
            user = User(telegram_id=telegram_id, created_at=now)
            self.session.add(user)

        user.username = username
        user.is_active = True
        user.privacy_settings = PrivacySettings().to_dict()
        user.updated_at = now
        self._apply_profile(user, profile)

        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_profile(
        self,
        telegram_id: int,
        profile: ProfileData,
        username: str | None = None,
    ) -> User | None:
        """Replace the profile fields of an existing user. Returns None if absent."""
        user = await self.get_profile(telegram_id)
        if user is None:
            return None

        self._apply_profile(user, profile)
        if username is not None:
            user.username = username
        user.updated_at = datetime.now(timezone.utc)

        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_privacy_settings(
        self,
        telegram_id: int,
        changes: dict[str, bool],
    ) -> User | None:
        """Merge ``changes`` into the stored privacy flags. Returns None if absent."""
        user = await self.get_profile(telegram_id)
        if user is None:
            return None

        # Assign a new dict; in-place mutation of a JSON column is not tracked
        user.privacy_settings = user.privacy.with_changes(changes).to_dict()
        user.updated_at = datetime.now(timezone.utc)

        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def search_profiles(
        self,
        query: str,
        limit: int = 10,
        offset: int = 0,
        exclude_id: int | None = None,
    ) -> list[User]:
        """Case-insensitive substring search over name, title and description.

        Only active users who allow search are returned.
        """
        stmt = self._searchable(exclude_id).where(_matches(query))
        stmt = stmt.order_by(User.updated_at.desc(), User.telegram_id).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def advanced_search(
        self,
        filters: SearchFilters,
        limit: int = 10,
        offset: int = 0,
        exclude_id: int | None = None,
    ) -> list[User]:
        """Search where every filter term appears in the profile text."""
        stmt = self._searchable(exclude_id)
        terms = filters.terms()
        if terms:
            stmt = stmt.where(and_(*(_matches(term) for term in terms)))
        stmt = stmt.order_by(User.updated_at.desc(), User.telegram_id).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def deactivate_user(self, telegram_id: int) -> bool:
        stmt = (
            update(User)
            .where(User.telegram_id == telegram_id, User.is_active.is_(True))
            .values(is_active=False, updated_at=datetime.now(timezone.utc))
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def count_users(self) -> int:
        stmt = select(func.count()).select_from(User).where(User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    @staticmethod
    def _searchable(exclude_id: int | None):
        stmt = select(User).where(
            User.is_active.is_(True),
            User.privacy_settings["allow_search"].as_boolean().is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(User.telegram_id != exclude_id)
        return stmt

    @staticmethod
    def _apply_profile(user: User, profile: ProfileData) -> None:
        user.name = profile.name
        user.title = profile.title
        user.description = profile.description
        user.github_username = profile.github_username or None
        user.linkedin_url = profile.linkedin_url or None
        user.website_url = profile.website_url or None
        user.world_id = profile.world_id or None
