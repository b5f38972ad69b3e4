"""Repository for feedback operations."""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardbot.storage.models import Feedback


class FeedbackRepo:
    """Repository for user feedback."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_feedback(self, user_id: int, username: str | None, text: str) -> Feedback:
        """Store a feedback message.

        Args:
            user_id: Telegram user ID
            username: Telegram username, if any
            text: Validated feedback text

        Returns:
            Created Feedback instance
        """
        feedback = Feedback(
            user_id=user_id,
            username=username,
            text=text,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(feedback)
        await self.session.commit()
        await self.session.refresh(feedback)
        return feedback

    async def count_feedback(self, user_id: int | None = None) -> int:
        stmt = select(func.count()).select_from(Feedback)
        if user_id is not None:
            stmt = stmt.where(Feedback.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_recent(self, limit: int = 20) -> list[Feedback]:
        stmt = select(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
