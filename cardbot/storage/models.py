"""SQLAlchemy ORM models for the business card directory."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from cardbot.core.contracts import PrivacySettings, ProfileData, ProfileSummary, UserProfile
from cardbot.storage.db import Base


def pair_key(a: int, b: int) -> str:
    """Order-independent key for the unordered pair ``{a, b}``."""
    low, high = sorted((a, b))
    return f"{low}:{high}"


class User(Base):
    """Professional profile keyed by Telegram user id."""

    __tablename__ = "users"

    telegram_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    username: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    github_username: Mapped[Optional[str]] = mapped_column(String(39), nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    world_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    privacy_settings: Mapped[dict[str, Any]] = mapped_column(
        "privacy_json", JSON, nullable=False, default=lambda: PrivacySettings().to_dict()
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_users_username", "username"),)

    @property
    def privacy(self) -> PrivacySettings:
        return PrivacySettings.from_dict(self.privacy_settings)

    def to_profile(self) -> ProfileData:
        return ProfileData(
            name=self.name,
            title=self.title,
            description=self.description,
            github_username=self.github_username or "",
            linkedin_url=self.linkedin_url or "",
            website_url=self.website_url or "",
            world_id=self.world_id or "",
        )

    def to_user_profile(self) -> UserProfile:
        return UserProfile(
            telegram_id=self.telegram_id,
            username=self.username,
            profile=self.to_profile(),
            privacy=self.privacy,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_summary(self) -> ProfileSummary:
        return ProfileSummary(
            telegram_id=self.telegram_id,
            username=self.username,
            name=self.name,
            title=self.title,
        )


class Connection(Base):
    """Directed connection request between two users.

    ``pair_key`` is unique, so at most one row exists per unordered pair
    whatever its status.
    """

    __tablename__ = "connections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.telegram_id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.telegram_id", ondelete="CASCADE"), nullable=False
    )
    pair_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')",
            name="ck_connections_status",
        ),
        CheckConstraint("requester_id != receiver_id", name="ck_connections_not_self"),
        Index("ix_connections_requester_status", "requester_id", "status"),
        Index("ix_connections_receiver_status", "receiver_id", "status"),
    )


class Feedback(Base):
    """Free-text feedback submitted through the bot."""

    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_feedback_user_created", "user_id", "created_at"),)
