"""Domain contracts and type definitions."""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any


class ConnectionStatus(str, Enum):
    """Connection request statuses. ACCEPTED and DECLINED are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ExperienceLevel(str, Enum):
    """Experience filter values for advanced search."""

    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    EXECUTIVE = "executive"


class Availability(str, Enum):
    """Availability filter values for advanced search."""

    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    FREELANCE = "freelance"


@dataclass
class PrivacySettings:
    """Per-user visibility flags. Every flag defaults to on."""

    profile_visible: bool = True
    show_github: bool = True
    show_linkedin: bool = True
    show_website: bool = True
    show_world_id: bool = True
    allow_search: bool = True
    allow_connections: bool = True

    def to_dict(self) -> dict[str, bool]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PrivacySettings":
        """Create from dictionary, ignoring unknown keys."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in data.items() if k in known})

    def with_changes(self, changes: dict[str, bool]) -> "PrivacySettings":
        """Return a copy with the given flags replaced."""
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in changes.items() if k in known})


PRIVACY_FLAGS: tuple[str, ...] = tuple(f.name for f in fields(PrivacySettings))


@dataclass(frozen=True)
class ProfileData:
    """Finalized profile payload produced by the profile conversation."""

    name: str
    title: str
    description: str
    github_username: str = ""
    linkedin_url: str = ""
    website_url: str = ""
    world_id: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ProfileSummary:
    """Public summary of a user shown in request and connection lists."""

    telegram_id: int
    username: str | None
    name: str
    title: str


@dataclass(frozen=True)
class ConnectionView:
    """A connection as seen from one participant.

    ``other`` is always the party that is not the viewing user, regardless of
    who originally sent the request.
    """

    id: int
    other: ProfileSummary
    status: ConnectionStatus
    outgoing: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class SearchFilters:
    """Advanced search filters."""

    industry: str | None = None
    skills: list[str] = field(default_factory=list)
    location: str | None = None
    experience: ExperienceLevel | None = None
    availability: Availability | None = None

    def is_empty(self) -> bool:
        """True when no filter was recognised."""
        return not (
            self.industry or self.skills or self.location or self.experience or self.availability
        )

    def describe(self) -> list[str]:
        """Human-readable list of active filters."""
        active = []
        if self.industry:
            active.append(f"Industry: {self.industry}")
        if self.skills:
            active.append(f"Skills: {', '.join(self.skills)}")
        if self.location:
            active.append(f"Location: {self.location}")
        if self.experience:
            active.append(f"Experience: {self.experience.value}")
        if self.availability:
            active.append(f"Availability: {self.availability.value}")
        return active

    def terms(self) -> list[str]:
        """Free-text terms matched against profile title and description."""
        result: list[str] = []
        if self.industry:
            result.append(self.industry)
        result.extend(self.skills)
        if self.location:
            result.append(self.location)
        if self.experience:
            result.append(self.experience.value)
        if self.availability:
            result.append(self.availability.value)
        return result


@dataclass(frozen=True)
class UserProfile:
    """Detached snapshot of a stored profile, safe to cache and share."""

    telegram_id: int
    username: str | None
    profile: ProfileData
    privacy: PrivacySettings
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def summary(self) -> ProfileSummary:
        return ProfileSummary(
            telegram_id=self.telegram_id,
            username=self.username,
            name=self.profile.name,
            title=self.profile.title,
        )
