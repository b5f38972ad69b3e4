"""Per-user conversation sessions with inactivity timeout."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from cardbot.core.contracts import PrivacySettings, ProfileData
from cardbot.core.errors import NoActiveConversationError
from cardbot.core.ttl_store import Clock, TTLStore
from cardbot.logging import get_logger

logger = get_logger(__name__)

TIMEOUT_SECONDS = 30 * 60


class ConversationStep(str, Enum):
    """Closed set of conversation states. Absence of a session is the idle state."""

    EDIT_CONFIRM = "edit_confirm"
    NAME = "name"
    TITLE = "title"
    DESCRIPTION = "description"
    GITHUB = "github"
    LINKEDIN = "linkedin"
    WEBSITE = "website"
    WORLD_ID = "world_id"
    CONFIRM = "confirm"
    SETTINGS = "settings"
    FEEDBACK_INPUT = "feedback_input"
    ADVANCED_SEARCH_SETUP = "advanced_search_setup"


PROFILE_STEPS = frozenset(
    {
        ConversationStep.EDIT_CONFIRM,
        ConversationStep.NAME,
        ConversationStep.TITLE,
        ConversationStep.DESCRIPTION,
        ConversationStep.GITHUB,
        ConversationStep.LINKEDIN,
        ConversationStep.WEBSITE,
        ConversationStep.WORLD_ID,
        ConversationStep.CONFIRM,
    }
)


@dataclass
class ProfileDraft:
    """Partially filled profile, one optional slot per attribute.

    Fields are validated one at a time as the user answers; the draft only
    becomes a :class:`ProfileData` through :meth:`as_mapping` + validation at
    the confirm step.
    """

    username: str | None = None
    editing: bool = False
    existing: ProfileData | None = None
    name: str | None = None
    title: str | None = None
    description: str | None = None
    github_username: str | None = None
    linkedin_url: str | None = None
    website_url: str | None = None
    world_id: str | None = None

    def as_mapping(self) -> dict[str, str]:
        """Profile attributes with unanswered optional fields as empty strings."""
        return {
            "name": self.name or "",
            "title": self.title or "",
            "description": self.description or "",
            "github_username": self.github_username or "",
            "linkedin_url": self.linkedin_url or "",
            "website_url": self.website_url or "",
            "world_id": self.world_id or "",
        }


@dataclass
class SettingsDraft:
    """Privacy flags as loaded plus the changes staged so far."""

    current: PrivacySettings = field(default_factory=PrivacySettings)
    changes: dict[str, bool] = field(default_factory=dict)

    def preview(self) -> PrivacySettings:
        return self.current.with_changes(self.changes)


ConversationData = Union[ProfileDraft, SettingsDraft, None]


@dataclass
class ConversationState:
    """One user's active conversation."""

    user_id: int
    step: ConversationStep
    data: ConversationData
    created_at: float
    last_activity: float


class ConversationManager:
    """Holds at most one :class:`ConversationState` per user.

    A state whose last activity is older than the timeout is treated as absent:
    it is dropped on read and by :meth:`cleanup_expired`.
    """

    def __init__(self, timeout_seconds: float = TIMEOUT_SECONDS, clock: Clock = time.time) -> None:
        self.timeout_seconds = timeout_seconds
        self._store: TTLStore[int, ConversationState] = TTLStore(
            default_ttl=timeout_seconds,
            clock=clock,
            name="conversations",
        )

    def start(
        self,
        user_id: int,
        step: ConversationStep | str,
        data: ConversationData = None,
    ) -> ConversationState:
        """Begin a conversation, replacing any existing one for the user."""
        step = ConversationStep(step)
        now = self._store.now()
        state = ConversationState(
            user_id=user_id,
            step=step,
            data=data if data is not None else _default_data(step),
            created_at=now,
            last_activity=now,
        )
        self._store.set(user_id, state)
        logger.info(f"Conversation started for user {user_id} at step: {step.value}")
        return state

    def get_conversation(self, user_id: int) -> ConversationState | None:
        """Return the user's live conversation, or None if absent or timed out."""
        return self._store.get(user_id)

    def update(
        self,
        user_id: int,
        step: ConversationStep | str,
        **changes: Any,
    ) -> ConversationState:
        """Move to ``step``, merge ``changes`` into the draft and refresh activity.

        Raises:
            NoActiveConversationError: If the user has no live conversation
            TypeError: If ``changes`` names a field the draft does not have
        """
        step = ConversationStep(step)
        with self._store.locked():
            state = self._store.get(user_id)
            if state is None:
                raise NoActiveConversationError(user_id)

            if changes:
                if state.data is None:
                    raise TypeError(f"Conversation at {state.step.value} carries no data")
                state.data = replace(state.data, **changes)

            state.step = step
            state.last_activity = self._store.now()
            # Re-setting restamps the entry, which is what keeps it alive
            self._store.set(user_id, state)

        logger.info(f"Conversation updated for user {user_id} to step: {step.value}")
        return state

    def end(self, user_id: int) -> bool:
        """End the user's conversation. Returns whether one existed."""
        removed = self._store.delete(user_id)
        if removed:
            logger.info(f"Conversation ended for user {user_id}")
        return removed

    def has_active_conversation(self, user_id: int) -> bool:
        return self.get_conversation(user_id) is not None

    def get_conversation_data(self, user_id: int) -> ConversationData:
        state = self.get_conversation(user_id)
        return state.data if state else None

    def cleanup_expired(self) -> int:
        """Drop timed-out conversations. Returns how many were removed."""
        removed = self._store.sweep()
        if removed:
            logger.info(f"Expired conversations cleaned up: {removed}")
        return removed

    def active_conversations(self) -> list[ConversationState]:
        """Live conversations, for monitoring."""
        return self._store.values()

    def __len__(self) -> int:
        return len(self._store)


def _default_data(step: ConversationStep) -> ConversationData:
    if step in PROFILE_STEPS:
        return ProfileDraft()
    if step is ConversationStep.SETTINGS:
        return SettingsDraft()
    return None
