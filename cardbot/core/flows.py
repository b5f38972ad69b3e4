"""Conversation flows driven by inbound text.

The engine is transport-agnostic: it advances the user's
:class:`ConversationState` and returns a :class:`FlowResult` describing what
happened. Rendering prompts and persisting completed payloads is left to the
bot handlers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, NamedTuple

from cardbot.core.contracts import PRIVACY_FLAGS, PrivacySettings, ProfileData
from cardbot.core.conversation import (
    PROFILE_STEPS,
    ConversationData,
    ConversationManager,
    ConversationState,
    ConversationStep,
    ProfileDraft,
    SettingsDraft,
)
from cardbot.core.errors import ValidationError
from cardbot.core.search import parse_search_filters
from cardbot.core.validators import (
    validate_description,
    validate_feedback,
    validate_github,
    validate_linkedin,
    validate_name,
    validate_profile,
    validate_title,
    validate_website,
    validate_world_id,
)
from cardbot.logging import get_logger

logger = get_logger(__name__)

CANCEL_WORDS = frozenset({"cancel", "/cancel"})
YES_WORDS = frozenset({"yes", "y"})
NO_WORDS = frozenset({"no", "n"})
SKIP_WORD = "skip"
DONE_WORD = "done"
LOST_STATE_ERROR = "Your answers were lost. Please start again."

_SWITCH_VALUES = {"on": True, "off": False, "true": True, "false": False}


class Flow(str, Enum):
    PROFILE = "profile"
    SETTINGS = "settings"
    FEEDBACK = "feedback"
    ADVANCED_SEARCH = "advanced_search"


class FlowOutcome(str, Enum):
    """What one input did to the conversation."""

    ADVANCED = "advanced"  # moved on (or looped) and the conversation continues
    REJECTED = "rejected"  # input refused, step unchanged
    COMPLETED = "completed"  # conversation ended with a payload to act on
    CANCELLED = "cancelled"  # conversation ended, nothing to act on


@dataclass(frozen=True)
class FlowResult:
    """Result of feeding one message to the engine.

    ``step`` is the step now awaiting input, None once the conversation ended.
    ``payload`` is set on completion: :class:`ProfileData` for the profile
    flow, a ``dict`` of staged privacy changes for settings, the feedback text,
    or :class:`SearchFilters` for advanced search.
    """

    flow: Flow
    outcome: FlowOutcome
    step: ConversationStep | None = None
    error: str | None = None
    payload: Any = None
    data: ConversationData = None

    @property
    def finished(self) -> bool:
        return self.outcome in (FlowOutcome.COMPLETED, FlowOutcome.CANCELLED)


class FieldStep(NamedTuple):
    attr: str
    validate: Callable[[str], str]
    next_step: ConversationStep
    optional: bool


PROFILE_FIELDS: dict[ConversationStep, FieldStep] = {
    ConversationStep.NAME: FieldStep("name", validate_name, ConversationStep.TITLE, False),
    ConversationStep.TITLE: FieldStep(
        "title", validate_title, ConversationStep.DESCRIPTION, False
    ),
    ConversationStep.DESCRIPTION: FieldStep(
        "description", validate_description, ConversationStep.GITHUB, False
    ),
    ConversationStep.GITHUB: FieldStep(
        "github_username", validate_github, ConversationStep.LINKEDIN, True
    ),
    ConversationStep.LINKEDIN: FieldStep(
        "linkedin_url", validate_linkedin, ConversationStep.WEBSITE, True
    ),
    ConversationStep.WEBSITE: FieldStep(
        "website_url", validate_website, ConversationStep.WORLD_ID, True
    ),
    ConversationStep.WORLD_ID: FieldStep(
        "world_id", validate_world_id, ConversationStep.CONFIRM, True
    ),
}


def flow_for(step: ConversationStep) -> Flow:
    if step in PROFILE_STEPS:
        return Flow.PROFILE
    if step is ConversationStep.SETTINGS:
        return Flow.SETTINGS
    if step is ConversationStep.FEEDBACK_INPUT:
        return Flow.FEEDBACK
    return Flow.ADVANCED_SEARCH


def parse_setting(text: str) -> tuple[str, bool] | None:
    """Parse ``<flag> on|off`` into ``(flag, value)``, or None if malformed."""
    parts = text.strip().lower().split()
    if len(parts) != 2:
        return None
    flag, raw = parts
    if flag not in PRIVACY_FLAGS or raw not in _SWITCH_VALUES:
        return None
    return flag, _SWITCH_VALUES[raw]


class ConversationEngine:
    """Runs every conversation flow on top of a :class:`ConversationManager`."""

    def __init__(self, manager: ConversationManager) -> None:
        self.manager = manager
        self._handlers: dict[
            ConversationStep, Callable[[ConversationState, str], FlowResult]
        ] = {
            ConversationStep.EDIT_CONFIRM: self._handle_edit_confirm,
            ConversationStep.CONFIRM: self._handle_confirm,
            ConversationStep.SETTINGS: self._handle_settings,
            ConversationStep.FEEDBACK_INPUT: self._handle_feedback,
            ConversationStep.ADVANCED_SEARCH_SETUP: self._handle_advanced_search,
        }
        for step in PROFILE_FIELDS:
            self._handlers[step] = self._handle_field

    # Starting flows

    def start_profile(
        self,
        user_id: int,
        username: str | None,
        existing: ProfileData | None = None,
    ) -> ConversationState:
        """Start profile creation, or ask for edit confirmation if a profile exists."""
        if existing is not None:
            draft = ProfileDraft(username=username, existing=existing)
            return self.manager.start(user_id, ConversationStep.EDIT_CONFIRM, draft)
        return self.manager.start(user_id, ConversationStep.NAME, ProfileDraft(username=username))

    def start_settings(self, user_id: int, current: PrivacySettings) -> ConversationState:
        return self.manager.start(
            user_id, ConversationStep.SETTINGS, SettingsDraft(current=current)
        )

    def start_feedback(self, user_id: int) -> ConversationState:
        return self.manager.start(user_id, ConversationStep.FEEDBACK_INPUT)

    def start_advanced_search(self, user_id: int) -> ConversationState:
        return self.manager.start(user_id, ConversationStep.ADVANCED_SEARCH_SETUP)

    # Driving flows

    def handle(self, user_id: int, text: str) -> FlowResult | None:
        """Feed one message to the user's conversation.

        Returns:
            The step result, or None when the user has no live conversation
        """
        state = self.manager.get_conversation(user_id)
        if state is None:
            return None

        if text.strip().lower() in CANCEL_WORDS:
            return self.cancel(user_id) or FlowResult(
                flow=flow_for(state.step), outcome=FlowOutcome.CANCELLED
            )

        return self._handlers[state.step](state, text)

    def cancel(self, user_id: int) -> FlowResult | None:
        """End the user's conversation, if any, without acting on it."""
        state = self.manager.get_conversation(user_id)
        if state is None:
            return None
        self.manager.end(user_id)
        logger.info(f"Conversation cancelled by user {user_id} at step: {state.step.value}")
        return FlowResult(
            flow=flow_for(state.step),
            outcome=FlowOutcome.CANCELLED,
            data=state.data,
        )

    # Profile flow

    def _handle_edit_confirm(self, state: ConversationState, text: str) -> FlowResult:
        answer = text.strip().lower()
        if answer in YES_WORDS:
            updated = self.manager.update(state.user_id, ConversationStep.NAME, editing=True)
            return self._advanced(Flow.PROFILE, updated)
        if answer in NO_WORDS:
            self.manager.end(state.user_id)
            return FlowResult(Flow.PROFILE, FlowOutcome.CANCELLED, data=state.data)
        return self._rejected(
            Flow.PROFILE, state, 'Please send "yes" to edit your profile or "no" to cancel.'
        )

    def _handle_field(self, state: ConversationState, text: str) -> FlowResult:
        field_step = PROFILE_FIELDS[state.step]

        if field_step.optional and text.strip().lower() == SKIP_WORD:
            value = ""
        else:
            try:
                value = field_step.validate(text)
            except ValidationError as e:
                return self._rejected(Flow.PROFILE, state, e.message)

        updated = self.manager.update(
            state.user_id, field_step.next_step, **{field_step.attr: value}
        )
        return self._advanced(Flow.PROFILE, updated)

    def _handle_confirm(self, state: ConversationState, text: str) -> FlowResult:
        answer = text.strip().lower()
        if answer in NO_WORDS:
            self.manager.end(state.user_id)
            return FlowResult(Flow.PROFILE, FlowOutcome.CANCELLED, data=state.data)
        if answer not in YES_WORDS:
            return self._rejected(
                Flow.PROFILE, state, 'Please send "yes" to save your profile or "no" to start over.'
            )

        draft = state.data
        if not isinstance(draft, ProfileDraft):
            return self._abandoned(Flow.PROFILE, state)
        profile, errors = validate_profile(draft.as_mapping())
        self.manager.end(state.user_id)

        if profile is None:
            logger.warning(f"Profile draft for user {state.user_id} failed final validation: {errors}")
            return FlowResult(
                Flow.PROFILE, FlowOutcome.CANCELLED, error="; ".join(errors), data=draft
            )

        return FlowResult(Flow.PROFILE, FlowOutcome.COMPLETED, payload=profile, data=draft)

    # Settings flow

    def _handle_settings(self, state: ConversationState, text: str) -> FlowResult:
        draft = state.data
        if not isinstance(draft, SettingsDraft):
            return self._abandoned(Flow.SETTINGS, state)

        if text.strip().lower() == DONE_WORD:
            self.manager.end(state.user_id)
            return FlowResult(
                Flow.SETTINGS, FlowOutcome.COMPLETED, payload=dict(draft.changes), data=draft
            )

        parsed = parse_setting(text)
        if parsed is None:
            return self._rejected(
                Flow.SETTINGS,
                state,
                'Send "<setting> on" or "<setting> off", "done" to save, or "cancel".',
            )

        flag, value = parsed
        updated = self.manager.update(
            state.user_id,
            ConversationStep.SETTINGS,
            changes={**draft.changes, flag: value},
        )
        return FlowResult(
            Flow.SETTINGS,
            FlowOutcome.ADVANCED,
            step=ConversationStep.SETTINGS,
            payload=(flag, value),
            data=updated.data,
        )

    # Single-input flows

    def _handle_feedback(self, state: ConversationState, text: str) -> FlowResult:
        try:
            feedback = validate_feedback(text)
        except ValidationError as e:
            return self._rejected(Flow.FEEDBACK, state, e.message)

        self.manager.end(state.user_id)
        return FlowResult(Flow.FEEDBACK, FlowOutcome.COMPLETED, payload=feedback)

    def _handle_advanced_search(self, state: ConversationState, text: str) -> FlowResult:
        filters = parse_search_filters(text)
        if filters.is_empty():
            return self._rejected(
                Flow.ADVANCED_SEARCH,
                state,
                "No filters recognised. Try e.g. industry:Technology skills:Python",
            )

        self.manager.end(state.user_id)
        return FlowResult(Flow.ADVANCED_SEARCH, FlowOutcome.COMPLETED, payload=filters)

    @staticmethod
    def _advanced(flow: Flow, state: ConversationState) -> FlowResult:
        return FlowResult(flow, FlowOutcome.ADVANCED, step=state.step, data=state.data)

    def _abandoned(self, flow: Flow, state: ConversationState) -> FlowResult:
        """End a conversation whose data does not belong to its step."""
        logger.warning(
            f"Conversation of user {state.user_id} at {state.step.value} holds "
            f"{type(state.data).__name__}; ending it"
        )
        self.manager.end(state.user_id)
        return FlowResult(flow, FlowOutcome.CANCELLED, error=LOST_STATE_ERROR)

    @staticmethod
    def _rejected(flow: Flow, state: ConversationState, error: str) -> FlowResult:
        return FlowResult(flow, FlowOutcome.REJECTED, step=state.step, error=error, data=state.data)
