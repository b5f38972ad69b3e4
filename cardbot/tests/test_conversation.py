"""Tests for conversation sessions and the flow engine."""

import pytest

from cardbot.core.contracts import PrivacySettings, ProfileData, SearchFilters
from cardbot.core.conversation import (
    ConversationManager,
    ConversationStep,
    ProfileDraft,
    SettingsDraft,
)
from cardbot.core.errors import NoActiveConversationError
from cardbot.core.flows import (
    LOST_STATE_ERROR,
    ConversationEngine,
    Flow,
    FlowOutcome,
    parse_setting,
)


@pytest.fixture
def manager(clock):
    return ConversationManager(clock=clock)


@pytest.fixture
def engine(manager):
    return ConversationEngine(manager)


# Conversation manager

def test_start_and_get(manager):
    state = manager.start(1, ConversationStep.NAME)

    assert state.step is ConversationStep.NAME
    assert isinstance(state.data, ProfileDraft)
    assert manager.get_conversation(1) is state
    assert manager.has_active_conversation(1)


def test_start_accepts_step_string(manager):
    state = manager.start(1, "settings")
    assert state.step is ConversationStep.SETTINGS
    assert isinstance(state.data, SettingsDraft)


def test_start_rejects_unknown_step(manager):
    with pytest.raises(ValueError):
        manager.start(1, "not_a_step")


def test_start_replaces_existing(manager):
    manager.start(1, ConversationStep.NAME)
    manager.start(1, ConversationStep.FEEDBACK_INPUT)

    state = manager.get_conversation(1)
    assert state.step is ConversationStep.FEEDBACK_INPUT
    assert state.data is None
    assert len(manager) == 1


def test_get_without_conversation_returns_none(manager):
    assert manager.get_conversation(1) is None
    assert manager.get_conversation_data(1) is None


def test_update_without_conversation_raises(manager):
    with pytest.raises(NoActiveConversationError):
        manager.update(1, ConversationStep.TITLE, name="Alice")


def test_update_merges_draft_and_refreshes_activity(manager, clock):
    manager.start(1, ConversationStep.NAME, ProfileDraft(username="alice"))
    clock.advance(20 * 60)

    state = manager.update(1, ConversationStep.TITLE, name="Alice")
    assert state.step is ConversationStep.TITLE
    assert state.data.name == "Alice"
    assert state.data.username == "alice"
    assert state.last_activity == clock()

    # Still alive 20 minutes later because activity was refreshed
    clock.advance(20 * 60)
    assert manager.get_conversation(1) is not None


def test_conversation_times_out_after_thirty_minutes(manager, clock):
    manager.start(1, ConversationStep.NAME)
    clock.advance(30 * 60)
    assert manager.has_active_conversation(1)

    clock.advance(1)
    assert manager.get_conversation(1) is None
    with pytest.raises(NoActiveConversationError):
        manager.update(1, ConversationStep.TITLE)


def test_update_unknown_field_raises(manager):
    manager.start(1, ConversationStep.NAME)
    with pytest.raises(TypeError):
        manager.update(1, ConversationStep.TITLE, favourite_colour="blue")


def test_end_and_cleanup(manager, clock):
    manager.start(1, ConversationStep.NAME)
    manager.start(2, ConversationStep.NAME)
    assert manager.end(1) is True
    assert manager.end(1) is False

    clock.advance(31 * 60)
    manager.start(3, ConversationStep.FEEDBACK_INPUT)
    assert manager.cleanup_expired() == 1
    assert [s.user_id for s in manager.active_conversations()] == [3]


# Profile flow

def _answer_all(engine, user_id, answers):
    result = None
    for text in answers:
        result = engine.handle(user_id, text)
    return result


def test_profile_flow_happy_path(engine):
    engine.start_profile(1, "alice")
    result = _answer_all(
        engine,
        1,
        [
            "  Alice   Smith ",
            "Engineer",
            "Builds things",
            "@alice-dev",
            "linkedin.com/in/alice",
            "skip",
            "skip",
        ],
    )
    assert result.outcome is FlowOutcome.ADVANCED
    assert result.step is ConversationStep.CONFIRM

    result = engine.handle(1, "YES")
    assert result.outcome is FlowOutcome.COMPLETED
    assert result.finished
    assert result.payload == ProfileData(
        name="Alice Smith",
        title="Engineer",
        description="Builds things",
        github_username="alice-dev",
        linkedin_url="https://linkedin.com/in/alice",
        website_url="",
        world_id="",
    )
    assert engine.manager.get_conversation(1) is None


def test_profile_flow_rejects_invalid_field_and_keeps_step(engine):
    engine.start_profile(1, None)
    result = engine.handle(1, "   ")

    assert result.outcome is FlowOutcome.REJECTED
    assert result.step is ConversationStep.NAME
    assert result.error == "Name cannot be empty"
    assert engine.manager.get_conversation(1).step is ConversationStep.NAME


def test_profile_flow_name_too_long(engine):
    engine.start_profile(1, None)
    result = engine.handle(1, "x" * 51)
    assert result.outcome is FlowOutcome.REJECTED
    assert "50 characters" in result.error


def test_required_fields_cannot_be_skipped(engine):
    engine.start_profile(1, None)
    result = engine.handle(1, "skip")
    # "skip" is just a name here
    assert result.outcome is FlowOutcome.ADVANCED
    assert result.data.name == "skip"


def test_invalid_optional_field(engine):
    engine.start_profile(1, None)
    _answer_all(engine, 1, ["Alice", "Engineer", "Builds things"])

    result = engine.handle(1, "bad name!")
    assert result.outcome is FlowOutcome.REJECTED
    assert result.step is ConversationStep.GITHUB

    result = engine.handle(1, "alice")
    assert result.step is ConversationStep.LINKEDIN
    result = engine.handle(1, "example.com/alice")
    assert result.outcome is FlowOutcome.REJECTED
    assert result.error == "Please enter a valid LinkedIn URL"


def test_confirm_no_cancels(engine):
    engine.start_profile(1, None)
    _answer_all(engine, 1, ["Alice", "Engineer", "Builds", "skip", "skip", "skip", "skip"])

    result = engine.handle(1, "no")
    assert result.outcome is FlowOutcome.CANCELLED
    assert result.payload is None
    assert engine.manager.get_conversation(1) is None


def test_confirm_requires_yes_or_no(engine):
    engine.start_profile(1, None)
    _answer_all(engine, 1, ["Alice", "Engineer", "Builds", "skip", "skip", "skip", "skip"])

    result = engine.handle(1, "maybe")
    assert result.outcome is FlowOutcome.REJECTED
    assert result.step is ConversationStep.CONFIRM


def test_edit_flow_starts_with_confirmation(engine, profile_factory):
    existing = profile_factory()
    state = engine.start_profile(1, "alice", existing=existing)
    assert state.step is ConversationStep.EDIT_CONFIRM

    result = engine.handle(1, "y")
    assert result.step is ConversationStep.NAME
    assert result.data.editing is True
    assert result.data.existing == existing


def test_edit_confirmation_declined(engine, profile_factory):
    engine.start_profile(1, "alice", existing=profile_factory())
    result = engine.handle(1, "n")

    assert result.flow is Flow.PROFILE
    assert result.outcome is FlowOutcome.CANCELLED


@pytest.mark.parametrize("word", ["cancel", "/cancel", " CANCEL "])
def test_cancel_words_end_any_flow(engine, word):
    engine.start_profile(1, None)
    engine.handle(1, "Alice")

    result = engine.handle(1, word)
    assert result.outcome is FlowOutcome.CANCELLED
    assert result.flow is Flow.PROFILE
    assert engine.manager.get_conversation(1) is None


def test_handle_without_conversation(engine):
    assert engine.handle(1, "hello") is None
    assert engine.cancel(1) is None


# Settings flow

def test_parse_setting():
    assert parse_setting("allow_search off") == ("allow_search", False)
    assert parse_setting("Show_GitHub ON") == ("show_github", True)
    assert parse_setting("profile_visible true") == ("profile_visible", True)
    assert parse_setting("allow_search maybe") is None
    assert parse_setting("unknown_flag on") is None
    assert parse_setting("allow_search") is None


def test_settings_flow_stages_and_saves(engine):
    engine.start_settings(1, PrivacySettings())

    result = engine.handle(1, "allow_search off")
    assert result.outcome is FlowOutcome.ADVANCED
    assert result.payload == ("allow_search", False)

    engine.handle(1, "show_github off")
    engine.handle(1, "allow_search on")
    result = engine.handle(1, "done")

    assert result.outcome is FlowOutcome.COMPLETED
    assert result.payload == {"allow_search": True, "show_github": False}
    assert result.data.preview().show_github is False


def test_settings_flow_rejects_garbage(engine):
    engine.start_settings(1, PrivacySettings())
    result = engine.handle(1, "please hide me")
    assert result.outcome is FlowOutcome.REJECTED
    assert result.step is ConversationStep.SETTINGS


# Feedback and advanced search

def test_feedback_flow(engine):
    engine.start_feedback(1)
    assert engine.handle(1, "").outcome is FlowOutcome.REJECTED

    result = engine.handle(1, "  Love it  ")
    assert result.outcome is FlowOutcome.COMPLETED
    assert result.payload == "Love it"


def test_feedback_too_long(engine):
    engine.start_feedback(1)
    result = engine.handle(1, "x" * 1001)
    assert result.outcome is FlowOutcome.REJECTED


def test_advanced_search_flow(engine):
    engine.start_advanced_search(1)

    result = engine.handle(1, "just some words")
    assert result.outcome is FlowOutcome.REJECTED

    result = engine.handle(1, "industry:Technology skills:Python")
    assert result.outcome is FlowOutcome.COMPLETED
    assert isinstance(result.payload, SearchFilters)
    assert result.payload.industry == "Technology"
    assert result.payload.skills == ["Python"]


@pytest.mark.parametrize(
    ("step", "data", "text", "flow"),
    [
        (ConversationStep.CONFIRM, SettingsDraft(), "yes", Flow.PROFILE),
        (ConversationStep.SETTINGS, ProfileDraft(), "done", Flow.SETTINGS),
    ],
)
def test_mismatched_draft_ends_conversation(manager, engine, step, data, text, flow):
    manager.start(1, step, data)

    result = engine.handle(1, text)
    assert result.flow is flow
    assert result.outcome is FlowOutcome.CANCELLED
    assert result.error == LOST_STATE_ERROR
    assert not manager.has_active_conversation(1)
