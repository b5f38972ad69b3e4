"""Routes every text message of a user with an active conversation into the flow engine.

This router is included before all others, so while a conversation is live
it receives the user's text (commands included) instead of command dispatch.
"""

from html import escape

from aiogram import F, Router
from aiogram.types import Message

from cardbot.bot.handlers_search import send_search_page
from cardbot.bot.messages import (
    cancelled,
    feedback_thanks,
    field_error,
    need_profile,
    profile_save_failed,
    profile_saved,
    profile_summary,
    setting_staged,
    settings_saved,
    step_prompt,
)
from cardbot.bot.sender import reply
from cardbot.core.contracts import ProfileData
from cardbot.core.conversation import ConversationStep, ProfileDraft
from cardbot.core.flows import PROFILE_FIELDS, Flow, FlowOutcome, FlowResult
from cardbot.logging import get_logger
from cardbot.services import Services
from cardbot.storage.repo_feedback import FeedbackRepo

router = Router(name="conversation")
logger = get_logger(__name__)


def _has_active_conversation(message: Message, services: Services) -> bool:
    """Filter: only pass messages from users with a live conversation."""
    if not message.from_user:
        return False
    return services.conversations.has_active_conversation(message.from_user.id)


@router.message(F.text, _has_active_conversation)
async def handle_conversation_input(message: Message, services: Services) -> None:
    """Feed the message to the user's conversation and reply with the outcome."""
    user = message.from_user
    if not user or message.text is None:
        return

    result = services.engine.handle(user.id, message.text)
    if result is None:
        # Timed out between the filter and here
        return

    logger.info(
        f"User {user.id} conversation {result.flow.value}: {result.outcome.value}"
        + (f" -> {result.step.value}" if result.step else "")
    )

    if result.outcome is FlowOutcome.CANCELLED:
        text = cancelled(result.flow)
        if result.error:
            text = f"❌ {escape(result.error)}\n\n{text}"
        await reply(message, text)
        return

    if result.outcome is FlowOutcome.REJECTED:
        await _reply_rejected(message, result)
        return

    if result.flow is Flow.PROFILE:
        await _profile_result(message, services, result)
    elif result.flow is Flow.SETTINGS:
        await _settings_result(message, services, result)
    elif result.flow is Flow.FEEDBACK:
        await _feedback_result(message, services, result)
    else:
        await _advanced_search_result(message, services, result)


async def _reply_rejected(message: Message, result: FlowResult) -> None:
    error = result.error or ""
    if result.flow is Flow.PROFILE and result.step in PROFILE_FIELDS:
        await reply(message, field_error(result.step, error))
    else:
        await reply(message, escape(error))


async def _profile_result(message: Message, services: Services, result: FlowResult) -> None:
    draft = result.data
    if not isinstance(draft, ProfileDraft):
        return

    if result.outcome is FlowOutcome.ADVANCED:
        if result.step is ConversationStep.CONFIRM:
            await reply(message, profile_summary(ProfileData(**draft.as_mapping()), draft.username))
        elif result.step is not None:
            await reply(message, step_prompt(result.step))
        return

    profile: ProfileData = result.payload
    user_id = message.from_user.id
    async with services.session_factory() as session:
        directory = services.directory(session)
        existing = await directory.get_profile(user_id)
        if existing is not None:
            saved = await directory.update_profile(user_id, profile, username=draft.username)
        else:
            saved = await directory.create_profile(user_id, draft.username, profile)

    if saved is None:
        logger.warning(f"Profile of user {user_id} vanished before it could be saved")
        await reply(message, profile_save_failed())
        return
    await reply(message, profile_saved(created=existing is None))


async def _settings_result(message: Message, services: Services, result: FlowResult) -> None:
    if result.outcome is FlowOutcome.ADVANCED:
        flag, value = result.payload
        await reply(message, setting_staged(flag, value))
        return

    changes: dict[str, bool] = result.payload
    if not changes:
        await reply(message, cancelled(Flow.SETTINGS))
        return

    async with services.session_factory() as session:
        updated = await services.directory(session).update_privacy_settings(
            message.from_user.id, changes
        )

    if updated is None:
        await reply(message, need_profile())
        return
    await reply(message, settings_saved(updated.privacy))


async def _feedback_result(message: Message, services: Services, result: FlowResult) -> None:
    user = message.from_user
    async with services.session_factory() as session:
        await FeedbackRepo(session).add_feedback(user.id, user.username, result.payload)

    logger.info(f"Feedback received from user {user.id}")
    await reply(message, feedback_thanks())


async def _advanced_search_result(
    message: Message,
    services: Services,
    result: FlowResult,
) -> None:
    user_id = message.from_user.id
    state = services.search_sessions.begin_filters(user_id, result.payload)
    await send_search_page(message.bot, message.chat.id, services, user_id, state)
