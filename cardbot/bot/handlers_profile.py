"""Handlers for profile commands and the commands that open a conversation."""

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from cardbot.bot.keyboards import kb_connect
from cardbot.bot.messages import (
    edit_confirm_prompt,
    feedback_prompt,
    feedback_thanks,
    my_profile,
    need_profile,
    no_profile_yet,
    nothing_to_cancel,
    profile_intro,
    profile_private,
    settings_prompt,
    user_not_found,
    view_usage,
    viewed_profile,
)
from cardbot.bot.sender import reply
from cardbot.core.contracts import ConnectionStatus
from cardbot.core.errors import ValidationError
from cardbot.core.validators import validate_feedback
from cardbot.logging import get_logger
from cardbot.services import Services
from cardbot.storage.repo_feedback import FeedbackRepo

router = Router(name="profile")
logger = get_logger(__name__)


@router.message(Command("profile"))
async def handle_profile(message: Message, services: Services) -> None:
    """Start profile creation, or offer to edit the existing profile."""
    user = message.from_user
    if not user:
        return

    async with services.session_factory() as session:
        existing = await services.directory(session).get_profile(user.id)

    if existing is None:
        services.engine.start_profile(user.id, user.username)
        await reply(message, profile_intro())
    else:
        services.engine.start_profile(user.id, user.username, existing=existing.profile)
        await reply(message, edit_confirm_prompt(existing.profile, existing.username))

    logger.info(f"Profile command executed for user {user.id} ({user.username})")


@router.message(Command("myprofile"))
async def handle_my_profile(message: Message, services: Services) -> None:
    """Show the user's own profile with connection counters."""
    user = message.from_user
    if not user:
        return

    async with services.session_factory() as session:
        profile = await services.directory(session).get_profile(user.id)
        if profile is None:
            await reply(message, no_profile_yet())
            return
        connections = services.connections(session)
        connected = await connections.get_connections_count(user.id)
        pending = await connections.get_incoming_requests_count(user.id)

    await reply(message, my_profile(profile, connected, pending))


@router.message(Command("view"))
async def handle_view(message: Message, command: CommandObject, services: Services) -> None:
    """Show another user's profile, honouring their privacy flags."""
    user = message.from_user
    if not user:
        return

    target_arg = (command.args or "").strip()
    if not target_arg:
        await reply(message, view_usage())
        return

    async with services.session_factory() as session:
        target = await services.directory(session).resolve(target_arg)
        if target is None:
            await reply(message, user_not_found())
            return

        if target.telegram_id != user.id and not target.privacy.profile_visible:
            await reply(message, profile_private())
            return

        connections = services.connections(session)
        mutual = await connections.get_mutual_connections(user.id, target.telegram_id)
        connection = await connections.get_connection(user.id, target.telegram_id)

    status = connection.status if connection else None
    can_connect = (
        target.telegram_id != user.id
        and connection is None
        and target.privacy.allow_connections
    )
    await reply(
        message,
        viewed_profile(target, len(mutual), status),
        reply_markup=kb_connect(target.telegram_id) if can_connect else None,
    )
    if status == ConnectionStatus.ACCEPTED.value:
        logger.debug(f"User {user.id} viewed connection {target.telegram_id}")


@router.message(Command("settings"))
async def handle_settings(message: Message, services: Services) -> None:
    """Open the privacy settings dialog."""
    user = message.from_user
    if not user:
        return

    async with services.session_factory() as session:
        profile = await services.directory(session).get_profile(user.id)

    if profile is None:
        await reply(message, need_profile())
        return

    services.engine.start_settings(user.id, profile.privacy)
    await reply(message, settings_prompt(profile.privacy))


@router.message(Command("feedback"))
async def handle_feedback(message: Message, command: CommandObject, services: Services) -> None:
    """Store ``/feedback <text>`` directly, or ask for the text."""
    user = message.from_user
    if not user:
        return

    if not command.args:
        services.engine.start_feedback(user.id)
        await reply(message, feedback_prompt())
        return

    try:
        text = validate_feedback(command.args)
    except ValidationError as e:
        await reply(message, e.message)
        return

    async with services.session_factory() as session:
        await FeedbackRepo(session).add_feedback(user.id, user.username, text)

    logger.info(f"Feedback received from user {user.id}")
    await reply(message, feedback_thanks())


@router.message(Command("cancel"))
async def handle_cancel(message: Message, services: Services) -> None:
    """Reached only when no conversation is active; active ones handle /cancel themselves."""
    await reply(message, nothing_to_cancel())
