"""Handlers for sending, answering and listing connection requests."""

from aiogram import Bot, F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from cardbot.bot.keyboards import (
    kb_request_actions,
    kb_view_requests,
    parse_callback,
    parse_user_id,
)
from cardbot.bot.messages import (
    accept_usage,
    accepted,
    connect_usage,
    connection_error,
    connections_empty,
    connections_list,
    decline_usage,
    declined,
    disconnect_usage,
    disconnected,
    need_profile,
    no_pending_request,
    not_connected,
    request_accepted_notice,
    request_item,
    request_received,
    request_sent,
    requests_empty,
    requests_header,
    user_not_found,
)
from cardbot.bot.sender import (
    notify_user,
    reply,
    safe_answer_callback,
    safe_edit_markup,
    safe_send_message,
)
from cardbot.core.errors import ConnectionRequestError, UserNotFoundError
from cardbot.logging import get_logger
from cardbot.services import Services

router = Router(name="connections")
logger = get_logger(__name__)

REQUESTS_SHOWN = 10


def _parse_id(args: str | None) -> int | None:
    text = (args or "").strip()
    return int(text) if text.isdigit() else None


async def _connect(bot: Bot | None, chat_id: int, services: Services, me: int, target_id: int) -> None:
    """Create the request and notify the receiver."""
    async with services.session_factory() as session:
        directory = services.directory(session)
        try:
            await services.connections(session).create_connection_request(me, target_id)
        except ConnectionRequestError as e:
            if isinstance(e, UserNotFoundError) and e.user_id == me:
                text = need_profile()
            else:
                text = connection_error(e)
            logger.info(f"Connection request {me} -> {target_id} refused: {e}")
            await safe_send_message(bot, chat_id, text)
            return

        requester = await directory.get_profile(me)
        receiver = await directory.get_profile(target_id)

    await safe_send_message(bot, chat_id, request_sent(receiver.summary()))
    await notify_user(
        bot,
        target_id,
        request_received(requester.summary()),
        reply_markup=kb_request_actions(me),
    )


@router.message(Command("connect"))
async def handle_connect(message: Message, command: CommandObject, services: Services) -> None:
    """Handle /connect <username|id>."""
    user = message.from_user
    if not user:
        return

    target_arg = (command.args or "").strip()
    if not target_arg:
        await reply(message, connect_usage())
        return

    async with services.session_factory() as session:
        target = await services.directory(session).resolve(target_arg)

    if target is None:
        await reply(message, user_not_found())
        return

    await _connect(message.bot, message.chat.id, services, user.id, target.telegram_id)


async def _send_requests(bot: Bot | None, chat_id: int, services: Services, me: int) -> None:
    async with services.session_factory() as session:
        connections = services.connections(session)
        views = await connections.get_pending_requests(me, limit=REQUESTS_SHOWN)
        total = await connections.get_incoming_requests_count(me)

    if not views:
        await safe_send_message(bot, chat_id, requests_empty())
        return

    await safe_send_message(bot, chat_id, requests_header(total))
    for view in views:
        await safe_send_message(
            bot,
            chat_id,
            request_item(view),
            reply_markup=kb_request_actions(view.other.telegram_id),
        )


@router.message(Command("requests"))
async def handle_requests(message: Message, services: Services) -> None:
    """List pending requests received by the user."""
    if message.from_user:
        await _send_requests(message.bot, message.chat.id, services, message.from_user.id)


async def _answer(
    bot: Bot | None,
    chat_id: int,
    services: Services,
    me: int,
    requester_id: int,
    accept: bool,
) -> bool:
    """Accept or decline the request from ``requester_id``. Returns whether one was pending."""
    async with services.session_factory() as session:
        connections = services.connections(session)
        directory = services.directory(session)
        if accept:
            connection = await connections.accept_connection(requester_id, me)
        else:
            connection = await connections.decline_connection(requester_id, me)
        if connection is None:
            await safe_send_message(bot, chat_id, no_pending_request())
            return False

        requester = await directory.get_profile(requester_id)
        receiver = await directory.get_profile(me)

    if not accept:
        # The requester is not told about declines
        await safe_send_message(bot, chat_id, declined())
        return True

    await safe_send_message(bot, chat_id, accepted(requester.summary() if requester else None))
    if receiver is not None:
        await notify_user(bot, requester_id, request_accepted_notice(receiver.summary()))
    return True


@router.message(Command("accept"))
async def handle_accept(message: Message, command: CommandObject, services: Services) -> None:
    user = message.from_user
    if not user:
        return

    requester_id = _parse_id(command.args)
    if requester_id is None:
        await reply(message, accept_usage())
        return
    await _answer(message.bot, message.chat.id, services, user.id, requester_id, accept=True)


@router.message(Command("decline"))
async def handle_decline(message: Message, command: CommandObject, services: Services) -> None:
    user = message.from_user
    if not user:
        return

    requester_id = _parse_id(command.args)
    if requester_id is None:
        await reply(message, decline_usage())
        return
    await _answer(message.bot, message.chat.id, services, user.id, requester_id, accept=False)


@router.callback_query(F.data.startswith("c:"))
async def handle_connection_button(callback: CallbackQuery, services: Services) -> None:
    """Handle Connect/Accept/Decline inline buttons."""
    await safe_answer_callback(callback)

    if not callback.message or not callback.from_user or not callback.data:
        return

    _, action, extra = parse_callback(callback.data)
    other_id = parse_user_id(extra)
    if other_id is None:
        logger.warning(f"Malformed connection callback: {callback.data}")
        return

    me = callback.from_user.id
    chat_id = callback.message.chat.id
    if action == "connect":
        await _connect(callback.bot, chat_id, services, me, other_id)
        await safe_edit_markup(callback.message)
    elif action in ("accept", "decline"):
        await _answer(callback.bot, chat_id, services, me, other_id, accept=action == "accept")
        await safe_edit_markup(callback.message)
    else:
        logger.warning(f"Unknown connection action: {action}")


@router.callback_query(F.data == "n:requests")
async def handle_requests_button(callback: CallbackQuery, services: Services) -> None:
    await safe_answer_callback(callback)
    if callback.message and callback.from_user:
        await _send_requests(callback.bot, callback.message.chat.id, services, callback.from_user.id)


@router.message(Command("connections"))
async def handle_connections(message: Message, services: Services) -> None:
    """List the user's accepted connections."""
    user = message.from_user
    if not user:
        return

    async with services.session_factory() as session:
        connections = services.connections(session)
        views = await connections.get_user_connections(user.id)
        incoming = await connections.get_incoming_requests_count(user.id)

    markup = kb_view_requests() if incoming else None
    if not views:
        await reply(message, connections_empty(), reply_markup=markup)
        return
    await reply(message, connections_list(views), reply_markup=markup)


@router.message(Command("disconnect"))
async def handle_disconnect(message: Message, command: CommandObject, services: Services) -> None:
    """Remove the connection with a user, whatever its status."""
    user = message.from_user
    if not user:
        return

    other_id = _parse_id(command.args)
    if other_id is None:
        await reply(message, disconnect_usage())
        return

    async with services.session_factory() as session:
        removed = await services.connections(session).remove_connection(user.id, other_id)

    await reply(message, disconnected() if removed else not_connected())
