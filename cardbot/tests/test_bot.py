"""Tests for bot keyboards, messages, middlewares and handlers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.filters import CommandObject

from cardbot.bot.keyboards import (
    kb_connect,
    kb_request_actions,
    kb_search_pages,
    parse_callback,
    parse_user_id,
)
from cardbot.bot.messages import connection_error, profile_card, rate_limited
from cardbot.core.contracts import PrivacySettings, ProfileData
from cardbot.core.errors import ConnectionExistsError, QuotaExceededError


def make_message(user_id: int, text: str = "", username: str | None = None):
    """A stand-in for aiogram's Message with a mocked bot."""
    return SimpleNamespace(
        from_user=SimpleNamespace(id=user_id, username=username, first_name="Tester"),
        chat=SimpleNamespace(id=user_id),
        bot=AsyncMock(),
        text=text,
    )


def make_callback(user_id: int, data: str):
    return SimpleNamespace(
        from_user=SimpleNamespace(id=user_id, username=None, first_name="Tester"),
        message=SimpleNamespace(chat=SimpleNamespace(id=user_id), edit_reply_markup=AsyncMock()),
        bot=AsyncMock(),
        data=data,
        answer=AsyncMock(),
    )


def sent(bot) -> list[SimpleNamespace]:
    """Every send_message call as (chat_id, text, reply_markup)."""
    return [
        SimpleNamespace(
            chat_id=c.kwargs["chat_id"],
            text=c.kwargs["text"],
            markup=c.kwargs.get("reply_markup"),
        )
        for c in bot.send_message.await_args_list
    ]


def command(name: str, args: str | None = None) -> CommandObject:
    return CommandObject(prefix="/", command=name, args=args)


# Keyboards

def test_parse_callback_with_user_id():
    prefix, value, extra = parse_callback("c:accept|42")
    assert (prefix, value, extra) == ("c", "accept", ["42"])
    assert parse_user_id(extra) == 42


def test_parse_callback_simple():
    assert parse_callback("n:next") == ("n", "next", [])
    assert parse_callback("garbage") == ("", "garbage", [])
    assert parse_user_id([]) is None
    assert parse_user_id(["abc"]) is None


def test_request_keyboard_callback_data():
    markup = kb_request_actions(7)
    data = [b.callback_data for b in markup.inline_keyboard[0]]
    assert data == ["c:accept|7", "c:decline|7"]
    assert kb_connect(9).inline_keyboard[0][0].callback_data == "c:connect|9"


def test_search_page_keyboard():
    assert kb_search_pages(False, False) is None
    markup = kb_search_pages(True, True)
    assert [b.callback_data for b in markup.inline_keyboard[0]] == ["n:prev", "n:next"]


# Messages

def test_profile_card_hides_links_per_privacy():
    profile = ProfileData(
        name="Ann <b>",
        title="Engineer",
        description="Python",
        github_username="ann",
        linkedin_url="https://linkedin.com/in/ann",
    )
    privacy = PrivacySettings(show_github=False)

    text = profile_card(profile, "ann", privacy)
    assert "Ann &lt;b&gt;" in text
    assert "GitHub" not in text
    assert "linkedin.com/in/ann" in text


def test_connection_error_messages():
    assert "already connected" in connection_error(ConnectionExistsError("accepted"))
    assert "10 pending" in connection_error(QuotaExceededError(10))


def test_rate_limited_message_rounds_up_to_one_second():
    assert "1s" in rate_limited(0.2)


# Middleware

@pytest.mark.anyio
async def test_rate_limit_middleware_drops_excess_updates(services):
    from cardbot.bot.middlewares import RateLimitMiddleware

    middleware = RateLimitMiddleware(services.rate_limiter)
    handler = AsyncMock(return_value="handled")
    event = SimpleNamespace(from_user=SimpleNamespace(id=5))

    results = [await middleware(handler, event, {}) for _ in range(22)]
    assert results[:20] == ["handled"] * 20
    assert results[20:] == [None, None]
    assert handler.await_count == 20


# Handlers

@pytest.mark.anyio
async def test_start_for_new_user(services):
    from cardbot.bot.handlers_start import handle_start

    message = make_message(1)
    await handle_start(message, services)

    (reply,) = sent(message.bot)
    assert "/profile" in reply.text


async def _create_profile(services, user_id: int, username: str, name: str) -> None:
    from cardbot.bot.handlers_conversation import handle_conversation_input
    from cardbot.bot.handlers_profile import handle_profile

    await handle_profile(make_message(user_id, "/profile", username), services)
    for text in (name, "Engineer", "Python backend work", "skip", "skip", "skip", "skip", "yes"):
        await handle_conversation_input(make_message(user_id, text, username), services)


@pytest.mark.anyio
async def test_profile_conversation_persists_profile(services):
    from cardbot.bot.handlers_conversation import handle_conversation_input
    from cardbot.bot.handlers_profile import handle_profile

    await handle_profile(make_message(1, "/profile", "ann"), services)
    assert services.conversations.has_active_conversation(1)

    bad = make_message(1, "x" * 51, "ann")
    await handle_conversation_input(bad, services)
    assert "50 characters" in sent(bad.bot)[0].text

    for text in ("Ann", "Engineer", "Python backend work", "skip", "skip", "skip", "skip"):
        await handle_conversation_input(make_message(1, text, "ann"), services)

    confirm = make_message(1, "yes", "ann")
    await handle_conversation_input(confirm, services)
    assert "created" in sent(confirm.bot)[0].text.lower()
    assert not services.conversations.has_active_conversation(1)

    async with services.session_factory() as session:
        profile = await services.directory(session).get_profile(1)
    assert profile.profile.name == "Ann"
    assert profile.username == "ann"


@pytest.mark.anyio
async def test_cancel_command_without_conversation(services):
    from cardbot.bot.handlers_profile import handle_cancel

    message = make_message(1, "/cancel")
    await handle_cancel(message, services)
    assert "nothing to cancel" in sent(message.bot)[0].text.lower()


@pytest.mark.anyio
async def test_connect_and_accept_via_button(services):
    from cardbot.bot.handlers_connections import handle_connect, handle_connection_button

    await _create_profile(services, 1, "ann", "Ann")
    await _create_profile(services, 2, "ben", "Ben")

    message = make_message(1, "/connect @ben", "ann")
    await handle_connect(message, command("connect", "@ben"), services)

    to_requester, to_receiver = sent(message.bot)
    assert to_requester.chat_id == 1
    assert "request sent" in to_requester.text.lower()
    assert to_receiver.chat_id == 2
    assert to_receiver.markup.inline_keyboard[0][0].callback_data == "c:accept|1"

    callback = make_callback(2, "c:accept|1")
    await handle_connection_button(callback, services)

    texts = sent(callback.bot)
    assert texts[0].chat_id == 2
    assert "connected" in texts[0].text
    assert texts[1].chat_id == 1
    assert "accepted" in texts[1].text
    callback.message.edit_reply_markup.assert_awaited_once()

    async with services.session_factory() as session:
        views = await services.connections(session).get_user_connections(1)
    assert [v.other.telegram_id for v in views] == [2]


@pytest.mark.anyio
async def test_connect_without_own_profile(services):
    from cardbot.bot.handlers_connections import handle_connect

    await _create_profile(services, 2, "ben", "Ben")

    message = make_message(1, "/connect 2")
    await handle_connect(message, command("connect", "2"), services)
    (reply,) = sent(message.bot)
    assert "/profile" in reply.text


@pytest.mark.anyio
async def test_decline_command_without_request(services):
    from cardbot.bot.handlers_connections import handle_decline

    message = make_message(1, "/decline 5")
    await handle_decline(message, command("decline", "5"), services)
    assert "no pending request" in sent(message.bot)[0].text.lower()

    message = make_message(1, "/decline abc")
    await handle_decline(message, command("decline", "abc"), services)
    assert "/decline 123456789" in sent(message.bot)[0].text


@pytest.mark.anyio
async def test_search_paging(services):
    from cardbot.bot.handlers_search import handle_next, handle_prev, handle_search

    for user_id in range(1, 8):
        await _create_profile(services, user_id, f"user{user_id}", f"Person {user_id}")

    message = make_message(99, "/search person")
    await handle_search(message, command("search", "person"), services)
    (page,) = sent(message.bot)
    assert "page 1" in page.text
    assert [b.callback_data for b in page.markup.inline_keyboard[0]] == ["n:next"]

    message = make_message(99, "/next")
    await handle_next(message, services)
    (page,) = sent(message.bot)
    assert "page 2" in page.text
    assert [b.callback_data for b in page.markup.inline_keyboard[0]] == ["n:prev"]

    message = make_message(99, "/next")
    await handle_next(message, services)
    assert "no more results" in sent(message.bot)[0].text.lower()
    assert services.search_sessions.get(99).page == 1

    message = make_message(99, "/prev")
    await handle_prev(message, services)
    assert "page 1" in sent(message.bot)[0].text


@pytest.mark.anyio
async def test_search_rejects_short_query(services):
    from cardbot.bot.handlers_search import handle_search

    message = make_message(1, "/search a")
    await handle_search(message, command("search", "a"), services)
    assert "/search" in sent(message.bot)[0].text
    assert services.search_sessions.get(1) is None


@pytest.mark.anyio
async def test_settings_conversation_updates_privacy(services):
    from cardbot.bot.handlers_conversation import handle_conversation_input
    from cardbot.bot.handlers_profile import handle_settings

    await _create_profile(services, 1, "ann", "Ann")

    await handle_settings(make_message(1, "/settings"), services)
    await handle_conversation_input(make_message(1, "allow_search off"), services)
    await handle_conversation_input(make_message(1, "done"), services)

    async with services.session_factory() as session:
        profile = await services.directory(session).get_profile(1)
    assert profile.privacy.allow_search is False
    assert not services.conversations.has_active_conversation(1)


@pytest.mark.anyio
async def test_feedback_command_with_text(services):
    from cardbot.bot.handlers_profile import handle_feedback
    from cardbot.storage import FeedbackRepo

    message = make_message(1, "/feedback Great bot", "ann")
    await handle_feedback(message, command("feedback", "Great bot"), services)
    assert "thank" in sent(message.bot)[0].text.lower()

    async with services.session_factory() as session:
        assert await FeedbackRepo(session).count_feedback(user_id=1) == 1
