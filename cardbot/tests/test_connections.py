"""Tests for the connection lifecycle and the profile directory service."""

import asyncio

import pytest

from cardbot.core.cache import Cache, CacheKeys
from cardbot.core.connections import ConnectionService
from cardbot.core.contracts import ConnectionStatus
from cardbot.core.directory import DirectoryService
from cardbot.core.errors import (
    ConnectionExistsError,
    PrivacyDeniedError,
    QuotaExceededError,
    SelfConnectionError,
    UserNotFoundError,
)


@pytest.fixture
def cache(clock):
    return Cache(name="connection_cache", clock=clock)


@pytest.fixture
async def people(session, profile_factory):
    """Users 100, 200, 300 and 400 with default privacy."""
    directory = DirectoryService(session)
    for user_id, name in ((100, "Ann"), (200, "Ben"), (300, "Cat"), (400, "Dan")):
        await directory.create_profile(user_id, name.lower(), profile_factory(name=name))
    return directory


@pytest.fixture
def service(session, cache, people):
    return ConnectionService(session, cache)


@pytest.mark.anyio
async def test_request_accept_and_mutual_scenario(service):
    created = await service.create_connection_request(100, 200)
    assert created.status == ConnectionStatus.PENDING.value

    accepted = await service.accept_connection(100, 200)
    assert accepted.status == ConnectionStatus.ACCEPTED.value

    for me, other in ((100, 200), (200, 100)):
        views = await service.get_user_connections(me)
        assert [v.other.telegram_id for v in views] == [other]
        assert views[0].status is ConnectionStatus.ACCEPTED

    assert await service.get_mutual_connections(100, 200) == []


@pytest.mark.anyio
async def test_mutual_connections(service):
    for requester, receiver in ((100, 300), (200, 300), (100, 400), (100, 200)):
        await service.create_connection_request(requester, receiver)
        await service.accept_connection(requester, receiver)

    mutual = await service.get_mutual_connections(100, 200)
    assert [s.telegram_id for s in mutual] == [300]
    assert mutual[0].name == "Cat"
    # Symmetric
    assert [s.telegram_id for s in await service.get_mutual_connections(200, 100)] == [300]


@pytest.mark.anyio
async def test_pending_does_not_count_as_mutual(service):
    await service.create_connection_request(100, 300)
    await service.create_connection_request(200, 300)
    assert await service.get_mutual_connections(100, 200) == []


@pytest.mark.anyio
async def test_self_connection_rejected(service):
    with pytest.raises(SelfConnectionError):
        await service.create_connection_request(100, 100)


@pytest.mark.anyio
async def test_unknown_users_rejected(service):
    with pytest.raises(UserNotFoundError) as exc:
        await service.create_connection_request(100, 999)
    assert exc.value.user_id == 999

    with pytest.raises(UserNotFoundError) as exc:
        await service.create_connection_request(999, 100)
    assert exc.value.user_id == 999


@pytest.mark.anyio
async def test_receiver_privacy_blocks_requests(service, people):
    await people.update_privacy_settings(200, {"allow_connections": False})
    with pytest.raises(PrivacyDeniedError):
        await service.create_connection_request(100, 200)


@pytest.mark.anyio
async def test_duplicate_requests_rejected_in_both_directions(service):
    await service.create_connection_request(100, 200)

    with pytest.raises(ConnectionExistsError) as exc:
        await service.create_connection_request(100, 200)
    assert exc.value.status == "pending"

    with pytest.raises(ConnectionExistsError):
        await service.create_connection_request(200, 100)


@pytest.mark.anyio
async def test_declined_request_blocks_new_requests(service):
    await service.create_connection_request(100, 200)
    declined = await service.decline_connection(100, 200)
    assert declined.status == ConnectionStatus.DECLINED.value

    with pytest.raises(ConnectionExistsError) as exc:
        await service.create_connection_request(200, 100)
    assert exc.value.status == "declined"


@pytest.mark.anyio
async def test_only_receiver_can_answer_and_only_once(service, session_factory):
    await service.create_connection_request(100, 200)

    # 100 is the requester; (200 -> 100) is not a pending request
    assert await service.accept_connection(200, 100) is None
    accepted = await service.accept_connection(100, 200)
    assert accepted is not None
    assert await service.accept_connection(100, 200) is None
    assert await service.decline_connection(100, 200) is None

    async with session_factory() as fresh:
        connection = await ConnectionService(fresh).get_connection(200, 100)
    assert connection.status == ConnectionStatus.ACCEPTED.value
    assert connection.updated_at == accepted.updated_at


@pytest.mark.anyio
async def test_concurrent_answers_settle_on_one_status(service, session_factory):
    await service.create_connection_request(100, 200)

    async def answer(accept: bool):
        async with session_factory() as session:
            connections = ConnectionService(session)
            if accept:
                return await connections.accept_connection(100, 200)
            return await connections.decline_connection(100, 200)

    results = await asyncio.gather(answer(True), answer(False), answer(True), answer(False))
    winners = [result for result in results if result is not None]
    assert len(winners) == 1

    async with session_factory() as fresh:
        connection = await ConnectionService(fresh).get_connection(100, 200)
    assert connection.status == winners[0].status
    assert connection.status != ConnectionStatus.PENDING.value


@pytest.mark.anyio
async def test_pending_quota(session, cache, people, profile_factory):
    service = ConnectionService(session, cache, quota=10)
    for user_id in range(1000, 1011):
        await people.create_profile(user_id, None, profile_factory(name=f"User {user_id}"))

    for receiver in range(1000, 1010):
        await service.create_connection_request(100, receiver)
    assert await service.get_pending_requests_count(100) == 10

    with pytest.raises(QuotaExceededError) as exc:
        await service.create_connection_request(100, 1010)
    assert exc.value.limit == 10

    # Answering a request frees a slot
    await service.decline_connection(100, 1000)
    await service.create_connection_request(100, 1010)


@pytest.mark.anyio
async def test_pending_requests_listing(service):
    await service.create_connection_request(100, 400)
    await service.create_connection_request(200, 400)
    await service.create_connection_request(400, 300)

    views = await service.get_pending_requests(400)
    assert [v.other.telegram_id for v in views] == [200, 100]
    assert all(not v.outgoing for v in views)
    assert await service.get_incoming_requests_count(400) == 2
    assert await service.get_pending_requests_count(400) == 1


@pytest.mark.anyio
async def test_lists_are_cached_and_invalidated(service, cache):
    await service.create_connection_request(100, 200)
    assert len(await service.get_pending_requests(200)) == 1
    assert cache.has(CacheKeys.page(CacheKeys.pending_requests(200), 10, 0))

    await service.accept_connection(100, 200)
    assert not cache.has(CacheKeys.page(CacheKeys.pending_requests(200), 10, 0))
    assert await service.get_pending_requests(200) == []
    assert len(await service.get_user_connections(100)) == 1


@pytest.mark.anyio
async def test_remove_connection(service):
    await service.create_connection_request(100, 200)
    await service.accept_connection(100, 200)
    assert await service.get_connections_count(100) == 1
    assert await service.count_connections() == 1

    assert await service.remove_connection(200, 100) is True
    assert await service.remove_connection(200, 100) is False
    assert await service.get_user_connections(100) == []
    assert await service.count_connections() == 0

    # A removed pair can be requested again
    await service.create_connection_request(100, 200)


# Directory service

@pytest.mark.anyio
async def test_directory_caches_profiles(session, clock, profile_factory):
    cache = Cache(name="user_cache", clock=clock)
    directory = DirectoryService(session, cache)
    await directory.create_profile(1, "Alice", profile_factory())

    first = await directory.get_profile(1)
    second = await directory.get_profile(1)
    assert first is second
    assert cache.get_stats().hits >= 1

    updated = await directory.update_profile(1, profile_factory(title="CTO"))
    assert updated.profile.title == "CTO"
    assert (await directory.get_profile(1)).profile.title == "CTO"


@pytest.mark.anyio
async def test_directory_resolve(session, profile_factory):
    directory = DirectoryService(session)
    await directory.create_profile(1, "Alice", profile_factory())

    assert (await directory.resolve("1")).telegram_id == 1
    assert (await directory.resolve("@alice")).telegram_id == 1
    assert await directory.resolve("nobody") is None
    assert await directory.resolve("2") is None


@pytest.mark.anyio
async def test_directory_search_cache_cleared_by_privacy_change(session, clock, profile_factory):
    cache = Cache(name="user_cache", clock=clock)
    directory = DirectoryService(session, cache)
    await directory.create_profile(1, "alice", profile_factory())
    await directory.create_profile(2, "bob", profile_factory(name="Bob"))

    found = await directory.search("engineer", 6, 0, exclude_id=2)
    assert [p.telegram_id for p in found] == [1]

    await directory.update_privacy_settings(1, {"allow_search": False})
    assert await directory.search("engineer", 6, 0, exclude_id=2) == []
    assert await directory.count_users() == 2


@pytest.mark.anyio
async def test_directory_username_change_drops_old_key(session, clock, profile_factory):
    cache = Cache(name="user_cache", clock=clock)
    directory = DirectoryService(session, cache)
    await directory.create_profile(1, "alice", profile_factory())
    assert (await directory.resolve("@alice")).telegram_id == 1

    await directory.update_profile(1, profile_factory(), username="alice_new")
    assert await directory.resolve("@alice") is None
    assert (await directory.resolve("@alice_new")).telegram_id == 1


@pytest.mark.anyio
async def test_profile_edit_refreshes_cached_connection_lists(
    session, clock, cache, service, profile_factory
):
    await service.create_connection_request(100, 200)
    await service.accept_connection(100, 200)
    await service.create_connection_request(300, 200)

    assert (await service.get_user_connections(200))[0].other.name == "Ann"
    assert (await service.get_pending_requests(200))[0].other.name == "Cat"

    directory = DirectoryService(session, Cache(name="user_cache", clock=clock), cache)
    await directory.update_profile(100, profile_factory(name="Annie"))
    await directory.update_profile(300, profile_factory(name="Cathy"))

    assert (await service.get_user_connections(200))[0].other.name == "Annie"
    assert (await service.get_pending_requests(200))[0].other.name == "Cathy"
