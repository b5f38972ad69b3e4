"""Connection request lifecycle: request, accept, decline, remove, and derived views."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardbot.core.cache import Cache, CacheKeys
from cardbot.core.contracts import ConnectionStatus, ConnectionView, ProfileSummary
from cardbot.core.errors import (
    ConnectionExistsError,
    PrivacyDeniedError,
    QuotaExceededError,
    SelfConnectionError,
    UserNotFoundError,
)
from cardbot.logging import get_logger
from cardbot.storage.models import Connection, User
from cardbot.storage.repo_connections import ConnectionsRepo
from cardbot.storage.repo_users import UsersRepo

logger = get_logger(__name__)

PENDING_QUOTA = 10
STATS_TTL_SECONDS = 60


def _view(connection: Connection, viewer_id: int, other: User) -> ConnectionView:
    return ConnectionView(
        id=connection.id,
        other=other.to_summary(),
        status=ConnectionStatus(connection.status),
        outgoing=connection.requester_id == viewer_id,
        created_at=connection.created_at,
        updated_at=connection.updated_at,
    )


class ConnectionService:
    """Owns the connection graph for one database session.

    At most one record exists per unordered pair. ``accepted`` and
    ``declined`` are terminal and only the original receiver can reach them.
    """

    def __init__(
        self,
        session: AsyncSession,
        connection_cache: Cache | None = None,
        quota: int = PENDING_QUOTA,
    ) -> None:
        self.users = UsersRepo(session)
        self.repo = ConnectionsRepo(session)
        self.cache = connection_cache
        self.quota = quota

    async def create_connection_request(self, requester_id: int, receiver_id: int) -> Connection:
        """Create a pending request from ``requester_id`` to ``receiver_id``.

        Raises:
            SelfConnectionError: Requester and receiver are the same user
            UserNotFoundError: Either user has no active profile
            PrivacyDeniedError: The receiver does not allow connections
            ConnectionExistsError: A record exists for the pair in any status
            QuotaExceededError: The requester has ``quota`` pending outgoing requests
        """
        if requester_id == receiver_id:
            raise SelfConnectionError()

        requester = await self.users.get_profile(requester_id)
        if requester is None:
            raise UserNotFoundError(requester_id)
        receiver = await self.users.get_profile(receiver_id)
        if receiver is None:
            raise UserNotFoundError(receiver_id)

        if not receiver.privacy.allow_connections:
            raise PrivacyDeniedError()

        # A declined record also blocks: there is no path back to pending
        existing = await self.repo.get_connection(requester_id, receiver_id)
        if existing is not None:
            raise ConnectionExistsError(existing.status)

        pending = await self.repo.count_outgoing_pending(requester_id)
        if pending >= self.quota:
            raise QuotaExceededError(self.quota)

        try:
            connection = await self.repo.insert(requester_id, receiver_id)
        except IntegrityError:
            # Lost a race with a concurrent request for the same pair
            raise ConnectionExistsError()

        self._invalidate(requester_id, receiver_id)
        logger.info(f"Connection request created: {requester_id} -> {receiver_id}")
        return connection

    async def accept_connection(self, requester_id: int, receiver_id: int) -> Connection | None:
        """Accept the pending request. None when there is no such pending request."""
        return await self._transition(requester_id, receiver_id, ConnectionStatus.ACCEPTED)

    async def decline_connection(self, requester_id: int, receiver_id: int) -> Connection | None:
        """Decline the pending request. None when there is no such pending request."""
        return await self._transition(requester_id, receiver_id, ConnectionStatus.DECLINED)

    async def get_connection(self, a: int, b: int) -> Connection | None:
        """The pair's record in any status, regardless of direction."""
        return await self.repo.get_connection(a, b)

    async def get_pending_requests(
        self,
        user_id: int,
        limit: int = 10,
        offset: int = 0,
    ) -> list[ConnectionView]:
        """Pending requests received by ``user_id``, newest first."""

        async def load() -> list[ConnectionView]:
            rows = await self.repo.list_incoming_pending(user_id, limit, offset)
            return [_view(c, user_id, requester) for c, requester in rows]

        key = CacheKeys.page(CacheKeys.pending_requests(user_id), limit, offset)
        return await self._cached(key, load)

    async def get_user_connections(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ConnectionView]:
        """Accepted connections of ``user_id``, most recently updated first."""

        async def load() -> list[ConnectionView]:
            rows = await self.repo.list_accepted(user_id, limit, offset)
            return [_view(c, user_id, other) for c, other in rows]

        key = CacheKeys.page(CacheKeys.connections(user_id), limit, offset)
        return await self._cached(key, load)

    async def get_mutual_connections(self, a: int, b: int) -> list[ProfileSummary]:
        """Users with an accepted connection to both ``a`` and ``b``."""
        common = (await self.repo.neighbor_ids(a)) & (await self.repo.neighbor_ids(b))
        common -= {a, b}
        users = await self.users.get_many(sorted(common))
        return [u.to_summary() for u in users]

    async def get_pending_requests_count(self, user_id: int) -> int:
        """Pending requests sent by ``user_id`` (the quota counter)."""
        return await self.repo.count_outgoing_pending(user_id)

    async def get_incoming_requests_count(self, user_id: int) -> int:
        return await self.repo.count_incoming_pending(user_id)

    async def get_connections_count(self, user_id: int) -> int:
        return await self.repo.count_accepted(user_id)

    async def remove_connection(self, a: int, b: int) -> bool:
        """Delete the pair's record whatever its status. Returns whether one existed."""
        removed = await self.repo.delete_pair(a, b)
        if removed:
            self._invalidate(a, b)
            logger.info(f"Connection removed: {a} <-> {b}")
        return removed

    async def count_connections(self) -> int:
        """Accepted connections across all users."""

        async def load() -> int:
            return await self.repo.count_all(ConnectionStatus.ACCEPTED)

        return await self._cached(CacheKeys.total_connections(), load, STATS_TTL_SECONDS)

    async def _transition(
        self,
        requester_id: int,
        receiver_id: int,
        to_status: ConnectionStatus,
    ) -> Connection | None:
        connection = await self.repo.transition(requester_id, receiver_id, to_status)
        if connection is None:
            logger.info(
                f"No pending request to {to_status.value}: {requester_id} -> {receiver_id}"
            )
            return None

        self._invalidate(requester_id, receiver_id)
        logger.info(f"Connection {to_status.value}: {requester_id} -> {receiver_id}")
        return connection

    async def _cached(self, key: str, load, ttl: float | None = None):
        if self.cache is None:
            return await load()
        return await self.cache.get_or_load(key, load, ttl)

    def _invalidate(self, *user_ids: int) -> None:
        if self.cache is None:
            return
        for user_id in user_ids:
            for base in (CacheKeys.connections(user_id), CacheKeys.pending_requests(user_id)):
                self.cache.delete(base)
                self.cache.delete_prefix(f"{base}:")
        self.cache.delete(CacheKeys.total_connections())
