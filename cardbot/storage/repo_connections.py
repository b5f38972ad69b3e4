"""Repository for connection records."""

from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from cardbot.core.contracts import ConnectionStatus
from cardbot.storage.models import Connection, User, pair_key


def _touching(user_id: int):
    return or_(Connection.requester_id == user_id, Connection.receiver_id == user_id)


class ConnectionsRepo:
    """Direction-agnostic access to the connection graph.

    Every pair lookup goes through ``pair_key`` so ``(a, b)`` and ``(b, a)``
    resolve to the same row.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_connection(self, a: int, b: int) -> Connection | None:
        stmt = select(Connection).where(Connection.pair_key == pair_key(a, b))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(self, requester_id: int, receiver_id: int) -> Connection:
        """Insert a pending request.

        Raises:
            sqlalchemy.exc.IntegrityError: If a row already exists for the pair
        """
        now = datetime.now(timezone.utc)
        connection = Connection(
            requester_id=requester_id,
            receiver_id=receiver_id,
            pair_key=pair_key(requester_id, receiver_id),
            status=ConnectionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(connection)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise
        await self.session.refresh(connection)
        return connection

    async def transition(
        self,
        requester_id: int,
        receiver_id: int,
        to_status: ConnectionStatus,
    ) -> Connection | None:
        """Move the pending ``requester -> receiver`` row to ``to_status``.

        The status guard lives in the UPDATE itself, so of two concurrent
        transitions only one matches a row. The loser gets None.
        """
        stmt = (
            update(Connection)
            .where(
                Connection.requester_id == requester_id,
                Connection.receiver_id == receiver_id,
                Connection.status == ConnectionStatus.PENDING.value,
            )
            .values(status=to_status.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        if result.rowcount == 0:
            return None

        refreshed = await self.session.execute(
            select(Connection)
            .where(Connection.pair_key == pair_key(requester_id, receiver_id))
            .execution_options(populate_existing=True)
        )
        return refreshed.scalar_one_or_none()

    async def list_incoming_pending(
        self,
        user_id: int,
        limit: int = 10,
        offset: int = 0,
    ) -> list[tuple[Connection, User]]:
        """Pending requests received by ``user_id`` with the requester, newest first."""
        stmt = (
            select(Connection, User)
            .join(User, User.telegram_id == Connection.requester_id)
            .where(
                Connection.receiver_id == user_id,
                Connection.status == ConnectionStatus.PENDING.value,
            )
            .order_by(Connection.created_at.desc(), Connection.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def list_accepted(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> list[tuple[Connection, User]]:
        """Accepted connections of ``user_id`` paired with the other party."""
        other = aliased(User)
        stmt = (
            select(Connection, other)
            .join(
                other,
                or_(
                    (Connection.requester_id == user_id)
                    & (other.telegram_id == Connection.receiver_id),
                    (Connection.receiver_id == user_id)
                    & (other.telegram_id == Connection.requester_id),
                ),
            )
            .where(Connection.status == ConnectionStatus.ACCEPTED.value)
            .order_by(Connection.updated_at.desc(), Connection.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def neighbor_ids(self, user_id: int) -> set[int]:
        """Ids of everyone with an accepted connection to ``user_id``."""
        stmt = select(Connection.requester_id, Connection.receiver_id).where(
            _touching(user_id),
            Connection.status == ConnectionStatus.ACCEPTED.value,
        )
        result = await self.session.execute(stmt)
        return {
            receiver if requester == user_id else requester
            for requester, receiver in result.all()
        }

    async def count_outgoing_pending(self, user_id: int) -> int:
        return await self._count(
            Connection.requester_id == user_id,
            Connection.status == ConnectionStatus.PENDING.value,
        )

    async def count_incoming_pending(self, user_id: int) -> int:
        return await self._count(
            Connection.receiver_id == user_id,
            Connection.status == ConnectionStatus.PENDING.value,
        )

    async def count_accepted(self, user_id: int) -> int:
        return await self._count(
            _touching(user_id),
            Connection.status == ConnectionStatus.ACCEPTED.value,
        )

    async def count_all(self, status: ConnectionStatus | None = None) -> int:
        if status is None:
            return await self._count()
        return await self._count(Connection.status == status.value)

    async def delete_pair(self, a: int, b: int) -> bool:
        """Delete the pair's row in any status. Returns whether one existed."""
        stmt = delete(Connection).where(Connection.pair_key == pair_key(a, b))
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def _count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(Connection)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
