"""In-app notifications: persisted rows plus a best-effort realtime push.

Every notification is written to the ``notifications`` table first. If the
recipient currently has a realtime connection registered, the same payload is
pushed as a ``notification_pop`` event. Delivery problems never reach the caller.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from model import Notification
from workday import now_in

logger = logging.getLogger(__name__)

POP_EVENT = "notification_pop"
INBOX_LIMIT = 50


class ConnectionRegistry:
    """Open realtime connections keyed by user id.

    A user may have several tabs open, so each id maps to a set of sockets.
    Anything with an async ``send_json`` method can be registered.
    """

    def __init__(self):
        self._connections: Dict[int, Set[Any]] = defaultdict(set)

    def register(self, user_id: int, connection: Any):
        self._connections[user_id].add(connection)
        logger.debug("Realtime connection opened for user %s", user_id)

    def unregister(self, user_id: int, connection: Any):
        conns = self._connections.get(user_id)
        if not conns:
            return
        conns.discard(connection)
        if not conns:
            del self._connections[user_id]
        logger.debug("Realtime connection closed for user %s", user_id)

    def is_connected(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    async def push(self, user_id: int, event: str, data: Dict[str, Any]) -> int:
        """Send an event to every connection of a user; returns how many sends succeeded"""
        delivered = 0
        for conn in list(self._connections.get(user_id, ())):
            try:
                await conn.send_json({"event": event, "data": data})
                delivered += 1
            except Exception:
                logger.warning("Dropping dead realtime connection for user %s", user_id, exc_info=True)
                self.unregister(user_id, conn)
        return delivered


class NotificationDispatcher:
    def __init__(self, registry: Optional[ConnectionRegistry] = None, timezone: Optional[str] = None):
        self.registry = registry
        self.timezone = timezone or get_settings().timezone

    async def notify(
        self,
        db: AsyncSession,
        user_id: int,
        type: str,
        message: str,
        now: Optional[datetime] = None,
    ) -> Optional[Notification]:
        """Store a notification and push it if the user is online. Never raises.

        The insert runs in a savepoint so a failure only discards the
        notification, never the caller's pending work.
        """
        row = Notification(
            user_id=user_id,
            type=type,
            message=message,
            is_read=False,
            created_at=now or now_in(self.timezone),
        )
        # Caller's own pending changes must fail loudly, outside the savepoint
        await db.flush()
        try:
            async with db.begin_nested():
                db.add(row)
        except SQLAlchemyError:
            logger.exception("Notification insert failed for user %s", user_id)
            return None

        if self.registry is not None and self.registry.is_connected(user_id):
            payload = {
                "id": row.id,
                "type": row.type,
                "message": row.message,
                "created_at": row.created_at.isoformat(),
            }
            try:
                await self.registry.push(user_id, POP_EVENT, payload)
            except Exception:
                logger.exception("Realtime push failed for user %s", user_id)
        return row

    async def notify_many(
        self,
        db: AsyncSession,
        user_ids: Iterable[int],
        type: str,
        message: str,
        now: Optional[datetime] = None,
    ) -> int:
        sent = 0
        for user_id in dict.fromkeys(uid for uid in user_ids if uid):
            if await self.notify(db, user_id, type, message, now=now):
                sent += 1
        return sent


# Inbox queries

async def list_unread(db: AsyncSession, user_id: int, limit: int = INBOX_LIMIT) -> List[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    )
    return result.scalar_one()


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
