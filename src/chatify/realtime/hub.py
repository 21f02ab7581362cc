"""Realtime hub — live connections + presence + fan-out.

Learn: The registry answers "which connection belongs to this user". The
hub answers "give me that connection" and does the actual sending.

connect(conn)     → track, register, broadcast getOnlineUsers
disconnect(conn)  → untrack, unregister (scoped to conn.id), broadcast if changed
send(id, ...)     → targeted push, False if the connection is gone
broadcast(...)    → concurrent fan-out with asyncio.gather()

Nothing here holds a lock across an await. The online list to broadcast
is captured by the registry together with the mutation; the fan-out runs
afterwards, so a slow client never delays the next connect/disconnect.
"""

import asyncio
import threading
from typing import Any, Optional

import structlog

from chatify.realtime.connection import Connection
from chatify.realtime.events import ONLINE_USERS
from chatify.realtime.presence import PresenceRegistry

logger = structlog.get_logger()

# Close code sent to a connection that lost its registry entry to a newer one.
SUPERSEDED_CLOSE_CODE = 4000


class RealtimeHub:
    """Owns the presence registry and the set of accepted connections."""

    def __init__(
        self,
        registry: Optional[PresenceRegistry] = None,
        evict_stale: bool = False,
    ):
        self.registry = registry if registry is not None else PresenceRegistry()
        self.evict_stale = evict_stale
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    # ─── Lifecycle ─────────────────────────────────────────

    async def connect(self, connection: Connection) -> None:
        """Track an authenticated, accepted connection and announce the user."""
        with self._lock:
            self._connections[connection.id] = connection

        previous, online = self.registry.register_replacing(
            connection.user.id, connection.id
        )

        # Broadcast first; closing the old socket can take a while.
        await self.broadcast(ONLINE_USERS, online)

        if self.evict_stale and previous and previous != connection.id:
            await self._evict(previous)

    async def disconnect(self, connection: Connection) -> None:
        """Forget a closed connection. Safe to call more than once."""
        with self._lock:
            self._connections.pop(connection.id, None)

        online = self.registry.unregister(connection.user.id, connection.id)
        if online is not None:
            await self.broadcast(ONLINE_USERS, online)

    async def _evict(self, connection_id: str) -> None:
        stale = self.get(connection_id)
        if stale is None:
            return
        logger.info(
            "hub.evicting_stale", connection_id=connection_id, user_id=stale.user.id
        )
        try:
            await stale.close(
                code=SUPERSEDED_CLOSE_CODE, reason="Superseded by a newer connection"
            )
        except Exception as e:
            logger.warning(
                "hub.evict_failed", connection_id=connection_id, error=str(e)
            )

    # ─── Delivery ──────────────────────────────────────────

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        """Push one event to one connection.

        Returns False when the connection closed between the registry
        lookup and now. Errors from the transport propagate.
        """
        connection = self.get(connection_id)
        if connection is None:
            return False
        await connection.send_event(event, data)
        return True

    async def broadcast(self, event: str, data: Any) -> None:
        """Send an event to every accepted connection, concurrently."""
        targets = self.connections()
        if not targets:
            return

        results = await asyncio.gather(
            *(c.send_event(event, data) for c in targets),
            return_exceptions=True,
        )
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "hub.broadcast_failed",
                    event_name=event,
                    connection_id=connection.id,
                    error=str(result),
                )
