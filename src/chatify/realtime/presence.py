"""Presence registry — who is online, and on which connection.

Learn: One entry per user: user_id → connection_id. A user is modeled as
having a single active connection. When the same user connects again,
the new connection OVERWRITES the old entry. The old connection is not
touched here; the hub decides whether to close it.

State per user:
    Absent ──register(c)──▶ Registered(c)
    Registered(c) ──register(c')──▶ Registered(c')
    Registered(c) ──unregister(c)──▶ Absent

unregister() takes the connection id and only removes the entry if it
still points at that connection. Otherwise a late disconnect from an old
connection would knock out the user's newer one.

Every mutation returns the online set captured inside the same critical
section, so a broadcast payload is always a consistent snapshot. The
caller sends it AFTER the lock is released — no I/O under the lock.
"""

import threading
from typing import Optional

import structlog

logger = structlog.get_logger()


class PresenceRegistry:
    """Thread-safe user → connection map.

    All operations are synchronous and short. A plain dict keeps
    registration order, which is the order of the online list.
    """

    def __init__(self):
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, connection_id: str) -> list[str]:
        """Insert or overwrite the user's entry. Returns the new online set."""
        _, online = self.register_replacing(user_id, connection_id)
        return online

    def register_replacing(
        self, user_id: str, connection_id: str
    ) -> tuple[Optional[str], list[str]]:
        """Like register(), but also return the connection id that was replaced."""
        with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = connection_id
            online = list(self._entries)

        if previous is not None and previous != connection_id:
            logger.info(
                "presence.replaced",
                user_id=user_id,
                connection_id=connection_id,
                previous_connection_id=previous,
            )
        else:
            logger.info(
                "presence.registered", user_id=user_id, connection_id=connection_id
            )
        return previous, online

    def unregister(
        self, user_id: str, connection_id: Optional[str] = None
    ) -> Optional[list[str]]:
        """Remove the user's entry.

        With connection_id, only if the entry still points at it. Returns
        the new online set, or None if nothing changed (never registered,
        already gone, or a newer connection owns the entry).
        """
        with self._lock:
            current = self._entries.get(user_id)
            if current is None:
                return None
            if connection_id is not None and current != connection_id:
                stale = True
            else:
                stale = False
                del self._entries[user_id]
                online = list(self._entries)

        if stale:
            logger.debug(
                "presence.stale_disconnect",
                user_id=user_id,
                connection_id=connection_id,
                current_connection_id=current,
            )
            return None

        logger.info("presence.unregistered", user_id=user_id, connection_id=current)
        return online

    def lookup(self, user_id: str) -> Optional[str]:
        """The user's active connection id, or None."""
        with self._lock:
            return self._entries.get(user_id)

    def snapshot(self) -> list[str]:
        """The online set: registered user ids in registration order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._entries
