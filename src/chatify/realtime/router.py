"""Event router — push a new message to its receiver, if they're online.

Learn: This is best-effort, at-most-once delivery. The message is already
committed when we get here; the database is the source of truth. If the
receiver isn't connected, or the push fails, nothing is lost — the client
picks the message up on its next conversation fetch. So there is no retry,
and no error ever reaches the REST caller.
"""

from typing import Any

import structlog

from chatify.realtime.events import NEW_MESSAGE
from chatify.realtime.hub import RealtimeHub

logger = structlog.get_logger()


class EventRouter:
    """Routes persisted messages to the receiver's single connection."""

    def __init__(self, hub: RealtimeHub):
        self.hub = hub

    async def deliver_new_message(self, receiver_id: str, payload: dict[str, Any]) -> bool:
        """Push `newMessage` to the receiver. Returns True if it was sent."""
        connection_id = self.hub.registry.lookup(receiver_id)
        if connection_id is None:
            logger.debug("router.receiver_offline", receiver_id=receiver_id)
            return False

        try:
            sent = await self.hub.send(connection_id, NEW_MESSAGE, payload)
        except Exception:
            logger.exception(
                "router.push_failed",
                receiver_id=receiver_id,
                connection_id=connection_id,
                message_id=payload.get("id"),
            )
            return False

        if sent:
            logger.info(
                "router.delivered",
                receiver_id=receiver_id,
                connection_id=connection_id,
                message_id=payload.get("id"),
            )
        return sent
