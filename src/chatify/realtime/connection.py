"""Connection handles — one per accepted WebSocket.

Learn: The hub only talks to the abstract Connection. WebSocketConnection
is the production implementation; tests plug in a recording fake and
exercise the hub, router and registry without a socket.

Wire format for every outbound event:
    {"event": "<name>", "data": <payload>}
"""

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from chatify.auth.identity import UserIdentity


def new_connection_id() -> str:
    return uuid.uuid4().hex


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


class Connection(ABC):
    """An open, addressable channel to one client.

    `id` is unique for the lifetime of the connection. `user` is attached
    by the gate before the connection is accepted and never changes.
    """

    def __init__(self, user: UserIdentity, connection_id: str | None = None):
        self.id = connection_id or new_connection_id()
        self.user = user

    @abstractmethod
    async def send_event(self, event: str, data: Any) -> None:
        """Deliver one event. Raises if the channel is broken."""

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the channel from the server side."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} user={self.user.id}>"


class WebSocketConnection(Connection):
    """Connection backed by a Starlette/FastAPI WebSocket.

    Sends are serialized per connection — a broadcast and a direct push
    can race for the same socket from different tasks.
    """

    def __init__(self, websocket: WebSocket, user: UserIdentity):
        super().__init__(user)
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def send_event(self, event: str, data: Any) -> None:
        await self.send_text(encode_event(event, data))

    async def send_text(self, text: str) -> None:
        async with self._send_lock:
            await self.websocket.send_text(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        async with self._send_lock:
            await self.websocket.close(code=code, reason=reason)
