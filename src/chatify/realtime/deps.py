"""FastAPI dependencies for the real-time components.

Learn: The hub lives on app.state (built in create_app), not in a module
global, so each app instance — and each test — gets its own registry.
HTTPConnection works for both HTTP requests and WebSocket handshakes.
"""

from fastapi import Depends
from starlette.requests import HTTPConnection

from chatify.auth.dependencies import get_identity_verifier
from chatify.auth.identity import IdentityVerifier
from chatify.realtime.gate import ConnectionGate
from chatify.realtime.hub import RealtimeHub
from chatify.realtime.router import EventRouter


def get_hub(connection: HTTPConnection) -> RealtimeHub:
    return connection.app.state.hub


def get_event_router(hub: RealtimeHub = Depends(get_hub)) -> EventRouter:
    return EventRouter(hub)


def get_connection_gate(
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> ConnectionGate:
    return ConnectionGate(verifier)
