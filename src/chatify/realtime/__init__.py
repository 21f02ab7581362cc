"""Real-time infrastructure — presence + WebSocket delivery.

Learn: Three pieces, each testable without a network:
1. PresenceRegistry — user id → connection id, one entry per user
2. ConnectionGate — authenticates the handshake before accept()
3. EventRouter — pushes a freshly persisted message to its receiver

RealtimeHub ties them to live connections and does the fan-out. It is
built once in create_app() and stored on app.state; handlers get it
through the dependencies in realtime.deps.
"""
