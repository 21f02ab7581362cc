"""Authentication.

Learn: One credential, two transports. Signup/login issue a JWT and set it
as the `jwt` cookie. The same token authenticates:
1. REST requests → get_current_user dependency (cookie or Bearer header)
2. WebSocket handshakes → realtime.gate.ConnectionGate (raw Cookie header)

Both paths resolve the token through IdentityVerifier, so there is exactly
one definition of "who is this".
"""
