"""Outbound WebSocket event names.

Learn: Centralizing event names as constants prevents typos — the
frontend listens for these exact strings.
"""

# Broadcast to every connection whenever the online set changes.
# Payload: list of user id strings, in registration order.
ONLINE_USERS = "getOnlineUsers"

# Sent to the receiver's connection only. Payload: the serialized message.
NEW_MESSAGE = "newMessage"
