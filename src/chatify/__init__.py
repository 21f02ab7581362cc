"""Chatify — real-time chat backend.

Users sign up, exchange text and image messages over a REST API, and
see who is online through a WebSocket presence channel. New messages
are pushed live to the receiver when they are connected.
"""

__version__ = "0.1.0"
