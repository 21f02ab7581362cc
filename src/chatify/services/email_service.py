"""Welcome email — sent through the Resend HTTP API after signup.

Learn: The email is a side effect of signup, never part of it. The signup
route schedules send_welcome_email_in_background() as a FastAPI background
task after the user row is committed and the response is built. If Resend
is down or not configured, the failure is logged and that's it.
"""

import html
import re
from typing import Optional

import httpx
import structlog

from chatify.config import settings

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"
FALLBACK_FROM_EMAIL = "onboarding@resend.dev"
FALLBACK_FROM_NAME = "Chatify"

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails a send."""


def sender_field(email: Optional[str], name: Optional[str]) -> str:
    """Build the From header, falling back to safe defaults."""
    from_email = email if email and _EMAIL_PATTERN.match(email) else FALLBACK_FROM_EMAIL
    from_name = name or FALLBACK_FROM_NAME
    return f"{from_name} <{from_email}>"


def welcome_email_html(name: str, client_url: str) -> str:
    name = html.escape(name)
    client_url = html.escape(client_url, quote=True)
    return f"""\
<!DOCTYPE html>
<html lang="en">
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #0b5cad;">Welcome to Chatify!</h1>
    <p>Hello <strong>{name}</strong>,</p>
    <p>Your account is ready. Find your friends, start a conversation,
    and see who's online in real time.</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{client_url}" style="background: #0b5cad; color: #fff; padding: 12px 28px;
         border-radius: 24px; text-decoration: none;">Open Chatify</a>
    </p>
    <p>Happy chatting!<br>The Chatify Team</p>
  </body>
</html>
"""


async def send_welcome_email(
    email: str,
    name: str,
    client_url: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Optional[str]:
    """Send the welcome email. Returns the provider's message id.

    Returns None (and logs) when no API key is configured.
    Raises EmailDeliveryError when the provider refuses the send.
    """
    if not settings.resend_api_key:
        logger.warning("email.skipped", reason="CHATIFY_RESEND_API_KEY not set", to=email)
        return None

    from_field = sender_field(settings.email_from, settings.email_from_name)
    body = {
        "from": from_field,
        "to": [email],
        "subject": "Welcome to Chatify!",
        "html": welcome_email_html(name, client_url),
    }

    try:
        async with httpx.AsyncClient(timeout=15.0, transport=transport) as client:
            r = await client.post(
                RESEND_API_URL,
                json=body,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            )
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Email request failed: {e}") from e

    if r.status_code >= 400:
        logger.error(
            "email.rejected", status=r.status_code, from_field=from_field, body=r.text[:200]
        )
        raise EmailDeliveryError("Failed to send welcome email")

    message_id = r.json().get("id")
    logger.info("email.welcome_sent", to=email, message_id=message_id)
    return message_id


async def send_welcome_email_in_background(email: str, name: str, client_url: str) -> None:
    """Background-task wrapper: a failed welcome email must not surface anywhere."""
    try:
        await send_welcome_email(email, name, client_url)
    except Exception:
        logger.exception("email.welcome_failed", to=email)
