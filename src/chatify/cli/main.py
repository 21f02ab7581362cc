"""Chatify CLI — talk to a running Chatify server from the terminal.

Usage:
    chatify serve                                # Run the API + WebSocket server
    chatify signup "Ada Lovelace" ada@example.com
    chatify login ada@example.com                # Prints a token; export it as CHATIFY_TOKEN
    chatify me                                   # Who am I
    chatify contacts                             # Everyone you could message
    chatify chats                                # People you've talked to
    chatify history <user-id>                    # A conversation, oldest first
    chatify send <user-id> "hi"                  # Send a message
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("CHATIFY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Chatify backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _require_token(token: Optional[str]) -> str:
    """Resolve the auth token from --token or CHATIFY_TOKEN."""
    tok = token or os.environ.get("CHATIFY_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set CHATIFY_TOKEN; get one with `chatify login`)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _check(r: httpx.Response) -> None:
    """Exit with the server's error detail on a non-2xx response."""
    if r.is_success:
        return
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_users(users: list[dict]) -> None:
    if not users:
        click.echo("(none)")
        return
    for u in users:
        click.echo(f"  {u['id']}  {u['full_name']:24s}  {u['email']}")


token_option = click.option(
    "--token", "-k", help="Auth token (or set CHATIFY_TOKEN)"
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="chatify")
def main():
    """Chatify — real-time chat from the command line."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: CHATIFY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: CHATIFY_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the Chatify server with uvicorn."""
    import uvicorn

    from chatify.config import settings

    uvicorn.run(
        "chatify.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.environment == "development",
    )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@main.command()
@click.argument("full_name")
@click.argument("email")
@click.password_option()
def signup(full_name: str, email: str, password: str):
    """Create an account and print its token."""
    _run(_signup_impl(full_name, email, password))


async def _signup_impl(full_name: str, email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/signup", json={
            "full_name": full_name,
            "email": email,
            "password": password,
        })
        _check(r)
        user = r.json()
        click.secho(f"Welcome, {user['full_name']}! Your id is {user['id']}", fg="green")
        click.echo(r.cookies.get("jwt", ""))


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
def login(email: str, password: str):
    """Log in and print the token (export it as CHATIFY_TOKEN)."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/login", json={"email": email, "password": password})
        _check(r)
        token = r.cookies.get("jwt")
        if not token:
            click.secho("Login succeeded but no token cookie was returned", fg="red", err=True)
            sys.exit(1)
        click.echo(token)


@main.command()
@token_option
def me(token: Optional[str]):
    """Show the logged-in user."""
    _run(_get_and_print("/api/v1/auth/check", _require_token(token)))


async def _get_and_print(path: str, token: str):
    async with _client(token) as c:
        r = await c.get(path)
        _check(r)
        click.echo(_pretty_json(r.json()))


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------


@main.command()
@token_option
def contacts(token: Optional[str]):
    """List every other user."""
    _run(_users_impl("/api/v1/messages/contacts", _require_token(token), "Contacts"))


@main.command()
@token_option
def chats(token: Optional[str]):
    """List users you've exchanged messages with."""
    _run(_users_impl("/api/v1/messages/chats", _require_token(token), "Chats"))


async def _users_impl(path: str, token: str, title: str):
    async with _client(token) as c:
        r = await c.get(path)
        _check(r)
        users = r.json()
        click.secho(f"{title} ({len(users)}):", bold=True)
        _print_users(users)


@main.command()
@click.argument("user_id")
@token_option
def history(user_id: str, token: Optional[str]):
    """Show the conversation with USER_ID, oldest first."""
    _run(_history_impl(user_id, _require_token(token)))


async def _history_impl(user_id: str, token: str):
    async with _client(token) as c:
        r = await c.get(f"/api/v1/messages/{user_id}")
        _check(r)
        messages = r.json()
        if not messages:
            click.echo("No messages yet.")
            return
        for m in messages:
            who = "them" if m["sender_id"] == user_id else "you"
            line = m.get("text") or ""
            if m.get("image"):
                line = f"{line} [image: {m['image']}]".strip()
            click.echo(f"  [{m['created_at'][:19]}] {who:>4s}: {line}")


@main.command()
@click.argument("user_id")
@click.argument("text", required=False)
@click.option("--image", help="Image URL or data URI to attach")
@token_option
def send(user_id: str, text: Optional[str], image: Optional[str], token: Optional[str]):
    """Send TEXT (and/or --image) to USER_ID."""
    if not text and not image:
        click.secho("Error: give a TEXT argument or --image", fg="red", err=True)
        sys.exit(1)
    _run(_send_impl(user_id, text, image, _require_token(token)))


async def _send_impl(user_id: str, text: Optional[str], image: Optional[str], token: str):
    async with _client(token) as c:
        body: dict = {}
        if text:
            body["text"] = text
        if image:
            body["image"] = image
        r = await c.post(f"/api/v1/messages/send/{user_id}", json=body)
        _check(r)
        msg = r.json()
        click.secho(f"Sent message #{msg['id']}", fg="green")


if __name__ == "__main__":
    main()
