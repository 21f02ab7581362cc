"""Tests for the message API and its hand-off to live delivery."""

import uuid

import pytest

from chatify.auth.identity import UserIdentity
from chatify.realtime.events import NEW_MESSAGE
from chatify.schemas.message import IMAGE_DATA_MAX_LENGTH

CONTACTS = "/api/v1/messages/contacts"
CHATS = "/api/v1/messages/chats"


def _send_url(user) -> str:
    return f"/api/v1/messages/send/{user.id}"


def _conversation_url(user) -> str:
    return f"/api/v1/messages/{user.id}"


@pytest.fixture()
def connect_user(hub, make_connection):
    """Put a user online with a recording connection."""

    async def _connect(user):
        connection = make_connection(UserIdentity.from_user(user))
        await hub.connect(connection)
        return connection

    return _connect


# ─── Sending ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_text_message(client, make_user):
    alice, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")

    r = await client.post(_send_url(bob), json={"text": "hi bob"}, headers=alice_h)

    assert r.status_code == 201
    data = r.json()
    assert data["sender_id"] == str(alice.id)
    assert data["receiver_id"] == str(bob.id)
    assert data["text"] == "hi bob"
    assert data["image"] is None
    assert isinstance(data["id"], int)


@pytest.mark.asyncio
async def test_send_trims_text(client, make_user):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")

    r = await client.post(_send_url(bob), json={"text": "   hello   "}, headers=alice_h)

    assert r.status_code == 201
    assert r.json()["text"] == "hello"


@pytest.mark.asyncio
async def test_send_text_length_limit(client, make_user):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")

    ok = await client.post(_send_url(bob), json={"text": "x" * 2000}, headers=alice_h)
    too_long = await client.post(_send_url(bob), json={"text": "x" * 2001}, headers=alice_h)

    assert ok.status_code == 201
    assert too_long.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"text": ""}, {"text": "   "}, {"image": ""}])
async def test_send_requires_text_or_image(client, make_user, body):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")

    r = await client.post(_send_url(bob), json=body, headers=alice_h)

    assert r.status_code == 400
    assert r.json()["detail"] == "Text or image is required."


@pytest.mark.asyncio
async def test_cannot_message_yourself(client, make_user):
    alice, alice_h = await make_user("Alice")

    r = await client.post(_send_url(alice), json={"text": "me"}, headers=alice_h)

    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot send messages to yourself."


@pytest.mark.asyncio
async def test_send_to_unknown_user(client, make_user):
    _, alice_h = await make_user("Alice")

    r = await client.post(
        f"/api/v1/messages/send/{uuid.uuid4()}", json={"text": "hello?"}, headers=alice_h
    )

    assert r.status_code == 404
    assert r.json()["detail"] == "Receiver not found."


@pytest.mark.asyncio
async def test_send_requires_auth(client, make_user):
    bob, _ = await make_user("Bob")

    r = await client.post(_send_url(bob), json={"text": "hi"})

    assert r.status_code == 401


@pytest.mark.asyncio
async def test_send_image_is_uploaded(client, make_user, image_host):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")

    r = await client.post(
        _send_url(bob), json={"image": "data:image/png;base64,AAAA"}, headers=alice_h
    )

    assert r.status_code == 201
    assert r.json()["image"] == "https://images.test/1.png"
    assert r.json()["text"] is None


@pytest.mark.asyncio
async def test_send_image_upload_failure_persists_nothing(client, make_user, image_host):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")
    image_host.fail = True

    r = await client.post(
        _send_url(bob), json={"text": "look", "image": "data:image/png;base64,AAAA"},
        headers=alice_h,
    )
    assert r.status_code == 502

    history = await client.get(_conversation_url(bob), headers=alice_h)
    assert history.json() == []


@pytest.mark.asyncio
async def test_invalid_send_does_not_upload(client, make_user, image_host):
    alice, alice_h = await make_user("Alice")

    r = await client.post(
        _send_url(alice), json={"image": "data:image/png;base64,AAAA"}, headers=alice_h
    )

    assert r.status_code == 400
    assert image_host.uploads == []


# ─── Reading ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_conversation_in_order_from_both_sides(client, make_user):
    alice, alice_h = await make_user("Alice")
    bob, bob_h = await make_user("Bob")
    carol, carol_h = await make_user("Carol")

    await client.post(_send_url(bob), json={"text": "1"}, headers=alice_h)
    await client.post(_send_url(alice), json={"text": "2"}, headers=bob_h)
    await client.post(_send_url(bob), json={"text": "not in this chat"}, headers=carol_h)
    await client.post(_send_url(bob), json={"text": "3"}, headers=alice_h)

    r = await client.get(_conversation_url(bob), headers=alice_h)
    assert [m["text"] for m in r.json()] == ["1", "2", "3"]

    r = await client.get(_conversation_url(alice), headers=bob_h)
    assert [m["text"] for m in r.json()] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_contacts_excludes_self(client, make_user):
    alice, alice_h = await make_user("Alice")
    await make_user("Bob")
    await make_user("Carol")

    r = await client.get(CONTACTS, headers=alice_h)

    assert r.status_code == 200
    names = [u["full_name"] for u in r.json()]
    assert names == ["Bob", "Carol"]
    assert all("password_hash" not in u for u in r.json())


@pytest.mark.asyncio
async def test_chat_partners(client, make_user):
    alice, alice_h = await make_user("Alice")
    bob, bob_h = await make_user("Bob")
    carol, _ = await make_user("Carol")
    await make_user("Dave")

    await client.post(_send_url(alice), json={"text": "hey"}, headers=bob_h)
    await client.post(_send_url(carol), json={"text": "yo"}, headers=alice_h)
    await client.post(_send_url(carol), json={"text": "again"}, headers=alice_h)

    r = await client.get(CHATS, headers=alice_h)

    assert [u["full_name"] for u in r.json()] == ["Bob", "Carol"]


@pytest.mark.asyncio
async def test_no_chats_yet(client, make_user):
    _, alice_h = await make_user("Alice")

    r = await client.get(CHATS, headers=alice_h)

    assert r.json() == []


# ─── Live delivery ──────────────────────────────────────


@pytest.mark.asyncio
async def test_send_pushes_to_online_receiver_only(client, make_user, connect_user):
    alice, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")
    carol, _ = await make_user("Carol")
    alice_conn = await connect_user(alice)
    bob_conn = await connect_user(bob)
    carol_conn = await connect_user(carol)

    r = await client.post(_send_url(bob), json={"text": "live!"}, headers=alice_h)

    assert r.status_code == 201
    assert bob_conn.received(NEW_MESSAGE) == [r.json()]
    assert alice_conn.received(NEW_MESSAGE) == []
    assert carol_conn.received(NEW_MESSAGE) == []


@pytest.mark.asyncio
async def test_send_to_offline_receiver_still_persists(client, make_user, hub):
    _, alice_h = await make_user("Alice")
    bob, bob_h = await make_user("Bob")
    assert len(hub.registry) == 0

    r = await client.post(_send_url(bob), json={"text": "later"}, headers=alice_h)

    assert r.status_code == 201
    history = await client.get(f"/api/v1/messages/{r.json()['sender_id']}", headers=bob_h)
    assert [m["text"] for m in history.json()] == ["later"]


@pytest.mark.asyncio
async def test_push_failure_does_not_fail_send(client, make_user, hub, make_connection):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")
    await hub.connect(make_connection(UserIdentity.from_user(bob), fail=True))

    r = await client.post(_send_url(bob), json={"text": "into the void"}, headers=alice_h)

    assert r.status_code == 201


@pytest.mark.asyncio
async def test_send_image_size_limit(client, make_user, image_host):
    _, alice_h = await make_user("Alice")
    bob, _ = await make_user("Bob")
    huge = "data:image/png;base64," + "A" * IMAGE_DATA_MAX_LENGTH

    r = await client.post(_send_url(bob), json={"image": huge}, headers=alice_h)

    assert r.status_code == 422
    assert image_host.uploads == []
