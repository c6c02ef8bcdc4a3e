"""Integration tests for direct messages, read tracking and conversations."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from snaptalk.database import SessionLocal
from snaptalk.models import Message


def _send(client, receiver, content: str, **extra):
    response = client.post("/api/messages", json={"receiver": str(receiver.id), "content": content, **extra})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_send_requires_friendship(authed_client, user_factory):
    alice = user_factory("alice")
    bob = user_factory("bob")

    response = authed_client(alice).post("/api/messages", json={"receiver": str(bob.id), "content": "hi"})

    assert response.status_code == 403
    assert response.json() == {"success": False, "message": "You can only send messages to friends"}


def test_send_to_unknown_user(authed_client, user_factory):
    alice = user_factory("alice")

    response = authed_client(alice).post("/api/messages", json={"receiver": str(uuid4()), "content": "hi"})

    assert response.status_code == 404


def test_send_to_self_is_allowed(authed_client, user_factory):
    alice = user_factory("alice")

    message = _send(authed_client(alice), alice, "note to self")

    assert message["sender"]["id"] == message["receiver"]["id"] == str(alice.id)


def test_send_rejects_blank_content(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)

    response = authed_client(alice).post("/api/messages", json={"receiverId": str(bob.id), "content": "   "})

    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Message content is required"


def test_client_id_makes_send_idempotent(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    client = authed_client(alice)

    first = _send(client, bob, "once", client_id="c-1")
    second = _send(client, bob, "once", client_id="c-1")

    assert first["id"] == second["id"]
    history = authed_client(bob).get(f"/api/messages/{alice.id}").json()
    assert history["pagination"]["total"] == 1


def test_unread_count_and_viewing_marks_read(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    _send(authed_client(alice), bob, "one")
    _send(authed_client(alice), bob, "two")
    _send(authed_client(bob), alice, "reply")

    bob_client = authed_client(bob)
    assert bob_client.get("/api/messages/unread/count").json()["unread_count"] == 2

    peek = bob_client.get(f"/api/messages/{alice.id}", params={"mark_read": "false"}).json()
    assert [message["content"] for message in peek["messages"]] == ["one", "two", "reply"]
    assert bob_client.get("/api/messages/unread/count").json()["unread_count"] == 2

    viewed = bob_client.get(f"/api/messages/{alice.id}").json()
    incoming = [message for message in viewed["messages"] if message["sender"]["id"] == str(alice.id)]
    assert all(message["is_read"] for message in incoming)
    assert bob_client.get("/api/messages/unread/count").json()["unread_count"] == 0

    # Bob's reply stays unread for Alice until she opens the conversation.
    assert authed_client(alice).get("/api/messages/unread/count").json()["unread_count"] == 1


def test_conversations_summaries_are_ordered_by_latest_message(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    carol = user_factory("carol")
    befriend(alice, bob)
    befriend(alice, carol)

    _send(authed_client(bob), alice, "from bob 1")
    _send(authed_client(bob), alice, "from bob 2")
    _send(authed_client(alice), carol, "to carol")
    _send(authed_client(carol), alice, "from carol")

    conversations = authed_client(alice).get("/api/messages/conversations").json()["conversations"]

    assert [row["user"]["username"] for row in conversations] == ["carol", "bob"]
    assert conversations[0]["last_message"]["content"] == "from carol"
    assert conversations[0]["unread_count"] == 1
    assert conversations[1]["last_message"]["content"] == "from bob 2"
    assert conversations[1]["unread_count"] == 2


def test_conversation_pagination_is_newest_page_first(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    client = authed_client(alice)
    for index in range(5):
        _send(client, bob, f"m{index}")

    latest = client.get(f"/api/messages/{bob.id}", params={"limit": 2}).json()
    older = client.get(f"/api/messages/{bob.id}", params={"limit": 2, "page": 2}).json()

    assert [message["content"] for message in latest["messages"]] == ["m3", "m4"]
    assert [message["content"] for message in older["messages"]] == ["m1", "m2"]
    assert latest["pagination"] == {"current": 1, "pages": 3, "total": 5}


def test_after_cursor_returns_only_newer_messages(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    client = authed_client(alice)
    sent = [_send(client, bob, f"m{index}") for index in range(4)]

    response = client.get(f"/api/messages/{bob.id}", params={"after": sent[1]["id"]})

    assert response.status_code == 200
    assert [message["content"] for message in response.json()["messages"]] == ["m2", "m3"]

    missing = client.get(f"/api/messages/{bob.id}", params={"after": str(uuid4())})
    assert missing.status_code == 404


def test_mark_read_only_by_receiver(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    message = _send(authed_client(alice), bob, "read me")

    forbidden = authed_client(alice).put(f"/api/messages/{message['id']}/read")
    assert forbidden.status_code == 403

    marked = authed_client(bob).put(f"/api/messages/{message['id']}/read")
    assert marked.status_code == 200
    data = marked.json()["data"]
    assert data["is_read"] is True
    assert data["read_at"] is not None

    again = authed_client(bob).put(f"/api/messages/{message['id']}/read")
    assert again.status_code == 200
    assert again.json()["data"]["is_read"] is True


def test_delete_only_by_sender(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    message = _send(authed_client(alice), bob, "oops")

    assert authed_client(bob).delete(f"/api/messages/{message['id']}").status_code == 403
    assert authed_client(alice).delete(f"/api/messages/{message['id']}").status_code == 200
    assert authed_client(alice).delete(f"/api/messages/{message['id']}").status_code == 404
    assert authed_client(bob).get("/api/messages/unread/count").json()["unread_count"] == 0


def test_equal_timestamps_follow_insertion_order(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    stamp = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    # Random ids must not decide the order of messages stored in the same instant.
    ids = sorted((uuid4() for _ in range(4)), reverse=True)
    with SessionLocal() as session:
        for index, message_id in enumerate(ids):
            session.add(
                Message(id=message_id, sender_id=alice.id, receiver_id=bob.id, content=f"m{index}", created_at=stamp)
            )
            session.flush()
        session.commit()

    client = authed_client(bob)
    history = client.get(f"/api/messages/{alice.id}", params={"mark_read": "false"}).json()
    assert [message["content"] for message in history["messages"]] == ["m0", "m1", "m2", "m3"]

    conversations = client.get("/api/messages/conversations").json()["conversations"]
    assert conversations[0]["last_message"]["content"] == "m3"

    newer = client.get(f"/api/messages/{alice.id}", params={"after": str(ids[0])}).json()
    assert [message["content"] for message in newer["messages"]] == ["m1", "m2", "m3"]
