"""
Tests for POST /messages and GET /messages/{user_id}.

Tests cover:
- Sending messages, anonymous and not
- Inbox visibility: sender hidden for anonymous messages
- Only the recipient may read their inbox (403)
- Newest-first ordering with a deterministic tiebreak
- Validation of missing fields (400)
"""

import pytest

from app.models import Message
from app.storage import SessionLocal


def send(client, sender: dict, to_user: int, body: str, anonymous: bool = False):
    return client.post(
        "/messages",
        json={"to_user": to_user, "body": body, "anonymous": anonymous},
        headers={"Authorization": f"Bearer {sender['token']}"},
    )


def inbox(client, user: dict, user_id: int = None):
    if user_id is None:
        user_id = user["user"]["id"]
    return client.get(f"/messages/{user_id}", headers={"Authorization": f"Bearer {user['token']}"})


@pytest.fixture
def alice_and_bob(client, register):
    alice = register("+15550001", "pw1")
    bob = register("+15550002", "pw2")
    return alice, bob


class TestSendMessage:
    """Test POST /messages."""

    def test_send_returns_id(self, client, alice_and_bob):
        alice, bob = alice_and_bob

        response = send(client, bob, alice["user"]["id"], "hello")

        assert response.status_code == 200
        assert response.json() == {"id": 1}

    def test_requires_token(self, client, alice_and_bob):
        alice, _ = alice_and_bob

        response = client.post("/messages", json={"to_user": alice["user"]["id"], "body": "hi"})

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            {"body": "hi"},
            {"to_user": 1},
            {"to_user": 1, "body": ""},
            {"to_user": 0, "body": "hi"},
            {},
        ],
    )
    def test_missing_fields(self, client, alice_and_bob, body, auth_headers):
        _, bob = alice_and_bob

        response = client.post("/messages", json=body, headers=auth_headers(bob["token"]))

        assert response.status_code == 400
        assert "error" in response.json()

    def test_non_integer_recipient_rejected(self, client, alice_and_bob, auth_headers):
        _, bob = alice_and_bob

        response = client.post(
            "/messages",
            json={"to_user": "alice", "body": "hi"},
            headers=auth_headers(bob["token"]),
        )

        assert response.status_code == 400

    def test_anonymous_defaults_to_false(self, client, alice_and_bob, auth_headers):
        alice, bob = alice_and_bob

        client.post(
            "/messages",
            json={"to_user": alice["user"]["id"], "body": "hi"},
            headers=auth_headers(bob["token"]),
        )

        [message] = inbox(client, alice).json()
        assert message["anonymous"] is False
        assert message["from"] == bob["user"]["id"]

    def test_sender_always_stored(self, client, alice_and_bob):
        """Anonymity hides the sender on read; the row still records it."""
        alice, bob = alice_and_bob

        message_id = send(client, bob, alice["user"]["id"], "psst", anonymous=True).json()["id"]

        with SessionLocal() as db:
            row = db.get(Message, message_id)
            assert row.from_user == bob["user"]["id"]
            assert row.anonymous is True

    def test_unknown_recipient_accepted(self, client, alice_and_bob):
        """Recipient ids are not checked against existing users."""
        _, bob = alice_and_bob

        response = send(client, bob, 999, "anyone there?")

        assert response.status_code == 200


class TestListMessages:
    """Test GET /messages/{user_id}."""

    def test_example_scenario(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        assert alice["user"]["id"] == 1
        assert bob["user"]["id"] == 2

        assert send(client, bob, 1, "hi", anonymous=True).json() == {"id": 1}

        response = inbox(client, alice)

        assert response.status_code == 200
        [message] = response.json()
        assert message["id"] == 1
        assert message["from"] is None
        assert message["anonymous"] is True
        assert message["body"] == "hi"
        assert message["created_at"]

    def test_non_anonymous_shows_sender(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        send(client, bob, alice["user"]["id"], "it's bob")

        [message] = inbox(client, alice).json()

        assert message["from"] == bob["user"]["id"]
        assert message["anonymous"] is False

    def test_view_fields(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        send(client, bob, alice["user"]["id"], "hi")

        [message] = inbox(client, alice).json()

        assert set(message) == {"id", "from", "anonymous", "body", "created_at"}

    def test_other_users_inbox_forbidden(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        send(client, alice, bob["user"]["id"], "for bob only")

        response = inbox(client, alice, user_id=bob["user"]["id"])

        assert response.status_code == 403
        assert response.json() == {"error": "forbidden"}

    def test_requires_token(self, client, alice_and_bob):
        alice, _ = alice_and_bob

        response = client.get(f"/messages/{alice['user']['id']}")

        assert response.status_code == 401

    def test_only_messages_to_caller(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        send(client, bob, alice["user"]["id"], "to alice")
        send(client, alice, bob["user"]["id"], "to bob")

        bodies = [message["body"] for message in inbox(client, alice).json()]

        assert bodies == ["to alice"]

    def test_empty_inbox(self, client, alice_and_bob):
        alice, _ = alice_and_bob

        response = inbox(client, alice)

        assert response.status_code == 200
        assert response.json() == []

    def test_newest_first(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        with SessionLocal() as db:
            db.add_all([
                Message(from_user=bob["user"]["id"], to_user=1, body="old", created_at="2025-01-15T10:00:00.000Z"),
                Message(from_user=bob["user"]["id"], to_user=1, body="new", created_at="2025-01-15T10:05:00.000Z"),
                Message(from_user=bob["user"]["id"], to_user=1, body="mid", created_at="2025-01-15T10:01:00.000Z"),
            ])
            db.commit()

        bodies = [message["body"] for message in inbox(client, alice).json()]

        assert bodies == ["new", "mid", "old"]

    def test_equal_timestamps_ordered_by_id(self, client, alice_and_bob):
        alice, bob = alice_and_bob
        with SessionLocal() as db:
            for body in ("first", "second", "third"):
                db.add(Message(from_user=bob["user"]["id"], to_user=1, body=body, created_at="2025-01-15T10:00:00.000Z"))
                db.flush()
            db.commit()

        messages = inbox(client, alice).json()

        assert [message["body"] for message in messages] == ["first", "second", "third"]
        ids = [message["id"] for message in messages]
        assert ids == sorted(ids)
