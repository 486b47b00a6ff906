"""Tests for the /ws endpoint."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from quixdesk.main import app
from quixdesk.realtime.websocket_routes import AUTH_FAILED_CLOSE_CODE

from test_api import bearer, login, register, submit


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def tokens(client):
    register(client, "Root", "root@example.com", role="admin")
    register(client, "Ada", "ada@example.com")
    register(client, "Eve", "eve@example.com")
    return {
        "admin": login(client, "root@example.com"),
        "user": login(client, "ada@example.com"),
        "other": login(client, "eve@example.com"),
    }


@pytest.mark.parametrize("query", ["", "?token=not-a-jwt"])
def test_rejects_bad_token(client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws{query}") as ws:
            ws.receive_json()
    assert exc.value.code == AUTH_FAILED_CLOSE_CODE


def test_ping_and_subscribe(client, tokens):
    ticket = submit(client, tokens["user"])

    with client.websocket_connect(f"/ws?token={tokens['user']}") as ws:
        assert ws.receive_json()["type"] == "connected"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_json({"type": "subscribe", "ticket_id": ticket["id"]})
        subscribed = ws.receive_json()
        assert subscribed == {**subscribed, "type": "subscribed", "data": {"ticket_id": ticket["id"]}}

        client.post(f"/tickets/{ticket['id']}/messages", json={"content": "Any news?"}, headers=bearer(tokens["user"]))
        event = ws.receive_json()
        assert event["type"] == "message.created"
        assert event["data"]["content"] == "Any news?"

        ws.send_json({"type": "unsubscribe", "ticket_id": ticket["id"]})
        assert ws.receive_json()["type"] == "unsubscribed"


def test_frame_errors(client, tokens):
    ticket = submit(client, tokens["user"])

    with client.websocket_connect(f"/ws?token={tokens['other']}") as ws:
        ws.receive_json()

        ws.send_json({"type": "subscribe", "ticket_id": ticket["id"]})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "typing", "ticket_id": ticket["id"]})
        assert ws.receive_json()["data"]["message"].startswith("Subscribe")

        ws.send_json({"type": "dance"})
        assert ws.receive_json()["data"]["message"] == "Unknown message type: dance"

        ws.send_text("not json")
        assert ws.receive_json()["data"]["message"] == "Frames must be JSON objects"


def test_admin_receives_new_tickets(client, tokens):
    with client.websocket_connect(f"/ws?token={tokens['admin']}") as ws:
        ws.receive_json()
        stats = client.get("/ws/stats", headers=bearer(tokens["admin"])).json()
        assert stats["connections_by_role"]["admin"] >= 1

        submit(client, tokens["user"], title="Screen flickers")
        event = ws.receive_json()
        assert event["type"] == "ticket.created"
        assert event["data"]["title"] == "Screen flickers"


def test_typing_flag_must_be_boolean(client, tokens):
    ticket = submit(client, tokens["user"])

    with client.websocket_connect(f"/ws?token={tokens['user']}") as ws:
        ws.receive_json()
        ws.send_json({"type": "subscribe", "ticket_id": ticket["id"]})
        assert ws.receive_json()["type"] == "subscribed"

        ws.send_json({"type": "typing", "ticket_id": ticket["id"], "is_typing": "false"})
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["data"]["message"] == "is_typing must be true or false"

        # Accepted updates are not echoed back to the typist
        ws.send_json({"type": "typing", "ticket_id": ticket["id"], "is_typing": False})
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"
