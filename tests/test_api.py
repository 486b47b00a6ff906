"""End-to-end HTTP tests against the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from quixdesk.infrastructure.mail import NotificationDispatcher
from quixdesk.main import app

from conftest import TEST_PASSWORD, FakeUploader, RecordingNotifier


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        app.state.media_uploader = FakeUploader()
        yield test_client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, name, email, role="user", token=None):
    response = client.post(
        "/auth/register",
        json={
            "name": name,
            "email": email,
            "password": TEST_PASSWORD,
            "confirm_password": TEST_PASSWORD,
            "role": role,
        },
        headers=bearer(token) if token else {},
    )
    return response


def login(client, email):
    response = client.post("/auth/login", json={"email": email, "password": TEST_PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


@pytest.fixture
def people(client):
    assert register(client, "Root", "root@example.com", role="admin").status_code == 201
    admin = login(client, "root@example.com")
    assert register(client, "Grace", "grace@example.com", role="employee", token=admin).status_code == 201
    assert register(client, "Ada", "ada@example.com").status_code == 201
    return {
        "admin": admin,
        "employee": login(client, "grace@example.com"),
        "user": login(client, "ada@example.com"),
    }


def submit(client, token, title="VPN drops", priority="high", image=None):
    files = {"image": image} if image else None
    response = client.post(
        "/tickets",
        data={
            "name": "Ada",
            "email": "ada@example.com",
            "category": "connectivity_issue",
            "priority": priority,
            "title": title,
            "description": "Disconnects every few minutes",
        },
        files=files,
        headers=bearer(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def employee_id(client, admin):
    employees = client.get("/employees", headers=bearer(admin)).json()["employees"]
    return employees[0]["id"]


class TestAccounts:

    def test_bootstrap_and_login(self, client, people):
        me = client.get("/auth/me", headers=bearer(people["user"]))
        assert me.status_code == 200
        assert me.json()["email"] == "ada@example.com"
        assert me.json()["role"] == "user"

    def test_second_admin_needs_admin(self, client, people):
        response = register(client, "Mallory", "mallory@example.com", role="admin")
        assert response.status_code == 403

    def test_duplicate_email(self, client, people):
        assert register(client, "Ada again", "ADA@example.com").status_code == 409

    def test_weak_password(self, client):
        response = client.post("/auth/register", json={
            "name": "Bob", "email": "bob@example.com",
            "password": "password", "confirm_password": "password",
        })
        assert response.status_code == 422

    def test_bad_login(self, client, people):
        response = client.post("/auth/login", json={"email": "ada@example.com", "password": "Wrong1!x"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/profile", headers={"X-Correlation-ID": "corr-1"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["correlation_id"] == "corr-1"
        assert body["detail"] and body["timestamp"]

    def test_profile_update_and_picture(self, client, people):
        response = client.patch("/profile", json={"name": "Ada L."}, headers=bearer(people["user"]))
        assert response.json()["name"] == "Ada L."

        response = client.post(
            "/profile/picture",
            files={"file": ("me.png", b"\x89PNG", "image/png")},
            headers=bearer(people["user"]),
        )
        assert response.json()["profile_picture"] == "https://cdn.example.com/me.png"

    def test_employee_admin_routes_forbidden_for_users(self, client, people):
        assert client.get("/employees", headers=bearer(people["user"])).status_code == 403

    def test_password_reset(self, client, people):
        recorder = RecordingNotifier()
        app.state.email_notifier = NotificationDispatcher(recorder)

        assert client.post("/auth/password-reset", json={"email": "nobody@example.com"}).status_code == 202
        assert client.post("/auth/password-reset", json={"email": "ada@example.com"}).status_code == 202
        client.portal.call(app.state.email_notifier.drain)
        assert [m["email"] for m in recorder.sent] == ["ada@example.com"]
        token = recorder.sent[0]["link"].split("token=", 1)[1]

        confirm = {"token": token, "new_password": "Fresh3@x", "confirm_password": "Fresh3@x"}
        assert client.post("/auth/password-reset/confirm", json=confirm).status_code == 204
        relogin = client.post("/auth/login", json={"email": "ada@example.com", "password": "Fresh3@x"})
        assert relogin.status_code == 200
        assert client.post("/auth/password-reset/confirm", json=confirm).status_code == 422

    def test_delete_own_account(self, client, people):
        assert client.delete("/profile", headers=bearer(people["user"])).status_code == 204
        assert client.get("/profile", headers=bearer(people["user"])).status_code == 401
        response = client.post("/auth/login", json={"email": "ada@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 401


class TestTicketLifecycle:

    def test_full_flow(self, client, people):
        admin, employee, user = people["admin"], people["employee"], people["user"]

        ticket = submit(client, user, image=("err.png", b"\x89PNG", "image/png"))
        ticket_id = ticket["id"]
        assert ticket["status"] == "open"
        assert ticket["image_url"] == "https://cdn.example.com/err.png"

        board = client.get("/tickets/board", headers=bearer(admin)).json()
        assert [t["id"] for t in board["unassigned"]] == [ticket_id]

        grace = employee_id(client, admin)
        assigned = client.post(f"/tickets/{ticket_id}/assign", json={"employee_id": grace}, headers=bearer(admin))
        assert assigned.status_code == 200
        assert assigned.json()["assignments"][0]["employee_name"] == "Grace"

        again = client.post(f"/tickets/{ticket_id}/assign", json={"employee_id": grace}, headers=bearer(admin))
        assert again.status_code == 409

        page = client.get("/tickets/assigned", headers=bearer(employee)).json()
        assert page["total"] == 1

        # Chat handshake
        waiting = client.post(f"/tickets/{ticket_id}/chat/request", headers=bearer(user)).json()
        assert waiting["user_waiting"] is True
        connected = client.post(f"/tickets/{ticket_id}/chat/connect", headers=bearer(employee)).json()
        assert connected["status"] == "answered"
        assert connected["employee_connected"] is True
        joined = client.post(f"/tickets/{ticket_id}/chat/join", headers=bearer(user)).json()
        assert joined["user_connected"] is True

        # Messages
        sent = client.post(f"/tickets/{ticket_id}/messages", json={"content": "Try reconnecting"}, headers=bearer(employee))
        assert sent.status_code == 201
        message_id = sent.json()["id"]

        history = client.get(f"/tickets/{ticket_id}/messages", headers=bearer(user)).json()
        assert history["total"] == 1
        read = client.post(f"/tickets/{ticket_id}/messages/read", headers=bearer(user)).json()
        assert read["count"] == 1

        reacted = client.put(f"/messages/{message_id}/reaction", json={"reaction": "👍"}, headers=bearer(user))
        assert reacted.json()["reaction"] == "👍"
        bad = client.put(f"/messages/{message_id}/reaction", json={"reaction": "🦄"}, headers=bearer(user))
        assert bad.status_code == 422

        counterpart = client.get(f"/tickets/{ticket_id}/counterpart", headers=bearer(user)).json()
        assert counterpart["user"]["name"] == "Grace"

        # Closure
        requested = client.post(f"/tickets/{ticket_id}/request-closure", headers=bearer(employee)).json()
        assert requested["status"] == "requested"
        closed = client.post(f"/tickets/{ticket_id}/confirm-closure", headers=bearer(user)).json()
        assert closed["status"] == "closed"
        assert closed["closed_by_name"] == "Grace"

        late = client.post(f"/tickets/{ticket_id}/messages", json={"content": "hi"}, headers=bearer(user))
        assert late.status_code == 409

        # Rating
        pending = client.get("/ratings/pending", headers=bearer(user)).json()
        assert pending["ticket_id"] == ticket_id
        rated = client.post(f"/tickets/{ticket_id}/rating", json={"rating": 5, "experience": "Great"}, headers=bearer(user))
        assert rated.status_code == 201
        assert rated.json()["employee_name"] == "Grace"
        assert client.post(f"/tickets/{ticket_id}/rating", json={"rating": 1}, headers=bearer(user)).status_code == 409
        assert client.get("/ratings/pending", headers=bearer(user)).json() is None

        feedback = client.get("/ratings/me", headers=bearer(employee)).json()
        assert feedback["average_rating"] == "5.0"

    def test_participants_only(self, client, people):
        ticket = submit(client, people["user"])
        register(client, "Eve", "eve@example.com")
        eve = login(client, "eve@example.com")

        assert client.get(f"/tickets/{ticket['id']}", headers=bearer(eve)).status_code == 403
        assert client.get("/tickets/not-a-ticket", headers=bearer(people["user"])).status_code == 404

    def test_invalid_form(self, client, people):
        response = client.post(
            "/tickets",
            data={"name": "Ada", "email": "not-an-email", "title": "x", "description": "y"},
            headers=bearer(people["user"]),
        )
        assert response.status_code == 422

    def test_search_and_delete(self, client, people):
        ticket = submit(client, people["user"], title="Printer jammed")
        found = client.get("/tickets/search", params={"q": "printer"}, headers=bearer(people["admin"])).json()
        assert [t["id"] for t in found] == [ticket["id"]]

        assert client.delete(f"/tickets/{ticket['id']}", headers=bearer(people["user"])).status_code == 204
        assert client.get("/tickets", headers=bearer(people["user"])).json()["total"] == 0

        other = submit(client, people["user"], title="Mouse double clicks")
        assert client.delete(f"/tickets/{other['id']}", headers=bearer(people["employee"])).status_code == 403
        assert client.delete(f"/tickets/{other['id']}", headers=bearer(people["admin"])).status_code == 204

    def test_moderation(self, client, people):
        admin = people["admin"]
        flagged = submit(client, people["user"], title="spam spam spam")
        submit(client, people["user"], title="Monitor dead")
        assert flagged["is_flagged"] is True
        assert flagged["flag_reason"] == 'Contains inappropriate content: "spam"'

        listing = client.get("/tickets/flagged", headers=bearer(admin)).json()
        assert [t["id"] for t in listing["tickets"]] == [flagged["id"]]
        assert client.get("/tickets/flagged", headers=bearer(people["user"])).status_code == 403

        run = client.post("/tickets/moderation/run", headers=bearer(admin)).json()
        assert run == {"analyzed": 0, "flagged": 0, "flagged_ids": []}

        overview = client.get("/analytics/overview", headers=bearer(admin)).json()
        assert overview["stats"]["flagged"] == 1


class TestAnalyticsAndAssistant:

    def test_overview_and_export(self, client, people):
        submit(client, people["user"], priority="critical")

        overview = client.get("/analytics/overview", params={"date_range": "last7days"}, headers=bearer(people["admin"]))
        assert overview.status_code == 200
        assert overview.json()["stats"]["total"] == 1
        assert overview.json()["stats"]["urgent"] == 1

        export = client.get("/analytics/export", params={"format": "csv"}, headers=bearer(people["admin"]))
        assert export.headers["content-type"].startswith("text/csv")
        assert "attachment" in export.headers["content-disposition"]
        assert "Total Tickets,1" in export.text

        assert client.get("/analytics/overview", headers=bearer(people["user"])).status_code == 403
        assert client.get("/analytics/overview", params={"date_range": "forever"}, headers=bearer(people["admin"])).status_code == 422

    def test_csr_and_profile_stats(self, client, people):
        submit(client, people["user"])
        csr = client.get("/analytics/csr", headers=bearer(people["employee"])).json()
        assert csr["unassigned_tickets"] == 1

        stats = client.get("/profile/stats", headers=bearer(people["user"])).json()
        assert stats["role"] == "user"
        assert stats["stats"]["open"] == 1

    def test_assistant(self, client, people):
        answer = client.post("/assistant/ask", json={"query": "How do I check my ticket?"}, headers=bearer(people["user"]))
        assert answer.json()["relevant"] is True
        assert answer.json()["reply"].endswith(".")

        off_topic = client.post("/assistant/ask", json={"query": "Best pizza in town?"}, headers=bearer(people["user"])).json()
        assert off_topic["relevant"] is False

        speech = client.post("/assistant/speak", json={"text": "Hello"}, headers=bearer(people["user"]))
        assert speech.status_code == 503


def test_health(client):
    response = client.get("/health")
    assert response.headers["X-Response-Time"].endswith("s")
    assert response.headers["X-Correlation-ID"]
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == "connected"
    assert body["checks"]["response_watch"] == "stopped"
    assert body["checks"]["llm_client"] == "available"
    assert body["checks"]["media"] == "configured"
    assert body["checks"]["email"] == "not_configured"
