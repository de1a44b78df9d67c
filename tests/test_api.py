from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import main
from database import Notification, User, get_db
from dispatcher import NotificationService
from live import topic_for


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = override_get_db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def register(client, username="alice", password="s3cret-pass"):
    response = client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def user_id(db, username):
    return db.query(User).filter(User.username == username).one().id


def test_register_login_and_duplicate(client, db):
    register(client)

    stored = db.query(User).one()
    assert stored.password_hash != "s3cret-pass"

    ok = client.post("/auth/login", json={"username": "alice", "password": "s3cret-pass"})
    assert ok.status_code == 200
    assert ok.json()["token_type"] == "bearer"

    bad = client.post("/auth/login", json={"username": "alice", "password": "wrong-pass"})
    assert bad.status_code == 401

    again = client.post(
        "/auth/register",
        json={"username": "alice", "email": "other@example.com", "password": "s3cret-pass"},
    )
    assert again.status_code == 400


def test_requests_need_a_valid_token(client):
    assert client.get("/api/budgets").status_code == 401
    assert client.get("/api/budgets", headers=auth("not-a-token")).status_code == 401


def test_budget_list_reports_fresh_spend(client):
    token = register(client)
    today = date.today().isoformat()

    created = client.post(
        "/api/budgets", json={"category": "Food", "limit_amount": "5000"}, headers=auth(token)
    )
    assert created.status_code == 201
    assert created.json()["month"] == date.today().replace(day=1).isoformat()

    duplicate = client.post(
        "/api/budgets", json={"category": "food", "limit_amount": "10"}, headers=auth(token)
    )
    assert duplicate.status_code == 400

    for amount in ("4000", "600"):
        response = client.post(
            "/api/expenses",
            json={"category": "food", "amount": amount, "date": today},
            headers=auth(token),
        )
        assert response.status_code == 201

    budgets = client.get("/api/budgets", headers=auth(token)).json()
    assert len(budgets) == 1
    assert Decimal(budgets[0]["spent_amount"]) == Decimal("4600")

    expenses = client.get("/api/expenses", headers=auth(token)).json()
    assert len(expenses) == 2


def test_notifications_list_and_mark_read(client, session_factory, db):
    alice_token = register(client, "alice")
    bob_token = register(client, "bob")
    alice_id = user_id(db, "alice")

    service = NotificationService(session_factory, main.hub)
    first = service.create_notification(alice_id, "alice@example.com", "Budget nearing limit: Food", "b1")
    service.create_notification(alice_id, "alice@example.com", "Budget exceeded: Food", "b2")

    listed = client.get("/api/notifications", headers=auth(alice_token)).json()
    assert [n["title"] for n in listed] == ["Budget exceeded: Food", "Budget nearing limit: Food"]
    assert client.get("/api/notifications", headers=auth(bob_token)).json() == []

    assert client.post(f"/api/notifications/{first.id}/read", headers=auth(bob_token)).status_code == 404
    assert client.post(f"/api/notifications/{first.id}/read", headers=auth(alice_token)).status_code == 200

    unread = client.get("/api/notifications/unread", headers=auth(alice_token)).json()
    assert [n["title"] for n in unread] == ["Budget exceeded: Food"]
    db.expire_all()
    assert db.get(Notification, first.id).read_flag is True


def test_websocket_receives_live_notifications(client, db):
    token = register(client)
    topic = topic_for(user_id(db, "alice"))

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        assert ws.receive_json() == {"type": "subscribed", "topic": topic}
        payload = {"id": 1, "title": "Budget exceeded: Food", "body": "b", "createdAt": None, "userEmail": "alice@example.com"}
        assert main.hub.publish(topic, payload) == 1
        assert ws.receive_json() == payload


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/notifications?token=bogus") as ws:
            ws.receive_json()
