import json

from app.rhub.db import session_scope
from app.rhub.models import AuditEvent, User


def _register(client, **overrides):
    payload = {
        "username": "newuser",
        "email": "New.User@Example.com",
        "password": "longenough",
        "name": "New User",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_client_logs_in(client):
    r = _register(client)
    assert r.status_code == 201
    assert r.json["role"] == "client"
    assert r.json["email"] == "new.user@example.com"

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json["username"] == "newuser"


def test_register_therapist_gets_default_plan_trial(client):
    r = _register(client, role="therapist")
    assert r.status_code == 201
    assert r.json["role"] == "therapist"
    assert r.json["subscriptionStatus"] == "trial"
    assert r.json["subscriptionPlanId"] is not None


def test_register_rejects_admin_role_and_bad_fields(client):
    r = _register(client, role="admin", username="ab", password="short", email="nope")
    assert r.status_code == 400
    assert r.json["message"] == "Invalid data"
    errors = " ".join(r.json["errors"])
    assert "Username" in errors
    assert "Password" in errors
    assert "email" in errors
    assert "Invalid role" in errors


def test_register_duplicate_is_409(client):
    r = _register(client, username="client")
    assert r.status_code == 409
    assert r.json["message"] == "Username already exists"

    r = _register(client, email="therapist@example.com")
    assert r.status_code == 409
    assert r.json["message"] == "Email already exists"


def test_login_with_email_and_logout(client):
    r = client.post("/api/auth/login", json={"email": "Therapist@Example.com", "password": "password123"})
    assert r.status_code == 200
    assert r.json["role"] == "therapist"

    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_login_bad_password_is_audited(app, client):
    r = client.post("/api/auth/login", json={"username": "client", "password": "wrong"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid credentials"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert json.loads(ev.metadata_json)["identifier"] == "client"


def test_login_rate_limited_after_five_attempts(client):
    for _ in range(5):
        assert client.post("/api/auth/login", json={"username": "client", "password": "wrong"}).status_code == 401
    r = client.post("/api/auth/login", json={"username": "client", "password": "password123"})
    assert r.status_code == 429


def test_inactive_user_cannot_login(app, client):
    with session_scope(app) as s:
        s.query(User).filter(User.username == "client").one().is_active = False
    r = client.post("/api/auth/login", json={"username": "client", "password": "password123"})
    assert r.status_code == 401


def test_non_string_password_is_400(client):
    r = _register(client, password=123456789)
    assert r.status_code == 400
    assert "Password is required." in r.json["errors"]

    r = client.post("/api/auth/login", json={"username": "client", "password": 12345678})
    assert r.status_code == 400
