from app.rhub import create_app
from app.rhub.models import Base


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["database"] == "ok"


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_api_route_is_json_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["message"] == "Not found"


def test_anonymous_api_access_is_401(client, users):
    r = client.get(f"/api/users/{users['client']}/journal")
    assert r.status_code == 401
    assert r.json["message"] == "Not authenticated"


def test_csrf_enforced_outside_test_env(app, login, users):
    c = login("client")
    app.config["CSRF_ENABLED"] = True

    r = c.post(f"/api/users/{users['client']}/protective-factors", json={"name": "Family"})
    assert r.status_code == 400
    assert "CSRF" in r.json["message"]

    token = c.get("/api/auth/csrf").json["csrfToken"]
    r = c.post(
        f"/api/users/{users['client']}/protective-factors",
        json={"name": "Family"},
        headers={"X-CSRF-Token": token},
    )
    assert r.status_code == 201


def test_unmigrated_database_returns_503_until_tables_exist(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'empty.db'}")
    app = create_app()
    c = app.test_client()

    r = c.get("/api/auth/me")
    assert r.status_code == 503
    assert r.json["message"] == "Database schema is out of date."
    assert c.get("/healthz").status_code == 200

    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    assert c.get("/api/auth/me").status_code == 401
