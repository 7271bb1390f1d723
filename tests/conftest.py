import pytest
from werkzeug.security import generate_password_hash

from app.rhub import create_app
from app.rhub import auth as auth_module
from app.rhub.constants import PERMISSIONS, ROLE_NAMES, ROLE_PERMISSIONS
from app.rhub.db import session_scope
from app.rhub.models import Base, Permission, Role, SubscriptionPlan, User

PASSWORD = "password123"


def _seed_roles(s) -> dict[str, Role]:
    perms = {key: Permission(key=key, name=name) for key, name in PERMISSIONS.items()}
    s.add_all(perms.values())
    roles = {}
    for key, perm_keys in ROLE_PERMISSIONS.items():
        r = Role(key=key, name=ROLE_NAMES[key])
        for pk in perm_keys:
            r.permissions.append(perms[pk])
        s.add(r)
        roles[key] = r
    return roles


def _user(username: str, role: Role, **kwargs) -> User:
    u = User(
        username=username,
        email=f"{username}@example.com",
        name=username.capitalize(),
        password_hash=generate_password_hash(PASSWORD),
        is_active=True,
        **kwargs,
    )
    u.roles.append(role)
    return u


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    auth_module.login_throttle.reset()
    yield
    auth_module.login_throttle.reset()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = _seed_roles(s)
        plan = SubscriptionPlan(
            name="Free Trial",
            description="Trial plan",
            price=0,
            interval="month",
            features=["Up to 2 clients"],
            max_clients=2,
            is_active=True,
            is_default=True,
        )
        s.add(plan)
        s.flush()
        admin = _user("admin", roles["admin"])
        therapist = _user("therapist", roles["therapist"], subscription_plan_id=plan.id, subscription_status="trial")
        other_therapist = _user("othertherapist", roles["therapist"])
        s.add_all([admin, therapist, other_therapist])
        s.flush()
        s.add_all(
            [
                _user("client", roles["client"], therapist_id=therapist.id),
                _user("stranger", roles["client"], therapist_id=other_therapist.id),
            ]
        )

    return app


@pytest.fixture()
def users(app) -> dict[str, int]:
    with session_scope(app) as s:
        return {u.username: u.id for u in s.query(User).all()}


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(app):
    """Returns a factory: login("therapist") -> a test client with that user's session."""

    def _login(username: str):
        c = app.test_client()
        r = c.post("/api/auth/login", json={"username": username, "password": PASSWORD})
        assert r.status_code == 200, r.json
        return c

    return _login
