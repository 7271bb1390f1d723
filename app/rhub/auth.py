from __future__ import annotations

import time
import uuid
from collections import defaultdict, deque

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash

from app.rhub.accounts import SELF_SERVICE_ROLES, create_account, find_duplicate, validate_account_payload
from app.rhub.audit import record_event
from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.rbac import current_user, require_login
from app.rhub.security import ensure_csrf_token
from app.rhub.utils import clean_str, invalid, json_error, json_payload

bp = Blueprint("auth", __name__)

# Paths served without touching the user table.
_ANONYMOUS_PREFIXES = ("/health", "/healthz")


class LoginThrottle:
    """Sliding-window counter of login attempts per client address (process-local)."""

    def __init__(self, limit: int = 5, window_seconds: int = 300) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def blocked(self, key: str) -> bool:
        hits = self._hits[key]
        horizon = time.monotonic() - self.window_seconds
        while hits and hits[0] <= horizon:
            hits.popleft()
        return len(hits) >= self.limit

    def hit(self, key: str) -> None:
        self._hits[key].append(time.monotonic())

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


login_throttle = LoginThrottle()


def load_current_user() -> None:
    """Resolve g.current_user from the session cookie and tag the request with an id for logs and audit rows."""
    g.request_id = getattr(g, "request_id", None) or uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(_ANONYMOUS_PREFIXES):
        return

    user_id = session.get("user_id")
    if not user_id:
        return
    try:
        user = db_session().get(User, int(user_id))
    except Exception as e:
        current_app.logger.error("Could not load session user %s, clearing session: %s", user_id, e)
        user = None
    if user is None or not user.is_active:
        session.pop("user_id", None)
        return
    g.current_user = user


@bp.get("/csrf")
def csrf():
    return jsonify({"csrfToken": ensure_csrf_token()})


@bp.post("/register")
def register():
    s = db_session()
    payload = json_payload()

    role_key = clean_str(payload.get("role")) or "client"
    errors = validate_account_payload(payload)
    if role_key not in SELF_SERVICE_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(SELF_SERVICE_ROLES)}")
    if errors:
        return invalid(errors)

    dup = find_duplicate(s, payload)
    if dup:
        return json_error(409, dup)

    user = create_account(s, payload, role_key=role_key, actor=None)
    s.commit()

    session["user_id"] = user.id
    current_app.logger.info("Registered user id=%s role=%s", user.id, role_key)
    return jsonify(user.to_dict()), 201


def _authenticate(s, identifier: str, password: str) -> User | None:
    user = (
        s.query(User)
        .filter((User.email == identifier.lower()) | (User.username == identifier))
        .one_or_none()
    )
    if user and user.is_active and check_password_hash(user.password_hash, password):
        return user
    return None


@bp.post("/login")
def login():
    payload = json_payload()
    # Either username or email is accepted as the identifier.
    identifier = clean_str(payload.get("username") or payload.get("email"))
    password = payload.get("password")
    if not isinstance(password, str):
        return invalid(["Password is required."])
    ip = request.remote_addr or "unknown"

    if login_throttle.blocked(ip):
        current_app.logger.warning("Login throttled for %s", ip)
        return json_error(429, "Too many login attempts. Please wait 5 minutes.")
    login_throttle.hit(ip)

    s = db_session()
    user = _authenticate(s, identifier, password) if identifier else None
    if user is None:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=identifier or None,
            reason="Invalid credentials",
            metadata={"identifier": identifier},
        )
        s.commit()
        return json_error(401, "Invalid credentials")

    login_throttle.reset(ip)
    session["user_id"] = user.id
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return jsonify(user.to_dict())


@bp.post("/logout")
@require_login
def logout():
    s = db_session()
    user = current_user()
    record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
    s.commit()
    session.pop("user_id", None)
    return jsonify({"message": "Logged out successfully"})


@bp.get("/me")
@require_login
def me():
    return jsonify(current_user().to_dict())
