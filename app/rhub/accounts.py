from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

from flask import Blueprint, abort, jsonify, request
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.rhub.audit import event_to_dict, record_event
from app.rhub.db import db_session
from app.rhub.models import AuditEvent, Role, User
from app.rhub.rbac import current_user, require_permission
from app.rhub.utils import clean_str, invalid, json_error, json_payload

bp = Blueprint("accounts", __name__)

SELF_SERVICE_ROLES = ("client", "therapist")


class ClientLimitReached(Exception):
    pass


def _is_valid_email(email: str) -> bool:
    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


def validate_account_payload(payload: dict) -> list[str]:
    errors = []
    username = clean_str(payload.get("username"))
    email = clean_str(payload.get("email")).lower()
    password = payload.get("password")

    if len(username) < 3:
        errors.append("Username must be at least 3 characters.")
    if not email:
        errors.append("Email is required.")
    elif not _is_valid_email(email):
        errors.append("Invalid email format.")
    if not isinstance(password, str):
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    return errors


def find_duplicate(s: Session, payload: dict) -> str | None:
    username = clean_str(payload.get("username"))
    email = clean_str(payload.get("email")).lower()
    if s.query(User).filter(User.username == username).one_or_none():
        return "Username already exists"
    if s.query(User).filter(User.email == email).one_or_none():
        return "Email already exists"
    return None


def create_account(
    s: Session,
    payload: dict,
    *,
    role_key: str,
    actor: User | None,
    therapist_id: int | None = None,
) -> User:
    """Create a user with one role. New therapists start a trial on the default plan."""
    from app.rhub.modules.subscriptions.service import get_default_plan

    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        raise RuntimeError(f"Role {role_key!r} is not seeded; run scripts/init_db.py")

    user = User(
        username=clean_str(payload.get("username")),
        email=clean_str(payload.get("email")).lower(),
        name=clean_str(payload.get("name")),
        password_hash=generate_password_hash(payload.get("password") or ""),
        is_active=True,
        therapist_id=therapist_id,
    )
    user.roles.append(role)
    if role_key == "therapist":
        plan = get_default_plan(s)
        if plan is not None:
            user.subscription_plan_id = plan.id
            user.subscription_status = "trial"
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor or user,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "role": role_key, "therapist_id": therapist_id},
    )
    return user


def clients_of(s: Session, therapist: User) -> list[User]:
    return (
        s.query(User)
        .filter(User.therapist_id == therapist.id)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )


def ensure_client_capacity(s: Session, therapist: User) -> None:
    """Raise ClientLimitReached when the therapist's plan has no room for another client."""
    from app.rhub.modules.subscriptions.models import SubscriptionPlan

    if therapist.has_role("admin") or therapist.subscription_plan_id is None:
        return
    plan = s.get(SubscriptionPlan, therapist.subscription_plan_id)
    if plan is None:
        return
    count = s.query(User).filter(User.therapist_id == therapist.id).count()
    if count >= plan.max_clients:
        raise ClientLimitReached(
            f"The {plan.name} plan allows {plan.max_clients} client(s). Upgrade to add more."
        )


@bp.get("/users/clients")
@require_permission("clients.view")
def clients_list():
    s = db_session()
    u = current_user()
    if u.has_role("admin"):
        client_role = s.query(Role).filter(Role.key == "client").one_or_none()
        clients = client_role.users if client_role else []
        clients = sorted(clients, key=lambda c: (c.name, c.id))
    else:
        clients = clients_of(s, u)
    return jsonify([c.to_dict() for c in clients])


@bp.post("/users/clients")
@require_permission("clients.manage")
def clients_create():
    s = db_session()
    u = current_user()
    payload = json_payload()

    errors = validate_account_payload(payload)
    if errors:
        return invalid(errors)
    dup = find_duplicate(s, payload)
    if dup:
        return json_error(409, dup)

    therapist = u
    if u.has_role("admin"):
        therapist = None
        raw_id = payload.get("therapistId")
        if raw_id is not None:
            if not isinstance(raw_id, int) or isinstance(raw_id, bool):
                return invalid(["therapistId must be a whole number."])
            therapist = s.get(User, raw_id)
            if therapist is None or not therapist.has_role("therapist"):
                return invalid(["therapistId must reference a therapist."])

    if therapist is not None:
        try:
            ensure_client_capacity(s, therapist)
        except ClientLimitReached as e:
            return json_error(403, str(e))

    client = create_account(
        s, payload, role_key="client", actor=u, therapist_id=therapist.id if therapist else None
    )
    s.commit()
    return jsonify(client.to_dict()), 201


@bp.get("/users/<int:user_id>")
@require_permission("clients.view")
def user_detail(user_id: int):
    from app.rhub.rbac import can_access_user

    s = db_session()
    u = current_user()
    target = s.get(User, user_id)
    if not target:
        abort(404)
    if not can_access_user(u, user_id):
        abort(403, description="Access denied. Not your client.")
    return jsonify(target.to_dict())


@bp.get("/audit")
@require_permission("audit.view")
def audit_list():
    """
    Last 200 audit events with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = clean_str(request.args.get("action"))
    actor_email = clean_str(request.args.get("actor_email"))
    try:
        date_from = date.fromisoformat(request.args["date_from"]) if request.args.get("date_from") else None
        date_to = date.fromisoformat(request.args["date_to"]) if request.args.get("date_to") else None
    except ValueError:
        return invalid(["date_from and date_to must be YYYY-MM-DD."])

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify([event_to_dict(e) for e in events])
