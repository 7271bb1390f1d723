from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.rhub.db import db_session
from app.rhub.models import User


def _active_user() -> User | None:
    user: User | None = getattr(g, "current_user", None)
    return user if user and user.is_active else None


def current_user() -> User:
    user = _active_user()
    if user is None:
        abort(401)
    return user


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return any(perm.key == permission_key for role in user.roles for perm in role.permissions)


def is_therapist_of(actor: User, client: User | None) -> bool:
    return bool(client and actor.has_role("therapist") and client.therapist_id == actor.id)


def can_access_user(actor: User | None, user_id: int) -> bool:
    """
    Admins see everyone, users see themselves, therapists see their own clients.
    """
    if not actor or not actor.is_active:
        return False
    if actor.has_role("admin"):
        return True
    if actor.id == user_id:
        return True
    if actor.has_role("therapist"):
        return is_therapist_of(actor, db_session().get(User, user_id))
    return False


def can_manage_owned(actor: User, owner_id: int) -> bool:
    """Edit/delete rule for user-owned records: the owner, the owner's therapist, or an admin."""
    return can_access_user(actor, owner_id)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_user_access(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Guards routes carrying a `<int:user_id>` path argument."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if not can_access_user(current_user(), int(kwargs["user_id"])):
            abort(403, description="Access denied.")
        return fn(*args, **kwargs)

    return wrapped
