"""
Protective factors and coping strategies share one contract; every function
takes the model class so both tables go through the same rules.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.rhub.audit import record_event
from app.rhub.rbac import is_therapist_of, user_has_permission
from app.rhub.utils import clean_str, optional_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rhub.models import User
    from app.rhub.modules.library.models import LibraryItemMixin


MIN_NAME_LENGTH = 2


def validate_item_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if (not partial or "name" in payload) and len(clean_str(payload.get("name"))) < MIN_NAME_LENGTH:
        errors.append("Name must be at least 2 characters.")
    if "isGlobal" in payload and not isinstance(payload["isGlobal"], bool):
        errors.append("isGlobal must be a boolean.")
    return errors


def list_items(s: "Session", model: Any, owner: "User", *, include_global: bool = True) -> list[Any]:
    q = s.query(model)
    if include_global:
        clauses = [model.user_id == owner.id, model.is_global.is_(True)]
        if owner.therapist_id:
            clauses.append(model.user_id == owner.therapist_id)
        q = q.filter(or_(*clauses))
    else:
        q = q.filter(model.user_id == owner.id)
    return q.order_by(model.name.asc(), model.id.asc()).all()


def _may_share(user: "User") -> bool:
    return user_has_permission(user, "library.global")


def create_item(s: "Session", model: Any, owner: "User", payload: dict, user: "User") -> Any:
    item = model(
        user_id=owner.id,
        name=clean_str(payload.get("name")),
        description=optional_str(payload.get("description")),
        # Clients cannot publish to the shared library
        is_global=bool(payload.get("isGlobal")) and _may_share(user),
    )
    s.add(item)
    s.flush()
    record_event(
        s,
        actor=user,
        action=f"{model.__tablename__}.create",
        entity_type=model.__name__,
        entity_id=str(item.id),
        metadata={"owner_id": owner.id, "name": item.name, "is_global": item.is_global},
    )
    return item


def can_modify_item(s: "Session", user: "User", item: "LibraryItemMixin") -> bool:
    """The author, the author's therapist, or an admin."""
    from app.rhub.models import User as UserModel

    if user.has_role("admin") or user.id == item.user_id:
        return True
    return is_therapist_of(user, s.get(UserModel, item.user_id))


def update_item(s: "Session", item: Any, payload: dict, user: "User") -> Any:
    changes: dict[str, Any] = {}
    if "name" in payload:
        item.name = clean_str(payload["name"])
        changes["name"] = item.name
    if "description" in payload:
        item.description = optional_str(payload["description"])
        changes["description"] = item.description
    if "isGlobal" in payload:
        item.is_global = bool(payload["isGlobal"]) and _may_share(user)
        changes["is_global"] = item.is_global
    record_event(
        s,
        actor=user,
        action=f"{type(item).__tablename__}.edit",
        entity_type=type(item).__name__,
        entity_id=str(item.id),
        metadata={"changes": changes},
    )
    return item


def delete_item(s: "Session", item: Any, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action=f"{type(item).__tablename__}.delete",
        entity_type=type(item).__name__,
        entity_id=str(item.id),
        metadata={"owner_id": item.user_id, "name": item.name},
    )
    s.delete(item)
