from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.rhub.audit import record_event
from app.rhub.utils import clean_str, optional_str, parse_datetime, string_list

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rhub.models import User
    from app.rhub.modules.subscriptions.models import SubscriptionPlan


VALID_INTERVALS = ("month", "year")
VALID_SUBSCRIPTION_STATUSES = ("trial", "active", "past_due", "canceled", "unpaid")


class PlanStateError(ValueError):
    """A plan transition that would break the single-default / active-default rules."""


class PlanInUse(Exception):
    pass


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_plan_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate plan create/update payload. Returns list of errors.

    With partial=True only the keys present in the payload are checked (PATCH).
    """
    errors = []

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("name") and not clean_str(payload.get("name")):
        errors.append("Name is required.")
    if present("description") and not clean_str(payload.get("description")):
        errors.append("Description is required.")
    if present("price"):
        price = payload.get("price")
        if not _is_int(price) or price < 0:
            errors.append("Price must be a non-negative whole number of cents.")
    if present("interval") and payload.get("interval") not in VALID_INTERVALS:
        errors.append(f"Invalid interval. Must be one of: {', '.join(VALID_INTERVALS)}")
    if present("features"):
        features = string_list(payload.get("features"))
        if features is None:
            errors.append("Features must be a list of strings.")
        elif not features:
            errors.append("At least one feature is required.")
    if present("maxClients"):
        max_clients = payload.get("maxClients")
        if not _is_int(max_clients) or max_clients < 1:
            errors.append("Maximum clients must be at least 1.")
    for flag in ("isActive", "isDefault"):
        if flag in payload and not isinstance(payload[flag], bool):
            errors.append(f"{flag} must be a boolean.")
    if payload.get("isDefault") is True and payload.get("isActive") is False:
        errors.append("An inactive plan cannot be the default plan.")
    return errors


def list_plans(s: "Session", *, active_only: bool = True) -> list["SubscriptionPlan"]:
    from app.rhub.modules.subscriptions.models import SubscriptionPlan

    q = s.query(SubscriptionPlan)
    if active_only:
        q = q.filter(SubscriptionPlan.is_active.is_(True))
    return q.order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc()).all()


def get_default_plan(s: "Session") -> "SubscriptionPlan | None":
    from app.rhub.modules.subscriptions.models import SubscriptionPlan

    return (
        s.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_default.is_(True))
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.id.asc())
        .first()
    )


def _clear_default(s: "Session", keep_id: int | None = None) -> None:
    from app.rhub.modules.subscriptions.models import SubscriptionPlan

    q = s.query(SubscriptionPlan).filter(SubscriptionPlan.is_default.is_(True))
    for plan in q.all():
        if plan.id != keep_id:
            plan.is_default = False


def create_plan(s: "Session", payload: dict, user: "User") -> "SubscriptionPlan":
    """Create a new plan. Assumes validate_plan_payload passed."""
    from app.rhub.modules.subscriptions.models import SubscriptionPlan

    plan = SubscriptionPlan(
        name=clean_str(payload.get("name")),
        description=clean_str(payload.get("description")),
        price=payload["price"],
        interval=payload["interval"],
        features=string_list(payload.get("features")) or [],
        max_clients=payload["maxClients"],
        is_active=payload.get("isActive", True),
        is_default=False,
        stripe_price_id=optional_str(payload.get("stripePriceId")),
    )
    s.add(plan)
    s.flush()
    if payload.get("isDefault") is True:
        set_default_plan(s, plan, user)

    record_event(
        s,
        actor=user,
        action="plan.create",
        entity_type="SubscriptionPlan",
        entity_id=str(plan.id),
        metadata={"name": plan.name, "price": plan.price, "interval": plan.interval},
    )
    return plan


def update_plan(s: "Session", plan: "SubscriptionPlan", payload: dict, user: "User") -> "SubscriptionPlan":
    """Apply a partial update. Default/active changes go through the same rules as the dedicated actions."""
    changes: dict[str, dict[str, Any]] = {}

    def _set(attr: str, new: Any) -> None:
        old = getattr(plan, attr)
        if new != old:
            changes[attr] = {"old": old, "new": new}
            setattr(plan, attr, new)

    if "name" in payload:
        _set("name", clean_str(payload["name"]))
    if "description" in payload:
        _set("description", clean_str(payload["description"]))
    if "price" in payload:
        _set("price", payload["price"])
    if "interval" in payload:
        _set("interval", payload["interval"])
    if "features" in payload:
        _set("features", string_list(payload["features"]) or [])
    if "maxClients" in payload:
        _set("max_clients", payload["maxClients"])
    if "stripePriceId" in payload:
        _set("stripe_price_id", optional_str(payload["stripePriceId"]))

    if payload.get("isActive") is False and plan.is_active:
        deactivate_plan(s, plan, user)
        changes["is_active"] = {"old": True, "new": False}
    elif payload.get("isActive") is True and not plan.is_active:
        _set("is_active", True)

    if payload.get("isDefault") is True and not plan.is_default:
        set_default_plan(s, plan, user)
        changes["is_default"] = {"old": False, "new": True}
    elif payload.get("isDefault") is False and plan.is_default:
        _set("is_default", False)

    record_event(
        s,
        actor=user,
        action="plan.edit",
        entity_type="SubscriptionPlan",
        entity_id=str(plan.id),
        metadata={"name": plan.name, "changes": changes},
    )
    return plan


def set_default_plan(s: "Session", plan: "SubscriptionPlan", user: "User") -> "SubscriptionPlan":
    if not plan.is_active:
        raise PlanStateError("An inactive plan cannot be the default plan.")
    _clear_default(s, keep_id=plan.id)
    # Flush the cleared flags first so the single-default invariant never sees two rows.
    s.flush()
    plan.is_default = True
    record_event(
        s,
        actor=user,
        action="plan.set_default",
        entity_type="SubscriptionPlan",
        entity_id=str(plan.id),
        metadata={"name": plan.name},
    )
    return plan


def deactivate_plan(s: "Session", plan: "SubscriptionPlan", user: "User") -> "SubscriptionPlan":
    if plan.is_default:
        raise PlanStateError("The default plan cannot be deactivated. Set another default first.")
    plan.is_active = False
    record_event(
        s,
        actor=user,
        action="plan.deactivate",
        entity_type="SubscriptionPlan",
        entity_id=str(plan.id),
        metadata={"name": plan.name},
    )
    return plan


def delete_plan(s: "Session", plan: "SubscriptionPlan", user: "User") -> None:
    from app.rhub.models import User as UserModel

    in_use = s.query(UserModel).filter(UserModel.subscription_plan_id == plan.id).count()
    if in_use:
        raise PlanInUse(f"Plan is assigned to {in_use} user(s). Deactivate it instead.")
    record_event(
        s,
        actor=user,
        action="plan.delete",
        entity_type="SubscriptionPlan",
        entity_id=str(plan.id),
        metadata={"name": plan.name},
    )
    s.delete(plan)


def validate_assignment_payload(payload: dict) -> list[str]:
    errors = []
    if not _is_int(payload.get("planId")):
        errors.append("planId is required.")
    status = payload.get("status", "active")
    if status not in VALID_SUBSCRIPTION_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_SUBSCRIPTION_STATUSES)}")
    if payload.get("endDate"):
        try:
            parse_datetime(payload["endDate"])
        except ValueError:
            errors.append("endDate must be an ISO date.")
    return errors


def assign_plan(
    s: "Session",
    target: "User",
    plan: "SubscriptionPlan",
    user: "User",
    *,
    status: str = "active",
    end_date: str | None = None,
) -> "User":
    if not plan.is_active:
        raise PlanStateError("Cannot assign an inactive plan.")
    old_plan_id = target.subscription_plan_id
    target.subscription_plan_id = plan.id
    target.subscription_status = status
    end = parse_datetime(end_date) if end_date else None
    target.subscription_end_date = end.date() if end else None
    record_event(
        s,
        actor=user,
        action="plan.assign",
        entity_type="User",
        entity_id=str(target.id),
        metadata={"old_plan_id": old_plan_id, "new_plan_id": plan.id, "status": status},
    )
    return target
