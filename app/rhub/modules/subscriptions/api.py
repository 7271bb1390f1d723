from __future__ import annotations

from flask import Blueprint, abort, g, jsonify, request
from sqlalchemy.orm import Session

from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.modules.subscriptions.models import SubscriptionPlan
from app.rhub.modules.subscriptions.service import (
    PlanInUse,
    PlanStateError,
    assign_plan,
    create_plan,
    deactivate_plan,
    delete_plan,
    get_default_plan,
    list_plans,
    set_default_plan,
    update_plan,
    validate_assignment_payload,
    validate_plan_payload,
)
from app.rhub.rbac import current_user, require_login, require_permission, user_has_permission
from app.rhub.utils import invalid, json_error, json_payload, parse_bool

bp = Blueprint("subscriptions", __name__)


def _get_plan_or_404(s: Session, plan_id: int) -> SubscriptionPlan:
    plan = s.get(SubscriptionPlan, plan_id)
    if not plan:
        abort(404, description="Subscription plan not found")
    return plan


# ---------- List ----------
@bp.get("/subscription-plans")
def plans_list():
    """Active plans are public (pricing page); inactive ones only for plan managers."""
    s = db_session()
    include_inactive = parse_bool(request.args.get("includeInactive"))
    if include_inactive and not user_has_permission(getattr(g, "current_user", None), "plans.manage"):
        abort(403)
    plans = list_plans(s, active_only=not include_inactive)
    return jsonify([p.to_dict() for p in plans])


@bp.get("/subscription-plans/default")
def plans_default():
    plan = get_default_plan(db_session())
    if not plan:
        abort(404, description="No default plan configured")
    return jsonify(plan.to_dict())


@bp.get("/subscription-plans/<int:plan_id>")
def plan_detail(plan_id: int):
    plan = _get_plan_or_404(db_session(), plan_id)
    if not plan.is_active and not user_has_permission(getattr(g, "current_user", None), "plans.manage"):
        abort(404, description="Subscription plan not found")
    return jsonify(plan.to_dict())


# ---------- Create / Update ----------
@bp.post("/subscription-plans")
@require_permission("plans.manage")
def plan_create():
    s = db_session()
    payload = json_payload()
    errors = validate_plan_payload(payload)
    if errors:
        return invalid(errors)
    plan = create_plan(s, payload, current_user())
    s.commit()
    return jsonify(plan.to_dict()), 201


@bp.patch("/subscription-plans/<int:plan_id>")
@require_permission("plans.manage")
def plan_update(plan_id: int):
    s = db_session()
    plan = _get_plan_or_404(s, plan_id)
    payload = json_payload()
    errors = validate_plan_payload(payload, partial=True)
    if errors:
        return invalid(errors)
    try:
        update_plan(s, plan, payload, current_user())
    except PlanStateError as e:
        s.rollback()
        return json_error(400, str(e))
    s.commit()
    return jsonify(plan.to_dict())


# ---------- Lifecycle ----------
@bp.post("/subscription-plans/<int:plan_id>/set-default")
@require_permission("plans.manage")
def plan_set_default(plan_id: int):
    s = db_session()
    plan = _get_plan_or_404(s, plan_id)
    try:
        set_default_plan(s, plan, current_user())
    except PlanStateError as e:
        return json_error(400, str(e))
    s.commit()
    return jsonify(plan.to_dict())


@bp.post("/subscription-plans/<int:plan_id>/deactivate")
@require_permission("plans.manage")
def plan_deactivate(plan_id: int):
    s = db_session()
    plan = _get_plan_or_404(s, plan_id)
    try:
        deactivate_plan(s, plan, current_user())
    except PlanStateError as e:
        return json_error(400, str(e))
    s.commit()
    return jsonify(plan.to_dict())


@bp.delete("/subscription-plans/<int:plan_id>")
@require_permission("plans.manage")
def plan_delete(plan_id: int):
    s = db_session()
    plan = _get_plan_or_404(s, plan_id)
    try:
        delete_plan(s, plan, current_user())
    except PlanInUse as e:
        return json_error(409, str(e))
    s.commit()
    return jsonify({"message": "Subscription plan deleted successfully"})


# ---------- Assignment ----------
@bp.post("/users/<int:user_id>/subscription")
@require_permission("plans.manage")
def user_subscription_assign(user_id: int):
    s = db_session()
    target = s.get(User, user_id)
    if not target:
        abort(404, description="User not found")
    payload = json_payload()
    errors = validate_assignment_payload(payload)
    if errors:
        return invalid(errors)
    plan = _get_plan_or_404(s, payload["planId"])
    try:
        assign_plan(
            s,
            target,
            plan,
            current_user(),
            status=payload.get("status", "active"),
            end_date=payload.get("endDate"),
        )
    except PlanStateError as e:
        return json_error(400, str(e))
    s.commit()
    return jsonify(target.to_dict())


@bp.get("/users/me/subscription")
@require_login
def my_subscription():
    s = db_session()
    u = current_user()
    plan = s.get(SubscriptionPlan, u.subscription_plan_id) if u.subscription_plan_id else None
    client_count = s.query(User).filter(User.therapist_id == u.id).count()
    return jsonify(
        {
            "plan": plan.to_dict() if plan else None,
            "status": u.subscription_status,
            "endDate": u.subscription_end_date.isoformat() if u.subscription_end_date else None,
            "clientCount": client_count,
        }
    )
