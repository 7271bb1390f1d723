from __future__ import annotations

from flask import Blueprint, abort, jsonify
from sqlalchemy.orm import Session

from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.modules.goals.models import Goal, GoalMilestone
from app.rhub.modules.goals.service import (
    create_goal,
    create_milestone,
    delete_goal,
    set_milestone_completion,
    update_goal_status,
    validate_goal_payload,
    validate_milestone_payload,
    validate_status_payload,
)
from app.rhub.rbac import can_access_user, current_user, require_login, require_user_access
from app.rhub.utils import clean_str, invalid, json_error, json_payload

bp = Blueprint("goals", __name__)


def _get_goal_or_404(s: Session, goal_id: int) -> Goal:
    goal = s.get(Goal, goal_id)
    if not goal:
        abort(404, description="Goal not found")
    if not can_access_user(current_user(), goal.user_id):
        abort(403, description="Access denied.")
    return goal


@bp.get("/users/<int:user_id>/goals")
@require_user_access
def goals_list(user_id: int):
    s = db_session()
    goals = (
        s.query(Goal)
        .filter(Goal.user_id == user_id)
        .order_by(Goal.created_at.desc(), Goal.id.desc())
        .all()
    )
    return jsonify([g.to_dict() for g in goals])


@bp.post("/users/<int:user_id>/goals")
@require_user_access
def goals_create(user_id: int):
    s = db_session()
    u = current_user()
    # Goals are the client's own; therapists review them but never author them.
    if not (u.has_role("admin") or (u.id == user_id and u.role == "client")):
        abort(403, description="Only clients can create goals.")
    owner = s.get(User, user_id)
    if not owner:
        abort(404, description="User not found")
    payload = json_payload()
    errors = validate_goal_payload(payload)
    if errors:
        return invalid(errors)
    goal = create_goal(s, owner, payload, u)
    s.commit()
    return jsonify(goal.to_dict()), 201


@bp.get("/goals/<int:goal_id>")
@require_login
def goal_detail(goal_id: int):
    return jsonify(_get_goal_or_404(db_session(), goal_id).to_dict())


@bp.patch("/goals/<int:goal_id>/status")
@require_login
def goal_status(goal_id: int):
    s = db_session()
    goal = _get_goal_or_404(s, goal_id)
    payload = json_payload()
    errors = validate_status_payload(payload)
    if errors:
        return invalid(errors)
    comments = payload.get("therapistComments")
    update_goal_status(
        s,
        goal,
        payload["status"],
        current_user(),
        therapist_comments=clean_str(comments) if comments is not None else None,
    )
    s.commit()
    return jsonify(goal.to_dict())


@bp.delete("/goals/<int:goal_id>")
@require_login
def goal_delete(goal_id: int):
    s = db_session()
    u = current_user()
    goal = _get_goal_or_404(s, goal_id)
    if not (u.id == goal.user_id or u.has_role("admin")):
        abort(403, description="Only the goal owner can delete it.")
    delete_goal(s, goal, u)
    s.commit()
    return jsonify({"message": "Goal deleted successfully"})


@bp.get("/goals/<int:goal_id>/milestones")
@require_login
def milestones_list(goal_id: int):
    goal = _get_goal_or_404(db_session(), goal_id)
    return jsonify([m.to_dict() for m in goal.ordered_milestones()])


@bp.post("/goals/<int:goal_id>/milestones")
@require_login
def milestones_create(goal_id: int):
    s = db_session()
    goal = _get_goal_or_404(s, goal_id)
    payload = json_payload()
    errors = validate_milestone_payload(payload)
    if errors:
        return invalid(errors)
    milestone = create_milestone(s, goal, payload, current_user())
    s.commit()
    return jsonify(milestone.to_dict()), 201


@bp.patch("/milestones/<int:milestone_id>/completion")
@require_login
def milestone_completion(milestone_id: int):
    s = db_session()
    milestone = s.get(GoalMilestone, milestone_id)
    if not milestone:
        abort(404, description="Milestone not found")
    _get_goal_or_404(s, milestone.goal_id)
    payload = json_payload()
    if not isinstance(payload.get("isCompleted"), bool):
        return json_error(400, "isCompleted is required")
    set_milestone_completion(s, milestone, payload["isCompleted"], current_user())
    s.commit()
    return jsonify(milestone.to_dict())
