from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.rhub.audit import record_event
from app.rhub.utils import clean_str, optional_str, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rhub.models import User
    from app.rhub.modules.goals.models import Goal, GoalMilestone


GOAL_STATUSES = ("pending", "in_progress", "approved", "completed")
SMART_FIELDS = ("specific", "measurable", "achievable", "relevant", "timebound")
MIN_TITLE_LENGTH = 3
MIN_SMART_LENGTH = 10


def _date_error(value, label: str) -> str | None:
    if not value:
        return None
    try:
        parse_datetime(value)
    except ValueError:
        return f"{label} must be an ISO date."
    return None


def validate_goal_payload(payload: dict) -> list[str]:
    errors = []
    if len(clean_str(payload.get("title"))) < MIN_TITLE_LENGTH:
        errors.append("Title must be at least 3 characters.")
    for name in SMART_FIELDS:
        if len(clean_str(payload.get(name))) < MIN_SMART_LENGTH:
            errors.append(f"{name.capitalize()} must be at least 10 characters.")
    err = _date_error(payload.get("deadline"), "Deadline")
    if err:
        errors.append(err)
    return errors


def validate_status_payload(payload: dict) -> list[str]:
    if payload.get("status") not in GOAL_STATUSES:
        return [f"Invalid status. Must be one of: {', '.join(GOAL_STATUSES)}"]
    return []


def validate_milestone_payload(payload: dict) -> list[str]:
    errors = []
    if len(clean_str(payload.get("title"))) < MIN_TITLE_LENGTH:
        errors.append("Title must be at least 3 characters.")
    err = _date_error(payload.get("dueDate"), "Due date")
    if err:
        errors.append(err)
    return errors


def _as_date(value):
    dt = parse_datetime(value) if value else None
    return dt.date() if dt else None


def create_goal(s: "Session", owner: "User", payload: dict, user: "User") -> "Goal":
    """Create a goal in `pending`. Assumes validate_goal_payload passed."""
    from app.rhub.modules.goals.models import Goal

    goal = Goal(
        user_id=owner.id,
        title=clean_str(payload.get("title")),
        deadline=_as_date(payload.get("deadline")),
        status="pending",
        **{name: clean_str(payload.get(name)) for name in SMART_FIELDS},
    )
    s.add(goal)
    s.flush()
    record_event(
        s,
        actor=user,
        action="goal.create",
        entity_type="Goal",
        entity_id=str(goal.id),
        metadata={"owner_id": owner.id, "title": goal.title},
    )
    return goal


def update_goal_status(
    s: "Session",
    goal: "Goal",
    status: str,
    user: "User",
    *,
    therapist_comments: str | None = None,
) -> "Goal":
    old = goal.status
    goal.status = status
    if therapist_comments is not None:
        goal.therapist_comments = therapist_comments
    goal.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="goal.status",
        entity_type="Goal",
        entity_id=str(goal.id),
        metadata={"from": old, "to": status, "commented": therapist_comments is not None},
    )
    return goal


def delete_goal(s: "Session", goal: "Goal", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="goal.delete",
        entity_type="Goal",
        entity_id=str(goal.id),
        metadata={"owner_id": goal.user_id, "title": goal.title, "milestones": len(goal.milestones)},
    )
    s.delete(goal)


def create_milestone(s: "Session", goal: "Goal", payload: dict, user: "User") -> "GoalMilestone":
    from app.rhub.modules.goals.models import GoalMilestone

    milestone = GoalMilestone(
        goal_id=goal.id,
        title=clean_str(payload.get("title")),
        description=optional_str(payload.get("description")),
        due_date=_as_date(payload.get("dueDate")),
        is_completed=False,
    )
    s.add(milestone)
    s.flush()
    s.refresh(goal)
    record_event(
        s,
        actor=user,
        action="goal.milestone.create",
        entity_type="Goal",
        entity_id=str(goal.id),
        metadata={"milestone_id": milestone.id, "title": milestone.title},
    )
    return milestone


def set_milestone_completion(s: "Session", milestone: "GoalMilestone", completed: bool, user: "User") -> "GoalMilestone":
    milestone.is_completed = completed
    record_event(
        s,
        actor=user,
        action="goal.milestone.complete" if completed else "goal.milestone.reopen",
        entity_type="Goal",
        entity_id=str(milestone.goal_id),
        metadata={"milestone_id": milestone.id},
    )
    return milestone
