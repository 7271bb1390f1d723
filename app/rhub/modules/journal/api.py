from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request
from sqlalchemy.orm import Session

from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.modules.journal.models import JournalEntry
from app.rhub.modules.journal.service import (
    DEFAULT_CLOUD_SIZE,
    add_comment,
    create_entry,
    delete_entry,
    journal_stats,
    tag_frequencies,
    update_entry,
    validate_entry_payload,
    word_cloud,
)
from app.rhub.rbac import current_user, require_user_access
from app.rhub.utils import clean_str, invalid, json_error, json_payload

bp = Blueprint("journal", __name__)


def _is_owner_or_admin(actor: User, user_id: int) -> bool:
    return actor.id == user_id or actor.has_role("admin")


def _visible_entries_query(s: Session, user_id: int):
    q = s.query(JournalEntry).filter(JournalEntry.user_id == user_id)
    if not _is_owner_or_admin(current_user(), user_id):
        # Therapists never see entries their client marked private
        q = q.filter(JournalEntry.is_private.is_(False))
    return q


def _get_entry_or_404(s: Session, user_id: int, entry_id: int) -> JournalEntry:
    entry = _visible_entries_query(s, user_id).filter(JournalEntry.id == entry_id).one_or_none()
    if not entry:
        abort(404, description="Journal entry not found")
    return entry


def _analysis_options() -> dict:
    return {
        "api_key": current_app.config.get("OPENAI_API_KEY") or "",
        "model": current_app.config.get("OPENAI_MODEL") or "gpt-4o",
    }


@bp.get("/users/<int:user_id>/journal")
@require_user_access
def journal_list(user_id: int):
    s = db_session()
    entries = _visible_entries_query(s, user_id).order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc()).all()
    return jsonify([e.to_dict() for e in entries])


@bp.post("/users/<int:user_id>/journal")
@require_user_access
def journal_create(user_id: int):
    s = db_session()
    u = current_user()
    if not _is_owner_or_admin(u, user_id):
        abort(403, description="Only the journal owner can write entries.")
    owner = s.get(User, user_id)
    if not owner:
        abort(404, description="User not found")
    payload = json_payload()
    errors = validate_entry_payload(payload)
    if errors:
        return invalid(errors)
    entry = create_entry(s, owner, payload, u, **_analysis_options())
    s.commit()
    return jsonify(entry.to_dict()), 201


@bp.get("/users/<int:user_id>/journal/tags")
@require_user_access
def journal_tags(user_id: int):
    try:
        limit = int(request.args.get("limit", DEFAULT_CLOUD_SIZE))
    except ValueError:
        return invalid(["limit must be a whole number."])
    entries = _visible_entries_query(db_session(), user_id).all()
    return jsonify(word_cloud(tag_frequencies(entries), limit))


@bp.get("/users/<int:user_id>/journal/stats")
@require_user_access
def journal_stats_view(user_id: int):
    entries = _visible_entries_query(db_session(), user_id).all()
    return jsonify(journal_stats(entries))


@bp.get("/users/<int:user_id>/journal/<int:entry_id>")
@require_user_access
def journal_detail(user_id: int, entry_id: int):
    return jsonify(_get_entry_or_404(db_session(), user_id, entry_id).to_dict())


@bp.patch("/users/<int:user_id>/journal/<int:entry_id>")
@require_user_access
def journal_update(user_id: int, entry_id: int):
    s = db_session()
    u = current_user()
    entry = _get_entry_or_404(s, user_id, entry_id)
    if not _is_owner_or_admin(u, user_id):
        abort(403, description="Only the journal owner can edit entries.")
    payload = json_payload()
    errors = validate_entry_payload(payload, partial=True)
    if errors:
        return invalid(errors)
    update_entry(s, entry, payload, u, **_analysis_options())
    s.commit()
    return jsonify(entry.to_dict())


@bp.delete("/users/<int:user_id>/journal/<int:entry_id>")
@require_user_access
def journal_delete(user_id: int, entry_id: int):
    s = db_session()
    u = current_user()
    entry = _get_entry_or_404(s, user_id, entry_id)
    if not _is_owner_or_admin(u, user_id):
        abort(403, description="Only the journal owner can delete entries.")
    delete_entry(s, entry, u)
    s.commit()
    return jsonify({"message": "Journal entry deleted successfully"})


@bp.post("/users/<int:user_id>/journal/<int:entry_id>/comments")
@require_user_access
def journal_comment(user_id: int, entry_id: int):
    s = db_session()
    entry = _get_entry_or_404(s, user_id, entry_id)
    text = clean_str(json_payload().get("comment"))
    if not text:
        return json_error(400, "Comment is required")
    add_comment(s, entry, text, current_user())
    s.commit()
    return jsonify(entry.to_dict()), 201
