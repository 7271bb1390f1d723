from __future__ import annotations

from typing import Any

from flask import Blueprint, abort, jsonify, request

from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.modules.library.models import CopingStrategy, ProtectiveFactor
from app.rhub.modules.library.service import (
    can_modify_item,
    create_item,
    delete_item,
    list_items,
    update_item,
    validate_item_payload,
)
from app.rhub.rbac import current_user, require_user_access
from app.rhub.utils import invalid, json_payload, parse_bool

bp = Blueprint("library", __name__)


def _register(slug: str, model: Any, label: str) -> None:
    """Wire the list/create/update/delete routes for one library table."""

    def _get_item_or_404(user_id: int, item_id: int):
        s = db_session()
        item = s.get(model, item_id)
        if not item:
            abort(404, description=f"{label} not found")
        if not can_modify_item(s, current_user(), item):
            abort(403, description="Access denied.")
        return item

    @require_user_access
    def list_view(user_id: int):
        s = db_session()
        owner = s.get(User, user_id)
        if not owner:
            abort(404, description="User not found")
        include_global = parse_bool(request.args.get("includeGlobal"), default=True)
        return jsonify([i.to_dict() for i in list_items(s, model, owner, include_global=include_global)])

    @require_user_access
    def create_view(user_id: int):
        s = db_session()
        owner = s.get(User, user_id)
        if not owner:
            abort(404, description="User not found")
        payload = json_payload()
        errors = validate_item_payload(payload)
        if errors:
            return invalid(errors)
        item = create_item(s, model, owner, payload, current_user())
        s.commit()
        return jsonify(item.to_dict()), 201

    @require_user_access
    def update_view(user_id: int, item_id: int):
        s = db_session()
        item = _get_item_or_404(user_id, item_id)
        payload = json_payload()
        errors = validate_item_payload(payload, partial=True)
        if errors:
            return invalid(errors)
        update_item(s, item, payload, current_user())
        s.commit()
        return jsonify(item.to_dict())

    @require_user_access
    def delete_view(user_id: int, item_id: int):
        s = db_session()
        item = _get_item_or_404(user_id, item_id)
        delete_item(s, item, current_user())
        s.commit()
        return jsonify({"message": f"{label} deleted successfully"})

    endpoint = slug.replace("-", "_")
    bp.add_url_rule(f"/users/<int:user_id>/{slug}", f"{endpoint}_list", list_view, methods=["GET"])
    bp.add_url_rule(f"/users/<int:user_id>/{slug}", f"{endpoint}_create", create_view, methods=["POST"])
    bp.add_url_rule(f"/users/<int:user_id>/{slug}/<int:item_id>", f"{endpoint}_update", update_view, methods=["PUT"])
    bp.add_url_rule(f"/users/<int:user_id>/{slug}/<int:item_id>", f"{endpoint}_delete", delete_view, methods=["DELETE"])


_register("protective-factors", ProtectiveFactor, "Protective factor")
_register("coping-strategies", CopingStrategy, "Coping strategy")
