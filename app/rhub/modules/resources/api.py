from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request, send_file
from sqlalchemy.orm import Session

from app.rhub.db import db_session
from app.rhub.models import User
from app.rhub.modules.resources.models import EducationalResource, ResourceAssignment
from app.rhub.modules.resources.service import (
    AttachmentError,
    assign_resource,
    attach_pdf,
    can_edit_resource,
    can_view_resource,
    clone_resource,
    create_resource,
    delete_resource,
    list_categories,
    list_resources,
    purge_stored_files,
    update_assignment_status,
    update_resource,
    validate_assignment_payload,
    validate_resource_payload,
)
from app.rhub.rbac import can_access_user, current_user, require_login, require_permission, require_user_access
from app.rhub.storage import storage_from_config
from app.rhub.utils import invalid, json_error, json_payload

bp = Blueprint("resources", __name__)


def _get_resource_or_404(s: Session, resource_id: int) -> EducationalResource:
    resource = s.get(EducationalResource, resource_id)
    if not resource or not can_view_resource(current_user(), resource):
        abort(404, description="Resource not found")
    return resource


def _get_editable_resource(s: Session, resource_id: int) -> EducationalResource:
    resource = _get_resource_or_404(s, resource_id)
    if not can_edit_resource(current_user(), resource):
        abort(403, description="Only the resource creator can modify it.")
    return resource


# ---------- Library ----------
@bp.get("/resources")
@require_login
def resources_list():
    resources = list_resources(
        db_session(),
        current_user(),
        category=(request.args.get("category") or "").strip() or None,
        tag=(request.args.get("tag") or "").strip() or None,
        q=(request.args.get("q") or "").strip() or None,
    )
    return jsonify([r.to_dict() for r in resources])


@bp.get("/resources/categories")
@require_login
def resources_categories():
    return jsonify(list_categories(db_session()))


@bp.get("/resources/<int:resource_id>")
@require_login
def resource_detail(resource_id: int):
    return jsonify(_get_resource_or_404(db_session(), resource_id).to_dict())


@bp.post("/resources")
@require_permission("resources.create")
def resource_create():
    s = db_session()
    payload = json_payload()
    errors = validate_resource_payload(payload)
    if errors:
        return invalid(errors)
    resource = create_resource(s, payload, current_user())
    s.commit()
    return jsonify(resource.to_dict()), 201


@bp.put("/resources/<int:resource_id>")
@require_login
def resource_update(resource_id: int):
    s = db_session()
    resource = _get_editable_resource(s, resource_id)
    payload = json_payload()
    errors = validate_resource_payload(
        payload, partial=True, has_attachment=resource.has_attachment, existing=resource
    )
    if errors:
        return invalid(errors)
    update_resource(s, resource, payload, current_user())
    s.commit()
    return jsonify(resource.to_dict())


@bp.delete("/resources/<int:resource_id>")
@require_login
def resource_delete(resource_id: int):
    s = db_session()
    resource = _get_editable_resource(s, resource_id)
    stale = delete_resource(s, resource, current_user())
    s.commit()
    purge_stored_files(storage_from_config(current_app.config), stale)
    return jsonify({"message": "Resource deleted successfully"})


# ---------- Attachments ----------
@bp.post("/resources/<int:resource_id>/attachment")
@require_login
def resource_attachment_upload(resource_id: int):
    s = db_session()
    resource = _get_editable_resource(s, resource_id)
    f = request.files.get("file")
    if not f or not f.filename:
        return json_error(400, "No file uploaded")
    storage = storage_from_config(current_app.config)
    try:
        stale = attach_pdf(
            s,
            resource,
            data=f.read(),
            filename=f.filename,
            content_type=f.mimetype,
            user=current_user(),
            storage=storage,
        )
    except AttachmentError as e:
        return json_error(400, str(e))
    s.commit()
    purge_stored_files(storage, stale)
    return jsonify(resource.to_dict())


@bp.get("/resources/<int:resource_id>/attachment")
@require_login
def resource_attachment_download(resource_id: int):
    resource = _get_resource_or_404(db_session(), resource_id)
    if not resource.storage_key:
        abort(404, description="Resource has no attachment")
    storage = storage_from_config(current_app.config)
    if not storage.exists(resource.storage_key):
        current_app.logger.error("Attachment missing from storage: resource=%s key=%s", resource.id, resource.storage_key)
        abort(404, description="Attachment file is missing")
    fobj = storage.open(resource.storage_key)
    return send_file(
        fobj,
        mimetype=resource.content_type or "application/pdf",
        as_attachment=True,
        download_name=resource.original_filename or "document.pdf",
        max_age=0,
    )


@bp.post("/resources/<int:resource_id>/clone")
@require_permission("resources.create")
def resource_clone(resource_id: int):
    s = db_session()
    source = _get_resource_or_404(s, resource_id)
    clone = clone_resource(s, source, current_user())
    s.commit()
    return jsonify(clone.to_dict()), 201


# ---------- Assignments ----------
@bp.post("/resource-assignments")
@require_permission("resources.assign")
def assignment_create():
    s = db_session()
    u = current_user()
    payload = json_payload()
    errors = validate_assignment_payload(payload)
    if errors:
        return invalid(errors)
    resource = _get_resource_or_404(s, payload["resourceId"])
    client = s.get(User, payload["assignedTo"])
    if not client:
        abort(404, description="User not found")
    if not can_access_user(u, client.id) or client.id == u.id:
        abort(403, description="You can only assign resources to your own clients.")
    assignment = assign_resource(s, resource, client, payload, u)
    s.commit()
    return jsonify(assignment.to_dict()), 201


@bp.get("/therapist/assignments")
@require_permission("resources.assign")
def assignments_by_me():
    s = db_session()
    rows = (
        s.query(ResourceAssignment)
        .filter(ResourceAssignment.assigned_by == current_user().id)
        .order_by(ResourceAssignment.assigned_at.desc(), ResourceAssignment.id.desc())
        .all()
    )
    return jsonify([a.to_dict() for a in rows])


@bp.get("/users/<int:user_id>/assignments")
@require_user_access
def assignments_for_user(user_id: int):
    s = db_session()
    rows = (
        s.query(ResourceAssignment)
        .filter(ResourceAssignment.assigned_to == user_id)
        .order_by(ResourceAssignment.is_priority.desc(), ResourceAssignment.assigned_at.desc(), ResourceAssignment.id.desc())
        .all()
    )
    return jsonify([a.to_dict() for a in rows])


@bp.patch("/resource-assignments/<int:assignment_id>")
@require_login
def assignment_update(assignment_id: int):
    s = db_session()
    u = current_user()
    assignment = s.get(ResourceAssignment, assignment_id)
    if not assignment:
        abort(404, description="Assignment not found")
    if u.id not in (assignment.assigned_to, assignment.assigned_by) and not u.has_role("admin"):
        abort(403, description="Access denied.")
    try:
        update_assignment_status(s, assignment, json_payload().get("status"), u)
    except ValueError as e:
        return invalid([str(e)])
    s.commit()
    return jsonify(assignment.to_dict())
