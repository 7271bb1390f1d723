from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from io import BytesIO
from typing import TYPE_CHECKING

from sqlalchemy import or_
from werkzeug.utils import secure_filename

from app.rhub.audit import record_event
from app.rhub.constants import DEFAULT_RESOURCE_CATEGORIES
from app.rhub.storage import Storage
from app.rhub.utils import clean_str, optional_str, string_list

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.rhub.models import User
    from app.rhub.modules.resources.models import EducationalResource, ResourceAssignment

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ("article", "pdf", "video", "exercise")
ASSIGNMENT_STATUSES = ("assigned", "viewed", "completed")
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
PDF_CONTENT_TYPE = "application/pdf"


class AttachmentError(ValueError):
    pass


def validate_resource_payload(
    payload: dict,
    *,
    partial: bool = False,
    has_attachment: bool = False,
    existing: "EducationalResource | None" = None,
) -> list[str]:
    """Validate resource create/update payload. Returns list of errors.

    For partial updates `existing` supplies the stored type and content, so a
    change to either one is checked against the resulting resource.
    """
    errors = []

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("title") and not clean_str(payload.get("title")):
        errors.append("Title is required.")
    if present("category") and not clean_str(payload.get("category")):
        errors.append("Category is required.")
    rtype = payload.get("type", existing.type if existing is not None else "article")
    content = payload["content"] if "content" in payload or existing is None else existing.content
    if present("type") and rtype not in RESOURCE_TYPES:
        errors.append(f"Invalid type. Must be one of: {', '.join(RESOURCE_TYPES)}")
    # PDF resources may start empty; the uploaded attachment's text fills the content.
    content_touched = present("content") or (existing is not None and "type" in payload)
    if content_touched and not clean_str(content) and rtype != "pdf" and not has_attachment:
        errors.append("Content is required.")
    if "tags" in payload and string_list(payload["tags"]) is None:
        errors.append("Tags must be a list of strings.")
    if "isPublished" in payload and not isinstance(payload["isPublished"], bool):
        errors.append("isPublished must be a boolean.")
    return errors


def can_edit_resource(user: "User", resource: "EducationalResource") -> bool:
    return user.has_role("admin") or resource.created_by == user.id


def can_view_resource(user: "User", resource: "EducationalResource") -> bool:
    return resource.is_published or can_edit_resource(user, resource)


def list_resources(
    s: "Session",
    user: "User",
    *,
    category: str | None = None,
    tag: str | None = None,
    q: str | None = None,
) -> list["EducationalResource"]:
    from app.rhub.modules.resources.models import EducationalResource

    query = s.query(EducationalResource)
    if not user.has_role("admin"):
        query = query.filter(
            or_(EducationalResource.is_published.is_(True), EducationalResource.created_by == user.id)
        )
    if category:
        query = query.filter(EducationalResource.category == category)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(
            or_(EducationalResource.title.ilike(like), EducationalResource.description.ilike(like))
        )
    resources = query.order_by(EducationalResource.created_at.desc(), EducationalResource.id.desc()).all()
    if tag:
        # JSON list membership is filtered here to stay portable between SQLite and Postgres.
        needle = tag.strip().lower()
        resources = [r for r in resources if needle in (t.lower() for t in (r.tags or []))]
    return resources


def list_categories(s: "Session") -> list[str]:
    from app.rhub.modules.resources.models import EducationalResource

    in_use = [row[0] for row in s.query(EducationalResource.category).distinct().all() if row[0]]
    out = list(DEFAULT_RESOURCE_CATEGORIES)
    out.extend(sorted(c for c in in_use if c not in out))
    return out


def create_resource(s: "Session", payload: dict, user: "User") -> "EducationalResource":
    """Create a resource owned by `user`. Assumes validate_resource_payload passed."""
    from app.rhub.modules.resources.models import EducationalResource

    resource = EducationalResource(
        title=clean_str(payload.get("title")),
        description=clean_str(payload.get("description")),
        content=clean_str(payload.get("content")),
        category=clean_str(payload.get("category")),
        tags=string_list(payload.get("tags")) or [],
        type=payload.get("type", "article"),
        created_by=user.id,
        is_published=payload.get("isPublished", True),
    )
    s.add(resource)
    s.flush()
    record_event(
        s,
        actor=user,
        action="resource.create",
        entity_type="EducationalResource",
        entity_id=str(resource.id),
        metadata={"title": resource.title, "type": resource.type, "category": resource.category},
    )
    return resource


def update_resource(s: "Session", resource: "EducationalResource", payload: dict, user: "User") -> "EducationalResource":
    changed: list[str] = []
    for key, attr in (("title", "title"), ("description", "description"), ("content", "content"), ("category", "category")):
        if key in payload:
            setattr(resource, attr, clean_str(payload[key]))
            changed.append(attr)
    if "type" in payload:
        resource.type = payload["type"]
        changed.append("type")
    if "tags" in payload:
        resource.tags = string_list(payload["tags"]) or []
        changed.append("tags")
    if "isPublished" in payload:
        resource.is_published = payload["isPublished"]
        changed.append("is_published")
    resource.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="resource.edit",
        entity_type="EducationalResource",
        entity_id=str(resource.id),
        metadata={"changed": changed},
    )
    return resource


def _orphaned_keys(s: "Session", key: str | None, resource_id: int) -> list[str]:
    """`key` when no other resource (a clone) still points at it; delete those only after commit."""
    from app.rhub.modules.resources.models import EducationalResource

    if not key:
        return []
    others = (
        s.query(EducationalResource)
        .filter(EducationalResource.storage_key == key)
        .filter(EducationalResource.id != resource_id)
        .count()
    )
    return [] if others else [key]


def purge_stored_files(storage: Storage, keys: list[str]) -> None:
    for key in keys:
        try:
            storage.delete(key)
        except Exception:
            # The row is already gone; a leftover object is only wasted space.
            logger.exception("Could not delete stored file %s", key)


def delete_resource(s: "Session", resource: "EducationalResource", user: "User") -> list[str]:
    """Stage the delete; returns storage keys to purge once the transaction commits."""
    stale = _orphaned_keys(s, resource.storage_key, resource.id)
    record_event(
        s,
        actor=user,
        action="resource.delete",
        entity_type="EducationalResource",
        entity_id=str(resource.id),
        metadata={"title": resource.title, "storage_key": resource.storage_key},
    )
    s.delete(resource)
    return stale


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Plain text of every page; empty when the PDF cannot be parsed."""
    import pdfplumber

    text = []
    try:
        with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                text.append(page.extract_text() or "")
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""
    return "\n".join(t for t in text if t).strip()


def attach_pdf(
    s: "Session",
    resource: "EducationalResource",
    *,
    data: bytes,
    filename: str,
    content_type: str | None,
    user: "User",
    storage: Storage,
) -> list[str]:
    """Store the PDF and point the resource at it. Returns replaced storage keys to purge after commit."""
    if (content_type or "").split(";")[0].strip().lower() != PDF_CONTENT_TYPE:
        raise AttachmentError("Only PDF files are allowed.")
    if not data:
        raise AttachmentError("File is empty.")
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise AttachmentError("File exceeds the 10 MB limit.")

    sha256 = hashlib.sha256(data).hexdigest()
    safe_name = secure_filename(filename) or "document.pdf"
    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    storage_key = f"resources/{resource.id}/{timestamp}_{safe_name}"
    storage.put_bytes(storage_key, data, content_type=PDF_CONTENT_TYPE)

    old_key = resource.storage_key
    resource.storage_key = storage_key
    resource.original_filename = filename or safe_name
    resource.content_type = PDF_CONTENT_TYPE
    resource.sha256 = sha256
    resource.size_bytes = len(data)
    if not clean_str(resource.content):
        resource.content = extract_pdf_text(data)
    resource.updated_at = datetime.utcnow()
    stale = _orphaned_keys(s, old_key, resource.id) if old_key != storage_key else []

    record_event(
        s,
        actor=user,
        action="resource.attachment.upload",
        entity_type="EducationalResource",
        entity_id=str(resource.id),
        metadata={"storage_key": storage_key, "sha256": sha256, "size_bytes": len(data), "filename": safe_name},
    )
    return stale


def clone_resource(s: "Session", source: "EducationalResource", user: "User") -> "EducationalResource":
    """Copy a resource into the caller's drafts. The attachment is shared by storage key, not duplicated."""
    from app.rhub.modules.resources.models import EducationalResource

    clone = EducationalResource(
        title=source.title,
        description=source.description,
        content=source.content,
        category=source.category,
        tags=list(source.tags or []),
        type=source.type,
        storage_key=source.storage_key,
        original_filename=source.original_filename,
        content_type=source.content_type,
        sha256=source.sha256,
        size_bytes=source.size_bytes,
        created_by=user.id,
        parent_resource_id=source.id,
        is_published=False,
    )
    s.add(clone)
    s.flush()
    record_event(
        s,
        actor=user,
        action="resource.clone",
        entity_type="EducationalResource",
        entity_id=str(clone.id),
        metadata={"parent_resource_id": source.id},
    )
    return clone


def validate_assignment_payload(payload: dict) -> list[str]:
    errors = []
    for key in ("resourceId", "assignedTo"):
        value = payload.get(key)
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{key} is required.")
    if "isPriority" in payload and not isinstance(payload["isPriority"], bool):
        errors.append("isPriority must be a boolean.")
    return errors


def assign_resource(
    s: "Session",
    resource: "EducationalResource",
    client: "User",
    payload: dict,
    user: "User",
) -> "ResourceAssignment":
    from app.rhub.modules.resources.models import ResourceAssignment

    assignment = ResourceAssignment(
        resource_id=resource.id,
        assigned_by=user.id,
        assigned_to=client.id,
        is_priority=bool(payload.get("isPriority", False)),
        notes=optional_str(payload.get("notes")),
        status="assigned",
    )
    s.add(assignment)
    s.flush()
    record_event(
        s,
        actor=user,
        action="resource.assign",
        entity_type="ResourceAssignment",
        entity_id=str(assignment.id),
        metadata={"resource_id": resource.id, "assigned_to": client.id},
    )
    return assignment


def update_assignment_status(s: "Session", assignment: "ResourceAssignment", status: str, user: "User") -> "ResourceAssignment":
    if status not in ASSIGNMENT_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(ASSIGNMENT_STATUSES)}")
    old = assignment.status
    assignment.status = status
    assignment.completed_at = datetime.utcnow() if status == "completed" else None
    record_event(
        s,
        actor=user,
        action="resource.assignment.status",
        entity_type="ResourceAssignment",
        entity_id=str(assignment.id),
        metadata={"from": old, "to": status},
    )
    return assignment
