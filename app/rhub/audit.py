"""
Append-only audit trail. Every mutation in the API records who did what to
which entity; rows are never updated or deleted.
"""
import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.rhub.models import AuditEvent, User

logger = logging.getLogger(__name__)


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """Stage an audit row in `s`; it commits with the caller's transaction. Works outside requests too."""
    rid, ip = request_id, None
    if has_request_context():
        rid = rid or getattr(g, "request_id", None)
        ip = request.remote_addr
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=ip,
    )
    s.add(ev)
    logger.debug("audit %s %s:%s by %s", action, entity_type, entity_id, ev.actor_user_email or "-")
    return ev


def event_to_dict(ev: AuditEvent) -> dict[str, Any]:
    return {
        "id": ev.id,
        "createdAt": ev.created_at.isoformat() if ev.created_at else None,
        "requestId": ev.request_id,
        "actorEmail": ev.actor_user_email,
        "action": ev.action,
        "entityType": ev.entity_type,
        "entityId": ev.entity_id,
        "reason": ev.reason,
        "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
    }
