from flask import Blueprint, current_app, jsonify

from app.rhub.db import ping

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Readiness: the app is up and the database answers."""
    db_ok = ping(current_app)
    return jsonify({"ok": db_ok, "database": "ok" if db_ok else "unavailable"}), (200 if db_ok else 503)


@bp.get("/healthz")
def healthz():
    """
    Liveness probe for the load balancer. No DB access.
    """
    return "ok", 200
