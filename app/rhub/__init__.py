import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from sqlalchemy import inspect as sa_inspect
from werkzeug.exceptions import HTTPException

from app.rhub.config import load_config
from app.rhub.db import init_db, teardown_db_session
from app.rhub.routes import bp as routes_bp
from app.rhub.security import init_csrf
from app.rhub.auth import bp as auth_bp, load_current_user
from app.rhub.accounts import bp as accounts_bp
from app.rhub.modules.subscriptions.api import bp as subscriptions_bp
from app.rhub.modules.journal.api import bp as journal_bp
from app.rhub.modules.goals.api import bp as goals_bp
from app.rhub.modules.library.api import bp as library_bp
from app.rhub.modules.resources.api import bp as resources_bp

# Tables every request path depends on; a missing one means migrations have not run.
REQUIRED_TABLES = (
    "users",
    "roles",
    "permissions",
    "audit_events",
    "subscription_plans",
    "journal_entries",
    "journal_comments",
    "goals",
    "goal_milestones",
    "protective_factors",
    "coping_strategies",
    "resources",
    "resource_assignments",
)

_ERROR_MESSAGES = {
    400: "Bad request",
    401: "Not authenticated",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    413: "File too large. Maximum size is 10MB.",
    429: "Too many requests",
}


def _check_production_config(app: Flask) -> None:
    """Refuse to boot a production process on development defaults."""
    cfg = app.config
    if cfg.get("ENV") not in ("prod", "production"):
        return
    db_url = str(cfg.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at Postgres in production, not SQLite.")
    if str(cfg.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production.")
    if not cfg.get("OPENAI_API_KEY"):
        app.logger.warning("OPENAI_API_KEY not set; journal analysis will use keyword fallback only.")


def _check_storage_config(app: Flask) -> None:
    if app.config.get("STORAGE_BACKEND") != "s3":
        return
    missing = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
    if missing:
        app.logger.error("S3 storage selected but not configured; missing %s", ", ".join(missing))


def _dispose_engine_after_fork(app: Flask) -> None:
    # gunicorn --preload forks after create_app(); pooled connections must not cross the fork.
    if not hasattr(os, "register_at_fork"):
        return

    def _child() -> None:
        engine = app.extensions.get("sqlalchemy_engine")
        if engine is not None:
            engine.dispose()
            app.logger.info("Disposed DB engine in forked worker pid=%s", os.getpid())

    os.register_at_fork(after_in_child=_child)


def missing_tables(app: Flask) -> list[str] | None:
    """Required tables absent from the database, or None when the inspection itself failed."""
    try:
        insp = sa_inspect(app.extensions["sqlalchemy_engine"])
        return [t for t in REQUIRED_TABLES if not insp.has_table(t)]
    except Exception:
        app.logger.exception("Schema inspection failed")
        return None


def _install_schema_guard(app: Flask) -> None:
    state = {"ok": False, "reported": False}

    def schema_ready() -> bool:
        if state["ok"]:
            return True
        missing = missing_tables(app)
        if missing:
            if not state["reported"]:
                state["reported"] = True
                app.logger.error("Database not migrated (run `alembic upgrade head`); missing tables: %s", ", ".join(missing))
            return False
        state["ok"] = missing is not None
        return state["ok"]

    schema_ready()

    @app.before_request
    def _require_migrated_schema():
        # Re-checked per request until it passes, so migrating a live process needs no restart.
        if request.path.startswith("/api/") and not schema_ready():
            return jsonify({"message": "Database schema is out of date."}), 503
        return None


def _register_error_handlers(app: Flask) -> None:
    def json_http_error(e: HTTPException):
        code = e.code or 500
        # abort(code, description=...) text is shown; werkzeug's stock description is not.
        custom = e.description if e.description != type(e).description else None
        if code == 403 and getattr(g, "missing_permission", None):
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", g.missing_permission, g.get("request_id"))
        return jsonify({"message": custom or _ERROR_MESSAGES.get(code, e.name)}), code

    for code in _ERROR_MESSAGES:
        app.register_error_handler(code, json_http_error)

    @app.errorhandler(500)
    def internal_error(e):
        rid = g.get("request_id")
        app.logger.exception("Unhandled error (request_id=%s)", rid)
        return jsonify({"message": "Internal server error", "requestId": rid}), 500


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config.update(PERMANENT_SESSION_LIFETIME=timedelta(hours=8), SESSION_REFRESH_EACH_REQUEST=True)

    _check_production_config(app)
    init_csrf(app)
    init_db(app)
    _dispose_engine_after_fork(app)
    _check_storage_config(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    for api_bp in (accounts_bp, subscriptions_bp, journal_bp, goals_bp, library_bp, resources_bp):
        app.register_blueprint(api_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)
    _install_schema_guard(app)
    _register_error_handlers(app)

    app.logger.info("ResilienceHub app created (env=%s)", app.config.get("ENV"))
    return app
