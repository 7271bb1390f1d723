import secrets

from flask import Flask, Request, jsonify, request, session

CSRF_HEADER = "X-CSRF-Token"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
# Endpoints that establish or end the session carry no token yet.
CSRF_EXEMPT_PREFIXES = ("auth.",)


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """The SPA sends the token in a header; JSON bodies may carry it as csrf_token."""
    token = req.headers.get(CSRF_HEADER)
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    expected = session.get("csrf_token") or ""
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def init_csrf(app: Flask) -> None:
    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if not app.config.get("CSRF_ENABLED") or request.method not in MUTATING_METHODS:
            return None
        if (request.endpoint or "").startswith(CSRF_EXEMPT_PREFIXES):
            return None
        if not validate_csrf(request):
            app.logger.warning("CSRF rejected: %s %s", request.method, request.path)
            return jsonify({"message": "CSRF token missing or invalid."}), 400
        return None
