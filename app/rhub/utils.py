from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from flask import jsonify, request


def json_payload() -> dict[str, Any]:
    """Request JSON body as a dict ({} for missing or non-object bodies)."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def json_error(status: int, message: str, errors: list[str] | None = None):
    body: dict[str, Any] = {"message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def invalid(errors: list[str]):
    return json_error(400, "Invalid data", errors)


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def optional_str(value: Any) -> str | None:
    return clean_str(value) or None


def parse_bool(value: Any, default: bool = False) -> bool:
    """Accepts JSON booleans and query-string spellings ("true", "1", "no")."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return default


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse ISO dates from the client. Accepts "YYYY-MM-DD" and full ISO timestamps
    (offsets, including a trailing "Z", are converted; stored datetimes are naive UTC).
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    if len(s) == 10:
        return datetime.combine(date.fromisoformat(s), datetime.min.time())
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def string_list(value: Any) -> list[str] | None:
    """Normalize a list of strings; None when the value is not a list of strings."""
    if value is None:
        return []
    if not isinstance(value, list):
        return None
    out: list[str] = []
    for item in value:
        if not isinstance(item, str):
            return None
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return out
