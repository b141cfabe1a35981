"""
Request/payload helpers shared by the feature blueprints.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, TypeVar

from flask import abort, g, jsonify, request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.boardroom.models import User

T = TypeVar("T")

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class ConflictError(ValueError):
    """Raised by services when a uniqueness rule would be violated (HTTP 409)."""


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        # RBAC decorator should prevent this.
        raise RuntimeError("No current user")
    return u


def current_org_id() -> int:
    """Organization of the signed-in user; 403 for users without one (e.g. professionals)."""
    u = current_user()
    if u.organization_id is None:
        g.missing_permission = "organization membership"
        abort(403)
    return u.organization_id


def get_org_entity_or_404(s: Session, model: type[T], entity_id: int, org_id: int) -> T:
    """Load an organization-owned row; rows of other organizations are indistinguishable from missing ones."""
    obj = s.get(model, entity_id)
    if obj is None or getattr(obj, "organization_id", None) != org_id:
        abort(404)
    return obj


def json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {}
    return payload


def validation_error(errors: list[str]):
    return jsonify({"error": "Validation failed", "details": errors}), 400


def error_response(message: str, status: int = 400):
    return jsonify({"error": message}), status


def pagination_args() -> tuple[int, int]:
    limit = parse_int(request.args.get("limit")) or DEFAULT_PAGE_SIZE
    offset = parse_int(request.args.get("offset")) or 0
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    return limit, max(0, offset)


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD (HTML date input format)."""
    if s is None or isinstance(s, date) and not isinstance(s, datetime):
        return s
    s = str(s).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def parse_datetime(s: Any) -> datetime | None:
    """Parse ISO-8601 timestamps; a trailing Z and offsets are normalized to naive UTC."""
    if s is None or isinstance(s, datetime):
        return s
    s = str(s).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        from datetime import timezone

        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_int(s: Any) -> int | None:
    if s is None or isinstance(s, bool):
        return None
    if isinstance(s, int):
        return s
    s = str(s).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def parse_bool(value: Any, default: bool | None = None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def clean_str(value: Any) -> str | None:
    """Strip a string field; empty becomes None."""
    if value is None:
        return None
    return str(value).strip() or None


def clean_str_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError("Expected a list of strings.")
    out = [str(v).strip() for v in value if str(v).strip()]
    return out


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def contains_pattern(q: str) -> str:
    """Lower-cased LIKE pattern matching ``q`` as a literal substring (escape char is a backslash)."""
    escaped = q.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def matches_any(pattern: str, *columns):
    return or_(*(func.lower(col).like(pattern, escape="\\") for col in columns))
