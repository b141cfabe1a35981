from __future__ import annotations

import os
from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text

from app.boardroom.audit import audit_event_to_dict
from app.boardroom.db import db_session
from app.boardroom.models import AuditEvent
from app.boardroom.rbac import require_permission
from app.boardroom.utils import current_org_id, pagination_args, parse_date

bp = Blueprint("admin", __name__)


@bp.get("/audit")
@require_permission("audit.view")
def audit_log():
    s = db_session()
    limit, offset = pagination_args()

    query = s.query(AuditEvent).filter(AuditEvent.organization_id == current_org_id())
    action = (request.args.get("action") or "").strip()
    if action:
        # "resolution" matches resolution.open, resolution.closed, ...
        query = query.filter((AuditEvent.action == action) | AuditEvent.action.startswith(f"{action}."))
    entity_type = (request.args.get("entity_type") or "").strip()
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    entity_id = (request.args.get("entity_id") or "").strip()
    if entity_id:
        query = query.filter(AuditEvent.entity_id == entity_id)
    try:
        since = parse_date(request.args.get("since"))
        until = parse_date(request.args.get("until"))
    except ValueError:
        return jsonify({"error": "Dates must use YYYY-MM-DD."}), 400
    if since:
        query = query.filter(AuditEvent.created_at >= since)
    if until:
        query = query.filter(AuditEvent.created_at < until + timedelta(days=1))

    total = query.count()
    rows = query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).offset(offset).limit(limit).all()
    return jsonify({"events": [audit_event_to_dict(ev) for ev in rows], "total": total, "limit": limit, "offset": offset})


@bp.get("/admin/status")
@require_permission("admin.view")
def status():
    s = db_session()
    result = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "schema_ok": bool(current_app.config.get("_schema_health_ok", True)),
        "schema_missing": current_app.config.get("_schema_health_missing") or [],
        "storage_backend": None,
        "storage_configured": False,
        "storage_error": None,
        "max_upload_bytes": current_app.config.get("MAX_UPLOAD_BYTES"),
        "pid": os.getpid(),
    }

    try:
        s.execute(text("SELECT 1"))
        result["db_connected"] = True
    except Exception as e:
        current_app.logger.warning("Status check: database unreachable: %s", e)
        result["db_error"] = str(e)

    # Configuration only; no network calls.
    backend = (current_app.config.get("STORAGE_BACKEND") or "local").strip().lower()
    result["storage_backend"] = backend
    if backend == "s3":
        missing = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not current_app.config.get(k)]
        result["storage_configured"] = not missing
        if missing:
            result["storage_error"] = f"Missing: {', '.join(missing)}"
    else:
        result["storage_configured"] = True

    return jsonify(result)
