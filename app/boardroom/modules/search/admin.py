from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.search.service import MIN_QUERY_LENGTH, search_organization
from app.boardroom.rbac import require_permission, user_has_permission
from app.boardroom.utils import current_org_id, current_user, validation_error

bp = Blueprint("search", __name__)

# Each result kind is only returned to users who may view it.
_KIND_PERMISSIONS = {
    "meetings": "meetings.view",
    "documents": "documents.view",
    "resolutions": "resolutions.view",
    "board_members": "members.view",
}


@bp.get("/search")
@require_permission("organization.view")
def search():
    q = (request.args.get("q") or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return validation_error([f"Search query must be at least {MIN_QUERY_LENGTH} characters."])

    user = current_user()
    kinds = [kind for kind, perm in _KIND_PERMISSIONS.items() if user_has_permission(user, perm)]
    results = search_organization(db_session(), current_org_id(), q, kinds=kinds)
    return jsonify({"query": q, "results": results, "total": sum(len(v) for v in results.values())})
