from __future__ import annotations

from flask import Blueprint, abort, jsonify

from app.boardroom.db import db_session
from app.boardroom.models import Organization
from app.boardroom.modules.organizations.service import (
    organization_to_dict,
    public_profile,
    update_organization,
    validate_organization_payload,
)
from app.boardroom.rbac import require_permission
from app.boardroom.utils import current_org_id, current_user, error_response, json_body, validation_error

bp = Blueprint("organizations", __name__)
public_bp = Blueprint("public_org", __name__)


@bp.get("/organization")
@require_permission("organization.view")
def get_organization():
    s = db_session()
    org = s.get(Organization, current_org_id())
    if org is None:
        abort(404)
    return jsonify({"organization": organization_to_dict(org)})


@bp.patch("/organization")
@require_permission("organization.edit")
def update_organization_patch():
    s = db_session()
    org = s.get(Organization, current_org_id())
    if org is None:
        abort(404)
    payload = json_body()

    errors = validate_organization_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_organization(s, org, payload, current_user())
    except ValueError as e:
        return error_response(str(e), 409)
    s.commit()
    return jsonify({"organization": organization_to_dict(org)})


@public_bp.get("/org/<slug>")
def public_organization(slug: str):
    s = db_session()
    org = s.query(Organization).filter(Organization.slug == slug).one_or_none()
    if org is None or not org.is_public:
        abort(404)
    return jsonify({"organization": public_profile(s, org)})
