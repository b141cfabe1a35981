from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.boardroom.audit import client_ip
from app.boardroom.db import db_session
from app.boardroom.modules.meetings.models import Meeting
from app.boardroom.modules.resolutions.models import Resolution
from app.boardroom.modules.resolutions.service import (
    VALID_STATUSES,
    cast_vote,
    close_resolution,
    create_resolution,
    delete_resolution,
    open_resolution,
    resolution_to_dict,
    retract_vote,
    sign_resolution,
    signature_to_dict,
    summarize_votes,
    update_resolution,
    validate_resolution_payload,
    validate_signature_payload,
    validate_vote_payload,
    vote_to_dict,
)
from app.boardroom.rbac import require_permission, user_has_permission
from app.boardroom.storage import storage_from_config
from app.boardroom.utils import (
    ConflictError,
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    pagination_args,
    parse_int,
    validation_error,
)

bp = Blueprint("resolutions", __name__)


def _load_resolution(s, resolution_id: int) -> Resolution:
    return get_org_entity_or_404(s, Resolution, resolution_id, current_org_id())


def _can_manage() -> bool:
    return user_has_permission(current_user(), "resolutions.manage")


@bp.get("/resolutions")
@require_permission("resolutions.view")
def list_resolutions():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()

    query = s.query(Resolution).filter(Resolution.organization_id == org_id)
    meeting_id = parse_int(request.args.get("meeting_id"))
    if meeting_id is not None:
        query = query.filter(Resolution.meeting_id == meeting_id)
    status = (request.args.get("status") or "").strip()
    if status in VALID_STATUSES:
        query = query.filter(Resolution.status == status)

    total = query.count()
    rows = query.order_by(Resolution.created_at.desc(), Resolution.id.desc()).offset(offset).limit(limit).all()
    return jsonify(
        {"resolutions": [resolution_to_dict(r) for r in rows], "total": total, "limit": limit, "offset": offset}
    )


@bp.post("/resolutions")
@require_permission("resolutions.create")
def create_resolution_post():
    s = db_session()
    payload = json_body()

    errors = validate_resolution_payload(payload)
    if errors:
        return validation_error(errors)

    meeting = get_org_entity_or_404(s, Meeting, parse_int(payload.get("meeting_id")), current_org_id())
    resolution = create_resolution(s, meeting, payload, current_user())
    s.commit()
    return jsonify({"resolution": resolution_to_dict(resolution)}), 201


@bp.get("/resolutions/<int:resolution_id>")
@require_permission("resolutions.view")
def get_resolution(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    return jsonify({"resolution": resolution_to_dict(resolution, include_votes=True)})


@bp.patch("/resolutions/<int:resolution_id>")
@require_permission("resolutions.create")
def update_resolution_patch(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    payload = json_body()

    errors = validate_resolution_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_resolution(s, resolution, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"resolution": resolution_to_dict(resolution)})


@bp.delete("/resolutions/<int:resolution_id>")
@require_permission("resolutions.create")
def delete_resolution_delete(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    try:
        delete_resolution(s, resolution, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"success": True})


@bp.post("/resolutions/<int:resolution_id>/open")
@require_permission("resolutions.manage")
def open_resolution_post(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    try:
        open_resolution(s, resolution, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"resolution": resolution_to_dict(resolution)})


@bp.post("/resolutions/<int:resolution_id>/close")
@require_permission("resolutions.manage")
def close_resolution_post(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    try:
        resolution, summary = close_resolution(s, resolution, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify(
        {
            "resolution": resolution_to_dict(resolution, include_votes=True),
            "summary": {**summary.to_dict(), "result": resolution.status},
        }
    )


@bp.post("/resolutions/<int:resolution_id>/vote")
@require_permission("resolutions.vote")
def cast_vote_post(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    payload = json_body()

    errors = validate_vote_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        vote = cast_vote(s, resolution, payload, current_user(), can_manage=_can_manage())
    except LookupError as e:
        return error_response(str(e), 404)
    except PermissionError as e:
        return error_response(str(e), 403)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"vote": vote_to_dict(vote), "summary": summarize_votes(resolution).to_dict()})


@bp.delete("/resolutions/<int:resolution_id>/vote")
@require_permission("resolutions.vote")
def retract_vote_delete(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    member_id = parse_int(request.args.get("board_member_id"))
    if member_id is None:
        return validation_error(["board_member_id is required."])

    try:
        retract_vote(s, resolution, member_id, current_user(), can_manage=_can_manage())
    except LookupError as e:
        return error_response(str(e), 404)
    except PermissionError as e:
        return error_response(str(e), 403)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"success": True, "summary": summarize_votes(resolution).to_dict()})


@bp.get("/resolutions/<int:resolution_id>/signatures")
@require_permission("resolutions.view")
def list_signatures(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    return jsonify({"signatures": [signature_to_dict(sig) for sig in resolution.signatures]})


@bp.post("/resolutions/<int:resolution_id>/signatures")
@require_permission("resolutions.sign")
def create_signature_post(resolution_id: int):
    s = db_session()
    resolution = _load_resolution(s, resolution_id)
    payload = json_body()

    errors = validate_signature_payload(payload)
    if errors:
        return validation_error(errors)

    storage = storage_from_config(current_app.config)
    try:
        signature = sign_resolution(
            s,
            storage,
            resolution,
            payload,
            current_user(),
            can_manage=_can_manage(),
            ip_address=client_ip(),
            user_agent=request.headers.get("User-Agent"),
        )
    except LookupError as e:
        return error_response(str(e), 404)
    except PermissionError as e:
        return error_response(str(e), 403)
    except ConflictError as e:
        return error_response(str(e), 409)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"signature": signature_to_dict(signature)}), 201
