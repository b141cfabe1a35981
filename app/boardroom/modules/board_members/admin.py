from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.board_members.service import (
    VALID_STATUSES,
    create_member,
    delete_member,
    member_to_dict,
    reorder_members,
    update_member,
    validate_member_payload,
)
from app.boardroom.rbac import require_permission
from app.boardroom.utils import (
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    pagination_args,
    parse_int,
    validation_error,
)

bp = Blueprint("board_members", __name__)


@bp.get("/board-members")
@require_permission("members.view")
def list_members():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()

    query = s.query(BoardMember).filter(BoardMember.organization_id == org_id)
    status = (request.args.get("status") or "").strip()
    if status in VALID_STATUSES:
        query = query.filter(BoardMember.status == status)

    total = query.count()
    members = query.order_by(BoardMember.display_order.asc(), BoardMember.id.asc()).offset(offset).limit(limit).all()
    return jsonify({"members": [member_to_dict(m) for m in members], "total": total, "limit": limit, "offset": offset})


@bp.post("/board-members")
@require_permission("members.edit")
def create_member_post():
    s = db_session()
    org_id = current_org_id()
    payload = json_body()

    errors = validate_member_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        member = create_member(s, org_id, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"member": member_to_dict(member)}), 201


@bp.get("/board-members/<int:member_id>")
@require_permission("members.view")
def get_member(member_id: int):
    s = db_session()
    member = get_org_entity_or_404(s, BoardMember, member_id, current_org_id())
    return jsonify({"member": member_to_dict(member)})


@bp.patch("/board-members/<int:member_id>")
@require_permission("members.edit")
def update_member_patch(member_id: int):
    s = db_session()
    member = get_org_entity_or_404(s, BoardMember, member_id, current_org_id())
    payload = json_body()

    errors = validate_member_payload(payload, partial=True, existing=member)
    if errors:
        return validation_error(errors)

    try:
        update_member(s, member, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"member": member_to_dict(member)})


@bp.delete("/board-members/<int:member_id>")
@require_permission("members.edit")
def delete_member_delete(member_id: int):
    s = db_session()
    member = get_org_entity_or_404(s, BoardMember, member_id, current_org_id())
    delete_member(s, member, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/board-members/reorder")
@require_permission("members.edit")
def reorder_members_post():
    s = db_session()
    org_id = current_org_id()
    raw_ids = json_body().get("member_ids")
    if not isinstance(raw_ids, list):
        return validation_error(["member_ids must be a list of ids."])
    member_ids = [parse_int(v) for v in raw_ids]
    if any(v is None for v in member_ids):
        return validation_error(["member_ids must be integers."])

    try:
        members = reorder_members(s, org_id, member_ids, current_user())  # type: ignore[arg-type]
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"members": [member_to_dict(m) for m in members]})
