from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.agenda.models import AgendaItem
from app.boardroom.modules.agenda.service import (
    agenda_item_to_dict,
    create_agenda_item,
    delete_agenda_item,
    list_agenda,
    parse_reorder_entries,
    reorder_agenda,
    total_duration,
    update_agenda_item,
    validate_agenda_payload,
)
from app.boardroom.modules.meetings.models import Meeting
from app.boardroom.rbac import require_permission
from app.boardroom.utils import (
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    validation_error,
)

bp = Blueprint("agenda", __name__)


def _load_item(s, meeting: Meeting, item_id: int) -> AgendaItem:
    item = s.get(AgendaItem, item_id)
    if item is None or item.meeting_id != meeting.id:
        abort(404)
    return item


def _agenda_response(items: list[AgendaItem], meeting_id: int):
    return jsonify(
        {
            "meeting_id": meeting_id,
            "agenda_items": [agenda_item_to_dict(i) for i in items],
            "total_duration_minutes": total_duration(items),
        }
    )


@bp.get("/meetings/<int:meeting_id>/agenda")
@require_permission("meetings.view")
def list_agenda_items(meeting_id: int):
    s = db_session()
    meeting = get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())
    return _agenda_response(list_agenda(s, meeting.id), meeting.id)


@bp.post("/meetings/<int:meeting_id>/agenda")
@require_permission("meetings.edit")
def create_agenda_item_post(meeting_id: int):
    s = db_session()
    meeting = get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())
    payload = json_body()

    errors = validate_agenda_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        item = create_agenda_item(s, meeting, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"agenda_item": agenda_item_to_dict(item)}), 201


@bp.put("/meetings/<int:meeting_id>/agenda")
@require_permission("meetings.edit")
def reorder_agenda_put(meeting_id: int):
    s = db_session()
    meeting = get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())

    entries, errors = parse_reorder_entries(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    try:
        items = reorder_agenda(s, meeting, entries, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return _agenda_response(items, meeting.id)


@bp.patch("/meetings/<int:meeting_id>/agenda/<int:item_id>")
@require_permission("meetings.edit")
def update_agenda_item_patch(meeting_id: int, item_id: int):
    s = db_session()
    meeting = get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())
    item = _load_item(s, meeting, item_id)
    payload = json_body()

    errors = validate_agenda_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_agenda_item(s, meeting, item, payload, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"agenda_item": agenda_item_to_dict(item)})


@bp.delete("/meetings/<int:meeting_id>/agenda/<int:item_id>")
@require_permission("meetings.edit")
def delete_agenda_item_delete(meeting_id: int, item_id: int):
    s = db_session()
    meeting = get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())
    item = _load_item(s, meeting, item_id)
    delete_agenda_item(s, item, current_user())
    s.commit()
    return jsonify({"success": True})
