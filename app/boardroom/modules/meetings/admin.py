from __future__ import annotations

from flask import Blueprint, Response, abort, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.documents.models import Document
from app.boardroom.modules.documents.service import document_to_dict
from app.boardroom.modules.meetings.models import ActionItem, Meeting, MeetingAttendee
from app.boardroom.modules.meetings.service import (
    VALID_MEETING_STATUSES,
    VALID_MEETING_TYPES,
    action_item_to_dict,
    attendee_to_dict,
    create_action_item,
    create_meeting,
    delete_action_item,
    delete_meeting,
    google_calendar_url,
    invite_attendees,
    meeting_to_dict,
    outlook_calendar_url,
    remove_attendee,
    render_ics,
    update_action_item,
    update_attendee,
    update_meeting,
    validate_action_item_payload,
    validate_meeting_payload,
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

bp = Blueprint("meetings", __name__)


def _load_meeting(s, meeting_id: int) -> Meeting:
    return get_org_entity_or_404(s, Meeting, meeting_id, current_org_id())


def _load_child(s, model, child_id: int, meeting: Meeting):
    obj = s.get(model, child_id)
    if obj is None or obj.meeting_id != meeting.id:
        abort(404)
    return obj


@bp.get("/meetings")
@require_permission("meetings.view")
def list_meetings():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()

    query = s.query(Meeting).filter(Meeting.organization_id == org_id)
    status = (request.args.get("status") or "").strip()
    if status in VALID_MEETING_STATUSES:
        query = query.filter(Meeting.status == status)
    meeting_type = (request.args.get("meeting_type") or "").strip()
    if meeting_type in VALID_MEETING_TYPES:
        query = query.filter(Meeting.meeting_type == meeting_type)

    total = query.count()
    meetings = query.order_by(Meeting.meeting_date.desc(), Meeting.id.desc()).offset(offset).limit(limit).all()
    return jsonify({"meetings": [meeting_to_dict(m) for m in meetings], "total": total, "limit": limit, "offset": offset})


@bp.post("/meetings")
@require_permission("meetings.edit")
def create_meeting_post():
    s = db_session()
    org_id = current_org_id()
    payload = json_body()

    errors = validate_meeting_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        meeting = create_meeting(s, org_id, payload, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"meeting": meeting_to_dict(meeting, detail=True)}), 201


@bp.get("/meetings/<int:meeting_id>")
@require_permission("meetings.view")
def get_meeting(meeting_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    docs = (
        s.query(Document)
        .filter(Document.meeting_id == meeting.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
    return jsonify({"meeting": meeting_to_dict(meeting, detail=True, documents=[document_to_dict(d) for d in docs])})


@bp.patch("/meetings/<int:meeting_id>")
@require_permission("meetings.edit")
def update_meeting_patch(meeting_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    payload = json_body()

    errors = validate_meeting_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    update_meeting(s, meeting, payload, current_user())
    s.commit()
    return jsonify({"meeting": meeting_to_dict(meeting, detail=True)})


@bp.delete("/meetings/<int:meeting_id>")
@require_permission("meetings.edit")
def delete_meeting_delete(meeting_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    delete_meeting(s, meeting, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.get("/meetings/<int:meeting_id>/calendar")
@require_permission("meetings.view")
def meeting_calendar(meeting_id: int):
    """ICS download; ?format=json returns the Google/Outlook links alongside the ICS body."""
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    body = render_ics(meeting)
    if (request.args.get("format") or "").strip().lower() == "json":
        return jsonify(
            {
                "ics": body,
                "google_url": google_calendar_url(meeting),
                "outlook_url": outlook_calendar_url(meeting),
            }
        )
    return Response(
        body,
        mimetype="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="meeting-{meeting.id}.ics"'},
    )


# Attendees


@bp.post("/meetings/<int:meeting_id>/attendees")
@require_permission("meetings.edit")
def invite_attendees_post(meeting_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    raw_ids = json_body().get("board_member_ids")
    if not isinstance(raw_ids, list):
        return validation_error(["board_member_ids must be a list of ids."])
    member_ids = [parse_int(v) for v in raw_ids]
    if any(v is None for v in member_ids):
        return validation_error(["board_member_ids must be integers."])

    try:
        added = invite_attendees(s, meeting, member_ids, current_user())  # type: ignore[arg-type]
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"attendees": [attendee_to_dict(a) for a in added]}), 201


@bp.patch("/meetings/<int:meeting_id>/attendees/<int:attendee_id>")
@require_permission("meetings.edit")
def update_attendee_patch(meeting_id: int, attendee_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    attendee = _load_child(s, MeetingAttendee, attendee_id, meeting)
    try:
        update_attendee(s, attendee, json_body(), current_user())
    except ValueError as e:
        return validation_error([str(e)])
    s.commit()
    return jsonify({"attendee": attendee_to_dict(attendee)})


@bp.delete("/meetings/<int:meeting_id>/attendees/<int:attendee_id>")
@require_permission("meetings.edit")
def remove_attendee_delete(meeting_id: int, attendee_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    attendee = _load_child(s, MeetingAttendee, attendee_id, meeting)
    remove_attendee(s, attendee, current_user())
    s.commit()
    return jsonify({"success": True})


# Action items


@bp.post("/meetings/<int:meeting_id>/action-items")
@require_permission("meetings.edit")
def create_action_item_post(meeting_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    payload = json_body()

    errors = validate_action_item_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        item = create_action_item(s, meeting, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"action_item": action_item_to_dict(item)}), 201


@bp.patch("/meetings/<int:meeting_id>/action-items/<int:item_id>")
@require_permission("meetings.edit")
def update_action_item_patch(meeting_id: int, item_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    item = _load_child(s, ActionItem, item_id, meeting)
    payload = json_body()

    errors = validate_action_item_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_action_item(s, item, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"action_item": action_item_to_dict(item)})


@bp.delete("/meetings/<int:meeting_id>/action-items/<int:item_id>")
@require_permission("meetings.edit")
def delete_action_item_delete(meeting_id: int, item_id: int):
    s = db_session()
    meeting = _load_meeting(s, meeting_id)
    item = _load_child(s, ActionItem, item_id, meeting)
    delete_action_item(s, item, current_user())
    s.commit()
    return jsonify({"success": True})
