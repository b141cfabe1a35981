from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.compliance.models import (
    ComplianceCalendarEvent,
    ComplianceChecklist,
    ComplianceChecklistItem,
    ComplianceRegulation,
)
from app.boardroom.modules.compliance.service import (
    CHECKLIST_STATUSES,
    EVENT_STATUSES,
    REGULATION_CATEGORIES,
    add_item,
    checklist_to_dict,
    compliance_dashboard,
    create_checklist,
    create_event,
    delete_checklist,
    delete_event,
    delete_item,
    event_to_dict,
    item_to_dict,
    list_regulations,
    mark_overdue_events,
    regulation_to_dict,
    update_checklist,
    update_event,
    update_item,
    validate_checklist_payload,
    validate_event_payload,
    validate_item_payload,
)
from app.boardroom.rbac import require_permission
from app.boardroom.utils import (
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    pagination_args,
    validation_error,
)

bp = Blueprint("compliance", __name__)


@bp.get("/regulations")
@require_permission("compliance.view")
def regulations():
    s = db_session()
    category = (request.args.get("category") or "").strip()
    rows = list_regulations(
        s,
        country=(request.args.get("country") or "").strip() or None,
        category=category if category in REGULATION_CATEGORIES else None,
    )
    return jsonify({"regulations": [regulation_to_dict(r) for r in rows], "total": len(rows)})


@bp.get("/regulations/<int:regulation_id>")
@require_permission("compliance.view")
def regulation_detail(regulation_id: int):
    s = db_session()
    regulation = s.get(ComplianceRegulation, regulation_id)
    if regulation is None:
        abort(404)
    return jsonify({"regulation": regulation_to_dict(regulation)})


# Checklists


@bp.get("/checklists")
@require_permission("compliance.view")
def list_checklists():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()

    query = s.query(ComplianceChecklist).filter(ComplianceChecklist.organization_id == org_id)
    status = (request.args.get("status") or "").strip()
    if status in CHECKLIST_STATUSES:
        query = query.filter(ComplianceChecklist.status == status)

    total = query.count()
    rows = query.order_by(ComplianceChecklist.created_at.desc(), ComplianceChecklist.id.desc()).offset(offset).limit(limit).all()
    return jsonify({"checklists": [checklist_to_dict(c) for c in rows], "total": total, "limit": limit, "offset": offset})


@bp.post("/checklists")
@require_permission("compliance.edit")
def create_checklist_post():
    s = db_session()
    payload = json_body()

    errors = validate_checklist_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        checklist = create_checklist(s, current_org_id(), payload, current_user())
    except LookupError as e:
        return error_response(str(e), 404)
    s.commit()
    return jsonify({"checklist": checklist_to_dict(checklist)}), 201


@bp.get("/checklists/<int:checklist_id>")
@require_permission("compliance.view")
def get_checklist(checklist_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    return jsonify({"checklist": checklist_to_dict(checklist)})


@bp.patch("/checklists/<int:checklist_id>")
@require_permission("compliance.edit")
def update_checklist_patch(checklist_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    payload = json_body()

    errors = validate_checklist_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    update_checklist(s, checklist, payload, current_user())
    s.commit()
    return jsonify({"checklist": checklist_to_dict(checklist)})


@bp.delete("/checklists/<int:checklist_id>")
@require_permission("compliance.edit")
def delete_checklist_delete(checklist_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    delete_checklist(s, checklist, current_user())
    s.commit()
    return jsonify({"success": True})


def _load_item(s, checklist: ComplianceChecklist, item_id: int) -> ComplianceChecklistItem:
    item = s.get(ComplianceChecklistItem, item_id)
    if item is None or item.checklist_id != checklist.id:
        abort(404)
    return item


@bp.post("/checklists/<int:checklist_id>/items")
@require_permission("compliance.edit")
def add_item_post(checklist_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    payload = json_body()

    errors = validate_item_payload(payload)
    if errors:
        return validation_error(errors)

    item = add_item(s, checklist, payload, current_user())
    s.commit()
    return jsonify({"item": item_to_dict(item), "checklist_status": checklist.status}), 201


@bp.patch("/checklists/<int:checklist_id>/items/<int:item_id>")
@require_permission("compliance.edit")
def update_item_patch(checklist_id: int, item_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    item = _load_item(s, checklist, item_id)
    payload = json_body()

    errors = validate_item_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    update_item(s, item, payload, current_user())
    s.commit()
    return jsonify({"item": item_to_dict(item), "checklist_status": checklist.status})


@bp.delete("/checklists/<int:checklist_id>/items/<int:item_id>")
@require_permission("compliance.edit")
def delete_item_delete(checklist_id: int, item_id: int):
    s = db_session()
    checklist = get_org_entity_or_404(s, ComplianceChecklist, checklist_id, current_org_id())
    item = _load_item(s, checklist, item_id)
    delete_item(s, item, current_user())
    s.commit()
    return jsonify({"success": True, "checklist_status": checklist.status})


# Calendar


@bp.get("/calendar")
@require_permission("compliance.view")
def list_events():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()
    if mark_overdue_events(s, org_id):
        s.commit()

    query = s.query(ComplianceCalendarEvent).filter(ComplianceCalendarEvent.organization_id == org_id)
    status = (request.args.get("status") or "").strip()
    if status in EVENT_STATUSES:
        query = query.filter(ComplianceCalendarEvent.status == status)
    total = query.count()
    rows = (
        query.order_by(ComplianceCalendarEvent.due_date.asc(), ComplianceCalendarEvent.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return jsonify({"events": [event_to_dict(e) for e in rows], "total": total, "limit": limit, "offset": offset})


@bp.post("/calendar")
@require_permission("compliance.edit")
def create_event_post():
    s = db_session()
    payload = json_body()

    errors = validate_event_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        event = create_event(s, current_org_id(), payload, current_user())
    except LookupError as e:
        return error_response(str(e), 404)
    s.commit()
    return jsonify({"event": event_to_dict(event)}), 201


@bp.patch("/calendar/<int:event_id>")
@require_permission("compliance.edit")
def update_event_patch(event_id: int):
    s = db_session()
    event = get_org_entity_or_404(s, ComplianceCalendarEvent, event_id, current_org_id())
    payload = json_body()

    errors = validate_event_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    update_event(s, event, payload, current_user())
    s.commit()
    return jsonify({"event": event_to_dict(event)})


@bp.delete("/calendar/<int:event_id>")
@require_permission("compliance.edit")
def delete_event_delete(event_id: int):
    s = db_session()
    event = get_org_entity_or_404(s, ComplianceCalendarEvent, event_id, current_org_id())
    delete_event(s, event, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.get("/dashboard")
@require_permission("compliance.view")
def dashboard():
    s = db_session()
    data = compliance_dashboard(s, current_org_id())
    s.commit()
    return jsonify(data)
