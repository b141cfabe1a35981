from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.boardroom.audit import record_event
from app.boardroom.modules.compliance.models import (
    ComplianceCalendarEvent,
    ComplianceChecklist,
    ComplianceChecklistItem,
    ComplianceRegulation,
)
from app.boardroom.utils import clean_str, iso, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User

logger = logging.getLogger(__name__)

REGULATION_CATEGORIES = (
    "corporate_governance",
    "financial_reporting",
    "anti_money_laundering",
    "data_protection",
    "tax_compliance",
    "securities",
    "environmental",
    "labor",
)
CHECKLIST_STATUSES = ("draft", "in_progress", "completed", "archived")
ITEM_STATUSES = ("pending", "in_progress", "completed", "skipped")
EVENT_TYPES = ("deadline", "review", "filing", "training", "audit")
EVENT_STATUSES = ("upcoming", "overdue", "completed", "cancelled")

_DONE_ITEM_STATUSES = ("completed", "skipped")
UPCOMING_WINDOW_DAYS = 30


def _check_text(errors: list[str], payload: dict, field: str, *, min_len: int, max_len: int, required: bool) -> None:
    value = clean_str(payload.get(field))
    if value is None:
        if required:
            errors.append(f"{field.capitalize()} must be at least {min_len} characters.")
        return
    if len(value) < min_len:
        errors.append(f"{field.capitalize()} must be at least {min_len} characters.")
    elif len(value) > max_len:
        errors.append(f"{field.capitalize()} must be at most {max_len} characters.")


def _check_date(errors: list[str], payload: dict, field: str, *, required: bool) -> None:
    try:
        value = parse_date(payload.get(field))
    except ValueError:
        errors.append(f"Invalid {field} (YYYY-MM-DD).")
        return
    if required and value is None:
        errors.append(f"{field} is required.")


def _load_regulation(s: "Session", regulation_id: int | None) -> ComplianceRegulation | None:
    if regulation_id is None:
        return None
    regulation = s.get(ComplianceRegulation, regulation_id)
    if regulation is None:
        raise LookupError("Regulation not found.")
    return regulation


# ---------------------------------------------------------------------------
# Regulations
# ---------------------------------------------------------------------------


def list_regulations(s: "Session", *, country: str | None = None, category: str | None = None):
    query = s.query(ComplianceRegulation)
    if country:
        query = query.filter(func.lower(ComplianceRegulation.country) == country.strip().lower())
    if category:
        query = query.filter(ComplianceRegulation.category == category)
    return query.order_by(ComplianceRegulation.country.asc(), ComplianceRegulation.title.asc()).all()


def regulation_to_dict(regulation: ComplianceRegulation) -> dict:
    return {
        "id": regulation.id,
        "country": regulation.country,
        "category": regulation.category,
        "title": regulation.title,
        "reference_code": regulation.reference_code,
        "description": regulation.description,
        "key_requirements": regulation.key_requirements or [],
        "effective_date": iso(regulation.effective_date),
        "source_url": regulation.source_url,
    }


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------


def validate_checklist_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        _check_text(errors, payload, "title", min_len=3, max_len=200, required=True)
    description = clean_str(payload.get("description"))
    if description and len(description) > 1000:
        errors.append("Description must be at most 1000 characters.")
    category = clean_str(payload.get("category"))
    if category and len(category) > 40:
        errors.append("Category must be at most 40 characters.")
    _check_date(errors, payload, "due_date", required=False)
    status = clean_str(payload.get("status"))
    if status and status not in CHECKLIST_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(CHECKLIST_STATUSES)}")
    if payload.get("regulation_id") not in (None, "") and parse_int(payload.get("regulation_id")) is None:
        errors.append("regulation_id must be an integer id.")
    return errors


def checklist_progress(checklist: ComplianceChecklist) -> int:
    """Percentage of items completed or skipped (0 for an empty checklist)."""
    total = len(checklist.items)
    if total == 0:
        return 0
    done = sum(1 for item in checklist.items if item.status in _DONE_ITEM_STATUSES)
    return round(done * 100 / total)


def refresh_checklist_status(checklist: ComplianceChecklist) -> str:
    """Derive draft/in_progress/completed from item progress; archived checklists are left alone."""
    if checklist.status == "archived" or not checklist.items:
        return checklist.status
    statuses = [item.status for item in checklist.items]
    if all(st in _DONE_ITEM_STATUSES for st in statuses):
        new_status = "completed"
    elif any(st != "pending" for st in statuses):
        new_status = "in_progress"
    elif checklist.status == "completed":
        new_status = "in_progress"
    else:
        new_status = checklist.status
    if new_status != checklist.status:
        logger.debug("checklist %s status %s -> %s", checklist.id, checklist.status, new_status)
        checklist.status = new_status
        checklist.updated_at = datetime.utcnow()
    return checklist.status


def create_checklist(s: "Session", organization_id: int, payload: dict, user: "User") -> ComplianceChecklist:
    regulation = _load_regulation(s, parse_int(payload.get("regulation_id")))
    now = datetime.utcnow()
    checklist = ComplianceChecklist(
        organization_id=organization_id,
        regulation_id=regulation.id if regulation else None,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        category=clean_str(payload.get("category")) or (regulation.category if regulation else None),
        due_date=parse_date(payload.get("due_date")),
        status="draft",
        created_at=now,
        updated_at=now,
    )
    s.add(checklist)
    s.flush()

    if regulation is not None:
        for idx, requirement in enumerate(regulation.key_requirements or []):
            text = str(requirement).strip()
            if not text:
                continue
            checklist.items.append(
                ComplianceChecklistItem(
                    checklist_id=checklist.id,
                    title=text[:200],
                    description=text if len(text) > 200 else None,
                    status="pending",
                    order_index=idx,
                    created_at=now,
                    updated_at=now,
                )
            )
        s.flush()

    record_event(
        s,
        actor=user,
        action="compliance.checklist.create",
        entity_type="ComplianceChecklist",
        entity_id=str(checklist.id),
        metadata={"title": checklist.title, "regulation_id": checklist.regulation_id, "items": len(checklist.items)},
    )
    return checklist


def update_checklist(s: "Session", checklist: ComplianceChecklist, payload: dict, user: "User") -> ComplianceChecklist:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(checklist, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(checklist, field, new_value)

    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    for field in ("description", "category"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    if "due_date" in payload:
        _set("due_date", parse_date(payload.get("due_date")))
    if clean_str(payload.get("status")):
        _set("status", clean_str(payload.get("status")))

    if changes:
        checklist.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="compliance.checklist.edit",
            entity_type="ComplianceChecklist",
            entity_id=str(checklist.id),
            metadata={"title": checklist.title, "changes": changes},
        )
    return checklist


def delete_checklist(s: "Session", checklist: ComplianceChecklist, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="compliance.checklist.delete",
        entity_type="ComplianceChecklist",
        entity_id=str(checklist.id),
        metadata={"title": checklist.title},
    )
    s.delete(checklist)


def validate_item_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        _check_text(errors, payload, "title", min_len=3, max_len=200, required=True)
    description = clean_str(payload.get("description"))
    if description and len(description) > 500:
        errors.append("Description must be at most 500 characters.")
    status = clean_str(payload.get("status"))
    if status and status not in ITEM_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(ITEM_STATUSES)}")
    if payload.get("order_index") not in (None, ""):
        order = parse_int(payload.get("order_index"))
        if order is None or order < 0:
            errors.append("order_index must be a non-negative integer.")
    return errors


def _apply_item_status(item: ComplianceChecklistItem, status: str) -> None:
    item.status = status
    if status == "completed":
        if item.completed_at is None:
            item.completed_at = datetime.utcnow()
    else:
        item.completed_at = None


def add_item(s: "Session", checklist: ComplianceChecklist, payload: dict, user: "User") -> ComplianceChecklistItem:
    order_index = parse_int(payload.get("order_index"))
    if order_index is None:
        order_index = max((i.order_index for i in checklist.items), default=-1) + 1
    now = datetime.utcnow()
    item = ComplianceChecklistItem(
        checklist_id=checklist.id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        order_index=order_index,
        created_at=now,
        updated_at=now,
    )
    _apply_item_status(item, clean_str(payload.get("status")) or "pending")
    checklist.items.append(item)
    s.flush()
    refresh_checklist_status(checklist)

    record_event(
        s,
        actor=user,
        action="compliance.item.create",
        entity_type="ComplianceChecklistItem",
        entity_id=str(item.id),
        metadata={"checklist_id": checklist.id, "title": item.title},
    )
    return item


def update_item(s: "Session", item: ComplianceChecklistItem, payload: dict, user: "User") -> ComplianceChecklistItem:
    old_status = item.status
    if clean_str(payload.get("title")):
        item.title = clean_str(payload.get("title"))  # type: ignore[assignment]
    if "description" in payload:
        item.description = clean_str(payload.get("description"))
    if payload.get("order_index") not in (None, ""):
        item.order_index = parse_int(payload.get("order_index"))  # type: ignore[assignment]
    status = clean_str(payload.get("status"))
    if status and status != item.status:
        _apply_item_status(item, status)
    item.updated_at = datetime.utcnow()
    s.flush()
    refresh_checklist_status(item.checklist)

    record_event(
        s,
        actor=user,
        action="compliance.item.edit",
        entity_type="ComplianceChecklistItem",
        entity_id=str(item.id),
        metadata={"checklist_id": item.checklist_id, "from": old_status, "to": item.status},
    )
    return item


def delete_item(s: "Session", item: ComplianceChecklistItem, user: "User") -> None:
    checklist = item.checklist
    record_event(
        s,
        actor=user,
        action="compliance.item.delete",
        entity_type="ComplianceChecklistItem",
        entity_id=str(item.id),
        metadata={"checklist_id": item.checklist_id, "title": item.title},
    )
    checklist.items.remove(item)
    s.flush()
    refresh_checklist_status(checklist)


def item_to_dict(item: ComplianceChecklistItem) -> dict:
    return {
        "id": item.id,
        "checklist_id": item.checklist_id,
        "title": item.title,
        "description": item.description,
        "status": item.status,
        "order_index": item.order_index,
        "completed_at": iso(item.completed_at),
        "created_at": iso(item.created_at),
        "updated_at": iso(item.updated_at),
    }


def checklist_to_dict(checklist: ComplianceChecklist) -> dict:
    items = sorted(checklist.items, key=lambda i: (i.order_index, i.id))
    return {
        "id": checklist.id,
        "organization_id": checklist.organization_id,
        "regulation_id": checklist.regulation_id,
        "regulation": (
            {"id": checklist.regulation.id, "title": checklist.regulation.title, "country": checklist.regulation.country}
            if checklist.regulation
            else None
        ),
        "title": checklist.title,
        "description": checklist.description,
        "category": checklist.category,
        "due_date": iso(checklist.due_date),
        "status": checklist.status,
        "progress": checklist_progress(checklist),
        "items": [item_to_dict(i) for i in items],
        "created_at": iso(checklist.created_at),
        "updated_at": iso(checklist.updated_at),
    }


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


def validate_event_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        _check_text(errors, payload, "title", min_len=3, max_len=200, required=True)
    description = clean_str(payload.get("description"))
    if description and len(description) > 1000:
        errors.append("Description must be at most 1000 characters.")
    event_type = clean_str(payload.get("event_type"))
    if event_type and event_type not in EVENT_TYPES:
        errors.append(f"Invalid event_type. Must be one of: {', '.join(EVENT_TYPES)}")
    status = clean_str(payload.get("status"))
    if status and status not in EVENT_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(EVENT_STATUSES)}")
    if not partial or "due_date" in payload:
        _check_date(errors, payload, "due_date", required=True)
    if payload.get("regulation_id") not in (None, "") and parse_int(payload.get("regulation_id")) is None:
        errors.append("regulation_id must be an integer id.")
    return errors


def mark_overdue_events(s: "Session", organization_id: int, *, today: date | None = None) -> int:
    """Persist `overdue` on upcoming events whose due date has passed. Returns the number changed."""
    today = today or date.today()
    events = (
        s.query(ComplianceCalendarEvent)
        .filter(
            ComplianceCalendarEvent.organization_id == organization_id,
            ComplianceCalendarEvent.status == "upcoming",
            ComplianceCalendarEvent.due_date < today,
        )
        .all()
    )
    now = datetime.utcnow()
    for ev in events:
        ev.status = "overdue"
        ev.updated_at = now
    if events:
        s.flush()
        logger.info("marked %s compliance events overdue for organization %s", len(events), organization_id)
    return len(events)


def create_event(s: "Session", organization_id: int, payload: dict, user: "User") -> ComplianceCalendarEvent:
    regulation = _load_regulation(s, parse_int(payload.get("regulation_id")))
    now = datetime.utcnow()
    event = ComplianceCalendarEvent(
        organization_id=organization_id,
        regulation_id=regulation.id if regulation else None,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        event_type=clean_str(payload.get("event_type")) or "deadline",
        due_date=parse_date(payload.get("due_date")),
        status="upcoming",
        created_at=now,
        updated_at=now,
    )
    s.add(event)
    s.flush()

    record_event(
        s,
        actor=user,
        action="compliance.event.create",
        entity_type="ComplianceCalendarEvent",
        entity_id=str(event.id),
        metadata={"title": event.title, "due_date": event.due_date},
    )
    return event


def update_event(s: "Session", event: ComplianceCalendarEvent, payload: dict, user: "User") -> ComplianceCalendarEvent:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(event, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(event, field, new_value)

    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    if "description" in payload:
        _set("description", clean_str(payload.get("description")))
    for field in ("event_type", "status"):
        if clean_str(payload.get(field)):
            _set(field, clean_str(payload.get(field)))
    if payload.get("due_date"):
        _set("due_date", parse_date(payload.get("due_date")))
        # A postponed overdue event becomes upcoming again.
        if event.status == "overdue" and event.due_date >= date.today() and "status" not in payload:
            _set("status", "upcoming")

    if changes:
        event.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="compliance.event.edit",
            entity_type="ComplianceCalendarEvent",
            entity_id=str(event.id),
            metadata={"title": event.title, "changes": changes},
        )
    return event


def delete_event(s: "Session", event: ComplianceCalendarEvent, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="compliance.event.delete",
        entity_type="ComplianceCalendarEvent",
        entity_id=str(event.id),
        metadata={"title": event.title},
    )
    s.delete(event)


def event_to_dict(event: ComplianceCalendarEvent) -> dict:
    return {
        "id": event.id,
        "organization_id": event.organization_id,
        "regulation_id": event.regulation_id,
        "regulation": (
            {"id": event.regulation.id, "title": event.regulation.title, "country": event.regulation.country}
            if event.regulation
            else None
        ),
        "title": event.title,
        "description": event.description,
        "event_type": event.event_type,
        "due_date": iso(event.due_date),
        "status": event.status,
        "created_at": iso(event.created_at),
        "updated_at": iso(event.updated_at),
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def compliance_dashboard(s: "Session", organization_id: int, *, today: date | None = None) -> dict:
    today = today or date.today()
    mark_overdue_events(s, organization_id, today=today)

    checklists = s.query(ComplianceChecklist).filter(ComplianceChecklist.organization_id == organization_id).all()
    by_status = {status: 0 for status in CHECKLIST_STATUSES}
    total_items = done_items = 0
    for checklist in checklists:
        by_status[checklist.status] = by_status.get(checklist.status, 0) + 1
        total_items += len(checklist.items)
        done_items += sum(1 for i in checklist.items if i.status in _DONE_ITEM_STATUSES)

    events = s.query(ComplianceCalendarEvent).filter(ComplianceCalendarEvent.organization_id == organization_id)
    overdue = events.filter(ComplianceCalendarEvent.status == "overdue").order_by(
        ComplianceCalendarEvent.due_date.asc()
    )
    upcoming = events.filter(
        ComplianceCalendarEvent.status == "upcoming",
        ComplianceCalendarEvent.due_date >= today,
        ComplianceCalendarEvent.due_date <= today + timedelta(days=UPCOMING_WINDOW_DAYS),
    ).order_by(ComplianceCalendarEvent.due_date.asc())

    return {
        "checklists": {"total": len(checklists), "by_status": by_status},
        "items": {
            "total": total_items,
            "done": done_items,
            "completion_rate": round(done_items * 100 / total_items) if total_items else 0,
        },
        "overdue_events": [event_to_dict(e) for e in overdue.all()],
        "upcoming_events": [event_to_dict(e) for e in upcoming.all()],
    }
