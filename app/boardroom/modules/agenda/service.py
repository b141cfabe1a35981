from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.boardroom.audit import record_event
from app.boardroom.modules.agenda.models import AgendaItem
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.board_members.service import member_summary
from app.boardroom.modules.documents.models import Document
from app.boardroom.modules.resolutions.models import Resolution
from app.boardroom.utils import clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User
    from app.boardroom.modules.meetings.models import Meeting


VALID_ITEM_TYPES = ("regular", "consent", "presentation", "vote", "break")
VALID_ITEM_STATUSES = ("pending", "in_progress", "completed", "skipped")
DEFAULT_DURATION_MINUTES = 5

_LINK_FIELDS = ("parent_id", "presenter_id", "document_id", "resolution_id")


def validate_agenda_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []

    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title:
            errors.append("Title is required.")
        elif len(title) > 255:
            errors.append("Title must be at most 255 characters.")

    for field in ("duration_minutes", "order_index"):
        if payload.get(field) not in (None, ""):
            value = parse_int(payload.get(field))
            if value is None or value < 0:
                errors.append(f"{field} must be a non-negative integer.")

    item_type = clean_str(payload.get("item_type"))
    if item_type and item_type not in VALID_ITEM_TYPES:
        errors.append(f"Invalid item_type. Must be one of: {', '.join(VALID_ITEM_TYPES)}")
    status = clean_str(payload.get("status"))
    if status and status not in VALID_ITEM_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_ITEM_STATUSES)}")

    for field in _LINK_FIELDS:
        if payload.get(field) not in (None, "") and parse_int(payload.get(field)) is None:
            errors.append(f"{field} must be an integer id.")

    return errors


def _check_parent(s: "Session", meeting: "Meeting", parent_id: int | None, item: AgendaItem | None) -> None:
    if parent_id is None:
        return
    if item is not None and parent_id == item.id:
        raise ValueError("An agenda item cannot be its own parent.")
    parent = s.get(AgendaItem, parent_id)
    if parent is None or parent.meeting_id != meeting.id:
        raise ValueError("Parent item must belong to the same meeting.")
    if parent.parent_id is not None:
        raise ValueError("Parent item must be a top-level item.")
    if item is not None and item.id is not None:
        has_children = (
            s.query(AgendaItem.id).filter(AgendaItem.parent_id == item.id).first() is not None
        )
        if has_children:
            raise ValueError("An item with sub-items cannot be nested.")


def _check_links(s: "Session", meeting: "Meeting", values: dict[str, int | None]) -> None:
    presenter_id = values.get("presenter_id")
    if presenter_id is not None:
        presenter = s.get(BoardMember, presenter_id)
        if presenter is None or presenter.organization_id != meeting.organization_id:
            raise ValueError("Presenter must be a board member of this organization.")
    document_id = values.get("document_id")
    if document_id is not None:
        document = s.get(Document, document_id)
        if document is None or document.organization_id != meeting.organization_id:
            raise ValueError("Document must belong to this organization.")
    resolution_id = values.get("resolution_id")
    if resolution_id is not None:
        resolution = s.get(Resolution, resolution_id)
        if resolution is None or resolution.meeting_id != meeting.id:
            raise ValueError("Resolution must belong to the same meeting.")


def next_order_index(s: "Session", meeting_id: int) -> int:
    current_max = s.query(func.max(AgendaItem.order_index)).filter(AgendaItem.meeting_id == meeting_id).scalar()
    return 0 if current_max is None else current_max + 1


def list_agenda(s: "Session", meeting_id: int) -> list[AgendaItem]:
    return (
        s.query(AgendaItem)
        .filter(AgendaItem.meeting_id == meeting_id)
        .order_by(AgendaItem.order_index.asc(), AgendaItem.id.asc())
        .all()
    )


def total_duration(items: list[AgendaItem]) -> int:
    return sum(i.duration_minutes or 0 for i in items)


def create_agenda_item(s: "Session", meeting: "Meeting", payload: dict, user: "User") -> AgendaItem:
    links = {f: parse_int(payload.get(f)) for f in _LINK_FIELDS}
    _check_parent(s, meeting, links["parent_id"], None)
    _check_links(s, meeting, links)

    order_index = parse_int(payload.get("order_index"))
    if order_index is None:
        order_index = next_order_index(s, meeting.id)
    duration = parse_int(payload.get("duration_minutes"))

    now = datetime.utcnow()
    item = AgendaItem(
        meeting_id=meeting.id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        duration_minutes=DEFAULT_DURATION_MINUTES if duration is None else duration,
        order_index=order_index,
        item_type=clean_str(payload.get("item_type")) or "regular",
        status=clean_str(payload.get("status")) or "pending",
        created_at=now,
        updated_at=now,
        **links,
    )
    s.add(item)
    s.flush()

    record_event(
        s,
        actor=user,
        action="agenda_item.create",
        entity_type="AgendaItem",
        entity_id=str(item.id),
        metadata={"meeting_id": meeting.id, "title": item.title},
    )
    return item


def update_agenda_item(s: "Session", meeting: "Meeting", item: AgendaItem, payload: dict, user: "User") -> AgendaItem:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(item, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(item, field, new_value)

    links = {f: parse_int(payload.get(f)) for f in _LINK_FIELDS if f in payload}
    if "parent_id" in links:
        _check_parent(s, meeting, links["parent_id"], item)
    _check_links(s, meeting, links)

    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    if "description" in payload:
        _set("description", clean_str(payload.get("description")))
    for field in ("duration_minutes", "order_index"):
        if payload.get(field) not in (None, ""):
            _set(field, parse_int(payload.get(field)))
    for field in ("item_type", "status"):
        if clean_str(payload.get(field)):
            _set(field, clean_str(payload.get(field)))
    for field, value in links.items():
        _set(field, value)

    if changes:
        item.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="agenda_item.edit",
            entity_type="AgendaItem",
            entity_id=str(item.id),
            metadata={"meeting_id": meeting.id, "changes": changes},
        )
    return item


def delete_agenda_item(s: "Session", item: AgendaItem, user: "User") -> None:
    """Delete an item; its sub-items become top-level items."""
    children = s.query(AgendaItem).filter(AgendaItem.parent_id == item.id).all()
    for child in children:
        child.parent_id = None
    s.flush()

    record_event(
        s,
        actor=user,
        action="agenda_item.delete",
        entity_type="AgendaItem",
        entity_id=str(item.id),
        metadata={"meeting_id": item.meeting_id, "title": item.title, "promoted": [c.id for c in children]},
    )
    s.delete(item)


def parse_reorder_entries(raw: Any) -> tuple[list[dict], list[str]]:
    """Normalize `[{id, order_index, parent_id?}]`; returns (entries, errors)."""
    if not isinstance(raw, list) or not raw:
        return [], ["Body must be a non-empty list of {id, order_index, parent_id?}."]

    entries: list[dict] = []
    errors: list[str] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors.append(f"Entry {idx} must be an object.")
            continue
        item_id = parse_int(entry.get("id"))
        order_index = parse_int(entry.get("order_index"))
        if item_id is None:
            errors.append(f"Entry {idx}: id is required.")
        if order_index is None or order_index < 0:
            errors.append(f"Entry {idx}: order_index must be a non-negative integer.")
        parsed = {"id": item_id, "order_index": order_index}
        if "parent_id" in entry:
            parent_id = parse_int(entry.get("parent_id"))
            if entry.get("parent_id") not in (None, "") and parent_id is None:
                errors.append(f"Entry {idx}: parent_id must be an integer id or null.")
            parsed["parent_id"] = parent_id
        entries.append(parsed)

    ids = [e["id"] for e in entries if e["id"] is not None]
    if len(set(ids)) != len(ids):
        errors.append("Duplicate ids in reorder list.")
    return entries, errors


def reorder_agenda(s: "Session", meeting: "Meeting", entries: list[dict], user: "User") -> list[AgendaItem]:
    """
    Apply a drag-and-drop reorder. Every id must belong to the meeting and
    the resulting tree must stay one level deep; nothing is written when any
    entry is rejected.
    """
    items = {i.id: i for i in list_agenda(s, meeting.id)}
    unknown = [e["id"] for e in entries if e["id"] not in items]
    if unknown:
        raise ValueError(f"Unknown agenda item ids: {', '.join(str(i) for i in unknown)}")

    final_parent = {item_id: item.parent_id for item_id, item in items.items()}
    for e in entries:
        if "parent_id" in e:
            final_parent[e["id"]] = e["parent_id"]

    for item_id, parent_id in final_parent.items():
        if parent_id is None:
            continue
        if parent_id == item_id:
            raise ValueError("An agenda item cannot be its own parent.")
        if parent_id not in items:
            raise ValueError("Parent item must belong to the same meeting.")
        if final_parent[parent_id] is not None:
            raise ValueError("Parent item must be a top-level item.")

    for e in entries:
        item = items[e["id"]]
        item.order_index = e["order_index"]
        if "parent_id" in e:
            item.parent_id = e["parent_id"]
        item.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="agenda.reorder",
        entity_type="Meeting",
        entity_id=str(meeting.id),
        metadata={"entries": entries},
    )
    s.flush()
    return list_agenda(s, meeting.id)


def agenda_item_to_dict(item: AgendaItem) -> dict:
    return {
        "id": item.id,
        "meeting_id": item.meeting_id,
        "parent_id": item.parent_id,
        "title": item.title,
        "description": item.description,
        "duration_minutes": item.duration_minutes,
        "order_index": item.order_index,
        "item_type": item.item_type,
        "status": item.status,
        "presenter_id": item.presenter_id,
        "presenter": member_summary(item.presenter),
        "document_id": item.document_id,
        "document": {"id": item.document.id, "title": item.document.title} if item.document else None,
        "resolution_id": item.resolution_id,
        "resolution": (
            {"id": item.resolution.id, "title": item.resolution.title, "status": item.resolution.status}
            if item.resolution
            else None
        ),
        "created_at": iso(item.created_at),
        "updated_at": iso(item.updated_at),
    }
