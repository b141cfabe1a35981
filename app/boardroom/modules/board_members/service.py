from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.boardroom.audit import record_event
from app.boardroom.models import User
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.utils import EMAIL_RE, URL_RE, clean_str, clean_str_list, iso, parse_bool, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


VALID_POSITIONS = (
    "chairman",
    "vice_chairman",
    "ceo",
    "cfo",
    "director",
    "independent_director",
    "executive_director",
    "non_executive_director",
    "secretary",
    "member",
    "observer",
    "other",
)
VALID_STATUSES = ("active", "inactive", "pending")

_TEXT_FIELDS = {
    "full_name": 100,
    "email": 320,
    "phone": 20,
    "avatar_url": 512,
    "custom_position": 100,
    "department": 100,
    "bio": 2000,
    "linkedin_url": 512,
}


def validate_member_payload(payload: dict, *, partial: bool = False, existing: BoardMember | None = None) -> list[str]:
    """Validate a board member create/update payload. Returns list of errors."""
    errors: list[str] = []

    full_name = clean_str(payload.get("full_name"))
    if not partial or "full_name" in payload:
        if not full_name or len(full_name) < 2:
            errors.append("Name must be at least 2 characters.")

    for field, max_len in _TEXT_FIELDS.items():
        value = clean_str(payload.get(field))
        if value and len(value) > max_len:
            errors.append(f"{field} must be at most {max_len} characters.")

    email = clean_str(payload.get("email"))
    if email and not EMAIL_RE.match(email):
        errors.append("Invalid email address.")
    for url_field in ("avatar_url", "linkedin_url"):
        url = clean_str(payload.get(url_field))
        if url and not URL_RE.match(url):
            errors.append(f"{url_field} must be a valid URL.")

    position = clean_str(payload.get("position"))
    if not partial or "position" in payload:
        if position not in VALID_POSITIONS:
            errors.append(f"Invalid position. Must be one of: {', '.join(VALID_POSITIONS)}")

    effective_position = position if "position" in payload else (existing.position if existing else None)
    custom_position = clean_str(payload.get("custom_position")) if "custom_position" in payload else (
        existing.custom_position if existing else None
    )
    if effective_position == "other" and not custom_position:
        errors.append('Custom position is required when position is "other".')

    status = clean_str(payload.get("status"))
    if status and status not in VALID_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")

    start_date = end_date = None
    try:
        start_date = parse_date(payload.get("start_date"))
    except ValueError:
        errors.append("Invalid start_date (YYYY-MM-DD).")
    else:
        if not partial and start_date is None:
            errors.append("start_date is required.")
    try:
        end_date = parse_date(payload.get("end_date"))
    except ValueError:
        errors.append("Invalid end_date (YYYY-MM-DD).")

    effective_start = start_date or (existing.start_date if existing else None)
    effective_end = end_date if "end_date" in payload else (existing.end_date if existing else None)
    if effective_start and effective_end and effective_end < effective_start:
        errors.append("End date must be after start date.")

    if payload.get("term_length") not in (None, ""):
        term = parse_int(payload.get("term_length"))
        if term is None or term <= 0:
            errors.append("term_length must be a positive integer.")
    if payload.get("display_order") not in (None, ""):
        order = parse_int(payload.get("display_order"))
        if order is None or order < 0:
            errors.append("display_order must be a non-negative integer.")

    if payload.get("user_id") not in (None, "") and parse_int(payload.get("user_id")) is None:
        errors.append("user_id must be an integer id.")

    for list_field in ("qualifications", "committees"):
        if payload.get(list_field) is not None and not isinstance(payload.get(list_field), list):
            errors.append(f"{list_field} must be a list.")

    return errors


def _check_user_link(s: "Session", organization_id: int, user_id: int | None) -> None:
    if user_id is None:
        return
    linked = s.get(User, user_id)
    if linked is None or linked.organization_id != organization_id:
        raise ValueError("User must belong to this organization.")


def next_display_order(s: "Session", organization_id: int) -> int:
    current_max = (
        s.query(func.max(BoardMember.display_order))
        .filter(BoardMember.organization_id == organization_id)
        .scalar()
    )
    return 0 if current_max is None else current_max + 1


def create_member(s: "Session", organization_id: int, payload: dict, user: "User") -> BoardMember:
    _check_user_link(s, organization_id, parse_int(payload.get("user_id")))
    now = datetime.utcnow()
    display_order = parse_int(payload.get("display_order"))
    if display_order is None:
        display_order = next_display_order(s, organization_id)

    member = BoardMember(
        organization_id=organization_id,
        user_id=parse_int(payload.get("user_id")),
        full_name=clean_str(payload.get("full_name")) or "",
        email=clean_str(payload.get("email")),
        phone=clean_str(payload.get("phone")),
        avatar_url=clean_str(payload.get("avatar_url")),
        position=clean_str(payload.get("position")) or "member",
        custom_position=clean_str(payload.get("custom_position")),
        department=clean_str(payload.get("department")),
        bio=clean_str(payload.get("bio")),
        linkedin_url=clean_str(payload.get("linkedin_url")),
        qualifications=clean_str_list(payload.get("qualifications")),
        committees=clean_str_list(payload.get("committees")),
        status=clean_str(payload.get("status")) or "active",
        start_date=parse_date(payload.get("start_date")),
        end_date=parse_date(payload.get("end_date")),
        term_length=parse_int(payload.get("term_length")),
        is_independent=bool(parse_bool(payload.get("is_independent"), False)),
        display_order=display_order,
        show_on_public_profile=bool(parse_bool(payload.get("show_on_public_profile"), True)),
        created_at=now,
        updated_at=now,
    )
    s.add(member)
    s.flush()

    record_event(
        s,
        actor=user,
        action="board_member.create",
        entity_type="BoardMember",
        entity_id=str(member.id),
        metadata={"full_name": member.full_name, "position": member.position},
    )
    return member


def update_member(s: "Session", member: BoardMember, payload: dict, user: "User") -> BoardMember:
    """Apply only the keys present in payload; tracks old/new values for the audit trail."""
    if "user_id" in payload:
        _check_user_link(s, member.organization_id, parse_int(payload.get("user_id")))
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(member, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(member, field, new_value)

    for field in _TEXT_FIELDS:
        if field in payload:
            value = clean_str(payload.get(field))
            if field == "full_name" and not value:
                continue
            _set(field, value)
    if "position" in payload:
        _set("position", clean_str(payload.get("position")))
    if "status" in payload:
        _set("status", clean_str(payload.get("status")) or member.status)
    if "start_date" in payload and payload.get("start_date"):
        _set("start_date", parse_date(payload.get("start_date")))
    if "end_date" in payload:
        _set("end_date", parse_date(payload.get("end_date")))
    if "term_length" in payload:
        _set("term_length", parse_int(payload.get("term_length")))
    if "is_independent" in payload:
        _set("is_independent", bool(parse_bool(payload.get("is_independent"), False)))
    if "show_on_public_profile" in payload:
        _set("show_on_public_profile", bool(parse_bool(payload.get("show_on_public_profile"), True)))
    if "display_order" in payload and payload.get("display_order") not in (None, ""):
        _set("display_order", parse_int(payload.get("display_order")))
    if "user_id" in payload:
        _set("user_id", parse_int(payload.get("user_id")))
    for list_field in ("qualifications", "committees"):
        if list_field in payload:
            _set(list_field, clean_str_list(payload.get(list_field)))

    if changes:
        member.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="board_member.edit",
            entity_type="BoardMember",
            entity_id=str(member.id),
            metadata={"full_name": member.full_name, "changes": changes},
        )
    return member


def delete_member(s: "Session", member: BoardMember, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="board_member.delete",
        entity_type="BoardMember",
        entity_id=str(member.id),
        metadata={"full_name": member.full_name},
    )
    s.delete(member)


def reorder_members(s: "Session", organization_id: int, member_ids: list[int], user: "User") -> list[BoardMember]:
    """
    Rewrite display_order to the index of each id in member_ids.
    Every id must belong to the organization and appear once.
    """
    if not member_ids:
        raise ValueError("At least one member ID is required.")
    if len(set(member_ids)) != len(member_ids):
        raise ValueError("member_ids contains duplicates.")

    members = (
        s.query(BoardMember)
        .filter(BoardMember.organization_id == organization_id, BoardMember.id.in_(member_ids))
        .all()
    )
    by_id = {m.id: m for m in members}
    unknown = [mid for mid in member_ids if mid not in by_id]
    if unknown:
        raise ValueError(f"Unknown board member ids: {', '.join(str(i) for i in unknown)}")

    for index, mid in enumerate(member_ids):
        by_id[mid].display_order = index

    record_event(
        s,
        actor=user,
        action="board_member.reorder",
        entity_type="Organization",
        entity_id=str(organization_id),
        metadata={"member_ids": member_ids},
    )
    return [by_id[mid] for mid in member_ids]


def member_summary(member: BoardMember | None) -> dict | None:
    if member is None:
        return None
    return {
        "id": member.id,
        "full_name": member.full_name,
        "avatar_url": member.avatar_url,
        "position": member.position,
    }


def member_to_dict(member: BoardMember) -> dict:
    return {
        "id": member.id,
        "organization_id": member.organization_id,
        "user_id": member.user_id,
        "full_name": member.full_name,
        "email": member.email,
        "phone": member.phone,
        "avatar_url": member.avatar_url,
        "position": member.position,
        "custom_position": member.custom_position,
        "department": member.department,
        "bio": member.bio,
        "linkedin_url": member.linkedin_url,
        "qualifications": member.qualifications or [],
        "committees": member.committees or [],
        "status": member.status,
        "start_date": iso(member.start_date),
        "end_date": iso(member.end_date),
        "term_length": member.term_length,
        "is_independent": member.is_independent,
        "display_order": member.display_order,
        "show_on_public_profile": member.show_on_public_profile,
        "created_at": iso(member.created_at),
        "updated_at": iso(member.updated_at),
    }
