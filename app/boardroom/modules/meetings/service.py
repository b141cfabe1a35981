from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from app.boardroom.audit import record_event
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.board_members.service import member_summary
from app.boardroom.modules.meetings.models import ActionItem, Meeting, MeetingAttendee
from app.boardroom.utils import clean_str, iso, parse_bool, parse_date, parse_datetime, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User

VALID_MEETING_TYPES = ("regular", "special", "emergency", "annual")
VALID_MEETING_STATUSES = ("upcoming", "in_progress", "completed", "cancelled")
VALID_ATTENDANCE_STATUSES = ("invited", "attending", "absent", "excused")
VALID_ACTION_STATUSES = ("pending", "in_progress", "completed", "cancelled")
VALID_PRIORITIES = ("low", "medium", "high")

DEFAULT_DURATION_MINUTES = 60
ICS_PRODID = "-//Boardroom//NONSGML Meeting//EN"
ICS_UID_DOMAIN = "boardroom"


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------


def validate_meeting_payload(payload: dict, *, partial: bool = False, now: datetime | None = None) -> list[str]:
    errors: list[str] = []

    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 3:
            errors.append("Title must be at least 3 characters.")
        elif len(title) > 255:
            errors.append("Title must be at most 255 characters.")

    meeting_type = clean_str(payload.get("meeting_type"))
    if meeting_type and meeting_type not in VALID_MEETING_TYPES:
        errors.append(f"Invalid meeting_type. Must be one of: {', '.join(VALID_MEETING_TYPES)}")

    status = clean_str(payload.get("status"))
    if status and status not in VALID_MEETING_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_MEETING_STATUSES)}")

    if not partial or "meeting_date" in payload:
        try:
            meeting_date = parse_datetime(payload.get("meeting_date"))
        except ValueError:
            errors.append("Invalid meeting_date (ISO-8601).")
        else:
            if meeting_date is None:
                errors.append("meeting_date is required.")
            elif not partial:
                # Creating meetings in the past is allowed only within the last day.
                cutoff = (now or datetime.utcnow()) - timedelta(hours=24)
                if meeting_date < cutoff:
                    errors.append("Meeting date cannot be more than 24 hours in the past.")

    if payload.get("duration_minutes") not in (None, ""):
        duration = parse_int(payload.get("duration_minutes"))
        if duration is None or duration < 15 or duration > 480:
            errors.append("duration_minutes must be between 15 and 480.")

    location = clean_str(payload.get("location"))
    if location and len(location) > 255:
        errors.append("Location must be at most 255 characters.")

    attendee_ids = payload.get("attendee_ids")
    if attendee_ids is not None:
        if not isinstance(attendee_ids, list) or any(parse_int(v) is None for v in attendee_ids):
            errors.append("attendee_ids must be a list of board member ids.")

    return errors


def create_meeting(s: "Session", organization_id: int, payload: dict, user: "User") -> Meeting:
    now = datetime.utcnow()
    meeting = Meeting(
        organization_id=organization_id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        meeting_type=clean_str(payload.get("meeting_type")) or "regular",
        meeting_date=parse_datetime(payload.get("meeting_date")),
        duration_minutes=parse_int(payload.get("duration_minutes")),
        location=clean_str(payload.get("location")),
        status=clean_str(payload.get("status")) or "upcoming",
        agenda=clean_str(payload.get("agenda")),
        minutes=clean_str(payload.get("minutes")),
        is_public=bool(parse_bool(payload.get("is_public"), False)),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    s.add(meeting)
    s.flush()

    record_event(
        s,
        actor=user,
        action="meeting.create",
        entity_type="Meeting",
        entity_id=str(meeting.id),
        metadata={"title": meeting.title, "meeting_date": meeting.meeting_date},
    )

    attendee_ids = payload.get("attendee_ids") or []
    if attendee_ids:
        invite_attendees(s, meeting, [parse_int(v) for v in attendee_ids], user)  # type: ignore[misc]
    return meeting


def update_meeting(s: "Session", meeting: Meeting, payload: dict, user: "User") -> Meeting:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(meeting, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(meeting, field, new_value)

    for field in ("description", "location", "agenda", "minutes"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    for field in ("meeting_type", "status"):
        if clean_str(payload.get(field)):
            _set(field, clean_str(payload.get(field)))
    if payload.get("meeting_date"):
        _set("meeting_date", parse_datetime(payload.get("meeting_date")))
    if "duration_minutes" in payload:
        _set("duration_minutes", parse_int(payload.get("duration_minutes")))
    if "is_public" in payload:
        _set("is_public", bool(parse_bool(payload.get("is_public"), False)))

    if changes:
        meeting.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="meeting.edit",
            entity_type="Meeting",
            entity_id=str(meeting.id),
            metadata={"title": meeting.title, "changes": changes},
        )
    return meeting


def delete_meeting(s: "Session", meeting: Meeting, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="meeting.delete",
        entity_type="Meeting",
        entity_id=str(meeting.id),
        metadata={"title": meeting.title},
    )
    s.delete(meeting)


# ---------------------------------------------------------------------------
# Attendees
# ---------------------------------------------------------------------------


def invite_attendees(s: "Session", meeting: Meeting, member_ids: list[int], user: "User") -> list[MeetingAttendee]:
    """Invite members of the meeting's organization; members already on the list are skipped."""
    if not member_ids:
        raise ValueError("At least one board member is required.")

    members = (
        s.query(BoardMember)
        .filter(BoardMember.organization_id == meeting.organization_id, BoardMember.id.in_(member_ids))
        .all()
    )
    found = {m.id for m in members}
    unknown = [mid for mid in member_ids if mid not in found]
    if unknown:
        raise ValueError(f"Unknown board member ids: {', '.join(str(i) for i in unknown)}")

    existing = {a.board_member_id for a in meeting.attendees}
    added: list[MeetingAttendee] = []
    for mid in dict.fromkeys(member_ids):
        if mid in existing:
            continue
        attendee = MeetingAttendee(meeting_id=meeting.id, board_member_id=mid, attendance_status="invited")
        meeting.attendees.append(attendee)
        added.append(attendee)
    s.flush()

    if added:
        record_event(
            s,
            actor=user,
            action="meeting.attendees.invite",
            entity_type="Meeting",
            entity_id=str(meeting.id),
            metadata={"board_member_ids": [a.board_member_id for a in added]},
        )
    return added


def update_attendee(s: "Session", attendee: MeetingAttendee, payload: dict, user: "User") -> MeetingAttendee:
    status = clean_str(payload.get("attendance_status"))
    if status is not None and status not in VALID_ATTENDANCE_STATUSES:
        raise ValueError(f"Invalid attendance_status. Must be one of: {', '.join(VALID_ATTENDANCE_STATUSES)}")

    old_status = attendee.attendance_status
    if status:
        attendee.attendance_status = status
    if "notes" in payload:
        attendee.notes = clean_str(payload.get("notes"))

    record_event(
        s,
        actor=user,
        action="meeting.attendee.edit",
        entity_type="MeetingAttendee",
        entity_id=str(attendee.id),
        metadata={"meeting_id": attendee.meeting_id, "from": old_status, "to": attendee.attendance_status},
    )
    return attendee


def remove_attendee(s: "Session", attendee: MeetingAttendee, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="meeting.attendee.remove",
        entity_type="MeetingAttendee",
        entity_id=str(attendee.id),
        metadata={"meeting_id": attendee.meeting_id, "board_member_id": attendee.board_member_id},
    )
    s.delete(attendee)


# ---------------------------------------------------------------------------
# Action items
# ---------------------------------------------------------------------------


def validate_action_item_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 3:
            errors.append("Title must be at least 3 characters.")
        elif len(title) > 255:
            errors.append("Title must be at most 255 characters.")

    status = clean_str(payload.get("status"))
    if status and status not in VALID_ACTION_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_ACTION_STATUSES)}")
    priority = clean_str(payload.get("priority"))
    if priority and priority not in VALID_PRIORITIES:
        errors.append(f"Invalid priority. Must be one of: {', '.join(VALID_PRIORITIES)}")
    try:
        parse_date(payload.get("due_date"))
    except ValueError:
        errors.append("Invalid due_date (YYYY-MM-DD).")
    if payload.get("assigned_to_member_id") not in (None, "") and parse_int(payload.get("assigned_to_member_id")) is None:
        errors.append("assigned_to_member_id must be an integer.")
    return errors


def _check_assignee(s: "Session", meeting: Meeting, member_id: int | None) -> None:
    if member_id is None:
        return
    member = s.get(BoardMember, member_id)
    if member is None or member.organization_id != meeting.organization_id:
        raise ValueError("Assignee must be a board member of this organization.")


def _apply_action_status(item: ActionItem, status: str) -> None:
    item.status = status
    if status == "completed":
        if item.completed_at is None:
            item.completed_at = datetime.utcnow()
    else:
        item.completed_at = None


def create_action_item(s: "Session", meeting: Meeting, payload: dict, user: "User") -> ActionItem:
    assignee_id = parse_int(payload.get("assigned_to_member_id"))
    _check_assignee(s, meeting, assignee_id)

    now = datetime.utcnow()
    item = ActionItem(
        meeting_id=meeting.id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        assigned_to_member_id=assignee_id,
        due_date=parse_date(payload.get("due_date")),
        priority=clean_str(payload.get("priority")) or "medium",
        created_at=now,
        updated_at=now,
    )
    _apply_action_status(item, clean_str(payload.get("status")) or "pending")
    meeting.action_items.append(item)
    s.flush()

    record_event(
        s,
        actor=user,
        action="meeting.action_item.create",
        entity_type="ActionItem",
        entity_id=str(item.id),
        metadata={"meeting_id": meeting.id, "title": item.title},
    )
    return item


def update_action_item(s: "Session", item: ActionItem, payload: dict, user: "User") -> ActionItem:
    changes: dict[str, Any] = {}

    if clean_str(payload.get("title")):
        item.title = clean_str(payload.get("title"))  # type: ignore[assignment]
    if "description" in payload:
        item.description = clean_str(payload.get("description"))
    if "due_date" in payload:
        item.due_date = parse_date(payload.get("due_date"))
    if clean_str(payload.get("priority")):
        item.priority = clean_str(payload.get("priority"))  # type: ignore[assignment]
    if "assigned_to_member_id" in payload:
        assignee_id = parse_int(payload.get("assigned_to_member_id"))
        _check_assignee(s, item.meeting, assignee_id)
        item.assigned_to_member_id = assignee_id
    status = clean_str(payload.get("status"))
    if status and status != item.status:
        changes["status"] = {"old": item.status, "new": status}
        _apply_action_status(item, status)

    item.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="meeting.action_item.edit",
        entity_type="ActionItem",
        entity_id=str(item.id),
        metadata={"meeting_id": item.meeting_id, "changes": changes},
    )
    return item


def delete_action_item(s: "Session", item: ActionItem, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="meeting.action_item.delete",
        entity_type="ActionItem",
        entity_id=str(item.id),
        metadata={"meeting_id": item.meeting_id, "title": item.title},
    )
    s.delete(item)


# ---------------------------------------------------------------------------
# Calendar export
# ---------------------------------------------------------------------------


def meeting_end(meeting: Meeting) -> datetime:
    return meeting.meeting_date + timedelta(minutes=meeting.duration_minutes or DEFAULT_DURATION_MINUTES)


def _ics_date(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def render_ics(meeting: Meeting, *, now: datetime | None = None) -> str:
    """Single-event iCalendar body with a 15 minute display reminder."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{meeting.id}@{ICS_UID_DOMAIN}",
        f"DTSTAMP:{_ics_date(now or datetime.utcnow())}",
        f"DTSTART:{_ics_date(meeting.meeting_date)}",
        f"DTEND:{_ics_date(meeting_end(meeting))}",
        f"SUMMARY:{_ics_escape(meeting.title)}",
        f"DESCRIPTION:{_ics_escape(meeting.description or '')}",
        f"LOCATION:{_ics_escape(meeting.location or 'Online')}",
        "STATUS:CANCELLED" if meeting.status == "cancelled" else "STATUS:CONFIRMED",
        "SEQUENCE:0",
        "BEGIN:VALARM",
        "TRIGGER:-PT15M",
        "ACTION:DISPLAY",
        "DESCRIPTION:Reminder",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


def google_calendar_url(meeting: Meeting) -> str:
    params = {
        "text": meeting.title,
        "dates": f"{_ics_date(meeting.meeting_date)}/{_ics_date(meeting_end(meeting))}",
        "details": meeting.description or "",
        "location": meeting.location or "",
    }
    return "https://www.google.com/calendar/render?action=TEMPLATE&" + urlencode(params)


def outlook_calendar_url(meeting: Meeting) -> str:
    params = {
        "subject": meeting.title,
        "startdt": meeting.meeting_date.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "enddt": meeting_end(meeting).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "body": meeting.description or "",
        "location": meeting.location or "",
        "path": "/calendar/action/compose",
        "rru": "addevent",
    }
    return "https://outlook.live.com/calendar/0/deeplink/compose?" + urlencode(params)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def attendee_to_dict(attendee: MeetingAttendee) -> dict:
    return {
        "id": attendee.id,
        "meeting_id": attendee.meeting_id,
        "board_member_id": attendee.board_member_id,
        "board_member": member_summary(attendee.board_member),
        "attendance_status": attendee.attendance_status,
        "notes": attendee.notes,
    }


def action_item_to_dict(item: ActionItem) -> dict:
    return {
        "id": item.id,
        "meeting_id": item.meeting_id,
        "title": item.title,
        "description": item.description,
        "assigned_to_member_id": item.assigned_to_member_id,
        "assignee": member_summary(item.assignee),
        "due_date": iso(item.due_date),
        "status": item.status,
        "priority": item.priority,
        "completed_at": iso(item.completed_at),
        "created_at": iso(item.created_at),
        "updated_at": iso(item.updated_at),
    }


def meeting_to_dict(meeting: Meeting, *, detail: bool = False, documents: list[dict] | None = None) -> dict:
    data = {
        "id": meeting.id,
        "organization_id": meeting.organization_id,
        "title": meeting.title,
        "description": meeting.description,
        "meeting_type": meeting.meeting_type,
        "meeting_date": iso(meeting.meeting_date),
        "duration_minutes": meeting.duration_minutes,
        "location": meeting.location,
        "status": meeting.status,
        "is_public": meeting.is_public,
        "attendee_count": len(meeting.attendees),
        "created_at": iso(meeting.created_at),
        "updated_at": iso(meeting.updated_at),
    }
    if detail:
        data["agenda"] = meeting.agenda
        data["minutes"] = meeting.minutes
        data["attendees"] = [attendee_to_dict(a) for a in meeting.attendees]
        data["action_items"] = [action_item_to_dict(i) for i in meeting.action_items]
        data["documents"] = documents or []
    return data
