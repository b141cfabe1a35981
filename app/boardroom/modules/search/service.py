from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.documents.models import Document
from app.boardroom.modules.meetings.models import Meeting
from app.boardroom.modules.resolutions.models import Resolution
from app.boardroom.utils import contains_pattern, iso, matches_any

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

MIN_QUERY_LENGTH = 2
RESULTS_PER_KIND = 5
SEARCH_KINDS = ("meetings", "documents", "resolutions", "board_members")


def search_organization(
    s: "Session",
    organization_id: int,
    q: str,
    *,
    kinds: Iterable[str] = SEARCH_KINDS,
    limit: int = RESULTS_PER_KIND,
) -> dict[str, list[dict]]:
    """Case-insensitive substring search over the organization's records, newest first per kind."""
    pattern = contains_pattern(q.strip())
    kinds = set(kinds)
    results: dict[str, list[dict]] = {}

    if "meetings" in kinds:
        rows = (
            s.query(Meeting)
            .filter(Meeting.organization_id == organization_id, matches_any(pattern, Meeting.title, Meeting.description))
            .order_by(Meeting.meeting_date.desc(), Meeting.id.desc())
            .limit(limit)
            .all()
        )
        results["meetings"] = [
            {"id": m.id, "title": m.title, "meeting_date": iso(m.meeting_date), "status": m.status} for m in rows
        ]

    if "documents" in kinds:
        rows = (
            s.query(Document)
            .filter(
                Document.organization_id == organization_id,
                matches_any(pattern, Document.title, Document.description, Document.file_name),
            )
            .order_by(Document.created_at.desc(), Document.id.desc())
            .limit(limit)
            .all()
        )
        results["documents"] = [
            {"id": d.id, "title": d.title, "category": d.category, "file_name": d.file_name, "version": d.version}
            for d in rows
        ]

    if "resolutions" in kinds:
        rows = (
            s.query(Resolution)
            .filter(
                Resolution.organization_id == organization_id,
                matches_any(pattern, Resolution.title, Resolution.description),
            )
            .order_by(Resolution.created_at.desc(), Resolution.id.desc())
            .limit(limit)
            .all()
        )
        results["resolutions"] = [
            {"id": r.id, "title": r.title, "status": r.status, "meeting_id": r.meeting_id} for r in rows
        ]

    if "board_members" in kinds:
        rows = (
            s.query(BoardMember)
            .filter(
                BoardMember.organization_id == organization_id,
                matches_any(pattern, BoardMember.full_name, BoardMember.email, BoardMember.department),
            )
            .order_by(BoardMember.display_order.asc(), BoardMember.id.asc())
            .limit(limit)
            .all()
        )
        results["board_members"] = [
            {"id": b.id, "full_name": b.full_name, "position": b.position, "status": b.status} for b in rows
        ]

    return results
