"""
Resolution workflow: drafting, voting, outcome and signatures.

Status moves only through STATUS_TRANSITIONS. `open` and `close` are the
user-triggered transitions; `close` passes through `closed` and settles the
outcome (passed/failed) in the same unit of work.
"""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.boardroom.audit import record_event
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.board_members.service import member_summary
from app.boardroom.modules.resolutions.models import Resolution, Signature, Vote
from app.boardroom.storage import Storage, file_digest_and_bytes
from app.boardroom.utils import ConflictError, clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User
    from app.boardroom.modules.meetings.models import Meeting

logger = logging.getLogger(__name__)

VALID_VOTING_TYPES = ("simple_majority", "two_thirds", "unanimous")
VALID_STATUSES = ("draft", "open", "closed", "passed", "failed")
VALID_VOTES = ("approve", "reject", "abstain")
VALID_SIGNATURE_TYPES = ("drawn", "typed")

STATUS_TRANSITIONS = {
    "draft": {"open"},
    "open": {"closed"},
    "closed": {"passed", "failed"},
    "passed": set(),
    "failed": set(),
}

PNG_DATA_URL_PREFIX = "data:image/png;base64,"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
MAX_SIGNATURE_BYTES = 512 * 1024


@dataclass(frozen=True)
class VoteSummary:
    approve: int
    reject: int
    abstain: int
    quorum_required: int

    @property
    def total(self) -> int:
        return self.approve + self.reject + self.abstain

    @property
    def approval_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.approve * 100 / self.total, 1)

    @property
    def quorum_met(self) -> bool:
        return self.total >= self.quorum_required

    def to_dict(self) -> dict[str, Any]:
        return {
            "approve": self.approve,
            "reject": self.reject,
            "abstain": self.abstain,
            "total": self.total,
            "approval_percentage": self.approval_percentage,
            "quorum_required": self.quorum_required,
            "quorum_met": self.quorum_met,
        }


def summarize_votes(resolution: Resolution) -> VoteSummary:
    counts = {v: 0 for v in VALID_VOTES}
    for vote in resolution.votes:
        if vote.vote in counts:
            counts[vote.vote] += 1
    return VoteSummary(
        approve=counts["approve"],
        reject=counts["reject"],
        abstain=counts["abstain"],
        quorum_required=resolution.quorum_required or 0,
    )


def threshold_met(voting_type: str, approve: int, reject: int, abstain: int = 0) -> bool:
    """
    Whether the cast votes meet the voting rule. No votes never passes.

    Simple majority and unanimity compare approvals with rejections only;
    two-thirds is measured against every cast vote, abstentions included.
    """
    total = approve + reject + abstain
    if total <= 0:
        return False
    if voting_type == "simple_majority":
        return approve > reject
    if voting_type == "two_thirds":
        return approve * 100 >= 67 * total
    if voting_type == "unanimous":
        return reject == 0 and approve > 0
    raise ValueError(f"Invalid voting type: {voting_type}")


def determine_outcome(resolution: Resolution) -> str:
    summary = summarize_votes(resolution)
    met = threshold_met(resolution.voting_type, summary.approve, summary.reject, summary.abstain)
    return "passed" if met else "failed"


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------


def validate_resolution_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []

    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 3:
            errors.append("Title must be at least 3 characters.")
        elif len(title) > 255:
            errors.append("Title must be less than 255 characters.")

    if not partial and parse_int(payload.get("meeting_id")) is None:
        errors.append("meeting_id is required.")

    voting_type = clean_str(payload.get("voting_type"))
    if voting_type and voting_type not in VALID_VOTING_TYPES:
        errors.append(f"Invalid voting_type. Must be one of: {', '.join(VALID_VOTING_TYPES)}")

    if payload.get("quorum_required") not in (None, ""):
        quorum = parse_int(payload.get("quorum_required"))
        if quorum is None or quorum < 0:
            errors.append("Quorum must be at least 0.")

    if partial and "status" in payload:
        errors.append("Status cannot be changed directly; use the open and close actions.")

    return errors


def create_resolution(s: "Session", meeting: "Meeting", payload: dict, user: "User") -> Resolution:
    now = datetime.utcnow()
    quorum = parse_int(payload.get("quorum_required"))
    resolution = Resolution(
        organization_id=meeting.organization_id,
        meeting_id=meeting.id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        voting_type=clean_str(payload.get("voting_type")) or "simple_majority",
        quorum_required=quorum or 0,
        status="draft",
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    s.add(resolution)
    s.flush()

    record_event(
        s,
        actor=user,
        action="resolution.create",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"title": resolution.title, "meeting_id": meeting.id, "voting_type": resolution.voting_type},
    )
    return resolution


def update_resolution(s: "Session", resolution: Resolution, payload: dict, user: "User") -> Resolution:
    if resolution.status != "draft":
        raise ValueError("Only draft resolutions can be edited.")

    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(resolution, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(resolution, field, new_value)

    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    if "description" in payload:
        _set("description", clean_str(payload.get("description")))
    if clean_str(payload.get("voting_type")):
        _set("voting_type", clean_str(payload.get("voting_type")))
    if payload.get("quorum_required") not in (None, ""):
        _set("quorum_required", parse_int(payload.get("quorum_required")))

    if changes:
        resolution.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="resolution.edit",
            entity_type="Resolution",
            entity_id=str(resolution.id),
            metadata={"title": resolution.title, "changes": changes},
        )
    return resolution


def delete_resolution(s: "Session", resolution: Resolution, user: "User") -> None:
    if resolution.status != "draft":
        raise ValueError("Only draft resolutions can be deleted.")
    record_event(
        s,
        actor=user,
        action="resolution.delete",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"title": resolution.title},
    )
    s.delete(resolution)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def can_transition_to(resolution: Resolution, new_status: str) -> tuple[bool, list[str]]:
    errors: list[str] = []
    if resolution.status not in STATUS_TRANSITIONS:
        errors.append(f"Current status '{resolution.status}' is invalid")
        return False, errors
    if new_status not in STATUS_TRANSITIONS[resolution.status]:
        errors.append(f"Cannot transition from '{resolution.status}' to '{new_status}'")
    return len(errors) == 0, errors


def _change_status(s: "Session", resolution: Resolution, new_status: str, user: "User", **extra: Any) -> None:
    if new_status not in VALID_STATUSES:
        raise ValueError(f"Invalid status: {new_status}")
    ok, errors = can_transition_to(resolution, new_status)
    if not ok:
        raise ValueError("; ".join(errors))

    old_status = resolution.status
    resolution.status = new_status
    resolution.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action=f"resolution.{new_status}" if new_status in ("open", "closed") else "resolution.outcome",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"title": resolution.title, "from": old_status, "to": new_status, **extra},
    )


def open_resolution(s: "Session", resolution: Resolution, user: "User") -> Resolution:
    if resolution.status != "draft":
        raise ValueError("Only draft resolutions can be opened for voting.")
    _change_status(s, resolution, "open", user)
    resolution.opened_at = datetime.utcnow()
    logger.info("resolution %s opened for voting by user %s", resolution.id, user.id)
    return resolution


def close_resolution(s: "Session", resolution: Resolution, user: "User") -> tuple[Resolution, VoteSummary]:
    """Close voting and settle the outcome. Quorum is reported, not enforced."""
    if resolution.status != "open":
        raise ValueError("Only open resolutions can be closed.")

    _change_status(s, resolution, "closed", user)
    resolution.closed_at = datetime.utcnow()

    summary = summarize_votes(resolution)
    outcome = determine_outcome(resolution)
    _change_status(s, resolution, outcome, user, summary=summary.to_dict())
    logger.info(
        "resolution %s closed: %s (%s/%s approve, quorum_met=%s)",
        resolution.id,
        outcome,
        summary.approve,
        summary.total,
        summary.quorum_met,
    )
    return resolution, summary


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------


def _load_voting_member(s: "Session", resolution: Resolution, member_id: int | None) -> BoardMember:
    member = s.get(BoardMember, member_id) if member_id is not None else None
    if member is None or member.organization_id != resolution.organization_id:
        raise LookupError("Board member not found.")
    if member.status != "active":
        raise ValueError("Only active board members can vote.")
    return member


def may_act_for_member(user: "User", member: BoardMember, *, can_manage: bool) -> bool:
    return can_manage or (member.user_id is not None and member.user_id == user.id)


def validate_vote_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    if parse_int(payload.get("board_member_id")) is None:
        errors.append("board_member_id is required.")
    if clean_str(payload.get("vote")) not in VALID_VOTES:
        errors.append("Vote must be approve, reject, or abstain.")
    comment = clean_str(payload.get("comment"))
    if comment and len(comment) > 500:
        errors.append("Comment must be less than 500 characters.")
    return errors


def cast_vote(
    s: "Session", resolution: Resolution, payload: dict, user: "User", *, can_manage: bool = False
) -> Vote:
    """Record or replace a member's vote while the resolution is open."""
    if resolution.status != "open":
        raise ValueError("Voting is only allowed while the resolution is open.")

    member = _load_voting_member(s, resolution, parse_int(payload.get("board_member_id")))
    if not may_act_for_member(user, member, can_manage=can_manage):
        raise PermissionError("You can only vote for your own board seat.")

    choice = clean_str(payload.get("vote")) or ""
    comment = clean_str(payload.get("comment"))
    existing = next((v for v in resolution.votes if v.board_member_id == member.id), None)
    previous = existing.vote if existing else None
    if existing is None:
        existing = Vote(resolution_id=resolution.id, board_member_id=member.id, vote=choice)
        resolution.votes.append(existing)
    existing.vote = choice
    existing.comment = comment
    existing.voted_at = datetime.utcnow()
    existing.recorded_by_user_id = user.id
    s.flush()

    record_event(
        s,
        actor=user,
        action="vote.cast",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"board_member_id": member.id, "vote": choice, "previous": previous},
    )
    return existing


def retract_vote(
    s: "Session", resolution: Resolution, member_id: int | None, user: "User", *, can_manage: bool = False
) -> None:
    if resolution.status != "open":
        raise ValueError("Votes can only be retracted while the resolution is open.")
    member = s.get(BoardMember, member_id) if member_id is not None else None
    if member is None or member.organization_id != resolution.organization_id:
        raise LookupError("Board member not found.")
    if not may_act_for_member(user, member, can_manage=can_manage):
        raise PermissionError("You can only retract your own vote.")

    existing = next((v for v in resolution.votes if v.board_member_id == member.id), None)
    if existing is None:
        raise LookupError("No vote recorded for this board member.")
    resolution.votes.remove(existing)
    s.flush()

    record_event(
        s,
        actor=user,
        action="vote.retract",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"board_member_id": member.id, "vote": existing.vote},
    )


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


def decode_signature_image(data_url: str | None) -> bytes:
    """Decode a `data:image/png;base64,` URL and check it really is a PNG."""
    if not data_url or not data_url.startswith(PNG_DATA_URL_PREFIX):
        raise ValueError("signature_data must be a data:image/png;base64 URL.")
    try:
        raw = base64.b64decode(data_url[len(PNG_DATA_URL_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("signature_data is not valid base64.") from None
    if not raw.startswith(PNG_MAGIC):
        raise ValueError("signature_data is not a PNG image.")
    if len(raw) > MAX_SIGNATURE_BYTES:
        raise ValueError("Signature image is too large.")
    return raw


def validate_signature_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    if parse_int(payload.get("board_member_id")) is None:
        errors.append("board_member_id is required.")
    signature_type = clean_str(payload.get("signature_type"))
    if signature_type not in VALID_SIGNATURE_TYPES:
        errors.append("signature_type must be drawn or typed.")
    typed_name = clean_str(payload.get("typed_name"))
    if signature_type == "typed" and not typed_name:
        errors.append("typed_name is required for typed signatures.")
    if typed_name and len(typed_name) > 100:
        errors.append("typed_name must be at most 100 characters.")
    try:
        decode_signature_image(payload.get("signature_data"))
    except ValueError as e:
        errors.append(str(e))
    return errors


def sign_resolution(
    s: "Session",
    storage: Storage,
    resolution: Resolution,
    payload: dict,
    user: "User",
    *,
    can_manage: bool = False,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Signature:
    if resolution.status != "passed":
        raise ValueError("Only passed resolutions can be signed.")

    member_id = parse_int(payload.get("board_member_id"))
    member = s.get(BoardMember, member_id) if member_id is not None else None
    if member is None or member.organization_id != resolution.organization_id:
        raise LookupError("Board member not found.")
    if not may_act_for_member(user, member, can_manage=can_manage):
        raise PermissionError("You can only sign for your own board seat.")
    if any(sig.board_member_id == member.id for sig in resolution.signatures):
        raise ConflictError("This board member has already signed this resolution.")

    image = decode_signature_image(payload.get("signature_data"))
    sha256, size = file_digest_and_bytes(image)
    storage_key = f"signatures/{resolution.organization_id}/{resolution.id}/{member.id}-{sha256[:12]}.png"
    storage.put_bytes(storage_key, image, content_type="image/png")

    signature = Signature(
        resolution_id=resolution.id,
        board_member_id=member.id,
        signature_type=clean_str(payload.get("signature_type")) or "drawn",
        typed_name=clean_str(payload.get("typed_name")),
        storage_key=storage_key,
        sha256=sha256,
        size_bytes=size,
        ip_address=ip_address or "unknown",
        user_agent=user_agent or "unknown",
        signed_at=datetime.utcnow(),
        signed_by_user_id=user.id,
    )
    resolution.signatures.append(signature)
    s.flush()

    record_event(
        s,
        actor=user,
        action="resolution.sign",
        entity_type="Resolution",
        entity_id=str(resolution.id),
        metadata={"board_member_id": member.id, "signature_type": signature.signature_type, "sha256": sha256},
    )
    return signature


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def vote_to_dict(vote: Vote) -> dict:
    return {
        "id": vote.id,
        "board_member_id": vote.board_member_id,
        "board_member": member_summary(vote.board_member),
        "vote": vote.vote,
        "comment": vote.comment,
        "voted_at": iso(vote.voted_at),
    }


def signature_to_dict(signature: Signature) -> dict:
    return {
        "id": signature.id,
        "resolution_id": signature.resolution_id,
        "board_member_id": signature.board_member_id,
        "board_member": member_summary(signature.board_member),
        "signature_type": signature.signature_type,
        "typed_name": signature.typed_name,
        "sha256": signature.sha256,
        "size_bytes": signature.size_bytes,
        "ip_address": signature.ip_address,
        "user_agent": signature.user_agent,
        "signed_at": iso(signature.signed_at),
    }


def resolution_to_dict(resolution: Resolution, *, include_votes: bool = False) -> dict:
    data = {
        "id": resolution.id,
        "organization_id": resolution.organization_id,
        "meeting_id": resolution.meeting_id,
        "title": resolution.title,
        "description": resolution.description,
        "voting_type": resolution.voting_type,
        "quorum_required": resolution.quorum_required,
        "status": resolution.status,
        "opened_at": iso(resolution.opened_at),
        "closed_at": iso(resolution.closed_at),
        "created_at": iso(resolution.created_at),
        "updated_at": iso(resolution.updated_at),
        "vote_summary": summarize_votes(resolution).to_dict(),
        "signature_count": len(resolution.signatures),
    }
    if include_votes:
        data["votes"] = [vote_to_dict(v) for v in resolution.votes]
    return data
