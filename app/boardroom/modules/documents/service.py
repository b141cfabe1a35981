from __future__ import annotations

import mimetypes
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_
from werkzeug.utils import secure_filename

from app.boardroom.audit import record_event
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.documents.models import Document
from app.boardroom.modules.documents.parsers import inspect_upload
from app.boardroom.modules.meetings.models import Meeting
from app.boardroom.storage import Storage, file_digest_and_bytes
from app.boardroom.utils import clean_str, contains_pattern, iso, matches_any, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.boardroom.models import User


VALID_CATEGORIES = ("financial", "legal", "strategic", "operational", "governance", "other")

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
    }
)

UNCATEGORIZED = "uncategorized"


def sanitize_upload_filename(filename: str) -> str:
    fn = secure_filename(filename or "")
    return fn or "document.bin"


def resolve_content_type(filename: str, declared: str | None) -> str:
    """Browsers send octet-stream for unknown types; fall back to the extension."""
    ct = (declared or "").split(";")[0].strip().lower()
    if not ct or ct == "application/octet-stream":
        guessed, _ = mimetypes.guess_type(filename)
        ct = (guessed or "application/octet-stream").lower()
    return ct


def validate_upload(filename: str, content_type: str, size: int, max_bytes: int) -> list[str]:
    errors: list[str] = []
    if not filename:
        errors.append("File name is required.")
    if size <= 0:
        errors.append("File must not be empty.")
    elif size > max_bytes:
        errors.append(f"File size must not exceed {max_bytes // (1024 * 1024)}MB.")
    if content_type not in ALLOWED_CONTENT_TYPES:
        errors.append("File type not allowed.")
    return errors


def validate_document_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []

    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 3:
            errors.append("Title must be at least 3 characters.")
        elif len(title) > 255:
            errors.append("Title must be less than 255 characters.")

    category = clean_str(payload.get("category"))
    if category and category not in VALID_CATEGORIES:
        errors.append(f"Invalid category. Must be one of: {', '.join(VALID_CATEGORIES)}")

    for field in ("meeting_id", "board_member_id"):
        if payload.get(field) not in (None, "") and parse_int(payload.get(field)) is None:
            errors.append(f"{field} must be an integer id.")

    library_category = clean_str(payload.get("library_category"))
    if library_category and len(library_category) > 100:
        errors.append("library_category must be at most 100 characters.")

    return errors


def _check_links(s: "Session", organization_id: int, meeting_id: int | None, member_id: int | None) -> None:
    if meeting_id is not None:
        meeting = s.get(Meeting, meeting_id)
        if meeting is None or meeting.organization_id != organization_id:
            raise ValueError("Meeting must belong to this organization.")
    if member_id is not None:
        member = s.get(BoardMember, member_id)
        if member is None or member.organization_id != organization_id:
            raise ValueError("Board member must belong to this organization.")


def _store_file(
    storage: Storage, organization_id: int, filename: str, content_type: str, data: bytes
) -> tuple[str, str, int]:
    sha256, size = file_digest_and_bytes(data)
    # Keys are unique per document row, even for identical bytes.
    storage_key = f"documents/{organization_id}/{uuid.uuid4().hex}/{filename}"
    storage.put_bytes(storage_key, data, content_type=content_type)
    return storage_key, sha256, size


def create_document(
    s: "Session",
    storage: Storage,
    organization_id: int,
    payload: dict,
    *,
    filename: str,
    content_type: str,
    data: bytes,
    user: "User",
) -> Document:
    meeting_id = parse_int(payload.get("meeting_id"))
    member_id = parse_int(payload.get("board_member_id"))
    _check_links(s, organization_id, meeting_id, member_id)

    filename = sanitize_upload_filename(filename)
    storage_key, sha256, size = _store_file(storage, organization_id, filename, content_type, data)
    page_count, text = inspect_upload(content_type, data)

    now = datetime.utcnow()
    is_library_item = bool(parse_bool(payload.get("is_library_item"), False))
    doc = Document(
        organization_id=organization_id,
        meeting_id=meeting_id,
        board_member_id=member_id,
        title=clean_str(payload.get("title")) or filename,
        description=clean_str(payload.get("description")),
        category=clean_str(payload.get("category")),
        file_name=filename,
        file_size=size,
        file_type=content_type,
        storage_key=storage_key,
        sha256=sha256,
        page_count=page_count,
        extracted_text=text,
        is_public=bool(parse_bool(payload.get("is_public"), False)),
        version=1,
        is_library_item=is_library_item,
        library_category=clean_str(payload.get("library_category")) if is_library_item else None,
        created_at=now,
        updated_at=now,
        uploaded_by_user_id=user.id,
    )
    s.add(doc)
    s.flush()

    record_event(
        s,
        actor=user,
        action="document.upload",
        entity_type="Document",
        entity_id=str(doc.id),
        metadata={"title": doc.title, "file_name": filename, "sha256": sha256, "size_bytes": size},
    )
    return doc


def lineage_root_id(doc: Document) -> int:
    return doc.parent_document_id or doc.id


def list_versions(s: "Session", doc: Document) -> list[Document]:
    root_id = lineage_root_id(doc)
    return (
        s.query(Document)
        .filter(
            Document.organization_id == doc.organization_id,
            or_(Document.id == root_id, Document.parent_document_id == root_id),
        )
        .order_by(Document.version.asc(), Document.id.asc())
        .all()
    )


def create_version(
    s: "Session",
    storage: Storage,
    base: Document,
    payload: dict,
    *,
    filename: str,
    content_type: str,
    data: bytes,
    user: "User",
) -> Document:
    """Upload a new file as the next version of `base`, which must be the latest of its lineage."""
    versions = list_versions(s, base)
    latest = versions[-1]
    if latest.id != base.id:
        raise ValueError(f"Only the latest version (v{latest.version}) can be superseded.")

    filename = sanitize_upload_filename(filename)
    storage_key, sha256, size = _store_file(storage, base.organization_id, filename, content_type, data)
    page_count, text = inspect_upload(content_type, data)

    now = datetime.utcnow()
    doc = Document(
        organization_id=base.organization_id,
        meeting_id=base.meeting_id,
        board_member_id=base.board_member_id,
        title=clean_str(payload.get("title")) or base.title,
        description=clean_str(payload.get("description")) or base.description,
        category=base.category,
        file_name=filename,
        file_size=size,
        file_type=content_type,
        storage_key=storage_key,
        sha256=sha256,
        page_count=page_count,
        extracted_text=text,
        is_public=base.is_public,
        version=base.version + 1,
        parent_document_id=lineage_root_id(base),
        is_library_item=base.is_library_item,
        library_category=base.library_category,
        created_at=now,
        updated_at=now,
        uploaded_by_user_id=user.id,
    )
    s.add(doc)
    s.flush()

    record_event(
        s,
        actor=user,
        action="document.version",
        entity_type="Document",
        entity_id=str(doc.id),
        metadata={"base_document_id": base.id, "version": doc.version, "sha256": sha256},
    )
    return doc


def update_document(s: "Session", doc: Document, payload: dict, user: "User") -> Document:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(doc, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(doc, field, new_value)

    if "meeting_id" in payload or "board_member_id" in payload:
        meeting_id = parse_int(payload.get("meeting_id")) if "meeting_id" in payload else doc.meeting_id
        member_id = parse_int(payload.get("board_member_id")) if "board_member_id" in payload else doc.board_member_id
        _check_links(s, doc.organization_id, meeting_id, member_id)
        _set("meeting_id", meeting_id)
        _set("board_member_id", member_id)

    if clean_str(payload.get("title")):
        _set("title", clean_str(payload.get("title")))
    for field in ("description", "category", "library_category"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    for flag in ("is_public", "is_library_item"):
        if flag in payload:
            _set(flag, bool(parse_bool(payload.get(flag), False)))
    if not doc.is_library_item and doc.library_category is not None:
        _set("library_category", None)

    if changes:
        doc.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="document.edit",
            entity_type="Document",
            entity_id=str(doc.id),
            metadata={"title": doc.title, "changes": changes},
        )
    return doc


def delete_document(s: "Session", doc: Document, user: "User") -> str:
    """Delete the row (annotations cascade); returns the storage key for the caller to purge after commit."""
    record_event(
        s,
        actor=user,
        action="document.delete",
        entity_type="Document",
        entity_id=str(doc.id),
        metadata={"title": doc.title, "file_name": doc.file_name, "sha256": doc.sha256},
    )
    key = doc.storage_key
    s.delete(doc)
    return key


def record_download(s: "Session", doc: Document, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="document.download",
        entity_type="Document",
        entity_id=str(doc.id),
        metadata={"title": doc.title, "file_name": doc.file_name, "version": doc.version},
    )


def filter_documents(query: "Query", args: Any) -> "Query":
    """Apply list filters from request args (category, meeting, member, flags, search)."""
    category = (args.get("category") or "").strip()
    if category in VALID_CATEGORIES:
        query = query.filter(Document.category == category)
    meeting_id = parse_int(args.get("meeting_id"))
    if meeting_id is not None:
        query = query.filter(Document.meeting_id == meeting_id)
    member_id = parse_int(args.get("board_member_id"))
    if member_id is not None:
        query = query.filter(Document.board_member_id == member_id)
    is_public = parse_bool(args.get("is_public"))
    if is_public is not None:
        query = query.filter(Document.is_public.is_(is_public))
    is_library = parse_bool(args.get("is_library_item"))
    if is_library is not None:
        query = query.filter(Document.is_library_item.is_(is_library))
    library_category = (args.get("library_category") or "").strip()
    if library_category:
        query = query.filter(Document.library_category == library_category)
    search = (args.get("search") or "").strip()
    if search:
        query = query.filter(
            matches_any(
                contains_pattern(search),
                Document.title,
                func.coalesce(Document.description, ""),
                func.coalesce(Document.extracted_text, ""),
            )
        )
    return query


def library_groups(s: "Session", organization_id: int) -> "OrderedDict[str, list[Document]]":
    docs = (
        s.query(Document)
        .filter(Document.organization_id == organization_id, Document.is_library_item.is_(True))
        .order_by(Document.library_category.asc(), Document.title.asc(), Document.id.asc())
        .all()
    )
    groups: OrderedDict[str, list[Document]] = OrderedDict()
    for doc in docs:
        groups.setdefault(doc.library_category or UNCATEGORIZED, []).append(doc)
    return groups


def document_to_dict(doc: Document) -> dict:
    return {
        "id": doc.id,
        "organization_id": doc.organization_id,
        "meeting_id": doc.meeting_id,
        "board_member_id": doc.board_member_id,
        "title": doc.title,
        "description": doc.description,
        "category": doc.category,
        "file_name": doc.file_name,
        "file_size": doc.file_size,
        "file_type": doc.file_type,
        "sha256": doc.sha256,
        "page_count": doc.page_count,
        "is_public": doc.is_public,
        "version": doc.version,
        "parent_document_id": doc.parent_document_id,
        "is_library_item": doc.is_library_item,
        "library_category": doc.library_category,
        "uploaded_by_user_id": doc.uploaded_by_user_id,
        "uploaded_by": doc.uploaded_by.email if doc.uploaded_by else None,
        "created_at": iso(doc.created_at),
        "updated_at": iso(doc.updated_at),
    }
