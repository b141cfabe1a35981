"""
Page annotations on documents.

Positions are percentages of the rendered page so they survive zoom and
re-rendering: {"x", "y", "width", "height"} with the box kept inside 0..100.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.boardroom.audit import record_event
from app.boardroom.modules.documents.models import Document, DocumentAnnotation
from app.boardroom.utils import HEX_COLOR_RE, clean_str, iso, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User


VALID_ANNOTATION_TYPES = ("highlight", "note", "underline", "strikethrough")
DEFAULT_COLORS = {
    "highlight": "#FFFF00",
    "note": "#FFA500",
    "underline": "#00BFFF",
    "strikethrough": "#FF69B4",
}
POSITION_KEYS = ("x", "y", "width", "height")


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def validate_position(position: Any) -> list[str]:
    if not isinstance(position, dict):
        return ["position must be an object with x, y, width and height."]

    values: dict[str, float] = {}
    errors: list[str] = []
    for key in POSITION_KEYS:
        n = _number(position.get(key))
        if n is None:
            errors.append(f"position.{key} must be a number.")
        else:
            values[key] = n
    if errors:
        return errors

    for key in ("x", "y"):
        if values[key] < 0 or values[key] > 100:
            errors.append(f"position.{key} must be between 0 and 100.")
    for key in ("width", "height"):
        if values[key] <= 0 or values[key] > 100:
            errors.append(f"position.{key} must be greater than 0 and at most 100.")
    if values["x"] + values["width"] > 100:
        errors.append("Annotation extends past the right edge of the page.")
    if values["y"] + values["height"] > 100:
        errors.append("Annotation extends past the bottom edge of the page.")
    return errors


def validate_annotation_payload(
    payload: dict,
    *,
    document: Document,
    partial: bool = False,
    existing: DocumentAnnotation | None = None,
) -> list[str]:
    errors: list[str] = []

    if not partial or "page_number" in payload:
        page = parse_int(payload.get("page_number"))
        if page is None or page < 1:
            errors.append("Page number must be at least 1.")
        elif document.page_count and page > document.page_count:
            errors.append(f"Page number must be at most {document.page_count}.")

    annotation_type = clean_str(payload.get("annotation_type"))
    if not partial or "annotation_type" in payload:
        if annotation_type not in VALID_ANNOTATION_TYPES:
            errors.append(f"Invalid annotation_type. Must be one of: {', '.join(VALID_ANNOTATION_TYPES)}")

    if not partial or "position" in payload:
        errors.extend(validate_position(payload.get("position")))

    effective_type = annotation_type if "annotation_type" in payload else (existing.annotation_type if existing else None)
    effective_content = (
        clean_str(payload.get("content")) if "content" in payload else (existing.content if existing else None)
    )
    if effective_type == "note" and not effective_content:
        errors.append("Content is required for notes.")
    if effective_content and len(effective_content) > 5000:
        errors.append("Content must be at most 5000 characters.")

    color = clean_str(payload.get("color"))
    if color and not HEX_COLOR_RE.match(color):
        errors.append("Invalid color format.")

    return errors


def _normalize_position(position: dict) -> dict[str, float]:
    return {key: float(position[key]) for key in POSITION_KEYS}


def list_annotations(s: "Session", document: Document, user: "User", *, page: int | None = None):
    """The caller's own annotations plus everyone's public ones, by page then creation."""
    query = s.query(DocumentAnnotation).filter(
        DocumentAnnotation.document_id == document.id,
        or_(DocumentAnnotation.user_id == user.id, DocumentAnnotation.is_public.is_(True)),
    )
    if page is not None:
        query = query.filter(DocumentAnnotation.page_number == page)
    return query.order_by(
        DocumentAnnotation.page_number.asc(), DocumentAnnotation.created_at.asc(), DocumentAnnotation.id.asc()
    ).all()


def create_annotation(s: "Session", document: Document, payload: dict, user: "User") -> DocumentAnnotation:
    annotation_type = clean_str(payload.get("annotation_type")) or "highlight"
    now = datetime.utcnow()
    annotation = DocumentAnnotation(
        document_id=document.id,
        user_id=user.id,
        page_number=parse_int(payload.get("page_number")),
        annotation_type=annotation_type,
        position=_normalize_position(payload["position"]),
        content=clean_str(payload.get("content")),
        color=(clean_str(payload.get("color")) or DEFAULT_COLORS[annotation_type]).upper(),
        is_public=bool(parse_bool(payload.get("is_public"), False)),
        created_at=now,
        updated_at=now,
    )
    s.add(annotation)
    s.flush()

    record_event(
        s,
        actor=user,
        action="document.annotate",
        entity_type="DocumentAnnotation",
        entity_id=str(annotation.id),
        metadata={"document_id": document.id, "page_number": annotation.page_number, "type": annotation_type},
    )
    return annotation


def ensure_author(annotation: DocumentAnnotation, user: "User") -> None:
    if annotation.user_id != user.id:
        raise PermissionError("Only the author can change this annotation.")


def update_annotation(s: "Session", annotation: DocumentAnnotation, payload: dict, user: "User") -> DocumentAnnotation:
    ensure_author(annotation, user)

    if "page_number" in payload:
        annotation.page_number = parse_int(payload.get("page_number"))  # type: ignore[assignment]
    if "annotation_type" in payload:
        annotation.annotation_type = clean_str(payload.get("annotation_type"))  # type: ignore[assignment]
    if "position" in payload:
        annotation.position = _normalize_position(payload["position"])
    if "content" in payload:
        annotation.content = clean_str(payload.get("content"))
    if clean_str(payload.get("color")):
        annotation.color = clean_str(payload.get("color")).upper()  # type: ignore[union-attr]
    if "is_public" in payload:
        annotation.is_public = bool(parse_bool(payload.get("is_public"), False))
    annotation.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="document.annotation.edit",
        entity_type="DocumentAnnotation",
        entity_id=str(annotation.id),
        metadata={"document_id": annotation.document_id, "fields": sorted(payload.keys())},
    )
    return annotation


def delete_annotation(s: "Session", annotation: DocumentAnnotation, user: "User") -> None:
    ensure_author(annotation, user)
    record_event(
        s,
        actor=user,
        action="document.annotation.delete",
        entity_type="DocumentAnnotation",
        entity_id=str(annotation.id),
        metadata={"document_id": annotation.document_id},
    )
    s.delete(annotation)


def annotation_to_dict(annotation: DocumentAnnotation) -> dict:
    return {
        "id": annotation.id,
        "document_id": annotation.document_id,
        "user_id": annotation.user_id,
        "author": annotation.author.full_name or annotation.author.email if annotation.author else None,
        "page_number": annotation.page_number,
        "annotation_type": annotation.annotation_type,
        "position": annotation.position,
        "content": annotation.content,
        "color": annotation.color,
        "is_public": annotation.is_public,
        "created_at": iso(annotation.created_at),
        "updated_at": iso(annotation.updated_at),
    }
