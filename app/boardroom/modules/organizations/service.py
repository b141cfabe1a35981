from __future__ import annotations

import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from app.boardroom.audit import record_event
from app.boardroom.models import Organization
from app.boardroom.utils import EMAIL_RE, HEX_COLOR_RE, URL_RE, clean_str, iso, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User


SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_TEXT_FIELDS = {
    "company_name": 100,
    "display_name": 100,
    "tagline": 200,
    "description": 2000,
    "logo_url": 512,
    "website": 255,
    "industry": 128,
    "company_size": 64,
    "country": 64,
    "contact_email": 320,
    "contact_phone": 32,
    "headquarters_address": 500,
    "registration_number": 50,
}


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower()).strip("-")
    return slug or "organization"


def unique_slug(s: "Session", base: str, *, exclude_id: int | None = None) -> str:
    """Append -2, -3, ... until the slug is free."""
    candidate = base
    n = 1
    while True:
        q = s.query(Organization.id).filter(Organization.slug == candidate)
        if exclude_id is not None:
            q = q.filter(Organization.id != exclude_id)
        if q.first() is None:
            return candidate
        n += 1
        candidate = f"{base}-{n}"


def validate_organization_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []

    if not partial or "company_name" in payload:
        name = clean_str(payload.get("company_name"))
        if not name or len(name) < 2:
            errors.append("Company name must be at least 2 characters.")

    for field, max_len in _TEXT_FIELDS.items():
        value = clean_str(payload.get(field))
        if value and len(value) > max_len:
            errors.append(f"{field} must be at most {max_len} characters.")

    slug = clean_str(payload.get("slug"))
    if slug and not SLUG_RE.match(slug):
        errors.append("Invalid slug format.")

    color = clean_str(payload.get("brand_color"))
    if color and not HEX_COLOR_RE.match(color):
        errors.append("Invalid color format.")

    for url_field in ("website", "logo_url"):
        url = clean_str(payload.get(url_field))
        if url and not URL_RE.match(url):
            errors.append(f"{url_field} must be a valid URL.")

    email = clean_str(payload.get("contact_email"))
    if email and not EMAIL_RE.match(email):
        errors.append("Invalid contact email.")

    if payload.get("year_founded") not in (None, ""):
        year = parse_int(payload.get("year_founded"))
        if year is None or year < 1800 or year > date.today().year:
            errors.append(f"year_founded must be between 1800 and {date.today().year}.")

    return errors


def create_organization(s: "Session", payload: dict, user: "User | None" = None) -> Organization:
    name = clean_str(payload.get("company_name")) or ""
    now = datetime.utcnow()
    org = Organization(
        company_name=name,
        slug=unique_slug(s, clean_str(payload.get("slug")) or slugify(name)),
        is_public=bool(parse_bool(payload.get("is_public"), False)),
        allow_member_directory=bool(parse_bool(payload.get("allow_member_directory"), False)),
        created_at=now,
        updated_at=now,
    )
    for field in _TEXT_FIELDS:
        if field != "company_name" and field in payload:
            setattr(org, field, clean_str(payload.get(field)))
    org.brand_color = clean_str(payload.get("brand_color"))
    org.year_founded = parse_int(payload.get("year_founded"))
    s.add(org)
    s.flush()

    record_event(
        s,
        actor=user,
        action="organization.create",
        entity_type="Organization",
        entity_id=str(org.id),
        organization_id=org.id,
        metadata={"company_name": org.company_name, "slug": org.slug},
    )
    return org


def update_organization(s: "Session", org: Organization, payload: dict, user: "User") -> Organization:
    changes: dict[str, Any] = {}

    def _set(field: str, new_value: Any) -> None:
        old_value = getattr(org, field)
        if new_value != old_value:
            changes[field] = {"old": old_value, "new": new_value}
            setattr(org, field, new_value)

    for field in _TEXT_FIELDS:
        if field in payload:
            value = clean_str(payload.get(field))
            if field == "company_name" and not value:
                continue
            _set(field, value)
    if "brand_color" in payload:
        _set("brand_color", clean_str(payload.get("brand_color")))
    if "year_founded" in payload:
        _set("year_founded", parse_int(payload.get("year_founded")))
    for flag in ("is_public", "allow_member_directory"):
        if flag in payload:
            _set(flag, bool(parse_bool(payload.get(flag), False)))
    if clean_str(payload.get("slug")):
        slug = clean_str(payload.get("slug"))
        if slug != org.slug and unique_slug(s, slug, exclude_id=org.id) != slug:
            raise ValueError("Slug is already taken.")
        _set("slug", slug)

    if changes:
        org.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="organization.edit",
            entity_type="Organization",
            entity_id=str(org.id),
            metadata={"changes": changes},
        )
    return org


def organization_to_dict(org: Organization) -> dict:
    return {
        "id": org.id,
        "company_name": org.company_name,
        "slug": org.slug,
        "display_name": org.display_name,
        "tagline": org.tagline,
        "description": org.description,
        "logo_url": org.logo_url,
        "brand_color": org.brand_color,
        "website": org.website,
        "industry": org.industry,
        "company_size": org.company_size,
        "country": org.country,
        "contact_email": org.contact_email,
        "contact_phone": org.contact_phone,
        "headquarters_address": org.headquarters_address,
        "registration_number": org.registration_number,
        "year_founded": org.year_founded,
        "is_public": org.is_public,
        "allow_member_directory": org.allow_member_directory,
        "created_at": iso(org.created_at),
        "updated_at": iso(org.updated_at),
    }


def public_profile(s: "Session", org: Organization) -> dict:
    from app.boardroom.modules.board_members.models import BoardMember
    from app.boardroom.modules.board_members.service import member_summary

    data = organization_to_dict(org)
    for private in ("contact_phone", "registration_number", "created_at", "updated_at"):
        data.pop(private, None)

    members: list[dict] = []
    if org.allow_member_directory:
        rows = (
            s.query(BoardMember)
            .filter(
                BoardMember.organization_id == org.id,
                BoardMember.status == "active",
                BoardMember.show_on_public_profile.is_(True),
            )
            .order_by(BoardMember.display_order.asc(), BoardMember.id.asc())
            .all()
        )
        members = [member_summary(m) for m in rows]  # type: ignore[misc]
    data["board_members"] = members
    return data
