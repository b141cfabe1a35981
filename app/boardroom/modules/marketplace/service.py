from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Iterable

from app.boardroom.audit import record_event
from app.boardroom.modules.marketplace.models import (
    BoardPosition,
    Certification,
    Experience,
    PositionApplication,
    ProfessionalProfile,
    Skill,
)
from app.boardroom.utils import (
    URL_RE,
    ConflictError,
    clean_str,
    clean_str_list,
    contains_pattern,
    iso,
    matches_any,
    parse_bool,
    parse_date,
    parse_int,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.boardroom.models import User

logger = logging.getLogger(__name__)

AVAILABILITY_STATUSES = ("looking", "open", "busy", "unavailable")
EXPERIENCE_TYPES = ("executive", "board", "academic", "other")
POSITION_STATUSES = ("draft", "open", "closed", "filled")
POSITION_TYPES = ("Non-Executive Director", "Chairperson", "Advisory Board Member", "Trustee")
APPLICATION_STATUSES = ("submitted", "reviewing", "shortlisted", "interviewing", "accepted", "rejected", "withdrawn")
FINAL_APPLICATION_STATUSES = ("accepted", "rejected", "withdrawn")

# Organization-side moves; "withdrawn" is only reachable by the applicant.
APPLICATION_TRANSITIONS: dict[str, set[str]] = {
    "submitted": {"reviewing", "rejected"},
    "reviewing": {"shortlisted", "rejected"},
    "shortlisted": {"interviewing", "rejected"},
    "interviewing": {"accepted", "rejected"},
    "accepted": set(),
    "rejected": set(),
    "withdrawn": set(),
}

MAX_READINESS_SCORE = 100
MIN_COVER_LETTER = 50


# ---------------------------------------------------------------------------
# Board readiness score
# ---------------------------------------------------------------------------


def compute_readiness_score(
    *,
    headline: str | None,
    summary: str | None,
    experience_types: Iterable[str],
    skill_count: int,
    certification_count: int,
) -> int:
    """
    Weighted completeness of a professional profile, 0..100.

    Board experience outranks executive experience; executive roles only
    count when no board role is listed.
    """
    score = 0
    if clean_str(headline):
        score += 5
    summary = clean_str(summary)
    if summary:
        score += 15 if len(summary) > 200 else 10

    types = list(experience_types)
    board_roles = sum(1 for t in types if t == "board")
    executive_roles = sum(1 for t in types if t == "executive")
    if board_roles:
        score += 30
    elif executive_roles > 2:
        score += 15
    if board_roles > 2:
        score += 20
    elif board_roles == 2:
        score += 10

    if skill_count >= 10:
        score += 15
    elif skill_count >= 5:
        score += 10
    elif skill_count >= 1:
        score += 5

    if certification_count >= 2:
        score += 15
    elif certification_count == 1:
        score += 10

    return min(score, MAX_READINESS_SCORE)


def refresh_readiness_score(profile: ProfessionalProfile) -> int:
    profile.readiness_score = compute_readiness_score(
        headline=profile.headline,
        summary=profile.summary,
        experience_types=[e.experience_type for e in profile.experiences],
        skill_count=len(profile.skills),
        certification_count=len(profile.certifications),
    )
    profile.updated_at = datetime.utcnow()
    return profile.readiness_score


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def get_profile_for_user(s: "Session", user: "User") -> ProfessionalProfile | None:
    return s.query(ProfessionalProfile).filter(ProfessionalProfile.user_id == user.id).one_or_none()


def get_or_create_profile(s: "Session", user: "User") -> ProfessionalProfile:
    profile = get_profile_for_user(s, user)
    if profile is None:
        now = datetime.utcnow()
        profile = ProfessionalProfile(user_id=user.id, social_links={}, readiness_score=0, created_at=now, updated_at=now)
        s.add(profile)
        s.flush()
        logger.info("Created professional profile %s for user %s", profile.id, user.id)
    return profile


def validate_profile_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    headline = clean_str(payload.get("headline"))
    if headline and len(headline) > 200:
        errors.append("Headline must be at most 200 characters.")
    summary = clean_str(payload.get("summary"))
    if summary and len(summary) > 2000:
        errors.append("Summary must be at most 2000 characters.")
    if "availability_status" in payload and payload.get("availability_status") not in AVAILABILITY_STATUSES:
        errors.append(f"Invalid availability_status. Must be one of: {', '.join(AVAILABILITY_STATUSES)}")
    for field in ("desired_roles", "languages"):
        if payload.get(field) is not None and not isinstance(payload.get(field), list):
            errors.append(f"{field} must be a list.")
    for field in ("social_links", "compensation_expectations"):
        if payload.get(field) is not None and not isinstance(payload.get(field), dict):
            errors.append(f"{field} must be an object.")
    for field in ("is_marketplace_visible", "mobility_preference"):
        if field in payload and parse_bool(payload.get(field)) is None:
            errors.append(f"{field} must be true or false.")
    return errors


def update_profile(s: "Session", profile: ProfessionalProfile, payload: dict, user: "User") -> ProfessionalProfile:
    changes: dict[str, Any] = {}

    def _set(field: str, value: Any) -> None:
        old = getattr(profile, field)
        if old != value:
            setattr(profile, field, value)
            changes[field] = {"from": old, "to": value}

    for field in ("headline", "summary"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    if "availability_status" in payload:
        _set("availability_status", payload["availability_status"])
    for field in ("desired_roles", "languages"):
        if field in payload:
            _set(field, clean_str_list(payload.get(field)))
    if "social_links" in payload:
        _set("social_links", dict(payload.get("social_links") or {}))
    if "compensation_expectations" in payload:
        value = payload.get("compensation_expectations")
        _set("compensation_expectations", dict(value) if value else None)
    for field in ("is_marketplace_visible", "mobility_preference"):
        if field in payload:
            _set(field, bool(parse_bool(payload.get(field))))

    old_score = profile.readiness_score
    refresh_readiness_score(profile)
    if changes:
        record_event(
            s,
            actor=user,
            action="profile.edit",
            entity_type="ProfessionalProfile",
            entity_id=str(profile.id),
            metadata={"fields": sorted(changes.keys()), "readiness_score": {"from": old_score, "to": profile.readiness_score}},
        )
    return profile


def validate_experience_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    for field, label in (("company_name", "Company name"), ("title", "Job title")):
        if not partial or field in payload:
            value = clean_str(payload.get(field))
            if not value:
                errors.append(f"{label} is required.")
            elif len(value) > 200:
                errors.append(f"{label} must be at most 200 characters.")
    if "experience_type" in payload and payload.get("experience_type") not in EXPERIENCE_TYPES:
        errors.append(f"Invalid experience_type. Must be one of: {', '.join(EXPERIENCE_TYPES)}")

    start = end = None
    try:
        start = parse_date(payload.get("start_date"))
        end = parse_date(payload.get("end_date"))
    except ValueError:
        errors.append("Dates must use YYYY-MM-DD.")
    else:
        if (not partial or "start_date" in payload) and start is None:
            errors.append("start_date is required.")
        if start and end and end < start:
            errors.append("end_date must be on or after start_date.")
    return errors


def _apply_experience(exp: Experience, payload: dict) -> None:
    for field in ("company_name", "title"):
        if field in payload:
            setattr(exp, field, clean_str(payload.get(field)))
    for field in ("location", "description"):
        if field in payload:
            setattr(exp, field, clean_str(payload.get(field)))
    if "start_date" in payload:
        exp.start_date = parse_date(payload.get("start_date"))  # type: ignore[assignment]
    if "end_date" in payload:
        exp.end_date = parse_date(payload.get("end_date"))
    if "is_current" in payload:
        exp.is_current = bool(parse_bool(payload.get("is_current"), False))
    if exp.is_current:
        exp.end_date = None
    if "experience_type" in payload:
        exp.experience_type = payload["experience_type"]


def add_experience(s: "Session", profile: ProfessionalProfile, payload: dict, user: "User") -> Experience:
    exp = Experience(profile_id=profile.id, experience_type="executive", is_current=False)
    _apply_experience(exp, payload)
    profile.experiences.append(exp)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.experience.add",
        entity_type="Experience",
        entity_id=str(exp.id),
        metadata={"type": exp.experience_type, "readiness_score": profile.readiness_score},
    )
    return exp


def update_experience(s: "Session", profile: ProfessionalProfile, exp: Experience, payload: dict, user: "User") -> Experience:
    _apply_experience(exp, payload)
    if exp.end_date and exp.end_date < exp.start_date:
        raise ValueError("end_date must be on or after start_date.")
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.experience.edit",
        entity_type="Experience",
        entity_id=str(exp.id),
        metadata={"fields": sorted(payload.keys()), "readiness_score": profile.readiness_score},
    )
    return exp


def remove_experience(s: "Session", profile: ProfessionalProfile, exp: Experience, user: "User") -> None:
    profile.experiences.remove(exp)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.experience.delete",
        entity_type="Experience",
        entity_id=str(exp.id),
        metadata={"readiness_score": profile.readiness_score},
    )


def validate_skill_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    name = clean_str(payload.get("name"))
    if not name:
        errors.append("Skill name is required.")
    elif len(name) > 100:
        errors.append("Skill name must be at most 100 characters.")
    years = payload.get("years_experience")
    if years is not None and years != "":
        parsed = parse_int(years)
        if parsed is None or parsed < 0:
            errors.append("years_experience must be a non-negative integer.")
    return errors


def add_skill(s: "Session", profile: ProfessionalProfile, payload: dict, user: "User") -> Skill:
    name = clean_str(payload.get("name")) or ""
    if any(sk.name.lower() == name.lower() for sk in profile.skills):
        raise ConflictError(f"Skill '{name}' is already on the profile.")
    skill = Skill(
        profile_id=profile.id,
        name=name,
        category=clean_str(payload.get("category")),
        years_experience=parse_int(payload.get("years_experience")),
    )
    profile.skills.append(skill)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.skill.add",
        entity_type="Skill",
        entity_id=str(skill.id),
        metadata={"name": name, "readiness_score": profile.readiness_score},
    )
    return skill


def remove_skill(s: "Session", profile: ProfessionalProfile, skill: Skill, user: "User") -> None:
    profile.skills.remove(skill)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.skill.delete",
        entity_type="Skill",
        entity_id=str(skill.id),
        metadata={"name": skill.name, "readiness_score": profile.readiness_score},
    )


def validate_certification_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    for field, label in (("name", "Certification name"), ("issuing_organization", "Issuing organization")):
        if not partial or field in payload:
            value = clean_str(payload.get(field))
            if not value:
                errors.append(f"{label} is required.")
            elif len(value) > 200:
                errors.append(f"{label} must be at most 200 characters.")
    url = clean_str(payload.get("credential_url"))
    if url and not URL_RE.match(url):
        errors.append("Invalid credential_url.")
    try:
        issued = parse_date(payload.get("issue_date"))
        expires = parse_date(payload.get("expiry_date"))
    except ValueError:
        errors.append("Dates must use YYYY-MM-DD.")
    else:
        if issued and expires and expires < issued:
            errors.append("expiry_date must be on or after issue_date.")
    return errors


def _apply_certification(cert: Certification, payload: dict) -> None:
    for field in ("name", "issuing_organization", "credential_id", "credential_url"):
        if field in payload:
            setattr(cert, field, clean_str(payload.get(field)))
    for field in ("issue_date", "expiry_date"):
        if field in payload:
            setattr(cert, field, parse_date(payload.get(field)))


def add_certification(s: "Session", profile: ProfessionalProfile, payload: dict, user: "User") -> Certification:
    cert = Certification(profile_id=profile.id)
    _apply_certification(cert, payload)
    profile.certifications.append(cert)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.certification.add",
        entity_type="Certification",
        entity_id=str(cert.id),
        metadata={"name": cert.name, "readiness_score": profile.readiness_score},
    )
    return cert


def update_certification(
    s: "Session", profile: ProfessionalProfile, cert: Certification, payload: dict, user: "User"
) -> Certification:
    _apply_certification(cert, payload)
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.certification.edit",
        entity_type="Certification",
        entity_id=str(cert.id),
        metadata={"fields": sorted(payload.keys())},
    )
    return cert


def remove_certification(s: "Session", profile: ProfessionalProfile, cert: Certification, user: "User") -> None:
    profile.certifications.remove(cert)
    s.flush()
    refresh_readiness_score(profile)
    record_event(
        s,
        actor=user,
        action="profile.certification.delete",
        entity_type="Certification",
        entity_id=str(cert.id),
        metadata={"name": cert.name, "readiness_score": profile.readiness_score},
    )


def search_talent(
    s: "Session",
    *,
    availability: str | None = None,
    skill: str | None = None,
    min_score: int | None = None,
) -> "Query":
    """Visible profiles, best readiness first."""
    query = s.query(ProfessionalProfile).filter(ProfessionalProfile.is_marketplace_visible.is_(True))
    if availability in AVAILABILITY_STATUSES:
        query = query.filter(ProfessionalProfile.availability_status == availability)
    if min_score is not None:
        query = query.filter(ProfessionalProfile.readiness_score >= min_score)
    if skill:
        matching = s.query(Skill.profile_id).filter(matches_any(contains_pattern(skill), Skill.name))
        query = query.filter(ProfessionalProfile.id.in_(matching))
    return query.order_by(ProfessionalProfile.readiness_score.desc(), ProfessionalProfile.id.asc())


def experience_to_dict(exp: Experience) -> dict:
    return {
        "id": exp.id,
        "company_name": exp.company_name,
        "title": exp.title,
        "location": exp.location,
        "start_date": iso(exp.start_date),
        "end_date": iso(exp.end_date),
        "is_current": bool(exp.is_current),
        "description": exp.description,
        "experience_type": exp.experience_type,
    }


def skill_to_dict(skill: Skill) -> dict:
    return {"id": skill.id, "name": skill.name, "category": skill.category, "years_experience": skill.years_experience}


def certification_to_dict(cert: Certification) -> dict:
    return {
        "id": cert.id,
        "name": cert.name,
        "issuing_organization": cert.issuing_organization,
        "issue_date": iso(cert.issue_date),
        "expiry_date": iso(cert.expiry_date),
        "credential_id": cert.credential_id,
        "credential_url": cert.credential_url,
    }


def profile_to_dict(profile: ProfessionalProfile, *, detail: bool = False, private: bool = False) -> dict:
    data: dict[str, Any] = {
        "id": profile.id,
        "user_id": profile.user_id,
        "full_name": profile.user.full_name if profile.user else None,
        "headline": profile.headline,
        "summary": profile.summary,
        "availability_status": profile.availability_status,
        "desired_roles": profile.desired_roles or [],
        "languages": profile.languages or [],
        "mobility_preference": bool(profile.mobility_preference),
        "is_marketplace_visible": bool(profile.is_marketplace_visible),
        "readiness_score": profile.readiness_score,
        "skills": [skill_to_dict(sk) for sk in profile.skills],
        "updated_at": iso(profile.updated_at),
    }
    if detail:
        data["experiences"] = [experience_to_dict(e) for e in profile.experiences]
        data["certifications"] = [certification_to_dict(c) for c in profile.certifications]
        data["social_links"] = profile.social_links or {}
    if private:
        data["compensation_expectations"] = profile.compensation_expectations
    return data


# ---------------------------------------------------------------------------
# Board positions
# ---------------------------------------------------------------------------


def validate_position_payload(payload: dict, *, partial: bool = False, today: date | None = None) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 5:
            errors.append("Title must be at least 5 characters.")
        elif len(title) > 200:
            errors.append("Title must be at most 200 characters.")
    if not partial or "description" in payload:
        description = clean_str(payload.get("description"))
        if not description or len(description) < 20:
            errors.append("Description must be at least 20 characters.")
    if "status" in payload and payload.get("status") not in POSITION_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(POSITION_STATUSES)}")
    position_type = clean_str(payload.get("position_type"))
    if position_type and len(position_type) > 64:
        errors.append("position_type must be at most 64 characters.")
    if payload.get("requirements") is not None and not isinstance(payload.get("requirements"), list):
        errors.append("requirements must be a list.")
    compensation = clean_str(payload.get("compensation_details"))
    if compensation and len(compensation) > 500:
        errors.append("compensation_details must be at most 500 characters.")
    try:
        closing = parse_date(payload.get("closing_date"))
    except ValueError:
        errors.append("closing_date must use YYYY-MM-DD.")
    else:
        if closing and not partial and closing < (today or date.today()):
            errors.append("closing_date cannot be in the past.")
    return errors


def _apply_position(position: BoardPosition, payload: dict) -> dict:
    changes: dict[str, Any] = {}

    def _set(field: str, value: Any) -> None:
        old = getattr(position, field)
        if old != value:
            setattr(position, field, value)
            changes[field] = {"from": old, "to": value}

    for field in ("title", "description"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    for field in ("compensation_details", "location"):
        if field in payload:
            _set(field, clean_str(payload.get(field)))
    if "position_type" in payload:
        _set("position_type", clean_str(payload.get("position_type")) or POSITION_TYPES[0])
    if "requirements" in payload:
        _set("requirements", clean_str_list(payload.get("requirements")))
    if "is_remunerated" in payload:
        _set("is_remunerated", bool(parse_bool(payload.get("is_remunerated"), False)))
    if "closing_date" in payload:
        _set("closing_date", parse_date(payload.get("closing_date")))
    if "status" in payload:
        _set("status", payload["status"])
    return changes


def create_position(s: "Session", organization_id: int, payload: dict, user: "User") -> BoardPosition:
    now = datetime.utcnow()
    position = BoardPosition(
        organization_id=organization_id,
        position_type=POSITION_TYPES[0],
        status="draft",
        is_remunerated=False,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    _apply_position(position, payload)
    s.add(position)
    s.flush()
    record_event(
        s,
        actor=user,
        action="position.create",
        entity_type="BoardPosition",
        entity_id=str(position.id),
        metadata={"title": position.title, "status": position.status},
    )
    return position


def update_position(s: "Session", position: BoardPosition, payload: dict, user: "User") -> BoardPosition:
    if position.status == "filled" and payload.get("status") not in (None, "filled"):
        raise ValueError("A filled position cannot be reopened.")
    changes = _apply_position(position, payload)
    if changes:
        position.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="position.edit",
            entity_type="BoardPosition",
            entity_id=str(position.id),
            metadata={"changes": changes},
        )
    return position


def delete_position(s: "Session", position: BoardPosition, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="position.delete",
        entity_type="BoardPosition",
        entity_id=str(position.id),
        metadata={"title": position.title},
    )
    s.delete(position)


def is_accepting_applications(position: BoardPosition, today: date | None = None) -> bool:
    if position.status != "open":
        return False
    return position.closing_date is None or position.closing_date >= (today or date.today())


def position_to_dict(position: BoardPosition, *, application_count: int | None = None) -> dict:
    org = position.organization
    data = {
        "id": position.id,
        "organization_id": position.organization_id,
        "organization": (
            {"id": org.id, "name": org.display_name or org.company_name, "slug": org.slug, "logo_url": org.logo_url}
            if org
            else None
        ),
        "title": position.title,
        "description": position.description,
        "requirements": position.requirements or [],
        "is_remunerated": bool(position.is_remunerated),
        "compensation_details": position.compensation_details,
        "location": position.location,
        "position_type": position.position_type,
        "status": position.status,
        "closing_date": iso(position.closing_date),
        "created_at": iso(position.created_at),
        "updated_at": iso(position.updated_at),
    }
    if application_count is not None:
        data["application_count"] = application_count
    return data


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


def validate_application_payload(payload: dict) -> list[str]:
    cover_letter = clean_str(payload.get("cover_letter"))
    if cover_letter and len(cover_letter) < MIN_COVER_LETTER:
        return [f"Cover letter must be at least {MIN_COVER_LETTER} characters."]
    if cover_letter and len(cover_letter) > 5000:
        return ["Cover letter must be at most 5000 characters."]
    return []


def apply_to_position(
    s: "Session",
    position: BoardPosition,
    profile: ProfessionalProfile,
    payload: dict,
    user: "User",
    *,
    today: date | None = None,
) -> PositionApplication:
    if not is_accepting_applications(position, today):
        raise ValueError("This position is not accepting applications.")
    existing = (
        s.query(PositionApplication.id)
        .filter(PositionApplication.position_id == position.id, PositionApplication.profile_id == profile.id)
        .first()
    )
    if existing is not None:
        raise ConflictError("You have already applied to this position.")

    now = datetime.utcnow()
    application = PositionApplication(
        position_id=position.id,
        profile_id=profile.id,
        status="submitted",
        cover_letter=clean_str(payload.get("cover_letter")),
        created_at=now,
        updated_at=now,
    )
    s.add(application)
    s.flush()
    record_event(
        s,
        actor=user,
        action="application.submit",
        entity_type="PositionApplication",
        entity_id=str(application.id),
        metadata={"position_id": position.id, "profile_id": profile.id},
        organization_id=position.organization_id,
    )
    return application


def can_transition_to(current: str, target: str) -> bool:
    return target in APPLICATION_TRANSITIONS.get(current, set())


def change_application_status(
    s: "Session",
    application: PositionApplication,
    target: str,
    user: "User",
    *,
    notes: str | None = None,
) -> PositionApplication:
    if target not in APPLICATION_STATUSES or target == "withdrawn":
        raise ValueError(f"Invalid status. Must be one of: {', '.join(st for st in APPLICATION_STATUSES if st != 'withdrawn')}")
    old = application.status
    if not can_transition_to(old, target):
        raise ValueError(f"Cannot move an application from '{old}' to '{target}'.")

    application.status = target
    if notes is not None:
        application.notes = notes
    application.updated_at = datetime.utcnow()

    position = application.position
    if target == "accepted" and position.status != "filled":
        position.status = "filled"
        position.updated_at = application.updated_at
        logger.info("Position %s filled by application %s", position.id, application.id)

    record_event(
        s,
        actor=user,
        action="application.status",
        entity_type="PositionApplication",
        entity_id=str(application.id),
        metadata={"from": old, "to": target, "position_id": position.id},
        organization_id=position.organization_id,
    )
    return application


def withdraw_application(s: "Session", application: PositionApplication, user: "User") -> PositionApplication:
    if application.profile.user_id != user.id:
        raise PermissionError("Only the applicant can withdraw an application.")
    if application.status in FINAL_APPLICATION_STATUSES:
        raise ValueError(f"Cannot withdraw an application that is '{application.status}'.")
    old = application.status
    application.status = "withdrawn"
    application.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="application.withdraw",
        entity_type="PositionApplication",
        entity_id=str(application.id),
        metadata={"from": old, "position_id": application.position_id},
        organization_id=application.position.organization_id,
    )
    return application


def application_to_dict(application: PositionApplication, *, for_organization: bool = False) -> dict:
    data = {
        "id": application.id,
        "position_id": application.position_id,
        "position": {
            "id": application.position.id,
            "title": application.position.title,
            "status": application.position.status,
            "organization_id": application.position.organization_id,
        },
        "profile_id": application.profile_id,
        "status": application.status,
        "cover_letter": application.cover_letter,
        "created_at": iso(application.created_at),
        "updated_at": iso(application.updated_at),
    }
    if for_organization:
        data["notes"] = application.notes
        data["profile"] = profile_to_dict(application.profile)
    return data
