from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.marketplace.models import (
    BoardPosition,
    Certification,
    Experience,
    PositionApplication,
    ProfessionalProfile,
    Skill,
)
from app.boardroom.modules.marketplace.service import (
    APPLICATION_STATUSES,
    POSITION_STATUSES,
    add_certification,
    add_experience,
    add_skill,
    application_to_dict,
    apply_to_position,
    certification_to_dict,
    change_application_status,
    create_position,
    delete_position,
    experience_to_dict,
    get_or_create_profile,
    get_profile_for_user,
    is_accepting_applications,
    position_to_dict,
    profile_to_dict,
    remove_certification,
    remove_experience,
    remove_skill,
    search_talent,
    skill_to_dict,
    update_certification,
    update_experience,
    update_position,
    update_profile,
    validate_application_payload,
    validate_certification_payload,
    validate_experience_payload,
    validate_position_payload,
    validate_profile_payload,
    validate_skill_payload,
    withdraw_application,
)
from app.boardroom.rbac import require_permission
from app.boardroom.utils import (
    ConflictError,
    clean_str,
    contains_pattern,
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    matches_any,
    pagination_args,
    parse_bool,
    parse_int,
    validation_error,
)

bp = Blueprint("marketplace", __name__)


# Own professional profile


@bp.get("/marketplace/profile")
@require_permission("profile.edit")
def my_profile():
    s = db_session()
    profile = get_or_create_profile(s, current_user())
    s.commit()
    return jsonify({"profile": profile_to_dict(profile, detail=True, private=True)})


@bp.patch("/marketplace/profile")
@require_permission("profile.edit")
def update_my_profile():
    s = db_session()
    payload = json_body()

    errors = validate_profile_payload(payload)
    if errors:
        return validation_error(errors)

    profile = get_or_create_profile(s, current_user())
    update_profile(s, profile, payload, current_user())
    s.commit()
    return jsonify({"profile": profile_to_dict(profile, detail=True, private=True)})


def _own_child(s, model, child_id: int) -> tuple[ProfessionalProfile, object]:
    profile = get_profile_for_user(s, current_user())
    child = s.get(model, child_id)
    if profile is None or child is None or child.profile_id != profile.id:
        abort(404)
    return profile, child


def _score_payload(profile: ProfessionalProfile) -> dict:
    return {"readiness_score": profile.readiness_score}


@bp.post("/marketplace/profile/experiences")
@require_permission("profile.edit")
def add_experience_post():
    s = db_session()
    payload = json_body()

    errors = validate_experience_payload(payload)
    if errors:
        return validation_error(errors)

    profile = get_or_create_profile(s, current_user())
    exp = add_experience(s, profile, payload, current_user())
    s.commit()
    return jsonify({"experience": experience_to_dict(exp), **_score_payload(profile)}), 201


@bp.patch("/marketplace/profile/experiences/<int:experience_id>")
@require_permission("profile.edit")
def update_experience_patch(experience_id: int):
    s = db_session()
    profile, exp = _own_child(s, Experience, experience_id)
    payload = json_body()

    errors = validate_experience_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_experience(s, profile, exp, payload, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"experience": experience_to_dict(exp), **_score_payload(profile)})


@bp.delete("/marketplace/profile/experiences/<int:experience_id>")
@require_permission("profile.edit")
def delete_experience_delete(experience_id: int):
    s = db_session()
    profile, exp = _own_child(s, Experience, experience_id)
    remove_experience(s, profile, exp, current_user())
    s.commit()
    return jsonify({"success": True, **_score_payload(profile)})


@bp.post("/marketplace/profile/skills")
@require_permission("profile.edit")
def add_skill_post():
    s = db_session()
    payload = json_body()

    errors = validate_skill_payload(payload)
    if errors:
        return validation_error(errors)

    profile = get_or_create_profile(s, current_user())
    try:
        skill = add_skill(s, profile, payload, current_user())
    except ConflictError as e:
        return error_response(str(e), 409)
    s.commit()
    return jsonify({"skill": skill_to_dict(skill), **_score_payload(profile)}), 201


@bp.delete("/marketplace/profile/skills/<int:skill_id>")
@require_permission("profile.edit")
def delete_skill_delete(skill_id: int):
    s = db_session()
    profile, skill = _own_child(s, Skill, skill_id)
    remove_skill(s, profile, skill, current_user())
    s.commit()
    return jsonify({"success": True, **_score_payload(profile)})


@bp.post("/marketplace/profile/certifications")
@require_permission("profile.edit")
def add_certification_post():
    s = db_session()
    payload = json_body()

    errors = validate_certification_payload(payload)
    if errors:
        return validation_error(errors)

    profile = get_or_create_profile(s, current_user())
    cert = add_certification(s, profile, payload, current_user())
    s.commit()
    return jsonify({"certification": certification_to_dict(cert), **_score_payload(profile)}), 201


@bp.patch("/marketplace/profile/certifications/<int:certification_id>")
@require_permission("profile.edit")
def update_certification_patch(certification_id: int):
    s = db_session()
    profile, cert = _own_child(s, Certification, certification_id)
    payload = json_body()

    errors = validate_certification_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    update_certification(s, profile, cert, payload, current_user())
    s.commit()
    return jsonify({"certification": certification_to_dict(cert), **_score_payload(profile)})


@bp.delete("/marketplace/profile/certifications/<int:certification_id>")
@require_permission("profile.edit")
def delete_certification_delete(certification_id: int):
    s = db_session()
    profile, cert = _own_child(s, Certification, certification_id)
    remove_certification(s, profile, cert, current_user())
    s.commit()
    return jsonify({"success": True, **_score_payload(profile)})


# Talent search


@bp.get("/marketplace/talent")
@require_permission("marketplace.view")
def talent():
    s = db_session()
    limit, offset = pagination_args()
    query = search_talent(
        s,
        availability=(request.args.get("availability") or "").strip() or None,
        skill=clean_str(request.args.get("skill")),
        min_score=parse_int(request.args.get("min_score")),
    )
    total = query.count()
    rows = query.offset(offset).limit(limit).all()
    return jsonify({"profiles": [profile_to_dict(p) for p in rows], "total": total, "limit": limit, "offset": offset})


@bp.get("/marketplace/talent/<int:profile_id>")
@require_permission("marketplace.view")
def talent_detail(profile_id: int):
    s = db_session()
    profile = s.get(ProfessionalProfile, profile_id)
    if profile is None or (not profile.is_marketplace_visible and profile.user_id != current_user().id):
        abort(404)
    return jsonify({"profile": profile_to_dict(profile, detail=True)})


# Board positions


def _load_position(s, position_id: int) -> BoardPosition:
    """Open positions are visible to everyone; other statuses only to the owning organization."""
    position = s.get(BoardPosition, position_id)
    if position is None:
        abort(404)
    if position.status != "open" and position.organization_id != current_user().organization_id:
        abort(404)
    return position


@bp.get("/marketplace/positions")
@require_permission("marketplace.view")
def list_positions():
    s = db_session()
    limit, offset = pagination_args()

    query = s.query(BoardPosition)
    if parse_bool(request.args.get("mine"), False):
        query = query.filter(BoardPosition.organization_id == current_org_id())
        status = (request.args.get("status") or "").strip()
        if status in POSITION_STATUSES:
            query = query.filter(BoardPosition.status == status)
    else:
        query = query.filter(BoardPosition.status == "open")

    q = (request.args.get("q") or "").strip()
    if q:
        query = query.filter(matches_any(contains_pattern(q), BoardPosition.title, BoardPosition.description))
    position_type = (request.args.get("position_type") or "").strip()
    if position_type:
        query = query.filter(BoardPosition.position_type == position_type)

    total = query.count()
    rows = query.order_by(BoardPosition.created_at.desc(), BoardPosition.id.desc()).offset(offset).limit(limit).all()
    return jsonify({"positions": [position_to_dict(p) for p in rows], "total": total, "limit": limit, "offset": offset})


@bp.post("/marketplace/positions")
@require_permission("marketplace.post")
def create_position_post():
    s = db_session()
    payload = json_body()

    errors = validate_position_payload(payload)
    if errors:
        return validation_error(errors)

    position = create_position(s, current_org_id(), payload, current_user())
    s.commit()
    return jsonify({"position": position_to_dict(position)}), 201


@bp.get("/marketplace/positions/<int:position_id>")
@require_permission("marketplace.view")
def get_position(position_id: int):
    s = db_session()
    position = _load_position(s, position_id)
    data = position_to_dict(position)
    data["accepting_applications"] = is_accepting_applications(position)
    profile = get_profile_for_user(s, current_user())
    if profile is not None:
        mine = (
            s.query(PositionApplication)
            .filter(PositionApplication.position_id == position.id, PositionApplication.profile_id == profile.id)
            .one_or_none()
        )
        data["my_application"] = application_to_dict(mine) if mine else None
    return jsonify({"position": data})


@bp.patch("/marketplace/positions/<int:position_id>")
@require_permission("marketplace.post")
def update_position_patch(position_id: int):
    s = db_session()
    position = get_org_entity_or_404(s, BoardPosition, position_id, current_org_id())
    payload = json_body()

    errors = validate_position_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_position(s, position, payload, current_user())
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"position": position_to_dict(position)})


@bp.delete("/marketplace/positions/<int:position_id>")
@require_permission("marketplace.post")
def delete_position_delete(position_id: int):
    s = db_session()
    position = get_org_entity_or_404(s, BoardPosition, position_id, current_org_id())
    delete_position(s, position, current_user())
    s.commit()
    return jsonify({"success": True})


# Applications


@bp.post("/marketplace/positions/<int:position_id>/applications")
@require_permission("marketplace.apply")
def apply_post(position_id: int):
    s = db_session()
    position = _load_position(s, position_id)
    payload = json_body()

    errors = validate_application_payload(payload)
    if errors:
        return validation_error(errors)

    profile = get_or_create_profile(s, current_user())
    try:
        application = apply_to_position(s, position, profile, payload, current_user())
    except ConflictError as e:
        s.rollback()
        return error_response(str(e), 409)
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"application": application_to_dict(application)}), 201


@bp.get("/marketplace/positions/<int:position_id>/applications")
@require_permission("marketplace.post")
def position_applications(position_id: int):
    s = db_session()
    position = get_org_entity_or_404(s, BoardPosition, position_id, current_org_id())

    query = s.query(PositionApplication).filter(PositionApplication.position_id == position.id)
    status = (request.args.get("status") or "").strip()
    if status in APPLICATION_STATUSES:
        query = query.filter(PositionApplication.status == status)
    rows = query.order_by(PositionApplication.created_at.asc(), PositionApplication.id.asc()).all()
    return jsonify(
        {"applications": [application_to_dict(a, for_organization=True) for a in rows], "total": len(rows)}
    )


@bp.get("/marketplace/applications")
@require_permission("marketplace.apply")
def my_applications():
    s = db_session()
    profile = get_profile_for_user(s, current_user())
    if profile is None:
        return jsonify({"applications": [], "total": 0})
    rows = (
        s.query(PositionApplication)
        .filter(PositionApplication.profile_id == profile.id)
        .order_by(PositionApplication.created_at.desc(), PositionApplication.id.desc())
        .all()
    )
    return jsonify({"applications": [application_to_dict(a) for a in rows], "total": len(rows)})


@bp.patch("/marketplace/applications/<int:application_id>")
@require_permission("marketplace.post")
def update_application_patch(application_id: int):
    s = db_session()
    application = s.get(PositionApplication, application_id)
    if application is None or application.position.organization_id != current_org_id():
        abort(404)
    payload = json_body()

    status = clean_str(payload.get("status"))
    notes = payload.get("notes")
    try:
        if status:
            change_application_status(s, application, status, current_user(), notes=clean_str(notes))
        elif notes is not None:
            application.notes = clean_str(notes)
        else:
            return validation_error(["status or notes is required."])
    except ValueError as e:
        s.rollback()
        return error_response(str(e))
    s.commit()
    return jsonify({"application": application_to_dict(application, for_organization=True)})


@bp.post("/marketplace/applications/<int:application_id>/withdraw")
@require_permission("marketplace.apply")
def withdraw_post(application_id: int):
    s = db_session()
    application = s.get(PositionApplication, application_id)
    if application is None:
        abort(404)
    try:
        withdraw_application(s, application, current_user())
    except PermissionError:
        abort(404)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"application": application_to_dict(application)})
