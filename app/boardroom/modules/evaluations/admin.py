from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.boardroom.db import db_session
from app.boardroom.modules.evaluations.models import Evaluation, EvaluationTemplate
from app.boardroom.modules.evaluations.service import (
    EVALUATION_STATUSES,
    EVALUATION_TYPES,
    create_evaluation,
    create_template,
    delete_evaluation,
    delete_template,
    evaluation_to_dict,
    performance_report,
    save_responses,
    submit_evaluation,
    template_to_dict,
    update_template,
    validate_template_payload,
)
from app.boardroom.rbac import require_permission, user_has_permission
from app.boardroom.utils import (
    ConflictError,
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    pagination_args,
    parse_int,
    validation_error,
)

bp = Blueprint("evaluations", __name__)


def _can_manage() -> bool:
    return user_has_permission(current_user(), "evaluations.manage")


# Templates


@bp.get("/evaluation-templates")
@require_permission("evaluations.view")
def list_templates():
    s = db_session()
    query = s.query(EvaluationTemplate).filter(EvaluationTemplate.organization_id == current_org_id())
    evaluation_type = (request.args.get("type") or "").strip()
    if evaluation_type in EVALUATION_TYPES:
        query = query.filter(EvaluationTemplate.evaluation_type == evaluation_type)
    rows = query.order_by(EvaluationTemplate.created_at.desc(), EvaluationTemplate.id.desc()).all()
    return jsonify({"templates": [template_to_dict(t) for t in rows], "total": len(rows)})


@bp.post("/evaluation-templates")
@require_permission("evaluations.manage")
def create_template_post():
    s = db_session()
    payload = json_body()

    errors = validate_template_payload(payload)
    if errors:
        return validation_error(errors)

    template = create_template(s, current_org_id(), payload, current_user())
    s.commit()
    return jsonify({"template": template_to_dict(template)}), 201


@bp.get("/evaluation-templates/<int:template_id>")
@require_permission("evaluations.view")
def get_template(template_id: int):
    s = db_session()
    template = get_org_entity_or_404(s, EvaluationTemplate, template_id, current_org_id())
    return jsonify({"template": template_to_dict(template)})


@bp.patch("/evaluation-templates/<int:template_id>")
@require_permission("evaluations.manage")
def update_template_patch(template_id: int):
    s = db_session()
    template = get_org_entity_or_404(s, EvaluationTemplate, template_id, current_org_id())
    payload = json_body()

    errors = validate_template_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_template(s, template, payload, current_user())
    except ConflictError as e:
        return error_response(str(e), 409)
    s.commit()
    return jsonify({"template": template_to_dict(template)})


@bp.delete("/evaluation-templates/<int:template_id>")
@require_permission("evaluations.manage")
def delete_template_delete(template_id: int):
    s = db_session()
    template = get_org_entity_or_404(s, EvaluationTemplate, template_id, current_org_id())
    try:
        delete_template(s, template, current_user())
    except ConflictError as e:
        return error_response(str(e), 409)
    s.commit()
    return jsonify({"success": True})


# Evaluations


@bp.get("/evaluations")
@require_permission("evaluations.view")
def list_evaluations():
    s = db_session()
    user = current_user()
    limit, offset = pagination_args()

    query = s.query(Evaluation).filter(Evaluation.organization_id == current_org_id())
    # Without manage rights only the caller's own evaluations are visible.
    if not _can_manage():
        query = query.filter(Evaluation.evaluator_user_id == user.id)
    status = (request.args.get("status") or "").strip()
    if status in EVALUATION_STATUSES:
        query = query.filter(Evaluation.status == status)
    subject_id = parse_int(request.args.get("subject_id"))
    if subject_id is not None:
        query = query.filter(Evaluation.subject_member_id == subject_id)
    template_id = parse_int(request.args.get("template_id"))
    if template_id is not None:
        query = query.filter(Evaluation.template_id == template_id)

    total = query.count()
    rows = query.order_by(Evaluation.created_at.desc(), Evaluation.id.desc()).offset(offset).limit(limit).all()
    return jsonify(
        {"evaluations": [evaluation_to_dict(e) for e in rows], "total": total, "limit": limit, "offset": offset}
    )


@bp.post("/evaluations")
@require_permission("evaluations.submit")
def create_evaluation_post():
    s = db_session()
    payload = json_body()

    template_id = parse_int(payload.get("template_id"))
    if template_id is None:
        return validation_error(["template_id is required."])
    template = get_org_entity_or_404(s, EvaluationTemplate, template_id, current_org_id())

    try:
        evaluation = create_evaluation(s, template, payload, current_user())
    except LookupError as e:
        return error_response(str(e), 404)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"evaluation": evaluation_to_dict(evaluation)}), 201


def _load_visible(s, evaluation_id: int) -> Evaluation:
    evaluation = get_org_entity_or_404(s, Evaluation, evaluation_id, current_org_id())
    if evaluation.evaluator_user_id != current_user().id and not _can_manage():
        abort(404)
    return evaluation


@bp.get("/evaluations/<int:evaluation_id>")
@require_permission("evaluations.view")
def get_evaluation(evaluation_id: int):
    s = db_session()
    evaluation = _load_visible(s, evaluation_id)
    return jsonify({"evaluation": evaluation_to_dict(evaluation)})


@bp.patch("/evaluations/<int:evaluation_id>")
@require_permission("evaluations.submit")
def save_evaluation_patch(evaluation_id: int):
    s = db_session()
    evaluation = _load_visible(s, evaluation_id)
    payload = json_body()

    try:
        save_responses(s, evaluation, payload.get("responses") or {}, current_user())
    except PermissionError as e:
        return error_response(str(e), 403)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"evaluation": evaluation_to_dict(evaluation)})


@bp.post("/evaluations/<int:evaluation_id>/submit")
@require_permission("evaluations.submit")
def submit_evaluation_post(evaluation_id: int):
    s = db_session()
    evaluation = _load_visible(s, evaluation_id)
    payload = json_body()

    try:
        submit_evaluation(s, evaluation, payload.get("responses"), current_user())
    except PermissionError as e:
        return error_response(str(e), 403)
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"evaluation": evaluation_to_dict(evaluation)})


@bp.delete("/evaluations/<int:evaluation_id>")
@require_permission("evaluations.submit")
def delete_evaluation_delete(evaluation_id: int):
    s = db_session()
    evaluation = _load_visible(s, evaluation_id)
    if evaluation.status == "submitted" and not _can_manage():
        return error_response("Submitted evaluations can only be removed by an evaluation manager.", 403)
    delete_evaluation(s, evaluation, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.get("/evaluations/report")
@require_permission("evaluations.manage")
def report():
    s = db_session()
    return jsonify(performance_report(s, current_org_id()))
