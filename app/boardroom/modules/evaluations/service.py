from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.boardroom.audit import record_event
from app.boardroom.modules.board_members.models import BoardMember
from app.boardroom.modules.board_members.service import member_summary
from app.boardroom.modules.evaluations.models import Evaluation, EvaluationTemplate
from app.boardroom.utils import ConflictError, clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boardroom.models import User


EVALUATION_TYPES = ("self_assessment", "peer_review", "board_evaluation")
QUESTION_TYPES = ("rating", "scale", "text", "multi_choice")
EVALUATION_STATUSES = ("draft", "submitted")
NUMERIC_QUESTION_TYPES = ("rating", "scale")
RATING_MIN = 1
RATING_MAX = 5


def is_rating(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and RATING_MIN <= value <= RATING_MAX


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def validate_questions(questions: Any) -> list[str]:
    if not isinstance(questions, list) or not questions:
        return ["At least one question is required."]

    errors: list[str] = []
    seen: set[str] = set()
    for idx, q in enumerate(questions, start=1):
        if not isinstance(q, dict):
            errors.append(f"Question {idx} must be an object.")
            continue
        qid = clean_str(q.get("id"))
        if not qid:
            errors.append(f"Question {idx}: id is required.")
        elif qid in seen:
            errors.append(f"Question {idx}: duplicate id '{qid}'.")
        else:
            seen.add(qid)
        text = clean_str(q.get("question"))
        if not text or len(text) < 5:
            errors.append(f"Question {idx}: question must be at least 5 characters.")
        qtype = q.get("type")
        if qtype not in QUESTION_TYPES:
            errors.append(f"Question {idx}: type must be one of: {', '.join(QUESTION_TYPES)}")
        options = q.get("options")
        if qtype == "multi_choice":
            if not isinstance(options, list) or not options or any(_is_blank(o) for o in options):
                errors.append(f"Question {idx}: multi_choice questions need non-empty options.")
        elif options is not None and not isinstance(options, list):
            errors.append(f"Question {idx}: options must be a list.")
        if "required" in q and not isinstance(q.get("required"), bool):
            errors.append(f"Question {idx}: required must be true or false.")
    return errors


def normalize_questions(questions: list[dict]) -> list[dict]:
    out = []
    for q in questions:
        item = {
            "id": str(q["id"]).strip(),
            "question": str(q["question"]).strip(),
            "type": q["type"],
            "required": bool(q.get("required", True)),
        }
        if q["type"] == "multi_choice":
            item["options"] = [str(o).strip() for o in q.get("options") or []]
        out.append(item)
    return out


def validate_template_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "title" in payload:
        title = clean_str(payload.get("title"))
        if not title or len(title) < 3:
            errors.append("Title must be at least 3 characters.")
        elif len(title) > 100:
            errors.append("Title must be at most 100 characters.")
    description = clean_str(payload.get("description"))
    if description and len(description) > 500:
        errors.append("Description must be at most 500 characters.")
    if not partial or "evaluation_type" in payload:
        if payload.get("evaluation_type") not in EVALUATION_TYPES:
            errors.append(f"Invalid evaluation_type. Must be one of: {', '.join(EVALUATION_TYPES)}")
    if not partial or "questions" in payload:
        errors.extend(validate_questions(payload.get("questions")))
    return errors


def create_template(s: "Session", organization_id: int, payload: dict, user: "User") -> EvaluationTemplate:
    now = datetime.utcnow()
    template = EvaluationTemplate(
        organization_id=organization_id,
        title=clean_str(payload.get("title")) or "",
        description=clean_str(payload.get("description")),
        evaluation_type=payload["evaluation_type"],
        questions=normalize_questions(payload["questions"]),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    s.add(template)
    s.flush()

    record_event(
        s,
        actor=user,
        action="evaluation.template.create",
        entity_type="EvaluationTemplate",
        entity_id=str(template.id),
        metadata={"title": template.title, "questions": len(template.questions)},
    )
    return template


def _template_in_use(s: "Session", template: EvaluationTemplate) -> bool:
    return s.query(Evaluation.id).filter(Evaluation.template_id == template.id).first() is not None


def update_template(s: "Session", template: EvaluationTemplate, payload: dict, user: "User") -> EvaluationTemplate:
    if ("questions" in payload or "evaluation_type" in payload) and _template_in_use(s, template):
        raise ConflictError("Questions and type cannot change once evaluations use this template.")

    if clean_str(payload.get("title")):
        template.title = clean_str(payload.get("title"))  # type: ignore[assignment]
    if "description" in payload:
        template.description = clean_str(payload.get("description"))
    if "evaluation_type" in payload:
        template.evaluation_type = payload["evaluation_type"]
    if "questions" in payload:
        template.questions = normalize_questions(payload["questions"])
    template.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="evaluation.template.edit",
        entity_type="EvaluationTemplate",
        entity_id=str(template.id),
        metadata={"title": template.title, "fields": sorted(payload.keys())},
    )
    return template


def delete_template(s: "Session", template: EvaluationTemplate, user: "User") -> None:
    if _template_in_use(s, template):
        raise ConflictError("Template is used by existing evaluations.")
    record_event(
        s,
        actor=user,
        action="evaluation.template.delete",
        entity_type="EvaluationTemplate",
        entity_id=str(template.id),
        metadata={"title": template.title},
    )
    s.delete(template)


def template_to_dict(template: EvaluationTemplate) -> dict:
    return {
        "id": template.id,
        "organization_id": template.organization_id,
        "title": template.title,
        "description": template.description,
        "evaluation_type": template.evaluation_type,
        "questions": template.questions or [],
        "created_at": iso(template.created_at),
        "updated_at": iso(template.updated_at),
    }


# ---------------------------------------------------------------------------
# Evaluations
# ---------------------------------------------------------------------------


def member_for_user(s: "Session", organization_id: int, user: "User") -> BoardMember | None:
    return (
        s.query(BoardMember)
        .filter(BoardMember.organization_id == organization_id, BoardMember.user_id == user.id)
        .order_by(BoardMember.id.asc())
        .first()
    )


def create_evaluation(s: "Session", template: EvaluationTemplate, payload: dict, user: "User") -> Evaluation:
    evaluator_member = member_for_user(s, template.organization_id, user)

    subject_id = parse_int(payload.get("subject_id"))
    subject = None
    if subject_id is not None:
        subject = s.get(BoardMember, subject_id)
        if subject is None or subject.organization_id != template.organization_id:
            raise LookupError("Subject board member not found.")
    if template.evaluation_type == "peer_review" and subject is None:
        raise ValueError("subject_id is required for peer reviews.")
    if template.evaluation_type == "self_assessment" and subject is None:
        subject = evaluator_member

    now = datetime.utcnow()
    evaluation = Evaluation(
        organization_id=template.organization_id,
        template_id=template.id,
        evaluator_user_id=user.id,
        evaluator_member_id=evaluator_member.id if evaluator_member else None,
        subject_member_id=subject.id if subject else None,
        status="draft",
        responses={},
        created_at=now,
        updated_at=now,
    )
    s.add(evaluation)
    s.flush()

    record_event(
        s,
        actor=user,
        action="evaluation.create",
        entity_type="Evaluation",
        entity_id=str(evaluation.id),
        metadata={"template_id": template.id, "subject_member_id": evaluation.subject_member_id},
    )
    return evaluation


def _ensure_editable(evaluation: Evaluation, user: "User") -> None:
    if evaluation.evaluator_user_id != user.id:
        raise PermissionError("Only the evaluator can change this evaluation.")
    if evaluation.status != "draft":
        raise ValueError("Evaluation has already been submitted.")


def validate_responses(questions: list[dict], responses: Any, *, final: bool) -> list[str]:
    """Check answers against template questions; `final` also enforces required questions."""
    if not isinstance(responses, dict):
        return ["responses must be an object keyed by question id."]

    errors: list[str] = []
    known = {q["id"]: q for q in questions}
    for key in responses:
        if key not in known:
            errors.append(f"Unknown question id '{key}'.")

    for q in questions:
        value = responses.get(q["id"])
        if _is_blank(value):
            if final and q.get("required", True):
                errors.append(f"Question '{q['question']}' is required.")
            continue
        qtype = q["type"]
        if qtype in NUMERIC_QUESTION_TYPES and not is_rating(value):
            errors.append(f"Answer to '{q['question']}' must be a number from {RATING_MIN} to {RATING_MAX}.")
        elif qtype == "multi_choice" and value not in (q.get("options") or []):
            errors.append(f"Answer to '{q['question']}' must be one of the listed options.")
        elif qtype == "text" and not isinstance(value, str):
            errors.append(f"Answer to '{q['question']}' must be text.")
    return errors


def save_responses(s: "Session", evaluation: Evaluation, responses: dict, user: "User") -> Evaluation:
    _ensure_editable(evaluation, user)
    errors = validate_responses(evaluation.template.questions, responses, final=False)
    if errors:
        raise ValueError("; ".join(errors))
    evaluation.responses = dict(responses)
    evaluation.updated_at = datetime.utcnow()
    return evaluation


def submit_evaluation(s: "Session", evaluation: Evaluation, responses: dict | None, user: "User") -> Evaluation:
    _ensure_editable(evaluation, user)
    final = dict(responses) if responses is not None else dict(evaluation.responses or {})
    errors = validate_responses(evaluation.template.questions, final, final=True)
    if errors:
        raise ValueError("; ".join(errors))

    now = datetime.utcnow()
    evaluation.responses = final
    evaluation.status = "submitted"
    evaluation.submitted_at = now
    evaluation.updated_at = now

    record_event(
        s,
        actor=user,
        action="evaluation.submit",
        entity_type="Evaluation",
        entity_id=str(evaluation.id),
        metadata={"template_id": evaluation.template_id, "subject_member_id": evaluation.subject_member_id},
    )
    return evaluation


def delete_evaluation(s: "Session", evaluation: Evaluation, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="evaluation.delete",
        entity_type="Evaluation",
        entity_id=str(evaluation.id),
        metadata={"template_id": evaluation.template_id, "status": evaluation.status},
    )
    s.delete(evaluation)


def evaluation_to_dict(evaluation: Evaluation) -> dict:
    template = evaluation.template
    return {
        "id": evaluation.id,
        "organization_id": evaluation.organization_id,
        "template_id": evaluation.template_id,
        "template": (
            {
                "title": template.title,
                "evaluation_type": template.evaluation_type,
                "questions": template.questions or [],
            }
            if template
            else None
        ),
        "evaluator_user_id": evaluation.evaluator_user_id,
        "evaluator_member_id": evaluation.evaluator_member_id,
        "subject_member_id": evaluation.subject_member_id,
        "subject": member_summary(evaluation.subject),
        "status": evaluation.status,
        "responses": evaluation.responses or {},
        "submitted_at": iso(evaluation.submitted_at),
        "created_at": iso(evaluation.created_at),
        "updated_at": iso(evaluation.updated_at),
    }


# ---------------------------------------------------------------------------
# Performance report
# ---------------------------------------------------------------------------


def _ratings(responses: dict | None) -> list[float]:
    return [float(v) for v in (responses or {}).values() if is_rating(v)]


def performance_report(s: "Session", organization_id: int) -> dict:
    """
    Per-member peer averages and self ratings over submitted evaluations.

    Peer average pools every 1..5 answer of every submitted peer review about
    the member; self rating averages the member's earliest submitted self
    assessment. Board average is over members with a non-zero peer average.
    """
    members = (
        s.query(BoardMember)
        .filter(BoardMember.organization_id == organization_id)
        .order_by(BoardMember.display_order.asc(), BoardMember.id.asc())
        .all()
    )
    submitted = (
        s.query(Evaluation)
        .join(EvaluationTemplate, Evaluation.template_id == EvaluationTemplate.id)
        .filter(Evaluation.organization_id == organization_id, Evaluation.status == "submitted")
        .order_by(Evaluation.submitted_at.asc(), Evaluation.id.asc())
        .all()
    )
    peer_reviews = [e for e in submitted if e.template.evaluation_type == "peer_review"]
    self_assessments = [e for e in submitted if e.template.evaluation_type == "self_assessment"]

    summaries = []
    for member in members:
        reviews = [e for e in peer_reviews if e.subject_member_id == member.id]
        peer_values = [v for e in reviews for v in _ratings(e.responses)]
        avg_peer = round(sum(peer_values) / len(peer_values), 1) if peer_values else 0

        self_rating = None
        own = [e for e in self_assessments if e.evaluator_member_id == member.id]
        if own:
            values = _ratings(own[0].responses)
            if values:
                self_rating = round(sum(values) / len(values), 1)

        summaries.append(
            {
                "board_member": member_summary(member),
                "avg_peer_rating": avg_peer,
                "self_rating": self_rating,
                "peer_count": len(reviews),
            }
        )

    rated = [row["avg_peer_rating"] for row in summaries if row["avg_peer_rating"] > 0]
    board_average = round(sum(rated) / len(rated), 1) if rated else 0
    return {
        "members": summaries,
        "board_average": board_average,
        "total_submitted": len(submitted),
        "peer_review_count": len(peer_reviews),
        "self_assessment_count": len(self_assessments),
    }
