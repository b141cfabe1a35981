import pytest

from app.boardroom.modules.evaluations.service import validate_questions, validate_responses

QUESTIONS = [
    {"id": "q1", "question": "How well does the member prepare?", "type": "rating"},
    {"id": "q2", "question": "Contribution to strategy", "type": "scale"},
    {"id": "q3", "question": "Any further comments?", "type": "text", "required": False},
]


def test_validate_questions():
    assert validate_questions(QUESTIONS) == []
    assert validate_questions([]) == ["At least one question is required."]

    errors = validate_questions(
        [
            {"id": "a", "question": "Why?", "type": "rating"},
            {"id": "a", "question": "Pick a committee", "type": "multi_choice", "options": []},
            {"question": "Rate the chair overall", "type": "stars", "required": "yes"},
        ]
    )
    assert "Question 1: question must be at least 5 characters." in errors
    assert "Question 2: duplicate id 'a'." in errors
    assert "Question 2: multi_choice questions need non-empty options." in errors
    assert "Question 3: id is required." in errors
    assert "Question 3: required must be true or false." in errors


def test_validate_responses():
    questions = [dict(q, required=q.get("required", True)) for q in QUESTIONS]
    assert validate_responses(questions, {"q1": 4}, final=False) == []
    assert validate_responses(questions, {"q1": 4, "q2": 5}, final=True) == []

    errors = validate_responses(questions, {"q1": 6, "q9": 1}, final=True)
    assert "Unknown question id 'q9'." in errors
    assert "Answer to 'How well does the member prepare?' must be a number from 1 to 5." in errors
    assert "Question 'Contribution to strategy' is required." in errors

    assert validate_responses(questions, {"q1": True}, final=False) != []
    assert validate_responses(questions, [], final=False) == ["responses must be an object keyed by question id."]


def _template(client, headers, evaluation_type: str, title: str = "Annual review") -> int:
    r = client.post(
        "/api/evaluation-templates",
        json={"title": title, "evaluation_type": evaluation_type, "questions": QUESTIONS},
        headers=headers,
    )
    assert r.status_code == 201, r.json
    return r.json["template"]["id"]


@pytest.fixture()
def templates(client, login):
    headers = login("sec@acme.test")
    ids = {
        "peer_review": _template(client, headers, "peer_review", "Peer review 2025"),
        "self_assessment": _template(client, headers, "self_assessment", "Self assessment 2025"),
    }
    client.post("/auth/logout")
    return ids


def test_template_management(client, login):
    headers = login("sec@acme.test")
    r = client.post(
        "/api/evaluation-templates",
        json={"title": "ab", "evaluation_type": "360", "questions": []},
        headers=headers,
    )
    assert r.status_code == 400
    assert "Title must be at least 3 characters." in r.json["details"]
    assert "At least one question is required." in r.json["details"]

    tid = _template(client, headers, "board_evaluation")
    template = client.get(f"/api/evaluation-templates/{tid}").json["template"]
    # required defaults to true
    assert [q["required"] for q in template["questions"]] == [True, True, False]

    r = client.patch(f"/api/evaluation-templates/{tid}", json={"title": "Board effectiveness"}, headers=headers)
    assert r.json["template"]["title"] == "Board effectiveness"

    assert client.get("/api/evaluation-templates?type=peer_review").json["total"] == 0
    assert client.get("/api/evaluation-templates?type=board_evaluation").json["total"] == 1

    assert client.delete(f"/api/evaluation-templates/{tid}", headers=headers).status_code == 200
    assert client.get(f"/api/evaluation-templates/{tid}").status_code == 404


def test_directors_cannot_manage_templates(client, login, templates):
    headers = login("dir1@acme.test")
    assert client.get("/api/evaluation-templates").json["total"] == 2
    r = client.post(
        "/api/evaluation-templates",
        json={"title": "Director made", "evaluation_type": "peer_review", "questions": QUESTIONS},
        headers=headers,
    )
    assert r.status_code == 403
    assert client.get("/api/evaluations/report").status_code == 403


def test_peer_review_requires_subject(client, login, templates, member_ids):
    headers = login("dir1@acme.test")
    r = client.post("/api/evaluations", json={"template_id": templates["peer_review"]}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "subject_id is required for peer reviews."

    r = client.post(
        "/api/evaluations", json={"template_id": templates["peer_review"], "subject_id": 9999}, headers=headers
    )
    assert r.status_code == 404

    r = client.post("/api/evaluations", json={}, headers=headers)
    assert r.status_code == 400

    # Self assessments default their subject to the evaluator's seat
    r = client.post("/api/evaluations", json={"template_id": templates["self_assessment"]}, headers=headers)
    assert r.status_code == 201
    assert r.json["evaluation"]["subject_member_id"] == member_ids["Dana Director"]
    assert r.json["evaluation"]["evaluator_member_id"] == member_ids["Dana Director"]


def test_draft_save_and_submit(client, login, templates, member_ids):
    headers = login("dir1@acme.test")
    r = client.post(
        "/api/evaluations",
        json={"template_id": templates["peer_review"], "subject_id": member_ids["Eli Director"]},
        headers=headers,
    )
    evaluation = r.json["evaluation"]
    assert evaluation["status"] == "draft"
    assert evaluation["template"]["evaluation_type"] == "peer_review"
    eid = evaluation["id"]

    # Partial answers are fine while drafting
    r = client.patch(f"/api/evaluations/{eid}", json={"responses": {"q1": 4}}, headers=headers)
    assert r.status_code == 200
    assert r.json["evaluation"]["responses"] == {"q1": 4}

    r = client.post(f"/api/evaluations/{eid}/submit", json={}, headers=headers)
    assert r.status_code == 400
    assert "Question 'Contribution to strategy' is required." in r.json["error"]

    r = client.post(f"/api/evaluations/{eid}/submit", json={"responses": {"q1": 4, "q2": 5}}, headers=headers)
    assert r.status_code == 200
    assert r.json["evaluation"]["status"] == "submitted"
    assert r.json["evaluation"]["submitted_at"] is not None

    r = client.patch(f"/api/evaluations/{eid}", json={"responses": {"q1": 1}}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Evaluation has already been submitted."

    # Submitted evaluations stay unless a manager removes them
    r = client.delete(f"/api/evaluations/{eid}", headers=headers)
    assert r.status_code == 403

    # Questions are locked once the template is in use
    client.post("/auth/logout")
    headers = login("sec@acme.test")
    r = client.patch(
        f"/api/evaluation-templates/{templates['peer_review']}", json={"questions": QUESTIONS[:1]}, headers=headers
    )
    assert r.status_code == 409
    assert client.delete(f"/api/evaluation-templates/{templates['peer_review']}", headers=headers).status_code == 409
    assert client.delete(f"/api/evaluations/{eid}", headers=headers).status_code == 200


def test_evaluations_are_private_to_their_evaluator(client, login, templates, member_ids):
    headers = login("dir1@acme.test")
    eid = client.post(
        "/api/evaluations",
        json={"template_id": templates["peer_review"], "subject_id": member_ids["Eli Director"]},
        headers=headers,
    ).json["evaluation"]["id"]

    client.post("/auth/logout")
    headers = login("dir2@acme.test")
    assert client.get("/api/evaluations").json["total"] == 0
    assert client.get(f"/api/evaluations/{eid}").status_code == 404
    r = client.post(f"/api/evaluations/{eid}/submit", json={"responses": {"q1": 1, "q2": 1}}, headers=headers)
    assert r.status_code == 404

    client.post("/auth/logout")
    headers = login("sec@acme.test")
    assert client.get("/api/evaluations").json["total"] == 1
    # Managers can read but only the evaluator can answer
    assert client.get(f"/api/evaluations/{eid}").status_code == 200
    r = client.post(f"/api/evaluations/{eid}/submit", json={"responses": {"q1": 1, "q2": 1}}, headers=headers)
    assert r.status_code == 403


def test_performance_report(client, login, templates, member_ids):
    dana, eli = member_ids["Dana Director"], member_ids["Eli Director"]

    def submit(email, template_id, responses, subject_id=None):
        headers = login(email)
        payload = {"template_id": template_id}
        if subject_id is not None:
            payload["subject_id"] = subject_id
        eid = client.post("/api/evaluations", json=payload, headers=headers).json["evaluation"]["id"]
        r = client.post(f"/api/evaluations/{eid}/submit", json={"responses": responses}, headers=headers)
        assert r.status_code == 200, r.json
        client.post("/auth/logout")

    submit("dir1@acme.test", templates["peer_review"], {"q1": 4, "q2": 5}, subject_id=eli)
    submit("sec@acme.test", templates["peer_review"], {"q1": 3, "q2": 4, "q3": "Solid"}, subject_id=eli)
    submit("dir2@acme.test", templates["peer_review"], {"q1": 2, "q2": 3}, subject_id=dana)
    submit("dir2@acme.test", templates["self_assessment"], {"q1": 5, "q2": 4})

    # Drafts are left out
    headers = login("dir1@acme.test")
    client.post("/api/evaluations", json={"template_id": templates["self_assessment"]}, headers=headers)
    client.post("/auth/logout")

    login("admin@acme.test")
    r = client.get("/api/evaluations/report")
    assert r.status_code == 200
    report = r.json
    assert report["total_submitted"] == 4
    assert report["peer_review_count"] == 3
    assert report["self_assessment_count"] == 1

    rows = {row["board_member"]["full_name"]: row for row in report["members"]}
    assert rows["Eli Director"]["avg_peer_rating"] == 4.0
    assert rows["Eli Director"]["peer_count"] == 2
    assert rows["Eli Director"]["self_rating"] == 4.5
    assert rows["Dana Director"]["avg_peer_rating"] == 2.5
    assert rows["Dana Director"]["self_rating"] is None
    assert rows["Fola Observer"]["avg_peer_rating"] == 0
    # Members without peer ratings do not drag the board average down
    assert report["board_average"] == 3.2
