from datetime import date, timedelta

import pytest

from app.boardroom.modules.marketplace.service import (
    can_transition_to,
    compute_readiness_score,
    validate_position_payload,
)

COVER_LETTER = "I have served on three audit committees and chaired a listed company's risk committee."


def test_readiness_score_weights():
    empty = dict(headline=None, summary=None, experience_types=[], skill_count=0, certification_count=0)
    assert compute_readiness_score(**empty) == 0

    assert compute_readiness_score(**{**empty, "headline": "Audit chair", "summary": "Short bio"}) == 15
    assert compute_readiness_score(**{**empty, "summary": "x" * 201}) == 15

    # Executive roles only count without board experience
    assert compute_readiness_score(**{**empty, "experience_types": ["executive"] * 3}) == 15
    assert compute_readiness_score(**{**empty, "experience_types": ["executive"] * 2}) == 0
    assert compute_readiness_score(**{**empty, "experience_types": ["board", "executive", "executive", "executive"]}) == 30
    assert compute_readiness_score(**{**empty, "experience_types": ["board", "board"]}) == 40
    assert compute_readiness_score(**{**empty, "experience_types": ["board"] * 3}) == 50

    assert compute_readiness_score(**{**empty, "skill_count": 5, "certification_count": 1}) == 20
    full = dict(
        headline="Chair",
        summary="x" * 300,
        experience_types=["board"] * 4,
        skill_count=12,
        certification_count=3,
    )
    assert compute_readiness_score(**full) == 100


def test_application_transitions():
    assert can_transition_to("submitted", "reviewing")
    assert can_transition_to("interviewing", "accepted")
    assert not can_transition_to("submitted", "accepted")
    assert not can_transition_to("submitted", "withdrawn")
    assert not can_transition_to("accepted", "rejected")


def test_validate_position_payload():
    today = date(2025, 6, 1)
    ok = {"title": "Independent Director", "description": "Join our board as an independent NED.", "closing_date": "2025-07-01"}
    assert validate_position_payload(ok, today=today) == []

    errors = validate_position_payload({"title": "NED", "description": "Too short", "closing_date": "2025-05-01"}, today=today)
    assert errors == [
        "Title must be at least 5 characters.",
        "Description must be at least 20 characters.",
        "closing_date cannot be in the past.",
    ]
    # Updates may keep a lapsed closing date
    assert validate_position_payload({"closing_date": "2025-05-01"}, partial=True, today=today) == []


def test_profile_builds_readiness_score(client, login):
    headers = login("pro@talent.test")

    r = client.get("/api/marketplace/profile")
    assert r.status_code == 200
    assert r.json["profile"]["readiness_score"] == 0
    assert r.json["profile"]["full_name"] == "Pat Professional"

    r = client.patch(
        "/api/marketplace/profile",
        json={"headline": "Audit committee chair", "summary": "Chartered accountant", "is_marketplace_visible": True},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["profile"]["readiness_score"] == 15

    r = client.patch("/api/marketplace/profile", json={"availability_status": "retired"}, headers=headers)
    assert r.status_code == 400

    r = client.post(
        "/api/marketplace/profile/experiences",
        json={"company_name": "Acme Bank", "title": "Non-Executive Director", "start_date": "2019-01-01", "experience_type": "board", "is_current": True},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["readiness_score"] == 45
    exp_id = r.json["experience"]["id"]

    r = client.post(
        "/api/marketplace/profile/experiences",
        json={"company_name": "Acme Bank", "title": "CFO", "start_date": "2019-01-01", "end_date": "2018-01-01"},
        headers=headers,
    )
    assert r.status_code == 400
    assert "end_date must be on or after start_date." in r.json["details"]

    r = client.post("/api/marketplace/profile/skills", json={"name": "Risk Management", "years_experience": 12}, headers=headers)
    assert r.status_code == 201
    assert r.json["readiness_score"] == 50
    skill_id = r.json["skill"]["id"]

    r = client.post("/api/marketplace/profile/skills", json={"name": "risk management"}, headers=headers)
    assert r.status_code == 409

    r = client.post(
        "/api/marketplace/profile/certifications",
        json={"name": "Chartered Director", "issuing_organization": "IoD", "credential_url": "not a url"},
        headers=headers,
    )
    assert r.status_code == 400
    r = client.post(
        "/api/marketplace/profile/certifications",
        json={"name": "Chartered Director", "issuing_organization": "IoD", "issue_date": "2020-05-01"},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["readiness_score"] == 60

    r = client.get("/api/marketplace/profile")
    profile = r.json["profile"]
    assert [e["experience_type"] for e in profile["experiences"]] == ["board"]
    assert [s["name"] for s in profile["skills"]] == ["Risk Management"]
    assert len(profile["certifications"]) == 1

    assert client.delete(f"/api/marketplace/profile/skills/{skill_id}", headers=headers).json["readiness_score"] == 55
    assert client.delete(f"/api/marketplace/profile/experiences/{exp_id}", headers=headers).json["readiness_score"] == 25


def test_talent_search(client, login):
    headers = login("pro@talent.test")
    client.patch("/api/marketplace/profile", json={"headline": "Audit chair"}, headers=headers)
    client.post("/api/marketplace/profile/skills", json={"name": "Corporate Finance"}, headers=headers)
    client.post("/auth/logout")

    login("dir1@acme.test")
    # Hidden until the professional opts in
    assert client.get("/api/marketplace/talent").json["total"] == 0
    client.post("/auth/logout")

    headers = login("pro@talent.test")
    client.patch("/api/marketplace/profile", json={"is_marketplace_visible": True}, headers=headers)
    client.post("/auth/logout")

    login("dir1@acme.test")
    r = client.get("/api/marketplace/talent?skill=finance")
    assert r.json["total"] == 1
    profile = r.json["profiles"][0]
    assert profile["readiness_score"] == 10
    assert "compensation_expectations" not in profile

    assert client.get("/api/marketplace/talent?skill=marketing").json["total"] == 0
    assert client.get("/api/marketplace/talent?min_score=50").json["total"] == 0
    assert client.get(f"/api/marketplace/talent/{profile['id']}").status_code == 200


def _position(client, headers, **overrides) -> dict:
    payload = {
        "title": "Independent Non-Executive Director",
        "description": "Acme Holdings is looking for an independent director with audit experience.",
        "requirements": ["10 years of finance experience", "Prior board service"],
        "closing_date": (date.today() + timedelta(days=30)).isoformat(),
        "status": "open",
        **overrides,
    }
    r = client.post("/api/marketplace/positions", json=payload, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["position"]


@pytest.fixture()
def position_id(client, login):
    headers = login("sec@acme.test")
    position = _position(client, headers)
    assert position["position_type"] == "Non-Executive Director"
    assert position["organization"]["slug"] == "acme"
    client.post("/auth/logout")
    return position["id"]


def test_positions_listing(client, login, position_id):
    headers = login("sec@acme.test")
    draft = _position(client, headers, title="Chair of the Audit Committee", status="draft")

    r = client.get("/api/marketplace/positions")
    assert [p["id"] for p in r.json["positions"]] == [position_id]
    assert client.get("/api/marketplace/positions?mine=1").json["total"] == 2
    assert client.get("/api/marketplace/positions?mine=1&status=draft").json["total"] == 1
    assert client.get("/api/marketplace/positions?q=AUDIT").json["total"] == 1

    r = client.post("/api/marketplace/positions", json={"title": "Chair", "description": "short"}, headers=headers)
    assert r.status_code == 400

    client.post("/auth/logout")
    login("pro@talent.test")
    # Drafts stay with their organization
    assert client.get(f"/api/marketplace/positions/{draft['id']}").status_code == 404
    r = client.get(f"/api/marketplace/positions/{position_id}")
    assert r.json["position"]["accepting_applications"] is True


def test_application_pipeline_fills_position(client, login, position_id):
    headers = login("pro@talent.test")
    r = client.post(f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": "Hire me"}, headers=headers)
    assert r.status_code == 400
    assert r.json["details"] == ["Cover letter must be at least 50 characters."]

    r = client.post(f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": COVER_LETTER}, headers=headers)
    assert r.status_code == 201
    application = r.json["application"]
    assert application["status"] == "submitted"

    r = client.post(f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": COVER_LETTER}, headers=headers)
    assert r.status_code == 409

    assert client.get("/api/marketplace/applications").json["total"] == 1
    client.post("/auth/logout")

    headers = login("sec@acme.test")
    r = client.get(f"/api/marketplace/positions/{position_id}/applications")
    assert r.json["applications"][0]["profile"]["full_name"] == "Pat Professional"

    base = f"/api/marketplace/applications/{application['id']}"
    r = client.patch(base, json={"status": "accepted"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Cannot move an application from 'submitted' to 'accepted'."

    r = client.patch(base, json={"status": "withdrawn"}, headers=headers)
    assert r.status_code == 400

    for status in ("reviewing", "shortlisted", "interviewing"):
        r = client.patch(base, json={"status": status}, headers=headers)
        assert r.status_code == 200
        assert r.json["application"]["status"] == status

    r = client.patch(base, json={"notes": "Strong audit background"}, headers=headers)
    assert r.json["application"]["notes"] == "Strong audit background"

    r = client.patch(base, json={"status": "accepted"}, headers=headers)
    assert r.json["application"]["status"] == "accepted"
    assert r.json["application"]["position"]["status"] == "filled"

    r = client.patch(f"/api/marketplace/positions/{position_id}", json={"status": "open"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "A filled position cannot be reopened."

    r = client.get(f"/api/audit?entity_type=PositionApplication&entity_id={application['id']}", headers=headers)
    assert r.json["total"] == 5
    client.post("/auth/logout")

    headers = login("pro@talent.test")
    r = client.post(f"{base}/withdraw", headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Cannot withdraw an application that is 'accepted'."


def test_withdraw_rules(client, login, position_id):
    headers = login("pro@talent.test")
    app_id = client.post(
        f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": COVER_LETTER}, headers=headers
    ).json["application"]["id"]
    client.post("/auth/logout")

    # Organizations cannot withdraw on the applicant's behalf
    headers = login("admin@acme.test")
    assert client.post(f"/api/marketplace/applications/{app_id}/withdraw", headers=headers).status_code == 404
    client.post("/auth/logout")

    headers = login("pro@talent.test")
    r = client.post(f"/api/marketplace/applications/{app_id}/withdraw", headers=headers)
    assert r.status_code == 200
    assert r.json["application"]["status"] == "withdrawn"
    assert client.post(f"/api/marketplace/applications/{app_id}/withdraw", headers=headers).status_code == 400


def test_closed_positions_reject_applications(client, login, position_id):
    headers = login("sec@acme.test")
    client.patch(f"/api/marketplace/positions/{position_id}", json={"status": "closed"}, headers=headers)
    client.post("/auth/logout")

    headers = login("pro@talent.test")
    r = client.post(f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": COVER_LETTER}, headers=headers)
    assert r.status_code == 404


def test_other_organizations_cannot_review_applications(client, login, position_id):
    headers = login("pro@talent.test")
    app_id = client.post(
        f"/api/marketplace/positions/{position_id}/applications", json={"cover_letter": COVER_LETTER}, headers=headers
    ).json["application"]["id"]
    client.post("/auth/logout")

    headers = login("admin@other.test")
    assert client.get(f"/api/marketplace/positions/{position_id}/applications").status_code == 404
    r = client.patch(f"/api/marketplace/applications/{app_id}", json={"status": "reviewing"}, headers=headers)
    assert r.status_code == 404
