from datetime import date, timedelta

from app.boardroom.db import session_scope
from app.boardroom.models import Organization
from app.boardroom.modules.compliance.models import (
    ComplianceCalendarEvent,
    ComplianceChecklist,
    ComplianceChecklistItem,
)
from app.boardroom.modules.compliance.service import (
    checklist_progress,
    compliance_dashboard,
    refresh_checklist_status,
)


def _checklist(*statuses: str, status: str = "draft") -> ComplianceChecklist:
    checklist = ComplianceChecklist(title="Annual filings", status=status)
    checklist.items = [ComplianceChecklistItem(title=f"Item {i}", status=st, order_index=i) for i, st in enumerate(statuses)]
    return checklist


def test_progress_and_derived_status():
    assert checklist_progress(_checklist()) == 0
    assert checklist_progress(_checklist("completed", "skipped", "pending")) == 67

    assert refresh_checklist_status(_checklist("pending", "pending")) == "draft"
    assert refresh_checklist_status(_checklist("in_progress", "pending")) == "in_progress"
    assert refresh_checklist_status(_checklist("completed", "skipped")) == "completed"
    # Reopening an item moves a completed checklist back
    assert refresh_checklist_status(_checklist("completed", "pending", status="completed")) == "in_progress"
    assert refresh_checklist_status(_checklist("completed", status="archived")) == "archived"


def test_regulations_are_seeded_and_filterable(client, login):
    login("dir1@acme.test")
    r = client.get("/api/compliance/regulations")
    assert r.status_code == 200
    assert r.json["total"] == 8

    r = client.get("/api/compliance/regulations?country=nigeria")
    assert {reg["reference_code"] for reg in r.json["regulations"]} == {"CAMA 2020", "NCCG 2018", "NDPA 2023"}

    r = client.get("/api/compliance/regulations?category=data_protection")
    assert r.json["total"] == 3

    reg_id = r.json["regulations"][0]["id"]
    assert client.get(f"/api/compliance/regulations/{reg_id}").status_code == 200
    assert client.get("/api/compliance/regulations/9999").status_code == 404


def test_checklist_from_regulation(client, login):
    headers = login("sec@acme.test")
    cama = next(
        reg for reg in client.get("/api/compliance/regulations?country=Nigeria").json["regulations"]
        if reg["reference_code"] == "CAMA 2020"
    )

    r = client.post(
        "/api/compliance/checklists",
        json={"title": "CAMA 2020 readiness", "regulation_id": cama["id"], "due_date": "2030-06-30"},
        headers=headers,
    )
    assert r.status_code == 201
    checklist = r.json["checklist"]
    assert checklist["status"] == "draft"
    assert checklist["category"] == "corporate_governance"
    assert [i["title"] for i in checklist["items"]] == cama["key_requirements"]
    assert checklist["progress"] == 0
    cid = checklist["id"]
    item_ids = [i["id"] for i in checklist["items"]]

    r = client.patch(f"/api/compliance/checklists/{cid}/items/{item_ids[0]}", json={"status": "in_progress"}, headers=headers)
    assert r.json["checklist_status"] == "in_progress"

    for iid in item_ids[:-1]:
        r = client.patch(f"/api/compliance/checklists/{cid}/items/{iid}", json={"status": "completed"}, headers=headers)
        assert r.json["item"]["completed_at"] is not None
    r = client.patch(f"/api/compliance/checklists/{cid}/items/{item_ids[-1]}", json={"status": "skipped"}, headers=headers)
    assert r.json["checklist_status"] == "completed"

    r = client.get(f"/api/compliance/checklists/{cid}")
    assert r.json["checklist"]["progress"] == 100

    # A new pending item reopens the checklist
    r = client.post(f"/api/compliance/checklists/{cid}/items", json={"title": "File beneficial ownership"}, headers=headers)
    assert r.status_code == 201
    assert r.json["item"]["order_index"] == len(item_ids)
    assert r.json["checklist_status"] == "in_progress"

    r = client.delete(f"/api/compliance/checklists/{cid}/items/{r.json['item']['id']}", headers=headers)
    assert r.json["checklist_status"] == "completed"

    r = client.delete(f"/api/compliance/checklists/{cid}", headers=headers)
    assert r.status_code == 200
    assert client.get("/api/compliance/checklists").json["total"] == 0


def test_checklist_validation(client, login):
    headers = login("sec@acme.test")
    r = client.post("/api/compliance/checklists", json={"title": "ab", "status": "done"}, headers=headers)
    assert r.status_code == 400
    assert "Title must be at least 3 characters." in r.json["details"]

    r = client.post("/api/compliance/checklists", json={"title": "Ghost regulation", "regulation_id": 9999}, headers=headers)
    assert r.status_code == 404


def test_calendar_marks_overdue_events(client, login):
    headers = login("sec@acme.test")
    past = (date.today() - timedelta(days=3)).isoformat()
    soon = (date.today() + timedelta(days=10)).isoformat()
    later = (date.today() + timedelta(days=90)).isoformat()

    for title, due in (("Annual return", past), ("Board evaluation", soon), ("AGM notice", later)):
        r = client.post("/api/compliance/calendar", json={"title": title, "due_date": due, "event_type": "filing"}, headers=headers)
        assert r.status_code == 201
        assert r.json["event"]["status"] == "upcoming"

    r = client.get("/api/compliance/calendar")
    assert [e["title"] for e in r.json["events"]] == ["Annual return", "Board evaluation", "AGM notice"]
    assert [e["status"] for e in r.json["events"]] == ["overdue", "upcoming", "upcoming"]

    overdue_id = r.json["events"][0]["id"]
    # Postponing an overdue event makes it upcoming again
    r = client.patch(f"/api/compliance/calendar/{overdue_id}", json={"due_date": soon}, headers=headers)
    assert r.json["event"]["status"] == "upcoming"

    r = client.get("/api/compliance/calendar?status=overdue")
    assert r.json["total"] == 0

    r = client.post("/api/compliance/calendar", json={"title": "No date"}, headers=headers)
    assert r.status_code == 400
    assert "due_date is required." in r.json["details"]


def test_dashboard(client, login):
    headers = login("sec@acme.test")
    cid = client.post("/api/compliance/checklists", json={"title": "Data protection"}, headers=headers).json["checklist"]["id"]
    client.post(f"/api/compliance/checklists/{cid}/items", json={"title": "Appoint DPO", "status": "completed"}, headers=headers)
    client.post(f"/api/compliance/checklists/{cid}/items", json={"title": "Records of processing"}, headers=headers)
    client.post(
        "/api/compliance/calendar",
        json={"title": "Breach drill", "due_date": (date.today() - timedelta(days=1)).isoformat()},
        headers=headers,
    )
    client.post(
        "/api/compliance/calendar",
        json={"title": "DPO training", "due_date": (date.today() + timedelta(days=5)).isoformat(), "event_type": "training"},
        headers=headers,
    )

    r = client.get("/api/compliance/dashboard")
    assert r.status_code == 200
    assert r.json["checklists"]["total"] == 1
    assert r.json["checklists"]["by_status"]["in_progress"] == 1
    assert r.json["items"] == {"total": 2, "done": 1, "completion_rate": 50}
    assert [e["title"] for e in r.json["overdue_events"]] == ["Breach drill"]
    assert [e["title"] for e in r.json["upcoming_events"]] == ["DPO training"]


def test_directors_have_read_only_compliance_access(client, login):
    headers = login("dir1@acme.test")
    assert client.get("/api/compliance/checklists").status_code == 200
    r = client.post("/api/compliance/checklists", json={"title": "Not allowed"}, headers=headers)
    assert r.status_code == 403


def test_dashboard_reports_events_it_just_marked_overdue(app):
    with session_scope(app) as s:
        org = s.query(Organization).filter(Organization.slug == "acme").one()
        org_id = org.id
        s.add(ComplianceCalendarEvent(organization_id=org_id, title="Annual return", due_date=date(2029, 12, 31)))

    with session_scope(app) as s:
        data = compliance_dashboard(s, org_id, today=date(2030, 1, 1))
        assert [e["title"] for e in data["overdue_events"]] == ["Annual return"]
        assert data["upcoming_events"] == []


def test_calendar_is_paginated(client, login):
    headers = login("sec@acme.test")
    for days in (10, 20, 30):
        due = (date.today() + timedelta(days=days)).isoformat()
        client.post("/api/compliance/calendar", json={"title": f"Filing in {days} days", "due_date": due}, headers=headers)

    r = client.get("/api/compliance/calendar?limit=2&offset=1")
    assert r.json["total"] == 3
    assert r.json["limit"] == 2
    assert r.json["offset"] == 1
    assert [e["title"] for e in r.json["events"]] == ["Filing in 20 days", "Filing in 30 days"]
