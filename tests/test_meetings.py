from datetime import datetime, timedelta

from app.boardroom.modules.meetings.models import Meeting
from app.boardroom.modules.meetings.service import meeting_end, render_ics, validate_meeting_payload


def _future(days: int = 7) -> str:
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


def test_validate_meeting_payload_date_window():
    now = datetime(2025, 3, 10, 12, 0, 0)
    ok = {"title": "Q1 Board Meeting", "meeting_date": "2025-03-09T13:00:00"}
    assert validate_meeting_payload(ok, now=now) == []

    old = {"title": "Q1 Board Meeting", "meeting_date": "2025-03-09T11:00:00"}
    assert validate_meeting_payload(old, now=now) == ["Meeting date cannot be more than 24 hours in the past."]

    # Updates may move a meeting into the past
    assert validate_meeting_payload({"meeting_date": "2020-01-01T10:00:00"}, partial=True, now=now) == []

    errors = validate_meeting_payload({"title": "Q1", "meeting_date": "soon", "duration_minutes": 5}, now=now)
    assert "Title must be at least 3 characters." in errors
    assert "Invalid meeting_date (ISO-8601)." in errors
    assert "duration_minutes must be between 15 and 480." in errors


def test_render_ics():
    meeting = Meeting(
        id=42,
        organization_id=1,
        title="Strategy, Budget; Risk",
        description="Line one\nLine two",
        meeting_date=datetime(2025, 5, 1, 9, 30),
        duration_minutes=90,
        status="upcoming",
    )
    body = render_ics(meeting, now=datetime(2025, 4, 1, 8, 0))
    lines = body.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "UID:42@boardroom" in lines
    assert "DTSTART:20250501T093000Z" in lines
    assert "DTEND:20250501T110000Z" in lines
    assert "SUMMARY:Strategy\\, Budget\\; Risk" in lines
    assert "DESCRIPTION:Line one\\nLine two" in lines
    assert "LOCATION:Online" in lines
    assert "TRIGGER:-PT15M" in lines
    assert body.endswith("END:VCALENDAR\r\n")


def test_meeting_end_defaults_to_an_hour():
    meeting = Meeting(title="x", meeting_date=datetime(2025, 5, 1, 9, 0), duration_minutes=None)
    assert meeting_end(meeting) == datetime(2025, 5, 1, 10, 0)


def test_meeting_lifecycle(client, login, member_ids):
    headers = login("sec@acme.test")

    r = client.post(
        "/api/meetings",
        json={
            "title": "Quarterly Board Meeting",
            "meeting_date": _future(),
            "duration_minutes": 120,
            "location": "Lagos HQ",
            "attendee_ids": [member_ids["Dana Director"], member_ids["Eli Director"]],
        },
        headers=headers,
    )
    assert r.status_code == 201
    meeting = r.json["meeting"]
    assert meeting["status"] == "upcoming"
    assert meeting["meeting_type"] == "regular"
    assert len(meeting["attendees"]) == 2
    assert all(a["attendance_status"] == "invited" for a in meeting["attendees"])
    mid = meeting["id"]

    # Re-inviting skips existing attendees
    r = client.post(
        f"/api/meetings/{mid}/attendees",
        json={"board_member_ids": [member_ids["Dana Director"], member_ids["Fola Observer"]]},
        headers=headers,
    )
    assert r.status_code == 201
    assert [a["board_member_id"] for a in r.json["attendees"]] == [member_ids["Fola Observer"]]
    attendee_id = r.json["attendees"][0]["id"]

    r = client.patch(
        f"/api/meetings/{mid}/attendees/{attendee_id}",
        json={"attendance_status": "excused", "notes": "Travelling"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["attendee"]["attendance_status"] == "excused"

    r = client.patch(f"/api/meetings/{mid}/attendees/{attendee_id}", json={"attendance_status": "late"}, headers=headers)
    assert r.status_code == 400

    r = client.delete(f"/api/meetings/{mid}/attendees/{attendee_id}", headers=headers)
    assert r.status_code == 200

    r = client.patch(f"/api/meetings/{mid}", json={"status": "in_progress"}, headers=headers)
    assert r.status_code == 200
    assert r.json["meeting"]["status"] == "in_progress"

    r = client.get("/api/meetings?status=in_progress")
    assert r.json["total"] == 1

    r = client.get(f"/api/meetings/{mid}")
    assert r.status_code == 200
    assert len(r.json["meeting"]["attendees"]) == 2
    assert r.json["meeting"]["documents"] == []

    r = client.delete(f"/api/meetings/{mid}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/api/meetings/{mid}").status_code == 404


def test_create_rejects_unknown_attendees(client, login):
    headers = login("sec@acme.test")
    r = client.post(
        "/api/meetings",
        json={"title": "Special Meeting", "meeting_date": _future(), "attendee_ids": [12345]},
        headers=headers,
    )
    assert r.status_code == 400
    assert client.get("/api/meetings").json["total"] == 0


def test_action_items_track_completion(client, login, member_ids):
    headers = login("sec@acme.test")
    mid = client.post(
        "/api/meetings", json={"title": "Audit Committee", "meeting_date": _future()}, headers=headers
    ).json["meeting"]["id"]

    r = client.post(
        f"/api/meetings/{mid}/action-items",
        json={
            "title": "Circulate draft accounts",
            "assigned_to_member_id": member_ids["Eli Director"],
            "due_date": "2030-01-15",
            "priority": "high",
        },
        headers=headers,
    )
    assert r.status_code == 201
    item = r.json["action_item"]
    assert item["status"] == "pending"
    assert item["completed_at"] is None
    assert item["assignee"]["full_name"] == "Eli Director"

    r = client.patch(f"/api/meetings/{mid}/action-items/{item['id']}", json={"status": "completed"}, headers=headers)
    assert r.json["action_item"]["completed_at"] is not None

    r = client.patch(f"/api/meetings/{mid}/action-items/{item['id']}", json={"status": "in_progress"}, headers=headers)
    assert r.json["action_item"]["completed_at"] is None

    r = client.post(
        f"/api/meetings/{mid}/action-items",
        json={"title": "Bad assignee", "assigned_to_member_id": 9999},
        headers=headers,
    )
    assert r.status_code == 400

    r = client.delete(f"/api/meetings/{mid}/action-items/{item['id']}", headers=headers)
    assert r.status_code == 200


def test_calendar_export(client, login):
    headers = login("sec@acme.test")
    mid = client.post(
        "/api/meetings",
        json={"title": "Annual General Meeting", "meeting_type": "annual", "meeting_date": _future(30)},
        headers=headers,
    ).json["meeting"]["id"]

    r = client.get(f"/api/meetings/{mid}/calendar")
    assert r.status_code == 200
    assert r.mimetype == "text/calendar"
    assert f"meeting-{mid}.ics" in r.headers["Content-Disposition"]
    assert "SUMMARY:Annual General Meeting" in r.get_data(as_text=True)

    r = client.get(f"/api/meetings/{mid}/calendar?format=json")
    assert r.json["google_url"].startswith("https://www.google.com/calendar/render?action=TEMPLATE&")
    assert "outlook.live.com" in r.json["outlook_url"]


def test_directors_can_view_but_not_edit(client, login):
    headers = login("dir2@acme.test")
    assert client.get("/api/meetings").status_code == 200
    r = client.post("/api/meetings", json={"title": "Rogue meeting", "meeting_date": _future()}, headers=headers)
    assert r.status_code == 403
