from app.boardroom.db import session_scope
from app.boardroom.models import User
from app.boardroom.modules.board_members.service import validate_member_payload


def test_validate_member_payload():
    errors = validate_member_payload({"full_name": "X", "position": "emperor"})
    assert "Name must be at least 2 characters." in errors
    assert any(e.startswith("Invalid position") for e in errors)
    assert "start_date is required." in errors

    errors = validate_member_payload({"full_name": "Kofi Mensah", "position": "other", "start_date": "2024-01-01"})
    assert errors == ['Custom position is required when position is "other".']

    errors = validate_member_payload(
        {"full_name": "Kofi Mensah", "position": "director", "start_date": "2024-05-01", "end_date": "2024-01-01"}
    )
    assert errors == ["End date must be after start date."]


def test_member_crud(client, login):
    headers = login("sec@acme.test")

    r = client.post(
        "/api/board-members",
        json={
            "full_name": "Amina Bello",
            "email": "amina@acme.test",
            "position": "independent_director",
            "start_date": "2024-02-01",
            "committees": ["Audit", "Risk"],
            "is_independent": True,
        },
        headers=headers,
    )
    assert r.status_code == 201
    member = r.json["member"]
    # Appended after the three seeded members
    assert member["display_order"] == 3
    assert member["committees"] == ["Audit", "Risk"]

    r = client.patch(
        f"/api/board-members/{member['id']}",
        json={"status": "inactive", "end_date": "2025-01-31"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["member"]["status"] == "inactive"

    r = client.patch(f"/api/board-members/{member['id']}", json={"end_date": "2020-01-01"}, headers=headers)
    assert r.status_code == 400

    r = client.get("/api/board-members?status=inactive")
    assert [m["full_name"] for m in r.json["members"]] == ["Amina Bello"]

    r = client.delete(f"/api/board-members/{member['id']}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/api/board-members/{member['id']}").status_code == 404


def test_list_is_ordered_and_paginated(client, login):
    login("dir1@acme.test")
    r = client.get("/api/board-members?limit=2")
    assert r.status_code == 200
    assert r.json["total"] == 3
    assert [m["full_name"] for m in r.json["members"]] == ["Dana Director", "Eli Director"]

    r = client.get("/api/board-members?limit=2&offset=2")
    assert [m["full_name"] for m in r.json["members"]] == ["Fola Observer"]


def test_reorder(client, login, member_ids):
    headers = login("sec@acme.test")
    order = [member_ids["Fola Observer"], member_ids["Dana Director"]]

    r = client.post("/api/board-members/reorder", json={"member_ids": order}, headers=headers)
    assert r.status_code == 200
    assert [m["display_order"] for m in r.json["members"]] == [0, 1]

    r = client.post("/api/board-members/reorder", json={"member_ids": [order[0], order[0]]}, headers=headers)
    assert r.status_code == 400

    r = client.post("/api/board-members/reorder", json={"member_ids": [999]}, headers=headers)
    assert r.status_code == 400
    assert "999" in r.json["error"]


def test_members_of_other_organizations_are_hidden(client, login, member_ids):
    headers = login("admin@other.test")
    mid = member_ids["Dana Director"]
    assert client.get(f"/api/board-members/{mid}").status_code == 404
    assert client.patch(f"/api/board-members/{mid}", json={"status": "inactive"}, headers=headers).status_code == 404
    assert client.get("/api/board-members").json["total"] == 0


def test_linked_user_must_belong_to_the_organization(app, client, login, member_ids):
    with session_scope(app) as s:
        user_ids = {u.email: u.id for u in s.query(User).all()}
    headers = login("sec@acme.test")
    seat = {"full_name": "Amina Bello", "position": "director", "start_date": "2024-02-01"}

    r = client.post("/api/board-members", json={**seat, "user_id": 99999}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "User must belong to this organization."

    r = client.post("/api/board-members", json={**seat, "user_id": user_ids["admin@other.test"]}, headers=headers)
    assert r.status_code == 400

    r = client.post("/api/board-members", json={**seat, "user_id": "abc"}, headers=headers)
    assert r.json["details"] == ["user_id must be an integer id."]

    r = client.post("/api/board-members", json={**seat, "user_id": user_ids["admin@acme.test"]}, headers=headers)
    assert r.status_code == 201
    assert r.json["member"]["user_id"] == user_ids["admin@acme.test"]

    fola = member_ids["Fola Observer"]
    r = client.patch(f"/api/board-members/{fola}", json={"user_id": user_ids["pro@talent.test"]}, headers=headers)
    assert r.status_code == 400
    assert client.get(f"/api/board-members/{fola}").json["member"]["user_id"] is None
