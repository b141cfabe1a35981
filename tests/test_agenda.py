from datetime import datetime, timedelta

import pytest

from app.boardroom.modules.agenda.service import parse_reorder_entries


@pytest.fixture()
def meeting_id(client, login):
    headers = login("sec@acme.test")
    r = client.post(
        "/api/meetings",
        json={"title": "Board Meeting", "meeting_date": (datetime.utcnow() + timedelta(days=3)).isoformat()},
        headers=headers,
    )
    assert r.status_code == 201
    return r.json["meeting"]["id"]


def _add(client, meeting_id, headers, **payload):
    r = client.post(f"/api/meetings/{meeting_id}/agenda", json=payload, headers=headers)
    assert r.status_code == 201, r.json
    return r.json["agenda_item"]


def test_parse_reorder_entries():
    entries, errors = parse_reorder_entries([{"id": 1, "order_index": 0}, {"id": "2", "order_index": 1, "parent_id": 1}])
    assert errors == []
    assert entries == [{"id": 1, "order_index": 0}, {"id": 2, "order_index": 1, "parent_id": 1}]

    _, errors = parse_reorder_entries([{"id": 1, "order_index": -1}, {"id": 1, "order_index": 2}])
    assert "Entry 0: order_index must be a non-negative integer." in errors
    assert "Duplicate ids in reorder list." in errors

    _, errors = parse_reorder_entries({})
    assert errors


def test_items_default_to_the_end_and_report_duration(client, login, meeting_id, member_ids):
    headers = login("sec@acme.test")
    opening = _add(client, meeting_id, headers, title="Opening")
    minutes = _add(
        client,
        meeting_id,
        headers,
        title="Approval of minutes",
        item_type="vote",
        duration_minutes=10,
        presenter_id=member_ids["Dana Director"],
    )
    assert opening["order_index"] == 0
    assert opening["duration_minutes"] == 5
    assert minutes["order_index"] == 1
    assert minutes["presenter"]["full_name"] == "Dana Director"

    r = client.get(f"/api/meetings/{meeting_id}/agenda")
    assert r.status_code == 200
    assert [i["title"] for i in r.json["agenda_items"]] == ["Opening", "Approval of minutes"]
    assert r.json["total_duration_minutes"] == 15


def test_links_must_stay_within_meeting(client, login, meeting_id):
    headers = login("sec@acme.test")
    parent = _add(client, meeting_id, headers, title="Finance")
    child = _add(client, meeting_id, headers, title="Budget", parent_id=parent["id"])

    # Only one level of nesting
    r = client.post(f"/api/meetings/{meeting_id}/agenda", json={"title": "Deep", "parent_id": child["id"]}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Parent item must be a top-level item."

    r = client.patch(f"/api/meetings/{meeting_id}/agenda/{parent['id']}", json={"parent_id": parent["id"]}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "An agenda item cannot be its own parent."

    r = client.post(f"/api/meetings/{meeting_id}/agenda", json={"title": "Ghost", "presenter_id": 999}, headers=headers)
    assert r.status_code == 400

    r = client.post(f"/api/meetings/{meeting_id}/agenda", json={"title": "Ghost", "resolution_id": 999}, headers=headers)
    assert r.status_code == 400


def test_reorder_and_delete_promotes_children(client, login, meeting_id):
    headers = login("sec@acme.test")
    a = _add(client, meeting_id, headers, title="A")
    b = _add(client, meeting_id, headers, title="B")
    c = _add(client, meeting_id, headers, title="C")

    r = client.put(
        f"/api/meetings/{meeting_id}/agenda",
        json=[
            {"id": c["id"], "order_index": 0},
            {"id": a["id"], "order_index": 1},
            {"id": b["id"], "order_index": 2, "parent_id": a["id"]},
        ],
        headers=headers,
    )
    assert r.status_code == 200
    items = r.json["agenda_items"]
    assert [i["title"] for i in items] == ["C", "A", "B"]
    assert items[2]["parent_id"] == a["id"]

    # Nesting under a nested item is rejected and nothing is written
    r = client.put(
        f"/api/meetings/{meeting_id}/agenda",
        json=[{"id": c["id"], "order_index": 5, "parent_id": b["id"]}],
        headers=headers,
    )
    assert r.status_code == 400
    r = client.get(f"/api/meetings/{meeting_id}/agenda")
    assert [i["title"] for i in r.json["agenda_items"]] == ["C", "A", "B"]

    r = client.put(f"/api/meetings/{meeting_id}/agenda", json=[{"id": 999, "order_index": 0}], headers=headers)
    assert r.status_code == 400

    r = client.delete(f"/api/meetings/{meeting_id}/agenda/{a['id']}", headers=headers)
    assert r.status_code == 200
    r = client.get(f"/api/meetings/{meeting_id}/agenda")
    b_after = next(i for i in r.json["agenda_items"] if i["id"] == b["id"])
    assert b_after["parent_id"] is None


def test_agenda_of_other_organization_is_hidden(client, login, meeting_id):
    client.post("/auth/logout")
    headers = login("admin@other.test")
    assert client.get(f"/api/meetings/{meeting_id}/agenda").status_code == 404
    r = client.post(f"/api/meetings/{meeting_id}/agenda", json={"title": "Intrusion"}, headers=headers)
    assert r.status_code == 404
