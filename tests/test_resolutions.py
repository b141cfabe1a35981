import base64
from datetime import datetime, timedelta

import pytest

from app.boardroom.modules.resolutions.models import Resolution
from app.boardroom.modules.resolutions.service import (
    can_transition_to,
    decode_signature_image,
    threshold_met,
)

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG).decode("ascii")


@pytest.mark.parametrize(
    "voting_type,approve,reject,abstain,expected",
    [
        ("simple_majority", 2, 1, 0, True),
        ("simple_majority", 2, 2, 0, False),
        ("simple_majority", 0, 0, 0, False),
        # Abstentions do not count against a majority or unanimity
        ("simple_majority", 2, 1, 2, True),
        ("simple_majority", 0, 0, 3, False),
        ("unanimous", 2, 0, 1, True),
        ("unanimous", 5, 0, 0, True),
        ("unanimous", 4, 1, 0, False),
        ("unanimous", 0, 0, 2, False),
        # Two-thirds is measured against every cast vote
        ("two_thirds", 2, 1, 0, False),
        ("two_thirds", 67, 33, 0, True),
        ("two_thirds", 3, 1, 0, True),
        ("two_thirds", 3, 0, 2, False),
    ],
)
def test_threshold_met(voting_type, approve, reject, abstain, expected):
    assert threshold_met(voting_type, approve, reject, abstain) is expected


def test_threshold_rejects_unknown_voting_type():
    with pytest.raises(ValueError):
        threshold_met("plurality", 1, 0)


def test_transition_table():
    assert can_transition_to(Resolution(status="draft"), "open") == (True, [])
    ok, errors = can_transition_to(Resolution(status="draft"), "passed")
    assert ok is False
    assert errors == ["Cannot transition from 'draft' to 'passed'"]
    assert can_transition_to(Resolution(status="passed"), "open")[0] is False


def test_decode_signature_image():
    assert decode_signature_image(PNG_DATA_URL) == PNG
    with pytest.raises(ValueError):
        decode_signature_image("data:image/jpeg;base64,AAAA")
    with pytest.raises(ValueError):
        decode_signature_image("data:image/png;base64," + base64.b64encode(b"GIF89a").decode())
    with pytest.raises(ValueError):
        decode_signature_image("data:image/png;base64,!!notbase64!!")


@pytest.fixture()
def resolution_id(client, login):
    headers = login("sec@acme.test")
    meeting = client.post(
        "/api/meetings",
        json={"title": "Board Meeting", "meeting_date": (datetime.utcnow() + timedelta(days=2)).isoformat()},
        headers=headers,
    ).json["meeting"]
    r = client.post(
        "/api/resolutions",
        json={"meeting_id": meeting["id"], "title": "Approve FY budget", "quorum_required": 3},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["resolution"]["status"] == "draft"
    assert r.json["resolution"]["voting_type"] == "simple_majority"
    return r.json["resolution"]["id"]


def test_draft_editing_rules(client, login, resolution_id):
    headers = login("sec@acme.test")

    r = client.patch(f"/api/resolutions/{resolution_id}", json={"status": "passed"}, headers=headers)
    assert r.status_code == 400

    r = client.patch(f"/api/resolutions/{resolution_id}", json={"voting_type": "two_thirds"}, headers=headers)
    assert r.status_code == 200
    assert r.json["resolution"]["voting_type"] == "two_thirds"

    # Voting is not possible on drafts
    r = client.post(f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": 1, "vote": "approve"}, headers=headers)
    assert r.status_code == 400

    assert client.post(f"/api/resolutions/{resolution_id}/open", headers=headers).status_code == 200
    r = client.patch(f"/api/resolutions/{resolution_id}", json={"title": "Too late"}, headers=headers)
    assert r.status_code == 400
    assert client.delete(f"/api/resolutions/{resolution_id}", headers=headers).status_code == 400
    # Already open
    assert client.post(f"/api/resolutions/{resolution_id}/open", headers=headers).status_code == 400


def test_vote_and_close_passes(client, login, resolution_id, member_ids):
    headers = login("sec@acme.test")
    assert client.post(f"/api/resolutions/{resolution_id}/open", headers=headers).status_code == 200

    dana, eli, fola = member_ids["Dana Director"], member_ids["Eli Director"], member_ids["Fola Observer"]

    # The secretary manages resolutions and may record votes for any member
    r = client.post(
        f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": fola, "vote": "reject"}, headers=headers
    )
    assert r.status_code == 200

    client.post("/auth/logout")
    headers = login("dir1@acme.test")
    r = client.post(
        f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": dana, "vote": "reject"}, headers=headers
    )
    assert r.status_code == 200
    # Changing a vote replaces it
    r = client.post(
        f"/api/resolutions/{resolution_id}/vote",
        json={"board_member_id": dana, "vote": "approve", "comment": "Reviewed the numbers"},
        headers=headers,
    )
    assert r.json["summary"]["total"] == 2
    assert r.json["summary"]["approve"] == 1

    # Directors cannot vote for another seat
    r = client.post(
        f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": eli, "vote": "reject"}, headers=headers
    )
    assert r.status_code == 403

    client.post("/auth/logout")
    headers = login("dir2@acme.test")
    r = client.post(
        f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": eli, "vote": "approve"}, headers=headers
    )
    assert r.json["summary"] == {
        "approve": 2,
        "reject": 1,
        "abstain": 0,
        "total": 3,
        "approval_percentage": 66.7,
        "quorum_required": 3,
        "quorum_met": True,
    }

    client.post("/auth/logout")
    headers = login("sec@acme.test")
    r = client.post(f"/api/resolutions/{resolution_id}/close", headers=headers)
    assert r.status_code == 200
    assert r.json["summary"]["result"] == "passed"
    assert r.json["resolution"]["status"] == "passed"
    assert r.json["resolution"]["closed_at"] is not None
    assert len(r.json["resolution"]["votes"]) == 3

    # Votes are final once closed
    r = client.delete(f"/api/resolutions/{resolution_id}/vote?board_member_id={fola}", headers=headers)
    assert r.status_code == 400

    r = client.get(f"/api/audit?entity_type=Resolution&entity_id={resolution_id}", headers=headers)
    actions = {e["action"] for e in r.json["events"]}
    assert {"resolution.create", "resolution.open", "resolution.closed", "resolution.outcome", "vote.cast"} <= actions


def test_close_without_votes_fails(client, login, resolution_id):
    headers = login("sec@acme.test")
    client.post(f"/api/resolutions/{resolution_id}/open", headers=headers)
    r = client.post(f"/api/resolutions/{resolution_id}/close", headers=headers)
    assert r.status_code == 200
    assert r.json["summary"]["result"] == "failed"
    assert r.json["summary"]["quorum_met"] is False


def test_unanimous_passes_with_an_abstention(client, login, resolution_id, member_ids):
    headers = login("sec@acme.test")
    client.patch(f"/api/resolutions/{resolution_id}", json={"voting_type": "unanimous"}, headers=headers)
    client.post(f"/api/resolutions/{resolution_id}/open", headers=headers)

    ballots = {"Dana Director": "approve", "Eli Director": "approve", "Fola Observer": "abstain"}
    for name, vote in ballots.items():
        r = client.post(
            f"/api/resolutions/{resolution_id}/vote",
            json={"board_member_id": member_ids[name], "vote": vote},
            headers=headers,
        )
        assert r.status_code == 200

    r = client.post(f"/api/resolutions/{resolution_id}/close", headers=headers)
    assert r.json["summary"]["result"] == "passed"
    assert r.json["resolution"]["status"] == "passed"


def test_retract_vote(client, login, resolution_id, member_ids):
    headers = login("sec@acme.test")
    client.post(f"/api/resolutions/{resolution_id}/open", headers=headers)
    fola = member_ids["Fola Observer"]

    client.post(f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": fola, "vote": "abstain"}, headers=headers)
    r = client.delete(f"/api/resolutions/{resolution_id}/vote?board_member_id={fola}", headers=headers)
    assert r.status_code == 200
    assert r.json["summary"]["total"] == 0

    r = client.delete(f"/api/resolutions/{resolution_id}/vote?board_member_id={fola}", headers=headers)
    assert r.status_code == 404


def test_inactive_members_cannot_vote(client, login, resolution_id, member_ids):
    headers = login("sec@acme.test")
    fola = member_ids["Fola Observer"]
    client.patch(f"/api/board-members/{fola}", json={"status": "inactive"}, headers=headers)
    client.post(f"/api/resolutions/{resolution_id}/open", headers=headers)

    r = client.post(f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": fola, "vote": "approve"}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Only active board members can vote."


def test_signatures(client, login, resolution_id, member_ids, tmp_path):
    headers = login("sec@acme.test")
    dana = member_ids["Dana Director"]
    signature = {"board_member_id": dana, "signature_type": "drawn", "signature_data": PNG_DATA_URL}

    # Not yet passed
    r = client.post(f"/api/resolutions/{resolution_id}/signatures", json=signature, headers=headers)
    assert r.status_code == 400

    client.post(f"/api/resolutions/{resolution_id}/open", headers=headers)
    client.post(f"/api/resolutions/{resolution_id}/vote", json={"board_member_id": dana, "vote": "approve"}, headers=headers)
    assert client.post(f"/api/resolutions/{resolution_id}/close", headers=headers).json["summary"]["result"] == "passed"

    r = client.post(
        f"/api/resolutions/{resolution_id}/signatures",
        json={"board_member_id": dana, "signature_type": "typed", "signature_data": PNG_DATA_URL},
        headers=headers,
    )
    assert r.status_code == 400
    assert "typed_name is required for typed signatures." in r.json["details"]

    r = client.post(
        f"/api/resolutions/{resolution_id}/signatures",
        json=signature,
        headers={**headers, "User-Agent": "pytest-browser"},
    )
    assert r.status_code == 201
    sig = r.json["signature"]
    assert sig["user_agent"] == "pytest-browser"
    assert sig["size_bytes"] == len(PNG)
    stored = list((tmp_path / "storage" / "signatures").rglob("*.png"))
    assert len(stored) == 1
    assert stored[0].read_bytes() == PNG

    r = client.post(f"/api/resolutions/{resolution_id}/signatures", json=signature, headers=headers)
    assert r.status_code == 409

    r = client.get(f"/api/resolutions/{resolution_id}/signatures")
    assert [s["board_member_id"] for s in r.json["signatures"]] == [dana]


def test_resolutions_are_scoped_to_organization(client, login, resolution_id):
    client.post("/auth/logout")
    headers = login("admin@other.test")
    assert client.get(f"/api/resolutions/{resolution_id}").status_code == 404
    assert client.post(f"/api/resolutions/{resolution_id}/open", headers=headers).status_code == 404
    assert client.get("/api/resolutions").json["total"] == 0
