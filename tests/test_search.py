from datetime import datetime, timedelta

from app.boardroom.db import session_scope
from app.boardroom.models import Organization
from app.boardroom.modules.search.service import search_organization


def _seed_budget_records(client, headers):
    mid = client.post(
        "/api/meetings",
        json={
            "title": "Budget Review",
            "description": "FY budget deep dive",
            "meeting_date": (datetime.utcnow() + timedelta(days=5)).isoformat(),
        },
        headers=headers,
    ).json["meeting"]["id"]
    r = client.post("/api/resolutions", json={"meeting_id": mid, "title": "Approve the 2026 budget"}, headers=headers)
    assert r.status_code == 201


def test_search_across_kinds(client, login):
    headers = login("sec@acme.test")
    _seed_budget_records(client, headers)
    client.post("/auth/logout")

    login("dir1@acme.test")
    r = client.get("/api/search?q=BUDGET")
    assert r.status_code == 200
    results = r.json["results"]
    assert [m["title"] for m in results["meetings"]] == ["Budget Review"]
    assert [res["title"] for res in results["resolutions"]] == ["Approve the 2026 budget"]
    assert results["documents"] == []
    assert results["board_members"] == []
    assert r.json["total"] == 2

    r = client.get("/api/search?q=finance")
    assert [m["full_name"] for m in r.json["results"]["board_members"]] == ["Eli Director"]


def test_search_needs_a_real_query(client, login):
    login("dir1@acme.test")
    r = client.get("/api/search?q=a")
    assert r.status_code == 400
    assert r.json["details"] == ["Search query must be at least 2 characters."]

    # LIKE wildcards are matched literally
    assert client.get("/api/search?q=%25%25").json["total"] == 0
    assert client.get("/api/search?q=__").json["total"] == 0


def test_search_is_scoped_to_organization(client, login):
    headers = login("sec@acme.test")
    _seed_budget_records(client, headers)
    client.post("/auth/logout")

    login("admin@other.test")
    assert client.get("/api/search?q=budget").json["total"] == 0

    client.post("/auth/logout")
    login("pro@talent.test")
    assert client.get("/api/search?q=budget").status_code == 403


def test_search_limits_kinds_and_results(app):
    with session_scope(app) as s:
        org = s.query(Organization).filter(Organization.slug == "acme").one()
        results = search_organization(s, org.id, "director", kinds=["board_members"])
        assert list(results) == ["board_members"]
        assert [m["full_name"] for m in results["board_members"]] == ["Dana Director", "Eli Director"]

        results = search_organization(s, org.id, "director", kinds=["board_members"], limit=1)
        assert len(results["board_members"]) == 1
