from app.boardroom.db import session_scope
from app.boardroom.models import AuditEvent
from app.boardroom.modules.organizations.service import create_organization, slugify, validate_organization_payload


def test_slugify():
    assert slugify("Acme Holdings Plc.") == "acme-holdings-plc"
    assert slugify("  ") == "organization"


def test_create_organization_picks_free_slug(app):
    with session_scope(app) as s:
        org = create_organization(s, {"company_name": "Acme", "is_public": "true", "tagline": " Boards done right "})
        s.flush()
        assert org.slug == "acme-2"
        assert org.is_public is True
        assert org.tagline == "Boards done right"
        event = s.query(AuditEvent).filter(AuditEvent.action == "organization.create").one()
        assert event.organization_id == org.id
        assert event.actor_user_id is None


def test_validate_organization_payload():
    errors = validate_organization_payload(
        {
            "company_name": "A",
            "slug": "Bad Slug",
            "brand_color": "blue",
            "website": "not-a-url",
            "year_founded": 1700,
        }
    )
    assert "Company name must be at least 2 characters." in errors
    assert "Invalid slug format." in errors
    assert "Invalid color format." in errors
    assert "website must be a valid URL." in errors
    assert any(e.startswith("year_founded") for e in errors)

    assert validate_organization_payload({"tagline": "Governance done right"}, partial=True) == []


def test_get_and_update_organization(client, login):
    headers = login("sec@acme.test")

    r = client.get("/api/organization")
    assert r.status_code == 200
    assert r.json["organization"]["slug"] == "acme"

    r = client.patch(
        "/api/organization",
        json={"tagline": "Stewardship first", "brand_color": "#112233", "country": "Nigeria"},
        headers=headers,
    )
    assert r.status_code == 200
    org = r.json["organization"]
    assert org["tagline"] == "Stewardship first"
    assert org["brand_color"] == "#112233"

    r = client.get("/api/audit?action=organization.edit", headers=headers)
    assert r.json["total"] == 1
    assert "tagline" in r.json["events"][0]["metadata"]["changes"]


def test_update_rejects_invalid_payload_and_taken_slug(client, login):
    headers = login("admin@acme.test")

    r = client.patch("/api/organization", json={"brand_color": "red"}, headers=headers)
    assert r.status_code == 400
    assert r.json["details"] == ["Invalid color format."]

    r = client.patch("/api/organization", json={"slug": "other-corp"}, headers=headers)
    assert r.status_code == 409


def test_directors_cannot_edit_organization(client, login):
    headers = login("dir1@acme.test")
    assert client.get("/api/organization").status_code == 200
    r = client.patch("/api/organization", json={"tagline": "x"}, headers=headers)
    assert r.status_code == 403


def test_public_profile(client):
    r = client.get("/public/org/acme")
    assert r.status_code == 200
    org = r.json["organization"]
    assert "registration_number" not in org
    names = [m["full_name"] for m in org["board_members"]]
    # Hidden members are not listed
    assert names == ["Dana Director", "Eli Director"]

    # Private organizations are not exposed
    assert client.get("/public/org/other-corp").status_code == 404
    assert client.get("/public/org/missing").status_code == 404
