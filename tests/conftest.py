from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app.boardroom import auth as auth_module
from app.boardroom import create_app
from app.boardroom.db import get_engine, session_scope
from app.boardroom.models import Base, BoardMember, Organization, User
from scripts.init_db import seed_rbac, seed_regulations

PASSWORD = "pw"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    # Local storage writes under ./storage
    monkeypatch.chdir(tmp_path)
    auth_module._login_attempts.clear()

    app = create_app()

    Base.metadata.create_all(bind=get_engine(app))

    with session_scope(app) as s:
        roles = seed_rbac(s)
        seed_regulations(s)

        acme = Organization(company_name="Acme Holdings", slug="acme", is_public=True, allow_member_directory=True)
        other = Organization(company_name="Other Corp", slug="other-corp")
        s.add_all([acme, other])
        s.flush()

        def _user(email, role, org, name):
            u = User(
                email=email,
                password_hash=generate_password_hash(PASSWORD),
                full_name=name,
                is_active=True,
                organization_id=org.id if org else None,
            )
            u.roles.append(roles[role])
            s.add(u)
            return u

        _user("admin@acme.test", "admin", acme, "Ada Admin")
        _user("sec@acme.test", "secretary", acme, "Sam Secretary")
        d1 = _user("dir1@acme.test", "director", acme, "Dana Director")
        d2 = _user("dir2@acme.test", "director", acme, "Eli Director")
        _user("admin@other.test", "admin", other, "Olu Other")
        _user("pro@talent.test", "professional", None, "Pat Professional")
        s.flush()

        s.add_all(
            [
                BoardMember(
                    organization_id=acme.id,
                    user_id=d1.id,
                    full_name="Dana Director",
                    email="dir1@acme.test",
                    position="chairman",
                    status="active",
                    start_date=date(2022, 1, 1),
                    display_order=0,
                ),
                BoardMember(
                    organization_id=acme.id,
                    user_id=d2.id,
                    full_name="Eli Director",
                    email="dir2@acme.test",
                    position="director",
                    department="Finance",
                    status="active",
                    start_date=date(2022, 6, 1),
                    display_order=1,
                ),
                BoardMember(
                    organization_id=acme.id,
                    full_name="Fola Observer",
                    position="observer",
                    status="active",
                    start_date=date(2023, 1, 1),
                    display_order=2,
                    show_on_public_profile=False,
                ),
            ]
        )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(client):
    """Sign in and return headers carrying the session's CSRF token."""

    def _login(email: str, password: str = PASSWORD) -> dict:
        r = client.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.json
        return {"X-CSRF-Token": r.json["csrf_token"]}

    return _login


@pytest.fixture()
def member_ids(app) -> dict[str, int]:
    with session_scope(app) as s:
        return {m.full_name: m.id for m in s.query(BoardMember).all()}
