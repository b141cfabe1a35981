import os
import sys
from datetime import date
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.boardroom.models import Permission, Role, User  # noqa: E402
from app.boardroom.modules.compliance.models import ComplianceRegulation  # noqa: E402
from app.boardroom.modules.organizations.service import create_organization  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


PERMISSIONS: list[tuple[str, str]] = [
    ("admin.view", "Admin: system status"),
    ("audit.view", "Audit: view trail"),
    ("organization.view", "Organization: view"),
    ("organization.edit", "Organization: edit profile"),
    ("members.view", "Board members: view"),
    ("members.edit", "Board members: create/edit/delete"),
    ("meetings.view", "Meetings: view"),
    ("meetings.edit", "Meetings: create/edit, agenda, attendees, action items"),
    ("resolutions.view", "Resolutions: view"),
    ("resolutions.create", "Resolutions: draft"),
    ("resolutions.manage", "Resolutions: open/close voting, act for any member"),
    ("resolutions.vote", "Resolutions: vote"),
    ("resolutions.sign", "Resolutions: sign"),
    ("documents.view", "Documents: view/download"),
    ("documents.upload", "Documents: upload/new version"),
    ("documents.edit", "Documents: edit/delete"),
    ("documents.annotate", "Documents: annotate"),
    ("compliance.view", "Compliance: view"),
    ("compliance.edit", "Compliance: checklists and calendar"),
    ("evaluations.view", "Evaluations: view templates and own evaluations"),
    ("evaluations.submit", "Evaluations: fill in and submit"),
    ("evaluations.manage", "Evaluations: templates, all evaluations, report"),
    ("marketplace.view", "Marketplace: browse positions and talent"),
    ("marketplace.post", "Marketplace: post positions, review applications"),
    ("marketplace.apply", "Marketplace: apply to positions"),
    ("profile.edit", "Marketplace: edit own professional profile"),
]

_ALL = [key for key, _name in PERMISSIONS]

ROLE_PERMISSIONS: dict[str, tuple[str, list[str]]] = {
    "admin": ("Administrator", _ALL),
    "secretary": (
        "Company Secretary",
        [
            "audit.view",
            "organization.view",
            "organization.edit",
            "members.view",
            "members.edit",
            "meetings.view",
            "meetings.edit",
            "resolutions.view",
            "resolutions.create",
            "resolutions.manage",
            "resolutions.vote",
            "resolutions.sign",
            "documents.view",
            "documents.upload",
            "documents.edit",
            "documents.annotate",
            "compliance.view",
            "compliance.edit",
            "evaluations.view",
            "evaluations.submit",
            "evaluations.manage",
            "marketplace.view",
            "marketplace.post",
        ],
    ),
    "director": (
        "Director",
        [
            "organization.view",
            "members.view",
            "meetings.view",
            "resolutions.view",
            "resolutions.vote",
            "resolutions.sign",
            "documents.view",
            "documents.annotate",
            "compliance.view",
            "evaluations.view",
            "evaluations.submit",
            "marketplace.view",
        ],
    ),
    "professional": (
        "Board Professional",
        ["marketplace.view", "marketplace.apply", "profile.edit"],
    ),
}

REGULATIONS: list[dict] = [
    {
        "country": "Nigeria",
        "category": "corporate_governance",
        "title": "Companies and Allied Matters Act 2020",
        "reference_code": "CAMA 2020",
        "description": "Principal law on incorporation, management and governance of companies in Nigeria.",
        "key_requirements": [
            "Hold the annual general meeting within the statutory period",
            "File annual returns with the Corporate Affairs Commission",
            "Maintain a register of directors and persons with significant control",
            "Appoint a company secretary for public companies",
        ],
        "effective_date": date(2020, 8, 7),
        "source_url": "https://www.cac.gov.ng",
    },
    {
        "country": "Nigeria",
        "category": "corporate_governance",
        "title": "Nigerian Code of Corporate Governance 2018",
        "reference_code": "NCCG 2018",
        "description": "Principles on board structure, independence, evaluation and disclosure.",
        "key_requirements": [
            "Separate the roles of chairman and chief executive",
            "Conduct an annual board evaluation",
            "Report on application of the code in the annual report",
        ],
        "effective_date": date(2019, 1, 1),
        "source_url": "https://www.financialreportingcouncil.gov.ng",
    },
    {
        "country": "Nigeria",
        "category": "data_protection",
        "title": "Nigeria Data Protection Act 2023",
        "reference_code": "NDPA 2023",
        "description": "Framework for processing personal data of data subjects in Nigeria.",
        "key_requirements": [
            "Designate a data protection officer",
            "Maintain records of processing activities",
            "Notify breaches to the Commission within 72 hours",
        ],
        "effective_date": date(2023, 6, 12),
        "source_url": "https://ndpc.gov.ng",
    },
    {
        "country": "Kenya",
        "category": "corporate_governance",
        "title": "Companies Act 2015",
        "reference_code": "No. 17 of 2015",
        "description": "Governs formation, administration and directors' duties of Kenyan companies.",
        "key_requirements": [
            "File annual returns with the Registrar",
            "Prepare and circulate audited financial statements",
            "Keep minutes of all board and general meetings for ten years",
        ],
        "effective_date": date(2015, 9, 15),
        "source_url": "https://brs.go.ke",
    },
    {
        "country": "Kenya",
        "category": "data_protection",
        "title": "Data Protection Act 2019",
        "reference_code": "DPA 2019",
        "description": "Regulates processing of personal data and establishes the Data Commissioner.",
        "key_requirements": [
            "Register as a data controller or processor",
            "Carry out data protection impact assessments for high-risk processing",
        ],
        "effective_date": date(2019, 11, 25),
        "source_url": "https://www.odpc.go.ke",
    },
    {
        "country": "South Africa",
        "category": "corporate_governance",
        "title": "King IV Report on Corporate Governance",
        "reference_code": "King IV",
        "description": "Outcome-based governance code applied on an apply-and-explain basis.",
        "key_requirements": [
            "Disclose application of the principles in an apply-and-explain register",
            "Establish audit, nominations, remuneration and social and ethics committees",
            "Evaluate the performance of the board and its committees at least every two years",
        ],
        "effective_date": date(2017, 4, 1),
        "source_url": "https://www.iodsa.co.za",
    },
    {
        "country": "South Africa",
        "category": "data_protection",
        "title": "Protection of Personal Information Act",
        "reference_code": "POPIA",
        "description": "Conditions for lawful processing of personal information.",
        "key_requirements": [
            "Register an information officer with the Information Regulator",
            "Publish a PAIA manual",
            "Notify security compromises to the Regulator and data subjects",
        ],
        "effective_date": date(2021, 7, 1),
        "source_url": "https://inforegulator.org.za",
    },
    {
        "country": "Ghana",
        "category": "corporate_governance",
        "title": "Companies Act 2019",
        "reference_code": "Act 992",
        "description": "Regulates companies, directors' duties and beneficial ownership disclosure in Ghana.",
        "key_requirements": [
            "File annual returns with the Office of the Registrar of Companies",
            "Disclose beneficial owners",
            "Hold an annual general meeting each calendar year",
        ],
        "effective_date": date(2019, 8, 2),
        "source_url": "https://orc.gov.gh",
    },
]


def seed_rbac(s: Session) -> dict[str, Role]:
    """Create missing permissions and roles and top up role grants. Returns roles by key."""
    perms: dict[str, Permission] = {p.key: p for p in s.query(Permission).all()}
    for key, name in PERMISSIONS:
        if key not in perms:
            perms[key] = Permission(key=key, name=name)
            s.add(perms[key])

    roles: dict[str, Role] = {r.key: r for r in s.query(Role).all()}
    for key, (name, perm_keys) in ROLE_PERMISSIONS.items():
        role = roles.get(key)
        if role is None:
            role = Role(key=key, name=name)
            s.add(role)
            roles[key] = role
        for perm_key in perm_keys:
            if perms[perm_key] not in role.permissions:
                role.permissions.append(perms[perm_key])
    s.flush()
    return roles


def seed_regulations(s: Session) -> int:
    existing = {(r.country, r.title) for r in s.query(ComplianceRegulation).all()}
    added = 0
    for data in REGULATIONS:
        if (data["country"], data["title"]) in existing:
            continue
        s.add(ComplianceRegulation(**data))
        added += 1
    return added


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/regulations and an admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@boardroom.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    org_name = (os.environ.get("ADMIN_ORGANIZATION") or "Boardroom Demo").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///boardroom.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        roles = seed_rbac(s)
        added = seed_regulations(s)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            org = create_organization(s, {"company_name": org_name})
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                full_name="Administrator",
                is_active=True,
                organization_id=org.id,
            )
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

    print("Initialized database (seed_only).")
    print(f"Regulations added: {added}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
