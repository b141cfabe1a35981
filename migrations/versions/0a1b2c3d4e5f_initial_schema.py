"""initial boardroom schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _fk(table: str, ondelete: str) -> sa.ForeignKey:
    return sa.ForeignKey(f"{table}.id", ondelete=ondelete)


def upgrade() -> None:
    """Create platform, governance, compliance, evaluation and marketplace tables."""
    # Platform
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("tagline", sa.String(200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.String(512), nullable=True),
        sa.Column("brand_color", sa.String(7), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("industry", sa.String(128), nullable=True),
        sa.Column("company_size", sa.String(64), nullable=True),
        sa.Column("country", sa.String(64), nullable=True),
        sa.Column("contact_email", sa.String(320), nullable=True),
        sa.Column("contact_phone", sa.String(32), nullable=True),
        sa.Column("headquarters_address", sa.String(500), nullable=True),
        sa.Column("registration_number", sa.String(50), nullable=True),
        sa.Column("year_founded", sa.Integer(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allow_member_directory", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), _fk("users", "CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), _fk("roles", "CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), _fk("roles", "CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), _fk("permissions", "CASCADE"), primary_key=True),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "SET NULL"), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )
    op.create_index("idx_audit_events_org_created", "audit_events", ["organization_id", "created_at"])

    # Board members and meetings
    op.create_table(
        "board_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("avatar_url", sa.String(512), nullable=True),
        sa.Column("position", sa.String(32), nullable=False),
        sa.Column("custom_position", sa.String(100), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("linkedin_url", sa.String(512), nullable=True),
        sa.Column("qualifications", sa.JSON(), nullable=True),
        sa.Column("committees", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("term_length", sa.Integer(), nullable=True),
        sa.Column("is_independent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("show_on_public_profile", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("idx_board_members_org_order", "board_members", ["organization_id", "display_order"])
    op.create_index("idx_board_members_org_status", "board_members", ["organization_id", "status"])

    op.create_table(
        "meetings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("meeting_type", sa.String(16), nullable=False, server_default="regular"),
        sa.Column("meeting_date", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="upcoming"),
        sa.Column("agenda", sa.Text(), nullable=True),
        sa.Column("minutes", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column("created_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
    )
    op.create_index("idx_meetings_org_date", "meetings", ["organization_id", "meeting_date"])
    op.create_index("idx_meetings_org_status", "meetings", ["organization_id", "status"])

    op.create_table(
        "meeting_attendees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("meeting_id", sa.Integer(), _fk("meetings", "CASCADE"), nullable=False),
        sa.Column("board_member_id", sa.Integer(), _fk("board_members", "CASCADE"), nullable=False),
        sa.Column("attendance_status", sa.String(16), nullable=False, server_default="invited"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("meeting_id", "board_member_id", name="uq_meeting_attendees_member"),
    )
    op.create_table(
        "action_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("meeting_id", sa.Integer(), _fk("meetings", "CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("assigned_to_member_id", sa.Integer(), _fk("board_members", "SET NULL"), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    # Resolutions
    op.create_table(
        "resolutions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("meeting_id", sa.Integer(), _fk("meetings", "CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("voting_type", sa.String(32), nullable=False, server_default="simple_majority"),
        sa.Column("quorum_required", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.Column("created_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
    )
    op.create_index("idx_resolutions_org_status", "resolutions", ["organization_id", "status"])
    op.create_index("idx_resolutions_meeting", "resolutions", ["meeting_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resolution_id", sa.Integer(), _fk("resolutions", "CASCADE"), nullable=False),
        sa.Column("board_member_id", sa.Integer(), _fk("board_members", "CASCADE"), nullable=False),
        sa.Column("vote", sa.String(16), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("voted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("recorded_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
        sa.UniqueConstraint("resolution_id", "board_member_id", name="uq_votes_resolution_member"),
    )
    op.create_table(
        "signatures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resolution_id", sa.Integer(), _fk("resolutions", "CASCADE"), nullable=False),
        sa.Column("board_member_id", sa.Integer(), _fk("board_members", "CASCADE"), nullable=False),
        sa.Column("signature_type", sa.String(16), nullable=False),
        sa.Column("typed_name", sa.String(100), nullable=True),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("signed_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
        sa.UniqueConstraint("resolution_id", "board_member_id", name="uq_signatures_resolution_member"),
    )

    # Documents
    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("meeting_id", sa.Integer(), _fk("meetings", "SET NULL"), nullable=True),
        sa.Column("board_member_id", sa.Integer(), _fk("board_members", "SET NULL"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(32), nullable=True),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_type", sa.String(128), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("page_count", sa.Integer(), nullable=True),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("parent_document_id", sa.Integer(), _fk("documents", "SET NULL"), nullable=True),
        sa.Column("is_library_item", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("library_category", sa.String(100), nullable=True),
        *_timestamps(),
        sa.Column("uploaded_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
    )
    op.create_index("idx_documents_org_created", "documents", ["organization_id", "created_at"])
    op.create_index("idx_documents_meeting", "documents", ["meeting_id"])
    op.create_index("idx_documents_parent", "documents", ["parent_document_id"])

    op.create_table(
        "document_annotations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.Integer(), _fk("documents", "CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), _fk("users", "CASCADE"), nullable=False),
        sa.Column("page_number", sa.Integer(), nullable=False),
        sa.Column("annotation_type", sa.String(16), nullable=False),
        sa.Column("position", sa.JSON(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("color", sa.String(7), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("idx_document_annotations_doc_page", "document_annotations", ["document_id", "page_number"])

    # Agenda (links documents and resolutions)
    op.create_table(
        "agenda_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("meeting_id", sa.Integer(), _fk("meetings", "CASCADE"), nullable=False),
        sa.Column("parent_id", sa.Integer(), _fk("agenda_items", "SET NULL"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_type", sa.String(16), nullable=False, server_default="regular"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("presenter_id", sa.Integer(), _fk("board_members", "SET NULL"), nullable=True),
        sa.Column("document_id", sa.Integer(), _fk("documents", "SET NULL"), nullable=True),
        sa.Column("resolution_id", sa.Integer(), _fk("resolutions", "SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_agenda_items_meeting_order", "agenda_items", ["meeting_id", "order_index"])

    # Compliance
    op.create_table(
        "compliance_regulations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("country", sa.String(64), nullable=False),
        sa.Column("category", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("reference_code", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("key_requirements", sa.JSON(), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("source_url", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("country", "title", name="uq_compliance_regulations_country_title"),
    )
    op.create_index(
        "idx_compliance_regulations_country_category", "compliance_regulations", ["country", "category"]
    )
    op.create_table(
        "compliance_checklists",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("regulation_id", sa.Integer(), _fk("compliance_regulations", "SET NULL"), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(40), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        *_timestamps(),
    )
    op.create_index("idx_compliance_checklists_org_status", "compliance_checklists", ["organization_id", "status"])
    op.create_table(
        "compliance_checklist_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("checklist_id", sa.Integer(), _fk("compliance_checklists", "CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "compliance_calendar_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("regulation_id", sa.Integer(), _fk("compliance_regulations", "SET NULL"), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_type", sa.String(16), nullable=False, server_default="deadline"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="upcoming"),
        *_timestamps(),
    )
    op.create_index("idx_compliance_events_org_due", "compliance_calendar_events", ["organization_id", "due_date"])

    # Evaluations
    op.create_table(
        "evaluation_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("evaluation_type", sa.String(32), nullable=False),
        sa.Column("questions", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.Column("created_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
    )
    op.create_index("idx_evaluation_templates_org", "evaluation_templates", ["organization_id"])
    op.create_table(
        "evaluations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("template_id", sa.Integer(), _fk("evaluation_templates", "RESTRICT"), nullable=False),
        sa.Column("evaluator_user_id", sa.Integer(), _fk("users", "CASCADE"), nullable=False),
        sa.Column("evaluator_member_id", sa.Integer(), _fk("board_members", "SET NULL"), nullable=True),
        sa.Column("subject_member_id", sa.Integer(), _fk("board_members", "SET NULL"), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("responses", sa.JSON(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_evaluations_org_status", "evaluations", ["organization_id", "status"])
    op.create_index("idx_evaluations_subject", "evaluations", ["subject_member_id"])

    # Marketplace
    op.create_table(
        "professional_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), _fk("users", "CASCADE"), nullable=False, unique=True),
        sa.Column("headline", sa.String(200), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("is_marketplace_visible", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("availability_status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("desired_roles", sa.JSON(), nullable=True),
        sa.Column("languages", sa.JSON(), nullable=True),
        sa.Column("compensation_expectations", sa.JSON(), nullable=True),
        sa.Column("mobility_preference", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("social_links", sa.JSON(), nullable=False),
        sa.Column("readiness_score", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index(
        "idx_professional_profiles_visible_score",
        "professional_profiles",
        ["is_marketplace_visible", "readiness_score"],
    )
    op.create_table(
        "professional_experiences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), _fk("professional_profiles", "CASCADE"), nullable=False, index=True),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("experience_type", sa.String(16), nullable=False, server_default="executive"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "professional_skills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), _fk("professional_profiles", "CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("years_experience", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("profile_id", "name", name="uq_professional_skills_profile_name"),
    )
    op.create_table(
        "professional_certifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), _fk("professional_profiles", "CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("issuing_organization", sa.String(200), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("credential_id", sa.String(100), nullable=True),
        sa.Column("credential_url", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "board_positions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), _fk("organizations", "CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("requirements", sa.JSON(), nullable=True),
        sa.Column("is_remunerated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("compensation_details", sa.String(500), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("position_type", sa.String(64), nullable=False, server_default="Non-Executive Director"),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("closing_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.Column("created_by_user_id", sa.Integer(), _fk("users", "SET NULL"), nullable=True),
    )
    op.create_index("idx_board_positions_status", "board_positions", ["status"])
    op.create_index("idx_board_positions_org", "board_positions", ["organization_id"])
    op.create_table(
        "position_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("position_id", sa.Integer(), _fk("board_positions", "CASCADE"), nullable=False, index=True),
        sa.Column("profile_id", sa.Integer(), _fk("professional_profiles", "CASCADE"), nullable=False, index=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="submitted"),
        sa.Column("cover_letter", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("position_id", "profile_id", name="uq_position_applications_position_profile"),
    )


def downgrade() -> None:
    for table in (
        "position_applications",
        "board_positions",
        "professional_certifications",
        "professional_skills",
        "professional_experiences",
        "professional_profiles",
        "evaluations",
        "evaluation_templates",
        "compliance_calendar_events",
        "compliance_checklist_items",
        "compliance_checklists",
        "compliance_regulations",
        "agenda_items",
        "document_annotations",
        "documents",
        "signatures",
        "votes",
        "resolutions",
        "action_items",
        "meeting_attendees",
        "meetings",
        "board_members",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
        "organizations",
    ):
        op.drop_table(table)
