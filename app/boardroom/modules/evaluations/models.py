from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.boardroom.models import Base


class EvaluationTemplate(Base):
    __tablename__ = "evaluation_templates"
    __table_args__ = (Index("idx_evaluation_templates_org", "organization_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_type: Mapped[str] = mapped_column(String(32), nullable=False)  # self_assessment, peer_review, board_evaluation
    # [{"id", "question", "type", "options"?, "required"}]
    questions: Mapped[list] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


class Evaluation(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        Index("idx_evaluations_org_status", "organization_id", "status"),
        Index("idx_evaluations_subject", "subject_member_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[int] = mapped_column(ForeignKey("evaluation_templates.id", ondelete="RESTRICT"), nullable=False)

    evaluator_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Board seat of the evaluator when the user is linked to one.
    evaluator_member_id: Mapped[int | None] = mapped_column(
        ForeignKey("board_members.id", ondelete="SET NULL"), nullable=True
    )
    subject_member_id: Mapped[int | None] = mapped_column(
        ForeignKey("board_members.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")  # draft, submitted
    responses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    template: Mapped["EvaluationTemplate"] = relationship("EvaluationTemplate", lazy="joined")
    subject = relationship("BoardMember", foreign_keys=[subject_member_id], lazy="joined")
    evaluator_member = relationship("BoardMember", foreign_keys=[evaluator_member_id], lazy="joined")
