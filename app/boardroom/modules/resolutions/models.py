from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.boardroom.models import Base


class Resolution(Base):
    __tablename__ = "resolutions"
    __table_args__ = (
        Index("idx_resolutions_org_status", "organization_id", "status"),
        Index("idx_resolutions_meeting", "meeting_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    meeting_id: Mapped[int] = mapped_column(ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    voting_type: Mapped[str] = mapped_column(String(32), nullable=False, default="simple_majority")
    quorum_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # draft -> open -> closed -> passed | failed
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    votes: Mapped[list["Vote"]] = relationship(
        "Vote", back_populates="resolution", cascade="all, delete-orphan", lazy="selectin", order_by="Vote.id"
    )
    signatures: Mapped[list["Signature"]] = relationship(
        "Signature",
        back_populates="resolution",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Signature.signed_at",
    )
    meeting = relationship("Meeting", lazy="joined")


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("resolution_id", "board_member_id", name="uq_votes_resolution_member"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resolution_id: Mapped[int] = mapped_column(ForeignKey("resolutions.id", ondelete="CASCADE"), nullable=False)
    board_member_id: Mapped[int] = mapped_column(ForeignKey("board_members.id", ondelete="CASCADE"), nullable=False)
    vote: Mapped[str] = mapped_column(String(16), nullable=False)  # approve, reject, abstain
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    voted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    recorded_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    resolution: Mapped["Resolution"] = relationship("Resolution", back_populates="votes")
    board_member = relationship("BoardMember", lazy="joined")


class Signature(Base):
    __tablename__ = "signatures"
    __table_args__ = (UniqueConstraint("resolution_id", "board_member_id", name="uq_signatures_resolution_member"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resolution_id: Mapped[int] = mapped_column(ForeignKey("resolutions.id", ondelete="CASCADE"), nullable=False)
    board_member_id: Mapped[int] = mapped_column(ForeignKey("board_members.id", ondelete="CASCADE"), nullable=False)

    signature_type: Mapped[str] = mapped_column(String(16), nullable=False)  # drawn, typed
    typed_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Bitmap is kept in storage; the row holds its key and digest.
    storage_key: Mapped[str] = mapped_column(Text, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    signed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    resolution: Mapped["Resolution"] = relationship("Resolution", back_populates="signatures")
    board_member = relationship("BoardMember", lazy="joined")
