"""Review annotation models - per-question comments and jury scores."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_lifecycle.models.base import BaseModel

if TYPE_CHECKING:
    from assessment_lifecycle.models.session import ResponseSession


class ReviewComment(BaseModel):
    """Reviewer comment attached to a session and question."""

    __tablename__ = "review_comments"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("response_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    is_critical: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Revision tracking
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    revision_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    session: Mapped["ResponseSession"] = relationship(
        "ResponseSession", back_populates="review_comments"
    )

    def __repr__(self) -> str:
        return f"<ReviewComment(session={self.session_id}, question={self.question_id}, critical={self.is_critical})>"


class JuryScore(BaseModel):
    """Jury score for one question of a session."""

    __tablename__ = "jury_scores"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("response_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    session: Mapped["ResponseSession"] = relationship(
        "ResponseSession", back_populates="jury_scores"
    )

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_jury_score_session_question"),
        CheckConstraint("score >= 0 AND score <= 10", name="ck_jury_score_valid_range"),
    )

    def __repr__(self) -> str:
        return f"<JuryScore(session={self.session_id}, question={self.question_id}, score={self.score})>"
