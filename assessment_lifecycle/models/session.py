"""Response session model - one participant's attempt at a group's questionnaire."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_lifecycle.models.base import BaseModel, JSONType, utcnow

if TYPE_CHECKING:
    from assessment_lifecycle.models.response import QuestionResponse
    from assessment_lifecycle.models.review import JuryScore, ReviewComment


class ResponseSession(BaseModel):
    """Participant session for a (user, group) pair.

    The workflow status is not stored here; it lives in the status ledger under
    ``(session, id)``. The review fields are a projection written by the review
    workflow only.
    """

    __tablename__ = "response_sessions"

    # External references
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Progress and navigation
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_question_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    auto_save_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Lifecycle timestamps
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_auto_save_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # Review projection
    reviewer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    decision: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    overall_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    deliberation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    validation_checklist: Mapped[Optional[List[str]]] = mapped_column(
        JSONType, nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    responses: Mapped[List["QuestionResponse"]] = relationship(
        "QuestionResponse", back_populates="session", cascade="all, delete-orphan"
    )
    review_comments: Mapped[List["ReviewComment"]] = relationship(
        "ReviewComment", back_populates="session", cascade="all, delete-orphan"
    )
    jury_scores: Mapped[List["JuryScore"]] = relationship(
        "JuryScore", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_response_session_user_group"),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_response_session_valid_progress",
        ),
    )

    @property
    def has_review(self) -> bool:
        """Whether the review projection carries a recorded review."""
        return bool(self.reviewer_id or self.stage or self.decision)

    def __repr__(self) -> str:
        return f"<ResponseSession(user={self.user_id}, group={self.group_id}, progress={self.progress_percentage}%)>"
