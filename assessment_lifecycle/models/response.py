"""Question response model - one auto-saved answer per (session, question)."""
import uuid
from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_lifecycle.models.base import BaseModel, JSONType, utcnow

if TYPE_CHECKING:
    from assessment_lifecycle.models.session import ResponseSession


class QuestionResponse(BaseModel):
    """Answer to a single question within a session.

    Exactly one of the value slots is meaningfully populated, chosen by the
    question's input type (see ``services.response_values``).
    """

    __tablename__ = "question_responses"

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("response_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_question_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Value slots
    text_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    numeric_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    boolean_value: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    array_value: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)

    # Answer state
    is_draft: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_skipped: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Auto-save bookkeeping
    auto_save_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    finalized_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    session: Mapped["ResponseSession"] = relationship(
        "ResponseSession", back_populates="responses"
    )

    __table_args__ = (
        UniqueConstraint(
            "session_id", "question_id", name="uq_question_response_session_question"
        ),
    )

    def __repr__(self) -> str:
        return f"<QuestionResponse(session={self.session_id}, question={self.question_id}, version={self.auto_save_version})>"
