"""Append-only status ledger model."""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from assessment_lifecycle.models.base import Base, JSONType, utcnow


class StatusEntry(Base):
    """One immutable status transition of a session or review.

    For a fixed (entity_type, entity_id) the versions are 1..N without gaps and the
    highest version is the current status. Rows are never updated or deleted.
    """

    __tablename__ = "status_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    changed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "version", name="uq_status_entry_version"
        ),
        CheckConstraint("version >= 1", name="ck_status_entry_positive_version"),
        CheckConstraint(
            "entity_type IN ('session', 'review')",
            name="ck_status_entry_valid_entity_type",
        ),
        Index("ix_status_entries_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<StatusEntry({self.entity_type}:{self.entity_id} v{self.version} {self.previous_status}->{self.status})>"
