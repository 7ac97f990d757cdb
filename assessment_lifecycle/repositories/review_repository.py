"""Review annotation repositories - comments and jury scores."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.models.review import JuryScore, ReviewComment
from assessment_lifecycle.repositories.base import BaseRepository


class ReviewCommentRepository(BaseRepository[ReviewComment]):
    """Repository for review comments."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ReviewComment)

    async def get_for_session(self, session_id: uuid.UUID) -> List[ReviewComment]:
        query = (
            select(ReviewComment)
            .where(ReviewComment.session_id == session_id)
            .order_by(ReviewComment.created_at, ReviewComment.question_id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_in_session(
        self, session_id: uuid.UUID, comment_id: uuid.UUID
    ) -> Optional[ReviewComment]:
        """Get a comment only if it belongs to the given session."""
        query = select(ReviewComment).where(
            and_(
                ReviewComment.id == comment_id,
                ReviewComment.session_id == session_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def delete_for_session(self, session_id: uuid.UUID) -> int:
        """Delete all comments of a session. Returns rows deleted."""
        result = await self.db.execute(
            delete(ReviewComment).where(ReviewComment.session_id == session_id)
        )
        return result.rowcount

    async def set_resolution_for_open(
        self,
        session_id: uuid.UUID,
        is_resolved: bool,
        resolved_by: Optional[int],
        resolved_at: Optional[datetime],
        revision_notes: Optional[str],
    ) -> int:
        """Update every unresolved comment of a session. Returns rows changed."""
        result = await self.db.execute(
            update(ReviewComment)
            .where(
                and_(
                    ReviewComment.session_id == session_id,
                    ReviewComment.is_resolved.is_(False),
                )
            )
            .values(
                is_resolved=is_resolved,
                resolved_at=resolved_at,
                resolved_by=resolved_by,
                revision_notes=revision_notes,
            )
        )
        return result.rowcount


class JuryScoreRepository(BaseRepository[JuryScore]):
    """Repository for jury scores, unique per (session, question)."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, JuryScore)

    async def get_for_session(self, session_id: uuid.UUID) -> List[JuryScore]:
        query = (
            select(JuryScore)
            .where(JuryScore.session_id == session_id)
            .order_by(JuryScore.question_id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_by_session_and_question(
        self, session_id: uuid.UUID, question_id: int
    ) -> Optional[JuryScore]:
        query = select(JuryScore).where(
            and_(
                JuryScore.session_id == session_id,
                JuryScore.question_id == question_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        session_id: uuid.UUID,
        question_id: int,
        score: Decimal,
        comments: Optional[str] = None,
    ) -> JuryScore:
        """Create the score for a question or overwrite the existing one."""
        existing = await self.get_by_session_and_question(session_id, question_id)
        if existing:
            return await self.update(existing, score=score, comments=comments)

        return await self.create(
            session_id=session_id,
            question_id=question_id,
            score=score,
            comments=comments,
        )

    async def delete_for_session(self, session_id: uuid.UUID) -> int:
        """Delete all scores of a session. Returns rows deleted."""
        result = await self.db.execute(
            delete(JuryScore).where(JuryScore.session_id == session_id)
        )
        return result.rowcount
