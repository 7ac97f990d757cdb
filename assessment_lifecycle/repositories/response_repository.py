"""Question response repository with auto-save support."""
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.models.response import QuestionResponse
from assessment_lifecycle.repositories.base import BaseRepository


class QuestionResponseRepository(BaseRepository[QuestionResponse]):
    """Repository for per-question answers of a session."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, QuestionResponse)

    async def get_by_session_and_question(
        self,
        session_id: uuid.UUID,
        question_id: int,
    ) -> Optional[QuestionResponse]:
        """Get the answer for a specific question of a session."""
        query = select(QuestionResponse).where(
            and_(
                QuestionResponse.session_id == session_id,
                QuestionResponse.question_id == question_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all_for_session(self, session_id: uuid.UUID) -> List[QuestionResponse]:
        """Get all answers of a session in question order."""
        query = (
            select(QuestionResponse)
            .where(QuestionResponse.session_id == session_id)
            .order_by(QuestionResponse.question_id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_for_questions(
        self,
        session_id: uuid.UUID,
        question_ids: Iterable[int],
    ) -> List[QuestionResponse]:
        """Get the answers of a session restricted to the given questions."""
        question_ids = list(question_ids)
        if not question_ids:
            return []

        query = select(QuestionResponse).where(
            and_(
                QuestionResponse.session_id == session_id,
                QuestionResponse.question_id.in_(question_ids),
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def finalize_draft(
        self,
        session_id: uuid.UUID,
        question_id: int,
        finalized_at: datetime,
    ) -> int:
        """Clear the draft flag of one still-draft answer. Returns rows changed."""
        stmt = (
            update(QuestionResponse)
            .where(
                and_(
                    QuestionResponse.session_id == session_id,
                    QuestionResponse.question_id == question_id,
                    QuestionResponse.is_draft.is_(True),
                )
            )
            .values(is_draft=False, finalized_at=finalized_at)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def finalize_all_drafts(
        self,
        session_id: uuid.UUID,
        finalized_at: datetime,
    ) -> int:
        """Mark every draft answer of a session as complete. Returns rows changed."""
        stmt = (
            update(QuestionResponse)
            .where(
                and_(
                    QuestionResponse.session_id == session_id,
                    QuestionResponse.is_draft.is_(True),
                )
            )
            .values(is_draft=False, is_complete=True, finalized_at=finalized_at)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
