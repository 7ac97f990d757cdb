"""Response session repository for data access operations."""

import uuid
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.repositories.base import BaseRepository


class ResponseSessionRepository(BaseRepository[ResponseSession]):
    """Repository for response session operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ResponseSession)

    async def get_by_user_and_group(
        self, user_id: int, group_id: int
    ) -> Optional[ResponseSession]:
        """Get the session for a (user, group) pair."""
        query = select(ResponseSession).where(
            and_(
                ResponseSession.user_id == user_id,
                ResponseSession.group_id == group_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_update(self, session_id: uuid.UUID) -> Optional[ResponseSession]:
        """Get a session with a row lock held until the transaction ends."""
        query = (
            select(ResponseSession)
            .where(ResponseSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: int) -> List[ResponseSession]:
        """Get all sessions of a user, most recently active first."""
        query = (
            select(ResponseSession)
            .where(ResponseSession.user_id == user_id)
            .order_by(desc(ResponseSession.last_activity_at))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def _reviewed_conditions(
        self,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
        reviewer_id: Optional[int] = None,
        stage: Optional[str] = None,
        decision: Optional[str] = None,
    ) -> list:
        conditions = [
            or_(
                ResponseSession.reviewer_id.is_not(None),
                ResponseSession.stage.is_not(None),
                ResponseSession.decision.is_not(None),
            )
        ]
        if session_ids is not None:
            conditions.append(ResponseSession.id.in_(session_ids))
        if reviewer_id is not None:
            conditions.append(ResponseSession.reviewer_id == reviewer_id)
        if stage:
            conditions.append(ResponseSession.stage == stage)
        if decision:
            conditions.append(ResponseSession.decision == decision)
        return conditions

    async def search_reviewed(
        self,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
        reviewer_id: Optional[int] = None,
        stage: Optional[str] = None,
        decision: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[ResponseSession], int]:
        """Get reviewed sessions matching the filters plus the total match count."""
        conditions = self._reviewed_conditions(session_ids, reviewer_id, stage, decision)

        count_result = await self.db.execute(
            select(func.count(ResponseSession.id)).where(and_(*conditions))
        )
        total = count_result.scalar()

        query = (
            select(ResponseSession)
            .where(and_(*conditions))
            .order_by(desc(ResponseSession.reviewed_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def search(
        self,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[ResponseSession], int]:
        """Get sessions, most recently active first, plus the total match count."""
        conditions = []
        if session_ids is not None:
            conditions.append(ResponseSession.id.in_(session_ids))

        count_result = await self.db.execute(
            select(func.count(ResponseSession.id)).where(*conditions)
        )
        total = count_result.scalar()

        query = (
            select(ResponseSession)
            .where(*conditions)
            .order_by(desc(ResponseSession.last_activity_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
