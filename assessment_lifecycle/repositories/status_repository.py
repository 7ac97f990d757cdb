"""Status ledger repository - read side and append of status entries."""

import uuid
from typing import AsyncIterator, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.models.status import StatusEntry
from assessment_lifecycle.repositories.base import BaseRepository


class StatusEntryRepository(BaseRepository[StatusEntry]):
    """Repository for the append-only status ledger.

    Deliberately exposes no update or delete operations.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, StatusEntry)

    def _history_query(self, entity_type: str, entity_id: uuid.UUID):
        return (
            select(StatusEntry)
            .where(
                and_(
                    StatusEntry.entity_type == entity_type,
                    StatusEntry.entity_id == entity_id,
                )
            )
            .order_by(StatusEntry.version.desc())
        )

    async def get_latest(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[StatusEntry]:
        """Get the max-version entry, optionally locking it for the transaction."""
        query = self._history_query(entity_type, entity_id).limit(1)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_history(
        self, entity_type: str, entity_id: uuid.UUID
    ) -> List[StatusEntry]:
        """Get all entries, newest version first."""
        result = await self.db.execute(self._history_query(entity_type, entity_id))
        return list(result.scalars().all())

    async def stream_history(
        self, entity_type: str, entity_id: uuid.UUID
    ) -> AsyncIterator[StatusEntry]:
        """Stream entries newest version first; each call runs a fresh query."""
        result = await self.db.stream_scalars(self._history_query(entity_type, entity_id))
        async for entry in result:
            yield entry

    async def count_for_entity(self, entity_type: str, entity_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(StatusEntry.id)).where(
                and_(
                    StatusEntry.entity_type == entity_type,
                    StatusEntry.entity_id == entity_id,
                )
            )
        )
        return result.scalar()

    async def entity_ids_with_current_status(
        self, entity_type: str, status: str
    ) -> List[uuid.UUID]:
        """Get ids of entities whose latest entry has the given status."""
        latest = (
            select(
                StatusEntry.entity_id.label("entity_id"),
                func.max(StatusEntry.version).label("version"),
            )
            .where(StatusEntry.entity_type == entity_type)
            .group_by(StatusEntry.entity_id)
            .subquery()
        )
        query = (
            select(StatusEntry.entity_id)
            .join(
                latest,
                and_(
                    StatusEntry.entity_id == latest.c.entity_id,
                    StatusEntry.version == latest.c.version,
                ),
            )
            .where(
                and_(
                    StatusEntry.entity_type == entity_type,
                    StatusEntry.status == status,
                )
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
