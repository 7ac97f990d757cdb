"""Status ledger service - append-only, versioned status history."""

import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.core.config import settings
from assessment_lifecycle.core.exceptions import ConflictError, ValidationError
from assessment_lifecycle.models.enums import EntityType
from assessment_lifecycle.models.status import StatusEntry
from assessment_lifecycle.repositories.status_repository import StatusEntryRepository
from assessment_lifecycle.schemas.status import CurrentStatusResponse

logger = logging.getLogger(__name__)


class StatusLedgerService:
    """
    Records and reads status transitions for sessions and reviews.

    Entries are only ever appended: the current status of an entity is the entry
    with the highest version, and corrections are made by appending a new entry.

    ``record_status_change`` never commits; it must run in the same transaction as
    the state change it accompanies so that both become durable together.

    Version assignment reads the latest entry under a row lock (where the backend
    supports ``FOR UPDATE``) and inserts ``version + 1`` inside a SAVEPOINT. The
    unique (entity_type, entity_id, version) constraint catches writers that still
    race, e.g. on an entity without entries yet; the loser rolls back its SAVEPOINT
    and retries with the fresh maximum.
    """

    def __init__(self, db: AsyncSession, max_retries: Optional[int] = None):
        self.db = db
        self.repository = StatusEntryRepository(db)
        self.max_retries = (
            settings.LEDGER_MAX_RETRIES if max_retries is None else max_retries
        )

    @staticmethod
    def _entity_type(entity_type: Any) -> str:
        try:
            return EntityType(entity_type).value
        except ValueError:
            raise ValidationError(
                f"Unknown entity type '{entity_type}'", field="entity_type"
            )

    async def record_status_change(
        self,
        entity_type: Any,
        entity_id: uuid.UUID,
        new_status: Any,
        changed_by: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StatusEntry:
        """Append ``new_status`` as the next version for the entity."""
        entity_type = self._entity_type(entity_type)
        new_status = getattr(new_status, "value", new_status)

        for attempt in range(1, self.max_retries + 1):
            latest = await self.repository.get_latest(entity_type, entity_id, for_update=True)
            entry = StatusEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                status=new_status,
                version=(latest.version if latest else 0) + 1,
                previous_status=latest.status if latest else None,
                changed_by=changed_by,
                entry_metadata=metadata,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(entry)
            except IntegrityError:
                logger.warning(
                    f"[LEDGER] Version {entry.version} of {entity_type}:{entity_id} taken by a "
                    f"concurrent writer (attempt {attempt}/{self.max_retries})"
                )
                continue

            logger.info(
                f"[LEDGER] {entity_type}:{entity_id} v{entry.version}: "
                f"{entry.previous_status} -> {entry.status}"
            )
            return entry

        raise ConflictError(
            f"Could not record status '{new_status}' for {entity_type} {entity_id}",
            details={"attempts": self.max_retries},
        )

    async def get_current_status(
        self, entity_type: Any, entity_id: uuid.UUID
    ) -> Optional[CurrentStatusResponse]:
        """Get status, version and change time of the max-version entry."""
        latest = await self.repository.get_latest(self._entity_type(entity_type), entity_id)
        if not latest:
            return None
        return CurrentStatusResponse.model_validate(latest)

    async def get_latest_status(self, entity_type: Any, entity_id: uuid.UUID) -> Optional[str]:
        current = await self.get_current_status(entity_type, entity_id)
        return current.status if current else None

    async def get_status_history(
        self, entity_type: Any, entity_id: uuid.UUID
    ) -> List[StatusEntry]:
        """Get the full history, version descending."""
        return await self.repository.get_history(self._entity_type(entity_type), entity_id)

    async def iter_status_history(
        self, entity_type: Any, entity_id: uuid.UUID
    ) -> AsyncIterator[StatusEntry]:
        """Lazily iterate the history, version descending.

        Every call starts a new query, so the iteration can be restarted freely.
        """
        async for entry in self.repository.stream_history(
            self._entity_type(entity_type), entity_id
        ):
            yield entry

    async def get_entity_ids_by_status(self, entity_type: Any, status: Any) -> List[uuid.UUID]:
        """Get ids of the entities whose current status is ``status``."""
        return await self.repository.entity_ids_with_current_status(
            self._entity_type(entity_type), getattr(status, "value", status)
        )
