"""Pydantic schemas for the status ledger."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StatusEntryResponse(BaseModel):
    """One entry of an entity's status history."""

    id: UUID
    entity_type: str
    entity_id: UUID
    status: str
    version: int
    previous_status: Optional[str] = None
    changed_by: Optional[int] = None
    changed_at: datetime
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias="entry_metadata"
    )

    model_config = {"from_attributes": True}


class CurrentStatusResponse(BaseModel):
    """Current (max version) status of an entity."""

    status: str
    version: int
    changed_at: datetime

    model_config = {"from_attributes": True}
