"""Response store - auto-saved answers with per-question versioning."""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.core.exceptions import NotFoundError
from assessment_lifecycle.models.response import QuestionResponse
from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.repositories.response_repository import QuestionResponseRepository
from assessment_lifecycle.schemas.session import AutoSaveRequest, QuestionResponseResponse
from assessment_lifecycle.services.collaborators import QuestionCatalog
from assessment_lifecycle.services.response_values import decode_response, encode_value

logger = logging.getLogger(__name__)


class ResponseStoreService:
    """Upserts answers by (session, question) and reads them back.

    Only flushes; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, catalog: QuestionCatalog):
        self.db = db
        self.catalog = catalog
        self.repository = QuestionResponseRepository(db)

    async def save_response(
        self,
        session: ResponseSession,
        request: AutoSaveRequest,
    ) -> QuestionResponse:
        """Save one answer.

        Steps:
        1. Resolve the question's binding to the session's group
        2. Encode the value into its storage slot for the input type
        3. Create the row (version 1) or bump version and time spent
        """
        group_question = self.catalog.get_group_question(session.group_id, request.question_id)
        if not group_question:
            raise NotFoundError(
                f"Question {request.question_id} not found in group {session.group_id}",
                details={"question_id": request.question_id, "group_id": session.group_id},
            )

        input_type = (
            group_question.input_type
            or self.catalog.question_input_type(request.question_id)
            or request.input_type
        )
        slots = encode_value(request.value, input_type).to_slots()
        now = datetime.now(timezone.utc)

        response = await self.repository.get_by_session_and_question(
            session.id, request.question_id
        )
        if response is None:
            try:
                async with self.db.begin_nested():
                    response = QuestionResponse(
                        session_id=session.id,
                        question_id=request.question_id,
                        group_question_id=group_question.group_question_id,
                        is_draft=request.is_draft,
                        is_complete=request.is_complete,
                        is_skipped=request.is_skipped,
                        auto_save_version=1,
                        time_spent_seconds=request.time_spent,
                        first_answered_at=now,
                        last_modified_at=now,
                        finalized_at=now if request.is_complete else None,
                        **slots,
                    )
                    self.db.add(response)
                return response
            except IntegrityError:
                # A concurrent first save won; apply ours on top of it
                logger.info(
                    f"[RESPONSES] Concurrent create of session {session.id} question "
                    f"{request.question_id}, updating the existing row"
                )
                response = await self.repository.get_by_session_and_question(
                    session.id, request.question_id
                )

        return await self._apply_update(response, request, slots, now)

    async def _apply_update(
        self,
        response: QuestionResponse,
        request: AutoSaveRequest,
        slots: dict,
        now: datetime,
    ) -> QuestionResponse:
        if request.is_complete:
            finalized_at = response.finalized_at or now
        else:
            finalized_at = None

        return await self.repository.update(
            response,
            is_draft=request.is_draft,
            is_complete=request.is_complete,
            is_skipped=request.is_skipped,
            auto_save_version=response.auto_save_version + 1,
            time_spent_seconds=response.time_spent_seconds + request.time_spent,
            last_modified_at=now,
            finalized_at=finalized_at,
            **slots,
        )

    async def get_response(
        self, session_id: uuid.UUID, question_id: int
    ) -> Optional[QuestionResponse]:
        return await self.repository.get_by_session_and_question(session_id, question_id)

    async def get_responses(self, session_id: uuid.UUID) -> List[QuestionResponse]:
        return await self.repository.get_all_for_session(session_id)

    async def finalize_draft(self, session_id: uuid.UUID, question_id: int) -> bool:
        """Finalize the answer to a question if it is still a draft."""
        changed = await self.repository.finalize_draft(
            session_id, question_id, datetime.now(timezone.utc)
        )
        return changed > 0

    async def finalize_all_drafts(self, session_id: uuid.UUID) -> int:
        """Mark all draft answers of a session complete. Returns how many changed."""
        return await self.repository.finalize_all_drafts(
            session_id, datetime.now(timezone.utc)
        )

    @staticmethod
    def to_response(response: QuestionResponse) -> QuestionResponseResponse:
        """Map a stored answer to its result schema, reconstructing the value."""
        return QuestionResponseResponse.model_validate(response).model_copy(
            update={"value": decode_response(response)}
        )
