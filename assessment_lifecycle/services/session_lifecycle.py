"""Session lifecycle service - creation, auto-save, navigation and submission."""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.core.config import settings
from assessment_lifecycle.core.database import transaction
from assessment_lifecycle.core.exceptions import (
    ApplicationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from assessment_lifecycle.models.enums import (
    RESUMABLE_STATUSES,
    EntityType,
    SessionStatus,
)
from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.repositories.review_repository import ReviewCommentRepository
from assessment_lifecycle.repositories.session_repository import ResponseSessionRepository
from assessment_lifecycle.schemas.session import (
    AutoSaveRequest,
    AutoSaveResult,
    BatchAutoSaveRequest,
    BatchAutoSaveResult,
    BatchItemError,
    NextQuestion,
    PositionResult,
    ProgressSummary,
    ResponseSessionResponse,
    SessionActionResult,
    SessionListResponse,
    SubmitSessionResult,
)
from assessment_lifecycle.schemas.status import CurrentStatusResponse, StatusEntryResponse
from assessment_lifecycle.services.collaborators import GroupMembership, QuestionCatalog
from assessment_lifecycle.services.progress import ProgressCalculator
from assessment_lifecycle.services.response_store import ResponseStoreService
from assessment_lifecycle.services.status_ledger import StatusLedgerService

logger = logging.getLogger(__name__)

RESUBMISSION_NOTE = "Automatically resolved on resubmission"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionLifecycleService:
    """
    Participant side of the assessment workflow.

    Features:
    - One session per (user, group), created or resumed idempotently
    - Auto-save of single answers and best-effort batches
    - Position tracking with draft finalization
    - Write-through progress on every change
    - All-or-nothing submission gate

    Status lives in the status ledger under ``(session, id)``:
    draft -> in_progress <-> paused -> submitted, and after a reviewer requests a
    revision, needs_revision -> resubmitted. A session can be edited until it is
    submitted, and again while a revision is open. Ledger entries are appended
    only for actual status changes.

    Every public operation runs as one transaction on the injected database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        membership: GroupMembership,
        catalog: QuestionCatalog,
    ):
        self.db = db
        self.membership = membership
        self.catalog = catalog
        self.session_repository = ResponseSessionRepository(db)
        self.comment_repository = ReviewCommentRepository(db)
        self.response_store = ResponseStoreService(db, catalog)
        self.progress = ProgressCalculator(db, catalog)
        self.ledger = StatusLedgerService(db)

    # ============================================================================
    # HELPERS
    # ============================================================================

    async def _get_session(
        self, session_id: uuid.UUID, for_update: bool = False
    ) -> ResponseSession:
        if for_update:
            session = await self.session_repository.get_for_update(session_id)
        else:
            session = await self.session_repository.get_by_id(session_id)

        if not session:
            raise NotFoundError(
                "Session not found", details={"session_id": str(session_id)}
            )
        return session

    async def _current_status(self, session: ResponseSession) -> Optional[str]:
        return await self.ledger.get_latest_status(EntityType.SESSION, session.id)

    async def _ensure_editable(self, session: ResponseSession) -> Optional[str]:
        """Return the current status, or raise if answers may no longer change."""
        status = await self._current_status(session)
        if session.submitted_at is not None and status != SessionStatus.NEEDS_REVISION:
            raise InvalidStateError(
                "Session has already been submitted",
                details={"session_id": str(session.id), "status": status},
            )
        return status

    async def _transition(
        self,
        session: ResponseSession,
        current_status: Optional[str],
        new_status: SessionStatus,
        changed_by: Optional[int] = None,
    ) -> str:
        """Record ``new_status`` unless the session is already in it."""
        if current_status != new_status:
            await self.ledger.record_status_change(
                EntityType.SESSION, session.id, new_status, changed_by=changed_by
            )
        return new_status.value

    @staticmethod
    def _is_resumable(status: Optional[str]) -> bool:
        return status is None or status in RESUMABLE_STATUSES

    async def _to_session_response(
        self, session: ResponseSession, include_responses: bool = True
    ) -> ResponseSessionResponse:
        # Column attributes only; relationships must not lazy load under asyncio
        data = {attr.key: getattr(session, attr.key) for attr in inspect(session).mapper.column_attrs}
        data["status"] = await self._current_status(session)
        if include_responses:
            responses = await self.response_store.get_responses(session.id)
            data["responses"] = [
                self.response_store.to_response(response) for response in responses
            ]
        return ResponseSessionResponse.model_validate(data)

    async def _get_or_create(
        self, user_id: int, group_id: int
    ) -> Tuple[ResponseSession, bool]:
        """Fetch the (user, group) session, creating it if missing.

        A unique violation means a concurrent request created it first, so the
        insert is rolled back to its SAVEPOINT and the row is fetched instead.
        """
        for attempt in range(1, settings.SESSION_CREATE_MAX_RETRIES + 1):
            session = await self.session_repository.get_by_user_and_group(user_id, group_id)
            if session:
                return session, False

            now = _utcnow()
            try:
                async with self.db.begin_nested():
                    session = ResponseSession(
                        user_id=user_id,
                        group_id=group_id,
                        progress_percentage=0,
                        auto_save_enabled=settings.AUTO_SAVE_ENABLED_DEFAULT,
                        started_at=now,
                        last_activity_at=now,
                    )
                    self.db.add(session)
                return session, True
            except IntegrityError:
                logger.info(
                    f"[SESSION] Lost create race for user {user_id} group {group_id} "
                    f"(attempt {attempt}), fetching existing session"
                )

        raise ConflictError(
            f"Could not create or fetch session for user {user_id} in group {group_id}"
        )

    # ============================================================================
    # SESSION MANAGEMENT
    # ============================================================================

    async def create_or_resume_session(
        self, user_id: int, group_id: int
    ) -> ResponseSessionResponse:
        """Create the user's session for a group, or resume the existing one."""
        if not self.membership.is_user_assigned_to_group(user_id, group_id):
            raise ValidationError(
                "User is not assigned to this group",
                details={"user_id": user_id, "group_id": group_id},
            )

        async with transaction(self.db):
            session, created = await self._get_or_create(user_id, group_id)

            if created:
                await self.ledger.record_status_change(
                    EntityType.SESSION, session.id, SessionStatus.DRAFT, changed_by=user_id
                )
                logger.info(f"[SESSION] Created session {session.id} for user {user_id} group {group_id}")
            else:
                session.last_activity_at = _utcnow()
                status = await self._current_status(session)
                if self._is_resumable(status):
                    await self._transition(session, status, SessionStatus.IN_PROGRESS, user_id)
                await self.db.flush()
                logger.info(f"[SESSION] Resumed session {session.id} for user {user_id}")

            return await self._to_session_response(session)

    async def get_session(self, session_id: uuid.UUID) -> ResponseSessionResponse:
        session = await self._get_session(session_id)
        return await self._to_session_response(session)

    async def list_user_sessions(self, user_id: int) -> List[ResponseSessionResponse]:
        """All sessions of a user with their statuses, most recently active first."""
        sessions = await self.session_repository.get_by_user(user_id)
        return [
            await self._to_session_response(session, include_responses=False)
            for session in sessions
        ]

    async def list_sessions(
        self,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> SessionListResponse:
        """List all sessions, most recently active first, optionally by current status.

        A session without ledger entries is reported as draft.
        """
        page = max(page, 1)
        limit = max(1, min(limit, settings.REVIEW_LIST_MAX_LIMIT))

        session_ids = None
        if status:
            session_ids = await self.ledger.get_entity_ids_by_status(EntityType.SESSION, status)

        sessions, total = await self.session_repository.search(
            session_ids=session_ids,
            limit=limit,
            offset=(page - 1) * limit,
        )

        items = []
        for session in sessions:
            item = await self._to_session_response(session, include_responses=False)
            if item.status is None:
                item.status = SessionStatus.DRAFT.value
            items.append(item)

        total_pages = math.ceil(total / limit) if total else 0
        return SessionListResponse(
            sessions=items,
            total=total,
            page=page,
            limit=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    async def pause_session(self, session_id: uuid.UUID) -> SessionActionResult:
        async with transaction(self.db):
            session = await self._get_session(session_id, for_update=True)
            status = await self._ensure_editable(session)

            session.last_activity_at = _utcnow()
            if status != SessionStatus.NEEDS_REVISION:
                status = await self._transition(
                    session, status, SessionStatus.PAUSED, session.user_id
                )
            await self.db.flush()

            return SessionActionResult(
                message="Session paused successfully",
                status=status,
                last_activity_at=session.last_activity_at,
                current_question_id=session.current_question_id,
            )

    async def resume_session(self, session_id: uuid.UUID) -> SessionActionResult:
        async with transaction(self.db):
            session = await self._get_session(session_id, for_update=True)
            status = await self._ensure_editable(session)

            session.last_activity_at = _utcnow()
            if self._is_resumable(status):
                status = await self._transition(
                    session, status, SessionStatus.IN_PROGRESS, session.user_id
                )
            await self.db.flush()

            return SessionActionResult(
                message="Session resumed successfully",
                status=status,
                last_activity_at=session.last_activity_at,
                current_question_id=session.current_question_id,
            )

    # ============================================================================
    # AUTO-SAVE
    # ============================================================================

    async def _save_one(self, session_id: uuid.UUID, request: AutoSaveRequest):
        # Locked so a concurrent submit cannot slip in between the check and the write
        session = await self._get_session(session_id, for_update=True)
        status = await self._ensure_editable(session)

        response = await self.response_store.save_response(session, request)

        now = _utcnow()
        session.last_auto_save_at = now
        session.last_activity_at = now
        if self._is_resumable(status):
            await self._transition(session, status, SessionStatus.IN_PROGRESS, session.user_id)
        await self.db.flush()

        return session, response

    async def save_response(
        self, session_id: uuid.UUID, request: AutoSaveRequest
    ) -> AutoSaveResult:
        """Auto-save one answer and refresh the session's progress."""
        async with transaction(self.db):
            session, response = await self._save_one(session_id, request)
            progress = await self.progress.refresh(session, request.progress_percentage)

            logger.debug(
                f"[AUTO_SAVE] Session {session_id} question {request.question_id} "
                f"v{response.auto_save_version}"
            )
            return AutoSaveResult(
                auto_save_version=response.auto_save_version,
                last_saved=response.last_modified_at,
                is_complete=response.is_complete,
                is_skipped=response.is_skipped,
                progress_percentage=progress,
            )

    async def batch_save_responses(
        self, session_id: uuid.UUID, batch: BatchAutoSaveRequest
    ) -> BatchAutoSaveResult:
        """Save answers in order; a failing item is skipped and reported, not fatal."""
        async with transaction(self.db):
            session = await self._get_session(session_id, for_update=True)
            await self._ensure_editable(session)

            saved_count = 0
            errors: List[BatchItemError] = []
            for item in batch.responses:
                try:
                    async with self.db.begin_nested():
                        await self._save_one(session_id, item)
                    saved_count += 1
                except (ApplicationError, SQLAlchemyError) as e:
                    message = getattr(e, "message", None) or str(e)
                    logger.warning(
                        f"[AUTO_SAVE] Failed to save response for question {item.question_id} "
                        f"in session {session_id}: {message}"
                    )
                    errors.append(BatchItemError(question_id=item.question_id, error=message))

            # Re-read: a rolled back item expires the session's modified attributes
            session = await self._get_session(session_id)
            now = _utcnow()
            if batch.current_question_id is not None:
                session.current_question_id = batch.current_question_id
                session.last_activity_at = now
                await self.db.flush()

            progress = await self.progress.refresh(session, batch.progress_percentage)

            logger.info(
                f"[AUTO_SAVE] Batch for session {session_id}: "
                f"{saved_count}/{len(batch.responses)} saved"
            )
            return BatchAutoSaveResult(
                success=True,
                saved_count=saved_count,
                failed_count=len(errors),
                errors=errors,
                last_saved=session.last_auto_save_at or now,
                progress_percentage=progress,
            )

    # ============================================================================
    # NAVIGATION AND PROGRESS
    # ============================================================================

    async def update_position(
        self,
        session_id: uuid.UUID,
        current_question_id: int,
        previous_question_id: Optional[int] = None,
    ) -> PositionResult:
        """Move to another question, finalizing the draft of the one being left."""
        async with transaction(self.db):
            session = await self._get_session(session_id, for_update=True)
            await self._ensure_editable(session)

            finalized = False
            if previous_question_id is not None:
                finalized = await self.response_store.finalize_draft(
                    session.id, previous_question_id
                )

            session.current_question_id = current_question_id
            session.last_activity_at = _utcnow()
            await self.db.flush()

            progress = await self.progress.refresh(session)

            next_question = None
            group_question = self.catalog.get_group_question(
                session.group_id, current_question_id
            )
            if group_question:
                next_question = NextQuestion(
                    question_id=group_question.question_id,
                    group_question_id=group_question.group_question_id,
                    input_type=group_question.input_type,
                    is_required=group_question.is_required,
                    order_number=group_question.order_number,
                )

            return PositionResult(
                current_question_id=current_question_id,
                progress_percentage=progress,
                finalized_previous=finalized,
                next_question=next_question,
            )

    async def get_progress(self, session_id: uuid.UUID) -> ProgressSummary:
        """Recompute progress, writing it through to the session if it changed."""
        async with transaction(self.db):
            session = await self._get_session(session_id)
            summary = await self.progress.calculate(session)
            await self.progress.refresh(session, summary.progress_percentage)
            return summary

    # ============================================================================
    # SUBMISSION
    # ============================================================================

    async def submit_session(self, session_id: uuid.UUID) -> SubmitSessionResult:
        """
        Submit a session for review, all or nothing.

        Steps:
        1. Load the session, its required questions and answers
        2. Reject unless every required question is answered or skipped
        3. Finalize remaining drafts
        4. Stamp submission and activity times
        5. Record submitted (or resubmitted after a revision request)
        """
        async with transaction(self.db):
            session = await self._get_session(session_id, for_update=True)
            status = await self._current_status(session)
            is_resubmission = status == SessionStatus.NEEDS_REVISION

            if session.submitted_at is not None and not is_resubmission:
                raise InvalidStateError(
                    "Session has already been submitted",
                    details={"session_id": str(session_id), "status": status},
                )

            summary = await self.progress.calculate(session)
            if summary.answered_questions + summary.skipped_questions < summary.total_questions:
                raise InvalidStateError(
                    "Cannot submit session: not all required questions are answered or skipped",
                    details=summary.model_dump(),
                )

            finalized = await self.response_store.finalize_all_drafts(session.id)

            now = _utcnow()
            session.submitted_at = now
            session.last_activity_at = now
            await self.db.flush()
            await self.progress.refresh(session)

            new_status = (
                SessionStatus.RESUBMITTED if is_resubmission else SessionStatus.SUBMITTED
            )
            await self.ledger.record_status_change(
                EntityType.SESSION,
                session.id,
                new_status,
                changed_by=session.user_id,
                metadata={"finalized_drafts": finalized},
            )

            resolved = 0
            if is_resubmission:
                resolved = await self.comment_repository.set_resolution_for_open(
                    session.id,
                    is_resolved=True,
                    resolved_by=session.user_id,
                    resolved_at=now,
                    revision_notes=RESUBMISSION_NOTE,
                )

            logger.info(
                f"[SESSION] Session {session_id} {new_status.value} "
                f"({finalized} drafts finalized, {resolved} comments resolved)"
            )
            return SubmitSessionResult(
                message=(
                    "Session resubmitted successfully"
                    if is_resubmission
                    else "Session submitted successfully"
                ),
                status=new_status.value,
                submitted_at=now,
                finalized_drafts=finalized,
                resolved_comments=resolved,
            )

    # ============================================================================
    # STATUS
    # ============================================================================

    async def get_current_status(self, session_id: uuid.UUID) -> Optional[CurrentStatusResponse]:
        await self._get_session(session_id)
        return await self.ledger.get_current_status(EntityType.SESSION, session_id)

    async def get_status_history(self, session_id: uuid.UUID) -> List[StatusEntryResponse]:
        await self._get_session(session_id)
        entries = await self.ledger.get_status_history(EntityType.SESSION, session_id)
        return [StatusEntryResponse.model_validate(entry) for entry in entries]
