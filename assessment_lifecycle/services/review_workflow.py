"""Review workflow service - reviewer decisions, annotations and jury scoring."""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.core.config import settings
from assessment_lifecycle.core.database import transaction
from assessment_lifecycle.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from assessment_lifecycle.models.enums import (
    DECISION_STATUS,
    REVIEWABLE_STATUSES,
    TERMINAL_STATUSES,
    EntityType,
    ReviewDecision,
    SessionStatus,
)
from assessment_lifecycle.models.review import JuryScore
from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.repositories.review_repository import (
    JuryScoreRepository,
    ReviewCommentRepository,
)
from assessment_lifecycle.repositories.session_repository import ResponseSessionRepository
from assessment_lifecycle.schemas.review import (
    BatchReviewResult,
    CreateReviewRequest,
    DeleteReviewResult,
    JuryScoreInput,
    JuryScoreResponse,
    JuryScoresResult,
    ResolveCommentRequest,
    ResolveCommentsResult,
    ReviewCommentResponse,
    ReviewListItem,
    ReviewListResponse,
    ReviewResponse,
)
from assessment_lifecycle.services.status_ledger import StatusLedgerService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def resolve_status(decision) -> SessionStatus:
    """Map a review decision to the session status it results in."""
    try:
        return DECISION_STATUS[ReviewDecision(decision)]
    except (KeyError, ValueError):
        raise ValidationError(f"Invalid review decision '{decision}'", field="decision")


@dataclass
class _ReviewOutcome:
    status: SessionStatus
    reviewed_at: datetime
    comments_added: int = 0
    scores_added: int = 0
    comments_removed: int = 0
    scores_removed: int = 0


class ReviewWorkflowService:
    """
    Reviewer side of the assessment workflow.

    The review of a session is a projection on the session row (reviewer, stage,
    decision, notes) plus per-question comments and jury scores. Every review write:
    1. Stores the projection
    2. Records the session status the decision maps to
    3. Records the stage under the review key ``(review, session_id)``
    4. Writes comments and scores

    A session can be reviewed once it is submitted (or resubmitted); an existing
    review can be revised afterwards regardless of the decision it recorded.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.session_repository = ResponseSessionRepository(db)
        self.comment_repository = ReviewCommentRepository(db)
        self.score_repository = JuryScoreRepository(db)
        self.ledger = StatusLedgerService(db)

    # ============================================================================
    # HELPERS
    # ============================================================================

    async def _get_session(self, session_id: uuid.UUID) -> ResponseSession:
        session = await self.session_repository.get_for_update(session_id)
        if not session:
            raise NotFoundError(
                "Session not found", details={"session_id": str(session_id)}
            )
        return session

    async def _ensure_reviewable(self, session: ResponseSession) -> Optional[str]:
        status = await self.ledger.get_latest_status(EntityType.SESSION, session.id)
        submitted = session.submitted_at is not None
        if not submitted or not (status in REVIEWABLE_STATUSES or session.has_review):
            raise InvalidStateError(
                "Session must be submitted before review",
                details={"session_id": str(session.id), "status": status},
            )
        return status

    async def _apply_review(
        self,
        session: ResponseSession,
        reviewer_id: int,
        request: CreateReviewRequest,
        replace: bool = False,
    ) -> _ReviewOutcome:
        status = resolve_status(request.decision)
        outcome = _ReviewOutcome(status=status, reviewed_at=_utcnow())

        if replace:
            outcome.comments_removed = await self.comment_repository.delete_for_session(session.id)
            outcome.scores_removed = await self.score_repository.delete_for_session(session.id)

        session.reviewer_id = reviewer_id
        session.stage = request.stage.value
        session.decision = request.decision.value
        session.overall_comments = request.overall_comments
        session.total_score = _to_decimal(request.total_score)
        session.deliberation_notes = request.deliberation_notes
        session.internal_notes = request.internal_notes
        session.validation_checklist = request.validation_checklist
        session.reviewed_at = outcome.reviewed_at
        session.completed_at = outcome.reviewed_at if status in TERMINAL_STATUSES else None
        await self.db.flush()

        await self.ledger.record_status_change(
            EntityType.SESSION,
            session.id,
            status,
            changed_by=reviewer_id,
            metadata={"stage": request.stage.value, "decision": request.decision.value},
        )
        await self.ledger.record_status_change(
            EntityType.REVIEW,
            session.id,
            request.stage,
            changed_by=reviewer_id,
            metadata={"decision": request.decision.value, "resulting_status": status.value},
        )

        for item in request.question_comments:
            await self.comment_repository.create(
                session_id=session.id,
                question_id=item.question_id,
                comment=item.comment,
                is_critical=item.is_critical,
                stage=(item.stage or request.stage).value,
            )
            outcome.comments_added += 1

        for item in request.jury_scores:
            await self.score_repository.upsert(
                session.id, item.question_id, _to_decimal(item.score), item.comments
            )
            outcome.scores_added += 1

        logger.info(
            f"[REVIEW] Session {session.id} reviewed by {reviewer_id}: "
            f"{request.stage.value}/{request.decision.value} -> {status.value}"
        )
        return outcome

    @staticmethod
    def _score_response(score: JuryScore) -> JuryScoreResponse:
        return JuryScoreResponse(
            id=score.id,
            question_id=score.question_id,
            score=float(score.score),
            comments=score.comments,
            created_at=score.created_at,
        )

    async def _to_review_response(self, session: ResponseSession) -> ReviewResponse:
        comments = await self.comment_repository.get_for_session(session.id)
        scores = await self.score_repository.get_for_session(session.id)
        status = await self.ledger.get_latest_status(EntityType.SESSION, session.id)

        return ReviewResponse(
            session_id=session.id,
            reviewer_id=session.reviewer_id,
            stage=session.stage,
            decision=session.decision,
            status=status,
            overall_comments=session.overall_comments,
            total_score=float(session.total_score) if session.total_score is not None else None,
            deliberation_notes=session.deliberation_notes,
            internal_notes=session.internal_notes,
            validation_checklist=session.validation_checklist,
            reviewed_at=session.reviewed_at,
            question_comments=[ReviewCommentResponse.model_validate(c) for c in comments],
            jury_scores=[self._score_response(s) for s in scores],
        )

    # ============================================================================
    # REVIEW WRITES
    # ============================================================================

    async def create_review(
        self, reviewer_id: int, session_id: uuid.UUID, request: CreateReviewRequest
    ) -> ReviewResponse:
        """Record the first review of a submitted session."""
        async with transaction(self.db):
            session = await self._get_session(session_id)
            await self._ensure_reviewable(session)
            if session.has_review:
                raise InvalidStateError(
                    "Review already exists for this session; update it instead",
                    details={"session_id": str(session_id)},
                )

            await self._apply_review(session, reviewer_id, request)
            return await self._to_review_response(session)

    async def create_batch_review(
        self,
        reviewer_id: int,
        session_id: uuid.UUID,
        request: CreateReviewRequest,
        update_existing: bool = False,
    ) -> BatchReviewResult:
        """Create a review with all its annotations, or replace an existing one.

        With ``update_existing`` an existing review's comments and scores are
        deleted before the new set is written; without it an existing review is an
        error.
        """
        async with transaction(self.db):
            session = await self._get_session(session_id)
            await self._ensure_reviewable(session)

            is_new_review = not session.has_review
            if not is_new_review and not update_existing:
                raise InvalidStateError(
                    "Review already exists for this session; pass update_existing to replace it",
                    details={"session_id": str(session_id)},
                )

            outcome = await self._apply_review(
                session, reviewer_id, request, replace=not is_new_review
            )

            return BatchReviewResult(
                session_id=session.id,
                reviewer_id=reviewer_id,
                stage=request.stage.value,
                decision=request.decision.value,
                status=outcome.status.value,
                reviewed_at=outcome.reviewed_at,
                message="Review created successfully" if is_new_review else "Review updated successfully",
                is_new_review=is_new_review,
                total_comments_added=outcome.comments_added,
                total_scores_added=outcome.scores_added,
                comments_removed=outcome.comments_removed,
                scores_removed=outcome.scores_removed,
            )

    async def update_review(
        self, reviewer_id: int, session_id: uuid.UUID, request: CreateReviewRequest
    ) -> ReviewResponse:
        """Replace the existing review of a session and its annotations."""
        async with transaction(self.db):
            session = await self._get_session(session_id)
            await self._ensure_reviewable(session)
            if not session.has_review:
                raise InvalidStateError(
                    "No review exists for this session; create it first",
                    details={"session_id": str(session_id)},
                )

            await self._apply_review(session, reviewer_id, request, replace=True)
            return await self._to_review_response(session)

    async def delete_review(self, session_id: uuid.UUID) -> DeleteReviewResult:
        """Remove a review, returning the session to the review queue as submitted."""
        async with transaction(self.db):
            session = await self._get_session(session_id)
            if not session.has_review:
                raise NotFoundError(
                    "No review found for this session", details={"session_id": str(session_id)}
                )

            comments_removed = await self.comment_repository.delete_for_session(session.id)
            scores_removed = await self.score_repository.delete_for_session(session.id)

            session.reviewer_id = None
            session.stage = None
            session.decision = None
            session.overall_comments = None
            session.total_score = None
            session.deliberation_notes = None
            session.internal_notes = None
            session.validation_checklist = None
            session.reviewed_at = None
            session.completed_at = None
            await self.db.flush()

            await self.ledger.record_status_change(
                EntityType.SESSION,
                session.id,
                SessionStatus.SUBMITTED,
                metadata={"reason": "review_deleted"},
            )

            logger.info(
                f"[REVIEW] Deleted review of session {session_id} "
                f"({comments_removed} comments, {scores_removed} scores)"
            )
            return DeleteReviewResult(
                message="Review deleted successfully",
                comments_removed=comments_removed,
                scores_removed=scores_removed,
            )

    async def submit_jury_scores(
        self, juror_id: int, session_id: uuid.UUID, scores: List[JuryScoreInput]
    ) -> JuryScoresResult:
        """Create or overwrite per-question jury scores."""
        async with transaction(self.db):
            session = await self._get_session(session_id)
            await self._ensure_reviewable(session)

            for item in scores:
                await self.score_repository.upsert(
                    session.id, item.question_id, _to_decimal(item.score), item.comments
                )

            logger.info(f"[REVIEW] Juror {juror_id} scored {len(scores)} questions of session {session_id}")
            return JuryScoresResult(
                session_id=session.id,
                total_scores_added=len(scores),
                message="Jury scores saved successfully",
            )

    # ============================================================================
    # COMMENT RESOLUTION
    # ============================================================================

    async def resolve_review_comment(
        self,
        session_id: uuid.UUID,
        comment_id: uuid.UUID,
        user_id: int,
        request: ResolveCommentRequest,
    ) -> ReviewCommentResponse:
        """Mark one comment resolved (or reopen it) with optional revision notes."""
        async with transaction(self.db):
            comment = await self.comment_repository.get_in_session(session_id, comment_id)
            if not comment:
                raise NotFoundError(
                    "Comment not found in this session",
                    details={"session_id": str(session_id), "comment_id": str(comment_id)},
                )

            await self.comment_repository.update(
                comment,
                is_resolved=request.is_resolved,
                resolved_at=_utcnow() if request.is_resolved else None,
                resolved_by=user_id if request.is_resolved else None,
                revision_notes=request.revision_notes,
            )
            return ReviewCommentResponse.model_validate(comment)

    async def resolve_all_review_comments(
        self, session_id: uuid.UUID, user_id: int, request: ResolveCommentRequest
    ) -> ResolveCommentsResult:
        """Resolve every open comment of a session at once."""
        async with transaction(self.db):
            session = await self.session_repository.get_by_id(session_id)
            if not session:
                raise NotFoundError(
                    "Session not found", details={"session_id": str(session_id)}
                )

            count = await self.comment_repository.set_resolution_for_open(
                session_id,
                is_resolved=request.is_resolved,
                resolved_by=user_id if request.is_resolved else None,
                resolved_at=_utcnow() if request.is_resolved else None,
                revision_notes=request.revision_notes,
            )
            return ResolveCommentsResult(
                message=f"Resolved {count} comments", resolved_count=count
            )

    # ============================================================================
    # REVIEW READS
    # ============================================================================

    async def get_review(self, session_id: uuid.UUID) -> ReviewResponse:
        session = await self.session_repository.get_by_id(session_id)
        if not session or not session.has_review:
            raise NotFoundError(
                "No review found for this session", details={"session_id": str(session_id)}
            )
        return await self._to_review_response(session)

    async def has_review(self, session_id: uuid.UUID) -> bool:
        session = await self.session_repository.get_by_id(session_id)
        return bool(session and session.has_review)

    async def get_review_status(self, session_id: uuid.UUID) -> Optional[str]:
        """Current session status if the session has been reviewed, else None."""
        if not await self.has_review(session_id):
            return None
        return await self.ledger.get_latest_status(EntityType.SESSION, session_id)

    async def list_reviews(
        self,
        status: Optional[str] = None,
        reviewer_id: Optional[int] = None,
        stage: Optional[str] = None,
        decision: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> ReviewListResponse:
        """List reviewed sessions, newest review first, with optional filters."""
        page = max(page, 1)
        limit = max(1, min(limit, settings.REVIEW_LIST_MAX_LIMIT))

        session_ids = None
        if status:
            session_ids = await self.ledger.get_entity_ids_by_status(EntityType.SESSION, status)

        sessions, total = await self.session_repository.search_reviewed(
            session_ids=session_ids,
            reviewer_id=reviewer_id,
            stage=getattr(stage, "value", stage),
            decision=getattr(decision, "value", decision),
            limit=limit,
            offset=(page - 1) * limit,
        )

        reviews = []
        for session in sessions:
            current = await self.ledger.get_latest_status(EntityType.SESSION, session.id)
            reviews.append(
                ReviewListItem(
                    session_id=session.id,
                    user_id=session.user_id,
                    group_id=session.group_id,
                    reviewer_id=session.reviewer_id,
                    stage=session.stage,
                    decision=session.decision,
                    status=current or SessionStatus.PENDING_REVIEW.value,
                    reviewed_at=session.reviewed_at,
                    submitted_at=session.submitted_at,
                )
            )

        total_pages = math.ceil(total / limit) if total else 0
        return ReviewListResponse(
            reviews=reviews,
            total=total,
            page=page,
            limit=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
