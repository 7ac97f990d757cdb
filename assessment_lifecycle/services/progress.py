"""Progress calculation over the required questions of a session's group."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.repositories.response_repository import QuestionResponseRepository
from assessment_lifecycle.schemas.session import ProgressSummary
from assessment_lifecycle.services.collaborators import QuestionCatalog

logger = logging.getLogger(__name__)


def progress_percentage(completed: int, total: int) -> int:
    """Percentage of ``total`` reached by ``completed``, rounded half up, capped at 100."""
    if total <= 0:
        return 0
    percentage = (Decimal(100 * completed) / Decimal(total)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(int(percentage), 100)


class ProgressCalculator:
    """
    Derives completion progress from stored answers.

    Only questions the catalog marks as required count. A required answer counts
    as answered when ``is_complete`` and as skipped when ``is_skipped``; the two
    flags are independent, so an answer carrying both counts in both totals.
    """

    def __init__(self, db: AsyncSession, catalog: QuestionCatalog):
        self.db = db
        self.catalog = catalog
        self.response_repository = QuestionResponseRepository(db)

    async def calculate(self, session: ResponseSession) -> ProgressSummary:
        required_ids = [
            question.question_id
            for question in self.catalog.group_questions(session.group_id)
            if question.is_required
        ]
        responses = await self.response_repository.get_for_questions(session.id, required_ids)

        answered = sum(1 for response in responses if response.is_complete)
        skipped = sum(1 for response in responses if response.is_skipped)

        return ProgressSummary(
            total_questions=len(required_ids),
            answered_questions=answered,
            skipped_questions=skipped,
            progress_percentage=progress_percentage(answered + skipped, len(required_ids)),
        )

    async def refresh(
        self,
        session: ResponseSession,
        precomputed: Optional[int] = None,
    ) -> int:
        """Write the session's progress through to its row and return it.

        ``precomputed`` is a client-calculated percentage that is trusted as-is and
        skips recomputation.
        """
        if precomputed is not None:
            percentage = precomputed
        else:
            percentage = (await self.calculate(session)).progress_percentage

        if session.progress_percentage != percentage:
            logger.debug(
                f"[PROGRESS] Session {session.id}: {session.progress_percentage}% -> {percentage}%"
            )
            session.progress_percentage = percentage
            await self.db.flush()

        return percentage
