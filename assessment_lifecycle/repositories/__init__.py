"""Repository layer for data access."""

from .base import BaseRepository
from .response_repository import QuestionResponseRepository
from .review_repository import JuryScoreRepository, ReviewCommentRepository
from .session_repository import ResponseSessionRepository
from .status_repository import StatusEntryRepository

__all__ = [
    "BaseRepository",
    "QuestionResponseRepository",
    "JuryScoreRepository",
    "ReviewCommentRepository",
    "ResponseSessionRepository",
    "StatusEntryRepository",
]
