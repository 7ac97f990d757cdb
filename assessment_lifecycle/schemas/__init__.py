"""Pydantic schemas for service inputs and results."""

from .review import (
    BatchReviewResult,
    CreateReviewRequest,
    DeleteReviewResult,
    JuryScoreInput,
    JuryScoreResponse,
    JuryScoresResult,
    QuestionCommentInput,
    ResolveCommentRequest,
    ResolveCommentsResult,
    ReviewCommentResponse,
    ReviewListItem,
    ReviewListResponse,
    ReviewResponse,
)
from .session import (
    AutoSaveRequest,
    AutoSaveResult,
    BatchAutoSaveRequest,
    BatchAutoSaveResult,
    BatchItemError,
    NextQuestion,
    PositionResult,
    ProgressSummary,
    QuestionResponseResponse,
    ResponseSessionResponse,
    SessionActionResult,
    SessionListResponse,
    SubmitSessionResult,
)
from .status import CurrentStatusResponse, StatusEntryResponse

__all__ = [
    "AutoSaveRequest",
    "AutoSaveResult",
    "BatchAutoSaveRequest",
    "BatchAutoSaveResult",
    "BatchItemError",
    "BatchReviewResult",
    "CreateReviewRequest",
    "CurrentStatusResponse",
    "DeleteReviewResult",
    "JuryScoreInput",
    "JuryScoreResponse",
    "JuryScoresResult",
    "NextQuestion",
    "PositionResult",
    "ProgressSummary",
    "QuestionCommentInput",
    "QuestionResponseResponse",
    "ResolveCommentRequest",
    "ResolveCommentsResult",
    "ResponseSessionResponse",
    "ReviewCommentResponse",
    "ReviewListItem",
    "ReviewListResponse",
    "ReviewResponse",
    "SessionActionResult",
    "SessionListResponse",
    "StatusEntryResponse",
    "SubmitSessionResult",
]
