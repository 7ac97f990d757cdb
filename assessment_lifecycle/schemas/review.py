"""Pydantic schemas for the review workflow."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from assessment_lifecycle.models.enums import ReviewDecision, ReviewStage


# Requests
class QuestionCommentInput(BaseModel):
    question_id: int = Field(gt=0)
    comment: str = Field(min_length=1)
    is_critical: bool = False
    stage: Optional[ReviewStage] = None


class JuryScoreInput(BaseModel):
    question_id: int = Field(gt=0)
    score: float = Field(ge=0, le=10)
    comments: Optional[str] = None


class CreateReviewRequest(BaseModel):
    """Review decision with its annotations.

    Used for both the create and the batch/update entry points.
    """

    stage: ReviewStage
    decision: ReviewDecision
    overall_comments: Optional[str] = None
    question_comments: List[QuestionCommentInput] = Field(default_factory=list)
    jury_scores: List[JuryScoreInput] = Field(default_factory=list)
    total_score: Optional[float] = Field(default=None, ge=0, le=9999.99)
    deliberation_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    validation_checklist: Optional[List[str]] = None


class ResolveCommentRequest(BaseModel):
    is_resolved: bool = True
    revision_notes: Optional[str] = None


# Responses
class ReviewCommentResponse(BaseModel):
    id: UUID
    question_id: int
    comment: str
    is_critical: bool
    stage: Optional[str] = None
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    revision_notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class JuryScoreResponse(BaseModel):
    id: UUID
    question_id: int
    score: float
    comments: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewResponse(BaseModel):
    """Review projection of a session with its annotations."""

    session_id: UUID
    reviewer_id: int
    stage: str
    decision: str
    status: Optional[str] = None
    overall_comments: Optional[str] = None
    total_score: Optional[float] = None
    deliberation_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    validation_checklist: Optional[List[str]] = None
    reviewed_at: datetime
    question_comments: List[ReviewCommentResponse] = Field(default_factory=list)
    jury_scores: List[JuryScoreResponse] = Field(default_factory=list)


class BatchReviewResult(BaseModel):
    session_id: UUID
    reviewer_id: int
    stage: str
    decision: str
    status: str
    reviewed_at: datetime
    message: str
    is_new_review: bool
    total_comments_added: int = 0
    total_scores_added: int = 0
    comments_removed: int = 0
    scores_removed: int = 0


class ReviewListItem(BaseModel):
    session_id: UUID
    user_id: int
    group_id: int
    reviewer_id: Optional[int] = None
    stage: Optional[str] = None
    decision: Optional[str] = None
    status: str
    reviewed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None


class ReviewListResponse(BaseModel):
    reviews: List[ReviewListItem] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool


class ResolveCommentsResult(BaseModel):
    success: bool = True
    message: str
    resolved_count: int = 0


class JuryScoresResult(BaseModel):
    session_id: UUID
    total_scores_added: int
    message: str


class DeleteReviewResult(BaseModel):
    success: bool = True
    message: str
    comments_removed: int = 0
    scores_removed: int = 0
