"""Pydantic schemas for sessions, auto-save and progress."""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# Requests
class AutoSaveRequest(BaseModel):
    """Single auto-save of one question's answer."""

    question_id: int = Field(gt=0)
    value: Any = None
    input_type: str = "text-open"
    is_draft: bool = True
    is_complete: bool = False
    is_skipped: bool = False
    time_spent: int = Field(default=0, ge=0, description="Seconds spent since last save")
    # Trusted client-calculated progress; bypasses recomputation when set
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)


class BatchAutoSaveRequest(BaseModel):
    """Ordered list of auto-saves applied best-effort."""

    responses: List[AutoSaveRequest] = Field(default_factory=list)
    current_question_id: Optional[int] = Field(default=None, gt=0)
    progress_percentage: Optional[int] = Field(default=None, ge=0, le=100)


# Responses
class QuestionResponseResponse(BaseModel):
    """Stored answer with its reconstructed value."""

    id: UUID
    session_id: UUID
    question_id: int
    group_question_id: int
    value: Any = None
    text_value: Optional[str] = None
    numeric_value: Optional[float] = None
    boolean_value: Optional[bool] = None
    array_value: Any = None
    is_draft: bool
    is_complete: bool
    is_skipped: bool
    auto_save_version: int
    time_spent_seconds: int
    first_answered_at: datetime
    last_modified_at: datetime
    finalized_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ResponseSessionResponse(BaseModel):
    """Session with its ledger status and answers."""

    id: UUID
    user_id: int
    group_id: int
    status: Optional[str] = None
    current_question_id: Optional[int] = None
    progress_percentage: int
    auto_save_enabled: bool
    started_at: datetime
    last_auto_save_at: Optional[datetime] = None
    last_activity_at: datetime
    completed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    responses: List[QuestionResponseResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ProgressSummary(BaseModel):
    total_questions: int = 0
    answered_questions: int = 0
    skipped_questions: int = 0
    progress_percentage: int = 0


class AutoSaveResult(BaseModel):
    success: bool = True
    auto_save_version: int
    last_saved: datetime
    is_complete: bool
    is_skipped: bool
    progress_percentage: int


class BatchItemError(BaseModel):
    """Failure of one item in a batch auto-save."""

    question_id: int
    error: str


class BatchAutoSaveResult(BaseModel):
    success: bool = True
    saved_count: int = 0
    failed_count: int = 0
    errors: List[BatchItemError] = Field(default_factory=list)
    last_saved: datetime
    progress_percentage: int


class NextQuestion(BaseModel):
    question_id: int
    group_question_id: int
    input_type: str
    is_required: bool
    order_number: int


class PositionResult(BaseModel):
    success: bool = True
    current_question_id: int
    progress_percentage: int
    finalized_previous: bool = False
    next_question: Optional[NextQuestion] = None


class SessionActionResult(BaseModel):
    """Result of pausing or resuming a session."""

    message: str
    status: Optional[str] = None
    last_activity_at: datetime
    current_question_id: Optional[int] = None


class SubmitSessionResult(BaseModel):
    success: bool = True
    message: str
    status: str
    submitted_at: datetime
    finalized_drafts: int = 0
    resolved_comments: int = 0


class SessionListResponse(BaseModel):
    sessions: List[ResponseSessionResponse] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool
