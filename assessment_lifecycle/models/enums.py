"""Enumerations shared by the lifecycle models and services."""
from enum import Enum


class EntityType(str, Enum):
    """Kinds of entity the status ledger keeps history for."""

    SESSION = "session"
    REVIEW = "review"


class SessionStatus(str, Enum):
    """Combined session and review statuses recorded in the ledger."""

    # Session statuses
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    SUBMITTED = "submitted"

    # Review statuses
    PENDING_REVIEW = "pending_review"
    UNDER_REVIEW = "under_review"
    NEEDS_REVISION = "needs_revision"
    RESUBMITTED = "resubmitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PASSED_TO_JURY = "passed_to_jury"
    JURY_SCORING = "jury_scoring"
    JURY_DELIBERATION = "jury_deliberation"
    FINAL_DECISION = "final_decision"
    COMPLETED = "completed"
    DELIBERATED = "deliberated"


# Statuses from which a participant may keep working on the questionnaire
RESUMABLE_STATUSES = frozenset({SessionStatus.DRAFT, SessionStatus.PAUSED})

# Statuses a review may start from
REVIEWABLE_STATUSES = frozenset({SessionStatus.SUBMITTED, SessionStatus.RESUBMITTED})

TERMINAL_STATUSES = frozenset(
    {SessionStatus.APPROVED, SessionStatus.REJECTED, SessionStatus.COMPLETED}
)


class ReviewStage(str, Enum):
    """Review pipeline stages, in their advisory order."""

    ADMIN_VALIDATION = "admin_validation"
    JURY_SCORING = "jury_scoring"
    JURY_DELIBERATION = "jury_deliberation"
    FINAL_DECISION = "final_decision"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    PASS_TO_JURY = "pass_to_jury"
    NEEDS_DELIBERATION = "needs_deliberation"


DECISION_STATUS = {
    ReviewDecision.APPROVE: SessionStatus.APPROVED,
    ReviewDecision.REJECT: SessionStatus.REJECTED,
    ReviewDecision.REQUEST_REVISION: SessionStatus.NEEDS_REVISION,
    ReviewDecision.PASS_TO_JURY: SessionStatus.IN_PROGRESS,
    ReviewDecision.NEEDS_DELIBERATION: SessionStatus.DELIBERATED,
}


class InputType(str, Enum):
    """Question input types known to the value codec."""

    TEXT_OPEN = "text-open"
    NUMERIC = "numeric"
    NUMERIC_OPEN = "numeric-open"
    CHECKBOX = "checkbox"
    MULTIPLE_CHOICE = "multiple-choice"
    FILE_UPLOAD = "file-upload"
