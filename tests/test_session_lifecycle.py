"""Tests for the session lifecycle service."""

import uuid

import pytest
from sqlalchemy import func, select

from assessment_lifecycle.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.schemas.review import CreateReviewRequest, QuestionCommentInput
from assessment_lifecycle.schemas.session import AutoSaveRequest, BatchAutoSaveRequest

GROUP_ID = 3
PROGRESS_GROUP_ID = 5
USER_ID = 7
REVIEWER_ID = 9


async def _statuses(lifecycle, session_id):
    history = await lifecycle.get_status_history(session_id)
    return [entry.status for entry in reversed(history)]


async def _answer_scenario_group(lifecycle, session_id):
    await lifecycle.save_response(
        session_id,
        AutoSaveRequest(question_id=101, value="42", is_draft=False, is_complete=True),
    )
    await lifecycle.save_response(
        session_id,
        AutoSaveRequest(question_id=102, value=["x"], is_draft=False, is_skipped=True),
    )


# ============================================================================
# CREATE / RESUME
# ============================================================================


async def test_create_records_draft(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    assert session.status == "draft"
    assert session.progress_percentage == 0
    assert session.submitted_at is None
    assert session.responses == []
    assert await _statuses(lifecycle, session.id) == ["draft"]


async def test_create_is_idempotent_and_resumes(lifecycle):
    first = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    second = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    third = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    assert first.id == second.id == third.id
    assert third.status == "in_progress"
    assert await _statuses(lifecycle, first.id) == ["draft", "in_progress"]


async def test_lost_create_race_returns_existing_session(lifecycle, db_session, monkeypatch):
    first = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    real_lookup = lifecycle.session_repository.get_by_user_and_group
    calls = {"count": 0}

    async def missing_once(user_id, group_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await real_lookup(user_id, group_id)

    monkeypatch.setattr(lifecycle.session_repository, "get_by_user_and_group", missing_once)

    second = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    assert calls["count"] == 2
    assert second.id == first.id
    rows = await db_session.execute(
        select(func.count(ResponseSession.id)).where(
            ResponseSession.user_id == USER_ID, ResponseSession.group_id == GROUP_ID
        )
    )
    assert rows.scalar() == 1
    assert await _statuses(lifecycle, first.id) == ["draft", "in_progress"]


async def test_create_gives_up_after_repeated_races(lifecycle, monkeypatch):
    await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    async def always_missing(user_id, group_id):
        return None

    monkeypatch.setattr(lifecycle.session_repository, "get_by_user_and_group", always_missing)

    with pytest.raises(ConflictError):
        await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)


async def test_unassigned_user_is_rejected(lifecycle):
    with pytest.raises(ValidationError):
        await lifecycle.create_or_resume_session(8, GROUP_ID)


async def test_missing_session_is_not_found(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.get_session(uuid.uuid4())
    with pytest.raises(NotFoundError):
        await lifecycle.save_response(uuid.uuid4(), AutoSaveRequest(question_id=101, value=1))


async def test_list_user_sessions(lifecycle):
    await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await lifecycle.create_or_resume_session(USER_ID, PROGRESS_GROUP_ID)

    sessions = await lifecycle.list_user_sessions(USER_ID)
    assert {s.group_id for s in sessions} == {GROUP_ID, PROGRESS_GROUP_ID}
    assert all(s.status == "draft" for s in sessions)
    assert await lifecycle.list_user_sessions(99) == []


async def test_list_sessions_by_current_status(lifecycle, reviews):
    submitted = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await _answer_scenario_group(lifecycle, submitted.id)
    await lifecycle.submit_session(submitted.id)
    draft = await lifecycle.create_or_resume_session(USER_ID, PROGRESS_GROUP_ID)

    queue = await lifecycle.list_sessions(status="submitted")
    assert [s.id for s in queue.sessions] == [submitted.id]
    assert queue.sessions[0].status == "submitted"
    assert queue.total == 1
    assert (await reviews.list_reviews(status="submitted")).total == 0

    first_page = await lifecycle.list_sessions(limit=1)
    assert first_page.total == 2
    assert [s.id for s in first_page.sessions] == [draft.id]
    assert first_page.has_next is True
    assert first_page.has_prev is False

    second_page = await lifecycle.list_sessions(page=2, limit=1)
    assert [s.id for s in second_page.sessions] == [submitted.id]
    assert second_page.has_next is False
    assert second_page.has_prev is True

    assert (await lifecycle.list_sessions(status="approved")).sessions == []


# ============================================================================
# PAUSE / RESUME
# ============================================================================


async def test_pause_and_resume(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    paused = await lifecycle.pause_session(session.id)
    assert paused.status == "paused"
    assert paused.message == "Session paused successfully"

    resumed = await lifecycle.resume_session(session.id)
    assert resumed.status == "in_progress"

    # Resuming a running session does not duplicate the entry
    await lifecycle.resume_session(session.id)
    assert await _statuses(lifecycle, session.id) == ["draft", "paused", "in_progress"]


# ============================================================================
# AUTO-SAVE
# ============================================================================


async def test_save_response_moves_draft_to_in_progress(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    result = await lifecycle.save_response(
        session.id, AutoSaveRequest(question_id=101, value="42", time_spent=4)
    )
    assert result.auto_save_version == 1
    assert result.progress_percentage == 0

    again = await lifecycle.save_response(
        session.id,
        AutoSaveRequest(question_id=101, value="43", is_draft=False, is_complete=True, time_spent=6),
    )
    assert again.auto_save_version == 2
    assert again.is_complete is True
    assert again.progress_percentage == 50

    loaded = await lifecycle.get_session(session.id)
    assert loaded.status == "in_progress"
    assert loaded.last_auto_save_at is not None
    assert loaded.progress_percentage == 50
    assert [(r.question_id, r.value, r.time_spent_seconds) for r in loaded.responses] == [
        (101, 43.0, 10)
    ]
    assert await _statuses(lifecycle, session.id) == ["draft", "in_progress"]


async def test_save_response_honours_precomputed_progress(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    result = await lifecycle.save_response(
        session.id, AutoSaveRequest(question_id=101, value=1, progress_percentage=80)
    )
    assert result.progress_percentage == 80
    assert (await lifecycle.get_session(session.id)).progress_percentage == 80


async def test_batch_save_reports_partial_failure(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    result = await lifecycle.batch_save_responses(
        session.id,
        BatchAutoSaveRequest(
            responses=[
                AutoSaveRequest(question_id=101, value="5", is_draft=False, is_complete=True),
                AutoSaveRequest(question_id=999, value="lost"),
                AutoSaveRequest(question_id=102, value=True, is_draft=False, is_complete=True),
            ],
            current_question_id=102,
        ),
    )

    assert result.success is True
    assert result.saved_count == 2
    assert result.failed_count == 1
    assert [e.question_id for e in result.errors] == [999]
    assert result.progress_percentage == 100

    loaded = await lifecycle.get_session(session.id)
    assert loaded.current_question_id == 102
    assert [r.question_id for r in loaded.responses] == [101, 102]


# ============================================================================
# NAVIGATION
# ============================================================================


async def test_update_position_finalizes_previous_draft(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await lifecycle.save_response(session.id, AutoSaveRequest(question_id=101, value="3"))

    result = await lifecycle.update_position(session.id, 102, previous_question_id=101)

    assert result.current_question_id == 102
    assert result.finalized_previous is True
    assert result.next_question.question_id == 102
    assert result.next_question.input_type == "checkbox"

    loaded = await lifecycle.get_session(session.id)
    assert loaded.current_question_id == 102
    assert loaded.responses[0].is_draft is False
    assert loaded.responses[0].finalized_at is not None


async def test_get_progress(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, PROGRESS_GROUP_ID)
    await lifecycle.save_response(
        session.id,
        AutoSaveRequest(question_id=201, value="a", is_draft=False, is_complete=True, progress_percentage=90),
    )

    summary = await lifecycle.get_progress(session.id)
    assert summary.total_questions == 4
    assert summary.answered_questions == 1
    assert summary.progress_percentage == 25
    assert (await lifecycle.get_session(session.id)).progress_percentage == 25


# ============================================================================
# SUBMISSION
# ============================================================================


async def test_submit_gate_is_all_or_nothing(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, PROGRESS_GROUP_ID)
    for question_id in (201, 202, 203):
        await lifecycle.save_response(
            session.id,
            AutoSaveRequest(question_id=question_id, value="1", is_draft=False, is_complete=True),
        )

    with pytest.raises(InvalidStateError):
        await lifecycle.submit_session(session.id)

    blocked = await lifecycle.get_session(session.id)
    assert blocked.submitted_at is None
    assert [r.auto_save_version for r in blocked.responses] == [1, 1, 1]
    assert await _statuses(lifecycle, session.id) == ["draft", "in_progress"]

    await lifecycle.save_response(
        session.id, AutoSaveRequest(question_id=204, value=["evidence.pdf"], is_complete=True)
    )
    result = await lifecycle.submit_session(session.id)

    assert result.status == "submitted"
    assert result.finalized_drafts == 1
    submitted = await lifecycle.get_session(session.id)
    assert submitted.submitted_at is not None
    assert all(not r.is_draft for r in submitted.responses)
    assert await _statuses(lifecycle, session.id) == ["draft", "in_progress", "submitted"]


async def test_saves_lock_the_session_row(lifecycle, monkeypatch):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)

    real_get_for_update = lifecycle.session_repository.get_for_update
    locked = []

    async def recording_get_for_update(session_id):
        locked.append(session_id)
        return await real_get_for_update(session_id)

    monkeypatch.setattr(lifecycle.session_repository, "get_for_update", recording_get_for_update)

    await lifecycle.save_response(session.id, AutoSaveRequest(question_id=101, value=1))
    assert locked == [session.id]

    await lifecycle.batch_save_responses(
        session.id,
        BatchAutoSaveRequest(responses=[AutoSaveRequest(question_id=102, value=True)]),
    )
    assert locked == [session.id] * 3


async def test_submitted_session_is_locked(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await _answer_scenario_group(lifecycle, session.id)
    await lifecycle.submit_session(session.id)

    with pytest.raises(InvalidStateError):
        await lifecycle.submit_session(session.id)
    with pytest.raises(InvalidStateError):
        await lifecycle.save_response(session.id, AutoSaveRequest(question_id=101, value=1))
    with pytest.raises(InvalidStateError):
        await lifecycle.pause_session(session.id)


async def test_resubmission_after_revision_request(lifecycle, reviews):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await _answer_scenario_group(lifecycle, session.id)
    await lifecycle.submit_session(session.id)

    await reviews.create_review(
        REVIEWER_ID,
        session.id,
        CreateReviewRequest(
            stage="admin_validation",
            decision="request_revision",
            question_comments=[QuestionCommentInput(question_id=101, comment="Check the number")],
        ),
    )

    # Editing is allowed again while the revision is open
    saved = await lifecycle.save_response(
        session.id,
        AutoSaveRequest(question_id=101, value="44", is_draft=False, is_complete=True),
    )
    assert saved.auto_save_version == 2

    result = await lifecycle.submit_session(session.id)
    assert result.status == "resubmitted"
    assert result.resolved_comments == 1

    review = await reviews.get_review(session.id)
    comment = review.question_comments[0]
    assert comment.is_resolved is True
    assert comment.revision_notes == "Automatically resolved on resubmission"
    assert await _statuses(lifecycle, session.id) == [
        "draft",
        "in_progress",
        "submitted",
        "needs_revision",
        "resubmitted",
    ]


async def test_current_status(lifecycle):
    session = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    await lifecycle.pause_session(session.id)

    current = await lifecycle.get_current_status(session.id)
    assert current.status == "paused"
    assert current.version == 2
