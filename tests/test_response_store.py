"""Tests for auto-saved answer storage."""

import pytest

from assessment_lifecycle.core.exceptions import NotFoundError
from assessment_lifecycle.repositories.session_repository import ResponseSessionRepository
from assessment_lifecycle.schemas.session import AutoSaveRequest
from assessment_lifecycle.services.response_store import ResponseStoreService

GROUP_ID = 3
PROGRESS_GROUP_ID = 5
USER_ID = 7


@pytest.fixture
async def session(lifecycle, db_session):
    created = await lifecycle.create_or_resume_session(USER_ID, GROUP_ID)
    return await ResponseSessionRepository(db_session).get_by_id(created.id)


@pytest.fixture
def store(db_session, catalog):
    return ResponseStoreService(db_session, catalog)


async def test_first_save_creates_version_one(store, session, db_session):
    response = await store.save_response(
        session, AutoSaveRequest(question_id=101, value="42", time_spent=5)
    )
    await db_session.commit()

    assert response.auto_save_version == 1
    assert response.group_question_id == 1001
    assert response.numeric_value == 42.0
    assert response.is_draft is True
    assert response.time_spent_seconds == 5
    assert response.finalized_at is None


async def test_repeated_saves_bump_version_and_sum_time(store, session, db_session):
    deltas = [3, 0, 7, 11]
    for i, delta in enumerate(deltas):
        response = await store.save_response(
            session, AutoSaveRequest(question_id=101, value=str(i), time_spent=delta)
        )
    await db_session.commit()

    assert response.auto_save_version == len(deltas)
    assert response.time_spent_seconds == sum(deltas)
    assert response.numeric_value == 3.0
    assert len(await store.get_responses(session.id)) == 1


async def test_complete_save_stamps_finalized_at(store, session, db_session):
    first = await store.save_response(
        session, AutoSaveRequest(question_id=101, value=1, is_draft=False, is_complete=True)
    )
    finalized_at = first.finalized_at
    assert finalized_at is not None

    again = await store.save_response(
        session, AutoSaveRequest(question_id=101, value=2, is_draft=False, is_complete=True)
    )
    assert again.finalized_at == finalized_at

    reopened = await store.save_response(session, AutoSaveRequest(question_id=101, value=3))
    assert reopened.finalized_at is None
    assert reopened.is_complete is False


async def test_catalog_input_type_wins_over_request(store, session, db_session):
    response = await store.save_response(
        session, AutoSaveRequest(question_id=102, value=["x", "y"], input_type="text-open")
    )
    await db_session.commit()

    assert response.array_value == ["x", "y"]
    assert response.text_value is None
    assert store.to_response(response).value == ["x", "y"]


async def test_question_outside_group_is_not_found(store, session):
    with pytest.raises(NotFoundError):
        await store.save_response(session, AutoSaveRequest(question_id=999, value="x"))


async def test_finalize_draft_only_touches_drafts(store, session, db_session):
    await store.save_response(session, AutoSaveRequest(question_id=101, value=1))
    await store.save_response(
        session, AutoSaveRequest(question_id=102, value=True, is_draft=False, is_complete=True)
    )
    await db_session.commit()

    assert await store.finalize_draft(session.id, 101) is True
    assert await store.finalize_draft(session.id, 101) is False
    assert await store.finalize_draft(session.id, 102) is False
    await db_session.commit()

    response = await store.get_response(session.id, 101)
    assert response.is_draft is False
    assert response.finalized_at is not None


async def test_finalize_all_drafts_marks_them_complete(lifecycle, store, db_session):
    created = await lifecycle.create_or_resume_session(USER_ID, PROGRESS_GROUP_ID)
    session = await ResponseSessionRepository(db_session).get_by_id(created.id)
    for question_id in (201, 202, 203):
        await store.save_response(session, AutoSaveRequest(question_id=question_id, value="1"))
    await db_session.commit()

    assert await store.finalize_all_drafts(session.id) == 3
    await db_session.commit()

    responses = await store.get_responses(session.id)
    assert all(not r.is_draft and r.is_complete for r in responses)


async def test_concurrent_first_save_updates_existing_row(store, session, db_session, monkeypatch):
    await store.save_response(session, AutoSaveRequest(question_id=101, value="1", time_spent=3))
    await db_session.commit()

    real_lookup = store.repository.get_by_session_and_question
    calls = {"count": 0}

    async def missing_once(session_id, question_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await real_lookup(session_id, question_id)

    monkeypatch.setattr(store.repository, "get_by_session_and_question", missing_once)

    response = await store.save_response(
        session, AutoSaveRequest(question_id=101, value="2", time_spent=2)
    )
    await db_session.commit()

    assert calls["count"] == 2
    assert response.auto_save_version == 2
    assert response.time_spent_seconds == 5
    assert response.numeric_value == 2.0
    assert len(await store.get_responses(session.id)) == 1
