"""Test configuration and fixtures."""

import pytest
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessment_lifecycle.core.database import create_engine_for_url, init_db
from assessment_lifecycle.services.collaborators import (
    GroupQuestion,
    InMemoryGroupMembership,
    InMemoryQuestionCatalog,
)
from assessment_lifecycle.services.review_workflow import ReviewWorkflowService
from assessment_lifecycle.services.session_lifecycle import SessionLifecycleService
from assessment_lifecycle.services.status_ledger import StatusLedgerService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Scenario group: two required questions
GROUP_ID = 3
USER_ID = 7

# Progress group: four required questions and one optional
PROGRESS_GROUP_ID = 5


@pytest.fixture
async def async_engine():
    """Create async test database engine."""
    engine = create_engine_for_url(TEST_DATABASE_URL, echo=False)
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def catalog() -> InMemoryQuestionCatalog:
    return InMemoryQuestionCatalog(
        {
            GROUP_ID: [
                GroupQuestion(101, 1001, "numeric", is_required=True, order_number=1),
                GroupQuestion(102, 1002, "checkbox", is_required=True, order_number=2),
            ],
            PROGRESS_GROUP_ID: [
                GroupQuestion(201, 2001, "text-open", order_number=1),
                GroupQuestion(202, 2002, "numeric-open", order_number=2),
                GroupQuestion(203, 2003, "multiple-choice", order_number=3),
                GroupQuestion(204, 2004, "file-upload", order_number=4),
                GroupQuestion(205, 2005, "text-open", is_required=False, order_number=5),
            ],
        }
    )


@pytest.fixture
def membership() -> InMemoryGroupMembership:
    return InMemoryGroupMembership([(USER_ID, GROUP_ID), (USER_ID, PROGRESS_GROUP_ID)])


@pytest.fixture
def ledger(db_session) -> StatusLedgerService:
    return StatusLedgerService(db_session)


@pytest.fixture
def lifecycle(db_session, membership, catalog) -> SessionLifecycleService:
    return SessionLifecycleService(db_session, membership, catalog)


@pytest.fixture
def reviews(db_session) -> ReviewWorkflowService:
    return ReviewWorkflowService(db_session)
