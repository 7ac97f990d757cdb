"""Tests for the management CLI."""

import asyncio
import uuid

import pytest
from click.testing import CliRunner
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessment_lifecycle.cli import cli
from assessment_lifecycle.core.database import create_engine_for_url
from assessment_lifecycle.services.status_ledger import StatusLedgerService


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def runner():
    return CliRunner()


def _record(database_url, entity_id, statuses):
    async def _run():
        engine = create_engine_for_url(database_url)
        sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with sessions() as db:
            ledger = StatusLedgerService(db)
            for status in statuses:
                await ledger.record_status_change("session", entity_id, status, changed_by=7)
            await db.commit()
        await engine.dispose()

    asyncio.run(_run())


def test_init_db_and_status_commands(runner, database_url):
    result = runner.invoke(cli, ["init-db", "--database-url", database_url])
    assert result.exit_code == 0, result.output
    assert "tables created" in result.output

    entity_id = uuid.uuid4()
    _record(database_url, entity_id, ["draft", "in_progress", "submitted"])

    result = runner.invoke(cli, ["status-history", str(entity_id), "--database-url", database_url])
    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if " -> " in line]
    assert len(lines) == 3
    assert "in_progress -> submitted" in lines[0]
    assert "- -> draft" in lines[2]

    result = runner.invoke(cli, ["current-status", str(entity_id), "--database-url", database_url])
    assert result.exit_code == 0, result.output
    assert "submitted (v3" in result.output


def test_status_of_unknown_entity(runner, database_url):
    runner.invoke(cli, ["init-db", "--database-url", database_url])
    entity_id = str(uuid.uuid4())

    result = runner.invoke(
        cli, ["status-history", entity_id, "--entity-type", "review", "--database-url", database_url]
    )
    assert result.exit_code == 0
    assert "No status history" in result.output

    result = runner.invoke(cli, ["current-status", entity_id, "--database-url", database_url])
    assert result.exit_code == 1


def test_drop_db(runner, database_url):
    runner.invoke(cli, ["init-db", "--database-url", database_url])

    result = runner.invoke(cli, ["drop-db", "--yes", "--database-url", database_url])
    assert result.exit_code == 0, result.output
    assert "dropped" in result.output
