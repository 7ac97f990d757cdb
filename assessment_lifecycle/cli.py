"""CLI commands for database management and status inspection."""
import asyncio
import logging
import sys
import uuid
from typing import Optional

import click
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessment_lifecycle.core.config import settings
from assessment_lifecycle.core.database import (
    async_session_maker,
    create_engine_for_url,
    drop_db,
    engine,
    init_db,
)
from assessment_lifecycle.core.exceptions import ApplicationError
from assessment_lifecycle.models.enums import EntityType
from assessment_lifecycle.services.status_ledger import StatusLedgerService

database_url_option = click.option(
    "--database-url",
    default=None,
    help="Database URL (defaults to DATABASE_URL from settings)",
)
entity_type_option = click.option(
    "--entity-type",
    type=click.Choice([e.value for e in EntityType]),
    default=EntityType.SESSION.value,
    show_default=True,
    help="Ledger entity type",
)


def _engine_and_sessions(database_url: Optional[str]):
    if not database_url:
        return engine, async_session_maker
    target = create_engine_for_url(database_url)
    return target, async_sessionmaker(target, class_=AsyncSession, expire_on_commit=False)


@click.group()
def cli():
    """Assessment lifecycle management commands."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("init-db")
@database_url_option
def init_db_command(database_url: Optional[str]):
    """Create all database tables."""

    async def _create():
        target, _ = _engine_and_sessions(database_url)
        try:
            await init_db(target)
            click.echo("✓ All tables created successfully")
        except SQLAlchemyError as e:
            click.echo(f"✗ Error creating tables: {e}")
            sys.exit(1)
        finally:
            await target.dispose()

    asyncio.run(_create())


@cli.command("drop-db")
@database_url_option
@click.confirmation_option(prompt="Drop all tables?")
def drop_db_command(database_url: Optional[str]):
    """Drop all database tables."""

    async def _drop():
        target, _ = _engine_and_sessions(database_url)
        try:
            await drop_db(target)
            click.echo("✓ All tables dropped")
        except SQLAlchemyError as e:
            click.echo(f"✗ Error dropping tables: {e}")
            sys.exit(1)
        finally:
            await target.dispose()

    asyncio.run(_drop())


@cli.command("status-history")
@click.argument("entity_id", type=click.UUID)
@entity_type_option
@database_url_option
def status_history(entity_id: uuid.UUID, entity_type: str, database_url: Optional[str]):
    """Show the status history of an entity, newest first."""

    async def _show_history():
        target, sessions = _engine_and_sessions(database_url)
        try:
            async with sessions() as db:
                ledger = StatusLedgerService(db)
                found = False
                async for entry in ledger.iter_status_history(entity_type, entity_id):
                    found = True
                    changed_by = entry.changed_by if entry.changed_by is not None else "-"
                    click.echo(
                        f"v{entry.version:<4} {entry.changed_at:%Y-%m-%d %H:%M:%S}  "
                        f"{entry.previous_status or '-'} -> {entry.status}  (by {changed_by})"
                    )
                if not found:
                    click.echo(f"No status history for {entity_type} {entity_id}")
        except (ApplicationError, SQLAlchemyError) as e:
            click.echo(f"✗ Error reading status history: {e}")
            sys.exit(1)
        finally:
            await target.dispose()

    asyncio.run(_show_history())


@cli.command("current-status")
@click.argument("entity_id", type=click.UUID)
@entity_type_option
@database_url_option
def current_status(entity_id: uuid.UUID, entity_type: str, database_url: Optional[str]):
    """Show the current status of an entity."""

    async def _show_status():
        target, sessions = _engine_and_sessions(database_url)
        try:
            async with sessions() as db:
                current = await StatusLedgerService(db).get_current_status(entity_type, entity_id)
            if current is None:
                click.echo(f"No status recorded for {entity_type} {entity_id}")
                sys.exit(1)
            click.echo(f"{current.status} (v{current.version}, {current.changed_at:%Y-%m-%d %H:%M:%S})")
        except (ApplicationError, SQLAlchemyError) as e:
            click.echo(f"✗ Error reading status: {e}")
            sys.exit(1)
        finally:
            await target.dispose()

    asyncio.run(_show_status())


if __name__ == "__main__":
    cli()
