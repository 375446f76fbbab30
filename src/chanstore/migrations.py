"""
Schema migrations for the compaction store, run through Alembic.

Revision scripts live in chanstore/alembic/versions. Their statements are
idempotent (IF NOT EXISTS), and an upgrade runs on the caller's engine inside
a single transaction, so a failed upgrade leaves nothing behind.
"""
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import Script, ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chanstore.errors import MigrationError, SchemaConflictError
from chanstore.logging import logger
from chanstore.models import CompactionSummary, ConversationArchive

SCRIPT_LOCATION = Path(__file__).parent / "alembic"


def get_alembic_config() -> Config:
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    alembic_cfg.set_main_option("path_separator", "os")
    return alembic_cfg


def head_revision() -> Optional[str]:
    script = ScriptDirectory.from_config(get_alembic_config())
    return script.get_current_head()


def current_revision(engine: Engine) -> Optional[str]:
    """Revision recorded in alembic_version, or None on an unmigrated database."""
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        return context.get_current_revision()


def pending_migrations(engine: Engine) -> list[Script]:
    """
    Return the revisions between the database's current one and head, oldest first.

    Raises MigrationError if the database records a revision this build does
    not define.
    """
    script = ScriptDirectory.from_config(get_alembic_config())
    current = current_revision(engine)

    # walk_revisions goes from head down to base
    history = list(script.walk_revisions())
    if current is not None and current not in {sc.revision for sc in history}:
        raise MigrationError(
            f"Database is at revision {current} which this build does not define",
            revision=current,
        )

    pending = []
    for sc in history:
        if sc.revision == current:
            break
        pending.append(sc)
    return list(reversed(pending))


def apply_migrations(engine: Engine) -> list[Script]:
    """Upgrade to head and return the revisions that ran."""
    pending = pending_migrations(engine)
    if not pending:
        logger.info("Schema is up to date.")
        return []

    target = pending[-1].revision
    logger.info(f"Upgrading schema to {target} ({len(pending)} revision(s))")
    alembic_cfg = get_alembic_config()
    try:
        with engine.begin() as conn:
            alembic_cfg.attributes["connection"] = conn
            command.upgrade(alembic_cfg, "head")
    except SQLAlchemyError as e:
        logger.error(f"Schema upgrade rolled back: {e}")
        raise MigrationError(f"Upgrade to {target} failed: {e}", revision=target) from e

    if current_revision(engine) != target:
        raise MigrationError("Database migration did not reach expected revision", revision=target)

    logger.info(f"Applied {len(pending)} revision(s).")
    return pending


def verify_schema(engine: Engine) -> None:
    """
    Check the live schema against the table models.

    SQLite accepts CREATE TABLE IF NOT EXISTS over an unrelated table of the
    same name, so a clean upgrade does not prove the columns are right.
    Raises SchemaConflictError listing every problem found.
    """
    inspector = inspect(engine)
    problems: list[str] = []

    for table in (CompactionSummary.__table__, ConversationArchive.__table__):
        if not inspector.has_table(table.name):
            problems.append(f"missing table {table.name}")
            continue

        live_columns = {c["name"]: c for c in inspector.get_columns(table.name)}
        primary_key = set(inspector.get_pk_constraint(table.name)["constrained_columns"])
        for column in table.columns:
            found = live_columns.get(column.name)
            if found is None:
                problems.append(f"missing column {table.name}.{column.name}")
                continue

            # TEXT and VARCHAR both reduce to String, TIMESTAMP to DateTime
            if found["type"]._type_affinity is not column.type._type_affinity:
                problems.append(f"{table.name}.{column.name} has type {found['type']}")

            if column.primary_key:
                if column.name not in primary_key:
                    problems.append(f"{table.name}.{column.name} is not the primary key")
            elif not column.nullable and found["nullable"]:
                problems.append(f"{table.name}.{column.name} allows NULL")

        live_indexes = {ix["name"]: list(ix["column_names"]) for ix in inspector.get_indexes(table.name)}
        for index in table.indexes:
            columns = [c.name for c in index.columns]
            if live_indexes.get(index.name) != columns:
                problems.append(f"missing index {index.name} on {table.name}({', '.join(columns)})")

    if problems:
        for problem in problems:
            logger.error(f"Schema check: {problem}")
        raise SchemaConflictError(problems)
    logger.info("Schema verified.")
