"""Alembic environment for the compaction store.

chanstore.migrations hands over an open connection (inside the caller's
transaction) through config.attributes. Without one, an engine is built
from sqlalchemy.url or DATABASE_URL.
"""
from alembic import context
from sqlalchemy.engine import Connection
from sqlmodel import SQLModel

# Register tables on SQLModel.metadata
from chanstore.models import CompactionSummary, ConversationArchive  # noqa: F401

config = context.config

target_metadata = SQLModel.metadata


def get_database_url() -> str:
    from chanstore.config import settings
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def run_migrations_offline() -> None:
    """Emit the migration SQL instead of running it."""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        transactional_ddl=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        do_run_migrations(connection)
        return

    from chanstore.db import make_engine
    connectable = make_engine(get_database_url())
    try:
        with connectable.connect() as connection:
            do_run_migrations(connection)
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
