from pathlib import Path
from typing import Optional
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine
from chanstore.config import settings
from chanstore.errors import MigrationError
from chanstore.logging import logger


def _enable_transactional_ddl(engine: Engine) -> None:
    # pysqlite never opens a transaction before DDL, so CREATE statements
    # would autocommit one by one. Take over BEGIN so an upgrade is atomic.
    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Build an engine, defaulting to DATABASE_URL and DB_ECHO from settings."""
    engine = create_engine(
        url if url is not None else settings.DATABASE_URL,
        echo=settings.DB_ECHO if echo is None else echo,
    )
    if engine.dialect.name == "sqlite":
        _enable_transactional_ddl(engine)
    return engine


engine = make_engine()


def sqlite_path(bind: Engine) -> Optional[Path]:
    """Filesystem path of a file-backed SQLite database, else None."""
    url = bind.url
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


def init_db(bind: Optional[Engine] = None):
    """Bring the schema to the head revision and verify it."""
    from chanstore.migrations import apply_migrations, current_revision, head_revision, pending_migrations, verify_schema

    bind = bind or engine
    path = sqlite_path(bind)
    if path is not None and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Initializing database at {bind.url}")
    pending = pending_migrations(bind)
    if pending and not settings.AUTO_MIGRATE:
        raise MigrationError(
            f"Database schema out of date (current={current_revision(bind)}, expected={head_revision()}). "
            "Run 'chanstore db migrate' or set AUTO_MIGRATE=true."
        )
    apply_migrations(bind)
    verify_schema(bind)


def get_session():
    with Session(engine) as session:
        yield session
