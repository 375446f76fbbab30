import pytest
from alembic import command
from sqlalchemy import inspect, text
from chanstore.db import make_engine
from chanstore.errors import MigrationError, SchemaConflictError
from chanstore.migrations import (
    apply_migrations,
    current_revision,
    get_alembic_config,
    head_revision,
    pending_migrations,
    verify_schema,
)

SCHEMA_OBJECTS = [
    ("table", "compaction_summaries"),
    ("table", "conversation_archives"),
    ("index", "idx_compaction_channel"),
    ("index", "idx_compaction_channel_time"),
    ("index", "idx_archives_channel"),
]

@pytest.fixture(name="engine")
def engine_fixture():
    engine = make_engine("sqlite://")
    yield engine
    engine.dispose()

def count_objects(engine, kind, name):
    with engine.connect() as conn:
        return conn.execute(
            text("SELECT COUNT(*) FROM sqlite_master WHERE type = :kind AND name = :name"),
            {"kind": kind, "name": name},
        ).scalar_one()

def test_fresh_database_has_pending_compaction(engine):
    assert head_revision() == "0001_compaction"
    assert current_revision(engine) is None
    assert [sc.revision for sc in pending_migrations(engine)] == ["0001_compaction"]

def test_apply_creates_tables_and_indexes(engine):
    applied = apply_migrations(engine)
    assert [sc.revision for sc in applied] == ["0001_compaction"]

    for kind, name in SCHEMA_OBJECTS:
        assert count_objects(engine, kind, name) == 1, name

    assert current_revision(engine) == "0001_compaction"
    assert pending_migrations(engine) == []
    verify_schema(engine)

def test_apply_twice_is_idempotent(engine):
    apply_migrations(engine)
    assert apply_migrations(engine) == []

    for kind, name in SCHEMA_OBJECTS:
        assert count_objects(engine, kind, name) == 1, name
    with engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM alembic_version")).scalar_one() == 1

def test_reapplying_statements_keeps_data(engine):
    apply_migrations(engine)
    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO compaction_summaries (id, channel_id, summary, turns_covered) "
            "VALUES ('s1', 'chan', 'kept', 3)"
        ))
        # Forget the revision so every statement runs again
        conn.execute(text("DELETE FROM alembic_version"))

    assert [sc.revision for sc in apply_migrations(engine)] == ["0001_compaction"]
    with engine.connect() as conn:
        summary = conn.execute(text("SELECT summary FROM compaction_summaries WHERE id = 's1'")).scalar_one()
    assert summary == "kept"

def test_unknown_revision_is_refused(engine):
    apply_migrations(engine)
    with engine.begin() as conn:
        conn.execute(text("UPDATE alembic_version SET version_num = 'ffff_from_the_future'"))

    with pytest.raises(MigrationError) as exc:
        pending_migrations(engine)
    assert exc.value.revision == "ffff_from_the_future"

    with pytest.raises(MigrationError):
        apply_migrations(engine)

def test_failed_upgrade_rolls_back(engine):
    # The archive index cannot be built over this table, after the summary
    # table has already been created in the same upgrade
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE conversation_archives (id TEXT PRIMARY KEY, body TEXT)"))

    with pytest.raises(MigrationError) as exc:
        apply_migrations(engine)
    assert exc.value.revision == "0001_compaction"
    assert exc.value.__cause__ is not None

    tables = inspect(engine).get_table_names()
    assert "compaction_summaries" not in tables
    assert "alembic_version" not in tables
    assert current_revision(engine) is None

def test_downgrade_removes_schema(engine):
    apply_migrations(engine)

    alembic_cfg = get_alembic_config()
    with engine.begin() as conn:
        alembic_cfg.attributes["connection"] = conn
        command.downgrade(alembic_cfg, "base")

    tables = inspect(engine).get_table_names()
    assert "compaction_summaries" not in tables
    assert "conversation_archives" not in tables
    assert current_revision(engine) is None

def test_verify_schema_reports_missing_columns(engine):
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE conversation_archives (id TEXT PRIMARY KEY, channel_id TEXT NOT NULL, "
            "created_at TIMESTAMP)"
        ))
    apply_migrations(engine)

    with pytest.raises(SchemaConflictError) as exc:
        verify_schema(engine)
    problems = exc.value.problems
    assert "missing column conversation_archives.transcript" in problems
    assert "conversation_archives.created_at allows NULL" in problems
    assert all("compaction_summaries" not in p for p in problems)

def test_verify_schema_reports_type_conflicts(engine):
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE compaction_summaries (id TEXT PRIMARY KEY, channel_id TEXT NOT NULL, "
            "summary BLOB NOT NULL, turns_covered TEXT NOT NULL, created_at TEXT NOT NULL)"
        ))
    apply_migrations(engine)

    with pytest.raises(SchemaConflictError) as exc:
        verify_schema(engine)
    problems = exc.value.problems
    assert "compaction_summaries.summary has type BLOB" in problems
    assert "compaction_summaries.turns_covered has type TEXT" in problems
    assert "compaction_summaries.created_at has type TEXT" in problems
    assert not any(".channel_id" in p or ".id " in p for p in problems)

def test_verify_schema_on_empty_database(engine):
    with pytest.raises(SchemaConflictError) as exc:
        verify_schema(engine)
    assert "missing table compaction_summaries" in exc.value.problems
    assert "missing table conversation_archives" in exc.value.problems
