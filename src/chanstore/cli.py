import sys
import typer
from sqlmodel import Session
from chanstore.config import settings
from chanstore.logging import logger

app = typer.Typer(no_args_is_help=True)

PREVIEW_CHARS = 80


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[:limit - 3] + "..."


def _fail(action: str, e: Exception):
    logger.error(f"{action} failed: {e}")
    print(f"❌ Failed: {e}")
    raise typer.Exit(code=1)


@app.callback()
def main():
    """
    Conversation compaction store CLI.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check configuration and database health.
    """
    from chanstore import db

    logger.info("Running doctor check...")

    print("\n🩺 Chanstore Doctor\n")

    print(f"Python: {sys.version.split()[0]}")
    print(f"Prefix: {sys.prefix}")

    print("\n[Configuration]")
    print(f"DATABASE_URL:  {settings.DATABASE_URL}")
    print(f"AUTO_MIGRATE:  {settings.AUTO_MIGRATE}")
    print(f"DB_ECHO:       {settings.DB_ECHO}")
    print(f"LOG_LEVEL:     {settings.LOG_LEVEL}")

    path = db.sqlite_path(db.engine)
    if path is None:
        print("\n[Database File]          (not a file-backed SQLite database)")
    elif path.exists():
        print(f"\n[Database File]          ✅ Found: {path.absolute()}")
    else:
        print(f"\n[Database File]          ❌ Missing: {path.absolute()} (run 'chanstore db migrate')")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Schema management commands.")
app.add_typer(db_app, name="db")

@db_app.command("migrate")
def migrate():
    """Upgrade the schema to the head revision."""
    from chanstore import db
    from chanstore.migrations import apply_migrations, verify_schema
    try:
        applied = apply_migrations(db.engine)
        verify_schema(db.engine)
    except Exception as e:
        _fail("Migration", e)

    if not applied:
        print("✅ Schema already up to date.")
    for sc in applied:
        print(f"✅ Applied {sc.revision} ({sc.doc})")

@db_app.command("status")
def status():
    """Show the current revision and any pending ones."""
    from chanstore import db
    from chanstore.migrations import current_revision, head_revision, pending_migrations
    try:
        current = current_revision(db.engine)
        pending = pending_migrations(db.engine)
    except Exception as e:
        _fail("Status", e)

    print(f"current  {current or '(none)'}")
    print(f"head     {head_revision()}")
    for sc in pending:
        print(f"pending  {sc.revision}  {sc.doc}")

@db_app.command("verify")
def verify():
    """Check the live schema against the table models."""
    from chanstore import db
    from chanstore.migrations import verify_schema
    try:
        verify_schema(db.engine)
    except Exception as e:
        _fail("Verify", e)
    print("✅ Schema matches.")


summaries_app = typer.Typer(help="Compaction summary commands.")
app.add_typer(summaries_app, name="summaries")

@summaries_app.command("add")
def add_summary(
    channel_id: str,
    summary: str,
    turns: int = typer.Option(..., "--turns", help="Number of turns the summary covers"),
):
    """Record a compaction summary for a channel."""
    from chanstore import db
    from chanstore.history import save_compaction_summary
    try:
        with Session(db.engine) as session:
            row = save_compaction_summary(session, channel_id, summary, turns)
    except Exception as e:
        _fail("Saving summary", e)
    print(f"✅ Saved summary {row.id}")

@summaries_app.command("list")
def list_summaries(channel_id: str):
    """Show a channel's summaries, oldest first."""
    from chanstore import db
    from chanstore.history import load_compaction_summaries, turns_covered_total
    try:
        with Session(db.engine) as session:
            rows = load_compaction_summaries(session, channel_id)
            total = turns_covered_total(session, channel_id)
    except Exception as e:
        _fail("Listing summaries", e)
    if not rows:
        print("No summaries found.")
        return

    print(f"Found {len(rows)} summaries covering {total} turns:")
    for i, row in enumerate(rows, 1):
        print(f"{i}. [{row.created_at:%Y-%m-%d %H:%M:%S}] ({row.turns_covered} turns) {_preview(row.summary)}")


archive_app = typer.Typer(help="Transcript archive commands.")
app.add_typer(archive_app, name="archive")

@archive_app.command("add")
def add_archive(
    channel_id: str,
    source: str = typer.Argument(..., help="Transcript file, or '-' to read stdin"),
):
    """Archive a raw transcript for a channel."""
    from pathlib import Path
    from chanstore import db
    from chanstore.history import archive_transcript
    try:
        transcript = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
        with Session(db.engine) as session:
            row = archive_transcript(session, channel_id, transcript)
    except Exception as e:
        _fail("Archiving transcript", e)
    print(f"✅ Archived transcript {row.id} ({len(transcript)} chars)")

@archive_app.command("list")
def list_archives(channel_id: str):
    """Show a channel's archived transcripts, oldest first."""
    from chanstore import db
    from chanstore.history import load_archives
    try:
        with Session(db.engine) as session:
            rows = load_archives(session, channel_id)
    except Exception as e:
        _fail("Listing archives", e)
    if not rows:
        print("No archives found.")
        return

    print(f"Found {len(rows)} archives:")
    for i, row in enumerate(rows, 1):
        print(f"{i}. [{row.created_at:%Y-%m-%d %H:%M:%S}] [ID {row.id}] {_preview(row.transcript)}")

if __name__ == "__main__":
    app()
