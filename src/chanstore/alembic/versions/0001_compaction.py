"""Compaction summaries and conversation archives.

Summaries stack at the top of a channel's context; raw transcripts are
archived before compaction as an audit trail. Every statement is guarded
with IF NOT EXISTS so the upgrade is safe over a partially created schema.

Revision ID: 0001_compaction
Revises:
Create Date: 2026-02-11
"""

from alembic import op


revision = "0001_compaction"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create compaction_summaries and conversation_archives with their indexes."""
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS compaction_summaries (
            id TEXT PRIMARY KEY,
            channel_id TEXT NOT NULL,
            summary TEXT NOT NULL,
            turns_covered INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_compaction_channel ON compaction_summaries(channel_id)")
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_compaction_channel_time ON compaction_summaries(channel_id, created_at)"
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS conversation_archives (
            id TEXT PRIMARY KEY,
            channel_id TEXT NOT NULL,
            transcript TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_archives_channel ON conversation_archives(channel_id)")


def downgrade() -> None:
    """Drop both tables and their indexes."""
    op.execute("DROP INDEX IF EXISTS idx_archives_channel")
    op.execute("DROP TABLE IF EXISTS conversation_archives")
    op.execute("DROP INDEX IF EXISTS idx_compaction_channel_time")
    op.execute("DROP INDEX IF EXISTS idx_compaction_channel")
    op.execute("DROP TABLE IF EXISTS compaction_summaries")
