import uuid
from sqlalchemy import Index, Text
from sqlmodel import Field
from chanstore.models.base import CreatedAtMixin


def new_id() -> str:
    return str(uuid.uuid4())


class CompactionSummary(CreatedAtMixin, table=True):
    """Condensed text standing in for the earliest turns of a channel."""
    __tablename__ = "compaction_summaries"
    __table_args__ = (
        Index("idx_compaction_channel", "channel_id"),
        Index("idx_compaction_channel_time", "channel_id", "created_at"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    channel_id: str  # Not a foreign key: there is no channels table
    summary: str = Field(sa_type=Text)
    turns_covered: int


class ConversationArchive(CreatedAtMixin, table=True):
    """Raw transcript captured before compaction, kept for audit."""
    __tablename__ = "conversation_archives"
    __table_args__ = (
        Index("idx_archives_channel", "channel_id"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    channel_id: str
    transcript: str = Field(sa_type=Text)
