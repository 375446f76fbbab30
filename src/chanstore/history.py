"""
Channel-scoped reads and writes of compaction summaries and archived transcripts.

Rows are append-only; nothing here updates or deletes. Database errors such as
a primary-key collision roll the session back and propagate unchanged.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import String, func, type_coerce
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
from chanstore.models import CompactionSummary, ConversationArchive
from chanstore.logging import logger, channel_scope


def _require_channel(channel_id: str) -> None:
    if not channel_id or not channel_id.strip():
        raise ValueError("channel_id must not be blank")


def _new_summary(channel_id: str, summary: str, turns_covered: int, summary_id: Optional[str]) -> CompactionSummary:
    _require_channel(channel_id)
    if turns_covered < 0:
        raise ValueError(f"turns_covered must be >= 0, got {turns_covered}")
    if not summary:
        raise ValueError("summary must not be empty")
    row = CompactionSummary(channel_id=channel_id, summary=summary, turns_covered=turns_covered)
    if summary_id is not None:
        row.id = summary_id
    return row


def _new_archive(channel_id: str, transcript: str, archive_id: Optional[str]) -> ConversationArchive:
    _require_channel(channel_id)
    row = ConversationArchive(channel_id=channel_id, transcript=transcript)
    if archive_id is not None:
        row.id = archive_id
    return row


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _sqlite_stamp(value: datetime) -> str:
    # CURRENT_TIMESTAMP stores whole seconds, ORM writes add microseconds
    value = _as_utc(value).replace(tzinfo=None)
    if value.microsecond:
        return value.strftime("%Y-%m-%d %H:%M:%S.%f")
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _commit(session: Session) -> None:
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise


def save_compaction_summary(
    session: Session,
    channel_id: str,
    summary: str,
    turns_covered: int,
    summary_id: Optional[str] = None,
) -> CompactionSummary:
    """Persist a summary covering `turns_covered` earlier turns of the channel."""
    with channel_scope(channel_id):
        row = _new_summary(channel_id, summary, turns_covered, summary_id)
        session.add(row)
        _commit(session)
        session.refresh(row)
        logger.info(f"Saved compaction summary {row.id} ({turns_covered} turns)")
        return row


def load_compaction_summaries(session: Session, channel_id: str) -> list[CompactionSummary]:
    """Return all summaries for a channel, oldest first."""
    return list(session.exec(
        select(CompactionSummary)
        .where(CompactionSummary.channel_id == channel_id)
        .order_by(CompactionSummary.created_at)
    ).all())


def load_compaction_summaries_between(
    session: Session,
    channel_id: str,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> list[CompactionSummary]:
    """
    Summaries created within [since, until], oldest first. Either bound may be omitted.

    Naive bounds are read as UTC. On SQLite, created_at is compared as stored
    text, so a row stamped by the column default at exactly `since` is kept.
    """
    query = select(CompactionSummary).where(CompactionSummary.channel_id == channel_id)
    if session.get_bind().dialect.name == "sqlite":
        stamp = type_coerce(CompactionSummary.created_at, String)
        if since is not None:
            query = query.where(stamp >= _sqlite_stamp(since))
        if until is not None:
            query = query.where(stamp < _sqlite_stamp(until + timedelta(microseconds=1)))
    else:
        if since is not None:
            query = query.where(CompactionSummary.created_at >= _as_utc(since))
        if until is not None:
            query = query.where(CompactionSummary.created_at <= _as_utc(until))
    return list(session.exec(query.order_by(CompactionSummary.created_at)).all())


def turns_covered_total(session: Session, channel_id: str) -> int:
    """Total number of turns the channel's summaries stand in for."""
    return session.exec(
        select(func.coalesce(func.sum(CompactionSummary.turns_covered), 0))
        .where(CompactionSummary.channel_id == channel_id)
    ).one()


def archive_transcript(
    session: Session,
    channel_id: str,
    transcript: str,
    archive_id: Optional[str] = None,
) -> ConversationArchive:
    """Preserve a raw transcript. An empty transcript is still recorded."""
    with channel_scope(channel_id):
        row = _new_archive(channel_id, transcript, archive_id)
        session.add(row)
        _commit(session)
        session.refresh(row)
        logger.info(f"Archived transcript {row.id} ({len(transcript)} chars)")
        return row


def load_archives(session: Session, channel_id: str) -> list[ConversationArchive]:
    """Return archived transcripts for a channel, oldest first."""
    return list(session.exec(
        select(ConversationArchive)
        .where(ConversationArchive.channel_id == channel_id)
        .order_by(ConversationArchive.created_at)
    ).all())


def compact_channel(
    session: Session,
    channel_id: str,
    transcript: str,
    summary: str,
    turns_covered: int,
    archive_id: Optional[str] = None,
    summary_id: Optional[str] = None,
) -> tuple[ConversationArchive, CompactionSummary]:
    """
    Archive the transcript, then record its summary, in a single commit.

    If either insert fails neither row is kept, so every summary written here
    has an archive covering the same turns.
    """
    with channel_scope(channel_id):
        archive = _new_archive(channel_id, transcript, archive_id)
        summary_row = _new_summary(channel_id, summary, turns_covered, summary_id)
        try:
            session.add(archive)
            session.flush()
            session.add(summary_row)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Compaction rolled back: {e}")
            raise
        session.refresh(archive)
        session.refresh(summary_row)
        logger.info(f"Compacted {turns_covered} turns (archive {archive.id}, summary {summary_row.id})")
        return archive, summary_row
