from datetime import datetime, timezone
from sqlalchemy import text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin(SQLModel):
    # Rows are append-only, so there is no updated_at. Raw inserts that omit
    # created_at get the database clock.
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
