"""
Exception types raised by the compaction store.

Database driver errors (IntegrityError, OperationalError) are not wrapped
outside of migrations; they reach the caller as SQLAlchemy raised them.
"""
from typing import Optional


class ChanstoreError(Exception):
    """Base class for chanstore errors."""


class MigrationError(ChanstoreError):
    """A schema upgrade failed, was refused, or found an unknown revision."""

    def __init__(self, message: str, revision: Optional[str] = None):
        super().__init__(message)
        self.revision = revision


class SchemaConflictError(MigrationError):
    """The live schema does not match the tables the migrations create."""

    def __init__(self, problems: list[str]):
        super().__init__("Schema conflict: " + "; ".join(problems))
        self.problems = problems
