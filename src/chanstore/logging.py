import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Channel currently being read or written, shown in every log line
channel_ctx: ContextVar[Optional[str]] = ContextVar("channel_id", default=None)

def get_channel_id() -> str:
    """Return the active channel_id, or '-' outside of a channel operation."""
    return channel_ctx.get() or "-"

class ChannelFilter(logging.Filter):
    """Injects channel_id into log records."""
    def filter(self, record):
        record.channel_id = get_channel_id()
        return True

@contextmanager
def channel_scope(channel_id: str) -> Iterator[None]:
    """Tag log lines emitted inside the block with channel_id."""
    token = channel_ctx.set(channel_id)
    try:
        yield
    finally:
        channel_ctx.reset(token)

def configure_logging(level: str = "INFO"):
    """Configures the root logger with a standard format including channel_id."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplication
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | [%(channel_id)s] | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(ChannelFilter())

    logger.addHandler(handler)

    # SQL echo goes through sqlalchemy.engine; keep the pool quiet
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

def _initial_level() -> str:
    from chanstore.config import settings
    return settings.LOG_LEVEL.upper()

# Initialize logging on import with configured settings
configure_logging(_initial_level())
logger = logging.getLogger("chanstore")
