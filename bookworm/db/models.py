"""
SQLAlchemy database models for Bookworm Sync.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, LargeBinary
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(Base):
    """A serialized record in the local cache, keyed by ISBN."""
    __tablename__ = 'cache_entry'

    key = Column(String(32), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    written_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class SyncLog(Base):
    """Detailed logs for sync operations."""
    __tablename__ = 'sync_log'

    id = Column(Integer, primary_key=True)
    level = Column(String(20), nullable=False)  # DEBUG, INFO, WARNING, ERROR
    message = Column(Text, nullable=False)
    sync_run_id = Column(String(50), index=True, nullable=True)  # Group logs by sync run
    created_at = Column(DateTime, default=_utcnow, index=True)


class SyncRun(Base):
    """Represents a single sync run (push of dirty books, then pull)."""
    __tablename__ = 'sync_run'

    id = Column(Integer, primary_key=True)
    run_id = Column(String(50), unique=True, index=True, nullable=False)
    started_at = Column(DateTime, default=_utcnow)
    completed_at = Column(DateTime, nullable=True)
    status = Column(String(20), default='running')  # running, completed, failed
    books_pushed = Column(Integer, default=0)
    books_skipped = Column(Integer, default=0)
    books_failed = Column(Integer, default=0)
    books_pulled = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
