"""
Database schema and connection management.

All pipeline state lives in a single key-value table stored through
SQLAlchemy (SQLite by default).
"""

from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KVEntry(Base):
    """One key-value record, optionally expiring."""

    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)  # e.g. job:<jobId>, lastcheck:<sourceId>
    value = Column(Text, nullable=False)  # JSON-encoded
    expires_at = Column(DateTime, nullable=True, index=True)  # naive UTC, NULL = never
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    File-backed SQLite databases get their parent directory created and are
    opened with check_same_thread disabled so sources can be polled from a
    thread pool.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False}
    if not url.database or url.database == ":memory:":
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def init_database(database_url: str) -> Engine:
    """
    Initialize database and create tables.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine bound to the initialized database
    """
    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    return engine


def get_session(engine: Engine):
    """
    Get database session.

    Args:
        engine: Engine returned by init_database

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=engine)
    return Session()
