"""
Key-value storage over the kv_entries table.

Entries may carry an expiry; an expired entry is invisible to every read
and is physically removed by purge_expired() or when its key is rewritten.
"""

import json
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import KVEntry, get_session, init_database
from .errors import StoreUnavailable
from .normalize import utcnow


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class KeyValueStore:
    """JSON-friendly key-value store with optional per-key TTL."""

    def __init__(self, database_url: str, clock: Optional[Callable[[], datetime]] = None):
        self.database_url = database_url
        self._clock = clock or utcnow
        try:
            self.engine = init_database(database_url)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Could not open store {database_url}: {e}") from e

    def now(self) -> datetime:
        """Current time as naive UTC, the form stored in expires_at."""
        return _naive_utc(self._clock())

    @contextmanager
    def _session(self, conflict_ok: bool = False) -> Iterator:
        """Session scope; store errors become StoreUnavailable.

        With conflict_ok, IntegrityError propagates so the caller can treat a
        lost insert race as an answer rather than a failure.
        """
        session = get_session(self.engine)
        try:
            yield session
        except IntegrityError as e:
            session.rollback()
            if conflict_ok:
                raise
            raise StoreUnavailable(f"Store write conflicted: {e}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailable(f"Store operation failed: {e}") from e
        finally:
            session.close()

    def _expiry(self, ttl: Optional[int]) -> Optional[datetime]:
        if ttl is None:
            return None
        return self.now() + timedelta(seconds=ttl)

    def _is_live(self, entry: KVEntry, now: datetime) -> bool:
        return entry.expires_at is None or entry.expires_at > now

    def get(self, key: str) -> Optional[str]:
        with self._session() as session:
            entry = session.get(KVEntry, key)
            if entry is None or not self._is_live(entry, self.now()):
                return None
            return entry.value

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Insert or overwrite key. ttl is in seconds; None means no expiry."""
        with self._session() as session:
            entry = session.get(KVEntry, key)
            if entry is None:
                session.add(KVEntry(key=key, value=value, expires_at=self._expiry(ttl)))
            else:
                entry.value = value
                entry.expires_at = self._expiry(ttl)
            session.commit()

    def put_json(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        self.put(key, json.dumps(data, ensure_ascii=False), ttl=ttl)

    def put_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Write key only if no live entry exists.

        The primary key makes this safe against concurrent writers: the
        loser of an insert race gets an IntegrityError and reports False.

        Returns:
            True if this call created the entry
        """
        try:
            with self._session(conflict_ok=True) as session:
                entry = session.get(KVEntry, key)
                if entry is not None:
                    if self._is_live(entry, self.now()):
                        return False
                    session.delete(entry)
                    session.flush()
                session.add(KVEntry(key=key, value=value, expires_at=self._expiry(ttl)))
                session.commit()
                return True
        except IntegrityError:
            return False

    def delete(self, key: str) -> None:
        with self._session() as session:
            session.execute(delete(KVEntry).where(KVEntry.key == key))
            session.commit()

    def keys(self, prefix: str = "") -> List[str]:
        """Live keys starting with prefix, sorted."""
        now = self.now()
        with self._session() as session:
            stmt = (
                select(KVEntry.key)
                .where(KVEntry.key.startswith(prefix, autoescape=True))
                .where(or_(KVEntry.expires_at.is_(None), KVEntry.expires_at > now))
                .order_by(KVEntry.key)
            )
            return list(session.scalars(stmt))

    def items_json(self, prefix: str = "") -> Dict[str, Any]:
        """Decode every live entry under prefix."""
        now = self.now()
        with self._session() as session:
            stmt = (
                select(KVEntry)
                .where(KVEntry.key.startswith(prefix, autoescape=True))
                .where(or_(KVEntry.expires_at.is_(None), KVEntry.expires_at > now))
                .order_by(KVEntry.key)
            )
            return {e.key: json.loads(e.value) for e in session.scalars(stmt)}

    def count(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(KVEntry)) or 0

    def purge_expired(self) -> int:
        """Physically delete expired entries. Returns the number removed."""
        now = self.now()
        with self._session() as session:
            result = session.execute(
                delete(KVEntry).where(KVEntry.expires_at.is_not(None)).where(KVEntry.expires_at <= now)
            )
            session.commit()
            return result.rowcount or 0
