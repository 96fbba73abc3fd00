"""Per-source cursor: the newest native posting id already ingested."""
from __future__ import annotations

from .models import Cursor
from .storage import KeyValueStore


def cursor_key(source_id: str) -> str:
    return f"lastcheck:{source_id}"


class CursorStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def get(self, source_id: str) -> Cursor | None:
        data = self.kv.get_json(cursor_key(source_id))
        if not data or not data.get("lastJobId"):
            return None
        return Cursor.from_dict(source_id, data)

    def advance(self, source_id: str, newest_native_id: str) -> Cursor:
        """Overwrite the cursor with the newest id seen and stamp the check time.

        Callers only invoke this after a successful, non-empty fetch.
        """
        cursor = Cursor(
            source_id=source_id,
            last_job_id=str(newest_native_id),
            last_check_time=self.kv.now().isoformat() + "Z",
        )
        self.kv.put_json(cursor_key(source_id), cursor.to_dict())
        return cursor

    def reset(self, source_id: str) -> None:
        """Forget the cursor so the next poll runs the first-run window."""
        self.kv.delete(cursor_key(source_id))
