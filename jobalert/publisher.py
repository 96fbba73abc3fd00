"""
Dedup ledger and pending-notification markers.

job:<id>      permanent copy of every published job (the dedup signal)
new:job:<id>  same job, expiring after the retention window
"""
from __future__ import annotations

import json

from .logger import get_logger
from .models import Job
from .storage import KeyValueStore

logger = get_logger()

PUBLISHED_PREFIX = "job:"
PENDING_PREFIX = "new:job:"


def published_key(job_id: str) -> str:
    return f"{PUBLISHED_PREFIX}{job_id}"


def pending_key(job_id: str) -> str:
    return f"{PENDING_PREFIX}{job_id}"


class PublishStore:
    def __init__(self, kv: KeyValueStore, retention_seconds: int = 60 * 60 * 2) -> None:
        self.kv = kv
        self.retention_seconds = retention_seconds

    def publish_if_new(self, job: Job) -> bool:
        """Store job unless its id was published before.

        Returns True only for the call that created the ledger entry.
        """
        payload = json.dumps(job.to_dict(), ensure_ascii=False)
        if not self.kv.put_if_absent(published_key(job.id), payload):
            return False
        self.kv.put(pending_key(job.id), payload, ttl=self.retention_seconds)
        logger.debug("Published job", job_id=job.id, profession=job.profession)
        return True

    def is_published(self, job_id: str) -> bool:
        return self.kv.get(published_key(job_id)) is not None

    def pending(self) -> list[Job]:
        """Jobs whose pending marker has not expired yet."""
        return [Job.from_dict(data) for data in self.kv.items_json(PENDING_PREFIX).values()]
