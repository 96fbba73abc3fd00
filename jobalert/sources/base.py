from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable

from ..errors import SourceSchemaError
from ..logger import get_logger
from ..models import Job, JobSource
from ..normalize import native_id_from_job_id, parse_timestamp, utcnow

logger = get_logger()

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class SourceAdapter(ABC):
    """Fetches one job board and normalizes its postings.

    Subclasses only know how to download and map their board's payload;
    ordering, cursor slicing and the first-run window live here.
    """

    platform: str = ""
    default_base_url: str = ""

    def __init__(
        self,
        source: JobSource,
        timeout: float = 15.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source = source
        self.timeout = timeout
        self.clock = clock or utcnow

    @property
    def base_url(self) -> str:
        return (self.source.base_url or self.default_base_url).rstrip("/")

    @property
    def label(self) -> str:
        return f"{self.platform}:{self.source.id}"

    @abstractmethod
    def fetch_postings(self) -> list[Job]:
        """Download every open posting, normalized, in any order."""

    def fetch(self, cursor_hint: str | None = None) -> list[Job]:
        """Postings newer than cursor_hint, newest first.

        Without a cursor only postings from the current UTC day are returned.
        """
        jobs = self.newest_first(self.fetch_postings())
        if cursor_hint is None:
            return self._first_run_window(jobs)
        return self._newer_than(jobs, str(cursor_hint))

    def native_id(self, job: Job) -> str:
        return native_id_from_job_id(self.source.id, job.id)

    @staticmethod
    def newest_first(jobs: list[Job]) -> list[Job]:
        # sorted() is stable with reverse=True, so ties keep upstream order
        return sorted(jobs, key=lambda j: parse_timestamp(j.posted_at) or _OLDEST, reverse=True)

    def _newer_than(self, jobs: list[Job], cursor_hint: str) -> list[Job]:
        for index, job in enumerate(jobs):
            if self.native_id(job) == cursor_hint:
                return jobs[:index]
        logger.warning(
            "Cursor posting not found upstream, returning nothing",
            source=self.source.id,
            cursor=cursor_hint,
            postings=len(jobs),
        )
        return []

    def _first_run_window(self, jobs: list[Job]) -> list[Job]:
        today = self.clock().astimezone(timezone.utc).date()
        recent = []
        for job in jobs:
            posted = parse_timestamp(job.posted_at)
            if posted is not None and posted.date() == today:
                recent.append(job)
        logger.info(
            "First poll of source, limited to today's postings",
            source=self.source.id,
            total=len(jobs),
            kept=len(recent),
        )
        return recent

    def _require(self, item: Any, *fields: str) -> dict:
        if not isinstance(item, dict):
            raise SourceSchemaError(f"{self.label}: posting is not an object: {item!r:.80}")
        for f in fields:
            if item.get(f) in (None, ""):
                raise SourceSchemaError(f"{self.label}: posting missing '{f}'")
        return item

    def _typed(self, item: dict, field: str, *types: type) -> Any:
        """item[field] when absent or an instance of types, else SourceSchemaError."""
        value = item.get(field)
        if value is not None and not isinstance(value, types):
            raise SourceSchemaError(
                f"{self.label}: posting field '{field}' is {type(value).__name__}: {value!r:.40}"
            )
        return value

    def _map_postings(self, items: list, to_job: Callable[[Any], Job]) -> list[Job]:
        jobs = []
        for item in items:
            try:
                jobs.append(to_job(item))
            except (TypeError, AttributeError, ValueError) as e:
                raise SourceSchemaError(f"{self.label}: malformed posting: {e}") from e
        return jobs
