"""
Poll cycle orchestration.

One cycle walks every configured source: fetch from the cursor, advance the
cursor to the newest posting, classify, publish what is new. Afterwards the
dispatcher fans pending jobs out to subscribers. A failing source is
reported in the summary and never stops the other sources.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from .classify import DEFAULT_REGION, KeywordProfessionMatcher, RegionMatcher, accept
from .config import PipelineConfig
from .cursors import CursorStore
from .errors import JobAlertError, SourceError, StoreUnavailable
from .logger import get_logger
from .models import JobSource, Profession
from .notify import Dispatcher
from .publisher import PublishStore
from .singleflight import KeyedLock
from .sources import SourceAdapter, build_adapter
from .storage import KeyValueStore

logger = get_logger()

# Shared by every Pipeline in the process so overlapping cycles serialize per source
SOURCE_LOCKS = KeyedLock()

AdapterFactory = Callable[..., SourceAdapter]


@dataclass
class SourceOutcome:
    source_id: str
    ok: bool = True
    jobs_found: int = 0
    jobs_stored: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "sourceId": self.source_id,
            "ok": self.ok,
            "jobsFound": self.jobs_found,
            "jobsStored": self.jobs_stored,
            "error": self.error,
        }


@dataclass
class CycleSummary:
    outcomes: list[SourceOutcome] = field(default_factory=list)
    notifications_sent: int = 0
    dispatch_error: str | None = None

    @property
    def total_jobs_found(self) -> int:
        return sum(o.jobs_found for o in self.outcomes)

    @property
    def total_jobs_stored(self) -> int:
        return sum(o.jobs_stored for o in self.outcomes)

    @property
    def failed_sources(self) -> list[str]:
        return [o.source_id for o in self.outcomes if not o.ok]

    def to_dict(self) -> dict:
        data = {
            "message": "Job search completed",
            "totalJobsFound": self.total_jobs_found,
            "totalJobsStored": self.total_jobs_stored,
            "notificationsSent": self.notifications_sent,
            "sources": [o.to_dict() for o in self.outcomes],
        }
        if self.dispatch_error:
            data["dispatchError"] = self.dispatch_error
        return data


class Pipeline:
    def __init__(
        self,
        kv: KeyValueStore,
        retention_seconds: int = 60 * 60 * 2,
        http_timeout: float = 15.0,
        max_workers: int = 1,
        adapter_factory: AdapterFactory = build_adapter,
        dispatcher: Dispatcher | None = None,
        region: RegionMatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.kv = kv
        self.cursors = CursorStore(kv)
        self.publisher = PublishStore(kv, retention_seconds)
        self.http_timeout = http_timeout
        self.max_workers = max(1, max_workers)
        self.adapter_factory = adapter_factory
        self.dispatcher = dispatcher
        self.region = region or DEFAULT_REGION
        self.clock = clock

    def poll_source(self, source: JobSource, professions: Sequence[Profession]) -> SourceOutcome:
        """Run one source through fetch, cursor advance, classify and publish."""
        outcome = SourceOutcome(source_id=source.id)
        with SOURCE_LOCKS.hold(source.id):
            try:
                self._poll(source, professions, outcome)
            except SourceError as e:
                outcome.ok = False
                outcome.error = str(e)
                logger.warning("Source failed, skipping", source=source.id, error_type=type(e).__name__, error=str(e))
            except StoreUnavailable as e:
                outcome.ok = False
                outcome.error = f"store unavailable: {e}"
                logger.error("Store failed while processing source", source=source.id, error=str(e))
        logger.record_jobs(found=outcome.jobs_found, stored=outcome.jobs_stored)
        return outcome

    def _poll(self, source: JobSource, professions: Sequence[Profession], outcome: SourceOutcome) -> None:
        cursor = self.cursors.get(source.id)
        adapter = self.adapter_factory(source, timeout=self.http_timeout, clock=self.clock)
        jobs = adapter.fetch(cursor.last_job_id if cursor else None)
        outcome.jobs_found = len(jobs)
        if not jobs:
            logger.info("No new postings", source=source.id)
            return

        self.cursors.advance(source.id, adapter.native_id(jobs[0]))

        matcher = KeywordProfessionMatcher(professions)
        for job in jobs:
            accepted = accept(job, professions, region=self.region, matcher=matcher)
            if accepted is None:
                continue
            if self.publisher.publish_if_new(accepted):
                outcome.jobs_stored += 1

        logger.info(
            "Source processed",
            source=source.id,
            found=outcome.jobs_found,
            stored=outcome.jobs_stored,
        )

    def poll_all(self, config: PipelineConfig) -> list[SourceOutcome]:
        if self.max_workers == 1 or len(config.sources) <= 1:
            return [self.poll_source(s, config.professions) for s in config.sources]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self.poll_source, s, config.professions) for s in config.sources]
            return [f.result() for f in futures]

    def run_cycle(self, config: PipelineConfig) -> CycleSummary:
        """Poll every configured source, then dispatch pending notifications."""
        logger.info("Poll cycle started", sources=len(config.sources), professions=len(config.professions))
        summary = CycleSummary(outcomes=self.poll_all(config))

        if self.dispatcher is not None:
            try:
                summary.notifications_sent = self.dispatcher.dispatch()
            except JobAlertError as e:
                summary.dispatch_error = str(e)
                logger.error("Dispatch failed", error=str(e))

        logger.info(
            "Poll cycle finished",
            found=summary.total_jobs_found,
            stored=summary.total_jobs_stored,
            sent=summary.notifications_sent,
            failed_sources=summary.failed_sources,
        )
        return summary
