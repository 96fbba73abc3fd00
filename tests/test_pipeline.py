"""
Tests for poll cycle orchestration.
"""

import pytest

from conftest import FakeChannel, FakeResponse, StaticAdapter
from jobalert.config import PipelineConfig
from jobalert.cursors import CursorStore
from jobalert.errors import SourceSchemaError, SourceUnavailable, StoreUnavailable
from jobalert.models import Job, JobSource, Subscriber
from jobalert.notify import Dispatcher, SubscriberStore
from jobalert.pipeline import SOURCE_LOCKS, CycleSummary, Pipeline, SourceOutcome
from jobalert.publisher import PublishStore
from jobalert.sources import GreenhouseAdapter


def posting(source, native_id, title, location, posted_at):
    return Job.from_posting(
        source,
        native_id=native_id,
        title=title,
        location=location,
        url=f"https://example.com/{source.id}/{native_id}",
        posted_at=posted_at,
    )


@pytest.fixture
def boards(greenhouse_source, lever_source):
    return {
        greenhouse_source.id: [
            posting(greenhouse_source, 1001, "Data Engineer", "Utrecht", "2026-10-17T06:00:00Z"),
            posting(greenhouse_source, 1002, "Backend Engineer", "Amsterdam, Netherlands", "2026-10-17T11:00:00Z"),
            posting(greenhouse_source, 1003, "Frontend Developer", "Remote, Netherlands", "2026-10-17T08:30:00Z"),
            posting(greenhouse_source, 900, "Platform Engineer", "Amsterdam", "2026-10-10T10:00:00Z"),
        ],
        lever_source.id: [
            posting(lever_source, "c3d4", "Account Executive", "Rotterdam", "2026-10-17T08:20:00+00:00"),
            posting(lever_source, "a1b2", "Site Reliability Engineer", "Berlin", "2026-10-17T06:20:00+00:00"),
        ],
    }


@pytest.fixture
def make_pipeline(kv, clock, boards):
    def factory(source, **kwargs):
        return StaticAdapter(source, boards, **kwargs)

    def build(**kwargs):
        kwargs.setdefault("adapter_factory", factory)
        return Pipeline(kv, retention_seconds=7200, clock=clock, **kwargs)

    return build


@pytest.fixture
def config(greenhouse_source, lever_source, professions):
    return PipelineConfig(sources=(greenhouse_source, lever_source), professions=tuple(professions))


class TestPollSource:
    """One source through fetch, cursor advance, classify and publish."""

    def test_first_then_repeat_poll(self, kv, make_pipeline, greenhouse_source, professions):
        pipeline = make_pipeline()

        first = pipeline.poll_source(greenhouse_source, professions)

        assert (first.ok, first.jobs_found, first.jobs_stored) == (True, 3, 3)
        assert CursorStore(kv).get("acme-gh").last_job_id == "1002"

        second = pipeline.poll_source(greenhouse_source, professions)

        assert (second.ok, second.jobs_found, second.jobs_stored) == (True, 0, 0)
        assert CursorStore(kv).get("acme-gh").last_job_id == "1002"

    def test_new_posting_after_cursor(self, kv, make_pipeline, boards, greenhouse_source, professions):
        pipeline = make_pipeline()
        pipeline.poll_source(greenhouse_source, professions)

        boards["acme-gh"].append(
            posting(greenhouse_source, 1004, "QA Engineer", "Delft", "2026-10-17T12:00:00Z")
        )
        outcome = pipeline.poll_source(greenhouse_source, professions)

        assert (outcome.jobs_found, outcome.jobs_stored) == (1, 1)
        assert CursorStore(kv).get("acme-gh").last_job_id == "1004"

    def test_cursor_advances_past_rejected_postings(self, kv, make_pipeline, lever_source, professions):
        """Found counts every fetched posting; stored counts only accepted ones."""
        pipeline = make_pipeline()

        outcome = pipeline.poll_source(lever_source, professions)

        assert (outcome.jobs_found, outcome.jobs_stored) == (2, 1)
        assert CursorStore(kv).get("beta-lever").last_job_id == "c3d4"
        pending = PublishStore(kv).pending()
        assert [(j.id, j.profession) for j in pending] == [("beta-lever-c3d4", "Sales")]

    def test_published_jobs_are_not_stored_twice(self, kv, make_pipeline, greenhouse_source, professions):
        pipeline = make_pipeline()
        pipeline.poll_source(greenhouse_source, professions)
        CursorStore(kv).reset("acme-gh")

        outcome = pipeline.poll_source(greenhouse_source, professions)

        assert (outcome.jobs_found, outcome.jobs_stored) == (3, 0)

    def test_fetch_failure_keeps_cursor(self, kv, make_pipeline, boards, greenhouse_source, professions):
        pipeline = make_pipeline()
        pipeline.poll_source(greenhouse_source, professions)
        boards["acme-gh"] = SourceUnavailable("greenhouse:acme-gh unreachable")

        outcome = pipeline.poll_source(greenhouse_source, professions)

        assert outcome.ok is False
        assert outcome.error == "greenhouse:acme-gh unreachable"
        assert CursorStore(kv).get("acme-gh").last_job_id == "1002"

    def test_unsupported_source_type(self, kv, clock, professions):
        source = JobSource(id="wd", name="WD", type="workday", base_url="", company_id="wd")

        outcome = Pipeline(kv, clock=clock).poll_source(source, professions)

        assert outcome.ok is False
        assert "workday" in outcome.error

    def test_store_failure_is_reported(self, kv, monkeypatch, make_pipeline, greenhouse_source, professions):
        def broken(*args, **kwargs):
            raise StoreUnavailable("disk I/O error")

        monkeypatch.setattr(kv, "put_if_absent", broken)

        outcome = make_pipeline().poll_source(greenhouse_source, professions)

        assert outcome.ok is False
        assert outcome.error.startswith("store unavailable")

    def test_source_lock_held_while_fetching(self, kv, clock, boards, greenhouse_source, professions):
        seen = []

        class LockWatchingAdapter(StaticAdapter):
            def fetch_postings(self):
                seen.append(SOURCE_LOCKS.is_held(self.source.id))
                return super().fetch_postings()

        pipeline = Pipeline(
            kv, clock=clock, adapter_factory=lambda s, **kw: LockWatchingAdapter(s, boards, **kw)
        )
        pipeline.poll_source(greenhouse_source, professions)

        assert seen == [True]
        assert not SOURCE_LOCKS.is_held(greenhouse_source.id)


class TestRunCycle:
    def test_failing_source_does_not_stop_others(self, make_pipeline, boards, config):
        boards["acme-gh"] = SourceSchemaError("greenhouse:acme-gh: expected a 'jobs' array")

        summary = make_pipeline().run_cycle(config)

        assert summary.failed_sources == ["acme-gh"]
        assert summary.total_jobs_found == 2
        assert summary.total_jobs_stored == 1

    def test_wrongly_typed_upstream_field_fails_only_that_source(self, make_pipeline, boards, config, fake_get):
        fake_get(FakeResponse({"jobs": [{"id": 1, "title": 42, "updated_at": "2026-10-17T08:00:00Z"}]}))

        def factory(source, **kwargs):
            if source.type == "greenhouse":
                return GreenhouseAdapter(source, **kwargs)
            return StaticAdapter(source, boards, **kwargs)

        summary = make_pipeline(adapter_factory=factory).run_cycle(config)

        assert summary.failed_sources == ["acme-gh"]
        assert "title" in summary.outcomes[0].error
        assert summary.outcomes[1].ok
        assert summary.total_jobs_stored == 1

    def test_parallel_polling_keeps_source_order(self, make_pipeline, config):
        summary = make_pipeline(max_workers=4).run_cycle(config)

        assert [o.source_id for o in summary.outcomes] == ["acme-gh", "beta-lever"]
        assert summary.total_jobs_stored == 4

    def test_dispatches_after_polling(self, kv, make_pipeline, config):
        SubscriberStore(kv).save(Subscriber(chat_id=42, professions=["Engineering"]))
        channel = FakeChannel()
        dispatcher = Dispatcher(PublishStore(kv), SubscriberStore(kv), channel)

        summary = make_pipeline(dispatcher=dispatcher).run_cycle(config)

        assert summary.notifications_sent == 3
        assert {chat_id for chat_id, _ in channel.sent} == {42}

    def test_dispatch_error_keeps_poll_counts(self, make_pipeline, config):
        class BrokenDispatcher:
            def dispatch(self):
                raise StoreUnavailable("database is locked")

        summary = make_pipeline(dispatcher=BrokenDispatcher()).run_cycle(config)

        assert summary.total_jobs_stored == 4
        assert summary.dispatch_error == "database is locked"
        assert summary.to_dict()["dispatchError"] == "database is locked"

    def test_empty_config(self, make_pipeline):
        summary = make_pipeline().run_cycle(PipelineConfig())

        assert summary.outcomes == []
        assert summary.total_jobs_found == 0


class TestSummary:
    def test_to_dict(self):
        summary = CycleSummary(
            outcomes=[
                SourceOutcome("acme-gh", jobs_found=3, jobs_stored=2),
                SourceOutcome("beta-lever", ok=False, error="down"),
            ],
            notifications_sent=5,
        )

        assert summary.to_dict() == {
            "message": "Job search completed",
            "totalJobsFound": 3,
            "totalJobsStored": 2,
            "notificationsSent": 5,
            "sources": [
                {"sourceId": "acme-gh", "ok": True, "jobsFound": 3, "jobsStored": 2, "error": None},
                {"sourceId": "beta-lever", "ok": False, "jobsFound": 0, "jobsStored": 0, "error": "down"},
            ],
        }
