"""
Pytest configuration and shared fixtures.
"""

import pytest
import requests
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from jobalert.errors import DeliveryFailure
from jobalert.models import JobSource, Profession
from jobalert.sources.base import SourceAdapter
from jobalert.sources.greenhouse import GreenhouseAdapter
from jobalert.storage import KeyValueStore


class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeResponse:
    """Just enough of requests.Response for the adapters and the channel."""

    def __init__(self, payload: Any = None, status_code: int = 200, text: str = None):
        self._payload = payload
        self.status_code = status_code
        self.text = text
        self.ok = 200 <= status_code < 400

    def json(self):
        if self.text is not None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class FakeChannel:
    """Records sent messages; chat ids in fail_for raise DeliveryFailure."""

    def __init__(self, fail_for=()):
        self.sent: List[tuple] = []
        self.fail_for = set(fail_for)

    def send(self, chat_id: int, text: str) -> None:
        if chat_id in self.fail_for:
            raise DeliveryFailure(f"chat {chat_id} blocked the bot")
        self.sent.append((chat_id, text))


class StaticAdapter(SourceAdapter):
    """Adapter serving postings from an in-memory board instead of HTTP."""

    platform = "static"

    def __init__(self, source, boards, **kwargs):
        super().__init__(source, **kwargs)
        self.boards = boards

    def fetch_postings(self):
        board = self.boards[self.source.id]
        if isinstance(board, Exception):
            raise board
        return list(board)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv(tmp_path, clock) -> KeyValueStore:
    return KeyValueStore(f"sqlite:///{tmp_path / 'test.db'}", clock=clock)


@pytest.fixture
def greenhouse_source() -> JobSource:
    return JobSource(
        id="acme-gh",
        name="Acme",
        type="greenhouse",
        base_url="https://boards-api.greenhouse.io/v1",
        company_id="acme",
    )


@pytest.fixture
def lever_source() -> JobSource:
    return JobSource(
        id="beta-lever",
        name="Beta",
        type="lever",
        base_url="https://api.lever.co",
        company_id="beta",
    )


@pytest.fixture
def professions() -> List[Profession]:
    return [
        Profession(id="eng", name="Engineering", keywords=("engineer", "developer")),
        Profession(id="sales", name="Sales", keywords=("account",)),
    ]


@pytest.fixture
def greenhouse_payload() -> Dict[str, Any]:
    """Greenhouse board API response, deliberately not in date order."""
    return {
        "jobs": [
            {
                "id": 1002,
                "title": "Backend Engineer",
                "location": {"name": "Amsterdam, Netherlands"},
                "absolute_url": "https://boards.greenhouse.io/acme/jobs/1002",
                "updated_at": "2026-10-17T07:00:00-04:00",
            },
            {
                "id": 1003,
                "title": "Frontend  Developer",
                "location": {"name": "Remote, Netherlands"},
                "absolute_url": "https://boards.greenhouse.io/acme/jobs/1003",
                "updated_at": "2026-10-17T08:30:00Z",
            },
            {
                "id": 1001,
                "title": "Data Engineer",
                "location": {"name": "Utrecht"},
                "absolute_url": "https://boards.greenhouse.io/acme/jobs/1001",
                "updated_at": "2026-10-17T06:00:00Z",
            },
            {
                "id": 900,
                "title": "Platform Engineer",
                "location": {"name": "Amsterdam"},
                "absolute_url": "https://boards.greenhouse.io/acme/jobs/900",
                "updated_at": "2026-10-10T10:00:00Z",
            },
        ]
    }


@pytest.fixture
def lever_payload() -> List[Dict[str, Any]]:
    """Lever postings API response (createdAt in epoch milliseconds)."""
    return [
        {
            "id": "c3d4",
            "text": "Account Executive",
            "categories": {"location": "Rotterdam", "team": "Sales"},
            "hostedUrl": "https://jobs.lever.co/beta/c3d4",
            "createdAt": 1792225200000,  # 2026-10-17T08:20:00Z
        },
        {
            "id": "a1b2",
            "text": "Site Reliability Engineer",
            "categories": {"location": "Berlin"},
            "hostedUrl": "https://jobs.lever.co/beta/a1b2",
            "createdAt": 1792218000000,  # 2026-10-17T06:20:00Z
        },
        {
            "id": "z9y8",
            "text": "Office Manager",
            "categories": {},
            "hostedUrl": "https://jobs.lever.co/beta/z9y8",
            "createdAt": 1791500000000,  # 2026-10-08
        },
    ]


@pytest.fixture
def fake_get(monkeypatch):
    """Patch requests.get; returns a list of the calls made."""
    calls = []
    responses = {}

    def install(response_or_exc):
        responses["next"] = response_or_exc
        return calls

    def _get(url, params=None, timeout=None, headers=None):
        calls.append({"url": url, "params": params, "timeout": timeout})
        result = responses["next"]
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr("jobalert.sources.common.requests.get", _get)
    monkeypatch.setattr("jobalert.retry.time.sleep", lambda s: None)
    return install


@pytest.fixture
def greenhouse_adapter(greenhouse_source, clock) -> GreenhouseAdapter:
    return GreenhouseAdapter(greenhouse_source, timeout=5, clock=clock)
