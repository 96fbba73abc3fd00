from typing import Any, List

from ..errors import SourceSchemaError
from ..models import Job
from ..normalize import clean_text
from .base import SourceAdapter
from .common import fetch_json


class GreenhouseAdapter(SourceAdapter):
    """Greenhouse job board API.

    GET {baseUrl}/boards/{companyId}/jobs returns {"jobs": [...]}, each with
    id, title, location.name, absolute_url and updated_at.
    """

    platform = "greenhouse"
    default_base_url = "https://boards-api.greenhouse.io/v1"

    def board_url(self) -> str:
        return f"{self.base_url}/boards/{self.source.company_id}/jobs"

    def fetch_postings(self) -> List[Job]:
        payload = fetch_json(self.board_url(), self.label, timeout=self.timeout)
        return self._map_postings(self._items(payload), self._to_job)

    def _items(self, payload: Any) -> list:
        # Some proxies return the bare list instead of the wrapper object
        items = payload.get("jobs") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise SourceSchemaError(f"{self.label}: expected a 'jobs' array")
        return items

    def _to_job(self, item: Any) -> Job:
        item = self._require(item, "id", "title")
        location = item.get("location")
        if isinstance(location, dict):
            location = location.get("name")
        return Job.from_posting(
            self.source,
            native_id=self._typed(item, "id", int, str),
            title=clean_text(self._typed(item, "title", str)),
            location=clean_text(location if isinstance(location, str) else ""),
            url=self._typed(item, "absolute_url", str) or "",
            posted_at=self._typed(item, "updated_at", str),
        )
