from typing import Any, List

from ..errors import SourceSchemaError
from ..models import Job
from ..normalize import clean_text, epoch_ms_to_iso
from .base import SourceAdapter
from .common import fetch_json


class LeverAdapter(SourceAdapter):
    """Lever postings API.

    GET {baseUrl}/v0/postings/{companyId}?mode=json returns a list of
    postings with id, text, categories.location, hostedUrl and createdAt
    (epoch milliseconds).
    """

    platform = "lever"
    default_base_url = "https://api.lever.co"

    def board_url(self) -> str:
        return f"{self.base_url}/v0/postings/{self.source.company_id}"

    def fetch_postings(self) -> List[Job]:
        payload = fetch_json(self.board_url(), self.label, timeout=self.timeout, params={"mode": "json"})
        if not isinstance(payload, list):
            raise SourceSchemaError(f"{self.label}: expected a postings array")
        return self._map_postings(payload, self._to_job)

    def _to_job(self, item: Any) -> Job:
        item = self._require(item, "id", "text")
        categories = item.get("categories") or {}
        location = self._typed(categories, "location", str) if isinstance(categories, dict) else None
        return Job.from_posting(
            self.source,
            native_id=self._typed(item, "id", str, int),
            title=clean_text(self._typed(item, "text", str)),
            location=clean_text(location) or "Unknown",
            url=self._typed(item, "hostedUrl", str) or self._typed(item, "applyUrl", str) or "",
            posted_at=epoch_ms_to_iso(item.get("createdAt")),
        )
