"""Data models for sources, professions, jobs, cursors and subscribers.

Each model serialises to the JSON shape kept in the key-value store.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from .normalize import compute_job_id


@dataclass(frozen=True)
class JobSource:
    id: str
    name: str
    type: str
    base_url: str
    company_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "baseUrl": self.base_url,
            "companyId": self.company_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobSource:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data["type"],
            base_url=data.get("baseUrl", ""),
            company_id=str(data["companyId"]),
        )


@dataclass(frozen=True)
class Profession:
    id: str
    name: str
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "keywords": list(self.keywords)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profession:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            keywords=tuple(data.get("keywords", [])),
        )


@dataclass
class Job:
    id: str
    title: str
    company: str
    location: str
    url: str
    posted_at: str | None
    source: str
    profession: str | None = None

    @classmethod
    def from_posting(
        cls,
        source: JobSource,
        native_id,
        title: str,
        location: str,
        url: str,
        posted_at: str | None,
    ) -> Job:
        return cls(
            id=compute_job_id(source.id, native_id),
            title=title,
            company=source.name,
            location=location,
            url=url,
            posted_at=posted_at,
            source=source.id,
        )

    def with_profession(self, profession: str | None) -> Job:
        return replace(self, profession=profession)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            company=data.get("company", ""),
            location=data.get("location", ""),
            url=data.get("url", ""),
            posted_at=data.get("posted_at"),
            source=data.get("source", ""),
            profession=data.get("profession"),
        )


@dataclass(frozen=True)
class Cursor:
    source_id: str
    last_job_id: str
    last_check_time: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "lastJobId": self.last_job_id,
            "lastCheckTime": self.last_check_time,
        }

    @classmethod
    def from_dict(cls, source_id: str, data: dict[str, Any]) -> Cursor:
        return cls(
            source_id=data.get("sourceId", source_id),
            last_job_id=str(data["lastJobId"]),
            last_check_time=data.get("lastCheckTime", ""),
        )


@dataclass
class Subscriber:
    chat_id: int
    professions: list[str] = field(default_factory=list)

    def wants(self, profession: str | None) -> bool:
        return profession is not None and profession in self.professions

    def to_dict(self) -> dict[str, Any]:
        return {"chatId": self.chat_id, "professions": list(self.professions)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Subscriber:
        chat_id = data.get("chatId", data.get("id"))
        return cls(chat_id=int(chat_id), professions=list(data.get("professions", [])))
