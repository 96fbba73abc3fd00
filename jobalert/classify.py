"""
Geography and profession classification.

Both checks are plain case-insensitive substring containment, so a keyword
"go" also matches "Good". Matchers are small strategy objects and can be
swapped for tokenized or fuzzy ones without touching the pipeline.
"""
from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from .models import Job, Profession
from .normalize import normalize_text

NETHERLANDS_ALIASES = (
    "netherlands",
    "the netherlands",
    "nederland",
    "holland",
    "dutch",
    "amsterdam",
    "rotterdam",
    "the hague",
    "den haag",
    "utrecht",
    "eindhoven",
    "groningen",
    "leiden",
    "delft",
    "haarlem",
    "arnhem",
    "nijmegen",
    "tilburg",
    "breda",
    "maastricht",
    "zwolle",
    "amersfoort",
    "almere",
    "hilversum",
    "remote nl",
    "remote - nl",
    "remote, nl",
    "hybrid nl",
    "hybrid - nl",
    "hybrid, nl",
)


class RegionMatcher:
    """Decides whether a free-text location falls in the target region."""

    def __init__(self, aliases: Iterable[str] = NETHERLANDS_ALIASES) -> None:
        self.aliases = tuple(normalize_text(a) for a in aliases if a.strip())

    def is_in_scope(self, location: str | None) -> bool:
        loc = normalize_text(location)
        if not loc:
            return False
        return any(alias in loc for alias in self.aliases)


class ProfessionMatcher(Protocol):
    def classify(self, text: str) -> Profession | None: ...


class KeywordProfessionMatcher:
    """First profession (in configured order) with a keyword inside the text wins."""

    def __init__(self, professions: Sequence[Profession]) -> None:
        self.professions = list(professions)
        self._keywords = [
            (profession, [k for k in map(normalize_text, profession.keywords) if k])
            for profession in self.professions
        ]

    def classify(self, text: str) -> Profession | None:
        title = normalize_text(text)
        for profession, keywords in self._keywords:
            if any(k in title for k in keywords):
                return profession
        return None


DEFAULT_REGION = RegionMatcher()


def is_in_scope(location: str | None) -> bool:
    return DEFAULT_REGION.is_in_scope(location)


def classify(
    job: Job,
    professions: Sequence[Profession],
    matcher: ProfessionMatcher | None = None,
) -> Job:
    """Return a copy of job with profession set to the matching name, or None."""
    matcher = matcher or KeywordProfessionMatcher(professions)
    match = matcher.classify(job.title)
    return job.with_profession(match.name if match else None)


def accept(
    job: Job,
    professions: Sequence[Profession],
    region: RegionMatcher | None = None,
    matcher: ProfessionMatcher | None = None,
) -> Job | None:
    """Geography gate, then profession match. None means the job is dropped."""
    region = region or DEFAULT_REGION
    if not region.is_in_scope(job.location):
        return None
    classified = classify(job, professions, matcher)
    if classified.profession is None:
        return None
    return classified
