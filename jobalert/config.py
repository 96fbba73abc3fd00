"""Admin-managed pipeline configuration (sources and professions).

Both lists live in the key-value store and are loaded once per invocation
into a PipelineConfig snapshot that is passed explicitly through the
pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ConfigError
from .logger import get_logger
from .models import JobSource, Profession
from .schema import validate_professions, validate_sources
from .sources import known_types
from .storage import KeyValueStore

logger = get_logger()

SOURCES_KEY = "config:sources"
PROFESSIONS_KEY = "config:professions"


@dataclass(frozen=True)
class PipelineConfig:
    sources: tuple[JobSource, ...] = ()
    professions: tuple[Profession, ...] = field(default_factory=tuple)

    def profession_names(self) -> list[str]:
        return [p.name for p in self.professions]


def _unwrap(raw: Any, wrapper_key: str) -> Any:
    # Accept both a bare list and the {"sources": [...]} admin wrapper
    if isinstance(raw, dict) and wrapper_key in raw:
        return raw[wrapper_key]
    return raw


def load_sources(kv: KeyValueStore) -> list[JobSource]:
    items = _unwrap(kv.get_json(SOURCES_KEY, []), "sources")
    if not isinstance(items, list):
        raise ConfigError(f"{SOURCES_KEY} must hold a list")
    sources = []
    for item in items:
        try:
            sources.append(JobSource.from_dict(item))
        except (KeyError, TypeError) as e:
            logger.warning("Skipping malformed source entry", entry=item, error=str(e))
    return sources


def load_professions(kv: KeyValueStore) -> list[Profession]:
    items = _unwrap(kv.get_json(PROFESSIONS_KEY, []), "professions")
    if not isinstance(items, list):
        raise ConfigError(f"{PROFESSIONS_KEY} must hold a list")
    professions = []
    for item in items:
        try:
            professions.append(Profession.from_dict(item))
        except (KeyError, TypeError) as e:
            logger.warning("Skipping malformed profession entry", entry=item, error=str(e))
    return professions


def load_config(kv: KeyValueStore) -> PipelineConfig:
    return PipelineConfig(
        sources=tuple(load_sources(kv)),
        professions=tuple(load_professions(kv)),
    )


def save_sources(kv: KeyValueStore, raw: Any) -> list[JobSource]:
    """Validate and store the source list. Accepts a list or {"sources": [...]}."""
    items = _unwrap(raw, "sources")
    errors = validate_sources(items, known_types())
    if errors:
        raise ConfigError("Invalid sources configuration", errors)
    sources = [JobSource.from_dict(item) for item in items]
    kv.put_json(SOURCES_KEY, [s.to_dict() for s in sources])
    logger.info("Sources updated", count=len(sources))
    return sources


def save_professions(kv: KeyValueStore, raw: Any) -> list[Profession]:
    """Validate and store the profession list. Order is match priority."""
    items = _unwrap(raw, "professions")
    errors = validate_professions(items)
    if errors:
        raise ConfigError("Invalid professions configuration", errors)
    professions = [Profession.from_dict(item) for item in items]
    kv.put_json(PROFESSIONS_KEY, [p.to_dict() for p in professions])
    logger.info("Professions updated", count=len(professions))
    return professions
