from datetime import datetime
from typing import Callable, Dict, Optional, Type

from ..errors import UnsupportedSourceType
from ..models import JobSource
from .base import SourceAdapter
from .greenhouse import GreenhouseAdapter
from .lever import LeverAdapter

ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    GreenhouseAdapter.platform: GreenhouseAdapter,
    LeverAdapter.platform: LeverAdapter,
}

__all__ = [
    "ADAPTERS", "SourceAdapter", "GreenhouseAdapter", "LeverAdapter",
    "build_adapter", "known_types",
]


def known_types() -> list:
    return sorted(ADAPTERS)


def build_adapter(
    source: JobSource,
    timeout: float = 15.0,
    clock: Optional[Callable[[], datetime]] = None,
) -> SourceAdapter:
    adapter_cls = ADAPTERS.get(source.type)
    if adapter_cls is None:
        raise UnsupportedSourceType(f"Unsupported source type: {source.type}")
    return adapter_cls(source, timeout=timeout, clock=clock)
