"""
Error taxonomy for the discovery pipeline.

Source-level and delivery-level errors are caught where they happen and
turned into per-source / per-subscriber outcomes. Store errors abort the
remaining work for the current source only.
"""

from typing import List, Optional


class JobAlertError(Exception):
    """Base class for all jobalert errors."""
    pass


class SourceError(JobAlertError):
    """A job source could not produce postings."""
    pass


class SourceUnavailable(SourceError):
    """Upstream endpoint unreachable, timed out or returned a non-2xx status."""
    pass


class SourceSchemaError(SourceError):
    """Upstream payload could not be parsed into postings."""
    pass


class UnsupportedSourceType(SourceError):
    """No adapter is registered for the source's type."""
    pass


class StoreUnavailable(JobAlertError):
    """The key-value backend failed."""
    pass


class DeliveryFailure(JobAlertError):
    """The messaging channel rejected or could not receive a message."""
    pass


class ConfigError(JobAlertError):
    """Configuration is missing or invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []
