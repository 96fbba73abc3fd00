"""
Cleanup module for removing expired store entries.

Pending-notification and delivery markers expire logically as soon as their
TTL passes, but the rows stay in the table until purged. The permanent
job:<id> ledger is never touched.
"""

from typing import Tuple

from .errors import StoreUnavailable
from .logger import get_logger
from .storage import KeyValueStore

logger = get_logger()


def cleanup_expired(kv: KeyValueStore) -> Tuple[int, int]:
    """
    Physically delete expired entries.

    Args:
        kv: Store to clean

    Returns:
        Tuple of (total_entries_before, total_entries_after)
        Difference = entries_removed
    """
    try:
        before = kv.count()
        removed = kv.purge_expired()
        after = kv.count()
    except StoreUnavailable as e:
        logger.error("Cleanup failed", error=str(e))
        raise

    logger.info(
        f"Cleanup complete: {removed} removed, {after} remaining",
        entries_before=before,
        entries_removed=removed,
        entries_after=after,
    )
    return (before, after)
