"""Shared HTTP fetching for all job board adapters."""

import requests
from ..errors import SourceSchemaError, SourceUnavailable
from ..logger import get_logger
from ..retry import RetryError, exponential_backoff

logger = get_logger()


@exponential_backoff(max_retries=2, base_delay=1.0, exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError))
def _fetch_with_retry(url: str, timeout: float, params: dict | None = None):
    """Fetch URL with automatic retry on transient errors."""
    return requests.get(url, params=params, timeout=timeout, headers={"Accept": "application/json"})


def fetch_json(url: str, source: str, timeout: float = 15.0, params: dict | None = None):
    """Fetch a JSON document with standardized error handling and logging.

    Args:
        url: The URL to fetch
        source: Source label for logs and metrics (e.g., 'greenhouse:acme')
        timeout: Per-request timeout in seconds
        params: Optional query parameters

    Returns:
        Decoded JSON payload

    Raises:
        SourceUnavailable: On timeouts, connection errors or non-2xx statuses
        SourceSchemaError: When the body is not valid JSON
    """
    logger.record_fetch_attempt(source)
    try:
        resp = _fetch_with_retry(url, timeout, params)
        resp.raise_for_status()
    except RetryError as e:
        cause = type(e.__cause__).__name__ if e.__cause__ else "RetryError"
        logger.record_fetch_failure(source, cause)
        logger.warning("Source unreachable after retries", source=source, url=url, error=str(e))
        raise SourceUnavailable(f"{source} unreachable: {e}") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "HTTPError"
        logger.record_fetch_failure(source, f"HTTPError_{status}")
        logger.error("Source request failed", source=source, url=url, status=status)
        raise SourceUnavailable(f"{source} request failed ({status}): {url}") from e
    except requests.exceptions.RequestException as e:
        logger.record_fetch_failure(source, "RequestException")
        logger.error("Source request error", source=source, url=url, error=str(e))
        raise SourceUnavailable(f"{source} request error: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        logger.record_fetch_failure(source, "InvalidJSON")
        logger.error("Source returned invalid JSON", source=source, url=url)
        raise SourceSchemaError(f"{source} returned invalid JSON: {url}") from e

    logger.record_fetch_success(source)
    return data
