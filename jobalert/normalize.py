from datetime import datetime, timezone


def clean_text(s: str | None) -> str:
    return " ".join((s or "").strip().split())


def normalize_text(s: str | None) -> str:
    return clean_text(s).lower()


def compute_job_id(source_id: str, native_id) -> str:
    return f"{source_id}-{native_id}"


def native_id_from_job_id(source_id: str, job_id: str) -> str:
    # Source ids may themselves contain "-", so strip the known prefix
    prefix = f"{source_id}-"
    if not job_id.startswith(prefix):
        raise ValueError(f"Job id {job_id!r} does not belong to source {source_id!r}")
    return job_id[len(prefix):]


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Returns None for empty, non-string or unparseable input.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def epoch_ms_to_iso(value) -> str | None:
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
