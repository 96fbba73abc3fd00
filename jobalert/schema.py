from typing import Any, Dict, List
from urllib.parse import urlparse

SOURCE_REQUIRED_FIELDS = ["id", "name", "type", "companyId"]
PROFESSION_REQUIRED_FIELDS = ["id", "name"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _valid_url(v: str) -> bool:
    try:
        p = urlparse(v)
        return bool(p.scheme and p.netloc)
    except ValueError:
        return False


def validate_source(data: Any, known_types: List[str]) -> List[str]:
    """
    Returns a list of validation error messages for one source entry.
    Empty list means valid.
    """
    if not isinstance(data, dict):
        return ["Source must be an object"]

    errors: List[str] = []
    label = data.get("id") or "<no id>"

    for f in SOURCE_REQUIRED_FIELDS:
        if f not in data:
            errors.append(f"Source {label}: missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Source {label}: field '{f}' must be a non-empty string")

    source_type = data.get("type")
    if _is_non_empty_str(source_type) and source_type not in known_types:
        allowed = ", ".join(f'"{t}"' for t in known_types)
        errors.append(f"Source {label}: invalid type {source_type!r}, must be one of {allowed}")

    # baseUrl is optional, adapters fall back to the public API host
    base_url = data.get("baseUrl")
    if base_url not in (None, ""):
        if not isinstance(base_url, str) or not _valid_url(base_url):
            errors.append(f"Source {label}: field 'baseUrl' must be a valid absolute URL (scheme + host)")

    return errors


def validate_profession(data: Any) -> List[str]:
    if not isinstance(data, dict):
        return ["Profession must be an object"]

    errors: List[str] = []
    label = data.get("id") or "<no id>"

    for f in PROFESSION_REQUIRED_FIELDS:
        if f not in data:
            errors.append(f"Profession {label}: missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Profession {label}: field '{f}' must be a non-empty string")

    keywords = data.get("keywords")
    if not isinstance(keywords, list):
        errors.append(f"Profession {label}: field 'keywords' must be an array")
    elif not all(_is_non_empty_str(k) for k in keywords):
        errors.append(f"Profession {label}: keywords must be non-empty strings")

    return errors


def _validate_unique(items: List[Dict[str, Any]], kind: str, field: str) -> List[str]:
    seen = set()
    errors = []
    for item in items:
        if not isinstance(item, dict):
            continue
        value = item.get(field)
        if value in seen:
            errors.append(f"Duplicate {kind} {field}: {value}")
        seen.add(value)
    return errors


def validate_sources(items: Any, known_types: List[str]) -> List[str]:
    if not isinstance(items, list):
        return ["Invalid request body: sources array is required"]
    errors: List[str] = []
    for item in items:
        errors.extend(validate_source(item, known_types))
    errors.extend(_validate_unique(items, "source", "id"))
    return errors


def validate_professions(items: Any) -> List[str]:
    if not isinstance(items, list):
        return ["Invalid request body: professions array is required"]
    errors: List[str] = []
    for item in items:
        errors.extend(validate_profession(item))
    errors.extend(_validate_unique(items, "profession", "name"))
    return errors
