import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_DATABASE_URL = "sqlite:///data/jobalert.db"
DEFAULT_TELEGRAM_API = "https://api.telegram.org"
DEFAULT_PENDING_TTL = 60 * 60 * 2  # 2 hours
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_env(env_path: Optional[Path] = None) -> None:
    """Load .env from project root if present. Existing variables win."""
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def _get(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_number(key: str, default, cast):
    raw = _get(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def _get_log_level() -> str:
    level = _get("LOG_LEVEL", "INFO").upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return level


@dataclass(frozen=True)
class Settings:
    """Process settings, read from the environment once per invocation."""

    database_url: str = DEFAULT_DATABASE_URL
    telegram_bot_token: Optional[str] = None
    telegram_api_base: str = DEFAULT_TELEGRAM_API
    api_key: Optional[str] = None
    pending_ttl_seconds: int = DEFAULT_PENDING_TTL
    http_timeout: float = 15.0
    max_workers: int = 1
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        log_dir = _get("LOG_DIR")
        return cls(
            database_url=_get("JOBALERT_DATABASE_URL", DEFAULT_DATABASE_URL),
            telegram_bot_token=_get("TELEGRAM_BOT_TOKEN"),
            telegram_api_base=_get("TELEGRAM_API_BASE", DEFAULT_TELEGRAM_API).rstrip("/"),
            api_key=_get("API_KEY"),
            pending_ttl_seconds=_get_number("PENDING_TTL_SECONDS", DEFAULT_PENDING_TTL, int),
            http_timeout=_get_number("HTTP_TIMEOUT", 15.0, float),
            max_workers=_get_number("MAX_WORKERS", 1, int),
            log_level=_get_log_level(),
            log_dir=Path(log_dir) if log_dir else None,
        )
