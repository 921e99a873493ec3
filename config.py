"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final
from urllib.parse import quote_plus

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")


logger = logging.getLogger(__name__)


def _clean_text(value: str | None) -> str:
    """Return ``value`` stripped of surrounding whitespace."""

    if value is None:
        return ""
    return value.strip()


def _path_from(env_value: str | None, default: str | Path) -> Path:
    """Resolve a filesystem path using an environment override when provided."""

    text = _clean_text(env_value)
    candidate = Path(text) if text else Path(default)
    candidate = candidate.expanduser()
    if candidate.is_absolute():
        try:
            return candidate.resolve()
        except (OSError, RuntimeError):  # pragma: no cover - fallback for exotic paths
            return candidate
    return candidate


def _coerce_positive_float(value: str | None, default: float) -> float:
    """Return ``value`` coerced to a positive float or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_positive_int(value: str | None, default: int) -> int:
    """Return ``value`` coerced to a positive integer or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = int(float(text))
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_truthy_env(value: str | None) -> bool:
    """Return ``True`` when ``value`` represents an affirmative flag."""

    if value is None:
        return False
    text = value.strip().lower()
    return text in {"1", "true", "yes", "on"}


LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "app.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)

SEED_DATA_DIR_PATH: Final[Path] = _path_from(
    os.environ.get("SEED_DATA_DIR"), BASE_DIR / "seed_data"
)
SEED_DATA_DIR: Final[str] = os.fspath(SEED_DATA_DIR_PATH)

DB_HOST: Final[str] = _clean_text(os.environ.get("DB_HOST")) or "localhost"
DB_PORT: Final[int] = _coerce_positive_int(os.environ.get("DB_PORT"), 3306)
DB_NAME: Final[str] = _clean_text(os.environ.get("DB_NAME")) or "missing_assets"
DB_USER: Final[str] = _clean_text(os.environ.get("DB_USER"))
DB_PASSWORD: Final[str] = _clean_text(os.environ.get("DB_PASSWORD"))
DB_SSL_CA_PATH: Final[Path | None] = (
    _path_from(os.environ.get("DB_SSL_CA"), "") if os.environ.get("DB_SSL_CA") else None
)
DB_SSL_CA: Final[str] = os.fspath(DB_SSL_CA_PATH) if DB_SSL_CA_PATH is not None else ""


def _build_db_dsn() -> str:
    """Return a database DSN constructed from environment configuration.

    ``DATABASE_URL`` wins when present; setting it to an empty value leaves the
    backing store unconfigured so the dashboard reports it instead of silently
    creating a local database.
    """

    if "DATABASE_URL" in os.environ:
        return _clean_text(os.environ.get("DATABASE_URL"))

    maria_overrides = {
        key: _clean_text(os.environ.get(key))
        for key in ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")
    }
    if any(value for value in maria_overrides.values()):
        auth = ""
        if DB_USER:
            password = quote_plus(DB_PASSWORD) if DB_PASSWORD else ""
            auth = DB_USER
            if password:
                auth = f"{auth}:{password}"
            auth = f"{auth}@"

        query_params = []
        if DB_SSL_CA:
            query_params.append(f"ssl_ca={quote_plus(DB_SSL_CA)}")

        query_string = f"?{'&'.join(query_params)}" if query_params else ""
        return f"mariadb://{auth}{DB_HOST}:{DB_PORT}/{DB_NAME}{query_string}"

    sqlite_path = _path_from(None, BASE_DIR / "missing_assets.db").resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


DB_DSN: Final[str] = _build_db_dsn()

DB_CONNECT_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("DB_CONNECT_TIMEOUT"), 10.0
)

APP_SECRET_KEY: Final[str] = _clean_text(os.environ.get("APP_SECRET_KEY")) or "dev-secret"
APP_PASSWORD: Final[str] = _clean_text(os.environ.get("APP_PASSWORD")) or "password"

_OPENAI_RAW = os.environ.get("OPENAI_API_KEY")
OPENAI_API_KEY: Final[str] = _clean_text(_OPENAI_RAW)
if _OPENAI_RAW is not None and not OPENAI_API_KEY:
    raise RuntimeError(
        "OPENAI_API_KEY is set but empty; provide a value or unset the variable."
    )
OPENAI_CHAT_ENABLED: Final[bool] = bool(OPENAI_API_KEY)
OPENAI_CHAT_MODEL: Final[str] = (
    _clean_text(os.environ.get("OPENAI_CHAT_MODEL")) or "gpt-4o-mini"
)

# Page size used when looping over the full asset table.
ASSET_PAGE_SIZE: Final[int] = _coerce_positive_int(
    os.environ.get("ASSET_PAGE_SIZE"), 1000
)
DUPLICATE_PAGE_SIZE: Final[int] = _coerce_positive_int(
    os.environ.get("DUPLICATE_PAGE_SIZE"), 10
)
BULK_MAX_WORKERS: Final[int] = _coerce_positive_int(
    os.environ.get("BULK_MAX_WORKERS"), 8
)
PLUGIN_ALLOW_ORIGIN: Final[str] = (
    _clean_text(os.environ.get("PLUGIN_ALLOW_ORIGIN")) or "*"
)
SEED_ON_STARTUP: Final[bool] = _coerce_truthy_env(
    os.environ.get("SEED_ON_STARTUP", "1")
)


def _validate_settings() -> None:
    """Sanity-check critical configuration values."""

    if not APP_SECRET_KEY:
        raise RuntimeError("APP_SECRET_KEY must not be empty")
    if not APP_PASSWORD:
        raise RuntimeError("APP_PASSWORD must not be empty")


_validate_settings()


def default_settings() -> dict[str, object]:
    """Return the environment-derived settings consumed by the app factory."""

    return {
        "DB_DSN": DB_DSN,
        "DB_CONNECT_TIMEOUT_SECONDS": DB_CONNECT_TIMEOUT_SECONDS,
        "APP_SECRET_KEY": APP_SECRET_KEY,
        "APP_PASSWORD": APP_PASSWORD,
        "OPENAI_API_KEY": OPENAI_API_KEY,
        "OPENAI_CHAT_MODEL": OPENAI_CHAT_MODEL,
        "ASSET_PAGE_SIZE": ASSET_PAGE_SIZE,
        "DUPLICATE_PAGE_SIZE": DUPLICATE_PAGE_SIZE,
        "BULK_MAX_WORKERS": BULK_MAX_WORKERS,
        "PLUGIN_ALLOW_ORIGIN": PLUGIN_ALLOW_ORIGIN,
        "SEED_DATA_DIR": SEED_DATA_DIR,
        "SEED_ON_STARTUP": SEED_ON_STARTUP,
        "LOG_FILE": LOG_FILE,
    }


__all__ = [
    "APP_PASSWORD",
    "APP_SECRET_KEY",
    "ASSET_PAGE_SIZE",
    "BASE_DIR",
    "BULK_MAX_WORKERS",
    "DB_CONNECT_TIMEOUT_SECONDS",
    "DB_DSN",
    "DB_HOST",
    "DB_NAME",
    "DB_PASSWORD",
    "DB_PORT",
    "DB_SSL_CA",
    "DB_SSL_CA_PATH",
    "DB_USER",
    "DUPLICATE_PAGE_SIZE",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "OPENAI_API_KEY",
    "OPENAI_CHAT_ENABLED",
    "OPENAI_CHAT_MODEL",
    "PLUGIN_ALLOW_ORIGIN",
    "SEED_DATA_DIR",
    "SEED_DATA_DIR_PATH",
    "SEED_ON_STARTUP",
    "default_settings",
]
