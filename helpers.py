"""General-purpose helper utilities shared across the application."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import pandas as pd


__all__ = [
    "_normalize_lookup_name",
    "convert_titles",
    "designer_initials",
    "new_id",
    "normalize_game_name",
    "normalize_provider_name",
    "now_utc_iso",
    "split_title_lines",
    "to_copy_name",
    "to_plugin_name",
    "today_iso",
]


_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_game_name(value: Any) -> str:
    """Return the duplicate-detection key for a game name.

    Lowercase, trimmed, internal whitespace collapsed to a single space.
    """

    if value is None:
        return ""
    text = str(value).lower()
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_provider_name(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()


def to_plugin_name(value: Any) -> str:
    """Return ``value`` lowercased with everything but ``a-z0-9`` removed."""

    if value is None:
        return ""
    return _NON_ALNUM_RE.sub("", str(value).lower())


def to_copy_name(value: Any) -> str:
    """Lowercase ``value`` and drop whitespace, keeping punctuation."""

    if value is None:
        return ""
    return _WHITESPACE_RE.sub("", str(value).lower())


def split_title_lines(text: Any) -> list[str]:
    """Split a pasted block into trimmed, non-empty lines."""

    if text is None:
        return []
    if not isinstance(text, str):
        if isinstance(text, Iterable):
            return [line for item in text for line in split_title_lines(item)]
        text = str(text)
    return [line.strip() for line in text.splitlines() if line.strip()]


def convert_titles(text: Any) -> list[str]:
    """Convert pasted titles line by line into plugin-style names."""

    converted = (to_plugin_name(line) for line in split_title_lines(text))
    return [line for line in converted if line]


def _normalize_lookup_name(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    try:
        if pd.isna(value):
            return ""
    except Exception:
        pass
    text = str(value).strip()
    return "" if text.lower() == "nan" else text


def designer_initials(name: Any) -> str:
    parts = [part for part in _normalize_lookup_name(name).split(" ") if part]
    return "".join(part[0] for part in parts).upper()


def new_id() -> str:
    return str(uuid.uuid4())


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()
