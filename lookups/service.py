"""Lookup-table persistence and service-layer helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import pandas as pd
from sqlalchemy import (
    Table,
    delete as sa_delete,
    func,
    insert,
    select,
    update as sa_update,
)
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from db.schema import LOOKUP_TABLES
from helpers import (
    _normalize_lookup_name,
    designer_initials,
    new_id,
    now_utc_iso,
)
from tracker.models import Designer

logger = logging.getLogger(__name__)


class LookupServiceError(RuntimeError):
    """Base class for lookup service errors."""


class LookupConflictError(LookupServiceError):
    """Raised when attempting to rename a lookup to an existing value."""


class LookupNotFoundError(LookupServiceError):
    """Raised when a lookup entry cannot be located."""


# Extra columns editable per lookup table, with their defaults.
LOOKUP_EXTRA_FIELDS: dict[str, dict[str, str]] = {
    "providers": {},
    "brands": {"color": "#000000"},
    "designers": {"avatar": "", "email": ""},
}


def _table(table_name: str) -> Table:
    try:
        return LOOKUP_TABLES[table_name]
    except KeyError as exc:
        raise LookupNotFoundError(f"lookup table not available: {table_name}") from exc


def _row_to_payload(table_name: str, row: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": str(row["id"]),
        "name": _normalize_lookup_name(row.get("name")),
    }
    for column, default in LOOKUP_EXTRA_FIELDS.get(table_name, {}).items():
        value = row.get(column)
        payload[column] = str(value) if value not in (None, "") else default
    if table_name == "designers" and not payload["avatar"]:
        payload["avatar"] = designer_initials(payload["name"])
    return payload


def _extra_values(
    table_name: str, extra: Mapping[str, Any] | None, *, with_defaults: bool
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    allowed = LOOKUP_EXTRA_FIELDS.get(table_name, {})
    for column, default in allowed.items():
        if extra is not None and column in extra:
            raw = extra[column]
            values[column] = "" if raw is None else str(raw).strip()
        elif with_defaults:
            values[column] = default
    return values


def list_lookup_entries(
    conn: Connection,
    table_name: str,
    *,
    normalize_lookup_name: Callable[[Any], str] = _normalize_lookup_name,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """Return paginated lookup entries ordered by name for ``table_name``."""

    try:
        table = _table(table_name)
    except LookupNotFoundError:
        return ([], 0)

    try:
        rows = (
            conn.execute(
                select(table).order_by(func.lower(table.c.name), table.c.id)
            )
            .mappings()
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to list lookup table %s", table_name)
        return ([], 0)

    items: list[dict[str, Any]] = []
    for row in rows:
        payload = _row_to_payload(table_name, row)
        payload["name"] = normalize_lookup_name(payload["name"])
        if not payload["name"]:
            continue
        items.append(payload)

    total = len(items)
    if offset < 0:
        offset = 0
    if limit <= 0:
        paginated_items: list[dict[str, Any]] = []
    else:
        start = min(offset, total)
        paginated_items = items[start : start + limit]

    return paginated_items, total


def list_all_entries(conn: Connection, table_name: str) -> list[dict[str, Any]]:
    items, total = list_lookup_entries(conn, table_name, limit=0)
    if total == 0:
        return []
    items, _ = list_lookup_entries(conn, table_name, limit=total)
    return items


def get_lookup_entry(
    conn: Connection,
    table_name: str,
    lookup_id: str,
) -> dict[str, Any] | None:
    """Return the lookup entry identified by ``lookup_id``."""

    try:
        table = _table(table_name)
    except LookupNotFoundError:
        return None

    try:
        row = (
            conn.execute(select(table).where(table.c.id == str(lookup_id)))
            .mappings()
            .first()
        )
    except SQLAlchemyError:
        logger.exception("Failed to read %s entry %s", table_name, lookup_id)
        return None

    if row is None:
        return None
    return _row_to_payload(table_name, row)


def _lookup_by_name(
    conn: Connection,
    table_name: str,
    normalized_name: str,
) -> Mapping[str, Any] | None:
    """Return the row whose name matches ``normalized_name`` case-insensitively."""

    table = _table(table_name)
    return (
        conn.execute(
            select(table).where(func.lower(table.c.name) == normalized_name.casefold())
        )
        .mappings()
        .first()
    )


def get_or_create_lookup_id(
    conn: Connection,
    table_name: str,
    raw_name: Any,
    *,
    normalize_lookup_name: Callable[[Any], str] = _normalize_lookup_name,
) -> str | None:
    """Return the identifier for ``raw_name``, creating a lookup when needed."""

    status, payload = create_lookup_entry(
        conn, table_name, raw_name, normalize_lookup_name=normalize_lookup_name
    )
    if status == "invalid" or payload is None:
        return None
    return payload["id"]


def create_lookup_entry(
    conn: Connection,
    table_name: str,
    raw_name: Any,
    *,
    extra: Mapping[str, Any] | None = None,
    normalize_lookup_name: Callable[[Any], str] = _normalize_lookup_name,
) -> tuple[str, dict[str, Any] | None]:
    """Create a lookup entry when missing and return its payload."""

    name = normalize_lookup_name(raw_name)
    if not name:
        return "invalid", None

    try:
        table = _table(table_name)
        existing = _lookup_by_name(conn, table_name, name)
    except LookupNotFoundError:
        return "invalid", None
    except SQLAlchemyError:
        logger.exception("Failed to look up %s entry %s", table_name, name)
        return "invalid", None

    if existing is not None:
        return "exists", _row_to_payload(table_name, existing)

    lookup_id = new_id()
    timestamp = now_utc_iso()
    values: dict[str, Any] = {"id": lookup_id, "name": name, "created_at": timestamp}
    if "updated_at" in table.c:
        values["updated_at"] = timestamp
    values.update(_extra_values(table_name, extra, with_defaults=True))

    try:
        conn.execute(insert(table).values(**values))
    except SQLAlchemyError:
        logger.exception("Failed to insert %s entry %s", table_name, name)
        return "invalid", None

    created = get_lookup_entry(conn, table_name, lookup_id)
    if created is None:
        return "invalid", None
    logger.info("Created %s entry %s (%s)", table_name, name, lookup_id)
    return "created", created


def update_lookup_entry(
    conn: Connection,
    table_name: str,
    lookup_id: str,
    new_name: Any,
    *,
    extra: Mapping[str, Any] | None = None,
    normalize_lookup_name: Callable[[Any], str] = _normalize_lookup_name,
) -> tuple[str, dict[str, Any] | None]:
    """Update ``lookup_id`` to ``new_name`` when possible."""

    name = normalize_lookup_name(new_name)
    if not name:
        return "invalid", None

    try:
        table = _table(table_name)
    except LookupNotFoundError:
        return "invalid", None

    current = get_lookup_entry(conn, table_name, lookup_id)
    if current is None:
        return "not_found", None

    values: dict[str, Any] = _extra_values(table_name, extra, with_defaults=False)
    try:
        if current["name"] != name:
            conflict = conn.execute(
                select(table.c.id).where(
                    func.lower(table.c.name) == name.casefold(),
                    table.c.id != str(lookup_id),
                )
            ).scalar_one_or_none()
            if conflict is not None:
                return "conflict", None
            values["name"] = name
        if values:
            if "updated_at" in table.c:
                values["updated_at"] = now_utc_iso()
            conn.execute(
                sa_update(table).where(table.c.id == str(lookup_id)).values(**values)
            )
    except SQLAlchemyError:
        logger.exception("Failed to update %s entry %s", table_name, lookup_id)
        return "invalid", None

    refreshed = get_lookup_entry(conn, table_name, lookup_id)
    if refreshed is None:
        return "invalid", None
    return "updated", refreshed


def delete_lookup_entry(
    conn: Connection,
    table_name: str,
    lookup_id: str,
) -> bool:
    """Remove ``lookup_id`` from ``table_name``."""

    try:
        table = _table(table_name)
    except LookupNotFoundError:
        return False

    try:
        row = conn.execute(
            select(table.c.id).where(table.c.id == str(lookup_id))
        ).scalar_one_or_none()
        if row is None:
            return False
        conn.execute(sa_delete(table).where(table.c.id == str(lookup_id)))
    except SQLAlchemyError:
        logger.exception("Failed to delete %s entry %s", table_name, lookup_id)
        return False
    logger.info("Deleted %s entry %s", table_name, lookup_id)
    return True


def list_providers(conn: Connection) -> list[dict[str, Any]]:
    """Return ``{id, name}`` for every provider ordered by name."""

    table = _table("providers")
    rows = conn.execute(
        select(table.c.id, table.c.name).order_by(table.c.name, table.c.id)
    ).mappings()
    return [{"id": str(row["id"]), "name": row["name"]} for row in rows]


def get_designer(conn: Connection, designer_id: str) -> Designer | None:
    entry = get_lookup_entry(conn, "designers", designer_id)
    if entry is None:
        return None
    return Designer(
        id=entry["id"],
        name=entry["name"],
        avatar=entry["avatar"],
        email=entry["email"],
    )


def _read_seed_frame(path: Path) -> pd.DataFrame:
    if path.suffix.lower() in {".xlsx", ".xls"}:
        return pd.read_excel(path)
    return pd.read_csv(path)


def _find_seed_file(data_dir: Path, stem: str) -> Path | None:
    for suffix in (".csv", ".xlsx", ".xls"):
        candidate = data_dir / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_lookup_tables(
    conn: Connection,
    tables: Sequence[Mapping[str, Any]],
    *,
    data_dir: Path,
    normalize_lookup_name: Callable[[Any], str] = _normalize_lookup_name,
    log: logging.Logger | None = None,
) -> dict[str, int]:
    """Populate lookup tables from CSV or workbook files when available.

    Each table config names the ``table``, the file ``stem`` and the name
    ``column``; any other columns listed in :data:`LOOKUP_EXTRA_FIELDS` are
    copied when present. Returns the number of rows created per table.
    """

    logger_ref = log or logger
    created_counts: dict[str, int] = {}

    for table_config in tables:
        table_name = table_config["table"]
        path = _find_seed_file(data_dir, table_config.get("stem", table_name))
        if path is None:
            continue

        try:
            df = _read_seed_frame(path)
        except Exception:  # pragma: no cover - defensive logging path
            logger_ref.exception("Failed to load lookup seed file %s", path)
            continue

        column_name = table_config.get("column", "name")
        if column_name not in df.columns:
            logger_ref.warning(
                "Seed file %s missing expected column %s", path, column_name
            )
            continue

        extra_columns = [
            column
            for column in LOOKUP_EXTRA_FIELDS.get(table_name, {})
            if column in df.columns
        ]
        created = 0
        for record in df.dropna(subset=[column_name]).to_dict("records"):
            extra = {
                column: _normalize_lookup_name(record.get(column))
                for column in extra_columns
            }
            status, _ = create_lookup_entry(
                conn,
                table_name,
                record[column_name],
                extra=extra,
                normalize_lookup_name=normalize_lookup_name,
            )
            if status == "created":
                created += 1
        created_counts[table_name] = created
        logger_ref.info("Seeded %d new %s from %s", created, table_name, path.name)

    return created_counts


DEFAULT_SEED_TABLES: tuple[dict[str, str], ...] = (
    {"table": "providers", "stem": "providers", "column": "name"},
    {"table": "brands", "stem": "brands", "column": "name"},
    {"table": "designers", "stem": "designers", "column": "name"},
)


__all__ = [
    "DEFAULT_SEED_TABLES",
    "LOOKUP_EXTRA_FIELDS",
    "LookupConflictError",
    "LookupNotFoundError",
    "LookupServiceError",
    "create_lookup_entry",
    "delete_lookup_entry",
    "get_designer",
    "get_lookup_entry",
    "get_or_create_lookup_id",
    "list_all_entries",
    "list_lookup_entries",
    "list_providers",
    "load_lookup_tables",
    "update_lookup_entry",
]
