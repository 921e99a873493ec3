"""Asset persistence and query helpers.

Every function takes an open SQLAlchemy :class:`~sqlalchemy.engine.Connection`
so callers decide the transaction boundary.  Bulk editors open one transaction
per record, which keeps per-record failures isolated.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from sqlalchemy import delete as sa_delete, func, insert, select, update as sa_update
from sqlalchemy.engine import Connection

from db import schema
from helpers import new_id, now_utc_iso, to_plugin_name, today_iso
from tracker.models import (
    DEFAULT_STATUS,
    Asset,
    AssetBrand,
    designer_from_row,
    is_valid_status,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 1000


class CatalogServiceError(RuntimeError):
    """Base class for catalog service errors."""


class AssetNotFoundError(CatalogServiceError):
    """Raised when an asset identifier does not exist."""


class InvalidAssetError(CatalogServiceError):
    """Raised when an asset payload fails validation."""


def fetch_all_pages(
    fetch_page: Callable[[int, int], Sequence[T]],
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[T]:
    """Call ``fetch_page(offset, limit)`` until a short page comes back."""

    if page_size <= 0:
        raise ValueError("page_size must be positive")
    rows: list[T] = []
    offset = 0
    while True:
        page = list(fetch_page(offset, page_size))
        rows.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
    return rows


def _asset_select():
    a = schema.assets
    p = schema.providers
    d = schema.designers
    return (
        select(
            a.c.id,
            a.c.game_name,
            a.c.status,
            a.c.found_by,
            a.c.date_found,
            a.c.notes,
            a.c.created_at,
            a.c.updated_at,
            p.c.name.label("provider_name"),
            d.c.id.label("designer_id"),
            d.c.name.label("designer_name"),
            d.c.avatar.label("designer_avatar"),
            d.c.email.label("designer_email"),
        )
        .select_from(
            a.outerjoin(p, a.c.provider_id == p.c.id).outerjoin(
                d, a.c.designer_id == d.c.id
            )
        )
    )


def _brand_select():
    ab = schema.asset_brands
    b = schema.brands
    return (
        select(
            ab.c.asset_id,
            ab.c.brand_id,
            ab.c.reflected,
            ab.c.reflected_by,
            ab.c.reflected_at,
            b.c.name,
            b.c.color,
        )
        .select_from(ab.join(b, ab.c.brand_id == b.c.id))
    )


def _brand_from_row(row: Mapping[str, Any]) -> AssetBrand:
    return AssetBrand(
        id=str(row["brand_id"]),
        name=str(row.get("name") or ""),
        color=str(row.get("color") or "#000000"),
        reflected=bool(row.get("reflected")),
        reflected_by=row.get("reflected_by") or None,
        reflected_at=row.get("reflected_at") or None,
    )


def _asset_from_row(row: Mapping[str, Any], brands: Iterable[AssetBrand]) -> Asset:
    designer = designer_from_row(
        {
            "id": row.get("designer_id"),
            "name": row.get("designer_name"),
            "avatar": row.get("designer_avatar"),
            "email": row.get("designer_email"),
        }
    )
    return Asset(
        id=str(row["id"]),
        game_name=str(row.get("game_name") or ""),
        provider=str(row.get("provider_name") or ""),
        status=str(row.get("status") or DEFAULT_STATUS),
        brands=tuple(brands),
        designer=designer,
        found_by=str(row.get("found_by") or ""),
        date_found=str(row.get("date_found") or ""),
        notes=str(row.get("notes") or ""),
        created_at=str(row.get("created_at") or ""),
        updated_at=str(row.get("updated_at") or ""),
    )


def fetch_assets(conn: Connection, *, page_size: int = DEFAULT_PAGE_SIZE) -> list[Asset]:
    """Return every asset, newest first, with designer and brands attached."""

    a = schema.assets
    ab = schema.asset_brands

    def _asset_page(offset: int, limit: int) -> list[Mapping[str, Any]]:
        stmt = (
            _asset_select()
            .order_by(a.c.created_at.desc(), a.c.id)
            .limit(limit)
            .offset(offset)
        )
        return list(conn.execute(stmt).mappings().all())

    def _brand_page(offset: int, limit: int) -> list[Mapping[str, Any]]:
        stmt = (
            _brand_select()
            .order_by(ab.c.created_at, ab.c.id)
            .limit(limit)
            .offset(offset)
        )
        return list(conn.execute(stmt).mappings().all())

    asset_rows = fetch_all_pages(_asset_page, page_size=page_size)
    brand_rows = fetch_all_pages(_brand_page, page_size=page_size)

    brands_by_asset: dict[str, list[AssetBrand]] = defaultdict(list)
    for row in brand_rows:
        brands_by_asset[str(row["asset_id"])].append(_brand_from_row(row))

    assets = [
        _asset_from_row(row, brands_by_asset.get(str(row["id"]), ()))
        for row in asset_rows
    ]
    logger.debug(
        "Fetched %d assets and %d brand attachments", len(assets), len(brand_rows)
    )
    return assets


def get_asset(conn: Connection, asset_id: str) -> Asset | None:
    a = schema.assets
    ab = schema.asset_brands
    row = conn.execute(_asset_select().where(a.c.id == asset_id)).mappings().first()
    if row is None:
        return None
    brand_rows = conn.execute(
        _brand_select()
        .where(ab.c.asset_id == asset_id)
        .order_by(ab.c.created_at, ab.c.id)
    ).mappings()
    return _asset_from_row(row, (_brand_from_row(b) for b in brand_rows))


def resolve_provider_id(conn: Connection, provider_name: Any) -> str | None:
    """Return the provider id matching ``provider_name`` case-insensitively."""

    name = str(provider_name or "").strip()
    if not name:
        return None
    p = schema.providers
    return conn.execute(
        select(p.c.id)
        .where(func.lower(p.c.name) == name.lower())
        .order_by(p.c.name)
        .limit(1)
    ).scalar_one_or_none()


def _existing_brand_ids(conn: Connection, brand_ids: Iterable[str]) -> list[str]:
    wanted = [str(brand_id) for brand_id in brand_ids if brand_id]
    if not wanted:
        return []
    b = schema.brands
    known = set(conn.execute(select(b.c.id).where(b.c.id.in_(wanted))).scalars())
    missing = [brand_id for brand_id in wanted if brand_id not in known]
    if missing:
        raise InvalidAssetError(f"unknown brand ids: {', '.join(missing)}")
    return wanted


def _designer_exists(conn: Connection, designer_id: str) -> bool:
    d = schema.designers
    return (
        conn.execute(select(d.c.id).where(d.c.id == designer_id)).scalar_one_or_none()
        is not None
    )


def create_asset(
    conn: Connection,
    *,
    game_name: str,
    provider: str,
    brand_ids: Sequence[str] = (),
    status: str = DEFAULT_STATUS,
    designer_id: str | None = None,
    found_by: str = "",
    date_found: str | None = None,
    notes: str = "",
) -> Asset:
    """Insert a new asset with its brand attachments and return it."""

    name = str(game_name or "").strip()
    if not name:
        raise InvalidAssetError("game name is required")
    if not is_valid_status(status):
        raise InvalidAssetError(f"invalid status: {status}")
    provider_id = resolve_provider_id(conn, provider)
    if provider_id is None:
        raise InvalidAssetError(f"unknown provider: {provider}")
    if designer_id and not _designer_exists(conn, designer_id):
        raise InvalidAssetError(f"unknown designer: {designer_id}")
    brand_list = list(dict.fromkeys(_existing_brand_ids(conn, brand_ids)))

    asset_id = new_id()
    timestamp = now_utc_iso()
    conn.execute(
        insert(schema.assets).values(
            id=asset_id,
            game_name=name,
            provider_id=provider_id,
            status=status,
            designer_id=designer_id or None,
            found_by=found_by or "",
            date_found=date_found or today_iso(),
            notes=notes or "",
            created_at=timestamp,
            updated_at=timestamp,
        )
    )
    if brand_list:
        conn.execute(
            insert(schema.asset_brands),
            [
                {
                    "id": new_id(),
                    "asset_id": asset_id,
                    "brand_id": brand_id,
                    "reflected": False,
                    "reflected_by": None,
                    "reflected_at": None,
                    "created_at": timestamp,
                }
                for brand_id in brand_list
            ],
        )

    created = get_asset(conn, asset_id)
    if created is None:  # pragma: no cover - insert just succeeded
        raise CatalogServiceError("asset vanished after insert")
    logger.info("Created asset %s (%s / %s)", asset_id, name, created.provider)
    return created


_UPDATABLE_FIELDS = {"game_name", "status", "designer_id", "notes", "provider"}


def update_asset_fields(
    conn: Connection, asset_id: str, changes: Mapping[str, Any]
) -> dict[str, Any]:
    """Apply column ``changes`` to ``asset_id`` and return the stored values."""

    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise InvalidAssetError(f"unsupported fields: {', '.join(sorted(unknown))}")
    if not changes:
        raise InvalidAssetError("no changes supplied")

    values: dict[str, Any] = {}
    if "game_name" in changes:
        name = str(changes["game_name"] or "").strip()
        if not name:
            raise InvalidAssetError("game name is required")
        values["game_name"] = name
    if "status" in changes:
        if not is_valid_status(changes["status"]):
            raise InvalidAssetError(f"invalid status: {changes['status']}")
        values["status"] = changes["status"]
    if "designer_id" in changes:
        designer_id = changes["designer_id"] or None
        if designer_id is not None and not _designer_exists(conn, designer_id):
            raise InvalidAssetError(f"unknown designer: {designer_id}")
        values["designer_id"] = designer_id
    if "notes" in changes:
        values["notes"] = str(changes["notes"] or "")
    if "provider" in changes:
        provider_id = resolve_provider_id(conn, changes["provider"])
        if provider_id is None:
            raise InvalidAssetError(f"unknown provider: {changes['provider']}")
        values["provider_id"] = provider_id

    values["updated_at"] = now_utc_iso()
    a = schema.assets
    result = conn.execute(sa_update(a).where(a.c.id == asset_id).values(**values))
    if result.rowcount == 0:
        raise AssetNotFoundError(asset_id)
    return values


def update_asset_status(conn: Connection, asset_id: str, status: str) -> None:
    update_asset_fields(conn, asset_id, {"status": status})


def update_asset_designer(conn: Connection, asset_id: str, designer_id: str | None) -> None:
    update_asset_fields(conn, asset_id, {"designer_id": designer_id})


def _touch_asset(conn: Connection, asset_id: str) -> None:
    a = schema.assets
    result = conn.execute(
        sa_update(a).where(a.c.id == asset_id).values(updated_at=now_utc_iso())
    )
    if result.rowcount == 0:
        raise AssetNotFoundError(asset_id)


def add_brands_to_asset(
    conn: Connection, asset_id: str, brand_ids: Sequence[str]
) -> list[str]:
    """Attach ``brand_ids`` not yet on ``asset_id``; return the ids added."""

    _touch_asset(conn, asset_id)
    wanted = list(dict.fromkeys(_existing_brand_ids(conn, brand_ids)))
    ab = schema.asset_brands
    attached = set(
        conn.execute(select(ab.c.brand_id).where(ab.c.asset_id == asset_id)).scalars()
    )
    to_add = [brand_id for brand_id in wanted if brand_id not in attached]
    if to_add:
        timestamp = now_utc_iso()
        conn.execute(
            insert(ab),
            [
                {
                    "id": new_id(),
                    "asset_id": asset_id,
                    "brand_id": brand_id,
                    "reflected": False,
                    "reflected_by": None,
                    "reflected_at": None,
                    "created_at": timestamp,
                }
                for brand_id in to_add
            ],
        )
    return to_add


def replace_asset_brands(
    conn: Connection, asset_id: str, brands: Sequence[Mapping[str, Any]]
) -> None:
    """Replace every brand attachment of ``asset_id``."""

    _touch_asset(conn, asset_id)
    brand_ids = _existing_brand_ids(conn, (entry.get("id") for entry in brands))
    ab = schema.asset_brands
    conn.execute(sa_delete(ab).where(ab.c.asset_id == asset_id))
    if not brand_ids:
        return
    timestamp = now_utc_iso()
    rows = []
    seen: set[str] = set()
    for entry in brands:
        brand_id = str(entry.get("id"))
        if brand_id in seen:
            continue
        seen.add(brand_id)
        reflected = bool(entry.get("reflected"))
        rows.append(
            {
                "id": new_id(),
                "asset_id": asset_id,
                "brand_id": brand_id,
                "reflected": reflected,
                "reflected_by": (entry.get("reflected_by") or None) if reflected else None,
                "reflected_at": (entry.get("reflected_at") or None) if reflected else None,
                "created_at": timestamp,
            }
        )
    conn.execute(insert(ab), rows)


def set_brand_reflection(
    conn: Connection,
    asset_id: str,
    brand_id: str,
    reflected: bool,
    *,
    reflected_by: str | None = None,
) -> dict[str, Any]:
    """Toggle the reflection flag of one attached brand."""

    ab = schema.asset_brands
    values = {
        "reflected": bool(reflected),
        "reflected_by": (reflected_by or None) if reflected else None,
        "reflected_at": today_iso() if reflected else None,
    }
    result = conn.execute(
        sa_update(ab)
        .where(ab.c.asset_id == asset_id, ab.c.brand_id == brand_id)
        .values(**values)
    )
    if result.rowcount == 0:
        raise AssetNotFoundError(f"{asset_id}/{brand_id}")
    _touch_asset(conn, asset_id)
    return values


def delete_asset(conn: Connection, asset_id: str) -> bool:
    ab = schema.asset_brands
    a = schema.assets
    conn.execute(sa_delete(ab).where(ab.c.asset_id == asset_id))
    result = conn.execute(sa_delete(a).where(a.c.id == asset_id))
    return result.rowcount > 0


def delete_assets(conn: Connection, asset_ids: Iterable[str]) -> list[str]:
    """Delete every id in ``asset_ids``; return the ids that existed."""

    ids = list(dict.fromkeys(str(asset_id) for asset_id in asset_ids if asset_id))
    if not ids:
        return []
    a = schema.assets
    ab = schema.asset_brands
    existing = list(conn.execute(select(a.c.id).where(a.c.id.in_(ids))).scalars())
    if existing:
        conn.execute(sa_delete(ab).where(ab.c.asset_id.in_(existing)))
        conn.execute(sa_delete(a).where(a.c.id.in_(existing)))
    return existing


def fetch_plugin_assets(
    conn: Connection,
    *,
    provider: str | None = None,
    status: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[dict[str, Any]]:
    """Return ``{game_name, gamename, provider, status}`` rows for plugins.

    An unknown ``provider`` yields an empty list rather than every asset.
    """

    a = schema.assets
    p = schema.providers

    provider_id: str | None = None
    if provider:
        provider_id = conn.execute(
            select(p.c.id).where(p.c.name == provider)
        ).scalar_one_or_none()
        if provider_id is None:
            logger.info("Plugin asset query for unknown provider %r", provider)
            return []

    def _page(offset: int, limit: int) -> list[Mapping[str, Any]]:
        stmt = (
            select(a.c.game_name, a.c.status, p.c.name.label("provider_name"))
            .select_from(a.outerjoin(p, a.c.provider_id == p.c.id))
            .order_by(a.c.game_name, a.c.id)
            .limit(limit)
            .offset(offset)
        )
        if provider_id is not None:
            stmt = stmt.where(a.c.provider_id == provider_id)
        if status:
            stmt = stmt.where(a.c.status == status)
        return list(conn.execute(stmt).mappings().all())

    rows = fetch_all_pages(_page, page_size=page_size)
    return [
        {
            "game_name": row["game_name"],
            "gamename": to_plugin_name(row["game_name"]),
            "provider": row.get("provider_name") or "Unknown",
            "status": row["status"],
        }
        for row in rows
    ]


__all__ = [
    "AssetNotFoundError",
    "CatalogServiceError",
    "DEFAULT_PAGE_SIZE",
    "InvalidAssetError",
    "add_brands_to_asset",
    "create_asset",
    "delete_asset",
    "delete_assets",
    "fetch_all_pages",
    "fetch_assets",
    "fetch_plugin_assets",
    "get_asset",
    "replace_asset_brands",
    "resolve_provider_id",
    "set_brand_reflection",
    "update_asset_designer",
    "update_asset_fields",
    "update_asset_status",
]
