"""Game asset credential links: persistence, search and grouping."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import delete as sa_delete, func, insert, select, update as sa_update
from sqlalchemy.engine import Connection

from db.schema import game_asset_links
from helpers import new_id, normalize_game_name, now_utc_iso

logger = logging.getLogger(__name__)

LINK_FIELDS = ("game_name", "asset_url", "username", "password")


class LinkValidationError(ValueError):
    """Raised when a link payload is missing its game name."""


def _clean(payload: Mapping[str, Any], *, partial: bool = False) -> dict[str, str]:
    values: dict[str, str] = {}
    for key in LINK_FIELDS:
        if key not in payload:
            if not partial:
                values[key] = ""
            continue
        raw = payload[key]
        values[key] = "" if raw is None else str(raw).strip()
    if ("game_name" in values or not partial) and not values.get("game_name"):
        raise LinkValidationError("game name is required")
    return values


def _row_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "game_name": row["game_name"],
        "asset_url": row["asset_url"] or "",
        "username": row["username"] or "",
        "password": row["password"] or "",
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def list_links(conn: Connection) -> list[dict[str, Any]]:
    t = game_asset_links
    rows = conn.execute(
        select(t).order_by(func.lower(t.c.game_name), t.c.created_at, t.c.id)
    ).mappings()
    return [_row_to_dict(row) for row in rows]


def get_link(conn: Connection, link_id: str) -> dict[str, Any] | None:
    t = game_asset_links
    row = conn.execute(select(t).where(t.c.id == link_id)).mappings().first()
    return _row_to_dict(row) if row is not None else None


def create_links(
    conn: Connection, payloads: Sequence[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    """Insert one row per payload; rows without a game name are rejected."""

    cleaned = [_clean(payload) for payload in payloads]
    if not cleaned:
        raise LinkValidationError("at least one link is required")
    timestamp = now_utc_iso()
    ids = []
    for values in cleaned:
        link_id = new_id()
        ids.append(link_id)
        conn.execute(
            insert(game_asset_links).values(
                id=link_id, created_at=timestamp, updated_at=timestamp, **values
            )
        )
    logger.info("Created %d game asset links", len(ids))
    return [link for link in (get_link(conn, link_id) for link_id in ids) if link]


def update_link(
    conn: Connection, link_id: str, payload: Mapping[str, Any]
) -> dict[str, Any] | None:
    values = _clean(payload, partial=True)
    if not values:
        return get_link(conn, link_id)
    t = game_asset_links
    result = conn.execute(
        sa_update(t)
        .where(t.c.id == link_id)
        .values(updated_at=now_utc_iso(), **values)
    )
    if result.rowcount == 0:
        return None
    return get_link(conn, link_id)


def delete_link(conn: Connection, link_id: str) -> bool:
    t = game_asset_links
    return conn.execute(sa_delete(t).where(t.c.id == link_id)).rowcount > 0


def search_links(links: Iterable[Mapping[str, Any]], query: str | None) -> list[dict[str, Any]]:
    needle = (query or "").strip().casefold()
    items = [dict(link) for link in links]
    if not needle:
        return items
    return [
        link
        for link in items
        if any(needle in str(link.get(key) or "").casefold() for key in LINK_FIELDS)
    ]


def group_links(
    links: Iterable[Mapping[str, Any]],
    *,
    pinned: Iterable[str] = (),
) -> list[dict[str, Any]]:
    """Group links by game name.

    Each group lists every URL; the first row's credentials are kept. Pinned
    game names come first, then the rest alphabetically.
    """

    pinned_keys = {normalize_game_name(name) for name in pinned}
    groups: dict[str, dict[str, Any]] = {}
    for link in links:
        key = normalize_game_name(link.get("game_name"))
        group = groups.get(key)
        if group is None:
            group = {
                "game_name": link.get("game_name") or "",
                "urls": [],
                "ids": [],
                "username": link.get("username") or "",
                "password": link.get("password") or "",
                "pinned": key in pinned_keys,
            }
            groups[key] = group
        url = link.get("asset_url")
        if url and url not in group["urls"]:
            group["urls"].append(url)
        group["ids"].append(link.get("id"))

    return sorted(
        groups.values(),
        key=lambda group: (not group["pinned"], group["game_name"].casefold()),
    )


__all__ = [
    "LINK_FIELDS",
    "LinkValidationError",
    "create_links",
    "delete_link",
    "get_link",
    "group_links",
    "list_links",
    "search_links",
    "update_link",
]
