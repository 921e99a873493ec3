"""Filtered and sorted views over the asset store."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Iterable, Sequence

from helpers import normalize_provider_name, to_copy_name

from .models import ASSET_STATUSES, UNASSIGNED, Asset

SORT_KEYS: dict[str, Callable[[Asset], Any]] = {
    "game_name": lambda asset: asset.game_name.casefold(),
    "provider": lambda asset: asset.provider.casefold(),
    "status": lambda asset: ASSET_STATUSES.index(asset.status)
    if asset.status in ASSET_STATUSES
    else len(ASSET_STATUSES),
    "designer": lambda asset: (asset.designer.name.casefold() if asset.designer else ""),
    "date_found": lambda asset: asset.date_found,
    "created_at": lambda asset: asset.created_at,
    "updated_at": lambda asset: asset.updated_at,
}


def _matches_search(asset: Asset, needle: str) -> bool:
    haystack = [asset.game_name, asset.provider, asset.notes, asset.found_by]
    if asset.designer is not None:
        haystack.append(asset.designer.name)
    haystack.extend(brand.name for brand in asset.brands)
    return any(needle in value.casefold() for value in haystack if value)


def build_view(
    assets: Iterable[Asset],
    *,
    provider: str | None = None,
    statuses: Sequence[str] | None = None,
    designer_ids: Sequence[str] | None = None,
    search: str | None = None,
    sort: str | None = None,
    descending: bool = False,
) -> list[Asset]:
    """Return the rows a user sees for the given filters.

    ``designer_ids`` may contain ``"unassigned"`` to include assets with no
    designer. Without ``sort`` the store order (newest first) is kept.
    """

    rows = list(assets)
    if provider:
        key = normalize_provider_name(provider)
        rows = [asset for asset in rows if normalize_provider_name(asset.provider) == key]
    if statuses:
        wanted_statuses = set(statuses)
        rows = [asset for asset in rows if asset.status in wanted_statuses]
    if designer_ids:
        wanted_designers = set(designer_ids)
        include_unassigned = UNASSIGNED in wanted_designers
        rows = [
            asset
            for asset in rows
            if (asset.designer_id in wanted_designers)
            or (include_unassigned and asset.designer is None)
        ]
    needle = (search or "").strip().casefold()
    if needle:
        rows = [asset for asset in rows if _matches_search(asset, needle)]
    if sort:
        key_func = SORT_KEYS.get(sort)
        if key_func is None:
            raise ValueError(f"unsupported sort key: {sort}")
        rows = sorted(rows, key=key_func, reverse=descending)
    return rows


def status_summary(assets: Iterable[Asset]) -> dict[str, int]:
    counts = Counter(asset.status for asset in assets)
    return {status: counts.get(status, 0) for status in ASSET_STATUSES}


def provider_folders(assets: Iterable[Asset]) -> list[dict[str, Any]]:
    """Group assets by provider with a per-status count for each folder."""

    grouped: dict[str, list[Asset]] = {}
    labels: dict[str, str] = {}
    for asset in assets:
        key = normalize_provider_name(asset.provider)
        grouped.setdefault(key, []).append(asset)
        labels.setdefault(key, asset.provider or "Unknown")

    folders = []
    for key in sorted(grouped, key=lambda value: labels[value].casefold()):
        members = grouped[key]
        folders.append(
            {
                "provider": labels[key],
                "count": len(members),
                "status_summary": status_summary(members),
            }
        )
    return folders


def copy_text(assets: Iterable[Asset]) -> dict[str, str]:
    """Return the copy-ready name blocks for a provider folder."""

    names = [asset.game_name for asset in assets]
    return {
        "compact": "\n".join(to_copy_name(name) for name in names),
        "plain": "\n".join(names),
    }


__all__ = [
    "SORT_KEYS",
    "build_view",
    "copy_text",
    "provider_folders",
    "status_summary",
]
