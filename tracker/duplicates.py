"""Duplicate detection for single and multi-line asset submissions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import math
from typing import Any, Callable, Iterable, Sequence

from helpers import normalize_game_name, normalize_provider_name, split_title_lines

from .fanout import DEFAULT_MAX_WORKERS, run_concurrently, summarize_outcome
from .models import Asset

logger = logging.getLogger(__name__)


class EmptyBrandDeltaError(ValueError):
    """Raised when a lone duplicate submission would add no brands."""

    def __init__(self, match: "DuplicateMatch"):
        super().__init__(
            f"{match.asset.game_name} already exists for {match.asset.provider} "
            "with every selected brand"
        )
        self.match = match


def find_duplicate(
    game_name: Any, provider_name: Any, assets: Iterable[Asset]
) -> Asset | None:
    """Return the first asset matching ``game_name`` under ``provider_name``."""

    name_key = normalize_game_name(game_name)
    provider_key = normalize_provider_name(provider_name)
    if not name_key:
        return None
    for asset in assets:
        if normalize_provider_name(asset.provider) != provider_key:
            continue
        if normalize_game_name(asset.game_name) == name_key:
            return asset
    return None


@dataclass(frozen=True)
class DuplicateMatch:
    name: str
    asset: Asset
    new_brand_ids: tuple[str, ...] = ()

    @property
    def actionable(self) -> bool:
        return bool(self.new_brand_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "asset": self.asset.to_dict(),
            "new_brand_ids": list(self.new_brand_ids),
            "actionable": self.actionable,
        }


@dataclass(frozen=True)
class BatchResolution:
    provider: str
    brand_ids: tuple[str, ...] = ()
    new_names: tuple[str, ...] = ()
    duplicates: tuple[DuplicateMatch, ...] = ()

    @property
    def candidate_count(self) -> int:
        return len(self.new_names) + len(self.duplicates)

    @property
    def is_single(self) -> bool:
        return self.candidate_count == 1

    @property
    def blocked(self) -> bool:
        """True for a lone duplicate whose brand delta is empty."""

        return (
            self.is_single
            and len(self.duplicates) == 1
            and not self.duplicates[0].actionable
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "brand_ids": list(self.brand_ids),
            "new_names": list(self.new_names),
            "duplicates": [match.to_dict() for match in self.duplicates],
            "candidate_count": self.candidate_count,
            "blocked": self.blocked,
        }


def resolve_batch(
    text: Any,
    provider: Any,
    brand_ids: Sequence[str],
    assets: Iterable[Asset],
) -> BatchResolution:
    """Partition a pasted block of names into new candidates and duplicates.

    Repeated names inside the block collapse onto their first occurrence.
    """

    provider_name = str(provider or "").strip()
    selected = tuple(dict.fromkeys(str(brand_id) for brand_id in brand_ids if brand_id))
    asset_list = list(assets)

    new_names: list[str] = []
    duplicates: list[DuplicateMatch] = []
    seen: set[str] = set()
    for name in split_title_lines(text):
        key = normalize_game_name(name)
        if key in seen:
            continue
        seen.add(key)
        existing = find_duplicate(name, provider_name, asset_list)
        if existing is None:
            new_names.append(name)
            continue
        attached = existing.brand_ids
        delta = tuple(brand_id for brand_id in selected if brand_id not in attached)
        duplicates.append(DuplicateMatch(name=name, asset=existing, new_brand_ids=delta))

    return BatchResolution(
        provider=provider_name,
        brand_ids=selected,
        new_names=tuple(new_names),
        duplicates=tuple(duplicates),
    )


@dataclass
class CommitSummary:
    created: list[Asset] = field(default_factory=list)
    updated: list[DuplicateMatch] = field(default_factory=list)
    skipped: list[DuplicateMatch] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        return summarize_outcome(len(self.created) + len(self.updated), len(self.failed))

    def message(self) -> str:
        parts = [f"{len(self.created)} added"]
        if self.updated:
            parts.append(f"{len(self.updated)} updated with new brands")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": [asset.to_dict() for asset in self.created],
            "updated": [match.to_dict() for match in self.updated],
            "skipped": [match.name for match in self.skipped],
            "failed": list(self.failed),
            "outcome": self.outcome,
            "message": self.message(),
        }


def commit_batch(
    resolution: BatchResolution,
    *,
    create_asset: Callable[[str], Asset],
    add_brands: Callable[[Asset, Sequence[str]], Any],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> CommitSummary:
    """Insert every new name and attach brand deltas to duplicates.

    Duplicates with an empty delta are skipped. A lone duplicate with an
    empty delta raises :class:`EmptyBrandDeltaError` before any call is made.
    """

    if resolution.blocked:
        raise EmptyBrandDeltaError(resolution.duplicates[0])

    summary = CommitSummary()
    to_update: list[DuplicateMatch] = []
    for match in resolution.duplicates:
        if match.actionable:
            to_update.append(match)
        else:
            summary.skipped.append(match)

    jobs: list[tuple[str, Any]] = [("create", name) for name in resolution.new_names]
    jobs.extend(("update", match) for match in to_update)

    def _run(job: tuple[str, Any]) -> Any:
        kind, payload = job
        if kind == "create":
            return create_asset(payload)
        return add_brands(payload.asset, payload.new_brand_ids)

    for outcome in run_concurrently(jobs, _run, max_workers=max_workers):
        kind, payload = outcome.item
        label = payload if kind == "create" else payload.name
        if not outcome.ok:
            summary.failed.append(label)
        elif kind == "create":
            summary.created.append(outcome.result)
        elif isinstance(outcome.result, Asset):
            # Report the reloaded record so callers see the merged brands.
            summary.updated.append(replace(payload, asset=outcome.result))
        else:
            summary.updated.append(payload)

    logger.info(
        "Committed batch for %s: %s", resolution.provider or "?", summary.message()
    )
    return summary


def live_duplicate_check(
    text: Any,
    provider: Any,
    assets: Iterable[Asset],
    *,
    brand_ids: Sequence[str] = (),
    page: int = 1,
    page_size: int = 10,
) -> dict[str, Any] | None:
    """Re-run detection for a multi-line field, paginating the duplicates.

    Returns ``None`` until a provider has been chosen.
    """

    if not str(provider or "").strip():
        return None
    resolution = resolve_batch(text, provider, brand_ids, assets)
    size = max(int(page_size), 1)
    total = len(resolution.duplicates)
    pages = max(math.ceil(total / size), 1)
    current = min(max(int(page), 1), pages)
    start = (current - 1) * size
    return {
        "provider": resolution.provider,
        "duplicates": [
            match.to_dict() for match in resolution.duplicates[start : start + size]
        ],
        "duplicate_count": total,
        "new_count": len(resolution.new_names),
        "new_names": list(resolution.new_names),
        "page": current,
        "pages": pages,
        "page_size": size,
    }


__all__ = [
    "BatchResolution",
    "CommitSummary",
    "DuplicateMatch",
    "EmptyBrandDeltaError",
    "commit_batch",
    "find_duplicate",
    "live_duplicate_check",
    "resolve_batch",
]
