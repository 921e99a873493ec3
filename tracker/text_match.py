"""Bulk status/designer updates driven by a pasted list of titles."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Iterable

from helpers import normalize_game_name, normalize_provider_name, split_title_lines

from .fanout import DEFAULT_MAX_WORKERS, run_concurrently, summarize_outcome
from .models import UNASSIGNED, Asset, Designer, is_valid_status
from .store import AssetStore

logger = logging.getLogger(__name__)


class _LeaveUnchanged:
    def __repr__(self) -> str:
        return "LEAVE_UNCHANGED"


LEAVE_UNCHANGED: Any = _LeaveUnchanged()


class TextMatchValidationError(ValueError):
    """Raised before any update when the request is incomplete."""


@dataclass
class TextMatchResult:
    provider: str
    status: str
    designer_requested: bool
    matched: list[Asset] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    status_updated: list[str] = field(default_factory=list)
    status_failed: list[str] = field(default_factory=list)
    designer_updated: list[str] = field(default_factory=list)
    designer_failed: list[str] = field(default_factory=list)

    @property
    def clear_input(self) -> bool:
        return not self.missing

    @property
    def outcome(self) -> str:
        failed = len(self.status_failed) + len(self.designer_failed)
        succeeded = len(self.status_updated) + len(self.designer_updated)
        return summarize_outcome(succeeded, failed)

    def message(self) -> str:
        parts = [f"{len(self.status_updated)} status updated"]
        if self.designer_requested:
            parts.append(f"{len(self.designer_updated)} designer updated")
        if self.missing:
            parts.append(f"{len(self.missing)} not found")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status,
            "matched": [asset.game_name for asset in self.matched],
            "missing": list(self.missing),
            "status_updated": len(self.status_updated),
            "status_failed": len(self.status_failed),
            "designer_requested": self.designer_requested,
            "designer_updated": len(self.designer_updated),
            "designer_failed": len(self.designer_failed),
            "clear_input": self.clear_input,
            "outcome": self.outcome,
            "message": self.message(),
        }


def partition_titles(
    titles: Iterable[str], provider: str, assets: Iterable[Asset]
) -> tuple[list[Asset], list[str]]:
    """Split ``titles`` into assets found under ``provider`` and missing titles."""

    provider_key = normalize_provider_name(provider)
    lookup: dict[str, Asset] = {}
    for asset in assets:
        if normalize_provider_name(asset.provider) != provider_key:
            continue
        lookup.setdefault(normalize_game_name(asset.game_name), asset)

    matched: list[Asset] = []
    missing: list[str] = []
    seen_ids: set[str] = set()
    for title in titles:
        asset = lookup.get(normalize_game_name(title))
        if asset is None:
            missing.append(title)
        elif asset.id not in seen_ids:
            seen_ids.add(asset.id)
            matched.append(asset)
    return matched, missing


def bulk_text_match_update(
    text: Any,
    provider: Any,
    status: Any,
    assets: Iterable[Asset],
    *,
    update_status: Callable[[str, str], Any],
    update_designer: Callable[[str, str | None], Any],
    designer: Any = LEAVE_UNCHANGED,
    resolve_designer: Callable[[str], Designer | None] | None = None,
    store: AssetStore | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> TextMatchResult:
    """Update status (and optionally designer) of every title found under ``provider``.

    The designer update for a record only runs after its status update
    succeeded. Successful changes are patched into ``store`` when given.
    """

    provider_name = str(provider or "").strip()
    if not provider_name:
        raise TextMatchValidationError("provider is required")
    titles = split_title_lines(text)
    if not titles:
        raise TextMatchValidationError("at least one title is required")
    if not is_valid_status(status):
        raise TextMatchValidationError(f"invalid status: {status}")

    designer_requested = designer is not LEAVE_UNCHANGED
    target_designer: Designer | None = None
    if designer_requested and designer not in (None, "", UNASSIGNED):
        if resolve_designer is not None:
            target_designer = resolve_designer(str(designer))
            if target_designer is None:
                raise TextMatchValidationError(f"unknown designer: {designer}")
        else:
            target_designer = Designer(id=str(designer), name="")
    target_designer_id = target_designer.id if target_designer is not None else None

    matched, missing = partition_titles(titles, provider_name, assets)
    result = TextMatchResult(
        provider=provider_name,
        status=status,
        designer_requested=designer_requested,
        matched=matched,
        missing=missing,
    )

    def _update(asset: Asset) -> tuple[bool, bool | None]:
        try:
            update_status(asset.id, status)
        except Exception as exc:
            logger.warning("Status update failed for %s: %s", asset.id, exc)
            return False, None
        if store is not None:
            store.apply(asset.id, status=status)
        if not designer_requested:
            return True, None
        try:
            update_designer(asset.id, target_designer_id)
        except Exception as exc:
            logger.warning("Designer update failed for %s: %s", asset.id, exc)
            return True, False
        if store is not None:
            store.apply(asset.id, designer=target_designer)
        return True, True

    for outcome in run_concurrently(matched, _update, max_workers=max_workers):
        asset_id = outcome.item.id
        status_ok, designer_ok = outcome.result if outcome.ok else (False, None)
        (result.status_updated if status_ok else result.status_failed).append(asset_id)
        if designer_ok is True:
            result.designer_updated.append(asset_id)
        elif designer_ok is False:
            result.designer_failed.append(asset_id)

    logger.info("Text match for %s: %s", provider_name, result.message())
    return result


__all__ = [
    "LEAVE_UNCHANGED",
    "TextMatchResult",
    "TextMatchValidationError",
    "bulk_text_match_update",
    "partition_titles",
]
