"""In-memory asset store shared by the dashboard views and bulk editors."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Callable, Iterable

from .models import Asset


@dataclass
class AssetStore:
    """Track the session's asset records and keep them synced with the database.

    Optimistic edits patch records in place; ``refresh`` replaces the whole
    list with whatever ``loader`` returns, discarding any local guesses.
    """

    loader: Callable[[], Iterable[Asset]] | None = None
    logger: logging.Logger | None = None

    _assets: list[Asset] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    refresh_count: int = 0

    def replace_all(self, assets: Iterable[Asset]) -> None:
        with self._lock:
            self._assets = list(assets)

    def snapshot(self) -> list[Asset]:
        """Return a copy of the current records, newest first."""

        with self._lock:
            return list(self._assets)

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)

    def get(self, asset_id: str) -> Asset | None:
        with self._lock:
            for asset in self._assets:
                if asset.id == asset_id:
                    return asset
        return None

    def add(self, asset: Asset) -> None:
        with self._lock:
            self._assets.insert(0, asset)

    def put(self, asset: Asset) -> None:
        """Replace the record with ``asset.id`` or prepend it when missing."""

        with self._lock:
            for index, existing in enumerate(self._assets):
                if existing.id == asset.id:
                    self._assets[index] = asset
                    return
            self._assets.insert(0, asset)

    def apply(self, asset_id: str, **changes: Any) -> Asset | None:
        """Patch ``asset_id`` locally and return the updated record."""

        with self._lock:
            for index, existing in enumerate(self._assets):
                if existing.id == asset_id:
                    updated = existing.with_changes(**changes)
                    self._assets[index] = updated
                    return updated
        return None

    def apply_many(self, asset_ids: Iterable[str], **changes: Any) -> int:
        wanted = set(asset_ids)
        patched = 0
        with self._lock:
            for index, existing in enumerate(self._assets):
                if existing.id in wanted:
                    self._assets[index] = existing.with_changes(**changes)
                    patched += 1
        return patched

    def remove(self, asset_ids: Iterable[str]) -> int:
        wanted = set(asset_ids)
        with self._lock:
            before = len(self._assets)
            self._assets = [asset for asset in self._assets if asset.id not in wanted]
            return before - len(self._assets)

    def refresh(self, loader: Callable[[], Iterable[Asset]] | None = None) -> int:
        """Reload every record from the source of truth."""

        source = loader or self.loader
        if source is None:
            raise RuntimeError("AssetStore has no loader configured")
        try:
            assets = list(source())
        except Exception:
            if self.logger:
                self.logger.exception("Failed to refresh asset store")
            raise
        with self._lock:
            self._assets = assets
            self.refresh_count += 1
        if self.logger:
            self.logger.debug("Asset store refreshed with %d records", len(assets))
        return len(assets)


__all__ = ["AssetStore"]
