"""Drag-to-fill editing of a contiguous range of rows in a rendered view."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Callable, Sequence

from .fanout import DEFAULT_MAX_WORKERS, run_concurrently, summarize_outcome
from .models import UNASSIGNED, Asset, Designer, is_valid_status
from .store import AssetStore

logger = logging.getLogger(__name__)

RANGE_FIELDS = ("status", "designer")

RowBounds = Sequence[tuple[float, float]]


class RangeEditError(ValueError):
    """Raised when a range edit request is invalid."""


class DragInProgressError(RuntimeError):
    """Raised when a drag starts while another one is still active."""


def hit_test(pointer_y: float, row_bounds: RowBounds, fallback: int) -> int:
    """Return the index of the row whose ``(top, bottom)`` contains ``pointer_y``."""

    for index, (top, bottom) in enumerate(row_bounds):
        if top <= pointer_y <= bottom:
            return index
    return fallback


def compute_range(start: int, current: int) -> tuple[int, int]:
    return min(start, current), max(start, current)


@dataclass
class RangeEditResult:
    field: str
    value: Any
    start: int
    end: int
    saved: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    refetched: bool = False

    @property
    def affected(self) -> int:
        return self.end - self.start + 1

    @property
    def outcome(self) -> str:
        return summarize_outcome(len(self.saved), len(self.failed))

    @property
    def summary(self) -> str:
        text = f"{len(self.saved)} saved"
        if self.failed:
            text += f", {len(self.failed)} failed"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "start": self.start,
            "end": self.end,
            "affected": self.affected,
            "saved": list(self.saved),
            "failed": list(self.failed),
            "refetched": self.refetched,
            "outcome": self.outcome,
            "summary": self.summary,
        }


class DragSession:
    """Mutable handle for one drag gesture.

    The view is captured when the drag starts so later re-filtering of the
    live store cannot shift the indices being dragged over.
    """

    def __init__(
        self,
        editor: "RangeEditor",
        view: Sequence[Asset],
        start_index: int,
        field_name: str,
        value: Any,
    ):
        self._editor = editor
        self.view: tuple[Asset, ...] = tuple(view)
        self.start_index = start_index
        self.current_index = start_index
        self.field = field_name
        self.value = value
        self.active = True

    def _require_active(self) -> None:
        if not self.active:
            raise RangeEditError("drag session has already ended")

    def move(self, pointer_y: float, row_bounds: RowBounds) -> int:
        self._require_active()
        self.current_index = hit_test(pointer_y, row_bounds, self.current_index)
        if self.current_index >= len(self.view):
            self.current_index = len(self.view) - 1
        return self.current_index

    def move_to(self, index: int) -> int:
        self._require_active()
        self.current_index = max(0, min(int(index), len(self.view) - 1))
        return self.current_index

    @property
    def selection(self) -> tuple[int, int]:
        return compute_range(self.start_index, self.current_index)

    def release(self) -> RangeEditResult | None:
        """End the drag and apply the value across the selected range.

        Returns ``None`` when the range covers a single row.
        """

        self._require_active()
        start, end = self.selection
        self._teardown()
        if start == end:
            return None
        return self._editor.apply_range(self.view, start, end, self.field, self.value)

    def cancel(self) -> None:
        if self.active:
            self._teardown()

    def to_dict(self) -> dict[str, Any]:
        start, end = self.selection
        return {
            "active": self.active,
            "field": self.field,
            "value": self.value,
            "start_index": self.start_index,
            "current_index": self.current_index,
            "selection": [start, end],
            "rows": len(self.view),
        }

    def _teardown(self) -> None:
        self.active = False
        self._editor._end(self)


class RangeEditor:
    """Apply a field value to a range of rows with optimistic local updates.

    ``persist(asset_id, field, value)`` is called once per affected row,
    concurrently. Any failure triggers a full re-fetch of the store.
    """

    def __init__(
        self,
        store: AssetStore,
        persist: Callable[[str, str, Any], Any],
        *,
        resolve_designer: Callable[[str], Designer | None] | None = None,
        refetch: Callable[[], Any] | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.store = store
        self.persist = persist
        self.resolve_designer = resolve_designer
        self.refetch = refetch or store.refresh
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._active: DragSession | None = None

    @property
    def active(self) -> DragSession | None:
        return self._active

    def begin(
        self, view: Sequence[Asset], start_index: int, field_name: str, value: Any
    ) -> DragSession:
        view_rows = tuple(view)
        if not 0 <= int(start_index) < len(view_rows):
            raise RangeEditError("start index is outside the view")
        self.validate(field_name, value)
        with self._lock:
            if self._active is not None and self._active.active:
                raise DragInProgressError("another drag is still active")
            session = DragSession(self, view_rows, int(start_index), field_name, value)
            self._active = session
        return session

    def _end(self, session: DragSession) -> None:
        with self._lock:
            if self._active is session:
                self._active = None

    def validate(self, field_name: str, value: Any) -> Designer | None:
        """Return the target designer (or None) or raise :class:`RangeEditError`."""

        if field_name not in RANGE_FIELDS:
            raise RangeEditError(f"unsupported field: {field_name}")
        if field_name == "status":
            if not is_valid_status(value):
                raise RangeEditError(f"invalid status: {value}")
            return None
        if value in (None, "", UNASSIGNED):
            return None
        if self.resolve_designer is None:
            return Designer(id=str(value), name="")
        designer = self.resolve_designer(str(value))
        if designer is None:
            raise RangeEditError(f"unknown designer: {value}")
        return designer

    def apply_range(
        self,
        view: Sequence[Asset],
        start: int,
        end: int,
        field_name: str,
        value: Any,
    ) -> RangeEditResult:
        """Apply ``value`` to ``view[start:end + 1]``."""

        rows = tuple(view)
        start, end = compute_range(int(start), int(end))
        if start < 0 or end >= len(rows):
            raise RangeEditError("range is outside the view")
        designer = self.validate(field_name, value)
        targets = [asset.id for asset in rows[start : end + 1]]

        if field_name == "status":
            self.store.apply_many(targets, status=value)
            persisted_value = value
        else:
            self.store.apply_many(targets, designer=designer)
            persisted_value = designer.id if designer is not None else None

        result = RangeEditResult(field=field_name, value=value, start=start, end=end)
        outcomes = run_concurrently(
            targets,
            lambda asset_id: self.persist(asset_id, field_name, persisted_value),
            max_workers=self.max_workers,
        )
        for outcome in outcomes:
            (result.saved if outcome.ok else result.failed).append(outcome.item)

        if result.failed:
            logger.warning(
                "Range edit of %s on rows %d-%d: %s; re-fetching",
                field_name,
                start,
                end,
                result.summary,
            )
            try:
                self.refetch()
            except Exception:
                logger.exception("Reconciling re-fetch failed")
            else:
                result.refetched = True
        else:
            logger.info(
                "Range edit of %s on rows %d-%d: %s", field_name, start, end, result.summary
            )
        return result


__all__ = [
    "DragInProgressError",
    "DragSession",
    "RANGE_FIELDS",
    "RangeEditError",
    "RangeEditResult",
    "RangeEditor",
    "compute_range",
    "hit_test",
]
