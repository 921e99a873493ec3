"""Concurrent fan-out/fan-in of per-record persistence calls."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
import logging
from typing import Any, Callable, Generic, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    item: T
    ok: bool
    result: Any = None
    error: BaseException | None = None


def run_concurrently(
    items: Sequence[T],
    func: Callable[[T], R],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[TaskOutcome[T]]:
    """Call ``func`` for every item concurrently and wait for all of them.

    Exceptions are captured per item so one failing call never stops the
    others. Outcomes are returned in input order.
    """

    try:
        worker_count = int(max_workers)
    except (TypeError, ValueError):
        worker_count = 1
    if worker_count <= 0:
        worker_count = 1

    item_list = list(items)
    if not item_list:
        return []

    outcomes: list[TaskOutcome[T] | None] = [None] * len(item_list)
    with ThreadPoolExecutor(max_workers=min(worker_count, len(item_list))) as executor:
        futures = {
            executor.submit(func, item): index for index, item in enumerate(item_list)
        }
        for future in as_completed(futures):
            index = futures[future]
            item = item_list[index]
            try:
                result = future.result()
            except Exception as exc:
                logger.warning("Persistence call failed for %r: %s", item, exc)
                outcomes[index] = TaskOutcome(item=item, ok=False, error=exc)
            else:
                outcomes[index] = TaskOutcome(item=item, ok=True, result=result)

    return [outcome for outcome in outcomes if outcome is not None]


def summarize_outcome(succeeded: int, failed: int) -> str:
    """Classify a bulk run as ``success``, ``partial`` or ``failure``."""

    if failed == 0:
        return "success"
    if succeeded == 0:
        return "failure"
    return "partial"


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "TaskOutcome",
    "run_concurrently",
    "summarize_outcome",
]
