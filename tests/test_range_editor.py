import threading

import pytest

from tests.app_helpers import build_asset
from tracker.models import Designer
from tracker.range_editor import (
    DragInProgressError,
    RangeEditError,
    RangeEditor,
    compute_range,
    hit_test,
)
from tracker.store import AssetStore


class RecordingPersist:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, asset_id, field, value):
        with self._lock:
            self.calls.append((asset_id, field, value))
        if asset_id in self.failing:
            raise RuntimeError('write rejected')


@pytest.fixture
def view():
    return [build_asset(f'a{i}', f'Game {i}', 'Pragmatic') for i in range(10)]


def make_editor(view, persist, *, designers=None):
    store = AssetStore()
    store.replace_all(view)
    refetches = []

    def refetch():
        refetches.append(True)
        return len(store)

    lookup = designers or {}
    editor = RangeEditor(
        store,
        persist,
        resolve_designer=lookup.get,
        refetch=refetch,
        max_workers=4,
    )
    return editor, store, refetches


def test_compute_range_is_direction_independent():
    assert compute_range(2, 5) == (2, 5)
    assert compute_range(5, 2) == (2, 5)


@pytest.mark.parametrize('start, end', [(2, 5), (5, 2)])
def test_drag_affects_inclusive_range_in_either_direction(view, start, end):
    persist = RecordingPersist()
    editor, store, refetches = make_editor(view, persist)

    drag = editor.begin(view, start, 'status', 'completed')
    drag.move_to(end)
    result = drag.release()

    assert (result.start, result.end) == (2, 5)
    assert result.affected == 4
    assert sorted(call[0] for call in persist.calls) == ['a2', 'a3', 'a4', 'a5']
    assert {asset.id for asset in store.snapshot() if asset.status == 'completed'} == {
        'a2', 'a3', 'a4', 'a5'
    }
    assert result.summary == '4 saved'
    assert result.outcome == 'success'
    assert not result.refetched
    assert refetches == []


def test_partial_failure_reports_counts_and_refetches(view):
    persist = RecordingPersist(failing={'a4'})
    editor, _, refetches = make_editor(view, persist)

    drag = editor.begin(view, 2, 'status', 'ongoing')
    drag.move_to(5)
    result = drag.release()

    assert result.summary == '3 saved, 1 failed'
    assert result.failed == ['a4']
    assert result.outcome == 'partial'
    assert result.refetched
    assert refetches == [True]


def test_all_failures_are_reported_as_failure(view):
    persist = RecordingPersist(failing={'a0', 'a1'})
    editor, _, refetches = make_editor(view, persist)

    result = editor.apply_range(view, 0, 1, 'status', 'ongoing')

    assert result.summary == '0 saved, 2 failed'
    assert result.outcome == 'failure'
    assert refetches == [True]


def test_single_row_release_is_a_no_op(view):
    persist = RecordingPersist()
    editor, store, _ = make_editor(view, persist)

    drag = editor.begin(view, 3, 'status', 'uploaded')
    assert drag.release() is None
    assert persist.calls == []
    assert all(asset.status == 'not-started' for asset in store.snapshot())
    assert editor.active is None


def test_pointer_hit_testing_tracks_rows(view):
    bounds = [(i * 40.0, i * 40.0 + 39.0) for i in range(len(view))]
    assert hit_test(85.0, bounds, fallback=0) == 2
    assert hit_test(10_000.0, bounds, fallback=7) == 7

    persist = RecordingPersist()
    editor, _, _ = make_editor(view, persist)
    drag = editor.begin(view, 1, 'status', 'exported')
    assert drag.move(130.0, bounds) == 3
    # Pointer outside every row keeps the last index.
    assert drag.move(-50.0, bounds) == 3
    result = drag.release()
    assert (result.start, result.end) == (1, 3)


def test_only_one_drag_at_a_time(view):
    editor, _, _ = make_editor(view, RecordingPersist())
    drag = editor.begin(view, 0, 'status', 'ongoing')
    with pytest.raises(DragInProgressError):
        editor.begin(view, 1, 'status', 'ongoing')

    drag.cancel()
    assert editor.active is None
    second = editor.begin(view, 1, 'status', 'ongoing')
    assert editor.active is second
    with pytest.raises(RangeEditError):
        drag.move_to(4)


def test_drag_uses_view_captured_at_start(view):
    persist = RecordingPersist()
    editor, store, _ = make_editor(view, persist)

    drag = editor.begin(view, 0, 'status', 'completed')
    store.remove(['a0', 'a1'])
    drag.move_to(2)
    result = drag.release()

    assert sorted(call[0] for call in persist.calls) == ['a0', 'a1', 'a2']
    assert result.affected == 3


def test_designer_range_supports_unassigned_sentinel(view):
    designer = Designer(id='d1', name='Jane Doe')
    persist = RecordingPersist()
    editor, store, _ = make_editor(view, persist, designers={'d1': designer})

    editor.apply_range(view, 0, 2, 'designer', 'd1')
    assert store.get('a1').designer == designer
    assert {call[2] for call in persist.calls} == {'d1'}

    persist.calls.clear()
    editor.apply_range(view, 1, 2, 'designer', 'unassigned')
    assert store.get('a1').designer is None
    assert store.get('a0').designer == designer
    assert {call[2] for call in persist.calls} == {None}


@pytest.mark.parametrize(
    'field, value',
    [('status', 'done'), ('designer', 'missing-designer'), ('notes', 'x')],
)
def test_invalid_values_are_rejected_before_any_write(view, field, value):
    persist = RecordingPersist()
    editor, _, _ = make_editor(view, persist)
    with pytest.raises(RangeEditError):
        editor.begin(view, 0, field, value)
    with pytest.raises(RangeEditError):
        editor.apply_range(view, 0, 3, field, value)
    assert persist.calls == []
    assert editor.active is None
