import threading

import pytest

from tests.app_helpers import build_asset
from tracker.duplicates import (
    EmptyBrandDeltaError,
    commit_batch,
    find_duplicate,
    live_duplicate_check,
    resolve_batch,
)


@pytest.fixture
def existing():
    return [
        build_asset('a1', 'Sweet Bonanza', 'Pragmatic', brand_ids=['b1']),
        build_asset('a2', 'Gates of Olympus', 'Pragmatic'),
        build_asset('a3', 'Sweet Bonanza', 'NetEnt'),
    ]


def test_find_duplicate_matches_normalized_name_and_provider(existing):
    match = find_duplicate('sweet   bonanza', 'pragmatic', existing)
    assert match is not None
    assert match.id == 'a1'


def test_find_duplicate_requires_exact_normalized_name(existing):
    assert find_duplicate('Sweet Bonanza 2', 'Pragmatic', existing) is None


def test_find_duplicate_is_scoped_to_provider(existing):
    assert find_duplicate('Sweet Bonanza', 'NetEnt', existing).id == 'a3'
    assert find_duplicate('Gates of Olympus', 'NetEnt', existing) is None


def test_find_duplicate_returns_first_match_in_order():
    assets = [
        build_asset('first', 'Sugar Rush', 'Pragmatic'),
        build_asset('second', 'sugar  rush', 'PRAGMATIC'),
    ]
    assert find_duplicate('Sugar Rush', 'Pragmatic', assets).id == 'first'


def test_single_duplicate_reports_only_new_brands(existing):
    resolution = resolve_batch('Sweet Bonanza', 'Pragmatic', ['b1', 'b2'], existing)
    assert resolution.new_names == ()
    assert len(resolution.duplicates) == 1
    match = resolution.duplicates[0]
    assert match.asset.id == 'a1'
    assert match.new_brand_ids == ('b2',)
    assert match.actionable
    assert not resolution.blocked


def test_single_duplicate_with_empty_delta_is_blocked(existing):
    resolution = resolve_batch('Sweet Bonanza', 'Pragmatic', ['b1'], existing)
    assert resolution.duplicates[0].new_brand_ids == ()
    assert resolution.blocked

    calls = []
    with pytest.raises(EmptyBrandDeltaError):
        commit_batch(
            resolution,
            create_asset=lambda name: calls.append(name),
            add_brands=lambda asset, ids: calls.append(asset.id),
        )
    assert calls == []


def test_batch_partitions_new_and_duplicate_names(existing):
    text = 'Sweet Bonanza\n\nBig Bass Bonanza\n  gates of olympus  \nBIG BASS   bonanza\n'
    resolution = resolve_batch(text, 'Pragmatic', ['b1'], existing)
    assert resolution.new_names == ('Big Bass Bonanza',)
    assert [match.asset.id for match in resolution.duplicates] == ['a1', 'a2']
    assert resolution.duplicates[0].new_brand_ids == ()
    assert resolution.duplicates[1].new_brand_ids == ('b1',)
    assert not resolution.blocked


def test_commit_batch_creates_new_and_applies_non_empty_deltas(existing):
    resolution = resolve_batch(
        'Sweet Bonanza\nBig Bass Bonanza\nGates of Olympus\nSugar Rush',
        'Pragmatic',
        ['b1'],
        existing,
    )
    created = []
    updated = []
    lock = threading.Lock()

    def create(name):
        if name == 'Sugar Rush':
            raise RuntimeError('insert failed')
        with lock:
            created.append(name)
        return build_asset(f'new-{name}', name, 'Pragmatic')

    def add_brands(asset, brand_ids):
        with lock:
            updated.append((asset.id, tuple(brand_ids)))

    summary = commit_batch(resolution, create_asset=create, add_brands=add_brands)

    assert created == ['Big Bass Bonanza']
    assert updated == [('a2', ('b1',))]
    assert [asset.game_name for asset in summary.created] == ['Big Bass Bonanza']
    assert [match.asset.id for match in summary.updated] == ['a2']
    assert [match.asset.id for match in summary.skipped] == ['a1']
    assert summary.failed == ['Sugar Rush']
    assert summary.outcome == 'partial'
    assert summary.message() == '1 added, 1 updated with new brands, 1 skipped, 1 failed'


def test_commit_batch_reports_the_reloaded_asset(existing):
    resolution = resolve_batch('Gates of Olympus', 'Pragmatic', ['b1'], existing)
    refreshed = build_asset('a2', 'Gates of Olympus', 'Pragmatic', brand_ids=['b1'])

    summary = commit_batch(
        resolution,
        create_asset=lambda name: pytest.fail('nothing to create'),
        add_brands=lambda asset, brand_ids: refreshed,
    )

    assert [match.asset for match in summary.updated] == [refreshed]
    assert summary.updated[0].new_brand_ids == ('b1',)
    assert summary.to_dict()['updated'][0]['asset']['brands'][0]['id'] == 'b1'


def test_live_check_waits_for_provider(existing):
    assert live_duplicate_check('Sweet Bonanza', '', existing) is None
    assert live_duplicate_check('Sweet Bonanza', None, existing) is None


def test_live_check_paginates_duplicates():
    assets = [build_asset(f'a{i}', f'Game {i}', 'Pragmatic') for i in range(25)]
    text = '\n'.join(f'game {i}' for i in range(25)) + '\nBrand New Game'

    first = live_duplicate_check(text, 'Pragmatic', assets, page_size=10)
    assert first['duplicate_count'] == 25
    assert first['new_count'] == 1
    assert first['pages'] == 3
    assert len(first['duplicates']) == 10

    last = live_duplicate_check(text, 'Pragmatic', assets, page=3, page_size=10)
    assert last['page'] == 3
    assert [entry['asset']['id'] for entry in last['duplicates']] == [
        f'a{i}' for i in range(20, 25)
    ]

    clamped = live_duplicate_check(text, 'Pragmatic', assets, page=99, page_size=10)
    assert clamped['page'] == 3
