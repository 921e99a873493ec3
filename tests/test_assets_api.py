import pytest

from tests.app_helpers import (
    TEST_PASSWORD,
    add_asset,
    get_services,
    load_app,
    login,
    seed_lookups,
)


@pytest.fixture
def ids(app):
    return seed_lookups(
        app,
        providers=['Pragmatic', 'NetEnt'],
        brands=['Betway', 'Bet365'],
        designers=['Jane Doe'],
    )


def test_api_requires_login(anonymous_client):
    response = anonymous_client.get('/api/missing-assets')
    assert response.status_code == 401
    assert anonymous_client.get('/').status_code == 302


def test_login_flow(anonymous_client):
    rejected = anonymous_client.post('/login', json={'password': 'wrong'})
    assert rejected.status_code == 401
    assert rejected.get_json() == {'error': 'Invalid password'}

    accepted = anonymous_client.post('/login', json={'password': TEST_PASSWORD, 'name': 'Bea'})
    assert accepted.status_code == 200
    session_info = anonymous_client.get('/api/session').get_json()
    assert session_info['user'] == 'Bea'
    assert session_info['store_configured'] is True

    anonymous_client.get('/logout')
    assert anonymous_client.get('/api/session').status_code == 401


def test_unconfigured_store_returns_503(tmp_path):
    app = load_app(tmp_path, DB_DSN='')
    client = app.test_client()
    login(client)

    response = client.get('/api/missing-assets')
    assert response.status_code == 503
    assert response.get_json() == {'error': 'backing store not configured'}
    assert client.get('/api/session').get_json()['store_configured'] is False


def test_add_single_asset(app, client, ids):
    response = client.post(
        '/api/missing-assets',
        json={'provider': 'pragmatic', 'game_names': 'Sugar Rush', 'brand_ids': [ids['Betway']]},
    )
    assert response.status_code == 201
    summary = response.get_json()['summary']
    assert summary['outcome'] == 'success'
    created = summary['created'][0]
    assert created['game_name'] == 'Sugar Rush'
    assert created['provider'] == 'Pragmatic'
    assert created['found_by'] == 'Ana'
    assert [brand['name'] for brand in created['brands']] == ['Betway']

    listing = client.get('/api/missing-assets').get_json()
    assert listing['total'] == 1
    assert len(get_services(app).store) == 1


def test_duplicate_without_new_brands_is_blocked(app, client, ids):
    add_asset(app, 'Sugar Rush', 'Pragmatic', brand_ids=[ids['Betway']])

    response = client.post(
        '/api/missing-assets',
        json={'provider': 'Pragmatic', 'game_names': 'sugar  rush', 'brand_ids': [ids['Betway']]},
    )
    assert response.status_code == 409
    payload = response.get_json()
    assert payload['resolution']['blocked'] is True
    assert len(get_services(app).store) == 1


def test_duplicate_with_new_brand_is_updated(app, client, ids):
    asset = add_asset(app, 'Sugar Rush', 'Pragmatic', brand_ids=[ids['Betway']])

    response = client.post(
        '/api/missing-assets',
        json={
            'provider': 'Pragmatic',
            'game_names': 'Sugar Rush',
            'brand_ids': [ids['Betway'], ids['Bet365']],
        },
    )
    assert response.status_code == 200
    summary = response.get_json()['summary']
    assert summary['message'] == '0 added, 1 updated with new brands'
    reported = summary['updated'][0]['asset']
    assert sorted(brand['name'] for brand in reported['brands']) == ['Bet365', 'Betway']
    stored = get_services(app).store.get(asset.id)
    assert stored.brand_ids == {ids['Betway'], ids['Bet365']}


def test_batch_add_and_preview(app, client, ids):
    add_asset(app, 'Sugar Rush', 'Pragmatic', brand_ids=[ids['Betway']])
    body = {
        'provider': 'Pragmatic',
        'game_names': 'Sugar Rush\nGates of Olympus\n\nBig Bass Bonanza\n',
        'brand_ids': [ids['Betway']],
    }

    preview = client.post('/api/missing-assets', json={**body, 'preview': True}).get_json()
    assert preview['preview'] is True
    assert preview['resolution']['new_names'] == ['Gates of Olympus', 'Big Bass Bonanza']
    assert len(get_services(app).store) == 1

    response = client.post('/api/missing-assets', json=body)
    assert response.status_code == 201
    summary = response.get_json()['summary']
    assert summary['skipped'] == ['Sugar Rush']
    assert len(summary['created']) == 2
    assert len(get_services(app).store) == 3


@pytest.mark.parametrize(
    'body',
    [
        {'provider': '', 'game_names': 'Sugar Rush'},
        {'provider': 'Pragmatic', 'game_names': '  \n '},
        {'provider': 'Unknown Studio', 'game_names': 'Sugar Rush'},
    ],
)
def test_add_validation(client, ids, body):
    assert client.post('/api/missing-assets', json=body).status_code == 400


@pytest.mark.parametrize(
    'extra',
    [
        {'status': 'finished'},
        {'designer_id': 'ghost'},
    ],
)
def test_add_rejects_bad_status_or_designer_before_writing(app, client, ids, extra):
    body = {
        'provider': 'Pragmatic',
        'game_names': 'Sugar Rush\nGates of Olympus\nBig Bass Bonanza',
        'brand_ids': [ids['Betway']],
        **extra,
    }

    response = client.post('/api/missing-assets', json=body)
    assert response.status_code == 400
    assert 'error' in response.get_json()
    assert len(get_services(app).store) == 0
    assert client.get('/api/missing-assets').get_json()['total'] == 0


def test_add_accepts_known_designer_and_status(app, client, ids):
    response = client.post(
        '/api/missing-assets',
        json={
            'provider': 'Pragmatic',
            'game_names': 'Sugar Rush',
            'status': 'ongoing',
            'designer_id': ids['Jane Doe'],
        },
    )
    assert response.status_code == 201
    created = response.get_json()['summary']['created'][0]
    assert created['status'] == 'ongoing'
    assert created['designer']['name'] == 'Jane Doe'


def test_live_duplicate_check(app, client, ids):
    add_asset(app, 'Sugar Rush', 'Pragmatic')

    idle = client.post('/api/missing-assets/duplicates', json={'text': 'Sugar Rush'}).get_json()
    assert idle == {'active': False}

    active = client.post(
        '/api/missing-assets/duplicates',
        json={'text': 'Sugar Rush\nNew Game', 'provider': 'Pragmatic'},
    ).get_json()
    assert active['active'] is True
    assert active['duplicate_count'] == 1
    assert active['new_names'] == ['New Game']


def test_filters_and_provider_folders(app, client, ids):
    add_asset(app, 'Sugar Rush', 'Pragmatic', status='ongoing', designer_id=ids['Jane Doe'])
    add_asset(app, "Gonzo's Quest", 'NetEnt')
    add_asset(app, 'Apollo Petite Roulette', 'Pragmatic')

    filtered = client.get('/api/missing-assets?provider=Pragmatic&sort=game_name').get_json()
    assert [item['game_name'] for item in filtered['items']] == [
        'Apollo Petite Roulette',
        'Sugar Rush',
    ]
    assert filtered['store_total'] == 3

    unassigned = client.get('/api/missing-assets?designer=unassigned').get_json()
    assert unassigned['total'] == 2

    assert client.get('/api/missing-assets?sort=color').status_code == 400

    folders = client.get('/api/missing-assets/providers').get_json()['folders']
    assert [folder['provider'] for folder in folders] == ['NetEnt', 'Pragmatic']

    folder = client.get('/api/missing-assets/providers/Pragmatic').get_json()
    assert folder['copy']['compact'] == 'apollopetiteroulette\nsugarrush'
    assert folder['status_summary']['ongoing'] == 1


def test_patch_asset_fields(app, client, ids):
    asset = add_asset(app, 'Sugar Rush', 'Pragmatic')

    response = client.patch(
        f'/api/missing-assets/{asset.id}',
        json={'status': 'ongoing', 'designer_id': ids['Jane Doe'], 'notes': 'logo only'},
    )
    assert response.status_code == 200
    item = response.get_json()['item']
    assert item['status'] == 'ongoing'
    assert item['designer']['name'] == 'Jane Doe'
    assert item['notes'] == 'logo only'

    cleared = client.patch(f'/api/missing-assets/{asset.id}', json={'designer_id': 'unassigned'})
    assert cleared.get_json()['item']['designer'] is None

    assert client.patch(
        f'/api/missing-assets/{asset.id}', json={'status': 'done'}
    ).status_code == 400
    assert client.patch('/api/missing-assets/missing', json={'status': 'ongoing'}).status_code == 404


def test_brand_attachments_and_reflection(app, client, ids):
    asset = add_asset(app, 'Sugar Rush', 'Pragmatic', brand_ids=[ids['Betway']])

    added = client.post(
        f'/api/missing-assets/{asset.id}/brands', json={'brand_ids': [ids['Bet365']]}
    ).get_json()['item']
    assert {brand['id'] for brand in added['brands']} == {ids['Betway'], ids['Bet365']}

    reflected = client.put(
        f"/api/missing-assets/{asset.id}/brands/{ids['Bet365']}/reflection",
        json={'reflected': True},
    ).get_json()['item']
    bet365 = next(brand for brand in reflected['brands'] if brand['id'] == ids['Bet365'])
    assert bet365['reflected'] is True
    assert bet365['reflected_by'] == 'Ana'
    assert bet365['reflected_at']

    replaced = client.put(
        f'/api/missing-assets/{asset.id}/brands',
        json={'brands': [{'id': ids['Betway'], 'reflected': False}]},
    ).get_json()['item']
    assert [brand['id'] for brand in replaced['brands']] == [ids['Betway']]

    missing_brand = client.put(
        f"/api/missing-assets/{asset.id}/brands/{ids['Bet365']}/reflection",
        json={'reflected': True},
    )
    assert missing_brand.status_code == 404


def test_delete_and_bulk_delete(app, client, ids):
    first = add_asset(app, 'One', 'Pragmatic')
    second = add_asset(app, 'Two', 'Pragmatic')
    third = add_asset(app, 'Three', 'Pragmatic')

    assert client.delete(f'/api/missing-assets/{first.id}').status_code == 200
    assert client.delete(f'/api/missing-assets/{first.id}').status_code == 404

    response = client.post(
        '/api/missing-assets/bulk-delete', json={'ids': [second.id, third.id, 'missing']}
    ).get_json()
    assert sorted(response['deleted']) == sorted([second.id, third.id])
    assert response['missing'] == ['missing']
    assert len(get_services(app).store) == 0


def test_text_match_updates_status_and_designer(app, client, ids):
    asset = add_asset(app, 'Sugar Rush', 'Pragmatic')

    response = client.post(
        '/api/missing-assets/text-match',
        json={
            'titles': 'Sugar Rush\nMissing Game',
            'provider': 'Pragmatic',
            'status': 'completed',
            'designer': ids['Jane Doe'],
        },
    )
    assert response.status_code == 200
    result = response.get_json()
    assert result['status_updated'] == 1
    assert result['designer_updated'] == 1
    assert result['missing'] == ['Missing Game']
    assert result['clear_input'] is False

    stored = get_services(app).store.get(asset.id)
    assert stored.status == 'completed'
    assert stored.designer.name == 'Jane Doe'

    invalid = client.post(
        '/api/missing-assets/text-match',
        json={'titles': 'Sugar Rush', 'provider': 'Pragmatic', 'status': 'done'},
    )
    assert invalid.status_code == 400


def test_range_fill(app, client, ids):
    for name in ('Alpha', 'Bravo', 'Charlie', 'Delta'):
        add_asset(app, name, 'Pragmatic')
    filters = {'provider': 'Pragmatic', 'sort': 'game_name'}

    response = client.post(
        '/api/missing-assets/range-fill',
        json={'filters': filters, 'start': 2, 'end': 0, 'field': 'status', 'value': 'exported'},
    )
    result = response.get_json()
    assert result['applied'] is True
    assert result['summary'] == '3 saved'

    statuses = {
        asset.game_name: asset.status for asset in get_services(app).store.snapshot()
    }
    assert statuses == {
        'Alpha': 'exported',
        'Bravo': 'exported',
        'Charlie': 'exported',
        'Delta': 'not-started',
    }

    noop = client.post(
        '/api/missing-assets/range-fill',
        json={'filters': filters, 'start': 1, 'end': 1, 'field': 'status', 'value': 'ongoing'},
    )
    assert noop.get_json() == {'applied': False}


def test_single_row_range_fill_still_validates(app, client, ids):
    add_asset(app, 'Alpha', 'Pragmatic')
    filters = {'provider': 'Pragmatic'}

    bad_field = client.post(
        '/api/missing-assets/range-fill',
        json={'filters': filters, 'start': 0, 'end': 0, 'field': 'notes', 'value': 'x'},
    )
    assert bad_field.status_code == 400

    bad_status = client.post(
        '/api/missing-assets/range-fill',
        json={'filters': filters, 'start': 0, 'end': 0, 'field': 'status', 'value': 'done'},
    )
    assert bad_status.status_code == 400

    bad_designer = client.post(
        '/api/missing-assets/range-fill',
        json={'filters': filters, 'start': 0, 'end': 0, 'field': 'designer', 'value': 'ghost'},
    )
    assert bad_designer.status_code == 400
    assert get_services(app).store.snapshot()[0].status == 'not-started'


def test_index_overview(app, client, ids):
    names = ['Alpha', 'Bravo', 'Charlie', 'Delta', 'Echo', 'Foxtrot']
    assets = [add_asset(app, name, 'Pragmatic') for name in names]
    client.patch(f'/api/missing-assets/{assets[0].id}', json={'status': 'completed'})

    overview = client.get('/').get_json()
    assert overview['user'] == 'Ana'
    assert overview['assets'] == 6
    assert overview['status_summary'] == {
        'not-started': 5,
        'ongoing': 0,
        'completed': 1,
        'exported': 0,
        'uploaded': 0,
    }
    recent = overview['recent']
    assert len(recent) == 5
    assert recent[0]['game_name'] == 'Alpha'
    stamps = [item['updated_at'] for item in recent]
    assert stamps == sorted(stamps, reverse=True)


def test_drag_endpoints(app, client, ids):
    for name in ('Alpha', 'Bravo', 'Charlie'):
        add_asset(app, name, 'Pragmatic')
    filters = {'sort': 'game_name'}

    assert client.post('/api/missing-assets/drag/move', json={'index': 1}).status_code == 409

    started = client.post(
        '/api/missing-assets/drag/start',
        json={
            'filters': filters,
            'start_index': 0,
            'field': 'designer',
            'value': ids['Jane Doe'],
        },
    )
    assert started.status_code == 200
    assert started.get_json()['rows'] == 3

    second = client.post(
        '/api/missing-assets/drag/start',
        json={'filters': filters, 'start_index': 1, 'field': 'status', 'value': 'ongoing'},
    )
    assert second.status_code == 409

    moved = client.post(
        '/api/missing-assets/drag/move',
        json={'pointer_y': 45, 'row_bounds': [[0, 39], [40, 79], [80, 119]]},
    ).get_json()
    assert moved['selection'] == [0, 1]

    ended = client.post('/api/missing-assets/drag/end').get_json()
    assert ended['applied'] is True
    assert ended['affected'] == 2

    designers = {
        asset.game_name: asset.designer.name if asset.designer else None
        for asset in get_services(app).store.snapshot()
    }
    assert designers == {'Alpha': 'Jane Doe', 'Bravo': 'Jane Doe', 'Charlie': None}

    assert client.post('/api/missing-assets/drag/cancel').get_json() == {'cancelled': False}


def test_refresh_reloads_store(app, client, ids):
    add_asset(app, 'Sugar Rush', 'Pragmatic')
    get_services(app).store.replace_all([])
    response = client.post('/api/missing-assets/refresh')
    assert response.get_json() == {'count': 1}
