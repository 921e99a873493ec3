import pytest

from tests.app_helpers import add_asset, get_services, load_app, seed_lookups


@pytest.fixture
def seeded_app(app):
    seed_lookups(app, providers=['Pragmatic', 'NetEnt'])
    add_asset(app, 'Apollo Petite Roulette', 'Pragmatic')
    add_asset(app, 'Book of Dead', 'Pragmatic', status='completed')
    add_asset(app, 'Starburst', 'NetEnt')
    return app


def test_plugin_assets_do_not_require_login(seeded_app):
    client = seeded_app.test_client()
    response = client.get('/api/assets?provider=Pragmatic')
    assert response.status_code == 200
    assert response.headers['Access-Control-Allow-Origin'] == '*'

    payload = response.get_json()
    assert payload['count'] == 2
    assert payload['returned'] == 2
    assert payload['data'][0] == {
        'game_name': 'Apollo Petite Roulette',
        'gamename': 'apollopetiteroulette',
        'provider': 'Pragmatic',
        'status': 'not-started',
    }


def test_plugin_assets_filter_by_status_and_limit(seeded_app):
    client = seeded_app.test_client()
    completed = client.get('/api/assets?status=completed').get_json()
    assert [row['game_name'] for row in completed['data']] == ['Book of Dead']

    limited = client.get('/api/assets?limit=1').get_json()
    assert limited['count'] == 3
    assert limited['returned'] == 1
    assert limited['data'][0]['game_name'] == 'Apollo Petite Roulette'


@pytest.mark.parametrize('limit', ['abc', '-1'])
def test_plugin_assets_reject_bad_limit(seeded_app, limit):
    response = seeded_app.test_client().get(f'/api/assets?limit={limit}')
    assert response.status_code == 400


def test_plugin_assets_unknown_provider_is_empty(seeded_app):
    payload = seeded_app.test_client().get('/api/assets?provider=Nobody').get_json()
    assert payload == {'count': 0, 'returned': 0, 'data': []}


def test_plugin_preflight_and_method_guard(seeded_app):
    client = seeded_app.test_client()
    preflight = client.open('/api/assets', method='OPTIONS')
    assert preflight.status_code == 200
    assert preflight.headers['Access-Control-Allow-Methods'] == 'GET, OPTIONS'
    assert preflight.headers['Access-Control-Allow-Headers'] == 'Content-Type'

    response = client.post('/api/assets', json={})
    assert response.status_code == 405
    assert response.get_json() == {'error': 'Method not allowed'}
    assert response.headers['Access-Control-Allow-Origin'] == '*'

    assert client.delete('/api/providers').status_code == 405


def test_plugin_answers_head_like_get(seeded_app):
    client = seeded_app.test_client()
    for path in ('/api/assets', '/api/providers'):
        response = client.head(path)
        assert response.status_code == 200
        assert response.headers['Access-Control-Allow-Origin'] == '*'
        assert response.data == b''


def test_plugin_providers_are_sorted(seeded_app):
    payload = seeded_app.test_client().get('/api/providers').get_json()
    assert payload['count'] == 2
    assert [row['name'] for row in payload['data']] == ['NetEnt', 'Pragmatic']
    assert all(set(row) == {'id', 'name'} for row in payload['data'])


def test_plugin_reports_missing_database(tmp_path):
    app = load_app(tmp_path, DB_DSN='')
    client = app.test_client()
    for path in ('/api/assets', '/api/providers'):
        response = client.get(path)
        assert response.status_code == 500
        assert response.get_json() == {'error': 'Database not configured'}
    get_services(app).db.dispose()


def test_plugin_origin_is_configurable(tmp_path):
    app = load_app(tmp_path, PLUGIN_ALLOW_ORIGIN='https://figma.example')
    response = app.test_client().get('/api/providers')
    assert response.headers['Access-Control-Allow-Origin'] == 'https://figma.example'
    get_services(app).db.dispose()
