import logging
from pathlib import Path

import pandas as pd

from db import schema
from db.utils import build_engine_from_dsn
from lookups import service as lookups_service
from tests.app_helpers import get_services, load_app


def write_seed_files(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    pd.DataFrame({'name': ['Pragmatic', 'NetEnt', 'pragmatic', None]}).to_csv(
        directory / 'providers.csv', index=False
    )
    pd.DataFrame({'name': ['Betway', 'Bet365'], 'color': ['#ff0000', None]}).to_excel(
        directory / 'brands.xlsx', index=False
    )
    pd.DataFrame({'name': ['Jane Doe'], 'email': ['jane@example.com']}).to_csv(
        directory / 'designers.csv', index=False
    )


def test_load_lookup_tables_from_seed_files(tmp_path):
    seed_dir = tmp_path / 'seed'
    write_seed_files(seed_dir)
    engine = build_engine_from_dsn(f"sqlite:///{(tmp_path / 'seed.db').as_posix()}")
    schema.ensure_schema(engine.engine)

    with engine.transaction() as conn:
        counts = lookups_service.load_lookup_tables(
            conn,
            lookups_service.DEFAULT_SEED_TABLES,
            data_dir=seed_dir,
            log=logging.getLogger('test'),
        )

    assert counts == {'providers': 2, 'brands': 2, 'designers': 1}

    with engine.sa_connection() as conn:
        providers = lookups_service.list_providers(conn)
        brands = lookups_service.list_all_entries(conn, 'brands')
        designers = lookups_service.list_all_entries(conn, 'designers')

    assert [row['name'] for row in providers] == ['NetEnt', 'Pragmatic']
    assert {row['name']: row['color'] for row in brands} == {
        'Bet365': '#000000',
        'Betway': '#ff0000',
    }
    assert designers[0]['email'] == 'jane@example.com'
    assert designers[0]['avatar'] == 'JD'
    engine.dispose()


def test_seeding_is_idempotent(tmp_path):
    seed_dir = tmp_path / 'seed'
    write_seed_files(seed_dir)
    engine = build_engine_from_dsn(f"sqlite:///{(tmp_path / 'seed.db').as_posix()}")
    schema.ensure_schema(engine.engine)

    for _ in range(2):
        with engine.transaction() as conn:
            counts = lookups_service.load_lookup_tables(
                conn, lookups_service.DEFAULT_SEED_TABLES, data_dir=seed_dir
            )

    assert counts == {'providers': 0, 'brands': 0, 'designers': 0}
    engine.dispose()


def test_missing_seed_files_are_skipped(tmp_path):
    engine = build_engine_from_dsn(f"sqlite:///{(tmp_path / 'seed.db').as_posix()}")
    schema.ensure_schema(engine.engine)
    with engine.transaction() as conn:
        counts = lookups_service.load_lookup_tables(
            conn, lookups_service.DEFAULT_SEED_TABLES, data_dir=tmp_path / 'absent'
        )
    assert counts == {}
    engine.dispose()


def test_app_seeds_lookups_on_startup(tmp_path):
    write_seed_files(tmp_path / 'seed_data')
    app = load_app(tmp_path, SEED_ON_STARTUP=True)
    services = get_services(app)
    with services.db.sa_connection() as conn:
        names = [row['name'] for row in lookups_service.list_providers(conn)]
    assert names == ['NetEnt', 'Pragmatic']
    services.db.dispose()


def test_app_skips_seeding_when_disabled(tmp_path):
    write_seed_files(tmp_path / 'seed_data')
    app = load_app(tmp_path, SEED_ON_STARTUP=False)
    services = get_services(app)
    with services.db.sa_connection() as conn:
        assert lookups_service.list_providers(conn) == []
    services.db.dispose()
