import importlib

import pytest

import config


@pytest.fixture
def reload_config(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)

    def _reload():
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_seed_on_startup_defaults_to_true(monkeypatch, reload_config):
    monkeypatch.delenv('SEED_ON_STARTUP', raising=False)
    settings = reload_config().default_settings()
    assert settings['SEED_ON_STARTUP'] is True


@pytest.mark.parametrize('raw, expected', [('0', False), ('false', False), ('yes', True)])
def test_seed_on_startup_honours_env(monkeypatch, reload_config, raw, expected):
    monkeypatch.setenv('SEED_ON_STARTUP', raw)
    assert reload_config().default_settings()['SEED_ON_STARTUP'] is expected
