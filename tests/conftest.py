"""Pytest fixtures shared across the test suite."""

import pytest

from tests.app_helpers import get_services, load_app, login


@pytest.fixture
def app(tmp_path):
    flask_app = load_app(tmp_path)
    yield flask_app
    get_services(flask_app).db.dispose()


@pytest.fixture
def client(app):
    test_client = app.test_client()
    login(test_client)
    return test_client


@pytest.fixture
def anonymous_client(app):
    return app.test_client()
