"""
Pytest configuration and fixtures for backend API tests.
"""

import pytest
from fastapi.testclient import TestClient

from fakes import FakeHost, FlakyStore


@pytest.fixture(autouse=True)
def reset_app_state():
    """Reset the global host, store and service between tests."""
    import tab_grouper.server.app as app_module

    app_module._host = None
    app_module._store = None
    app_module._service = None
    app_module._scheduler = None
    yield
    if app_module._store is not None:
        app_module._store.close()
    app_module._host = None
    app_module._store = None
    app_module._service = None
    app_module._scheduler = None


@pytest.fixture
def fake_host():
    """Install an in-memory host as the app's host."""
    import tab_grouper.server.app as app_module

    host = FakeHost()
    app_module._host = host
    return host


@pytest.fixture
def app_store():
    """Install an in-memory store as the app's store."""
    import tab_grouper.server.app as app_module

    store = FlakyStore()
    app_module._store = store
    return store


@pytest.fixture
def client(fake_host, app_store):
    from tab_grouper.server.app import app

    return TestClient(app)


@pytest.fixture
def sample_window(fake_host):
    """Window 1 with an active gaming tab, a cooking tab and a browser page."""
    fake_host.add_tab(1, window_id=1, title="Fortnite speedrun highlights", url="https://video.test/1", active=True)
    fake_host.add_tab(2, window_id=1, title="Best pasta recipe", url="https://food.test/pasta")
    fake_host.add_tab(3, window_id=1, title="Settings", url="chrome://settings")
    return fake_host
