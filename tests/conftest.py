"""
Pytest configuration and shared fixtures.

The grouping engine is async; tests drive it from plain pytest functions with
asyncio.run, against an in-memory host and an in-memory SQLite store.
"""

from unittest.mock import Mock, patch

import pytest

from fakes import FakeHost, FlakyStore


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings to avoid requiring a .env file in tests."""
    with patch("tab_grouper.grouping.tab_grouping_service.get_settings") as mock_service_settings, \
         patch("tab_grouper.server.app.get_settings") as mock_app_settings:
        settings = Mock()
        settings.host_api_url = "http://bridge.test"
        settings.host_timeout_seconds = 1.0
        settings.db_path = ":memory:"
        settings.fallback_category = "Other"
        settings.neighbor_scope = "window"
        settings.eligible_url_patterns = ["http://*", "https://*"]
        settings.cleanup_interval_seconds = 3600.0
        settings.cleanup_grace_ms = None
        settings.log_level = "INFO"
        mock_service_settings.return_value = settings
        mock_app_settings.return_value = settings
        yield settings


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def store():
    store = FlakyStore()
    yield store
    store.close()
