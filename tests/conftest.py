"""Pytest configuration and fixtures for DOZE tests."""

import pytest

from doze.analysis.service import SleepTrackingService
from doze.models.preferences import UserPreferences


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "business_logic: Tests for core detection and scoring algorithms"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time (>5 seconds)"
    )


def pytest_collection_modifyitems(items):
    """Mark tests by the directory they live in."""
    for item in items:
        parts = item.path.parts
        if "unit" in parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in parts:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config and log files out of the real home directory."""
    config_path = tmp_path / "doze" / "config.toml"
    monkeypatch.setattr("doze.config.get_config_path", lambda: config_path)
    monkeypatch.setattr("doze.logging_config.DEFAULT_LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr("doze.logging_config._logging_configured", True)
    return config_path


@pytest.fixture
def preferences():
    """Default preferences."""
    return UserPreferences()


@pytest.fixture
def service():
    """Fresh engine with default preferences."""
    return SleepTrackingService()
