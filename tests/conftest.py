"""Pytest configuration and shared fixtures."""

import pytest

from lanotifica.paths import AppPaths


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from lanotifica.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def app_paths(tmp_path):
    """AppPaths rooted in a temporary directory."""
    return AppPaths(config_dir=tmp_path / "config" / "lanotifica", cache_dir=tmp_path / "cache")


@pytest.fixture
def fixed_ips():
    """IP provider returning a stable LAN address."""
    return lambda: ["192.168.1.50"]
