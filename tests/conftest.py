"""Pytest configuration and fixtures for bookmarking tests."""

import pytest

from bookmarking import DeclaredInputs, FileBookmarkStore, StateSerializer

# Damped pendulum inputs with their declared defaults
PENDULUM_DEFAULTS = {"omega": 1, "delta": 1, "damping": 1, "length": 1000}


@pytest.fixture
def pendulum_inputs():
    """Provide a fresh registry of pendulum inputs at their defaults."""
    return DeclaredInputs(PENDULUM_DEFAULTS)


@pytest.fixture
def file_store(tmp_path):
    """Provide a file store rooted in a per-test directory."""
    return FileBookmarkStore(tmp_path / "bookmarks")


@pytest.fixture
def url_serializer():
    return StateSerializer()


@pytest.fixture
def server_serializer(file_store):
    return StateSerializer(mode="server", store=file_store)
