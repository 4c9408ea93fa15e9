"""Shared fixtures for plugreg tests."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from plugreg.store import RegistryStore, registry_cache


@pytest.fixture(autouse=True)
def _clear_registry_cache() -> Iterator[None]:
    """Keep the process-wide registry cache from leaking between tests."""
    registry_cache.clear()
    yield
    registry_cache.clear()


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    """Return an empty install root directory."""
    root = tmp_path / "vendor"
    root.mkdir()
    return root


@pytest.fixture
def store(install_root: Path) -> RegistryStore:
    """Return a registry store under the install root."""
    return RegistryStore(install_root)


@pytest.fixture
def library() -> MagicMock:
    """Return a mock library installer that places no files."""
    mock = MagicMock()
    mock.get_install_path.return_value = None
    return mock
