"""
Shared fixtures for btsnap tests.
"""

import tempfile
from pathlib import Path

import pytest

from btsnap.snapshot.store import SnapshotStore
from btsnap.store.memory import InMemoryTableStore


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def snapshot(data_dir):
    """Open snapshot store in a temporary directory."""
    store = SnapshotStore(Path(data_dir) / "snapshot.db")
    store.open()
    yield store
    store.close()


@pytest.fixture
def table_store():
    """Fresh in-memory table store (call connect() before use)."""
    return InMemoryTableStore()
