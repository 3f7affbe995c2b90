"""
Shared pytest fixtures for doto tests.

Provides a frozen clock and an in-memory key-value store so tests never
touch ~/.doto or depend on the wall clock.
"""

import pytest

from doto.api import Notebook
from doto.dates import FixedClock
from doto.kv_store import MemoryKeyValueStore
from doto.note_store import NoteStore


TODAY = "2025-03-10"


@pytest.fixture(autouse=True)
def _isolated_store_env(tmp_path, monkeypatch):
    """Keep DOTO_STORE_PATH (and the error log) inside the test directory."""
    monkeypatch.setenv("DOTO_STORE_PATH", str(tmp_path / "default-store"))


@pytest.fixture
def clock():
    return FixedClock(TODAY, f"{TODAY}T09:30:00")


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(clock):
    """Empty NoteStore on the fixed clock."""
    return NoteStore(clock=clock)


@pytest.fixture
def notebook(kv, clock):
    """Notebook backed by memory, write-through saving."""
    nb = Notebook(kv=kv, clock=clock)
    yield nb
    nb.close()


@pytest.fixture
def events(store):
    """Records every change event published by the store."""
    received = []
    store.subscribe(received.append)
    return received
