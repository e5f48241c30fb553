"""Shared pytest fixtures for gridsync tests."""

import shutil
import tempfile

import pytest

from gridsync.client.local_state_store import LocalStateStore
from gridsync.diskcache_session_store import DiskCacheSessionStore
from gridsync.in_memory_session_store import InMemorySessionStore
from tests.utils.fake_remote import FakeRemote
from tests.utils.manual_clock import ManualClock


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture(params=["memory", "disk"])
def session_store(request, clock, temp_dir):
    """Every store backend, driven by the manual clock."""
    if request.param == "memory":
        store = InMemorySessionStore(clock=clock)
    else:
        store = DiskCacheSessionStore(cache_dir=temp_dir, clock=clock)
    yield store
    store.close()


@pytest.fixture
def local_store(temp_dir):
    store = LocalStateStore(f"{temp_dir}/local")
    yield store
    store.close()


@pytest.fixture
def fake_remote(clock):
    return FakeRemote(InMemorySessionStore(clock=clock))


@pytest.fixture
def sample_csv_bytes():
    """A small CSV payload."""
    return b"name,age,city\nAlice,25,New York\nBob,30,London\nCharlie,35,Tokyo\n"
