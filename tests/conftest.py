"""Pytest fixtures for DocSync tests"""
import pytest
from pathlib import Path
from unittest.mock import Mock

from docsync.event_bus import get_event_bus, reset_event_bus
from docsync.conflict import reset_conflict_configs
from docsync.queue import OfflineQueue, OfflineQueueConfig, MemoryQueueStorage, ConnectivityMonitor


@pytest.fixture(autouse=True)
def reset_globals():
    """Each test gets a fresh event bus and the built-in conflict policies."""
    reset_event_bus()
    reset_conflict_configs()
    yield
    reset_event_bus()
    reset_conflict_configs()


@pytest.fixture
def event_recorder():
    """Wildcard subscriber recording every published event."""
    recorder = Mock()
    get_event_bus().subscribe('*', recorder)
    return recorder


@pytest.fixture
def deterministic_config():
    """Queue config for single-stepping: nothing runs until process_queue()."""
    return OfflineQueueConfig(max_queue_size=10, max_retries=3, auto_process=False)


@pytest.fixture
def memory_storage():
    return MemoryQueueStorage()


@pytest.fixture
def monitor():
    return ConnectivityMonitor(online=True)


@pytest.fixture
def queue(deterministic_config, memory_storage, monitor):
    """Deterministic in-memory queue; destroyed after the test."""
    q = OfflineQueue(config=deterministic_config, storage=memory_storage, connectivity=monitor)
    yield q
    q.destroy()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    base_path = tmp_path / "docsync"
    base_path.mkdir(parents=True, exist_ok=True)
    return base_path
