"""Shared pytest fixtures for snapshot-sync tests."""

from __future__ import annotations

import threading
from typing import Any

import pytest

from snapshot_sync.config import Config
from snapshot_sync.config_schema import SyncSettings
from snapshot_sync.core.local_store import MemoryStore
from snapshot_sync.core.snapshot import StoreSnapshotSerializer


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live S3-compatible bucket",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live S3-compatible bucket"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeObjectStore:
    """In-memory ``ObjectTransport`` for tests.

    Objects are keyed by their logical key; ``list_objects`` reports them
    under ``prefix`` like a real bucket would.

    Attributes:
        fail_put: Keys whose ``put_object`` returns ``False``.
        raise_get: Keys whose ``get_object`` raises ``RuntimeError``.
        list_error: Raised by ``list_objects`` when set.
        gate: When set, ``get_object`` blocks until the event is set.
    """

    def __init__(
        self,
        objects: dict[str, str] | None = None,
        prefix: str = "",
        connected: bool = True,
    ) -> None:
        self.objects: dict[str, str] = dict(objects or {})
        self.prefix = prefix
        self.connected = connected
        self.fail_put: set[str] = set()
        self.raise_get: set[str] = set()
        self.list_error: Exception | None = None
        self.gate: threading.Event | None = None
        self.put_calls: list[str] = []
        self.get_calls: list[str] = []

    def put_object(self, key: str, content: str) -> bool:
        self.put_calls.append(key)
        if key in self.fail_put:
            return False
        self.objects[key] = content
        return True

    def get_object(self, key: str) -> str | None:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.get_calls.append(key)
        if key in self.raise_get:
            raise RuntimeError(f"boom on {key}")
        return self.objects.get(key)

    def list_objects(self, prefix: str = "") -> list[dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        base = f"{self.prefix.rstrip('/')}/" if self.prefix else ""
        return [{"key": f"{base}{key}"} for key in self.objects]

    def test_connection(self) -> bool:
        return self.connected


@pytest.fixture
def settings():
    return SyncSettings()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def fake_transport():
    return FakeObjectStore()


@pytest.fixture
def serializer(memory_store, settings):
    return StoreSnapshotSerializer(memory_store, settings.reserved_local_keys)


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        bucket="test-bucket",
        region="us-east-1",
        endpoint="http://localhost:9000",
        prefix="data",
        access_key_id="AKIATEST",
        secret_access_key="secret",
        force_path_style=True,
    )
