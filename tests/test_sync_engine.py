"""Tests for the SyncCoordinator orchestration."""

from __future__ import annotations

import asyncio
import json
import threading
from datetime import datetime
from typing import Any

import pytest

from snapshot_sync.core.local_store import MemoryStore
from snapshot_sync.core.snapshot import StoreSnapshotSerializer
from snapshot_sync.sync.engine import (
    IN_PROGRESS_MESSAGE,
    NOT_INITIALIZED_MESSAGE,
    CoordinatorState,
    SyncCoordinator,
)
from snapshot_sync.sync.hashing import compute_data_hash
from snapshot_sync.sync.models import SyncDirection, SyncMetadata, SyncOutcome

BEANS = [{"id": 1, "name": "Ethiopia"}, {"id": 2, "name": "Kenya"}]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class MetadataWriteFailingStore(MemoryStore):
    """Store whose local sync-metadata write fails."""

    def set(self, key: str, value: str) -> None:
        if key == "s3-sync-metadata":
            raise OSError("disk full")
        super().set(key, value)


class BrokenSerializer:
    """Serializer whose export always fails."""

    def export_snapshot(self) -> dict[str, Any]:
        raise RuntimeError("store unavailable")

    def import_export(self, content: str) -> None:  # pragma: no cover
        raise RuntimeError("store unavailable")


@pytest.fixture
async def coordinator(fake_transport, memory_store, serializer, settings):
    coord = SyncCoordinator(fake_transport, memory_store, serializer, settings)
    assert await coord.initialize()
    return coord


def _seed(memory_store, **values: Any) -> None:
    for key, value in values.items():
        memory_store.set(key, json.dumps(value))


def _local_meta(memory_store) -> SyncMetadata | None:
    raw = memory_store.get("s3-sync-metadata")
    return SyncMetadata.from_json(raw) if raw else None


def _remote_meta(fake_transport) -> SyncMetadata | None:
    raw = fake_transport.objects.get("sync-metadata.json")
    return SyncMetadata.from_json(raw) if raw else None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestInitialize:
    async def test_sync_before_initialize_fails(
        self, fake_transport, memory_store, serializer
    ):
        coord = SyncCoordinator(fake_transport, memory_store, serializer)

        result = await coord.sync()

        assert not result.success
        assert result.message == NOT_INITIALIZED_MESSAGE
        assert result.outcome is SyncOutcome.NOT_INITIALIZED
        assert fake_transport.put_calls == []

    async def test_unreachable_bucket(self, fake_transport, memory_store, serializer):
        fake_transport.connected = False
        coord = SyncCoordinator(fake_transport, memory_store, serializer)

        assert await coord.initialize() is False
        assert not coord.initialized

    async def test_prefix_taken_from_transport_codec(
        self, mock_config, memory_store, serializer
    ):
        from unittest.mock import MagicMock

        from snapshot_sync.core.transport import S3Transport

        transport = S3Transport(mock_config, client=MagicMock())
        coord = SyncCoordinator(transport, memory_store, serializer)
        assert coord.codec.prefix == "data"


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------


class TestEndToEnd:
    async def test_first_sync_uploads(self, coordinator, fake_transport, memory_store):
        _seed(memory_store, beans=BEANS, notes=[])
        h1 = compute_data_hash({"beans": BEANS, "notes": []})

        result = await coordinator.sync()

        assert result.success
        assert result.direction == SyncDirection.UPLOAD
        assert result.uploaded_files == 2
        assert result.message == "Sync complete: uploaded 2 files, downloaded 0 files"
        assert json.loads(fake_transport.objects["beans.json"]) == BEANS

        remote = _remote_meta(fake_transport)
        local = _local_meta(memory_store)
        assert remote.data_hash == h1
        assert remote.files == ["beans.json", "notes.json"]
        assert local == remote

    async def test_second_sync_is_idempotent_reupload(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, beans=BEANS, notes=[])
        await coordinator.sync()
        before = dict(fake_transport.objects)
        before.pop("device-info.json")

        result = await coordinator.sync()

        assert result.success
        assert result.direction == SyncDirection.UPLOAD
        assert result.uploaded_files >= 1
        assert fake_transport.objects["beans.json"] == before["beans.json"]
        assert fake_transport.objects["notes.json"] == before["notes.json"]
        assert _local_meta(memory_store).data_hash == _remote_meta(
            fake_transport
        ).data_hash

    async def test_remote_change_downloads(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, beans=BEANS)
        await coordinator.sync()

        # Another device pushes a new snapshot
        new_beans = BEANS + [{"id": 3, "name": "Colombia"}]
        fake_transport.objects["beans.json"] = json.dumps(new_beans)
        remote = _remote_meta(fake_transport)
        fake_transport.objects["sync-metadata.json"] = SyncMetadata(
            last_sync_time=remote.last_sync_time + 1,
            version="1.0.0",
            device_id="device-other",
            files=["beans.json"],
            data_hash=compute_data_hash({"beans": new_beans}),
        ).to_json()

        result = await coordinator.sync()

        assert result.success
        assert result.direction == SyncDirection.DOWNLOAD
        assert result.downloaded_files == 1
        assert json.loads(memory_store.get("beans")) == new_beans
        local = _local_meta(memory_store)
        assert local.data_hash == compute_data_hash({"beans": new_beans})
        assert local.files == ["beans.json"]

    async def test_no_local_metadata_downloads(
        self, coordinator, fake_transport, memory_store
    ):
        fake_transport.objects["notes.json"] = json.dumps(["note"])
        fake_transport.objects["sync-metadata.json"] = SyncMetadata(
            last_sync_time=1,
            version="1.0.0",
            device_id="device-other",
            files=["notes.json"],
            data_hash="x",
        ).to_json()

        result = await coordinator.sync()

        assert result.direction == SyncDirection.DOWNLOAD
        assert json.loads(memory_store.get("notes")) == ["note"]

    async def test_download_keeps_declared_manifest_when_nothing_written(
        self, coordinator, fake_transport, memory_store
    ):
        fake_transport.objects["sync-metadata.json"] = SyncMetadata(
            last_sync_time=1,
            version="1.0.0",
            device_id="device-other",
            files=["data/gone"],
            data_hash="x",
        ).to_json()

        result = await coordinator.sync(SyncDirection.DOWNLOAD)

        assert not result.success
        assert result.errors == ["Failed to download data/gone.json"]
        assert _local_meta(memory_store).files == ["data/gone.json"]


# ---------------------------------------------------------------------------
# Forced direction
# ---------------------------------------------------------------------------


class TestForcedDirection:
    async def test_forced_upload_overrides_remote_change(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, beans=BEANS)
        fake_transport.objects["sync-metadata.json"] = SyncMetadata(
            last_sync_time=9_999_999_999_999,
            version="1.0.0",
            device_id="device-other",
            files=["beans.json"],
            data_hash="other",
        ).to_json()

        result = await coordinator.sync(SyncDirection.UPLOAD)

        assert result.direction == SyncDirection.UPLOAD
        assert result.uploaded_files == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_partial_upload_failure(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, a=1, b=2, c=3, d=4, e=5)
        fake_transport.fail_put.update({"a.json", "c.json", "e.json"})

        result = await coordinator.sync()

        assert not result.success
        assert result.uploaded_files == 2
        assert len(result.errors) == 3
        assert result.message == "Sync partially complete with 3 errors"
        assert result.outcome is SyncOutcome.PARTIAL
        local = _local_meta(memory_store)
        assert local is not None
        assert local.files == ["a.json", "b.json", "c.json", "d.json", "e.json"]

    async def test_remote_metadata_failure_is_reported(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, beans=BEANS)
        fake_transport.fail_put.add("sync-metadata.json")

        result = await coordinator.sync()

        assert not result.success
        assert result.uploaded_files == 1
        assert result.errors == ["Failed to upload sync-metadata.json"]
        assert result.outcome is SyncOutcome.PARTIAL
        assert _local_meta(memory_store) is not None

    async def test_late_exception_keeps_transfer_progress(
        self, fake_transport, settings
    ):
        store = MetadataWriteFailingStore()
        _seed(store, a=1, b=2)
        fake_transport.fail_put.add("b.json")
        coord = SyncCoordinator(
            fake_transport,
            store,
            StoreSnapshotSerializer(store, settings.reserved_local_keys),
            settings,
        )
        assert await coord.initialize()

        result = await coord.sync()

        assert not result.success
        assert result.outcome is SyncOutcome.FAILED
        assert result.message == "Sync failed"
        assert result.direction == SyncDirection.UPLOAD
        assert result.uploaded_files == 1
        assert result.errors == [
            "Failed to upload b.json",
            "Sync failed: disk full",
        ]
        assert not coord.is_sync_in_progress()

    async def test_unexpected_exception_becomes_result(
        self, fake_transport, memory_store
    ):
        coord = SyncCoordinator(fake_transport, memory_store, BrokenSerializer())
        await coord.initialize()

        result = await coord.sync()

        assert not result.success
        assert result.message == "Sync failed"
        assert result.errors == ["Sync failed: store unavailable"]
        assert result.outcome is SyncOutcome.FAILED
        assert result.direction is None
        assert coord.state is CoordinatorState.IDLE
        assert not coord.is_sync_in_progress()
        assert _local_meta(memory_store) is None


# ---------------------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    async def test_concurrent_sync_rejected(
        self, coordinator, fake_transport, memory_store
    ):
        _seed(memory_store, beans=BEANS)
        fake_transport.gate = threading.Event()

        task = asyncio.create_task(coordinator.sync())
        for _ in range(100):
            if coordinator.is_sync_in_progress():
                break
            await asyncio.sleep(0)
        assert coordinator.is_sync_in_progress()

        rejected = await coordinator.sync()

        assert not rejected.success
        assert rejected.message == IN_PROGRESS_MESSAGE
        assert rejected.outcome is SyncOutcome.BUSY
        assert rejected.direction is None
        assert _local_meta(memory_store) is None

        fake_transport.gate.set()
        result = await task

        assert result.success
        assert not coordinator.is_sync_in_progress()
        assert _local_meta(memory_store) is not None

    async def test_guard_released_after_run(self, coordinator, memory_store):
        _seed(memory_store, beans=BEANS)
        first = await coordinator.sync()
        second = await coordinator.sync()
        assert first.success and second.success


# ---------------------------------------------------------------------------
# Status accessors
# ---------------------------------------------------------------------------


class TestStatus:
    async def test_last_sync_time_none_before_sync(self, coordinator):
        assert await coordinator.get_last_sync_time() is None

    async def test_last_sync_time_after_sync(self, coordinator, memory_store):
        _seed(memory_store, beans=BEANS)
        await coordinator.sync()

        last = await coordinator.get_last_sync_time()

        assert isinstance(last, datetime)
        assert last.tzinfo is not None

    async def test_get_status(self, coordinator, memory_store):
        _seed(memory_store, beans=BEANS)
        await coordinator.sync()

        status = await coordinator.get_status()

        assert status["initialized"] is True
        assert status["in_progress"] is False
        assert status["files"] == ["beans.json"]
        assert status["device_id"] == memory_store.get("device-id")
        assert status["last_sync_time"] is not None
        assert status["data_hash"] == compute_data_hash({"beans": BEANS})
