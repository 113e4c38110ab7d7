"""Top-level orchestrator of a snapshot sync run.

``SyncCoordinator`` ties together hashing, metadata, the direction
resolver and the transfer layer. One ``sync()`` call:

1. Exports the local snapshot, derives its manifest and hashes it.
2. Loads remote metadata, then local metadata.
3. Resolves the direction (unless the caller forced one).
4. Uploads or downloads the snapshot files.
5. Chooses the manifest and hash to persist.
6. Writes metadata locally, then remotely.

Metadata is written only after the transfer loop finished, so a crash
mid-transfer leaves the previous (consistent) records in place. Only one
run may be in flight per coordinator; a concurrent call is rejected with
an "already in progress" result.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from snapshot_sync.config import Config
from snapshot_sync.config_schema import SyncSettings
from snapshot_sync.core.async_utils import run_sync
from snapshot_sync.core.local_store import JsonFileStore, LocalStore
from snapshot_sync.core.snapshot import (
    SnapshotSerializer,
    StoreSnapshotSerializer,
)
from snapshot_sync.core.transport import ObjectTransport, S3Transport
from snapshot_sync.sync.device import DeviceIdentity
from snapshot_sync.sync.hashing import compute_data_hash, is_fallback_hash
from snapshot_sync.sync.manifest import ManifestCodec
from snapshot_sync.sync.metadata import MetadataStore
from snapshot_sync.sync.models import (
    SyncDirection,
    SyncMetadata,
    SyncOutcome,
    SyncResult,
    TransferResult,
)
from snapshot_sync.sync.resolver import decide_direction
from snapshot_sync.sync.transfer import Transfer

logger = logging.getLogger(__name__)

IN_PROGRESS_MESSAGE = "Sync already in progress"
NOT_INITIALIZED_MESSAGE = "Sync service not initialized"


class CoordinatorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SyncCoordinator:
    """Run snapshot syncs between a local store and a bucket.

    Args:
        transport: Object storage transport.
        store: Local key/value store (application data and bookkeeping).
        serializer: Produces snapshots and applies full exports.
        settings: Sync names; defaults are used when omitted.
        prefix: Bucket key prefix used to normalize listed object keys.
            Taken from ``transport.codec`` when the transport has one.
    """

    def __init__(
        self,
        transport: ObjectTransport,
        store: LocalStore,
        serializer: SnapshotSerializer,
        settings: SyncSettings | None = None,
        prefix: str | None = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.serializer = serializer
        self.settings = settings or SyncSettings()

        if prefix is None:
            codec = getattr(transport, "codec", None)
            prefix = codec.prefix if codec is not None else ""
        self.codec = ManifestCodec(prefix)

        self.device = DeviceIdentity(store, self.settings.device_id_key)
        self.metadata = MetadataStore(transport, store, self.settings)
        self.transfer = Transfer(
            transport,
            store,
            serializer,
            self.codec,
            self.settings,
            self.device,
        )

        self._state = CoordinatorState.IDLE
        self._guard = threading.Lock()
        self._initialized = False

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Check that the bucket is reachable.

        Returns:
            ``True`` if the connection test succeeded. ``sync()`` refuses
            to run until this has returned ``True`` once.
        """
        try:
            ok = await run_sync(self.transport.test_connection)
        except Exception as exc:
            logger.error("Connection test failed: %s", exc)
            ok = False

        self._initialized = bool(ok)
        if self._initialized:
            logger.info("Sync service initialized")
        else:
            logger.error("Sync service initialization failed")
        return self._initialized

    def is_sync_in_progress(self) -> bool:
        return self._state is CoordinatorState.RUNNING

    async def get_last_sync_time(self) -> datetime | None:
        local_meta = await self.metadata.load_local()
        if local_meta is None:
            return None
        return datetime.fromtimestamp(
            local_meta.last_sync_time / 1000, tz=timezone.utc
        )

    async def get_status(self) -> dict[str, Any]:
        """Summarize the local sync state for status displays."""
        local_meta = await self.metadata.load_local()
        device_id = await run_sync(self.device.get_device_id)
        last_sync = (
            datetime.fromtimestamp(
                local_meta.last_sync_time / 1000, tz=timezone.utc
            ).isoformat()
            if local_meta
            else None
        )
        return {
            "initialized": self._initialized,
            "in_progress": self.is_sync_in_progress(),
            "device_id": device_id,
            "last_sync_time": last_sync,
            "files": list(local_meta.files) if local_meta else [],
            "data_hash": local_meta.data_hash if local_meta else None,
        }

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def sync(
        self, direction: SyncDirection = SyncDirection.AUTO
    ) -> SyncResult:
        """Run one sync.

        Args:
            direction: ``AUTO`` lets the resolver decide; ``UPLOAD`` or
                ``DOWNLOAD`` force the direction.

        Returns:
            A ``SyncResult``. Never raises for failures inside the run;
            an unexpected error is appended to the errors collected so
            far and the counts reached before it are kept.
        """
        if not self._initialized:
            return SyncResult(
                success=False,
                outcome=SyncOutcome.NOT_INITIALIZED,
                message=NOT_INITIALIZED_MESSAGE,
                errors=["Sync service not initialized"],
            )

        if not self._guard.acquire(blocking=False):
            logger.info("Sync requested while another sync is running")
            return SyncResult(
                success=False,
                outcome=SyncOutcome.BUSY,
                message=IN_PROGRESS_MESSAGE,
            )

        self._state = CoordinatorState.RUNNING
        progress = TransferResult()
        try:
            await self._run(direction, progress)
            return self._build_result(progress)
        except Exception as exc:
            logger.exception("Sync failed")
            progress.errors.append(f"Sync failed: {exc}")
            return SyncResult(
                success=False,
                outcome=SyncOutcome.FAILED,
                message="Sync failed",
                uploaded_files=progress.uploaded_files,
                downloaded_files=progress.downloaded_files,
                errors=list(progress.errors),
                direction=progress.direction,
            )
        finally:
            self._state = CoordinatorState.IDLE
            self._guard.release()

    async def _run(
        self, forced: SyncDirection, progress: TransferResult
    ) -> None:
        # Step 1: snapshot, manifest, hash
        snapshot = await run_sync(self.serializer.export_snapshot)
        manifest = self.codec.derive_manifest(snapshot)
        current_hash = compute_data_hash(snapshot)
        if is_fallback_hash(current_hash):
            logger.warning("Snapshot could not be hashed; it will be uploaded")

        # Step 2: metadata, remote first
        remote_meta = await self.metadata.load_remote()
        local_meta = await self.metadata.load_local()

        # Step 3: direction
        progress.direction = decide_direction(
            local_meta, remote_meta, current_hash, forced
        )

        # Step 4: transfer
        if progress.direction == SyncDirection.UPLOAD:
            progress.absorb(await self.transfer.upload(snapshot))
            files_to_persist = manifest
            hash_to_persist = current_hash
        else:
            written, result = await self.transfer.download(remote_meta)
            progress.absorb(result)
            files_to_persist = self._download_manifest(
                written, remote_meta, manifest
            )
            hash_to_persist = await self._rehash()

        # Step 5: metadata, after all data moved
        device_id = await run_sync(self.device.get_device_id)
        record = self.metadata.build(
            files_to_persist, hash_to_persist, device_id
        )
        progress.errors.extend(await self.metadata.save(record))

    def _download_manifest(
        self,
        written: list[str],
        remote_meta: SyncMetadata | None,
        derived: list[str],
    ) -> list[str]:
        if written:
            return written
        if remote_meta is not None:
            declared = self.codec.sanitize(remote_meta.files)
            if declared:
                return declared
        return derived

    async def _rehash(self) -> str:
        snapshot = await run_sync(self.serializer.export_snapshot)
        return compute_data_hash(snapshot)

    @staticmethod
    def _build_result(result: TransferResult) -> SyncResult:
        if result.ok:
            message = (
                f"Sync complete: uploaded {result.uploaded_files} files, "
                f"downloaded {result.downloaded_files} files"
            )
        else:
            message = f"Sync partially complete with {len(result.errors)} errors"
        logger.log(logging.INFO if result.ok else logging.WARNING, message)
        return SyncResult(
            success=result.ok,
            outcome=SyncOutcome.COMPLETE if result.ok else SyncOutcome.PARTIAL,
            message=message,
            uploaded_files=result.uploaded_files,
            downloaded_files=result.downloaded_files,
            errors=list(result.errors),
            direction=result.direction,
        )


def create_coordinator(
    config: Config, settings: SyncSettings | None = None
) -> SyncCoordinator:
    """Build a coordinator over the file-backed store and an S3 bucket.

    Args:
        config: Runtime configuration.
        settings: Sync names; defaults are used when omitted.

    Returns:
        An uninitialized ``SyncCoordinator``; call ``initialize()`` next.
    """
    settings = settings or SyncSettings()
    store = JsonFileStore(config.store_path)
    serializer = StoreSnapshotSerializer(store, settings.reserved_local_keys)
    transport = S3Transport(config)
    logger.debug(
        "Coordinator for s3://%s/%s with local store %s",
        config.bucket,
        config.prefix,
        store.path,
    )
    return SyncCoordinator(
        transport, store, serializer, settings, prefix=config.prefix
    )
