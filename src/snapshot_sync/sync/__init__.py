"""Snapshot sync engine.

Public API for reconciling a device-local application snapshot with an
S3-compatible bucket.

Architecture
------------
Conflicts are resolved at **whole-snapshot granularity**: a content hash
of the local snapshot is compared against the hashes recorded in the
local and remote metadata records, and the whole snapshot is either
uploaded or downloaded. There is no field-level merge; when two devices
edit disjoint parts of the state between syncs, the later sync wins.

Modules:

- ``engine``    -- ``SyncCoordinator``: single-flight orchestration.
- ``hashing``   -- ``compute_data_hash``: order-independent content hash.
- ``device``    -- ``DeviceIdentity``: memoized per-installation id.
- ``manifest``  -- ``ManifestCodec``: manifest derivation, key prefixing.
- ``metadata``  -- ``MetadataStore``: local/remote ``SyncMetadata`` I/O.
- ``resolver``  -- ``decide_direction``: upload/download arbitration.
- ``transfer``  -- ``Transfer``: per-file upload and download.
- ``models``    -- ``SyncDirection``, ``SyncOutcome``, ``SyncMetadata``, ``SyncResult``,
  ``TransferResult``, ``RawFragment``, ``FullExportEnvelope``.
- ``reporter``  -- Human-readable and JSON result formatting.

Usage example
-------------
::

    from snapshot_sync.core import (
        JsonFileStore,
        S3Transport,
        StoreSnapshotSerializer,
    )
    from snapshot_sync.config_schema import SyncSettings
    from snapshot_sync.sync import SyncCoordinator, format_sync_result

    settings = SyncSettings()
    store = JsonFileStore(".snapshot_sync/store.json")
    coordinator = SyncCoordinator(
        transport=S3Transport(config),
        store=store,
        serializer=StoreSnapshotSerializer(
            store, settings.reserved_local_keys
        ),
        settings=settings,
    )

    if await coordinator.initialize():
        result = await coordinator.sync()
        print(format_sync_result(result))
"""

from .device import DeviceIdentity
from .engine import CoordinatorState, SyncCoordinator, create_coordinator
from .hashing import compute_data_hash
from .manifest import ManifestCodec, normalize_remote_key, remote_key_for
from .metadata import MetadataStore
from .models import (
    FullExportEnvelope,
    RawFragment,
    SyncDirection,
    SyncMetadata,
    SyncOutcome,
    SyncResult,
    TransferResult,
)
from .reporter import format_sync_result, format_sync_status, result_to_json
from .resolver import decide_direction
from .transfer import Transfer, classify_object

__all__ = [
    "CoordinatorState",
    "DeviceIdentity",
    "FullExportEnvelope",
    "ManifestCodec",
    "MetadataStore",
    "RawFragment",
    "SyncCoordinator",
    "SyncDirection",
    "SyncMetadata",
    "SyncOutcome",
    "SyncResult",
    "Transfer",
    "TransferResult",
    "classify_object",
    "compute_data_hash",
    "create_coordinator",
    "decide_direction",
    "format_sync_result",
    "format_sync_status",
    "normalize_remote_key",
    "remote_key_for",
    "result_to_json",
]
