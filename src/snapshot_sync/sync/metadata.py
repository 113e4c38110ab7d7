"""Read and write the local and remote ``SyncMetadata`` records.

The two records are independent: the local one lives in the local store,
the remote one is a single well-known object in the bucket. Neither is
ever merged; a completed sync overwrites both.

Unreadable records are treated as absent (with a warning), which makes
the resolver fall back to its bootstrap rules instead of failing the run.
"""

from __future__ import annotations

import logging
import time

from pydantic import ValidationError

from snapshot_sync.config_schema import SyncSettings
from snapshot_sync.core.async_utils import run_sync
from snapshot_sync.core.local_store import LocalStore
from snapshot_sync.core.transport import ObjectTransport
from snapshot_sync.sync.models import SyncMetadata

logger = logging.getLogger(__name__)


def _preview(content: str, limit: int = 200) -> str:
    return content[:limit]


class MetadataStore:
    """Load and persist sync metadata.

    Args:
        transport: Object storage transport.
        store: Local key/value store.
        settings: Sync names (metadata object key, local key, version).
    """

    def __init__(
        self,
        transport: ObjectTransport,
        store: LocalStore,
        settings: SyncSettings,
    ) -> None:
        self.transport = transport
        self.store = store
        self.settings = settings

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_remote(self) -> SyncMetadata | None:
        """Fetch the remote record, or ``None`` if missing or unreadable."""
        try:
            content = await run_sync(
                self.transport.get_object, self.settings.metadata_key
            )
        except Exception as exc:
            logger.warning("Failed to fetch remote metadata: %s", exc)
            return None

        if not content:
            return None

        try:
            return SyncMetadata.from_json(content)
        except ValidationError as exc:
            logger.warning(
                "Remote metadata is not valid, ignoring it: %s (content: %r)",
                exc,
                _preview(content),
            )
            return None

    async def load_local(self) -> SyncMetadata | None:
        """Read the local record, or ``None`` if missing or unreadable."""
        content = await run_sync(
            self.store.get, self.settings.local_metadata_key
        )
        if not content:
            return None
        try:
            return SyncMetadata.from_json(content)
        except ValidationError as exc:
            logger.warning("Local metadata is not valid, ignoring it: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Persisting
    # ------------------------------------------------------------------

    def build(
        self,
        files: list[str],
        data_hash: str,
        device_id: str,
        now_ms: int | None = None,
    ) -> SyncMetadata:
        """Create a fresh record; *files* are de-duplicated and sorted."""
        return SyncMetadata(
            last_sync_time=now_ms
            if now_ms is not None
            else int(time.time() * 1000),
            version=self.settings.metadata_version,
            device_id=device_id,
            files=sorted({f for f in files if f}),
            data_hash=data_hash,
        )

    async def save(self, metadata: SyncMetadata) -> list[str]:
        """Write *metadata* locally, then remotely.

        A local write failure propagates. A remote failure is returned as
        an error string so the caller can report the sync as partial.

        Returns:
            List of error strings (empty on full success).
        """
        await run_sync(
            self.store.set,
            self.settings.local_metadata_key,
            metadata.to_json(indent=None),
        )

        try:
            uploaded = await run_sync(
                self.transport.put_object,
                self.settings.metadata_key,
                metadata.to_json(),
            )
        except Exception as exc:
            logger.warning("Failed to upload sync metadata: %s", exc)
            return [f"Error uploading sync metadata: {exc}"]

        if not uploaded:
            logger.warning("Failed to upload sync metadata")
            return [f"Failed to upload {self.settings.metadata_key}"]
        return []
