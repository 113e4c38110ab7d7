"""Whole-snapshot direction arbitration.

``decide_direction()`` picks ``UPLOAD`` or ``DOWNLOAD`` from the local
and remote metadata records and the hash of the current local snapshot.
Rules, first match wins:

1. No remote metadata -- upload (nothing in the bucket yet).
2. No local metadata -- download (this device never synced).
3. Local hash differs from the recorded local hash -- upload (local
   edits since the last sync).
4. Remote hash differs from the current hash -- download (another device
   pushed a newer snapshot).
5. Nothing changed -- upload unless the remote record is strictly newer.

This is last-writer-wins at snapshot granularity. When two devices edit
disjoint parts of the state between syncs, the second sync overwrites the
first device's edits; no field-level merge is attempted.
"""

from __future__ import annotations

import logging

from snapshot_sync.sync.models import SyncDirection, SyncMetadata

logger = logging.getLogger(__name__)


def _short(value: str | None) -> str:
    return value[:8] if value else "N/A"


def decide_direction(
    local_meta: SyncMetadata | None,
    remote_meta: SyncMetadata | None,
    current_hash: str,
    forced: SyncDirection | None = None,
) -> SyncDirection:
    """Return the direction the next sync should run in.

    Args:
        local_meta: Local metadata record, if any.
        remote_meta: Remote metadata record, if any.
        current_hash: Hash of the current local snapshot.
        forced: Caller override. ``UPLOAD``/``DOWNLOAD`` are returned as-is;
            ``AUTO`` and ``None`` run the rules above.

    Returns:
        ``SyncDirection.UPLOAD`` or ``SyncDirection.DOWNLOAD``.
    """
    if forced is not None and forced != SyncDirection.AUTO:
        logger.info("Sync direction forced by caller: %s", forced.value)
        return forced

    if remote_meta is None:
        logger.info("No remote metadata: first sync, uploading")
        return SyncDirection.UPLOAD

    if local_meta is None:
        logger.info("No local metadata: downloading remote snapshot")
        return SyncDirection.DOWNLOAD

    local_changed = local_meta.data_hash != current_hash
    logger.debug(
        "Change detection: stored=%s current=%s remote=%s local_changed=%s",
        _short(local_meta.data_hash),
        _short(current_hash),
        _short(remote_meta.data_hash),
        local_changed,
    )

    if local_changed:
        logger.info("Local snapshot changed since last sync, uploading")
        return SyncDirection.UPLOAD

    # A remote record without a hash carries no content information
    if remote_meta.data_hash and remote_meta.data_hash != current_hash:
        logger.info("Remote snapshot changed and local did not, downloading")
        return SyncDirection.DOWNLOAD

    time_diff = remote_meta.last_sync_time - local_meta.last_sync_time
    direction = (
        SyncDirection.UPLOAD if time_diff <= 0 else SyncDirection.DOWNLOAD
    )
    logger.info(
        "No content changes, timestamp tie-break (%ds): %s",
        round(time_diff / 1000),
        direction.value,
    )
    return direction
