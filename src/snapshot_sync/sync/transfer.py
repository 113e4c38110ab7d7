"""Upload and download of snapshot files.

Both directions work file by file and never abort on a single failure:
each failed entry appends one message to ``TransferResult.errors`` and
the loop moves on. All blocking store and transport calls run through
``run_sync()`` so the event loop stays responsive.
"""

from __future__ import annotations

import json
import logging
import platform
from datetime import datetime, timezone
from typing import Any, Mapping

from snapshot_sync import __version__
from snapshot_sync.config_schema import SyncSettings
from snapshot_sync.core.async_utils import run_sync
from snapshot_sync.core.local_store import LocalStore
from snapshot_sync.core.snapshot import SnapshotSerializer
from snapshot_sync.core.transport import ObjectTransport
from snapshot_sync.sync.device import DeviceIdentity
from snapshot_sync.sync.manifest import JSON_SUFFIX, ManifestCodec, logical_key
from snapshot_sync.sync.models import (
    FullExportEnvelope,
    RawFragment,
    SyncMetadata,
    TransferResult,
)

logger = logging.getLogger(__name__)


def classify_object(
    key: str, content: str, data: Any, export_key: str
) -> FullExportEnvelope | RawFragment:
    """Tell a full application export apart from a single-key fragment.

    An object is a full export only when it is stored under *export_key*
    (the logical key of the default file) and is a JSON object carrying
    an ``exportDate`` marker and a ``data`` object. Anything else,
    including an export-shaped object under another key, is a raw
    fragment stored under its logical key.
    """
    if (
        key == export_key
        and isinstance(data, dict)
        and "exportDate" in data
        and isinstance(data.get("data"), dict)
    ):
        return FullExportEnvelope(
            key=key,
            content=content,
            export_date=data["exportDate"],
            data=data["data"],
        )
    return RawFragment(key=key, value=data)


class Transfer:
    """Moves snapshot files between the local store and the bucket.

    Args:
        transport: Object storage transport.
        store: Local key/value store.
        serializer: Used to apply full-export envelopes.
        codec: Manifest helpers bound to the configured prefix.
        settings: Sync names (reserved object keys, default file).
        device_identity: Source of the device id for device-info objects.
    """

    def __init__(
        self,
        transport: ObjectTransport,
        store: LocalStore,
        serializer: SnapshotSerializer,
        codec: ManifestCodec,
        settings: SyncSettings,
        device_identity: DeviceIdentity,
    ) -> None:
        self.transport = transport
        self.store = store
        self.serializer = serializer
        self.codec = codec
        self.settings = settings
        self.device_identity = device_identity

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(self, snapshot: Mapping[str, Any]) -> TransferResult:
        """Write each top-level snapshot key as ``{key}.json``.

        Values are pretty-printed JSON. A device-info object is written
        afterwards on a best-effort basis; its failure is only logged.
        """
        result = TransferResult()

        for key, value in snapshot.items():
            if not key:
                logger.warning("Skipping snapshot entry with an empty key")
                continue
            file_name = f"{key}{JSON_SUFFIX}"
            try:
                body = json.dumps(value, indent=2, ensure_ascii=False)
                ok = await run_sync(self.transport.put_object, file_name, body)
                if ok:
                    result.uploaded_files += 1
                else:
                    result.errors.append(f"Failed to upload {file_name}")
            except Exception as exc:
                logger.warning("Error uploading %s: %s", key, exc)
                result.errors.append(f"Error uploading {key}: {exc}")

        await self._write_device_info()

        logger.info(
            "Upload finished: %d files, %d errors",
            result.uploaded_files,
            len(result.errors),
        )
        return result

    async def _write_device_info(self) -> None:
        try:
            device_id = await run_sync(self.device_identity.get_device_id)
            now = datetime.now(timezone.utc)
            info = {
                "deviceId": device_id,
                "lastSync": int(now.timestamp() * 1000),
                "userAgent": f"snapshot-sync/{__version__} ({platform.platform()})",
                "timestamp": now.isoformat().replace("+00:00", "Z"),
            }
            ok = await run_sync(
                self.transport.put_object,
                self.settings.device_info_key,
                json.dumps(info, indent=2),
            )
            if not ok:
                logger.warning("Failed to upload device info")
        except Exception as exc:
            logger.warning("Failed to upload device info: %s", exc)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def resolve_targets(
        self, remote_meta: SyncMetadata | None
    ) -> list[str]:
        """Pick the logical file names to download.

        Order of preference: the remote manifest, a listing of ``.json``
        objects in the bucket, and finally the default file name.

        Raises:
            Exception: Whatever the transport raises while listing.
        """
        if remote_meta is not None:
            files = self.codec.sanitize(remote_meta.files)
            if files:
                return files

        reserved = {self.settings.metadata_key, self.settings.device_info_key}
        objects = await run_sync(self.transport.list_objects)
        listed: dict[str, None] = {}
        for item in objects:
            name = self.codec.normalize(item.get("key", ""))
            if name and name.endswith(JSON_SUFFIX) and name not in reserved:
                listed[name] = None
        if listed:
            logger.info("Remote manifest empty, using %d listed files", len(listed))
            return list(listed)

        logger.info(
            "No files found remotely, trying default %s",
            self.settings.default_file,
        )
        return [self.settings.default_file]

    async def download(
        self, remote_meta: SyncMetadata | None
    ) -> tuple[list[str], TransferResult]:
        """Fetch and apply the remote snapshot files.

        Returns:
            ``(written, result)`` where *written* lists the ``{key}.json``
            names actually applied, de-duplicated in order.
        """
        result = TransferResult()

        try:
            targets = await self.resolve_targets(remote_meta)
        except Exception as exc:
            logger.error("Failed to determine files to download: %s", exc)
            result.errors.append(f"Failed to download data: {exc}")
            return [], result

        written: dict[str, None] = {}
        for file_name in targets:
            normalized = self.codec.normalize(file_name)
            if not normalized:
                continue
            try:
                content = await run_sync(self.transport.get_object, normalized)
                if content is None:
                    result.errors.append(f"Failed to download {file_name}")
                    continue

                key = logical_key(normalized)
                if key in self.settings.reserved_local_keys:
                    result.errors.append(
                        f"Refusing to overwrite reserved key from {file_name}"
                    )
                    continue
                try:
                    data = json.loads(content)
                except json.JSONDecodeError:
                    result.errors.append(
                        f"Failed to parse JSON content of {file_name}"
                    )
                    continue

                item = classify_object(
                    key,
                    content,
                    data,
                    logical_key(self.settings.default_file),
                )
                await self._apply(item)
                result.downloaded_files += 1
                written[f"{key}{JSON_SUFFIX}"] = None
            except Exception as exc:
                logger.warning("Error processing %s: %s", file_name, exc)
                result.errors.append(f"Error processing {file_name}: {exc}")

        logger.info(
            "Download finished: %d files, %d errors",
            result.downloaded_files,
            len(result.errors),
        )
        return list(written), result

    async def _apply(self, item: FullExportEnvelope | RawFragment) -> None:
        if isinstance(item, FullExportEnvelope):
            logger.info(
                "Applying full export %s (exportDate=%s)",
                item.key,
                item.export_date,
            )
            await run_sync(self.serializer.import_export, item.content)
        else:
            await run_sync(
                self.store.set,
                item.key,
                json.dumps(item.value, ensure_ascii=False),
            )
