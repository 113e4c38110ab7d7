"""Data contracts for the snapshot sync engine.

- ``SyncDirection``: Enum of sync directions (``auto`` lets the resolver pick).
- ``SyncOutcome``: Enum of the ways a sync run can end.
- ``SyncMetadata``: Durable bookkeeping record, stored locally and remotely.
- ``TransferResult``: Mutable counters/errors accumulated by a transfer.
- ``SyncResult``: Outcome of a whole sync run, returned to callers.
- ``RawFragment`` / ``FullExportEnvelope``: Classified downloaded objects.

``SyncMetadata`` keeps the camelCase wire names (``lastSyncTime``,
``deviceId``, ``dataHash``) through field aliases so records stay readable
by every device sharing the bucket.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SyncDirection(str, Enum):
    """Direction of a sync run."""

    AUTO = "auto"
    UPLOAD = "upload"
    DOWNLOAD = "download"


class SyncOutcome(str, Enum):
    """How a sync run ended.

    ``BUSY`` and ``NOT_INITIALIZED`` runs never touched any data.
    ``FAILED`` runs were aborted by an unexpected error and may still
    carry the counts and errors collected before it.
    """

    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"
    BUSY = "busy"
    NOT_INITIALIZED = "not_initialized"


class SyncMetadata(BaseModel):
    """Sync bookkeeping record.

    Attributes:
        last_sync_time: Epoch millis when this record was written.
        version: Metadata schema version.
        device_id: Device that wrote the record.
        files: Logical file names that made up the synced snapshot.
        data_hash: Snapshot content hash at the time of writing.
    """

    last_sync_time: int = Field(alias="lastSyncTime")
    version: str
    device_id: str = Field(alias="deviceId")
    files: list[str] = Field(default_factory=list)
    data_hash: str | None = Field(default=None, alias="dataHash")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("files", mode="before")
    @classmethod
    def _coerce_files(cls, value: Any) -> Any:
        # Older writers stored a non-list here; treat it as "no manifest"
        if not isinstance(value, list):
            return []
        return value

    @classmethod
    def from_json(cls, content: str) -> SyncMetadata:
        return cls.model_validate_json(content)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


class TransferResult(BaseModel):
    """Counters and errors accumulated while moving data.

    A transfer never stops at the first failure; every failed entry adds
    one human-readable string to ``errors``.
    ``direction`` is set once a sync run has picked one.
    """

    uploaded_files: int = 0
    downloaded_files: int = 0
    errors: list[str] = Field(default_factory=list)
    direction: SyncDirection | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def absorb(self, other: TransferResult) -> None:
        """Add the counters and errors of *other* to this result."""
        self.uploaded_files += other.uploaded_files
        self.downloaded_files += other.downloaded_files
        self.errors.extend(other.errors)


class SyncResult(BaseModel):
    """Result of one ``SyncCoordinator.sync()`` call.

    A failed write of the remote metadata record counts as an error, so
    such a run reports ``PARTIAL`` even though every file moved.

    Attributes:
        success: ``True`` iff the run finished with no errors.
        outcome: How the run ended; callers branch on this.
        message: Human-readable one-line summary.
        uploaded_files: Number of snapshot files written to the bucket.
        downloaded_files: Number of remote files applied locally.
        errors: Every error encountered, in order.
        direction: Direction that was executed, ``None`` if none was.
    """

    success: bool
    outcome: SyncOutcome
    message: str
    uploaded_files: int = 0
    downloaded_files: int = 0
    errors: list[str] = []
    direction: SyncDirection | None = None

    model_config = {"frozen": True}


@dataclass(frozen=True)
class RawFragment:
    """A downloaded object stored verbatim under its logical key."""

    key: str
    value: Any


@dataclass(frozen=True)
class FullExportEnvelope:
    """A downloaded full application export.

    Applying it replaces the whole local application state.
    """

    key: str
    content: str
    export_date: Any
    data: dict[str, Any]
