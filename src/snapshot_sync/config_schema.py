"""Unified configuration schema for snapshot_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for object storage, the local store, sync bookkeeping names and
logging. The storage section feeds ``load_config()`` as YAML fallbacks.

Usage:
    from snapshot_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    settings = unified.sync
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    """S3-compatible object storage settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    endpoint: str | None = Field(
        default=None,
        description="Endpoint URL for non-AWS S3 services (MinIO, R2, ...)",
    )
    region: str = Field(default="us-east-1", description="Bucket region")
    bucket: str | None = Field(default=None, description="Bucket name")
    prefix: str = Field(
        default="",
        description="Key prefix under which all sync objects live",
    )
    access_key_id: str | None = Field(
        default=None, description="Access key id"
    )
    secret_access_key: str | None = Field(
        default=None, description="Secret access key"
    )
    force_path_style: bool = Field(
        default=False,
        description="Use path-style addressing (required by most self-hosted services)",
    )

    model_config = {"frozen": True}


class LocalConfig(BaseModel):
    """Local key/value store settings."""

    store_path: str = Field(
        default=".snapshot_sync/store.json",
        description="Path of the JSON file backing the local store",
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Names and constants used by the sync engine.

    Attributes:
        metadata_key: Remote object holding the shared ``SyncMetadata``.
        device_info_key: Remote best-effort diagnostics object.
        default_file: File downloaded when neither the remote manifest nor
            a bucket listing yields anything.
        metadata_version: Version string written into every metadata record.
        local_metadata_key: Local store key of the local ``SyncMetadata``.
        device_id_key: Local store key of the memoized device id.
    """

    metadata_key: str = "sync-metadata.json"
    device_info_key: str = "device-info.json"
    default_file: str = "app-data.json"
    metadata_version: str = "1.0.0"
    local_metadata_key: str = "s3-sync-metadata"
    device_id_key: str = "device-id"

    model_config = {"frozen": True}

    @property
    def reserved_local_keys(self) -> frozenset[str]:
        """Local store keys that hold bookkeeping, not application data."""
        return frozenset({self.local_metadata_key, self.device_id_key})


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    local: LocalConfig = Field(default_factory=LocalConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)

