"""Storage collaborators shared by the sync engine, CLI and MCP server."""

from .async_utils import run_sync
from .local_store import JsonFileStore, LocalStore, MemoryStore
from .snapshot import SnapshotSerializer, StoreSnapshotSerializer
from .transport import ObjectTransport, S3Transport

__all__ = [
    "JsonFileStore",
    "LocalStore",
    "MemoryStore",
    "ObjectTransport",
    "S3Transport",
    "SnapshotSerializer",
    "StoreSnapshotSerializer",
    "run_sync",
]
