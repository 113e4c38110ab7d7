"""Snapshot serializer: flattens local application state into one mapping.

A snapshot maps each application key of the local store to its value,
decoded from JSON where possible. Bookkeeping keys (sync metadata, device
id) are never part of a snapshot.

``import_export()`` is the restore routine for a *full application
export*, an envelope of the form::

    {"exportDate": "...", "appVersion": "...", "data": {key: value, ...}}

Restoring replaces the whole application state: keys absent from the
envelope are removed.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Protocol

from .local_store import LocalStore

logger = logging.getLogger(__name__)


class SnapshotSerializer(Protocol):
    """Protocol for producing and restoring application snapshots."""

    def export_snapshot(self) -> dict[str, Any]:
        """Return the current application state as key -> value."""
        ...  # pragma: no cover

    def import_export(self, content: str) -> None:
        """Replace the application state with a full-export envelope."""
        ...  # pragma: no cover


class StoreSnapshotSerializer:
    """``SnapshotSerializer`` over a ``LocalStore``.

    Args:
        store: The local key/value store holding application data.
        reserved_keys: Store keys that hold sync bookkeeping and must be
            excluded from snapshots and left alone by imports.
    """

    def __init__(
        self, store: LocalStore, reserved_keys: Iterable[str] = ()
    ) -> None:
        self._store = store
        self._reserved = frozenset(reserved_keys)

    def export_snapshot(self) -> dict[str, Any]:
        snapshot: dict[str, Any] = {}
        for key in self._app_keys():
            raw = self._store.get(key)
            if raw is None:
                continue
            try:
                snapshot[key] = json.loads(raw)
            except json.JSONDecodeError:
                # Plain strings are stored unquoted by some writers
                snapshot[key] = raw
        return snapshot

    def import_export(self, content: str) -> None:
        """Restore all application keys from *content*.

        Raises:
            ValueError: If *content* is not a full-export envelope.
        """
        envelope = json.loads(content)
        if not isinstance(envelope, dict) or not isinstance(
            envelope.get("data"), dict
        ):
            raise ValueError("Export content has no 'data' object")

        data: dict[str, Any] = envelope["data"]
        incoming = {k for k in data if k and k not in self._reserved}

        for key in self._app_keys():
            if key not in incoming:
                self._store.delete(key)
        for key in incoming:
            self._store.set(key, json.dumps(data[key], ensure_ascii=False))

        logger.info(
            "Imported full export (exportDate=%s, appVersion=%s, %d keys)",
            envelope.get("exportDate"),
            envelope.get("appVersion", "unknown"),
            len(incoming),
        )

    def _app_keys(self) -> list[str]:
        return [k for k in self._store.keys() if k not in self._reserved]
