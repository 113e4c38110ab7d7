"""Local persistent key/value stores.

The sync engine reads and writes plain strings under string keys. Two
implementations are provided:

* ``JsonFileStore`` -- a single JSON object on disk, rewritten atomically
  (temp file + ``os.replace()``) on every mutation so readers never see
  partial data.
* ``MemoryStore`` -- a dict, for embedding and tests.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    """Protocol that all local stores must satisfy."""

    def get(self, key: str) -> str | None:
        """Return the value stored under *key*, or ``None``."""
        ...  # pragma: no cover

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...  # pragma: no cover

    def delete(self, key: str) -> None:
        """Remove *key*. No-op if absent."""
        ...  # pragma: no cover

    def keys(self) -> list[str]:
        """Return all stored keys."""
        ...  # pragma: no cover


class MemoryStore:
    """In-memory ``LocalStore``."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class JsonFileStore:
    """``LocalStore`` backed by one JSON file.

    The file is read lazily on first access and cached; every ``set`` or
    ``delete`` persists the whole mapping.

    Args:
        path: Location of the JSON file. Parent directories are created on
            first write.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._cache: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = dict(self._load())
            data[key] = value
            self._save(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = dict(self._load())
            if key in data:
                del data[key]
                self._save(data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._load())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, str]:
        if self._cache is None:
            if self._path.exists():
                with open(self._path, encoding="utf-8") as fh:
                    raw = json.load(fh)
                if not isinstance(raw, dict):
                    raise ValueError(
                        f"Local store {self._path} must contain a JSON object, "
                        f"got {type(raw).__name__}"
                    )
                self._cache = {str(k): str(v) for k, v in raw.items()}
            else:
                logger.debug("Local store %s does not exist yet", self._path)
                self._cache = {}
        return self._cache

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._path)
            self._cache = data
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
