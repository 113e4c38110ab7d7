"""Content hashing for snapshots.

The hash is the change detector of the whole engine: a snapshot whose
hash matches the one recorded in local metadata is considered unchanged.
Serialization sorts keys at every level, so in-memory key order never
affects the result.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Mapping

logger = logging.getLogger(__name__)

FALLBACK_PREFIX = "fallback-"


def canonical_json(snapshot: Mapping[str, Any]) -> str:
    """Serialize *snapshot* deterministically (sorted keys, no whitespace)."""
    return json.dumps(
        snapshot,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_data_hash(snapshot: Mapping[str, Any]) -> str:
    """Return the SHA-256 hex digest of *snapshot*'s canonical JSON.

    If the snapshot cannot be serialized, a ``fallback-<millis>`` marker
    is returned instead of raising. It never matches a stored hash, so the
    resolver treats the snapshot as changed and uploads it.
    """
    try:
        payload = canonical_json(snapshot).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()
    except Exception as exc:
        logger.warning("Failed to hash snapshot, using fallback: %s", exc)
        return f"{FALLBACK_PREFIX}{int(time.time() * 1000)}"


def is_fallback_hash(value: str | None) -> bool:
    return value is not None and value.startswith(FALLBACK_PREFIX)
