"""Stable per-installation device identifier.

The id is advisory: it attributes metadata records and device-info
objects to an installation and never influences sync decisions.
"""

from __future__ import annotations

import locale
import logging
import platform
import shutil
import socket
import time
from datetime import datetime

from snapshot_sync.core.local_store import LocalStore

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Format a non-negative integer in base 36."""
    if value < 0:
        raise ValueError("to_base36 expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> int:
    """32-bit signed ``h = h * 31 + ord(c)`` hash of *text*."""
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def collect_fingerprint() -> str:
    """Join the environment signals that make up the device fingerprint."""
    size = shutil.get_terminal_size(fallback=(0, 0))
    offset = datetime.now().astimezone().utcoffset()
    offset_minutes = int(offset.total_seconds() // 60) if offset else 0
    try:
        lang = locale.getlocale()[0] or ""
    except ValueError:
        lang = ""
    try:
        signature = socket.gethostname()
    except OSError:
        signature = ""
    return "|".join(
        [
            platform.platform(),
            lang,
            f"{size.columns}x{size.lines}",
            str(offset_minutes),
            signature,
        ]
    )


class DeviceIdentity:
    """Derive and memoize the device id in the local store.

    Args:
        store: Local store used for memoization.
        key: Store key holding the id.
    """

    def __init__(self, store: LocalStore, key: str = "device-id") -> None:
        self._store = store
        self._key = key

    def get_device_id(self) -> str:
        """Return the persisted id, creating it on first use."""
        device_id = self._store.get(self._key)
        if device_id:
            return device_id

        fingerprint_hash = abs(rolling_hash(collect_fingerprint()))
        # The time suffix separates machines with identical fingerprints
        suffix = to_base36(int(time.time() * 1000))
        device_id = f"device-{to_base36(fingerprint_hash)}-{suffix}"
        self._store.set(self._key, device_id)
        logger.info("Generated new device id %s", device_id)
        return device_id
