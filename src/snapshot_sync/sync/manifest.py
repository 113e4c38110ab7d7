"""Manifest derivation and remote key normalization.

A *manifest* is the set of logical file names (``beans.json``) that make
up a snapshot in the bucket. Logical names never carry the bucket prefix;
``remote_key_for`` adds it and ``normalize_remote_key`` strips it again,
so for every logical key ``k`` without a leading ``/``::

    normalize_remote_key(remote_key_for(k, prefix), prefix) == k

holds for an empty prefix, ``"data"`` and ``"data/"`` alike.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

SEPARATOR = "/"
JSON_SUFFIX = ".json"

_JSON_SUFFIX_RE = re.compile(r"\.json$", re.IGNORECASE)


def remote_key_for(logical_key: str, prefix: str) -> str:
    """Place *logical_key* under *prefix* with exactly one separator."""
    if not prefix:
        return logical_key
    if not prefix.endswith(SEPARATOR):
        prefix = prefix + SEPARATOR
    return prefix + logical_key


def normalize_remote_key(object_key: str, prefix: str) -> str:
    """Strip *prefix* (with or without trailing separator) from *object_key*.

    Leading separators left over after stripping are removed too. An empty
    result means the key has no usable logical name.
    """
    result = object_key
    if prefix:
        with_sep = prefix if prefix.endswith(SEPARATOR) else prefix + SEPARATOR
        if result.startswith(with_sep):
            result = result[len(with_sep) :]
        elif result.startswith(prefix):
            result = result[len(prefix) :]
    return result.lstrip(SEPARATOR)


class ManifestCodec:
    """Manifest helpers bound to one bucket prefix.

    Args:
        prefix: The configured key prefix; may be empty.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix or ""

    def remote_key(self, logical_key: str) -> str:
        return remote_key_for(logical_key, self.prefix)

    def normalize(self, object_key: str) -> str:
        return normalize_remote_key(object_key, self.prefix)

    @staticmethod
    def derive_manifest(snapshot: Mapping[str, Any]) -> list[str]:
        """``{key}.json`` for each non-empty top-level snapshot key."""
        return list(
            dict.fromkeys(f"{key}{JSON_SUFFIX}" for key in snapshot if key)
        )

    def sanitize(self, files: Iterable[str]) -> list[str]:
        """Clean a manifest read from metadata.

        Adds a missing ``.json`` suffix, strips the prefix, drops entries
        that normalize to nothing and collapses duplicates.
        """
        sanitized: dict[str, None] = {}
        for name in files:
            if not isinstance(name, str) or not name:
                continue
            if not name.endswith(JSON_SUFFIX):
                name = f"{name}{JSON_SUFFIX}"
            normalized = self.normalize(name)
            # A bare ".json" has no logical name left
            if normalized and logical_key(normalized):
                sanitized[normalized] = None
        return list(sanitized)


def logical_key(file_name: str) -> str:
    """Return *file_name* without its ``.json`` suffix (case-insensitive)."""
    return _JSON_SUFFIX_RE.sub("", file_name)
