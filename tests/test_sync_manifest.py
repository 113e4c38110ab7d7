"""Tests for manifest derivation and remote key normalization."""

from __future__ import annotations

import pytest

from snapshot_sync.sync.manifest import (
    ManifestCodec,
    logical_key,
    normalize_remote_key,
    remote_key_for,
)

PREFIXES = ["", "data", "data/", "nested/dir", "nested/dir/"]
KEYS = ["beans.json", "notes.json", "a", "sub/item.json", "brew-guide-data.json"]


class TestRoundTrip:
    @pytest.mark.parametrize("prefix", PREFIXES)
    @pytest.mark.parametrize("key", KEYS)
    def test_normalize_inverts_remote_key(self, prefix: str, key: str) -> None:
        assert normalize_remote_key(remote_key_for(key, prefix), prefix) == key


class TestRemoteKeyFor:
    def test_empty_prefix_leaves_key(self) -> None:
        assert remote_key_for("beans.json", "") == "beans.json"

    def test_adds_single_separator(self) -> None:
        assert remote_key_for("beans.json", "data") == "data/beans.json"
        assert remote_key_for("beans.json", "data/") == "data/beans.json"


class TestNormalizeRemoteKey:
    def test_strips_prefix_with_separator(self) -> None:
        assert normalize_remote_key("data/beans.json", "data") == "beans.json"

    def test_strips_bare_prefix(self) -> None:
        assert normalize_remote_key("databeans.json", "data") == "beans.json"

    def test_strips_leading_separators(self) -> None:
        assert normalize_remote_key("//beans.json", "") == "beans.json"

    def test_foreign_key_kept(self) -> None:
        assert normalize_remote_key("other/beans.json", "data") == "other/beans.json"

    def test_prefix_only_yields_empty(self) -> None:
        assert normalize_remote_key("data/", "data") == ""


class TestDeriveManifest:
    def test_one_entry_per_key(self) -> None:
        manifest = ManifestCodec.derive_manifest({"beans": [], "notes": {}})
        assert manifest == ["beans.json", "notes.json"]

    def test_skips_empty_key(self) -> None:
        assert ManifestCodec.derive_manifest({"": 1, "a": 2}) == ["a.json"]

    def test_empty_snapshot(self) -> None:
        assert ManifestCodec.derive_manifest({}) == []


class TestSanitize:
    def test_adds_suffix_and_strips_prefix(self) -> None:
        codec = ManifestCodec("data")
        assert codec.sanitize(["data/beans", "notes.json"]) == [
            "beans.json",
            "notes.json",
        ]

    def test_collapses_duplicates(self) -> None:
        codec = ManifestCodec("data/")
        assert codec.sanitize(
            ["beans.json", "data/beans.json", "beans"]
        ) == ["beans.json"]

    def test_drops_empty_entries(self) -> None:
        codec = ManifestCodec("data")
        assert codec.sanitize(["", "data/", ".json", None, 5]) == []


class TestLogicalKey:
    def test_strips_suffix(self) -> None:
        assert logical_key("beans.json") == "beans"

    def test_case_insensitive(self) -> None:
        assert logical_key("beans.JSON") == "beans"

    def test_only_trailing_suffix(self) -> None:
        assert logical_key("a.json.bak") == "a.json.bak"
