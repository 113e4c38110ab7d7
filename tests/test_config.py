"""Tests for snapshot_sync.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models).
"""

import logging

import pytest

from snapshot_sync.config import (
    Config,
    load_config,
    load_runtime_config,
    validate_config,
)

_ENV_VARS = [
    "SNAPSHOT_SYNC_BUCKET",
    "SNAPSHOT_SYNC_ENDPOINT",
    "SNAPSHOT_SYNC_REGION",
    "SNAPSHOT_SYNC_PREFIX",
    "SNAPSHOT_SYNC_ACCESS_KEY_ID",
    "SNAPSHOT_SYNC_SECRET_ACCESS_KEY",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "SNAPSHOT_SYNC_PATH_STYLE",
    "SNAPSHOT_SYNC_STORE_PATH",
    "SNAPSHOT_SYNC_DEBUG",
    "SNAPSHOT_SYNC_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    def test_valid_config(self):
        validate_config(Config(bucket="b", endpoint="https://s3.example.com"))

    def test_empty_bucket_rejected(self):
        with pytest.raises(ValueError, match="Bucket name cannot be empty"):
            validate_config(Config(bucket="   "))

    def test_endpoint_without_scheme_rejected(self):
        with pytest.raises(ValueError, match="must start with http"):
            validate_config(Config(bucket="b", endpoint="s3.example.com"))

    def test_endpoint_without_host_rejected(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_config(Config(bucket="b", endpoint="https://"))

    def test_trailing_slash_stripped(self):
        config = Config(bucket="b", endpoint="https://s3.example.com/")
        validate_config(config)
        assert config.endpoint == "https://s3.example.com"

    def test_half_key_pair_rejected(self):
        with pytest.raises(ValueError, match="set together"):
            validate_config(Config(bucket="b", access_key_id="AKIA"))

    def test_http_endpoint_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="snapshot_sync.config"):
            validate_config(Config(bucket="b", endpoint="http://localhost:9000"))
        assert "not using TLS" in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    def test_missing_bucket_raises(self):
        with pytest.raises(ValueError, match="SNAPSHOT_SYNC_BUCKET"):
            load_config()

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_SYNC_BUCKET", "env-bucket")
        monkeypatch.setenv("SNAPSHOT_SYNC_REGION", "eu-central-1")
        monkeypatch.setenv("SNAPSHOT_SYNC_PREFIX", "devices")
        monkeypatch.setenv("SNAPSHOT_SYNC_PATH_STYLE", "true")

        config = load_config()

        assert config.bucket == "env-bucket"
        assert config.region == "eu-central-1"
        assert config.prefix == "devices"
        assert config.force_path_style is True

    def test_defaults(self):
        config = load_config(bucket="b")
        assert config.region == "us-east-1"
        assert config.prefix == ""
        assert config.endpoint is None
        assert config.store_path == ".snapshot_sync/store.json"
        assert config.debug is False

    def test_cli_beats_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_SYNC_BUCKET", "env-bucket")
        monkeypatch.setenv("SNAPSHOT_SYNC_REGION", "env-region")
        fallbacks = {"bucket": "yaml", "region": "yaml", "endpoint": "https://yaml.example.com"}

        config = load_config(bucket="cli-bucket", yaml_fallbacks=fallbacks)

        assert config.bucket == "cli-bucket"
        assert config.region == "env-region"
        assert config.endpoint == "https://yaml.example.com"

    def test_empty_prefix_override_wins(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_SYNC_PREFIX", "devices")
        config = load_config(bucket="b", prefix="")
        assert config.prefix == ""

    def test_aws_credential_env_vars(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        config = load_config(bucket="b")
        assert config.access_key_id == "AKIA"
        assert config.secret_access_key == "secret"

    def test_store_path_from_local_fallbacks(self):
        config = load_config(
            bucket="b", local_fallbacks={"store_path": "/data/store.json"}
        )
        assert config.store_path == "/data/store.json"

    def test_debug_env(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_SYNC_DEBUG", "1")
        assert load_config(bucket="b").debug is True


# -------------------------------------------------------------------------
# load_runtime_config()
# -------------------------------------------------------------------------


class TestLoadRuntimeConfig:
    def test_without_config_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))

        config, unified, sources = load_runtime_config({"bucket": "cli"})

        assert config.bucket == "cli"
        assert unified.sync.metadata_key == "sync-metadata.json"
        assert sources == ["CLI arguments", "environment variables"]

    def test_yaml_sections_used_as_fallbacks(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = tmp_path / ".snapshot_sync" / "config.yml"
        cfg.parent.mkdir()
        cfg.write_text(
            "storage:\n"
            "  bucket: yaml-bucket\n"
            "  prefix: devices/\n"
            "local:\n"
            "  store_path: /tmp/yaml-store.json\n"
            "sync:\n"
            "  default_file: brew-guide-data.json\n"
        )

        config, unified, sources = load_runtime_config()

        assert config.bucket == "yaml-bucket"
        assert config.prefix == "devices/"
        assert config.store_path == "/tmp/yaml-store.json"
        assert unified.sync.default_file == "brew-guide-data.json"
        assert sources[0].startswith("config file:")
