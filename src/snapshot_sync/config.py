"""Runtime configuration for the snapshot sync engine.

Reads object storage settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SNAPSHOT_SYNC_BUCKET: Bucket name (required)
    SNAPSHOT_SYNC_ENDPOINT: Endpoint URL for non-AWS services (optional)
    SNAPSHOT_SYNC_REGION: Bucket region (optional, default: us-east-1)
    SNAPSHOT_SYNC_PREFIX: Key prefix for all sync objects (optional, default: "")
    SNAPSHOT_SYNC_ACCESS_KEY_ID / AWS_ACCESS_KEY_ID: Access key id (optional)
    SNAPSHOT_SYNC_SECRET_ACCESS_KEY / AWS_SECRET_ACCESS_KEY: Secret key (optional)
    SNAPSHOT_SYNC_PATH_STYLE: Force path-style addressing (optional, default: false)
    SNAPSHOT_SYNC_STORE_PATH: Local store file (optional)

When no access keys are configured the boto3 credential chain is used.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "us-east-1"
_DEFAULT_STORE_PATH = ".snapshot_sync/store.json"


@dataclass
class Config:
    bucket: str
    region: str = _DEFAULT_REGION
    endpoint: str | None = None
    prefix: str = ""
    access_key_id: str | None = None
    secret_access_key: str | None = None
    force_path_style: bool = False
    store_path: str = _DEFAULT_STORE_PATH
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the endpoint URL is malformed, the bucket is empty,
            or only one half of the access key pair is set.
    """
    config.bucket = config.bucket.strip()
    if not config.bucket:
        raise ValueError(
            "Bucket name cannot be empty. Set SNAPSHOT_SYNC_BUCKET environment variable."
        )

    if config.endpoint:
        config.endpoint = config.endpoint.strip()
        if not config.endpoint.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid endpoint '{config.endpoint}': must start with http:// or https://"
            )
        if not urlparse(config.endpoint).hostname:
            raise ValueError(
                f"Invalid endpoint '{config.endpoint}': URL must include a hostname"
            )
        config.endpoint = config.endpoint.removesuffix("/")

    if bool(config.access_key_id) != bool(config.secret_access_key):
        raise ValueError(
            "Access key id and secret access key must be set together. "
            "Set both SNAPSHOT_SYNC_ACCESS_KEY_ID and SNAPSHOT_SYNC_SECRET_ACCESS_KEY."
        )

    if config.endpoint and config.endpoint.startswith("http://"):
        logger.warning(
            "Endpoint %s is not using TLS. Use only for development.",
            config.endpoint,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    bucket: str | None = None,
    endpoint: str | None = None,
    region: str | None = None,
    prefix: str | None = None,
    store_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    local_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        bucket: Override bucket name.
        endpoint: Override endpoint URL.
        region: Override region.
        prefix: Override key prefix (an explicit empty string clears it).
        store_path: Override local store path.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``storage`` section.
        local_fallbacks: Dict of values from the YAML ``local`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the bucket is missing after checking all sources,
            or any value fails validation.
    """
    fb = yaml_fallbacks or {}
    local_fb = local_fallbacks or {}

    final_bucket = bucket or os.getenv("SNAPSHOT_SYNC_BUCKET") or fb.get("bucket")
    if not final_bucket:
        raise ValueError(
            "Bucket not found. Set SNAPSHOT_SYNC_BUCKET environment variable, "
            "pass --bucket CLI argument, or add 'bucket' to config.yml."
        )

    final_endpoint = (
        endpoint or os.getenv("SNAPSHOT_SYNC_ENDPOINT") or fb.get("endpoint")
    )
    final_region = (
        region
        or os.getenv("SNAPSHOT_SYNC_REGION")
        or fb.get("region")
        or _DEFAULT_REGION
    )

    # Prefix may legitimately be empty, so test for None instead of falsiness
    if prefix is not None:
        final_prefix = prefix
    elif os.getenv("SNAPSHOT_SYNC_PREFIX") is not None:
        final_prefix = os.environ["SNAPSHOT_SYNC_PREFIX"]
    else:
        final_prefix = fb.get("prefix") or ""

    access_key_id = (
        os.getenv("SNAPSHOT_SYNC_ACCESS_KEY_ID")
        or os.getenv("AWS_ACCESS_KEY_ID")
        or fb.get("access_key_id")
    )
    secret_access_key = (
        os.getenv("SNAPSHOT_SYNC_SECRET_ACCESS_KEY")
        or os.getenv("AWS_SECRET_ACCESS_KEY")
        or fb.get("secret_access_key")
    )

    env_path_style = _get_bool_env("SNAPSHOT_SYNC_PATH_STYLE")
    if env_path_style is not None:
        final_path_style = env_path_style
    else:
        final_path_style = bool(fb.get("force_path_style", False))

    final_store_path = (
        store_path
        or os.getenv("SNAPSHOT_SYNC_STORE_PATH")
        or local_fb.get("store_path")
        or _DEFAULT_STORE_PATH
    )

    if debug:
        final_debug = True
    else:
        final_debug = bool(_get_bool_env("SNAPSHOT_SYNC_DEBUG"))

    config = Config(
        bucket=final_bucket,
        region=final_region,
        endpoint=final_endpoint,
        prefix=final_prefix,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        force_path_style=final_path_style,
        store_path=final_store_path,
        debug=final_debug,
    )

    validate_config(config)

    return config


def load_runtime_config(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, UnifiedConfig, list[str]]:
    """Resolve the runtime config from every source.

    Loads the hierarchical YAML config (if any) and passes its ``storage``
    and ``local`` sections to ``load_config()`` as fallbacks. The caller
    loads ``.env`` first.

    Args:
        overrides: CLI values (bucket, endpoint, region, prefix,
            store_path, debug).

    Returns:
        ``(config, unified, sources)`` where *sources* names every source
        that contributed, for startup logging.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    overrides = overrides or {}
    sources: list[str] = []
    yaml_fallbacks: dict[str, Any] | None = None
    local_fallbacks: dict[str, Any] | None = None

    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = {
            k: v for k, v in unified.storage.model_dump().items() if v is not None
        }
        local_fallbacks = unified.local.model_dump()
        sources.append(f"config file: {config_files[0]}")
    else:
        unified = UnifiedConfig()

    config = load_config(
        bucket=overrides.get("bucket"),
        endpoint=overrides.get("endpoint"),
        region=overrides.get("region"),
        prefix=overrides.get("prefix"),
        store_path=overrides.get("store_path"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
        local_fallbacks=local_fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, unified, sources
