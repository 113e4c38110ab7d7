"""Object storage transport for S3-compatible buckets.

``ObjectTransport`` is the narrow interface the sync engine consumes.
``S3Transport`` implements it with boto3 and works against AWS S3 as well
as self-hosted services (MinIO, Ceph, R2, ...) via ``endpoint``.

Keys passed to ``put_object``/``get_object`` are logical (``beans.json``);
the transport places them under the configured prefix. ``list_objects``
returns raw bucket keys, prefix included, for the caller to normalize.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Config

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class ObjectTransport(Protocol):
    """Protocol that all object storage transports must satisfy."""

    def put_object(self, key: str, content: str) -> bool:
        """Write *content* under *key*. Returns ``False`` on failure."""
        ...  # pragma: no cover

    def get_object(self, key: str) -> str | None:
        """Return the object body, or ``None`` if it does not exist."""
        ...  # pragma: no cover

    def list_objects(self, prefix: str = "") -> list[dict[str, Any]]:
        """List objects; every item carries at least a ``"key"``."""
        ...  # pragma: no cover

    def test_connection(self) -> bool:
        """Return ``True`` if the bucket is reachable with our credentials."""
        ...  # pragma: no cover


def create_s3_client(config: Config) -> Any:
    """Build a boto3 S3 client with bounded timeouts and retries."""
    boto_config = BotoConfig(
        connect_timeout=10,
        read_timeout=60,
        retries={"max_attempts": 3, "mode": "standard"},
        s3={"addressing_style": "path" if config.force_path_style else "auto"},
    )
    kwargs: dict[str, Any] = {
        "region_name": config.region,
        "config": boto_config,
    }
    if config.endpoint:
        kwargs["endpoint_url"] = config.endpoint
    if config.access_key_id and config.secret_access_key:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.secret_access_key
    return boto3.client("s3", **kwargs)


def _is_not_found(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


class S3Transport:
    """``ObjectTransport`` backed by a boto3 S3 client.

    Args:
        config: Runtime configuration (bucket, prefix, credentials, ...).
        client: Pre-built boto3 client. Built from *config* when omitted.
    """

    def __init__(self, config: Config, client: Any = None) -> None:
        from ..sync.manifest import ManifestCodec

        self.config = config
        self.bucket = config.bucket
        self.codec = ManifestCodec(config.prefix)
        self._client = client if client is not None else create_s3_client(config)

    def put_object(self, key: str, content: str) -> bool:
        full_key = self.codec.remote_key(key)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=full_key,
                Body=content.encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to put s3://%s/%s: %s", self.bucket, full_key, exc)
            return False
        logger.debug("Put s3://%s/%s (%d chars)", self.bucket, full_key, len(content))
        return True

    def get_object(self, key: str) -> str | None:
        """Fetch an object body as text.

        Raises:
            ClientError: For any failure other than a missing key.
            BotoCoreError: For connection-level failures.
        """
        full_key = self.codec.remote_key(key)
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=full_key)
        except ClientError as exc:
            if _is_not_found(exc):
                logger.debug("s3://%s/%s does not exist", self.bucket, full_key)
                return None
            raise
        return response["Body"].read().decode("utf-8")

    def list_objects(self, prefix: str = "") -> list[dict[str, Any]]:
        """List every object under the configured prefix (plus *prefix*).

        Raises:
            ClientError: If listing is denied or the bucket is missing.
        """
        list_prefix = self.codec.remote_key(prefix) if prefix else self.codec.prefix
        paginator = self._client.get_paginator("list_objects_v2")
        params: dict[str, Any] = {"Bucket": self.bucket}
        if list_prefix:
            params["Prefix"] = list_prefix

        objects: list[dict[str, Any]] = []
        for page in paginator.paginate(**params):
            for item in page.get("Contents", []):
                objects.append(
                    {
                        "key": item["Key"],
                        "size": item.get("Size", 0),
                        "last_modified": item.get("LastModified"),
                    }
                )
        logger.debug(
            "Listed %d objects under s3://%s/%s",
            len(objects),
            self.bucket,
            list_prefix,
        )
        return objects

    def test_connection(self) -> bool:
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as exc:
            logger.error("Cannot reach bucket %s: %s", self.bucket, exc)
            return False
        return True
