"""Snapshot sync engine: keep a device-local key/value snapshot in step
with an S3-compatible bucket."""

__version__ = "0.3.0"
