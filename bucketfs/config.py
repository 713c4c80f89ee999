"""Centralized configuration loading for the bucketfs storage adapter."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Union

# Inline service-account material may arrive already parsed, or as raw JSON.
InlineMaterial = Union[Mapping[str, Any], str, bytes]


@dataclass(frozen=True)
class KeyFile:
    """Path to a service-account keyfile.json on local disk."""

    path: str


@dataclass(frozen=True)
class InlineCredentials:
    """Contents of a service-account keyfile, already parsed."""

    info: Mapping[str, Any]


@dataclass(frozen=True)
class ApiKey:
    key: str


CredentialSource = Union[KeyFile, InlineCredentials, ApiKey]


@dataclass(frozen=True)
class GcsConfig:
    """Immutable adapter configuration.

    Exactly one of ``key_filename``, ``credentials`` or ``api_key`` must be set.
    Validation happens in the adapter constructor so that a bad config fails
    before any client is built.
    """

    project_id: str
    bucket: str
    key_filename: str | None = None
    credentials: InlineMaterial | None = None
    api_key: str | None = None

    def supplied_credentials(self) -> list[str]:
        supplied = []
        if self.key_filename:
            supplied.append("key_filename")
        if self.credentials:
            supplied.append("credentials")
        if self.api_key:
            supplied.append("api_key")
        return supplied

    def credential_source(self) -> CredentialSource:
        """Map whichever credential field is set to its tagged variant."""
        if self.key_filename:
            return KeyFile(self.key_filename)
        if self.credentials:
            return InlineCredentials(_parse_inline(self.credentials))
        if self.api_key:
            return ApiKey(self.api_key)
        raise ValueError("No credential configured")


def _parse_inline(material: InlineMaterial) -> Mapping[str, Any]:
    if isinstance(material, bytes):
        material = material.decode("utf-8")
    if isinstance(material, str):
        parsed = json.loads(material)
        if not isinstance(parsed, dict):
            raise ValueError("Inline credentials must be a JSON object")
        return parsed
    return material


@dataclass(frozen=True)
class Settings:
    """Immutable container for environment-driven settings."""

    gcs_project_id: str
    gcs_bucket: str
    gcs_key_filename: str | None = None
    gcs_credentials: str | None = None
    gcs_api_key: str | None = None

    # Streaming uploads copy the source in chunks of this many bytes
    stream_chunk_size: int = 256 * 1024
    default_visibility: str = "private"
    log_level: str = "INFO"

    def to_adapter_config(self) -> GcsConfig:
        return GcsConfig(
            project_id=self.gcs_project_id,
            bucket=self.gcs_bucket,
            key_filename=self.gcs_key_filename,
            credentials=self.gcs_credentials,
            api_key=self.gcs_api_key,
        )


def _get_positive_int(key: str, value: str, min_value: int = 1) -> int:
    """Parse and validate a positive integer from environment variable.

    Args:
        key: Environment variable name (for error messages)
        value: Raw string value from os.environ
        min_value: Minimum allowed value (default: 1)

    Returns:
        Validated positive integer

    Raises:
        ValueError: If value is not a positive integer or below min_value
    """
    try:
        parsed = int(value)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got: {value}") from e

    if parsed < min_value:
        raise ValueError(f"{key} must be >= {min_value}, got: {parsed}")

    return parsed


def _get_choice(key: str, value: str, choices: set[str]) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f"{key} must be one of {sorted(choices)}, got: {value}")
    return normalized


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""

    required_keys = (
        "GCS_PROJECT_ID",
        "GCS_BUCKET",
    )
    missing = [key for key in required_keys if not os.getenv(key)]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    return Settings(
        gcs_project_id=os.environ["GCS_PROJECT_ID"],
        gcs_bucket=os.environ["GCS_BUCKET"],
        gcs_key_filename=os.environ.get("GCS_KEY_FILENAME") or None,
        gcs_credentials=os.environ.get("GCS_CREDENTIALS") or None,
        gcs_api_key=os.environ.get("GCS_API_KEY") or None,
        stream_chunk_size=_get_positive_int(
            "GCS_STREAM_CHUNK_SIZE",
            os.environ.get("GCS_STREAM_CHUNK_SIZE", str(256 * 1024)),
            min_value=1,
        ),
        default_visibility=_get_choice(
            "GCS_DEFAULT_VISIBILITY",
            os.environ.get("GCS_DEFAULT_VISIBILITY", "private"),
            {"public", "private"},
        ),
        log_level=os.environ.get("GCS_LOG_LEVEL", "INFO").upper(),
    )
