"""Errors raised by bucketfs itself.

Not-found, permission and transport failures are not wrapped: they surface as the
``google.api_core.exceptions`` types raised by the storage client.
"""

from __future__ import annotations


class BucketfsError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(BucketfsError, ValueError):
    """Raised at construction when a required field is missing or conflicting."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class UnsupportedVisibilityError(BucketfsError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Unsupported Visibility: {value!r}")
        self.value = value
