"""Error types raised by the metrics upload pipeline."""

from __future__ import annotations

__all__ = [
    "CollectionError",
    "ConfigError",
    "MetricsUploadError",
    "StagingError",
    "UploadError",
]


class MetricsUploadError(RuntimeError):
    """Classified failure delivered to the failure channel."""


class ConfigError(MetricsUploadError):
    """Raised when the upload configuration is malformed."""


class CollectionError(MetricsUploadError):
    """Raised when a metrics root cannot be walked."""


class StagingError(MetricsUploadError):
    """Raised when the staging directory cannot be prepared or populated."""


class UploadError(MetricsUploadError):
    """Raised when the uploader cannot be launched or exits unsuccessfully."""
