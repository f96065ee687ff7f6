"""Public interface for the metrics upload package."""

from .collector import collect_metrics_files
from .config import UploadConfig, load_config
from .dispatch import UploadProcess, dispatch_upload
from .errors import (
    CollectionError,
    ConfigError,
    MetricsUploadError,
    StagingError,
    UploadError,
)
from .reporting import FailureChannel, log_failure, raise_failure
from .staging import StagingResult, make_temp_dir, stage_metrics_files
from .upload import UploadInvocation, UploadState, upload_metrics

__all__ = [
    "CollectionError",
    "ConfigError",
    "FailureChannel",
    "MetricsUploadError",
    "StagingError",
    "StagingResult",
    "UploadConfig",
    "UploadError",
    "UploadInvocation",
    "UploadProcess",
    "UploadState",
    "collect_metrics_files",
    "dispatch_upload",
    "load_config",
    "log_failure",
    "make_temp_dir",
    "raise_failure",
    "stage_metrics_files",
    "upload_metrics",
]
