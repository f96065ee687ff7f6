"""Staging package copying metrics files into an ephemeral directory."""

from .manifest import MANIFEST_NAME, UPLOAD_MANIFEST_FLAG, write_upload_manifest
from .pipeline import (
    STAGING_DIR_PREFIX,
    StagingResult,
    TempDirAllocator,
    make_temp_dir,
    remove_staging_dir,
    stage_metrics_files,
)

__all__ = [
    "MANIFEST_NAME",
    "STAGING_DIR_PREFIX",
    "StagingResult",
    "TempDirAllocator",
    "UPLOAD_MANIFEST_FLAG",
    "make_temp_dir",
    "remove_staging_dir",
    "stage_metrics_files",
    "write_upload_manifest",
]
