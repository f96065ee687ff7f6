"""Upload manifest handed to uploaders that expect a description file."""

from __future__ import annotations

import json
import time
import typing as typ
from pathlib import Path

from ..errors import StagingError

if typ.TYPE_CHECKING:
    from ..config import UploadConfig
    from .pipeline import StagingResult

__all__ = ["MANIFEST_NAME", "UPLOAD_MANIFEST_FLAG", "write_upload_manifest"]

MANIFEST_NAME = "upload.json"
UPLOAD_MANIFEST_FLAG = "--upload-metrics"


def write_upload_manifest(
    staging: StagingResult,
    config: UploadConfig,
    *,
    completed_at_ms: int | None = None,
) -> Path:
    """Write the upload manifest into ``staging.staging_dir``.

    Parameters
    ----------
    staging : StagingResult
        Staged metrics files to describe.
    config : UploadConfig
        Supplies the build timestamp and the branch and target names.
    completed_at_ms : int | None
        Completion timestamp; defaults to the current time.

    Returns
    -------
    Path
        Location of the manifest inside the staging directory.

    Raises
    ------
    StagingError
        Raised when the manifest cannot be written.
    """
    if completed_at_ms is None:
        completed_at_ms = time.time_ns() // 1_000_000

    document = {
        "creation_timestamp_ms": _parse_timestamp(config.build_timestamp),
        "completion_timestamp_ms": completed_at_ms,
        "branch_name": config.branch_name,
        "target_name": config.target_name,
        "metrics_files": [path.as_posix() for path in staging.staged_files],
    }
    manifest_path = staging.staging_dir / MANIFEST_NAME
    try:
        manifest_path.write_text(
            json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
    except OSError as exc:
        message = f"failed to write upload manifest {manifest_path}: {exc}"
        raise StagingError(message) from exc
    return manifest_path


def _parse_timestamp(value: str) -> int | None:
    """Return ``value`` as an integer, or ``None`` when it is not numeric.

    Examples
    --------
    >>> _parse_timestamp("1700000000000")
    1700000000000
    >>> _parse_timestamp("") is None
    True
    """
    text = value.strip()
    return int(text) if text.isdigit() else None
