"""Top-level metrics upload pipeline.

:func:`upload_metrics` collects metrics files, stages copies of them, runs
the configured uploader against the copies, and removes the staging
directory again. It never raises pipeline errors to its caller: every
failure is classified and delivered to a
:class:`~metrics_upload.reporting.FailureChannel`, whose handler decides
whether the failure is fatal.
"""

from __future__ import annotations

import dataclasses
import enum
import os
import sys
import typing as typ
from pathlib import Path

from .collector import collect_metrics_files
from .dispatch import UploadProcess, dispatch_upload
from .errors import MetricsUploadError
from .reporting import FailureChannel
from .staging import (
    MANIFEST_NAME,
    UPLOAD_MANIFEST_FLAG,
    TempDirAllocator,
    make_temp_dir,
    remove_staging_dir,
    stage_metrics_files,
    write_upload_manifest,
)

if typ.TYPE_CHECKING:
    from .config import UploadConfig

__all__ = ["UploadInvocation", "UploadState", "upload_metrics"]


class UploadState(enum.Enum):
    """Lifecycle of a single :func:`upload_metrics` call."""

    IDLE = "idle"
    COLLECTING = "collecting"
    STAGED = "staged"
    SKIPPED = "skipped"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclasses.dataclass(slots=True)
class UploadInvocation:
    """Record of one upload attempt."""

    synchronous: bool
    state: UploadState = UploadState.IDLE
    staging_dir: Path | None = None
    staged_files: list[Path] = dataclasses.field(default_factory=list)
    process: UploadProcess | None = None
    error: MetricsUploadError | None = None

    @property
    def succeeded(self) -> bool:
        """Return ``True`` for the completed and skipped terminal states."""
        return self.state in {UploadState.COMPLETED, UploadState.SKIPPED}


def upload_metrics(
    config: UploadConfig,
    paths: typ.Iterable[str | os.PathLike[str]],
    *,
    synchronous: bool = False,
    channel: FailureChannel | None = None,
    make_temp_dir: TempDirAllocator = make_temp_dir,
) -> UploadInvocation:
    """Upload the metrics files found at ``paths``.

    Parameters
    ----------
    config : UploadConfig
        Supplies the uploader and the directory staging happens under.
    paths : Iterable[str | PathLike[str]]
        Metrics files, or directories containing them.
    synchronous : bool
        When ``True`` wait for the uploader to exit; otherwise launch it and
        return immediately.
    channel : FailureChannel | None
        Receives any failure. Defaults to a channel that logs and swallows.
    make_temp_dir : TempDirAllocator
        Allocator for the staging directory.

    Returns
    -------
    UploadInvocation
        Final state of the attempt, returned when the channel's handler
        does not raise.

    Examples
    --------
    >>> from metrics_upload.config import UploadConfig
    >>> upload_metrics(UploadConfig(), ["out/metrics"]).state
    <UploadState.SKIPPED: 'skipped'>
    """
    channel = FailureChannel() if channel is None else channel
    invocation = UploadInvocation(synchronous=synchronous)
    try:
        _run(invocation, config, paths, make_temp_dir)
    except Exception as exc:
        invocation.state = UploadState.FAILED
        invocation.error = channel.classify(exc)
        channel.report(invocation.error)
    return invocation


def _run(
    invocation: UploadInvocation,
    config: UploadConfig,
    paths: typ.Iterable[str | os.PathLike[str]],
    allocator: TempDirAllocator,
) -> None:
    if not config.enabled:
        invocation.state = UploadState.SKIPPED
        return

    invocation.state = UploadState.COLLECTING
    metrics_files = collect_metrics_files(paths)
    if not metrics_files:
        invocation.state = UploadState.SKIPPED
        return

    reserved = {MANIFEST_NAME} if config.write_manifest else set()
    staging = stage_metrics_files(
        metrics_files, config.out_dir, reserved=reserved, make_temp_dir=allocator
    )
    invocation.staging_dir = staging.staging_dir
    invocation.staged_files = staging.staged_files
    invocation.state = UploadState.STAGED

    try:
        arguments = None
        if config.write_manifest:
            manifest = write_upload_manifest(staging, config)
            arguments = [UPLOAD_MANIFEST_FLAG, manifest.as_posix()]

        invocation.state = UploadState.DISPATCHING
        invocation.process = dispatch_upload(
            config.uploader,
            staging.staged_files,
            synchronous=invocation.synchronous,
            arguments=arguments,
        )
    finally:
        remove_staging_dir(staging.staging_dir)

    invocation.state = UploadState.COMPLETED
    mode = "Uploaded" if invocation.synchronous else "Dispatched upload of"
    print(
        f"{mode} {len(staging.staged_files)} metrics file(s) via {config.uploader}",
        file=sys.stderr,
    )
