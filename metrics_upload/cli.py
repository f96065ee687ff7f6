"""Command-line entry point for the metrics upload pipeline.

Examples
--------
Upload the metrics a build left in its output directory, waiting for the
uploader and failing loudly if it breaks::

    export METRICS_UPLOADER=/opt/metrics/uploader
    export OUT_DIR="$(pwd)/out"
    metrics-upload out/soong_metrics out/build_trace.gz --sync --strict
"""

from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path

import cyclopts

from .config import load_config
from .errors import MetricsUploadError
from .reporting import FailureChannel, log_failure, raise_failure
from .upload import upload_metrics

app = cyclopts.App(help="Upload build metrics files through the configured uploader.")


@app.default
def main(
    *paths: Path,
    config_file: Path | None = None,
    uploader: str | None = None,
    out_dir: Path | None = None,
    sync: bool = False,
    strict: bool = False,
) -> None:
    """Upload the metrics files found at ``paths``.

    Parameters
    ----------
    paths:
        Metrics files or directories that contain them.
    config_file:
        Optional TOML file with a ``[metrics]`` table.
    uploader:
        Uploader executable, overriding the configuration.
    out_dir:
        Directory staging happens under, overriding the configuration.
    sync:
        Wait for the uploader to exit.
    strict:
        Exit with status 1 when the upload fails instead of only logging it.
    """
    try:
        config = load_config(config_file, environ=os.environ)
    except (FileNotFoundError, MetricsUploadError) as exc:
        print(f"Metrics upload failure: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    overrides: dict[str, object] = {}
    if uploader is not None:
        overrides["uploader"] = uploader
    if out_dir is not None:
        overrides["out_dir"] = out_dir
    if overrides:
        config = dataclasses.replace(config, **overrides)

    channel = FailureChannel(raise_failure if strict else log_failure)
    try:
        upload_metrics(config, paths, synchronous=sync, channel=channel)
    except MetricsUploadError as exc:
        print(f"Metrics upload failure: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    app()
