"""Shared fixtures for the metrics upload test suite."""

from __future__ import annotations

import importlib
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def metrics_upload() -> object:
    """Load the metrics upload package once for reuse across tests."""
    return importlib.import_module("metrics_upload")


@pytest.fixture
def staging_pipeline(metrics_upload: object) -> object:
    """Expose the staging pipeline module for unit-level assertions."""

    return importlib.import_module("metrics_upload.staging.pipeline")


@pytest.fixture
def collector_module(metrics_upload: object) -> object:
    """Expose the collector module so tests can patch its filesystem walk."""

    return importlib.import_module("metrics_upload.collector")


@pytest.fixture
def upload_module(metrics_upload: object) -> object:
    """Expose the pipeline module for patching its collaborators."""

    return importlib.import_module("metrics_upload.upload")


@pytest.fixture
def out_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated build output directory and export ``OUT_DIR``."""
    root = tmp_path / "out"
    root.mkdir()
    monkeypatch.setenv("OUT_DIR", str(root))
    monkeypatch.delenv("METRICS_UPLOADER", raising=False)
    monkeypatch.delenv("BUILD_DATETIME", raising=False)
    monkeypatch.delenv("METRICS_UPLOAD_MANIFEST", raising=False)
    return root


@pytest.fixture
def strict_channel(metrics_upload: object) -> object:
    """Return a failure channel that raises every reported error."""

    return metrics_upload.FailureChannel(metrics_upload.raise_failure)
