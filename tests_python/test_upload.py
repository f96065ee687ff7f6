"""End-to-end tests for the metrics upload pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from upload_test_helpers import (
    RecordingAllocator,
    create_file,
    read_recorded_args,
    write_failing_uploader,
    write_recording_uploader,
)


def _fail_if_called(base_dir: Path | None, prefix: str) -> Path:
    message = "staging directory should not be allocated"
    raise AssertionError(message)


def test_upload_without_uploader_is_skipped(
    metrics_upload: object, out_dir: Path, strict_channel: object
) -> None:
    """No staging directory is created when no uploader is configured."""
    metrics = [create_file(out_dir / f"metrics_file_{idx}") for idx in range(3)]
    config = metrics_upload.UploadConfig(out_dir=out_dir)

    invocation = metrics_upload.upload_metrics(
        config, metrics, channel=strict_channel, make_temp_dir=_fail_if_called
    )

    assert invocation.state is metrics_upload.UploadState.SKIPPED
    assert invocation.succeeded
    assert invocation.staging_dir is None


def test_upload_without_files_spawns_nothing(
    metrics_upload: object, out_dir: Path, strict_channel: object
) -> None:
    """Non-existent metrics files short-circuit before staging and dispatch."""
    config = metrics_upload.UploadConfig(uploader="false", out_dir=out_dir)
    missing = [out_dir / f"metrics_file_{idx}" for idx in range(3)]

    invocation = metrics_upload.upload_metrics(
        config,
        missing,
        synchronous=True,
        channel=strict_channel,
        make_temp_dir=_fail_if_called,
    )

    assert invocation.state is metrics_upload.UploadState.SKIPPED
    assert invocation.process is None


def test_upload_sync_stages_dispatches_and_cleans_up(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """The uploader sees staged copies and the staging area is removed after."""
    uploader, args_log, contents_log = write_recording_uploader(tmp_path / "bin")
    create_file(out_dir / "metrics_file_1", b"one")
    create_file(out_dir / "nested" / "metrics_file_2", b"two")
    config = metrics_upload.UploadConfig(uploader=str(uploader), out_dir=out_dir)

    invocation = metrics_upload.upload_metrics(
        config, [out_dir], synchronous=True, channel=strict_channel
    )

    assert invocation.state is metrics_upload.UploadState.COMPLETED
    assert invocation.process is not None
    assert invocation.process.returncode == 0
    staging_dir = invocation.staging_dir
    assert staging_dir is not None
    assert staging_dir.parent == out_dir
    assert not staging_dir.exists(), "Staging directory must be removed"
    assert read_recorded_args(args_log) == [
        str(staging_dir / "metrics_file_1"),
        str(staging_dir / "metrics_file_2"),
    ]
    assert contents_log.read_bytes() == b"onetwo"
    assert (out_dir / "metrics_file_1").read_bytes() == b"one"


def test_upload_async_cleans_up_after_launch(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """Detached uploads remove the staging area once the process is launched."""
    uploader, args_log, _contents_log = write_recording_uploader(tmp_path / "bin")
    create_file(out_dir / "metrics_file_1")
    allocator = RecordingAllocator(tmp_path / "tmp")
    config = metrics_upload.UploadConfig(uploader=str(uploader), out_dir=out_dir)

    invocation = metrics_upload.upload_metrics(
        config, [out_dir], channel=strict_channel, make_temp_dir=allocator
    )

    assert invocation.state is metrics_upload.UploadState.COMPLETED
    assert not allocator.allocated[0].exists()
    assert invocation.process is not None
    invocation.process.wait(timeout=30)
    assert read_recorded_args(args_log) == [
        str(allocator.allocated[0] / "metrics_file_1")
    ]


def test_upload_failure_is_fatal_under_strict_channel(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """A failing uploader raises through the strict handler after cleanup."""
    uploader = write_failing_uploader(tmp_path / "bin", 2, "bad credentials")
    create_file(out_dir / "metrics_file_1")
    allocator = RecordingAllocator(tmp_path / "tmp")
    config = metrics_upload.UploadConfig(uploader=str(uploader), out_dir=out_dir)

    with pytest.raises(metrics_upload.UploadError, match="bad credentials"):
        metrics_upload.upload_metrics(
            config,
            [out_dir],
            synchronous=True,
            channel=strict_channel,
            make_temp_dir=allocator,
        )

    assert not allocator.allocated[0].exists()


def test_upload_failure_is_swallowed_by_default(
    metrics_upload: object,
    out_dir: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Production callers only see a logged warning and a failed record."""
    uploader = write_failing_uploader(tmp_path / "bin", 2, "bad credentials")
    create_file(out_dir / "metrics_file_1")
    config = metrics_upload.UploadConfig(uploader=str(uploader), out_dir=out_dir)

    invocation = metrics_upload.upload_metrics(config, [out_dir], synchronous=True)

    assert invocation.state is metrics_upload.UploadState.FAILED
    assert isinstance(invocation.error, metrics_upload.UploadError)
    assert not invocation.succeeded
    assert invocation.staging_dir is not None
    assert not invocation.staging_dir.exists()
    assert "Metrics upload failed: " in capsys.readouterr().err


@pytest.mark.parametrize(
    ("description", "allocator_error", "expected"),
    [
        ("allocator returned error", "getTmpDir failed", "getTmpDir failed"),
        ("copy operation error", None, "failed to copy"),
    ],
)
def test_upload_reports_staging_errors(
    metrics_upload: object,
    tmp_path: Path,
    description: str,
    allocator_error: str | None,
    expected: str,
) -> None:
    """Staging failures reach the handler and no uploader is spawned."""
    uploader, args_log, _contents_log = write_recording_uploader(tmp_path / "bin")
    metrics_file = create_file(tmp_path / "out" / "metrics_file_1")
    received: list[object] = []

    def allocator(base_dir: Path | None, prefix: str) -> Path:
        if allocator_error is not None:
            raise OSError(allocator_error)
        return tmp_path / "fake_dir"

    config = metrics_upload.UploadConfig(
        uploader=str(uploader), out_dir=Path("/bad")
    )
    invocation = metrics_upload.upload_metrics(
        config,
        [metrics_file],
        synchronous=True,
        channel=metrics_upload.FailureChannel(received.append),
        make_temp_dir=allocator,
    )

    assert len(received) == 1, f"{description}: expected exactly one report"
    assert expected in str(received[0])
    assert isinstance(received[0], metrics_upload.StagingError)
    assert invocation.state is metrics_upload.UploadState.FAILED
    assert not args_log.exists(), "No uploader should have been spawned"
    assert not (tmp_path / "fake_dir").exists()


def test_upload_wraps_unexpected_faults(
    metrics_upload: object,
    upload_module: object,
    out_dir: Path,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Unexpected exceptions are classified and the staging area is removed."""
    create_file(out_dir / "metrics_file_1")
    allocator = RecordingAllocator(tmp_path / "tmp")
    received: list[object] = []

    def broken_dispatch(*_args: object, **_kwargs: object) -> None:
        message = "uploader registry corrupted"
        raise ValueError(message)

    monkeypatch.setattr(upload_module, "dispatch_upload", broken_dispatch)
    config = metrics_upload.UploadConfig(uploader="echo", out_dir=out_dir)

    metrics_upload.upload_metrics(
        config,
        [out_dir],
        channel=metrics_upload.FailureChannel(received.append),
        make_temp_dir=allocator,
    )

    assert [str(item) for item in received] == [
        "unexpected metrics upload failure: uploader registry corrupted"
    ]
    assert not allocator.allocated[0].exists()


def test_upload_with_manifest(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """Manifest mode hands the uploader a description of the staged files."""
    captured = tmp_path / "captured-manifest.json"
    args_log = tmp_path / "args.txt"
    uploader = tmp_path / "bin" / "manifest-uploader.sh"
    uploader.parent.mkdir()
    uploader.write_text(
        f'#!/bin/sh\nprintf \'%s\\n\' "$@" > "{args_log}"\ncp "$2" "{captured}"\n',
        encoding="utf-8",
    )
    uploader.chmod(0o755)
    create_file(out_dir / "soong_metrics")
    config = metrics_upload.UploadConfig(
        uploader=str(uploader),
        out_dir=out_dir,
        build_timestamp="1700000000000",
        write_manifest=True,
    )

    invocation = metrics_upload.upload_metrics(
        config, [out_dir], synchronous=True, channel=strict_channel
    )

    staging_dir = invocation.staging_dir
    assert staging_dir is not None
    assert read_recorded_args(args_log) == [
        "--upload-metrics",
        (staging_dir / "upload.json").as_posix(),
    ]
    document = json.loads(captured.read_text(encoding="utf-8"))
    assert document["creation_timestamp_ms"] == 1700000000000
    assert document["metrics_files"] == [(staging_dir / "soong_metrics").as_posix()]
    assert not staging_dir.exists()


def test_upload_async_launch_failure_reaches_channel(
    metrics_upload: object, out_dir: Path, tmp_path: Path
) -> None:
    """A detached uploader that cannot start is reported once and cleaned up."""
    create_file(out_dir / "metrics_file_1")
    allocator = RecordingAllocator(tmp_path / "tmp")
    received: list[object] = []
    config = metrics_upload.UploadConfig(
        uploader=str(tmp_path / "missing" / "uploader"), out_dir=out_dir
    )

    invocation = metrics_upload.upload_metrics(
        config,
        [out_dir],
        synchronous=False,
        channel=metrics_upload.FailureChannel(received.append),
        make_temp_dir=allocator,
    )

    assert len(received) == 1, "Launch failure should be reported exactly once"
    assert isinstance(received[0], metrics_upload.UploadError)
    assert invocation.state is metrics_upload.UploadState.FAILED
    assert invocation.process is None
    assert not allocator.allocated[0].exists(), "Staging directory must be removed"


def test_upload_keeps_manifest_name_without_manifest(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """A metrics file named ``upload.json`` keeps its name when no manifest is written."""
    uploader, args_log, _contents_log = write_recording_uploader(tmp_path / "bin")
    create_file(out_dir / "upload.json", b"{}")
    config = metrics_upload.UploadConfig(uploader=str(uploader), out_dir=out_dir)

    invocation = metrics_upload.upload_metrics(
        config, [out_dir], synchronous=True, channel=strict_channel
    )

    assert invocation.staging_dir is not None
    assert read_recorded_args(args_log) == [str(invocation.staging_dir / "upload.json")]


def test_upload_prefixes_metrics_named_like_the_manifest(
    metrics_upload: object, out_dir: Path, tmp_path: Path, strict_channel: object
) -> None:
    """In manifest mode a same-named metrics file cannot replace the manifest."""
    captured = tmp_path / "captured-manifest.json"
    uploader = tmp_path / "bin" / "manifest-uploader.sh"
    uploader.parent.mkdir()
    uploader.write_text(f'#!/bin/sh\ncp "$2" "{captured}"\n', encoding="utf-8")
    uploader.chmod(0o755)
    create_file(out_dir / "upload.json", b'{"metrics": true}')
    config = metrics_upload.UploadConfig(
        uploader=str(uploader), out_dir=out_dir, write_manifest=True
    )

    invocation = metrics_upload.upload_metrics(
        config, [out_dir], synchronous=True, channel=strict_channel
    )

    assert invocation.staging_dir is not None
    document = json.loads(captured.read_text(encoding="utf-8"))
    assert document["metrics_files"] == [
        (invocation.staging_dir / "0_upload.json").as_posix()
    ]
