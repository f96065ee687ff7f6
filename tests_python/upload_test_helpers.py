"""Shared helpers for the metrics upload test suites."""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "RecordingAllocator",
    "create_file",
    "read_recorded_args",
    "write_failing_uploader",
    "write_recording_uploader",
]


def create_file(path: Path, content: bytes = b"test file") -> Path:
    """Create ``path`` with ``content``, ensuring parent directories exist."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def _write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!/bin/sh\n{body}", encoding="utf-8")
    path.chmod(0o755)
    return path


def write_recording_uploader(directory: Path) -> tuple[Path, Path, Path]:
    """Create an uploader that records its arguments and their contents.

    Returns
    -------
    tuple[Path, Path, Path]
        The script, the file receiving one argument per line, and the file
        receiving the concatenated contents of every argument.
    """
    args_log = directory / "uploader-args.txt"
    contents_log = directory / "uploader-contents.txt"
    script = _write_script(
        directory / "uploader.sh",
        f'for arg in "$@"; do printf \'%s\\n\' "$arg" >> "{args_log}"; done\n'
        f'cat "$@" > "{contents_log}"\n',
    )
    return script, args_log, contents_log


def write_failing_uploader(directory: Path, status: int, message: str) -> Path:
    """Create an uploader that prints ``message`` to stderr and exits ``status``."""
    return _write_script(
        directory / "failing-uploader.sh",
        f"echo '{message}' >&2\nexit {status}\n",
    )


def read_recorded_args(args_log: Path) -> list[str]:
    """Return the arguments captured by :func:`write_recording_uploader`."""
    return args_log.read_text(encoding="utf-8").splitlines()


class RecordingAllocator:
    """Temp-dir allocator that remembers every directory it hands out."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.allocated: list[Path] = []

    def __call__(self, base_dir: Path | None, prefix: str) -> Path:
        path = self.root / f"{prefix}-{len(self.allocated)}"
        path.mkdir(mode=0o700, parents=True)
        self.allocated.append(path)
        return path
