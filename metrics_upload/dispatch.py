"""Launch the external metrics uploader.

The uploader is an opaque executable that receives the staged metrics files
as arguments. Synchronous dispatch blocks until it exits and raises
:class:`~metrics_upload.errors.UploadError` on failure. Asynchronous
dispatch only blocks for the launch. The uploader runs in its own session
with no pipes back to the caller, so it survives the caller exiting; a
daemon thread waits for it and reports a failed exit on stderr.
"""

from __future__ import annotations

import dataclasses
import os
import subprocess
import sys
import tempfile
import threading
import typing as typ

from plumbum import local
from plumbum.commands import CommandNotFound, ProcessExecutionError

from .errors import UploadError

if typ.TYPE_CHECKING:
    from plumbum.commands.base import BoundCommand

__all__ = ["UploadProcess", "dispatch_upload"]


@dataclasses.dataclass(slots=True)
class UploadProcess:
    """Handle on a launched uploader process."""

    argv: list[str]
    synchronous: bool
    returncode: int | None = None
    stderr: str = ""
    waiter: threading.Thread | None = None

    def wait(self, timeout: float | None = None) -> int | None:
        """Block until a detached uploader exits and return its status.

        Production callers never need this; it exists so tests can observe
        the outcome of an asynchronous upload.
        """
        if self.waiter is not None:
            self.waiter.join(timeout)
        return self.returncode


def dispatch_upload(
    uploader: str,
    staged_files: typ.Iterable[str | os.PathLike[str]],
    *,
    synchronous: bool,
    arguments: typ.Sequence[str] | None = None,
) -> UploadProcess | None:
    """Run ``uploader`` against ``staged_files``.

    Parameters
    ----------
    uploader : str
        Executable path or command name. Empty disables the upload.
    staged_files : Iterable[str | PathLike[str]]
        Files to upload. Nothing is launched when empty.
    synchronous : bool
        When ``True`` wait for the uploader to exit.
    arguments : Sequence[str] | None
        Argument vector to pass instead of the staged paths, for uploaders
        driven by a manifest.

    Returns
    -------
    UploadProcess | None
        Handle on the launched process, or ``None`` when nothing ran.

    Raises
    ------
    UploadError
        If the uploader cannot be found or launched, or, in synchronous
        mode, exits with a non-zero status.

    Examples
    --------
    >>> dispatch_upload("", ["metrics.pb"], synchronous=True) is None
    True
    """
    files = [os.fspath(path) for path in staged_files]
    if not uploader or not files:
        return None

    argv = list(arguments) if arguments is not None else files
    command = _bind_command(uploader, argv)
    if synchronous:
        return _run_blocking(command, uploader, argv)
    return _launch_detached(command, uploader, argv)


def _bind_command(uploader: str, argv: list[str]) -> BoundCommand:
    try:
        executable = local[uploader]
    except CommandNotFound as exc:
        message = f"Metrics uploader {uploader!r} not found: {exc}"
        raise UploadError(message) from exc
    return executable[tuple(argv)]


def _run_blocking(
    command: BoundCommand, uploader: str, argv: list[str]
) -> UploadProcess:
    try:
        returncode, _stdout, stderr = command.run(stdin=subprocess.DEVNULL)
    except ProcessExecutionError as exc:
        message = (
            f"Metrics uploader {uploader!r} exited with status {exc.retcode}: "
            f"{_tail(exc.stderr)}"
        )
        raise UploadError(message) from exc
    except (OSError, CommandNotFound) as exc:
        message = f"Failed to launch metrics uploader {uploader!r}: {exc}"
        raise UploadError(message) from exc
    return UploadProcess(argv, synchronous=True, returncode=returncode, stderr=stderr)


def _launch_detached(
    command: BoundCommand, uploader: str, argv: list[str]
) -> UploadProcess:
    # No pipes back to the caller: the uploader outlives it. stderr goes to an
    # unlinked file read once the process exits.
    stderr_log = tempfile.TemporaryFile()
    try:
        proc = command.popen(
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=stderr_log,
            new_session=True,
        )
    except (OSError, CommandNotFound) as exc:
        stderr_log.close()
        message = f"Failed to launch metrics uploader {uploader!r}: {exc}"
        raise UploadError(message) from exc

    handle = UploadProcess(argv, synchronous=False)
    handle.waiter = threading.Thread(
        target=_await_exit,
        args=(proc, stderr_log, handle, uploader),
        name="metrics-uploader",
        daemon=True,
    )
    handle.waiter.start()
    return handle


def _await_exit(
    proc: subprocess.Popen[typ.Any],
    stderr_log: typ.BinaryIO,
    handle: UploadProcess,
    uploader: str,
) -> None:
    proc.wait()
    with stderr_log:
        stderr_log.seek(0)
        handle.stderr = _decode(stderr_log.read())
    handle.returncode = proc.returncode
    if proc.returncode != 0:
        print(
            f"Metrics uploader {uploader!r} exited with status "
            f"{proc.returncode}: {_tail(handle.stderr)}",
            file=sys.stderr,
        )


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def _tail(output: bytes | str | None, limit: int = 2000) -> str:
    """Return the last ``limit`` characters of ``output``, stripped."""
    return _decode(output).strip()[-limit:]
