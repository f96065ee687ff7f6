"""Copy metrics files into an ephemeral staging directory."""

from __future__ import annotations

import dataclasses
import os
import shutil
import tempfile
import typing as typ
from pathlib import Path

from ..errors import StagingError

__all__ = [
    "STAGING_DIR_PREFIX",
    "StagingResult",
    "TempDirAllocator",
    "make_temp_dir",
    "remove_staging_dir",
    "stage_metrics_files",
]

STAGING_DIR_PREFIX = ".metrics_uploader"

TempDirAllocator = typ.Callable[[Path | None, str], Path]


@dataclasses.dataclass(slots=True)
class StagingResult:
    """Outcome of :func:`stage_metrics_files`."""

    staging_dir: Path
    staged_files: list[Path]
    sources: dict[Path, Path]


def make_temp_dir(base_dir: Path | None, prefix: str) -> Path:
    """Create a uniquely named directory readable only by the current user.

    ``base_dir`` of ``None`` selects the operating system temporary
    directory.
    """
    return Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))


def remove_staging_dir(staging_dir: Path) -> None:
    """Remove ``staging_dir`` and everything beneath it, if it exists."""
    if staging_dir.exists():
        shutil.rmtree(staging_dir)


def stage_metrics_files(
    files: typ.Iterable[str | os.PathLike[str]],
    base_dir: Path | None,
    *,
    reserved: typ.Collection[str] = frozenset(),
    make_temp_dir: TempDirAllocator = make_temp_dir,
) -> StagingResult:
    """Copy ``files`` into a fresh staging directory beneath ``base_dir``.

    Parameters
    ----------
    files : Iterable[str | PathLike[str]]
        Metrics files to copy. Originals are left untouched.
    base_dir : Path | None
        Directory handed to ``make_temp_dir``.
    reserved : Collection[str]
        Base names the caller will write into the staging directory itself;
        sources with these names are staged under a prefixed name.
    make_temp_dir : TempDirAllocator
        Allocator for the staging directory; tests substitute it to control
        the location or inject failures.

    Returns
    -------
    StagingResult
        The staging directory, the staged copies in source order, and a
        mapping from each staged copy back to its source.

    Raises
    ------
    StagingError
        Raised when the staging directory cannot be allocated or a copy
        fails. Any staging directory already allocated is removed first.

    Examples
    --------
    >>> result = stage_metrics_files([], None)  # doctest: +SKIP
    >>> result.staged_files  # doctest: +SKIP
    []
    """
    try:
        staging_dir = Path(make_temp_dir(base_dir, STAGING_DIR_PREFIX))
    except Exception as exc:
        message = (
            "failed to create a temporary directory to store the list of "
            f"metrics files: {exc}"
        )
        raise StagingError(message) from exc

    try:
        return _copy_into(
            staging_dir, sorted(Path(item) for item in files), reserved
        )
    except BaseException:
        remove_staging_dir(staging_dir)
        raise


def _copy_into(
    staging_dir: Path, sources: list[Path], reserved: typ.Collection[str]
) -> StagingResult:
    staged: list[Path] = []
    mapping: dict[Path, Path] = {}
    taken: set[str] = set(reserved)

    for index, source in enumerate(sources):
        name = _staged_name(source, index, taken)
        destination = staging_dir / name
        try:
            shutil.copy2(source, destination)
        except OSError as exc:
            message = f"failed to copy {str(source)!r} to {str(destination)!r}: {exc}"
            raise StagingError(message) from exc
        taken.add(name)
        staged.append(destination)
        mapping[destination] = source

    return StagingResult(staging_dir, staged, mapping)


def _staged_name(source: Path, index: int, taken: set[str]) -> str:
    """Return a base name for ``source`` that is not already ``taken``.

    Examples
    --------
    >>> _staged_name(Path("a/metrics.pb"), 3, {"metrics.pb"})
    '3_metrics.pb'
    """
    name = source.name
    while name in taken:
        name = f"{index}_{name}"
    return name
