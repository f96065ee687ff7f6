"""Discovery of metrics files beneath build output roots."""

from __future__ import annotations

import os
import sys
import typing as typ
from pathlib import Path

from .errors import CollectionError

__all__ = ["collect_metrics_files"]


def collect_metrics_files(roots: typ.Iterable[str | os.PathLike[str]]) -> set[Path]:
    """Return every regular file found at or beneath ``roots``.

    Missing roots are skipped silently. A root that is a file is returned as
    is; a directory is walked recursively and only its files are kept.
    Symbolic links are not followed into directories.

    A filesystem error while walking one root stops that root and prints a
    warning; files already found and the remaining roots are still returned.

    Examples
    --------
    >>> collect_metrics_files(["/nonexistent"])
    set()
    """
    found: set[Path] = set()
    for root in roots:
        root_path = Path(root).absolute()
        try:
            found.update(_collect_root(root_path))
        except CollectionError as exc:
            print(f"warning: {exc}", file=sys.stderr)
    return found


def _collect_root(root: Path) -> typ.Iterator[Path]:
    if not root.exists():
        return
    if not root.is_dir():
        if root.is_file():
            yield root
        return

    def _abort(error: OSError) -> None:
        message = f"Failed to walk metrics root {root}: {error}"
        raise CollectionError(message) from error

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_abort):
        for name in filenames:
            candidate = Path(dirpath, name)
            if candidate.is_file():
                yield candidate
