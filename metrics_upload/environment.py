"""Environment helpers shared by the upload configuration."""

from __future__ import annotations

import typing as typ
from pathlib import Path

__all__ = ["coerce_bool", "env_path", "env_value"]


def env_value(environ: typ.Mapping[str, str], name: str) -> str | None:
    """Return the value of ``name`` or ``None`` when unset or empty."""
    value = environ.get(name)
    return value or None


def env_path(environ: typ.Mapping[str, str], name: str) -> Path | None:
    """Return ``Path`` value for ``name`` or ``None`` when unset.

    Parameters
    ----------
    environ:
        Mapping to read, normally :data:`os.environ`.
    name:
        Name of the environment variable to fetch.
    """
    value = env_value(environ, name)
    return Path(value) if value is not None else None


def coerce_bool(value: object) -> bool:
    """Return ``value`` as a strict boolean.

    Raises
    ------
    TypeError
        If ``value`` is neither a boolean nor a string.
    ValueError
        If ``value`` is a string that does not name a boolean.
    """
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        message = f"Cannot interpret {value!r} as a boolean"
        raise TypeError(message)
    normalised = value.strip().lower()
    if normalised in {"", "false", "0", "no", "off"}:
        return False
    if normalised in {"true", "1", "yes", "on"}:
        return True
    message = f"Cannot interpret {value!r} as a boolean"
    raise ValueError(message)
