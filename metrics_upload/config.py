"""Configuration model and loader for the metrics upload pipeline.

The configuration is a read-only view of the build settings the pipeline
needs: which uploader to run, where the build writes its output, and when
the build started. It can be assembled from a TOML file, from the build
environment, or both.

Usage
-----
Load the configuration exported by the build driver::

    import os
    from metrics_upload.config import load_config

    config = load_config(environ=os.environ)
    if config.enabled:
        print(f"Uploading with {config.uploader}")
"""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from pathlib import Path

import tomllib

from .environment import coerce_bool, env_path, env_value
from .errors import ConfigError

__all__ = [
    "DEFAULT_BRANCH_NAME",
    "DEFAULT_TARGET_NAME",
    "UploadConfig",
    "load_config",
]

DEFAULT_BRANCH_NAME = "developer-metrics"
DEFAULT_TARGET_NAME = "platform-build-systems-metrics"

_STRING_KEYS = ("uploader", "build_timestamp", "branch_name", "target_name")


@dataclasses.dataclass(slots=True, frozen=True)
class UploadConfig:
    """Settings consumed by :func:`metrics_upload.upload.upload_metrics`.

    Parameters
    ----------
    uploader : str, default=""
        Path or command name of the external uploader. An empty string
        disables metrics upload entirely.
    out_dir : Path | None, optional
        Build output directory. Staging directories are created beneath it;
        when ``None`` the operating system temporary directory is used.
    build_timestamp : str, default=""
        Build start time in milliseconds since the epoch.
    write_manifest : bool, default=False
        When ``True`` the uploader receives an upload manifest instead of the
        staged file paths.
    branch_name : str
        Branch recorded in the upload manifest.
    target_name : str
        Target recorded in the upload manifest.

    Examples
    --------
    >>> UploadConfig().enabled
    False
    >>> UploadConfig(uploader="echo").enabled
    True
    """

    uploader: str = ""
    out_dir: Path | None = None
    build_timestamp: str = ""
    write_manifest: bool = False
    branch_name: str = DEFAULT_BRANCH_NAME
    target_name: str = DEFAULT_TARGET_NAME

    @property
    def enabled(self) -> bool:
        """Return ``True`` when an uploader is configured."""
        return bool(self.uploader)


def load_config(
    config_file: Path | None = None,
    *,
    environ: typ.Mapping[str, str] | None = None,
) -> UploadConfig:
    """Build an :class:`UploadConfig` from ``config_file`` and ``environ``.

    Values from the ``[metrics]`` table of ``config_file`` are read first;
    ``METRICS_UPLOADER``, ``OUT_DIR``, ``BUILD_DATETIME`` and
    ``METRICS_UPLOAD_MANIFEST`` override them when set.

    Parameters
    ----------
    config_file : Path | None
        Optional TOML file containing a ``[metrics]`` table.
    environ : Mapping[str, str] | None
        Environment to read. Defaults to :data:`os.environ`.

    Returns
    -------
    UploadConfig
        Fully resolved configuration.

    Raises
    ------
    FileNotFoundError
        Raised when ``config_file`` is given but absent.
    ConfigError
        Raised when the ``[metrics]`` table or one of its values is invalid.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, typ.Any] = {}
    if config_file is not None:
        values.update(_read_metrics_table(Path(config_file)))

    if (uploader := env_value(environ, "METRICS_UPLOADER")) is not None:
        values["uploader"] = uploader
    if (out_dir := env_path(environ, "OUT_DIR")) is not None:
        values["out_dir"] = out_dir
    if (timestamp := env_value(environ, "BUILD_DATETIME")) is not None:
        values["build_timestamp"] = timestamp
    if (manifest := env_value(environ, "METRICS_UPLOAD_MANIFEST")) is not None:
        values["write_manifest"] = _coerce_flag(manifest, "METRICS_UPLOAD_MANIFEST")

    return UploadConfig(**values)


def _read_metrics_table(config_file: Path) -> dict[str, typ.Any]:
    if not config_file.is_file():
        message = f"Configuration file not found at {config_file}"
        raise FileNotFoundError(message)

    try:
        with config_file.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        message = f"Invalid TOML in {config_file}: {exc}"
        raise ConfigError(message) from exc

    table = data.get("metrics", {})
    if not isinstance(table, dict):
        message = f"[metrics] must be a table in {config_file}"
        raise ConfigError(message)

    values: dict[str, typ.Any] = {}
    for key in _STRING_KEYS:
        if key in table:
            values[key] = _require_string(table[key], key, config_file)
    if "out_dir" in table:
        out_dir = _require_string(table["out_dir"], "out_dir", config_file)
        values["out_dir"] = Path(out_dir) if out_dir else None
    if "manifest" in table:
        values["write_manifest"] = _coerce_flag(table["manifest"], "manifest")
    return values


def _require_string(value: object, key: str, config_file: Path) -> str:
    # Timestamps are commonly written as bare TOML integers.
    if key == "build_timestamp" and type(value) is int:
        return str(value)
    if not isinstance(value, str):
        message = f"Key '{key}' must be a string in {config_file}"
        raise ConfigError(message)
    return value


def _coerce_flag(value: object, label: str) -> bool:
    try:
        return coerce_bool(value)
    except (TypeError, ValueError) as exc:
        message = f"Invalid boolean for {label}: {exc}"
        raise ConfigError(message) from exc
