"""Failure channel deciding whether upload errors are fatal or cosmetic.

Every error raised inside the upload pipeline is converted into a single
:class:`~metrics_upload.errors.MetricsUploadError` and handed to the
channel's registered handler. Builds register :func:`log_failure` so that a
broken uploader never changes the build result; tests and strict runs
register :func:`raise_failure` so the same failure surfaces loudly.

Examples
--------
Turn upload failures into exceptions::

    channel = FailureChannel(raise_failure)
    with channel.recover():
        risky_step()
"""

from __future__ import annotations

import contextlib
import sys
import typing as typ

from .errors import MetricsUploadError

__all__ = ["FailureChannel", "FailureHandler", "log_failure", "raise_failure"]

FailureHandler = typ.Callable[[MetricsUploadError], None]


def raise_failure(error: MetricsUploadError) -> None:
    """Re-raise ``error``; used where upload failures must be fatal."""
    raise error


def log_failure(error: MetricsUploadError) -> None:
    """Report ``error`` on stderr and swallow it."""
    print(f"Metrics upload failed: {error}", file=sys.stderr)


class FailureChannel:
    """Deliver classified pipeline errors to a registered handler."""

    def __init__(self, handler: FailureHandler = log_failure) -> None:
        self._handler = handler

    @property
    def handler(self) -> FailureHandler:
        """Return the currently registered handler."""
        return self._handler

    def register(self, handler: FailureHandler) -> None:
        """Replace the registered handler with ``handler``."""
        self._handler = handler

    @staticmethod
    def classify(exc: BaseException) -> MetricsUploadError:
        """Return ``exc`` as a :class:`MetricsUploadError`.

        Errors that are already classified are returned unchanged; anything
        else is wrapped with the original exception as its cause.

        Examples
        --------
        >>> str(FailureChannel.classify(ValueError("boom")))
        'unexpected metrics upload failure: boom'
        """
        if isinstance(exc, MetricsUploadError):
            return exc
        error = MetricsUploadError(f"unexpected metrics upload failure: {exc}")
        error.__cause__ = exc
        return error

    def report(self, exc: BaseException) -> MetricsUploadError:
        """Classify ``exc`` and pass it to the handler.

        Returns the classified error when the handler does not raise.
        """
        error = self.classify(exc)
        self._handler(error)
        return error

    @contextlib.contextmanager
    def recover(self) -> typ.Iterator[None]:
        """Report any exception raised inside the ``with`` block."""
        try:
            yield
        except Exception as exc:
            self.report(exc)
