"""Canonical exception types for streamlayer.

Every error raised by the library derives from :class:`StreamLayerError`.
Native status codes are translated by :func:`check_error`; shape problems are
reported as :class:`ValidationError` before the engine is ever called.
"""

from __future__ import annotations

import builtins
from typing import Any, Optional

__all__ = [
    "StreamLayerError",
    "ConfigurationError",
    "ValidationError",
    "TimeoutError",
    "LostError",
    "InvalidArgumentError",
    "InternalError",
    "UnknownError",
    "LibraryNotFoundError",
    "NO_ERROR",
    "TIMEOUT_ERROR",
    "LOST_ERROR",
    "ARGUMENT_ERROR",
    "INTERNAL_ERROR",
    "check_error",
]

NO_ERROR = 0
TIMEOUT_ERROR = -1
LOST_ERROR = -2
ARGUMENT_ERROR = -3
INTERNAL_ERROR = -4


class StreamLayerError(Exception):
    """Base class for every streamlayer error."""


class ConfigurationError(StreamLayerError, ValueError):
    """Bad construction arguments (unsupported format, conflicting filter, ...)."""


class ValidationError(StreamLayerError, ValueError):
    """Sample or chunk shape mismatch, caught before any native call."""

    def __init__(
        self,
        message: str,
        *,
        expected: Any = None,
        actual: Any = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.index = index


class TimeoutError(StreamLayerError, builtins.TimeoutError):
    """The deadline elapsed before the operation could complete."""


class LostError(StreamLayerError):
    """The stream (or the handle used to reach it) is gone."""


class InvalidArgumentError(StreamLayerError, ValueError):
    """The native engine rejected an argument."""


class InternalError(StreamLayerError):
    """The native engine failed; the instance should be considered unusable."""


class UnknownError(InternalError):
    """The native engine reported a status code outside the known set."""


class LibraryNotFoundError(StreamLayerError, OSError):
    """The liblsl shared library could not be located or loaded."""


_CODE_TO_ERROR = {
    TIMEOUT_ERROR: (TimeoutError, "the operation timed out"),
    LOST_ERROR: (LostError, "the stream has been lost"),
    ARGUMENT_ERROR: (InvalidArgumentError, "an argument was incorrectly specified"),
    INTERNAL_ERROR: (InternalError, "an internal error occurred"),
}


def check_error(code: int, operation: str = "native call") -> None:
    """Raise the exception matching a native status ``code``.

    Zero and positive values are success and return silently.
    """
    code = int(code)
    if code >= NO_ERROR:
        return
    exc_type, reason = _CODE_TO_ERROR.get(code, (UnknownError, "an unknown error occurred"))
    raise exc_type(f"{operation}: {reason} (code {code})")
