"""Ownership of native handles: explicit destroy with a finalizer backstop."""

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable

from ..errors import InternalError, LostError

logger = logging.getLogger(__name__)

Handle = Any


def _release(destroy: Callable[[Handle], None], handle: Handle, kind: str) -> None:
    try:
        destroy(handle)
    except Exception:
        logger.exception("Failed to destroy %s", kind)
    else:
        logger.debug("Destroyed %s", kind)


class NativeHandle:
    """
    Exactly one owner for one native handle.

    ``destroy()`` releases the handle and is safe to call any number of times.
    If the owner is garbage-collected first, the same release runs from a
    :func:`weakref.finalize` callback. Either way the native destroy routine
    runs at most once and never raises into the caller.
    """

    kind = "handle"

    def __init__(self, handle: Handle, destroy: Callable[[Handle], None]) -> None:
        if not handle:
            raise InternalError(f"could not create {self.kind}")
        self._handle = handle
        self._finalizer = weakref.finalize(self, _release, destroy, handle, self.kind)
        logger.debug("Created %s", self.kind)

    @property
    def handle(self) -> Handle:
        """The live native handle; raises :class:`LostError` once destroyed."""
        if not self._finalizer.alive:
            raise LostError(f"{self.kind} has been destroyed")
        return self._handle

    @property
    def destroyed(self) -> bool:
        return not self._finalizer.alive

    def destroy(self) -> None:
        """Release the native handle. Further calls are no-ops."""
        self._finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()


__all__ = ["Handle", "NativeHandle"]
