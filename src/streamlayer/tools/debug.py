"""Opt-in timing instrumentation, switched on with ``STREAMLAYER_DEBUG=1``."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

DEBUG_STREAMLAYER = os.getenv("STREAMLAYER_DEBUG", "").lower() in {"1", "true", "yes", "on"}


def debug_enabled() -> bool:
    """Return True when lightweight instrumentation should run."""
    return DEBUG_STREAMLAYER


@contextmanager
def time_block(
    label: str,
    *,
    emitter: Optional[Callable[[str], None]] = None,
    slow_ms: Optional[float] = None,
) -> Iterator[None]:
    """
    Report how long the block took when debugging is enabled.

    ``slow_ms`` additionally logs a warning when the block exceeds it, even
    with debugging off, so stalled native calls show up in production logs.
    """
    if not DEBUG_STREAMLAYER and slow_ms is None:
        yield
        return

    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if DEBUG_STREAMLAYER:
            (emitter or logger.debug)(f"{label} took {elapsed_ms:.3f} ms")
        if slow_ms is not None and elapsed_ms > slow_ms:
            logger.warning("%s took %.1f ms (limit %.1f ms)", label, elapsed_ms, slow_ms)


__all__ = ["DEBUG_STREAMLAYER", "debug_enabled", "time_block"]
