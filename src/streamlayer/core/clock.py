"""Process-wide queries answered by the streaming engine."""

from __future__ import annotations

from ..native import get_engine


def local_clock() -> float:
    """Seconds on the engine's monotonic clock; the reference for all timestamps."""
    return get_engine().local_clock()


def protocol_version() -> int:
    """Network protocol version, major * 100 + minor."""
    return get_engine().protocol_version()


def library_version() -> int:
    """Engine library version, major * 100 + minor."""
    return get_engine().library_version()


def library_info() -> str:
    return get_engine().library_info()


__all__ = ["library_info", "library_version", "local_clock", "protocol_version"]
