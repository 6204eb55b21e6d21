from __future__ import annotations

"""
Background thread that drains an inlet chunk by chunk and hands the data to
a callback, e.g. to feed a plot or a file writer.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..errors import StreamLayerError
from ..tools.debug import time_block
from .inlet import StreamInlet

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[List[list], List[float]], None]
ErrorCallback = Callable[[StreamLayerError], None]

SAMPLES_PER_POLL = 12
MIN_INTERVAL_S = 0.005
MAX_INTERVAL_S = 0.1


def default_interval(nominal_srate: float) -> float:
    """Polling period that collects roughly :data:`SAMPLES_PER_POLL` samples per pull.

    Irregular streams (rate 0) are polled every :data:`MAX_INTERVAL_S`.
    """
    if nominal_srate <= 0:
        return MAX_INTERVAL_S
    return min(MAX_INTERVAL_S, max(MIN_INTERVAL_S, SAMPLES_PER_POLL / nominal_srate))


def reader_loop(
    inlet: StreamInlet,
    on_chunk: ChunkCallback,
    *,
    interval: float,
    max_samples: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    on_error: Optional[ErrorCallback] = None,
) -> None:
    """Pull chunks from ``inlet`` until ``stop_event`` is set or the inlet fails.

    Exceptions raised by ``on_chunk`` are logged and the loop keeps going;
    a failing inlet ends the loop and is reported to ``on_error``.
    """
    stop_event = stop_event or threading.Event()
    while not stop_event.is_set():
        try:
            # A non-blocking pull slower than the poll period means the engine stalled
            with time_block("pull_chunk", emitter=logger.debug, slow_ms=interval * 1000.0):
                samples, timestamps = inlet.pull_chunk(0.0, max_samples)
        except StreamLayerError as exc:
            logger.exception("Chunk reader stopped: inlet failed")
            if on_error is not None:
                on_error(exc)
            return

        if samples:
            try:
                on_chunk(samples, timestamps)
            except Exception:
                logger.exception("Chunk callback failed for %d samples", len(samples))
        stop_event.wait(interval)


@dataclass
class ChunkReaderHandle:
    thread: threading.Thread
    stop_event: threading.Event

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if join:
            self.thread.join(timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_chunk_reader(
    inlet: StreamInlet,
    on_chunk: ChunkCallback,
    *,
    interval: Optional[float] = None,
    max_samples: Optional[int] = None,
    on_error: Optional[ErrorCallback] = None,
    thread_name: Optional[str] = None,
) -> ChunkReaderHandle:
    """
    Start a daemon thread that polls ``inlet.pull_chunk`` and calls ``on_chunk``.

    The inlet must not be pulled from any other thread while the reader runs.
    ``interval`` defaults to :func:`default_interval` of the stream rate.
    """
    if interval is None:
        interval = default_interval(inlet.nominal_srate)
    stop_event = threading.Event()

    def _target() -> None:
        reader_loop(
            inlet,
            on_chunk,
            interval=interval,
            max_samples=max_samples,
            stop_event=stop_event,
            on_error=on_error,
        )

    thread = threading.Thread(
        target=_target,
        name=thread_name or "StreamLayerChunkReader",
        daemon=True,
    )
    thread.start()
    return ChunkReaderHandle(thread=thread, stop_event=stop_event)


__all__ = ["ChunkReaderHandle", "default_interval", "reader_loop", "start_chunk_reader"]
