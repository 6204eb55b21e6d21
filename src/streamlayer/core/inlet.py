"""Consumer endpoint for one stream, with an explicit open/closed state."""

from __future__ import annotations

import enum
import logging
import math
from typing import List, NamedTuple, Optional, Tuple, Union

import numpy as np

from ..config import get_config
from ..errors import TIMEOUT_ERROR, ConfigurationError, ValidationError, check_error
from .codec import ChunkCodec, SampleCodec, ScratchBuffer
from .formats import FOREVER, ChannelFormat, PostProcessing, format_spec, parse_processing_flags
from .info import StreamInfo
from .lifecycle import NativeHandle

logger = logging.getLogger(__name__)


class InletState(enum.Enum):
    CREATED = "created"
    OPEN = "open"
    DESTROYED = "destroyed"


class TimeCorrection(NamedTuple):
    """Result of :meth:`StreamInlet.time_correction_ex`."""

    offset: float
    remote_time: float
    uncertainty: float


class StreamInlet(NativeHandle):
    """
    Subscribes to one resolved stream and pulls its samples.

    States: ``CREATED`` -> ``open_stream()`` -> ``OPEN`` -> ``close_stream()``
    -> ``CREATED``; ``destroy()`` moves to ``DESTROYED`` from anywhere and
    every later call raises :class:`~streamlayer.errors.LostError`.

    Pulls never raise on timeout: ``pull_sample`` returns ``(None, None)`` and
    ``pull_chunk`` returns empty lists. The per-inlet sample and chunk
    buffers are reused between calls and must not be shared across threads.
    """

    kind = "inlet"

    def __init__(
        self,
        info: StreamInfo,
        max_buflen: Optional[float] = None,
        max_chunklen: int = 0,
        recover: bool = True,
        processing_flags: Union[PostProcessing, int, None] = None,
    ) -> None:
        if not isinstance(info, StreamInfo):
            raise ConfigurationError(f"inlet needs a StreamInfo, got {type(info).__name__}")
        spec = format_spec(info.channel_format)
        if max_buflen is None:
            max_buflen = get_config().inlet_max_buflen
        if not (max_buflen > 0 and math.isfinite(max_buflen)):
            raise ConfigurationError(f"max_buflen must be > 0, got {max_buflen!r}")
        # The engine takes whole seconds; round up so short buffers never become 0
        max_buflen = math.ceil(max_buflen)
        if isinstance(max_chunklen, bool) or int(max_chunklen) != max_chunklen or max_chunklen < 0:
            raise ConfigurationError(f"max_chunklen must be an integer >= 0, got {max_chunklen!r}")
        flags = parse_processing_flags(processing_flags)

        self.engine = info.engine
        self.max_buflen = max_buflen
        self.max_chunklen = int(max_chunklen)
        self.recover = bool(recover)
        self.nominal_srate = info.nominal_srate
        self._codec = SampleCodec(spec, info.channel_count)
        self._chunks = ChunkCodec(self._codec)
        self._sample = self._codec.allocate()
        self._default_chunk = self.max_chunklen or get_config().default_chunk_samples
        self._scratch = ScratchBuffer(spec, info.channel_count, self._default_chunk)
        self._flags = PostProcessing.NONE
        self._state = InletState.CREATED

        handle = self.engine.create_inlet(info.handle, self.max_buflen, self.max_chunklen, self.recover)
        super().__init__(handle, self.engine.destroy_inlet)
        if flags:
            try:
                self.set_postprocessing(flags)
            except Exception:
                self.destroy()
                raise

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> InletState:
        if self.destroyed:
            return InletState.DESTROYED
        return self._state

    @property
    def channel_count(self) -> int:
        return self._codec.channel_count

    @property
    def channel_format(self) -> ChannelFormat:
        return self._codec.spec.fmt

    @property
    def processing_flags(self) -> PostProcessing:
        return self._flags

    def open_stream(self, timeout: float = FOREVER) -> None:
        """Subscribe to the data stream; raises ``TimeoutError`` and stays CREATED on timeout."""
        check_error(self.engine.open_stream(self.handle, float(timeout)), "open_stream")
        self._state = InletState.OPEN
        logger.debug("Inlet opened")

    def close_stream(self) -> None:
        """Drop the data subscription. Does nothing if the stream is not open."""
        handle = self.handle
        if self._state is InletState.CREATED:
            return
        self.engine.close_stream(handle)
        self._state = InletState.CREATED
        logger.debug("Inlet closed")

    def set_postprocessing(self, flags: Union[PostProcessing, int, None] = PostProcessing.ALL) -> None:
        """Apply timestamp post-processing to samples pulled after this call."""
        value = parse_processing_flags(flags)
        check_error(self.engine.set_postprocessing(self.handle, int(value)), "set_postprocessing")
        self._flags = value

    def _mark_open(self) -> None:
        # The engine subscribes implicitly on the first pull.
        if self._state is InletState.CREATED:
            self._state = InletState.OPEN

    # ------------------------------------------------------------------ pull
    def pull_sample(self, timeout: float = 0.0) -> Tuple[Optional[list], Optional[float]]:
        """Return ``(sample, timestamp)`` or ``(None, None)`` if nothing arrived in time."""
        timestamp, code = self.engine.pull_sample(self._codec.spec.suffix, self.handle, self._sample, float(timeout))
        if code == TIMEOUT_ERROR:
            return None, None
        check_error(code, "pull_sample")
        if not timestamp:
            return None, None
        self._mark_open()
        return self._codec.decode(self._sample), timestamp

    def _pull_into_scratch(self, timeout: float, max_samples: Optional[int]) -> int:
        if max_samples is None:
            max_samples = self._default_chunk
        elif isinstance(max_samples, bool) or int(max_samples) != max_samples or max_samples < 1:
            raise ValidationError(
                f"max_samples must be an integer >= 1, got {max_samples!r}", expected=">= 1", actual=max_samples
            )
        max_samples = int(max_samples)
        self._scratch.ensure(max_samples)
        channels = self._codec.channel_count
        elements, code = self.engine.pull_chunk(
            self._codec.spec.suffix,
            self.handle,
            self._scratch.data,
            self._scratch.timestamps,
            max_samples * channels,
            max_samples,
            float(timeout),
        )
        if code == TIMEOUT_ERROR:
            return 0
        check_error(code, "pull_chunk")
        count = elements // channels
        if count:
            self._mark_open()
        return count

    def pull_chunk(self, timeout: float = 0.0, max_samples: Optional[int] = None) -> Tuple[List[list], List[float]]:
        """Return up to ``max_samples`` samples and their timestamps, oldest first.

        ``max_samples`` defaults to the inlet's ``max_chunklen`` (or the
        configured ``default_chunk_samples`` when that is 0).
        """
        count = self._pull_into_scratch(timeout, max_samples)
        return self._chunks.unflatten(self._scratch.data, count), self._scratch.timestamps[:count].tolist()

    def pull_chunk_array(
        self, timeout: float = 0.0, max_samples: Optional[int] = None
    ) -> Tuple[Union[np.ndarray, List[list]], np.ndarray]:
        """Like :meth:`pull_chunk` but returns a ``(n, channel_count)`` array and a timestamp array.

        Both arrays are copies. String streams still return a list of rows.
        """
        count = self._pull_into_scratch(timeout, max_samples)
        return self._chunks.unflatten_array(self._scratch.data, count), self._scratch.timestamps[:count].copy()

    def samples_available(self) -> int:
        return int(self.engine.samples_available(self.handle))

    def flush(self) -> int:
        """Discard the buffered backlog and return how many samples were dropped."""
        return int(self.engine.inlet_flush(self.handle))

    # ------------------------------------------------------------------ clock
    def time_correction(self, timeout: float = FOREVER) -> float:
        """Offset to add to remote timestamps to map them onto ``local_clock()``."""
        return self.time_correction_ex(timeout).offset

    def time_correction_ex(self, timeout: float = FOREVER) -> TimeCorrection:
        offset, remote_time, uncertainty, code = self.engine.time_correction(self.handle, float(timeout))
        check_error(code, "time_correction")
        return TimeCorrection(offset, remote_time, uncertainty)

    def was_clock_reset(self) -> bool:
        return bool(self.engine.was_clock_reset(self.handle))

    def smoothing_halftime(self, value: float) -> None:
        """Set the dejitter smoothing half-time in seconds (only with ``DEJITTER``)."""
        if not value > 0:
            raise ConfigurationError(f"smoothing half-time must be > 0, got {value!r}")
        check_error(self.engine.smoothing_halftime(self.handle, float(value)), "smoothing_halftime")

    def info(self, timeout: float = FOREVER) -> StreamInfo:
        """Full descriptor of the connected stream, extended metadata included."""
        handle, code = self.engine.inlet_info(self.handle, float(timeout))
        check_error(code, "info")
        return StreamInfo.from_handle(handle, self.engine)


__all__ = ["InletState", "StreamInlet", "TimeCorrection"]
