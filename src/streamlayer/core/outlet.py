"""Publishing endpoint for one stream."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any, Optional

import numpy as np

from ..config import get_config
from ..errors import ConfigurationError, check_error
from .codec import ChunkCodec, SampleCodec, reject_text, split_chunk_shape
from .formats import Buffer, ChannelFormat, format_spec
from .info import StreamInfo
from .lifecycle import NativeHandle

logger = logging.getLogger(__name__)


class StreamOutlet(NativeHandle):
    """
    Makes one stream visible on the network and pushes samples into it.

    The format-specific codec is chosen once here; every push validates shape
    locally before anything reaches the engine. A ``timestamp`` of ``0.0``
    asks the engine to stamp with its own clock at push time.

    Parameters
    ----------
    info:
        Descriptor to publish. The engine copies it; ``info`` stays owned by
        the caller.
    chunk_size:
        Preferred transmission chunk size in samples (0 = sender default).
    max_buffered:
        Seconds of data buffered for each consumer before old samples are
        dropped. Defaults to ``StreamLayerConfig.outlet_max_buffered``.
    """

    kind = "outlet"

    def __init__(self, info: StreamInfo, chunk_size: int = 0, max_buffered: Optional[float] = None) -> None:
        if not isinstance(info, StreamInfo):
            raise ConfigurationError(f"outlet needs a StreamInfo, got {type(info).__name__}")
        spec = format_spec(info.channel_format)
        if isinstance(chunk_size, bool) or int(chunk_size) != chunk_size or chunk_size < 0:
            raise ConfigurationError(f"chunk_size must be an integer >= 0, got {chunk_size!r}")
        if max_buffered is None:
            max_buffered = get_config().outlet_max_buffered
        if not (max_buffered > 0 and math.isfinite(max_buffered)):
            raise ConfigurationError(f"max_buffered must be > 0, got {max_buffered!r}")
        # The engine takes whole seconds; round up so short buffers never become 0
        max_buffered = math.ceil(max_buffered)

        self.engine = info.engine
        self.chunk_size = int(chunk_size)
        self.max_buffered = max_buffered
        self._codec = SampleCodec(spec, info.channel_count)
        self._chunks = ChunkCodec(self._codec)
        handle = self.engine.create_outlet(info.handle, self.chunk_size, self.max_buffered)
        super().__init__(handle, self.engine.destroy_outlet)
        logger.info("Outlet for %r (%d x %s) created", info.name, info.channel_count, spec.name)

    @property
    def channel_count(self) -> int:
        return self._codec.channel_count

    @property
    def channel_format(self) -> ChannelFormat:
        return self._codec.spec.fmt

    # ------------------------------------------------------------------ push
    def push_sample(self, sample: Any, timestamp: float = 0.0, pushthrough: bool = True) -> None:
        """Push one sample of ``channel_count`` values."""
        data = self._codec.encode(sample)
        code = self.engine.push_sample(self._codec.spec.suffix, self.handle, data, float(timestamp), pushthrough)
        check_error(code, "push_sample")

    def push_chunk(self, samples: Any, timestamp: Any = 0.0, pushthrough: bool = True) -> None:
        """Push several samples at once.

        ``samples`` is either a sequence of samples / 2-D array (one row per
        sample) or an already interleaved 1-D sequence / array whose length is
        a multiple of ``channel_count``. ``timestamp`` is one value for the
        whole chunk or one value per sample. An empty chunk does nothing.
        """
        reject_text(samples)
        if isinstance(samples, np.ndarray):
            if samples.size == 0:
                return
        else:
            if not isinstance(samples, Sequence):
                samples = list(samples)
            if len(samples) == 0:
                return
        if split_chunk_shape(samples, self.channel_count) == "rows":
            self.push_rows(samples, timestamp, pushthrough)
        else:
            self.push_flat(samples, timestamp, pushthrough)

    def push_rows(self, rows: Any, timestamp: Any = 0.0, pushthrough: bool = True) -> None:
        """Push a sequence of samples or a ``(n, channel_count)`` array."""
        data, count = self._chunks.flatten_rows(rows)
        self._push_encoded(data, count, timestamp, pushthrough)

    def push_flat(self, values: Any, timestamp: Any = 0.0, pushthrough: bool = True) -> None:
        """Push an interleaved buffer holding ``n * channel_count`` values."""
        data, count = self._chunks.flatten_flat(values)
        self._push_encoded(data, count, timestamp, pushthrough)

    def _push_encoded(self, data: Buffer, count: int, timestamp: Any, pushthrough: bool) -> None:
        if count == 0:
            return
        stamps = self._chunks.timestamps(timestamp, count)
        code = self.engine.push_chunk(self._codec.spec.suffix, self.handle, data, stamps, pushthrough)
        check_error(code, "push_chunk")

    # ------------------------------------------------------------------ consumers
    def have_consumers(self) -> bool:
        return self.engine.have_consumers(self.handle)

    def wait_for_consumers(self, timeout: float) -> bool:
        """Block until at least one inlet is connected; False if ``timeout`` elapsed first."""
        return self.engine.wait_for_consumers(self.handle, float(timeout))

    def get_info(self) -> StreamInfo:
        """Descriptor as bound by the engine, host fields included."""
        return StreamInfo.from_handle(self.engine.outlet_info(self.handle), self.engine)


__all__ = ["StreamOutlet"]
