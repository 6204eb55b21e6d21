"""Sample and chunk marshalling between Python data and interleaved buffers."""

from __future__ import annotations

from typing import Any, List, Optional, Tuple, Union

import numpy as np

from ..errors import ValidationError
from .formats import Buffer, FormatSpec, is_sequence_like

Timestamps = Union[float, np.ndarray]


def reject_text(chunk: Any) -> None:
    """Refuse a bare string where a chunk is expected; it would split into characters."""
    if isinstance(chunk, (str, bytes, bytearray)):
        raise ValidationError(
            f"chunk must be a sequence of samples or values, got {type(chunk).__name__}",
            expected="sequence",
            actual=type(chunk).__name__,
        )


class SampleCodec:
    """Encode/decode one sample of ``channel_count`` values for a fixed format."""

    __slots__ = ("spec", "channel_count")

    def __init__(self, spec: FormatSpec, channel_count: int) -> None:
        if channel_count < 1:
            raise ValidationError("channel_count must be >= 1", expected=">= 1", actual=channel_count)
        self.spec = spec
        self.channel_count = int(channel_count)

    def check_length(self, length: int, *, index: Optional[int] = None) -> None:
        if length != self.channel_count:
            where = "sample" if index is None else f"sample {index}"
            raise ValidationError(
                f"{where} has {length} values, expected {self.channel_count} (one per channel)",
                expected=self.channel_count,
                actual=length,
                index=index,
            )

    def encode(self, sample: Any) -> Buffer:
        if not is_sequence_like(sample):
            raise ValidationError(
                f"sample must be a sequence of {self.channel_count} values, got {type(sample).__name__}",
                expected=self.channel_count,
                actual=None,
            )
        if isinstance(sample, np.ndarray) and sample.ndim != 1:
            raise ValidationError(
                f"sample must be one-dimensional, got shape {sample.shape}",
                expected=(self.channel_count,),
                actual=sample.shape,
            )
        self.check_length(len(sample))
        return self.spec.encode(sample)

    def allocate(self) -> Buffer:
        return self.spec.allocate(self.channel_count)

    def decode(self, buffer: Buffer) -> list:
        return self.spec.decode(buffer, self.channel_count)


class ChunkCodec:
    """Flatten sample batches for the engine and de-interleave pulled chunks."""

    __slots__ = ("sample",)

    def __init__(self, sample: SampleCodec) -> None:
        self.sample = sample

    @property
    def channel_count(self) -> int:
        return self.sample.channel_count

    @property
    def spec(self) -> FormatSpec:
        return self.sample.spec

    # ------------------------------------------------------------------ push
    def flatten_rows(self, rows: Any) -> Tuple[Buffer, int]:
        """Concatenate per-sample rows; every row must hold ``channel_count`` values."""
        reject_text(rows)
        if isinstance(rows, np.ndarray):
            if rows.ndim != 2:
                raise ValidationError(
                    f"row chunk must be two-dimensional, got shape {rows.shape}",
                    expected=("n", self.channel_count),
                    actual=rows.shape,
                )
            if rows.shape[0] and rows.shape[1] != self.channel_count:
                self.sample.check_length(rows.shape[1], index=0)
            return self.spec.encode(rows.reshape(-1)), int(rows.shape[0])

        flat: List[Any] = []
        count = 0
        for index, row in enumerate(rows):
            if not is_sequence_like(row):
                raise ValidationError(
                    f"sample {index} is not a sequence ({type(row).__name__})",
                    expected=self.channel_count,
                    actual=None,
                    index=index,
                )
            self.sample.check_length(len(row), index=index)
            flat.extend(row.tolist() if isinstance(row, np.ndarray) else row)
            count += 1
        return self.spec.encode(flat), count

    def flatten_flat(self, values: Any) -> Tuple[Buffer, int]:
        """Validate an already interleaved buffer and return it with its sample count."""
        reject_text(values)
        if isinstance(values, np.ndarray) and values.ndim != 1:
            raise ValidationError(
                f"flat chunk must be one-dimensional, got shape {values.shape}",
                expected=("n",),
                actual=values.shape,
            )
        length = len(values)
        if length % self.channel_count:
            raise ValidationError(
                f"flat chunk of {length} values is not a multiple of {self.channel_count} channels",
                expected=f"multiple of {self.channel_count}",
                actual=length,
            )
        return self.spec.encode(values), length // self.channel_count

    def timestamps(self, timestamp: Any, sample_count: int) -> Timestamps:
        """Normalize a chunk timestamp argument.

        A scalar applies to the whole chunk; a sequence must carry exactly one
        timestamp per sample.
        """
        if timestamp is None:
            return 0.0
        if not is_sequence_like(timestamp):
            try:
                return float(timestamp)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"timestamp must be a number: {exc}") from exc
        try:
            stamps = np.ascontiguousarray(np.asarray(timestamp, dtype=np.float64).reshape(-1))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"timestamps must be numbers: {exc}") from exc
        if stamps.size != sample_count:
            raise ValidationError(
                f"got {stamps.size} timestamps for {sample_count} samples",
                expected=sample_count,
                actual=int(stamps.size),
            )
        return stamps

    # ------------------------------------------------------------------ pull
    def unflatten(self, buffer: Buffer, sample_count: int) -> List[list]:
        """Split the first ``sample_count`` samples of ``buffer`` into rows."""
        c = self.channel_count
        values = self.spec.decode(buffer, sample_count * c)
        return [values[i * c : (i + 1) * c] for i in range(sample_count)]

    def unflatten_array(self, buffer: Buffer, sample_count: int) -> Union[np.ndarray, List[list]]:
        """Like :meth:`unflatten` but returns an owned ``(n, channels)`` array for numeric formats."""
        if self.spec.is_string:
            return self.unflatten(buffer, sample_count)
        c = self.channel_count
        return np.array(buffer[: sample_count * c], copy=True).reshape(sample_count, c)


class ScratchBuffer:
    """
    Reusable data/timestamp buffers for chunk pulls.

    Sized for ``samples`` samples up front and grown (never shrunk) when a
    larger pull is requested. Private to one inlet.
    """

    __slots__ = ("_spec", "_channels", "_samples", "data", "timestamps")

    def __init__(self, spec: FormatSpec, channel_count: int, samples: int) -> None:
        self._spec = spec
        self._channels = int(channel_count)
        self._samples = 0
        self.data: Buffer = spec.allocate(0)
        self.timestamps: np.ndarray = np.zeros(0, dtype=np.float64)
        self.ensure(max(1, int(samples)))

    @property
    def capacity(self) -> int:
        """Number of samples the buffers can currently hold."""
        return self._samples

    def ensure(self, samples: int) -> None:
        if samples <= self._samples:
            return
        self.data = self._spec.allocate(samples * self._channels)
        self.timestamps = np.zeros(samples, dtype=np.float64)
        self._samples = samples


def split_chunk_shape(samples: Any, channel_count: int) -> str:
    """Return ``"rows"`` or ``"flat"`` for a chunk argument.

    2-D arrays and sequences of sequences are rows; 1-D arrays and sequences of
    scalars are already interleaved.
    """
    if isinstance(samples, np.ndarray):
        if samples.ndim == 2:
            return "rows"
        if samples.ndim == 1:
            return "flat"
        raise ValidationError(
            f"chunk must be one- or two-dimensional, got shape {samples.shape}",
            expected=("n", channel_count),
            actual=samples.shape,
        )
    return "rows" if is_sequence_like(samples[0]) else "flat"


__all__ = ["ChunkCodec", "SampleCodec", "ScratchBuffer", "Timestamps", "reject_text", "split_chunk_shape"]
