"""Channel formats, postprocessing flags and the per-format codec table.

:data:`FORMATS` is the single source of truth mapping a
:class:`ChannelFormat` to its byte width, numpy dtype, native entry point
suffix and encode/decode routines. Outlets and inlets look their
:class:`FormatSpec` up once at construction time.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..errors import ConfigurationError, ValidationError

IRREGULAR_RATE = 0.0
DEDUCED_TIMESTAMP = -1.0
FOREVER = 32000000.0

Buffer = Union[np.ndarray, List[bytes]]


class ChannelFormat(enum.IntEnum):
    """Per-channel element type; values are wire-stable."""

    UNDEFINED = 0
    FLOAT32 = 1
    DOUBLE64 = 2
    STRING = 3
    INT32 = 4
    INT16 = 5
    INT8 = 6
    INT64 = 7


class PostProcessing(enum.IntFlag):
    """Inlet-side timestamp post-processing options (combinable)."""

    NONE = 0
    CLOCKSYNC = 1
    DEJITTER = 2
    MONOTONIZE = 4
    THREADSAFE = 8
    ALL = 15


# ----------------------------------------------------------------- encoders
def _as_float_array(values: Any, dtype: np.dtype) -> np.ndarray:
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"values are not numeric: {exc}") from exc
    return np.ascontiguousarray(arr.reshape(-1), dtype=dtype)


def _as_integer_array(values: Any, dtype: np.dtype) -> np.ndarray:
    """Narrow ``values`` to an integer dtype.

    Floats are truncated toward zero. Values outside the dtype range or that
    are not finite are rejected instead of wrapping around. Integers that went
    through double precision on the caller's side are only exact up to 2**53;
    int64 data should be handed over as integers to stay lossless.
    """
    try:
        arr = np.asarray(values)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"values are not representable as {np.dtype(dtype).name}: {exc}") from exc
    if arr.dtype.kind == "b":
        arr = arr.astype(np.int64)
    elif arr.dtype.kind not in "iuf":
        try:
            arr = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValidationError(f"values are not representable as {np.dtype(dtype).name}: {exc}") from exc
    arr = arr.reshape(-1)
    if arr.size == 0:
        return np.empty(0, dtype=dtype)
    if arr.dtype.kind == "f":
        if not np.all(np.isfinite(arr)):
            raise ValidationError(f"non-finite value cannot be stored as {np.dtype(dtype).name}")
        arr = np.trunc(arr)
    info = np.iinfo(dtype)
    lo, hi = int(arr.min()), int(arr.max())
    if lo < info.min or hi > info.max:
        raise ValidationError(
            f"value out of range for {np.dtype(dtype).name}",
            expected=(int(info.min), int(info.max)),
            actual=(lo, hi),
        )
    return np.ascontiguousarray(arr, dtype=dtype)


def _as_strings(values: Any) -> List[bytes]:
    # bytes(...) and str.encode() both return fresh objects, so the engine
    # never sees memory the caller can still mutate.
    if isinstance(values, np.ndarray):
        values = values.reshape(-1).tolist()
    out: List[bytes] = []
    for value in values:
        if isinstance(value, (bytes, bytearray, memoryview)):
            out.append(bytes(value))
        else:
            out.append(str(value).encode("utf-8"))
    return out


def _decode_numeric(buffer: np.ndarray, count: int) -> list:
    return buffer[:count].tolist()


def _decode_strings(buffer: List[bytes], count: int) -> List[str]:
    return [raw.decode("utf-8", errors="replace") for raw in buffer[:count]]


@dataclass(frozen=True)
class FormatSpec:
    """Everything needed to marshal one channel format."""

    fmt: ChannelFormat
    name: str
    width: Optional[int]
    dtype: Optional[np.dtype]
    suffix: str
    encode: Callable[[Any], Buffer]
    decode: Callable[[Any, int], list]

    @property
    def is_string(self) -> bool:
        return self.dtype is None

    def allocate(self, elements: int) -> Buffer:
        """Return a zeroed buffer able to hold ``elements`` values."""
        if self.dtype is None:
            return [b""] * elements
        return np.zeros(elements, dtype=self.dtype)

    def to_bytes(self, elements: int) -> Optional[int]:
        """Byte size of ``elements`` values, or None for variable-length formats."""
        if self.width is None:
            return None
        return self.width * elements


def _numeric(fmt: ChannelFormat, dtype: Any, suffix: str) -> FormatSpec:
    dt = np.dtype(dtype)
    encoder = _as_float_array if dt.kind == "f" else _as_integer_array
    return FormatSpec(
        fmt=fmt,
        name=fmt.name.lower(),
        width=dt.itemsize,
        dtype=dt,
        suffix=suffix,
        encode=lambda values, _dt=dt: encoder(values, _dt),
        decode=_decode_numeric,
    )


FORMATS: Dict[ChannelFormat, FormatSpec] = {
    ChannelFormat.FLOAT32: _numeric(ChannelFormat.FLOAT32, np.float32, "f"),
    ChannelFormat.DOUBLE64: _numeric(ChannelFormat.DOUBLE64, np.float64, "d"),
    ChannelFormat.STRING: FormatSpec(
        fmt=ChannelFormat.STRING,
        name="string",
        width=None,
        dtype=None,
        suffix="str",
        encode=_as_strings,
        decode=_decode_strings,
    ),
    ChannelFormat.INT32: _numeric(ChannelFormat.INT32, np.int32, "i"),
    ChannelFormat.INT16: _numeric(ChannelFormat.INT16, np.int16, "s"),
    ChannelFormat.INT8: _numeric(ChannelFormat.INT8, np.int8, "c"),
    ChannelFormat.INT64: _numeric(ChannelFormat.INT64, np.int64, "l"),
}

_NAME_ALIASES = {
    "float": ChannelFormat.FLOAT32,
    "double": ChannelFormat.DOUBLE64,
    "str": ChannelFormat.STRING,
}


def parse_channel_format(value: Union[ChannelFormat, int, str]) -> ChannelFormat:
    """Accept an enum member, its integer code or its name (``"float32"``, ``"cf_int8"``)."""
    if isinstance(value, ChannelFormat):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key.startswith("cf_"):
            key = key[3:]
        if key in _NAME_ALIASES:
            return _NAME_ALIASES[key]
        try:
            return ChannelFormat[key.upper()]
        except KeyError:
            raise ConfigurationError(f"unknown channel format {value!r}") from None
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"channel format must be a ChannelFormat, int or str, got {type(value).__name__}")
    try:
        return ChannelFormat(int(value))
    except ValueError:
        raise ConfigurationError(f"unknown channel format code {value!r}") from None


def format_spec(value: Union[ChannelFormat, int, str]) -> FormatSpec:
    """Return the :class:`FormatSpec` for ``value``.

    Raises
    ------
    ConfigurationError
        For ``UNDEFINED`` or any value outside the fixed set.
    """
    fmt = parse_channel_format(value)
    spec = FORMATS.get(fmt)
    if spec is None:
        raise ConfigurationError(f"channel format {fmt.name.lower()} is not supported")
    return spec


def parse_processing_flags(flags: Union[PostProcessing, int, None]) -> PostProcessing:
    if flags is None:
        return PostProcessing.NONE
    if isinstance(flags, bool) or not isinstance(flags, (int, np.integer)):
        raise ConfigurationError(f"processing flags must be an int, got {type(flags).__name__}")
    value = int(flags)
    if value < 0 or value & ~int(PostProcessing.ALL):
        raise ConfigurationError(f"unknown processing flag bits in {value:#x}")
    return PostProcessing(value)


def is_sequence_like(value: Any) -> bool:
    """True for lists/tuples/arrays, False for scalars and text."""
    if isinstance(value, (str, bytes, bytearray, np.generic)):
        return False
    if isinstance(value, np.ndarray):
        return value.ndim > 0
    return isinstance(value, Sequence) or hasattr(value, "__array__")


def is_finite_rate(rate: float) -> bool:
    return math.isfinite(rate) and rate >= 0.0


__all__ = [
    "Buffer",
    "ChannelFormat",
    "DEDUCED_TIMESTAMP",
    "FOREVER",
    "FORMATS",
    "FormatSpec",
    "IRREGULAR_RATE",
    "PostProcessing",
    "format_spec",
    "is_finite_rate",
    "is_sequence_like",
    "parse_channel_format",
    "parse_processing_flags",
]
