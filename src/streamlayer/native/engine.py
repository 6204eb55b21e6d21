"""
The native engine surface and its ctypes binding to liblsl.

Wrappers in :mod:`streamlayer.core` never touch ctypes directly: they call an
:class:`Engine` obtained from :func:`get_engine`. Buffers cross this boundary
as contiguous numpy arrays (numeric formats) or lists of ``bytes`` (string
format); pull routines fill the buffer they are given in place.
"""

from __future__ import annotations

import ctypes
import logging
import threading
from ctypes import byref, c_char_p, c_double, c_int32, c_void_p
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

from ..config import get_config
from .library import load_library

logger = logging.getLogger(__name__)

Handle = Any
Buffer = Union[np.ndarray, List[bytes]]

STREAMINFO_FIELDS = (
    "name",
    "type",
    "channel_count",
    "nominal_srate",
    "channel_format",
    "source_id",
    "version",
    "created_at",
    "uid",
    "session_id",
    "hostname",
)


class Engine(Protocol):
    """Everything the wrappers need from the streaming engine.

    Status-returning calls hand back the raw native code (0 success, -1
    timeout, -2 lost, -3 invalid argument, -4 internal); translation into
    exceptions happens in the wrappers via :func:`streamlayer.errors.check_error`.
    """

    # library
    def protocol_version(self) -> int: ...
    def library_version(self) -> int: ...
    def library_info(self) -> str: ...
    def local_clock(self) -> float: ...

    # stream info
    def create_streaminfo(
        self, name: str, type_: str, channel_count: int, nominal_srate: float, channel_format: int, source_id: str
    ) -> Handle: ...
    def copy_streaminfo(self, info: Handle) -> Handle: ...
    def destroy_streaminfo(self, info: Handle) -> None: ...
    def streaminfo_field(self, info: Handle, field: str) -> Any: ...
    def streaminfo_xml(self, info: Handle) -> str: ...
    def streaminfo_matches(self, info: Handle, query: str) -> bool: ...
    def streaminfo_desc(self, info: Handle) -> Handle: ...
    def xml_call(self, op: str, node: Handle, *args: Any) -> Any: ...

    # outlet
    def create_outlet(self, info: Handle, chunk_size: int, max_buffered: int) -> Handle: ...
    def destroy_outlet(self, outlet: Handle) -> None: ...
    def push_sample(self, suffix: str, outlet: Handle, data: Buffer, timestamp: float, pushthrough: bool) -> int: ...
    def push_chunk(
        self, suffix: str, outlet: Handle, data: Buffer, timestamps: Union[float, np.ndarray], pushthrough: bool
    ) -> int: ...
    def have_consumers(self, outlet: Handle) -> bool: ...
    def wait_for_consumers(self, outlet: Handle, timeout: float) -> bool: ...
    def outlet_info(self, outlet: Handle) -> Handle: ...

    # inlet
    def create_inlet(self, info: Handle, max_buflen: int, max_chunklen: int, recover: bool) -> Handle: ...
    def destroy_inlet(self, inlet: Handle) -> None: ...
    def open_stream(self, inlet: Handle, timeout: float) -> int: ...
    def close_stream(self, inlet: Handle) -> None: ...
    def set_postprocessing(self, inlet: Handle, flags: int) -> int: ...
    def pull_sample(self, suffix: str, inlet: Handle, buffer: Buffer, timeout: float) -> Tuple[float, int]: ...
    def pull_chunk(
        self,
        suffix: str,
        inlet: Handle,
        data: Buffer,
        timestamps: np.ndarray,
        max_elements: int,
        max_samples: int,
        timeout: float,
    ) -> Tuple[int, int]: ...
    def samples_available(self, inlet: Handle) -> int: ...
    def inlet_flush(self, inlet: Handle) -> int: ...
    def time_correction(self, inlet: Handle, timeout: float) -> Tuple[float, float, float, int]: ...
    def was_clock_reset(self, inlet: Handle) -> bool: ...
    def smoothing_halftime(self, inlet: Handle, value: float) -> int: ...
    def inlet_info(self, inlet: Handle, timeout: float) -> Tuple[Handle, int]: ...

    # discovery
    def resolve_all(self, max_results: int, wait_time: float) -> Tuple[List[Handle], int]: ...
    def resolve_byprop(
        self, prop: str, value: str, minimum: int, timeout: float, max_results: int
    ) -> Tuple[List[Handle], int]: ...
    def resolve_bypred(
        self, predicate: str, minimum: int, timeout: float, max_results: int
    ) -> Tuple[List[Handle], int]: ...
    def create_continuous_resolver(
        self,
        forget_after: float,
        prop: Optional[str] = None,
        value: Optional[str] = None,
        predicate: Optional[str] = None,
    ) -> Handle: ...
    def continuous_resolver_results(self, resolver: Handle, max_results: int) -> Tuple[List[Handle], int]: ...
    def destroy_continuous_resolver(self, resolver: Handle) -> None: ...


def _b(text: Optional[str]) -> Optional[bytes]:
    if text is None:
        return None
    return str(text).encode("utf-8")


def _text(raw: Optional[bytes]) -> str:
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")


class CtypesEngine:
    """:class:`Engine` implementation backed by liblsl via ctypes."""

    def __init__(self, lib: ctypes.CDLL) -> None:
        self._lib = lib

    @classmethod
    def load(cls, path: Optional[str] = None) -> CtypesEngine:
        return cls(load_library(path))

    # ------------------------------------------------------------------ helpers
    def _take_bytes(self, ptr: Optional[int]) -> bytes:
        """Copy a library-allocated C string and free the original."""
        if not ptr:
            return b""
        try:
            return ctypes.string_at(ptr)
        finally:
            self._lib.lsl_destroy_string(ptr)

    @staticmethod
    def _data_arg(suffix: str, data: Buffer):
        if suffix == "str":
            return (c_char_p * len(data))(*data)
        return data.ctypes.data

    def _handles(self, buf, count: int) -> Tuple[List[Handle], int]:
        if count < 0:
            return [], int(count)
        return [buf[i] for i in range(count) if buf[i]], 0

    # ------------------------------------------------------------------ library
    def protocol_version(self) -> int:
        return int(self._lib.lsl_protocol_version())

    def library_version(self) -> int:
        return int(self._lib.lsl_library_version())

    def library_info(self) -> str:
        return _text(self._lib.lsl_library_info())

    def local_clock(self) -> float:
        return float(self._lib.lsl_local_clock())

    # ------------------------------------------------------------------ stream info
    def create_streaminfo(self, name, type_, channel_count, nominal_srate, channel_format, source_id):
        return self._lib.lsl_create_streaminfo(
            _b(name), _b(type_), int(channel_count), float(nominal_srate), int(channel_format), _b(source_id)
        )

    def copy_streaminfo(self, info):
        return self._lib.lsl_copy_streaminfo(info)

    def destroy_streaminfo(self, info) -> None:
        self._lib.lsl_destroy_streaminfo(info)

    def streaminfo_field(self, info, field: str):
        if field not in STREAMINFO_FIELDS:
            raise KeyError(field)
        value = getattr(self._lib, f"lsl_get_{field}")(info)
        if isinstance(value, bytes) or value is None:
            return _text(value)
        return value

    def streaminfo_xml(self, info) -> str:
        return self._take_bytes(self._lib.lsl_get_xml(info)).decode("utf-8", errors="replace")

    def streaminfo_matches(self, info, query: str) -> bool:
        return bool(self._lib.lsl_stream_info_matches_query(info, _b(query)))

    def streaminfo_desc(self, info):
        return self._lib.lsl_get_desc(info)

    def xml_call(self, op: str, node, *args):
        fn = getattr(self._lib, f"lsl_{op}")
        converted = [_b(arg) if isinstance(arg, str) else arg for arg in args]
        result = fn(node, *converted)
        if isinstance(result, bytes):
            return _text(result)
        return result

    # ------------------------------------------------------------------ outlet
    def create_outlet(self, info, chunk_size: int, max_buffered: int):
        return self._lib.lsl_create_outlet(info, int(chunk_size), int(max_buffered))

    def destroy_outlet(self, outlet) -> None:
        self._lib.lsl_destroy_outlet(outlet)

    def push_sample(self, suffix, outlet, data, timestamp, pushthrough) -> int:
        fn = getattr(self._lib, f"lsl_push_sample_{suffix}tp")
        return int(fn(outlet, self._data_arg(suffix, data), float(timestamp), int(bool(pushthrough))))

    def push_chunk(self, suffix, outlet, data, timestamps, pushthrough) -> int:
        elements = len(data)
        payload = self._data_arg(suffix, data)
        if isinstance(timestamps, np.ndarray):
            fn = getattr(self._lib, f"lsl_push_chunk_{suffix}tnp")
            return int(fn(outlet, payload, elements, timestamps.ctypes.data, int(bool(pushthrough))))
        fn = getattr(self._lib, f"lsl_push_chunk_{suffix}tp")
        return int(fn(outlet, payload, elements, float(timestamps), int(bool(pushthrough))))

    def have_consumers(self, outlet) -> bool:
        return bool(self._lib.lsl_have_consumers(outlet))

    def wait_for_consumers(self, outlet, timeout: float) -> bool:
        return bool(self._lib.lsl_wait_for_consumers(outlet, float(timeout)))

    def outlet_info(self, outlet):
        return self._lib.lsl_get_info(outlet)

    # ------------------------------------------------------------------ inlet
    def create_inlet(self, info, max_buflen: int, max_chunklen: int, recover: bool):
        return self._lib.lsl_create_inlet(info, int(max_buflen), int(max_chunklen), int(bool(recover)))

    def destroy_inlet(self, inlet) -> None:
        self._lib.lsl_destroy_inlet(inlet)

    def open_stream(self, inlet, timeout: float) -> int:
        ec = c_int32(0)
        self._lib.lsl_open_stream(inlet, float(timeout), byref(ec))
        return ec.value

    def close_stream(self, inlet) -> None:
        self._lib.lsl_close_stream(inlet)

    def set_postprocessing(self, inlet, flags: int) -> int:
        return int(self._lib.lsl_set_postprocessing(inlet, int(flags)))

    def pull_sample(self, suffix, inlet, buffer, timeout) -> Tuple[float, int]:
        fn = getattr(self._lib, f"lsl_pull_sample_{suffix}")
        ec = c_int32(0)
        if suffix == "str":
            raw = (c_void_p * len(buffer))()
            timestamp = fn(inlet, raw, len(buffer), float(timeout), byref(ec))
            for i in range(len(buffer)):
                if raw[i]:
                    buffer[i] = self._take_bytes(raw[i])
        else:
            timestamp = fn(inlet, buffer.ctypes.data, len(buffer), float(timeout), byref(ec))
        return float(timestamp), ec.value

    def pull_chunk(self, suffix, inlet, data, timestamps, max_elements, max_samples, timeout) -> Tuple[int, int]:
        fn = getattr(self._lib, f"lsl_pull_chunk_{suffix}")
        ec = c_int32(0)
        if suffix == "str":
            raw = (c_void_p * max_elements)()
            count = fn(inlet, raw, timestamps.ctypes.data, max_elements, max_samples, float(timeout), byref(ec))
            for i in range(int(count)):
                data[i] = self._take_bytes(raw[i])
        else:
            count = fn(
                inlet, data.ctypes.data, timestamps.ctypes.data, max_elements, max_samples, float(timeout), byref(ec)
            )
        return int(count), ec.value

    def samples_available(self, inlet) -> int:
        return int(self._lib.lsl_samples_available(inlet))

    def inlet_flush(self, inlet) -> int:
        return int(self._lib.lsl_inlet_flush(inlet))

    def time_correction(self, inlet, timeout: float) -> Tuple[float, float, float, int]:
        remote_time = c_double(0.0)
        uncertainty = c_double(0.0)
        ec = c_int32(0)
        offset = self._lib.lsl_time_correction_ex(inlet, byref(remote_time), byref(uncertainty), float(timeout), byref(ec))
        return float(offset), remote_time.value, uncertainty.value, ec.value

    def was_clock_reset(self, inlet) -> bool:
        return bool(self._lib.lsl_was_clock_reset(inlet))

    def smoothing_halftime(self, inlet, value: float) -> int:
        return int(self._lib.lsl_smoothing_halftime(inlet, float(value)))

    def inlet_info(self, inlet, timeout: float) -> Tuple[Handle, int]:
        ec = c_int32(0)
        info = self._lib.lsl_get_fullinfo(inlet, float(timeout), byref(ec))
        return info, ec.value

    # ------------------------------------------------------------------ discovery
    def resolve_all(self, max_results: int, wait_time: float) -> Tuple[List[Handle], int]:
        buf = (c_void_p * max_results)()
        count = self._lib.lsl_resolve_all(buf, max_results, float(wait_time))
        return self._handles(buf, count)

    def resolve_byprop(self, prop, value, minimum, timeout, max_results) -> Tuple[List[Handle], int]:
        buf = (c_void_p * max_results)()
        count = self._lib.lsl_resolve_byprop(buf, max_results, _b(prop), _b(value), int(minimum), float(timeout))
        return self._handles(buf, count)

    def resolve_bypred(self, predicate, minimum, timeout, max_results) -> Tuple[List[Handle], int]:
        buf = (c_void_p * max_results)()
        count = self._lib.lsl_resolve_bypred(buf, max_results, _b(predicate), int(minimum), float(timeout))
        return self._handles(buf, count)

    def create_continuous_resolver(self, forget_after, prop=None, value=None, predicate=None):
        if predicate is not None:
            return self._lib.lsl_create_continuous_resolver_bypred(_b(predicate), float(forget_after))
        if prop is not None:
            return self._lib.lsl_create_continuous_resolver_byprop(_b(prop), _b(value), float(forget_after))
        return self._lib.lsl_create_continuous_resolver(float(forget_after))

    def continuous_resolver_results(self, resolver, max_results: int) -> Tuple[List[Handle], int]:
        buf = (c_void_p * max_results)()
        count = self._lib.lsl_resolver_results(resolver, buf, max_results)
        return self._handles(buf, count)

    def destroy_continuous_resolver(self, resolver) -> None:
        self._lib.lsl_destroy_continuous_resolver(resolver)


_engine_lock = threading.Lock()
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Return the process-wide engine, loading liblsl on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = CtypesEngine.load(get_config().library_path)
        return _engine


def set_engine(engine: Optional[Engine]) -> Optional[Engine]:
    """Install ``engine`` process-wide and return the previous one.

    Objects created earlier keep the engine they were created with.
    """
    global _engine
    with _engine_lock:
        previous, _engine = _engine, engine
    return previous


__all__ = ["CtypesEngine", "Engine", "STREAMINFO_FIELDS", "get_engine", "set_engine"]
