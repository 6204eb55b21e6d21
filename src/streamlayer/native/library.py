"""
Locate and load the liblsl shared library through ctypes.

Search order:
  STREAMLAYER_LIB / PYLSL_LIB env vars -> explicit path
  StreamLayerConfig.library_path       -> explicit path
  ctypes.util.find_library + platform names -> loader search path
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
import sys
from ctypes import POINTER, c_char_p, c_double, c_float, c_int32, c_uint32, c_ulong, c_void_p
from pathlib import Path
from typing import Iterator, List, Optional

from ..errors import LibraryNotFoundError

logger = logging.getLogger(__name__)

LIBRARY_ENV_VARS = ("STREAMLAYER_LIB", "PYLSL_LIB")

# Native entry point suffix per channel format (see core.formats.FORMATS).
SAMPLE_SUFFIXES = ("f", "d", "l", "i", "s", "c", "str")

_EC = POINTER(c_int32)


def _platform_names() -> List[str]:
    if sys.platform.startswith("win"):
        return ["lsl.dll", "liblsl64.dll", "liblsl32.dll"]
    if sys.platform == "darwin":
        return ["liblsl.dylib", "liblsl64.dylib"]
    return ["liblsl.so", "liblsl64.so", "liblsl32.so"]


def candidate_paths(configured: Optional[str] = None) -> Iterator[str]:
    """Yield library paths/names to try, most specific first."""
    for var in LIBRARY_ENV_VARS:
        value = os.environ.get(var)
        if value:
            yield str(Path(value).expanduser())
    if configured:
        yield str(Path(configured).expanduser())
    found = ctypes.util.find_library("lsl")
    if found:
        yield found
    yield from _platform_names()


def load_library(configured: Optional[str] = None) -> ctypes.CDLL:
    """Load liblsl and declare its prototypes.

    Raises
    ------
    LibraryNotFoundError
        If none of the candidates can be loaded.
    """
    errors: List[str] = []
    for candidate in candidate_paths(configured):
        try:
            lib = ctypes.CDLL(candidate)
        except OSError as exc:
            errors.append(f"{candidate}: {exc}")
            continue
        declare_prototypes(lib)
        logger.info("Loaded liblsl from %s", candidate)
        return lib
    raise LibraryNotFoundError(
        "could not load liblsl; set STREAMLAYER_LIB to the library path. Tried: " + "; ".join(errors)
    )


def _declare(lib: ctypes.CDLL, name: str, restype, *argtypes) -> None:
    try:
        fn = getattr(lib, name)
    except AttributeError:
        # Older liblsl builds lack a few entry points (int64, flush); calls
        # to them fail with AttributeError at use time.
        logger.debug("liblsl has no %s", name)
        return
    fn.restype = restype
    fn.argtypes = list(argtypes)


def declare_prototypes(lib: ctypes.CDLL) -> None:
    """Attach restype/argtypes to every entry point the engine uses."""
    # library
    _declare(lib, "lsl_protocol_version", c_int32)
    _declare(lib, "lsl_library_version", c_int32)
    _declare(lib, "lsl_library_info", c_char_p)
    _declare(lib, "lsl_local_clock", c_double)
    _declare(lib, "lsl_destroy_string", None, c_void_p)

    # stream info
    _declare(lib, "lsl_create_streaminfo", c_void_p, c_char_p, c_char_p, c_int32, c_double, c_int32, c_char_p)
    _declare(lib, "lsl_destroy_streaminfo", None, c_void_p)
    _declare(lib, "lsl_copy_streaminfo", c_void_p, c_void_p)
    for field in ("name", "type", "source_id", "uid", "session_id", "hostname"):
        _declare(lib, f"lsl_get_{field}", c_char_p, c_void_p)
    _declare(lib, "lsl_get_channel_count", c_int32, c_void_p)
    _declare(lib, "lsl_get_nominal_srate", c_double, c_void_p)
    _declare(lib, "lsl_get_channel_format", c_int32, c_void_p)
    _declare(lib, "lsl_get_version", c_int32, c_void_p)
    _declare(lib, "lsl_get_created_at", c_double, c_void_p)
    _declare(lib, "lsl_get_desc", c_void_p, c_void_p)
    _declare(lib, "lsl_get_xml", c_void_p, c_void_p)
    _declare(lib, "lsl_stream_info_matches_query", c_int32, c_void_p, c_char_p)

    # metadata tree
    for op in ("first_child", "last_child", "next_sibling", "previous_sibling", "parent"):
        _declare(lib, f"lsl_{op}", c_void_p, c_void_p)
    for op in ("child", "next_sibling_n", "previous_sibling_n", "append_child", "prepend_child"):
        _declare(lib, f"lsl_{op}", c_void_p, c_void_p, c_char_p)
    _declare(lib, "lsl_empty", c_int32, c_void_p)
    _declare(lib, "lsl_is_text", c_int32, c_void_p)
    _declare(lib, "lsl_name", c_char_p, c_void_p)
    _declare(lib, "lsl_value", c_char_p, c_void_p)
    _declare(lib, "lsl_child_value", c_char_p, c_void_p)
    _declare(lib, "lsl_child_value_n", c_char_p, c_void_p, c_char_p)
    _declare(lib, "lsl_append_child_value", c_void_p, c_void_p, c_char_p, c_char_p)
    _declare(lib, "lsl_prepend_child_value", c_void_p, c_void_p, c_char_p, c_char_p)
    _declare(lib, "lsl_set_child_value", c_int32, c_void_p, c_char_p, c_char_p)
    _declare(lib, "lsl_set_name", c_int32, c_void_p, c_char_p)
    _declare(lib, "lsl_set_value", c_int32, c_void_p, c_char_p)
    _declare(lib, "lsl_append_copy", c_void_p, c_void_p, c_void_p)
    _declare(lib, "lsl_prepend_copy", c_void_p, c_void_p, c_void_p)
    _declare(lib, "lsl_remove_child_n", None, c_void_p, c_char_p)
    _declare(lib, "lsl_remove_child", None, c_void_p, c_void_p)

    # outlet
    _declare(lib, "lsl_create_outlet", c_void_p, c_void_p, c_int32, c_int32)
    _declare(lib, "lsl_destroy_outlet", None, c_void_p)
    for sfx in SAMPLE_SUFFIXES:
        _declare(lib, f"lsl_push_sample_{sfx}tp", c_int32, c_void_p, c_void_p, c_double, c_int32)
        _declare(lib, f"lsl_push_chunk_{sfx}tp", c_int32, c_void_p, c_void_p, c_ulong, c_double, c_int32)
        _declare(lib, f"lsl_push_chunk_{sfx}tnp", c_int32, c_void_p, c_void_p, c_ulong, c_void_p, c_int32)
    _declare(lib, "lsl_have_consumers", c_int32, c_void_p)
    _declare(lib, "lsl_wait_for_consumers", c_int32, c_void_p, c_double)
    _declare(lib, "lsl_get_info", c_void_p, c_void_p)

    # inlet
    _declare(lib, "lsl_create_inlet", c_void_p, c_void_p, c_int32, c_int32, c_int32)
    _declare(lib, "lsl_destroy_inlet", None, c_void_p)
    _declare(lib, "lsl_get_fullinfo", c_void_p, c_void_p, c_double, _EC)
    _declare(lib, "lsl_open_stream", None, c_void_p, c_double, _EC)
    _declare(lib, "lsl_close_stream", None, c_void_p)
    _declare(lib, "lsl_time_correction_ex", c_double, c_void_p, POINTER(c_double), POINTER(c_double), c_double, _EC)
    _declare(lib, "lsl_set_postprocessing", c_int32, c_void_p, c_uint32)
    for sfx in SAMPLE_SUFFIXES:
        _declare(lib, f"lsl_pull_sample_{sfx}", c_double, c_void_p, c_void_p, c_int32, c_double, _EC)
        _declare(lib, f"lsl_pull_chunk_{sfx}", c_ulong, c_void_p, c_void_p, c_void_p, c_ulong, c_ulong, c_double, _EC)
    _declare(lib, "lsl_samples_available", c_uint32, c_void_p)
    _declare(lib, "lsl_inlet_flush", c_uint32, c_void_p)
    _declare(lib, "lsl_was_clock_reset", c_uint32, c_void_p)
    _declare(lib, "lsl_smoothing_halftime", c_int32, c_void_p, c_float)

    # discovery
    _declare(lib, "lsl_resolve_all", c_int32, c_void_p, c_uint32, c_double)
    _declare(lib, "lsl_resolve_byprop", c_int32, c_void_p, c_uint32, c_char_p, c_char_p, c_int32, c_double)
    _declare(lib, "lsl_resolve_bypred", c_int32, c_void_p, c_uint32, c_char_p, c_int32, c_double)
    _declare(lib, "lsl_create_continuous_resolver", c_void_p, c_double)
    _declare(lib, "lsl_create_continuous_resolver_byprop", c_void_p, c_char_p, c_char_p, c_double)
    _declare(lib, "lsl_create_continuous_resolver_bypred", c_void_p, c_char_p, c_double)
    _declare(lib, "lsl_resolver_results", c_int32, c_void_p, c_void_p, c_uint32)
    _declare(lib, "lsl_destroy_continuous_resolver", None, c_void_p)


__all__ = ["LIBRARY_ENV_VARS", "SAMPLE_SUFFIXES", "candidate_paths", "declare_prototypes", "load_library"]
