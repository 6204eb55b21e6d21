"""Native engine surface (liblsl via ctypes) and the process-wide engine slot."""

from .engine import STREAMINFO_FIELDS, CtypesEngine, Engine, get_engine, set_engine
from .library import LIBRARY_ENV_VARS, SAMPLE_SUFFIXES, candidate_paths, load_library

__all__ = [
    "CtypesEngine",
    "Engine",
    "LIBRARY_ENV_VARS",
    "SAMPLE_SUFFIXES",
    "STREAMINFO_FIELDS",
    "candidate_paths",
    "get_engine",
    "load_library",
    "set_engine",
]
