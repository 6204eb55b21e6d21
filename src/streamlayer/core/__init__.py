"""Core client layer: formats and codecs, descriptors, outlets, inlets, discovery.

Everything here talks to the streaming engine through
:func:`streamlayer.native.get_engine`; nothing imports ctypes directly.
"""

# Formats and marshalling
from .formats import (
    DEDUCED_TIMESTAMP,
    FOREVER,
    FORMATS,
    IRREGULAR_RATE,
    ChannelFormat,
    FormatSpec,
    PostProcessing,
    format_spec,
)
from .codec import ChunkCodec, SampleCodec, ScratchBuffer

# Descriptors and endpoints
from .lifecycle import NativeHandle
from .info import StreamInfo, XMLElement, derive_source_id
from .outlet import StreamOutlet
from .inlet import InletState, StreamInlet, TimeCorrection

# Discovery
from .registry import StreamRegistry, stream_identity
from .resolver import ContinuousResolver, resolve_byprop, resolve_bypred, resolve_streams

# Helpers
from .chunk_reader import ChunkReaderHandle, start_chunk_reader
from .clock import library_info, library_version, local_clock, protocol_version

__all__ = [
    "DEDUCED_TIMESTAMP",
    "FOREVER",
    "FORMATS",
    "IRREGULAR_RATE",
    "ChannelFormat",
    "FormatSpec",
    "PostProcessing",
    "format_spec",
    "ChunkCodec",
    "SampleCodec",
    "ScratchBuffer",
    "NativeHandle",
    "StreamInfo",
    "XMLElement",
    "derive_source_id",
    "StreamOutlet",
    "InletState",
    "StreamInlet",
    "TimeCorrection",
    "StreamRegistry",
    "stream_identity",
    "ContinuousResolver",
    "resolve_byprop",
    "resolve_bypred",
    "resolve_streams",
    "ChunkReaderHandle",
    "start_chunk_reader",
    "library_info",
    "library_version",
    "local_clock",
    "protocol_version",
]
