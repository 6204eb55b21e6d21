"""streamlayer: Lab Streaming Layer client in Python.

Typical use::

    from streamlayer import StreamInfo, StreamOutlet, StreamInlet, resolve_byprop

    info = StreamInfo("T", "EEG", 4, 100.0, "float32")
    outlet = StreamOutlet(info)
    outlet.push_sample([1, 2, 3, 4])

    inlet = StreamInlet(resolve_byprop("name", "T", timeout=5.0)[0])
    sample, timestamp = inlet.pull_sample(timeout=5.0)
"""

from .core import (
    DEDUCED_TIMESTAMP,
    FOREVER,
    IRREGULAR_RATE,
    ChannelFormat,
    ContinuousResolver,
    InletState,
    PostProcessing,
    StreamInfo,
    StreamInlet,
    StreamOutlet,
    TimeCorrection,
    XMLElement,
    library_info,
    library_version,
    local_clock,
    protocol_version,
    resolve_byprop,
    resolve_bypred,
    resolve_streams,
    start_chunk_reader,
)
from .errors import (
    ConfigurationError,
    InternalError,
    InvalidArgumentError,
    LibraryNotFoundError,
    LostError,
    StreamLayerError,
    TimeoutError,
    UnknownError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "DEDUCED_TIMESTAMP",
    "FOREVER",
    "IRREGULAR_RATE",
    "ChannelFormat",
    "ContinuousResolver",
    "InletState",
    "PostProcessing",
    "StreamInfo",
    "StreamInlet",
    "StreamOutlet",
    "TimeCorrection",
    "XMLElement",
    "library_info",
    "library_version",
    "local_clock",
    "protocol_version",
    "resolve_byprop",
    "resolve_bypred",
    "resolve_streams",
    "start_chunk_reader",
    "ConfigurationError",
    "InternalError",
    "InvalidArgumentError",
    "LibraryNotFoundError",
    "LostError",
    "StreamLayerError",
    "TimeoutError",
    "UnknownError",
    "ValidationError",
]
