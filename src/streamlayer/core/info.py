"""
Stream descriptors and their metadata tree.

A :class:`StreamInfo` either comes from application code (``StreamInfo(...)``)
or from discovery (``StreamInfo.from_handle``). In both cases it owns one
native descriptor handle and caches the immutable core fields; host-assigned
fields are read from the engine on access so they reflect binding.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, List, Optional, Sequence, Union

from ..errors import ConfigurationError, ValidationError
from ..native import Engine, get_engine
from .formats import IRREGULAR_RATE, ChannelFormat, is_finite_rate, parse_channel_format
from .lifecycle import Handle, NativeHandle

logger = logging.getLogger(__name__)


def derive_source_id(
    name: str,
    type: str,
    channel_count: int,
    nominal_srate: float,
    channel_format: Union[ChannelFormat, int],
) -> str:
    """Stable fingerprint of the five construction fields.

    SHA-256 over the compact JSON array ``[name, type, channel_count,
    nominal_srate, channel_format]`` truncated to 16 hex digits. Identical
    arguments yield the same id on every platform and interpreter.
    """
    canonical = json.dumps(
        [str(name), str(type), int(channel_count), float(nominal_srate), int(channel_format)],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


class XMLElement:
    """
    Cursor into a descriptor's extended metadata tree.

    Elements are lightweight views: they do not own native memory, but keep
    their :class:`StreamInfo` alive and fail with ``LostError`` once it has
    been destroyed. Navigating past the end of the tree yields an element for
    which :meth:`empty` is True rather than ``None``.
    """

    __slots__ = ("_owner", "_node")

    def __init__(self, owner: StreamInfo, node: Handle) -> None:
        self._owner = owner
        self._node = node

    def _call(self, op: str, *args: Any) -> Any:
        self._owner.handle  # raises LostError once the descriptor is gone
        return self._owner.engine.xml_call(op, self._node, *args)

    def _wrap(self, node: Handle) -> XMLElement:
        return XMLElement(self._owner, node)

    # navigation
    def first_child(self) -> XMLElement:
        return self._wrap(self._call("first_child"))

    def last_child(self) -> XMLElement:
        return self._wrap(self._call("last_child"))

    def child(self, name: str) -> XMLElement:
        return self._wrap(self._call("child", name))

    def next_sibling(self, name: Optional[str] = None) -> XMLElement:
        if name is None:
            return self._wrap(self._call("next_sibling"))
        return self._wrap(self._call("next_sibling_n", name))

    def previous_sibling(self, name: Optional[str] = None) -> XMLElement:
        if name is None:
            return self._wrap(self._call("previous_sibling"))
        return self._wrap(self._call("previous_sibling_n", name))

    def parent(self) -> XMLElement:
        return self._wrap(self._call("parent"))

    # queries
    def empty(self) -> bool:
        return bool(self._call("empty"))

    def is_text(self) -> bool:
        return bool(self._call("is_text"))

    def name(self) -> str:
        return self._call("name")

    def value(self) -> str:
        return self._call("value")

    def child_value(self, name: Optional[str] = None) -> str:
        """Text of the first child (or of the first child called ``name``)."""
        if name is None:
            return self._call("child_value")
        return self._call("child_value_n", name)

    # mutation
    def append_child_value(self, name: str, value: str) -> XMLElement:
        return self._wrap(self._call("append_child_value", name, str(value)))

    def prepend_child_value(self, name: str, value: str) -> XMLElement:
        return self._wrap(self._call("prepend_child_value", name, str(value)))

    def set_child_value(self, name: str, value: str) -> bool:
        return bool(self._call("set_child_value", name, str(value)))

    def set_name(self, name: str) -> bool:
        return bool(self._call("set_name", name))

    def set_value(self, value: str) -> bool:
        return bool(self._call("set_value", str(value)))

    def append_child(self, name: str) -> XMLElement:
        return self._wrap(self._call("append_child", name))

    def prepend_child(self, name: str) -> XMLElement:
        return self._wrap(self._call("prepend_child", name))

    def append_copy(self, element: XMLElement) -> XMLElement:
        return self._wrap(self._call("append_copy", element._node))

    def prepend_copy(self, element: XMLElement) -> XMLElement:
        return self._wrap(self._call("prepend_copy", element._node))

    def remove_child(self, target: Union[str, XMLElement]) -> None:
        if isinstance(target, XMLElement):
            self._call("remove_child", target._node)
        else:
            self._call("remove_child_n", target)

    def __repr__(self) -> str:
        if self._owner.destroyed:
            return "<XMLElement (destroyed owner)>"
        if self.empty():
            return "<XMLElement (empty)>"
        return f"<XMLElement {self.name()!r}>"


def _host_text(value: Any) -> Optional[str]:
    return value or None


class StreamInfo(NativeHandle):
    """
    Descriptor of one stream: name, content type, channel layout, rate, format.

    ``source_id`` defaults to :func:`derive_source_id` of the other fields.
    The host-assigned fields (``uid``, ``session_id``, ``hostname``,
    ``created_at``, ``version``) are ``None`` until the descriptor has been
    bound to an outlet or received from the network.

    Discovered descriptors are independent snapshots owned by the caller;
    release them with :meth:`destroy` or a ``with`` block.
    """

    kind = "stream info"

    def __init__(
        self,
        name: str = "untitled",
        type: str = "",
        channel_count: int = 1,
        nominal_srate: float = IRREGULAR_RATE,
        channel_format: Union[ChannelFormat, int, str] = ChannelFormat.FLOAT32,
        source_id: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
    ) -> None:
        fmt = parse_channel_format(channel_format)
        if fmt is ChannelFormat.UNDEFINED:
            raise ConfigurationError("channel format must not be undefined")
        if isinstance(channel_count, bool) or int(channel_count) != channel_count or channel_count < 1:
            raise ConfigurationError(f"channel_count must be an integer >= 1, got {channel_count!r}")
        srate = float(nominal_srate)
        if not is_finite_rate(srate):
            raise ConfigurationError(f"nominal_srate must be >= 0 (0 = irregular), got {nominal_srate!r}")
        if source_id is None:
            source_id = derive_source_id(name, type, channel_count, srate, fmt)

        engine = engine or get_engine()
        handle = engine.create_streaminfo(str(name), str(type), int(channel_count), srate, int(fmt), str(source_id))
        self._bind(engine, handle)

    @classmethod
    def from_handle(cls, handle: Handle, engine: Engine) -> StreamInfo:
        """Adopt a descriptor handle produced by the engine (resolve, get_info)."""
        obj = cls.__new__(cls)
        obj._bind(engine, handle)
        return obj

    def _bind(self, engine: Engine, handle: Handle) -> None:
        self.engine = engine
        NativeHandle.__init__(self, handle, engine.destroy_streaminfo)
        get = engine.streaminfo_field
        self._name = get(handle, "name")
        self._type = get(handle, "type")
        self._channel_count = int(get(handle, "channel_count"))
        self._nominal_srate = float(get(handle, "nominal_srate"))
        raw_format = int(get(handle, "channel_format"))
        try:
            self._channel_format = ChannelFormat(raw_format)
        except ValueError:
            logger.warning("Stream %r reports unknown channel format %d", self._name, raw_format)
            self._channel_format = ChannelFormat.UNDEFINED
        self._source_id = get(handle, "source_id")

    # ------------------------------------------------------------------ core fields
    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return self._type

    @property
    def channel_count(self) -> int:
        return self._channel_count

    @property
    def nominal_srate(self) -> float:
        return self._nominal_srate

    @property
    def channel_format(self) -> ChannelFormat:
        return self._channel_format

    @property
    def source_id(self) -> str:
        return self._source_id

    # ------------------------------------------------------------------ host fields
    @property
    def version(self) -> Optional[int]:
        return int(self.engine.streaminfo_field(self.handle, "version")) or None

    @property
    def created_at(self) -> Optional[float]:
        return float(self.engine.streaminfo_field(self.handle, "created_at")) or None

    @property
    def uid(self) -> Optional[str]:
        return _host_text(self.engine.streaminfo_field(self.handle, "uid"))

    @property
    def session_id(self) -> Optional[str]:
        return _host_text(self.engine.streaminfo_field(self.handle, "session_id"))

    @property
    def hostname(self) -> Optional[str]:
        return _host_text(self.engine.streaminfo_field(self.handle, "hostname"))

    # ------------------------------------------------------------------ metadata
    def desc(self) -> XMLElement:
        """Root of the extended description (``<desc>``), editable in place."""
        return XMLElement(self, self.engine.streaminfo_desc(self.handle))

    def as_xml(self) -> str:
        return self.engine.streaminfo_xml(self.handle)

    def matches_query(self, query: str) -> bool:
        return self.engine.streaminfo_matches(self.handle, query)

    def copy(self) -> StreamInfo:
        """Independent descriptor with its own native handle."""
        return StreamInfo.from_handle(self.engine.copy_streaminfo(self.handle), self.engine)

    def get_channel_labels(self) -> Optional[List[str]]:
        return self._get_channel_info("label")

    def get_channel_types(self) -> Optional[List[str]]:
        return self._get_channel_info("type")

    def get_channel_units(self) -> Optional[List[str]]:
        return self._get_channel_info("unit")

    def set_channel_labels(self, labels: Sequence[str]) -> None:
        self._set_channel_info(labels, "label")

    def set_channel_types(self, types: Sequence[str]) -> None:
        self._set_channel_info(types, "type")

    def set_channel_units(self, units: Sequence[Any]) -> None:
        self._set_channel_info(units, "unit")

    def _get_channel_info(self, field: str) -> Optional[List[str]]:
        channel = self.desc().child("channels").child("channel")
        values: List[str] = []
        for _ in range(self._channel_count):
            if channel.empty():
                break
            values.append(channel.child_value(field))
            channel = channel.next_sibling("channel")
        if not any(values):
            return None
        return values

    def _set_channel_info(self, values: Sequence[Any], field: str) -> None:
        if len(values) != self._channel_count:
            raise ValidationError(
                f"got {len(values)} channel {field}s for {self._channel_count} channels",
                expected=self._channel_count,
                actual=len(values),
            )
        root = self.desc()
        channels = root.child("channels")
        if channels.empty():
            channels = root.append_child("channels")
        channel = channels.child("channel")
        for value in values:
            if channel.empty():
                channel = channels.append_child("channel")
            node = channel.child(field)
            if node.empty():
                channel.append_child_value(field, str(value))
            else:
                channel.set_child_value(field, str(value))
            channel = channel.next_sibling("channel")

    def __repr__(self) -> str:
        return (
            f"StreamInfo(name={self._name!r}, type={self._type!r}, channel_count={self._channel_count}, "
            f"nominal_srate={self._nominal_srate}, channel_format={self._channel_format.name}, "
            f"source_id={self._source_id!r})"
        )


__all__ = ["StreamInfo", "XMLElement", "derive_source_id"]
