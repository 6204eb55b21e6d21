"""
Stream discovery.

One-shot resolvers block up to their timeout and hand back whatever matched.
:class:`ContinuousResolver` keeps a native resolver running in the background
and mirrors its view into a :class:`StreamRegistry` that forgets streams
which stop advertising.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from typing import List, Optional, Sequence

from ..config import get_config
from ..errors import TIMEOUT_ERROR, ConfigurationError, InternalError, StreamLayerError, check_error
from ..native import STREAMINFO_FIELDS, Engine, get_engine
from .formats import FOREVER
from .info import StreamInfo
from .lifecycle import Handle, NativeHandle
from .registry import Clock, StreamRegistry

logger = logging.getLogger(__name__)


def _adopt(engine: Engine, handles: Sequence[Handle], code: int, operation: str) -> List[StreamInfo]:
    if code != TIMEOUT_ERROR:
        check_error(code, operation)
    return [StreamInfo.from_handle(handle, engine) for handle in handles]


def _check_minimum(minimum: int) -> int:
    if isinstance(minimum, bool) or int(minimum) != minimum or minimum < 0:
        raise ConfigurationError(f"minimum must be an integer >= 0, got {minimum!r}")
    return int(minimum)


def _check_prop(prop: str) -> str:
    if prop not in STREAMINFO_FIELDS:
        raise ConfigurationError(f"unknown stream property {prop!r}; expected one of {', '.join(STREAMINFO_FIELDS)}")
    return prop


def resolve_streams(wait_time: float = 1.0, *, engine: Optional[Engine] = None) -> List[StreamInfo]:
    """Return every stream seen on the network within ``wait_time`` seconds."""
    engine = engine or get_engine()
    handles, code = engine.resolve_all(get_config().max_resolve_results, float(wait_time))
    return _adopt(engine, handles, code, "resolve_streams")


def resolve_byprop(
    prop: str,
    value: str,
    minimum: int = 1,
    timeout: float = FOREVER,
    *,
    engine: Optional[Engine] = None,
) -> List[StreamInfo]:
    """Return streams whose ``prop`` equals ``value``.

    Returns as soon as ``minimum`` matches are known, or with whatever was
    found once ``timeout`` elapses (possibly nothing).

    Example::

        resolve_byprop("type", "EEG", minimum=1, timeout=5.0)
    """
    _check_prop(prop)
    minimum = _check_minimum(minimum)
    engine = engine or get_engine()
    handles, code = engine.resolve_byprop(prop, str(value), minimum, float(timeout), get_config().max_resolve_results)
    return _adopt(engine, handles, code, "resolve_byprop")


def resolve_bypred(
    predicate: str,
    minimum: int = 1,
    timeout: float = FOREVER,
    *,
    engine: Optional[Engine] = None,
) -> List[StreamInfo]:
    """Return streams matching an XPath 1.0 predicate over the descriptor, e.g. ``"name='T' and type='EEG'"``."""
    if not isinstance(predicate, str) or not predicate.strip():
        raise ConfigurationError("predicate must be a non-empty string")
    minimum = _check_minimum(minimum)
    engine = engine or get_engine()
    handles, code = engine.resolve_bypred(predicate, minimum, float(timeout), get_config().max_resolve_results)
    return _adopt(engine, handles, code, "resolve_bypred")


def _poll_once(engine: Engine, handle: Handle, registry: StreamRegistry, max_results: int) -> None:
    handles, code = engine.continuous_resolver_results(handle, max_results)
    infos = _adopt(engine, handles, code, "continuous resolver results")
    registry.sync(infos, registry.clock())


def _watch(poll, stop_event: threading.Event, interval: float) -> None:
    while not stop_event.is_set():
        try:
            poll()
        except StreamLayerError:
            logger.warning("Continuous resolver poll failed", exc_info=True)
        stop_event.wait(interval)


def _shutdown(
    engine: Engine, stop_event: threading.Event, thread: threading.Thread, registry: StreamRegistry, handle: Handle
) -> None:
    stop_event.set()
    if thread.is_alive() and thread is not threading.current_thread():
        thread.join()
    engine.destroy_continuous_resolver(handle)
    registry.clear()


class ContinuousResolver(NativeHandle):
    """
    Live view of the streams currently advertised on the network.

    Pass nothing to track every stream, a ``prop``/``value`` pair to match
    one property, or an XPath ``predicate``. A stream stays in
    :meth:`results` only while it was advertised within the last
    ``forget_after`` seconds.

    A daemon thread polls the native resolver every ``poll_interval``
    seconds; :meth:`results` also polls once itself so it never lags behind
    the engine.

    Expiry is the engine's job: the native resolver is created with the same
    ``forget_after`` window and each successful poll replaces the registry
    contents with its report. The registry's own eviction, timed by
    ``clock``, only matters when polls stop succeeding; entries then age out
    of ``registry.snapshot()`` after ``forget_after`` seconds.
    """

    kind = "continuous resolver"

    def __init__(
        self,
        prop: Optional[str] = None,
        value: Optional[str] = None,
        predicate: Optional[str] = None,
        forget_after: float = 5.0,
        *,
        poll_interval: Optional[float] = None,
        engine: Optional[Engine] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        if predicate is not None and (prop is not None or value is not None):
            raise ConfigurationError("give either a prop/value pair or a predicate, not both")
        if (prop is None) != (value is None):
            raise ConfigurationError("prop and value must be given together")
        if prop is not None:
            _check_prop(prop)
            value = str(value)
        if predicate is not None and (not isinstance(predicate, str) or not predicate.strip()):
            raise ConfigurationError("predicate must be a non-empty string")
        if not forget_after > 0:
            raise ConfigurationError(f"forget_after must be > 0, got {forget_after!r}")

        config = get_config()
        interval = config.resolver_poll_interval if poll_interval is None else float(poll_interval)
        if not interval > 0:
            raise ConfigurationError(f"poll_interval must be > 0, got {poll_interval!r}")

        self.engine = engine or get_engine()
        self.prop = prop
        self.value = value
        self.predicate = predicate
        self.forget_after = float(forget_after)
        self.registry = StreamRegistry(self.forget_after, clock=clock)

        handle = self.engine.create_continuous_resolver(self.forget_after, prop=prop, value=value, predicate=predicate)
        if not handle:
            raise InternalError("could not create continuous resolver")
        self._poll = functools.partial(_poll_once, self.engine, handle, self.registry, config.max_resolve_results)
        stop_event = threading.Event()
        thread = threading.Thread(
            target=_watch,
            args=(self._poll, stop_event, interval),
            name="StreamLayerResolver",
            daemon=True,
        )
        super().__init__(handle, functools.partial(_shutdown, self.engine, stop_event, thread, self.registry))
        thread.start()

    def results(self) -> List[StreamInfo]:
        """Streams advertised within the last ``forget_after`` seconds, as caller-owned copies."""
        self.handle  # raises LostError after destroy()
        self._poll()
        return self.registry.snapshot()


__all__ = ["ContinuousResolver", "resolve_byprop", "resolve_bypred", "resolve_streams"]
