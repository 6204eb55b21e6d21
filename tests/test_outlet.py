from __future__ import annotations

import threading

import numpy as np
import pytest

from streamlayer import StreamInfo, StreamInlet, StreamOutlet
from streamlayer.errors import ConfigurationError, InternalError, LostError, ValidationError


def _outlet(fmt: str = "float32", channels: int = 2, srate: float = 100.0) -> StreamOutlet:
    return StreamOutlet(StreamInfo("T", "EEG", channels, srate, fmt))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"chunk_size": -1},
        {"chunk_size": 1.5},
        {"max_buffered": 0},
        {"max_buffered": -3},
        {"max_buffered": float("inf")},
    ],
)
def test_invalid_outlet_arguments(kwargs, engine) -> None:
    info = StreamInfo("T", "EEG", 2, 100, "float32")
    with pytest.raises(ConfigurationError):
        StreamOutlet(info, **kwargs)
    assert "create_outlet" not in engine.calls


def test_outlet_requires_stream_info() -> None:
    with pytest.raises(ConfigurationError):
        StreamOutlet("not-an-info")


def test_push_sample_validates_before_engine(engine) -> None:
    outlet = _outlet(channels=4)
    with pytest.raises(ValidationError):
        outlet.push_sample([1, 2, 3])
    with pytest.raises(ValidationError):
        outlet.push_sample(5.0)
    assert "push_sample" not in engine.calls


def test_empty_chunk_is_a_noop(engine) -> None:
    outlet = _outlet()
    outlet.push_chunk([])
    outlet.push_chunk(np.empty((0, 2)))
    outlet.push_chunk([], timestamp=[1.0, 2.0])
    outlet.push_rows([])
    outlet.push_flat([])
    assert "push_chunk" not in engine.calls


def test_timestamp_length_mismatch_makes_no_native_call(engine) -> None:
    outlet = _outlet(fmt="int32")
    with pytest.raises(ValidationError) as excinfo:
        outlet.push_chunk([[1, 2], [3, 4], [5, 6]], timestamp=[10.0, 10.01])
    assert excinfo.value.expected == 3
    assert excinfo.value.actual == 2
    assert "push_chunk" not in engine.calls


def test_bad_row_makes_no_native_call(engine) -> None:
    outlet = _outlet()
    with pytest.raises(ValidationError) as excinfo:
        outlet.push_chunk([[1, 2], [3, 4, 5]])
    assert excinfo.value.index == 1
    with pytest.raises(ValidationError):
        outlet.push_flat([1, 2, 3])
    assert "push_chunk" not in engine.calls


def test_push_chunk_accepts_generators() -> None:
    outlet = _outlet(fmt="int16")
    inlet = StreamInlet(outlet.get_info())
    outlet.push_chunk(([i, -i] for i in range(3)), timestamp=[1.0, 2.0, 3.0])
    samples, stamps = inlet.pull_chunk(timeout=1.0)
    assert samples == [[0, 0], [1, -1], [2, -2]]
    assert stamps == [1.0, 2.0, 3.0]


def test_scalar_chunk_timestamp_stamps_last_sample() -> None:
    outlet = _outlet(srate=100.0)
    inlet = StreamInlet(outlet.get_info())
    outlet.push_chunk([[1, 2], [3, 4], [5, 6]], timestamp=50.0)
    _, stamps = inlet.pull_chunk(timeout=1.0)
    assert stamps == pytest.approx([49.98, 49.99, 50.0])


def test_transport_failures_raise(engine) -> None:
    outlet = _outlet()
    engine.fail_next["push_sample"] = -2
    with pytest.raises(LostError):
        outlet.push_sample([1, 2])
    engine.fail_next["push_chunk"] = -4
    with pytest.raises(InternalError):
        outlet.push_chunk([[1, 2]])


def test_consumers() -> None:
    outlet = _outlet()
    assert not outlet.have_consumers()
    assert outlet.wait_for_consumers(0.05) is False

    inlet = StreamInlet(outlet.get_info())
    opener = threading.Timer(0.05, inlet.open_stream, kwargs={"timeout": 1.0})
    opener.start()
    try:
        assert outlet.wait_for_consumers(2.0) is True
    finally:
        opener.join()
    assert outlet.have_consumers()
    inlet.destroy()
    assert not outlet.have_consumers()


def test_destroy_is_idempotent(engine) -> None:
    outlet = _outlet()
    outlet.destroy()
    outlet.destroy()
    assert engine.destroyed["outlet"] == 1
    assert engine.double_frees == []
    with pytest.raises(LostError):
        outlet.push_sample([1, 2])


def test_outlet_properties() -> None:
    outlet = StreamOutlet(StreamInfo("T", "EEG", 3, 10, "int8"), chunk_size=16, max_buffered=30)
    assert outlet.channel_count == 3
    assert outlet.channel_format.name == "INT8"
    assert outlet.chunk_size == 16
    assert outlet.max_buffered == 30


def test_fractional_max_buffered_rounds_up() -> None:
    outlet = StreamOutlet(StreamInfo("Q", "EEG", 1, 0, "float32"), max_buffered=0.5)
    assert outlet.max_buffered == 1
    assert outlet.handle.max_buffered == 1


def test_bare_text_is_not_a_chunk(engine) -> None:
    outlet = _outlet("string", channels=1)
    with pytest.raises(ValidationError):
        outlet.push_chunk("abc")
    with pytest.raises(ValidationError):
        outlet.push_flat(b"abc")
    with pytest.raises(ValidationError):
        outlet.push_rows("abc")
    assert "push_chunk" not in engine.calls
    outlet.push_chunk(["abc"], timestamp=1.0)
    assert engine.calls.count("push_chunk") == 1
