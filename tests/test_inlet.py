from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from streamlayer import (
    InletState,
    PostProcessing,
    StreamInfo,
    StreamInlet,
    StreamOutlet,
    resolve_byprop,
)
from streamlayer.errors import ConfigurationError, InternalError, LostError, TimeoutError, ValidationError


def _pair(fmt: str = "float32", channels: int = 2, srate: float = 100.0, **inlet_kwargs):
    outlet = StreamOutlet(StreamInfo("T", "EEG", channels, srate, fmt))
    inlet = StreamInlet(outlet.get_info(), **inlet_kwargs)
    return outlet, inlet


def test_float32_sample_scenario() -> None:
    outlet = StreamOutlet(StreamInfo(name="T", type="EEG", channel_count=4, nominal_srate=100, channel_format="float32"))
    inlet = StreamInlet(resolve_byprop("name", "T", timeout=1.0)[0])
    outlet.push_sample([1, 2, 3, 4])
    inlet.open_stream(5.0)
    sample, timestamp = inlet.pull_sample(5.0)
    assert sample == [1.0, 2.0, 3.0, 4.0]
    assert timestamp > 0


def test_int32_chunk_scenario() -> None:
    outlet, inlet = _pair(fmt="int32", channels=2)
    outlet.push_chunk([[1, 2], [3, 4], [5, 6]], timestamp=[10.0, 10.01, 10.02])
    samples, timestamps = inlet.pull_chunk(1.0, 10)
    assert samples == [[1, 2], [3, 4], [5, 6]]
    assert timestamps == pytest.approx([10.0, 10.01, 10.02])
    assert np.diff(timestamps).tolist() == pytest.approx([0.01, 0.01])


@pytest.mark.parametrize(
    "fmt, sample",
    [
        ("float32", [0.5, -1.25, 3.0]),
        ("double64", [1.0 / 3.0, -2.5e300, 0.0]),
        ("int32", [2**31 - 1, -(2**31), 0]),
        ("int16", [32767, -32768, 1]),
        ("int8", [127, -128, 0]),
        ("int64", [2**62, -(2**62), 2**53 + 1]),
        ("string", ["alpha", "βeta", ""]),
    ],
)
def test_round_trip_per_format(fmt, sample) -> None:
    outlet, inlet = _pair(fmt=fmt, channels=3)
    outlet.push_sample(sample, timestamp=1.5)
    received, timestamp = inlet.pull_sample(1.0)
    if fmt == "float32":
        assert received == pytest.approx(sample, rel=1e-6)
    else:
        assert received == sample
    assert timestamp == 1.5


def test_rows_and_flat_chunks_pull_identically() -> None:
    outlet, inlet = _pair(fmt="double64", channels=2)
    outlet.push_chunk([[1, 2], [3, 4]], timestamp=[1.0, 2.0])
    outlet.push_chunk([1, 2, 3, 4], timestamp=[1.0, 2.0])
    first = inlet.pull_chunk(1.0, 2)
    second = inlet.pull_chunk(1.0, 2)
    assert first == second == ([[1.0, 2.0], [3.0, 4.0]], [1.0, 2.0])


def test_pull_on_empty_inlet_returns_sentinel() -> None:
    _, inlet = _pair()
    assert inlet.pull_sample(0.0) == (None, None)
    assert inlet.pull_chunk(0.0) == ([], [])
    data, stamps = inlet.pull_chunk_array(0.0)
    assert data.shape == (0, 2)
    assert stamps.shape == (0,)


def test_pull_chunk_array_shapes() -> None:
    outlet, inlet = _pair(fmt="int16", channels=3)
    outlet.push_chunk(np.arange(12).reshape(4, 3), timestamp=[1, 2, 3, 4])
    data, stamps = inlet.pull_chunk_array(1.0, max_samples=3)
    assert data.dtype == np.int16
    assert data.tolist() == [[0, 1, 2], [3, 4, 5], [6, 7, 8]]
    assert stamps.tolist() == [1.0, 2.0, 3.0]
    rest, _ = inlet.pull_chunk_array(0.0)
    assert rest.tolist() == [[9, 10, 11]]


def test_oversized_pull_grows_scratch_buffer() -> None:
    outlet, inlet = _pair(channels=1, max_chunklen=2)
    outlet.push_chunk([[float(i)] for i in range(5)], timestamp=[float(i + 1) for i in range(5)])
    samples, _ = inlet.pull_chunk(1.0)
    assert samples == [[0.0], [1.0]]
    samples, _ = inlet.pull_chunk(1.0, max_samples=10)
    assert samples == [[2.0], [3.0], [4.0]]


def test_default_pull_size_stays_at_max_chunklen_after_growth() -> None:
    outlet, inlet = _pair(channels=1, max_chunklen=2)
    assert inlet.pull_chunk(0.0, max_samples=10) == ([], [])
    outlet.push_chunk([[float(i)] for i in range(6)], timestamp=[float(i + 1) for i in range(6)])
    samples, stamps = inlet.pull_chunk(1.0)
    assert samples == [[0.0], [1.0]]
    assert stamps == [1.0, 2.0]
    assert inlet.samples_available() == 4


def test_invalid_max_samples() -> None:
    _, inlet = _pair()
    with pytest.raises(ValidationError):
        inlet.pull_chunk(0.0, max_samples=0)


def test_state_machine() -> None:
    outlet, inlet = _pair()
    assert inlet.state is InletState.CREATED
    inlet.close_stream()
    assert inlet.state is InletState.CREATED
    inlet.open_stream(1.0)
    assert inlet.state is InletState.OPEN
    inlet.close_stream()
    assert inlet.state is InletState.CREATED
    inlet.destroy()
    assert inlet.state is InletState.DESTROYED
    with pytest.raises(LostError):
        inlet.open_stream(1.0)
    with pytest.raises(LostError):
        inlet.close_stream()
    with pytest.raises(LostError):
        inlet.pull_sample()


def test_successful_pull_marks_inlet_open() -> None:
    outlet, inlet = _pair()
    outlet.push_sample([1, 2])
    inlet.pull_sample(1.0)
    assert inlet.state is InletState.OPEN


def test_open_stream_timeout_keeps_created_state() -> None:
    info = StreamInfo("Nobody", "EEG", 1, 0, "float32")
    inlet = StreamInlet(info)
    with pytest.raises(TimeoutError):
        inlet.open_stream(0.05)
    assert inlet.state is InletState.CREATED


def test_open_stream_failure_raises(engine) -> None:
    _, inlet = _pair()
    engine.fail_next["open_stream"] = -4
    with pytest.raises(InternalError):
        inlet.open_stream(1.0)
    assert inlet.state is InletState.CREATED


def test_lost_stream_without_recovery() -> None:
    outlet, inlet = _pair(recover=False)
    inlet.open_stream(1.0)
    outlet.destroy()
    with pytest.raises(LostError):
        inlet.pull_sample(0.5)


def test_destroy_from_another_thread_ends_blocking_pull() -> None:
    _, inlet = _pair()
    inlet.open_stream(1.0)
    handle = inlet.handle
    engine = inlet.engine
    errors = []

    def pull() -> None:
        _, code = engine.pull_sample("f", handle, np.zeros(2, dtype=np.float32), 5.0)
        errors.append(code)

    worker = threading.Thread(target=pull)
    worker.start()
    time.sleep(0.05)
    started = time.monotonic()
    inlet.destroy()
    worker.join(2.0)
    assert not worker.is_alive()
    assert errors == [-2]
    assert time.monotonic() - started < 1.0


def test_samples_available_and_flush() -> None:
    outlet, inlet = _pair()
    assert inlet.flush() == 0
    outlet.push_chunk([[1, 2], [3, 4], [5, 6]])
    assert inlet.samples_available() == 3
    assert inlet.flush() == 3
    assert inlet.samples_available() == 0


def test_postprocessing_flags(engine) -> None:
    outlet, inlet = _pair(processing_flags=PostProcessing.CLOCKSYNC | PostProcessing.DEJITTER)
    assert inlet.processing_flags == 3
    inlet.set_postprocessing(PostProcessing.ALL)
    assert inlet.processing_flags == PostProcessing.ALL
    with pytest.raises(ConfigurationError):
        inlet.set_postprocessing(32)
    assert inlet.processing_flags == PostProcessing.ALL


def test_clocksync_applies_offset(engine) -> None:
    engine.clock_offset = 0.25
    outlet, inlet = _pair(processing_flags=PostProcessing.CLOCKSYNC)
    outlet.push_sample([1, 2], timestamp=10.0)
    _, timestamp = inlet.pull_sample(1.0)
    assert timestamp == pytest.approx(10.25)


def test_time_correction(engine) -> None:
    engine.clock_offset = -0.5
    _, inlet = _pair()
    assert inlet.time_correction(1.0) == -0.5
    correction = inlet.time_correction_ex(1.0)
    assert correction.offset == -0.5
    assert correction.remote_time > 0
    assert correction.uncertainty >= 0
    assert inlet.was_clock_reset() is False


def test_time_correction_timeout() -> None:
    inlet = StreamInlet(StreamInfo("Nobody", "EEG", 1, 0, "float32"))
    with pytest.raises(TimeoutError):
        inlet.time_correction(0.05)
    with pytest.raises(TimeoutError):
        inlet.info(0.05)


def test_smoothing_halftime() -> None:
    _, inlet = _pair()
    inlet.smoothing_halftime(30.0)
    with pytest.raises(ConfigurationError):
        inlet.smoothing_halftime(0)


@pytest.mark.parametrize(
    "kwargs",
    [{"max_buflen": 0}, {"max_buflen": float("inf")}, {"max_chunklen": -1}, {"processing_flags": 99}],
)
def test_invalid_inlet_arguments(kwargs, engine) -> None:
    info = StreamInfo("T", "EEG", 2, 100, "float32")
    with pytest.raises(ConfigurationError):
        StreamInlet(info, **kwargs)
    assert "create_inlet" not in engine.calls


def test_fractional_max_buflen_rounds_up() -> None:
    _, inlet = _pair(max_buflen=0.5)
    assert inlet.max_buflen == 1
    assert inlet.handle.max_buflen == 1


def test_inlet_destroy_is_idempotent(engine) -> None:
    _, inlet = _pair()
    inlet.destroy()
    inlet.destroy()
    assert engine.destroyed["inlet"] == 1
    assert engine.double_frees == []
