from __future__ import annotations

import gc
import time

import pytest

from streamlayer import (
    ContinuousResolver,
    StreamInfo,
    StreamOutlet,
    resolve_byprop,
    resolve_bypred,
    resolve_streams,
)
from streamlayer.errors import ConfigurationError, InternalError, LostError


def _names(infos) -> list:
    return sorted(info.name for info in infos)


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# ---------------------------------------------------------------------- one-shot
def test_resolve_streams_returns_all_outlets() -> None:
    eeg = StreamOutlet(StreamInfo("A", "EEG", 1, 0, "float32"))
    markers = StreamOutlet(StreamInfo("B", "Markers", 1, 0, "string"))
    found = resolve_streams(wait_time=0.05)
    assert _names(found) == ["A", "B"]
    assert all(info.uid for info in found)
    eeg.destroy()
    markers.destroy()
    assert resolve_streams(wait_time=0.0) == []


def test_resolve_byprop_filters() -> None:
    outlets = [
        StreamOutlet(StreamInfo("A", "EEG", 1, 0, "float32")),
        StreamOutlet(StreamInfo("B", "EEG", 1, 0, "float32")),
        StreamOutlet(StreamInfo("C", "Markers", 1, 0, "string")),
    ]
    assert _names(resolve_byprop("type", "EEG", minimum=2, timeout=1.0)) == ["A", "B"]
    assert _names(resolve_byprop("name", "C", timeout=1.0)) == ["C"]
    assert len(outlets) == 3


def test_resolve_returns_fewer_than_minimum_after_timeout() -> None:
    outlet = StreamOutlet(StreamInfo("A", "EEG", 1, 0, "float32"))
    started = time.monotonic()
    found = resolve_byprop("type", "EEG", minimum=3, timeout=0.1)
    assert time.monotonic() - started >= 0.1
    assert _names(found) == ["A"]
    assert resolve_byprop("type", "Audio", timeout=0.05) == []
    outlet.destroy()


def test_resolve_bypred() -> None:
    keep = StreamOutlet(StreamInfo("A", "EEG", 1, 0, "float32"))
    other = StreamOutlet(StreamInfo("B", "EEG", 1, 0, "float32"))
    assert _names(resolve_bypred("name='A' and type='EEG'", timeout=1.0)) == ["A"]
    keep.destroy()
    other.destroy()


def test_resolved_descriptors_are_independent(engine) -> None:
    outlet = StreamOutlet(StreamInfo("A", "EEG", 1, 0, "float32"))
    first = resolve_byprop("name", "A", timeout=1.0)[0]
    second = resolve_byprop("name", "A", timeout=1.0)[0]
    first.destroy()
    assert second.name == "A"
    assert second.uid
    second.destroy()
    outlet.destroy()


def test_invalid_one_shot_arguments(engine) -> None:
    with pytest.raises(ConfigurationError):
        resolve_byprop("colour", "red", timeout=0.0)
    with pytest.raises(ConfigurationError):
        resolve_byprop("type", "EEG", minimum=-1, timeout=0.0)
    with pytest.raises(ConfigurationError):
        resolve_bypred("   ", timeout=0.0)
    assert engine.calls == []


def test_resolve_error_codes_raise(engine) -> None:
    engine.fail_next["continuous_resolver_results"] = -4
    resolver = ContinuousResolver(forget_after=1.0, poll_interval=10.0)
    try:
        _wait_for(lambda: "continuous_resolver_results" not in engine.fail_next)
        engine.fail_next["continuous_resolver_results"] = -4
        with pytest.raises(InternalError):
            resolver.results()
    finally:
        resolver.destroy()


# ---------------------------------------------------------------------- continuous
@pytest.mark.parametrize(
    "kwargs",
    [
        {"prop": "type", "value": "EEG", "predicate": "name='A'"},
        {"prop": "type"},
        {"value": "EEG"},
        {"value": "EEG", "predicate": "name='A'"},
        {"prop": "colour", "value": "red"},
        {"predicate": ""},
        {"forget_after": 0},
        {"forget_after": -1.0},
        {"poll_interval": 0},
    ],
)
def test_continuous_resolver_rejects_bad_filters(kwargs, engine) -> None:
    with pytest.raises(ConfigurationError):
        ContinuousResolver(**kwargs)
    assert "create_continuous_resolver" not in engine.calls


def test_continuous_resolver_evicts_after_forget_after(engine) -> None:
    resolver = ContinuousResolver(prop="type", value="EEG", forget_after=1.0)
    try:
        engine.advertise("Remote", "EEG", 2, 100.0, 1, "remote-1")
        engine.advertise("Audio", "Audio", 2, 44100.0, 1, "remote-2")
        present = resolver.results()
        assert _names(present) == ["Remote"]
        assert present[0].hostname == "remote-host"

        time.sleep(1.1)
        assert resolver.results() == []
    finally:
        resolver.destroy()


def test_continuous_resolver_keeps_refreshed_streams(engine) -> None:
    resolver = ContinuousResolver(forget_after=1.0)
    try:
        uid = engine.advertise("Remote", "EEG", source_id="remote-1")
        for _ in range(3):
            time.sleep(0.5)
            engine.advertise("Remote", "EEG", source_id="remote-1", uid=uid)
        assert _names(resolver.results()) == ["Remote"]
    finally:
        resolver.destroy()


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_registry_ages_out_entries_when_polls_stop(engine) -> None:
    clock = FakeClock()
    engine.fail_next["continuous_resolver_results"] = -4
    resolver = ContinuousResolver(forget_after=1.0, poll_interval=10.0, clock=clock)
    try:
        # the watcher's first poll fails and the next one is 10 s away
        assert _wait_for(lambda: "continuous_resolver_results" not in engine.fail_next)
        engine.advertise("Remote", "EEG", source_id="remote-1")
        assert _names(resolver.results()) == ["Remote"]

        clock.now += 0.9
        assert _names(resolver.registry.snapshot()) == ["Remote"]
        clock.now += 0.2
        assert resolver.registry.snapshot() == []

        # the next successful poll re-stamps with the resolver clock
        assert _names(resolver.results()) == ["Remote"]
        assert resolver.registry.last_seen(resolver.results()[0]) == pytest.approx(101.1)
    finally:
        resolver.destroy()


def test_continuous_resolver_sees_local_outlets_and_predicates() -> None:
    outlet = StreamOutlet(StreamInfo("Local", "EEG", 1, 0, "float32"))
    resolver = ContinuousResolver(predicate="name='Local'", forget_after=1.0)
    try:
        assert _names(resolver.results()) == ["Local"]
        outlet.destroy()
        assert resolver.results() == []
    finally:
        resolver.destroy()


def test_background_watcher_fills_registry(engine) -> None:
    resolver = ContinuousResolver(forget_after=5.0, poll_interval=0.02)
    try:
        engine.advertise("Remote", "EEG", source_id="remote-1")
        assert _wait_for(lambda: len(resolver.registry) == 1)
    finally:
        resolver.destroy()


def test_results_are_caller_owned_copies(engine) -> None:
    resolver = ContinuousResolver(forget_after=5.0)
    engine.advertise("Remote", "EEG", source_id="remote-1")
    results = resolver.results()
    resolver.destroy()
    assert results[0].name == "Remote"
    assert results[0].source_id == "remote-1"


def test_continuous_resolver_destroy_is_idempotent(engine) -> None:
    resolver = ContinuousResolver(forget_after=1.0)
    resolver.destroy()
    resolver.destroy()
    assert engine.destroyed["resolver"] == 1
    assert engine.double_frees == []
    with pytest.raises(LostError):
        resolver.results()


def test_continuous_resolver_finalizer_stops_watcher(engine) -> None:
    resolver = ContinuousResolver(forget_after=1.0, poll_interval=0.02)
    engine.advertise("Remote", "EEG", source_id="remote-1")
    assert _wait_for(lambda: len(resolver.registry) == 1)
    del resolver
    gc.collect()
    assert engine.destroyed["resolver"] == 1
    assert engine.live("info") == 0
