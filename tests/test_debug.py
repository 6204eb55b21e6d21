from __future__ import annotations

import logging
import time

from streamlayer.tools import debug


def test_time_block_is_silent_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(debug, "DEBUG_STREAMLAYER", False)
    messages = []
    with debug.time_block("noop", emitter=messages.append):
        pass
    assert messages == []
    assert not debug.debug_enabled()


def test_time_block_reports_when_enabled(monkeypatch) -> None:
    monkeypatch.setattr(debug, "DEBUG_STREAMLAYER", True)
    messages = []
    with debug.time_block("pull_chunk", emitter=messages.append):
        pass
    assert len(messages) == 1
    assert messages[0].startswith("pull_chunk took ")
    assert messages[0].endswith(" ms")


def test_slow_blocks_warn_even_when_disabled(monkeypatch, caplog) -> None:
    monkeypatch.setattr(debug, "DEBUG_STREAMLAYER", False)
    with caplog.at_level(logging.WARNING, logger="streamlayer.tools.debug"):
        with debug.time_block("stalled", slow_ms=1.0):
            time.sleep(0.02)
        with debug.time_block("quick", slow_ms=10_000.0):
            pass
    warnings = [record.getMessage() for record in caplog.records]
    assert len(warnings) == 1
    assert warnings[0].startswith("stalled took ")
