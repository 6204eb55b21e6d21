from __future__ import annotations

import pytest

from loopback_engine import LoopbackEngine
from streamlayer.config import StreamLayerConfig, set_config
from streamlayer.native import set_engine


@pytest.fixture(autouse=True)
def engine():
    """Route every test through a fresh in-memory engine and default config."""
    loopback = LoopbackEngine()
    previous_engine = set_engine(loopback)
    set_config(StreamLayerConfig(resolver_poll_interval=0.05))
    try:
        yield loopback
    finally:
        set_engine(previous_engine)
        set_config(StreamLayerConfig())
