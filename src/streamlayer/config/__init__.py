"""Configuration helpers for streamlayer."""

from .runtime import (
    CONFIG_ENV_VAR,
    StreamLayerConfig,
    config_from_mapping,
    get_config,
    load_config,
    save_config,
    set_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "StreamLayerConfig",
    "config_from_mapping",
    "get_config",
    "load_config",
    "save_config",
    "set_config",
]
