"""Runtime configuration for the native binding, resolvers and buffers."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import yaml

CONFIG_ENV_VAR = "STREAMLAYER_CONFIG"


@dataclass(slots=True)
class StreamLayerConfig:
    """
    Tuning knobs shared by outlets, inlets and resolvers.

    The defaults mirror liblsl's own defaults (six minutes of buffering,
    up to 1024 streams per resolve).
    """

    library_path: Optional[str] = None

    max_resolve_results: int = 1024
    default_chunk_samples: int = 1024
    resolver_poll_interval: float = 0.25

    outlet_max_buffered: int = 360
    inlet_max_buflen: int = 360

    def sanitized(self) -> StreamLayerConfig:
        """Return a copy with derived limits applied."""
        library_path = None
        if self.library_path:
            library_path = str(Path(str(self.library_path)).expanduser())
        return StreamLayerConfig(
            library_path=library_path,
            max_resolve_results=max(1, int(self.max_resolve_results)),
            default_chunk_samples=max(1, int(self.default_chunk_samples)),
            resolver_poll_interval=max(0.01, float(self.resolver_poll_interval)),
            outlet_max_buffered=max(1, int(self.outlet_max_buffered)),
            inlet_max_buflen=max(1, int(self.inlet_max_buflen)),
        )


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`StreamLayerConfig`."""
    return {f.name for f in fields(StreamLayerConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten an optional top-level ``streamlayer`` block."""
    if "streamlayer" in data and isinstance(data["streamlayer"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "streamlayer":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> StreamLayerConfig:
    """Build :class:`StreamLayerConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return StreamLayerConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return StreamLayerConfig(**payload).sanitized()


def load_config(path: str | Path | None) -> StreamLayerConfig:
    """
    Load configuration from ``path``.

    Missing files fall back to default :class:`StreamLayerConfig`.
    """
    if path is None:
        return StreamLayerConfig()
    cfg_path = Path(path).expanduser()
    if not cfg_path.exists():
        return StreamLayerConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


def save_config(path: str | Path, config: StreamLayerConfig) -> None:
    """Persist ``config`` as YAML under a ``streamlayer`` block."""
    cfg_path = Path(path).expanduser()
    if cfg_path.parent and not cfg_path.parent.exists():
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {f.name: getattr(config, f.name) for f in fields(StreamLayerConfig)}
    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump({"streamlayer": payload}, fh, default_flow_style=False, sort_keys=False)


_lock = threading.Lock()
_active: Optional[StreamLayerConfig] = None


def get_config() -> StreamLayerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _active
    with _lock:
        if _active is None:
            _active = load_config(os.environ.get(CONFIG_ENV_VAR))
        return _active


def set_config(config: StreamLayerConfig | None = None, **overrides: Any) -> StreamLayerConfig:
    """Install ``config`` (or the current one with ``overrides``) process-wide."""
    global _active
    base = config if config is not None else get_config()
    updated = replace(base, **overrides).sanitized() if overrides else base.sanitized()
    with _lock:
        _active = updated
    return updated


__all__ = [
    "CONFIG_ENV_VAR",
    "StreamLayerConfig",
    "config_from_mapping",
    "get_config",
    "load_config",
    "save_config",
    "set_config",
]
