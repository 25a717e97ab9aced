"""Operator configuration for the rendering engine."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace

from profdump.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable naming a JSON config file, used when --config is not given.
CONFIG_ENV_VAR = "PROFDUMP_CONFIG"

_SET_FIELDS = ("export_stack_frame_types", "filter_sample_types")


@dataclass(frozen=True)
class DumpConfig:
    """What the renderer exports and what it filters out.

    All options are independent of each other. An empty type set admits
    every type.
    """
    export_resource_attributes: bool = True
    export_profile_attributes: bool = True
    export_sample_attributes: bool = True
    export_stack_frames: bool = True
    export_stack_frame_types: frozenset[str] = field(default_factory=frozenset)
    ignore_profiles_without_container_id: bool = False
    filter_sample_types: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: dict) -> DumpConfig:
        """Build a config from a JSON-style dict, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a JSON object, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        values: dict = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            values[key] = _coerce(key, value)
        return cls(**values)

    def to_dict(self) -> dict:
        out = asdict(self)
        for key in _SET_FIELDS:
            out[key] = sorted(out[key])
        return out

    def merged(self, **overrides) -> DumpConfig:
        """Copy with every override that is not None applied."""
        values = {k: _coerce(k, v) for k, v in overrides.items() if v is not None}
        return replace(self, **values)


def _coerce(key: str, value):
    if key in _SET_FIELDS:
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise ConfigError(f"{key} must be a list of strings")
        if not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{key} must be a list of strings")
        return frozenset(value)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def load_config(config_path: str | None = None) -> DumpConfig:
    """Load the config file at ``config_path`` (or $PROFDUMP_CONFIG).

    With neither set, the defaults are returned.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None
    if config_path is None:
        return DumpConfig()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {config_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in config {config_path}: {e}") from e
    logger.debug("Loaded config from %s", config_path)
    return DumpConfig.from_dict(data)


def save_config(config_path: str, cfg: DumpConfig) -> None:
    """Write ``cfg`` as JSON to ``config_path``."""
    parent = os.path.dirname(os.path.abspath(config_path))
    os.makedirs(parent, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(cfg.to_dict(), f, indent=2)
        f.write("\n")
