"""Options record consumed by the decompilation stages."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from .exceptions import ConfigError

LOG = logging.getLogger(__name__)

__all__ = ["DecompilerConfig"]


@dataclass(frozen=True)
class DecompilerConfig:
    """Limits and switches shared by the extraction and analysis stages.

    ``max_depth`` bounds script tree traversal, ``deep_analysis`` enables the
    execution-trace strategy, and ``max_iterations`` overrides the liveness
    iteration cap.  The remaining values bound how much a single strategy or
    reflection call may produce.
    """

    max_depth: int = 20
    deep_analysis: bool = False
    max_iterations: int = 100
    max_instructions: int = 4096
    max_hook_events: int = 1000
    hook_timeout: float = 2.0

    def __post_init__(self) -> None:
        for name in ("max_depth", "max_iterations", "max_instructions", "max_hook_events"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.deep_analysis, bool):
            raise ConfigError(f"deep_analysis must be a boolean, got {self.deep_analysis!r}")
        if isinstance(self.hook_timeout, bool) or not isinstance(self.hook_timeout, (int, float)):
            raise ConfigError(f"hook_timeout must be a number, got {self.hook_timeout!r}")
        if self.hook_timeout <= 0:
            raise ConfigError("hook_timeout must be greater than zero")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "DecompilerConfig":
        """Build a config from ``payload``, ignoring keys that are not options."""

        known = {item.name for item in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in payload.items():
            if key in known:
                values[key] = value
            else:
                LOG.debug("ignoring unknown config key %r", key)
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path) -> "DecompilerConfig":
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigError(f"config file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid config json: {path}: {exc}") from exc
        if not isinstance(raw, Mapping):
            raise ConfigError(f"config json must be an object: {path}")
        return cls.from_mapping(raw)

    def with_overrides(self, **overrides: Any) -> "DecompilerConfig":
        """Return a copy with every non-``None`` override applied."""

        applied = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **applied)

    def as_dict(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}
