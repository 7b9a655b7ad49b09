"""Host reflection collaborators used by the execution-trace strategy."""

from __future__ import annotations

from .lua_trace import LuaTraceHook
from .reflection import SOURCE_KEYS, ReflectionHook, source_from_environment

__all__ = [
    "LuaTraceHook",
    "ReflectionHook",
    "SOURCE_KEYS",
    "source_from_environment",
]
