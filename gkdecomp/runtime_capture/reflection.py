"""Interface to the host execution/reflection collaborator."""

from __future__ import annotations

import abc
from typing import Any, List, Mapping, Optional

__all__ = ["SOURCE_KEYS", "ReflectionHook", "source_from_environment"]

SOURCE_KEYS = ("Source", "source", "_source", "code", "_code")


def source_from_environment(env: Mapping[str, Any] | None) -> Optional[str]:
    """Return the first non-empty string stored under a well-known source key."""

    if not env:
        return None
    for key in SOURCE_KEYS:
        value = env.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class ReflectionHook(abc.ABC):
    """Capability the extraction cascade calls through for host access.

    Implementations may run code in a real execution context; callers must
    treat every exception (including :class:`~gkdecomp.exceptions.ReflectionError`
    for timeouts) as a soft failure.
    """

    @abc.abstractmethod
    def trace_lines(self, text: str, *, max_events: int, timeout: float) -> List[int]:
        """Execute ``text`` and return the sequence of line events observed."""

    def read_source(self, script: Any) -> Optional[str]:
        """Recover readable text for ``script`` from its exposed environment."""

        return source_from_environment(getattr(script, "properties", None))
