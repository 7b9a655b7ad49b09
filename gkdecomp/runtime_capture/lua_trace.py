"""Line-trace sampling through an embedded Lua runtime (:mod:`lupa`).

The text is loaded into a fresh runtime with a reduced global environment
(no ``io``, ``os``, ``require`` or file loaders) and executed under a hook.
Execution is bounded three ways: the hook aborts the chunk once
``max_events`` lines have been observed or once the VM instruction budget is
spent, and the run happens on a daemon thread joined with ``timeout``.

A single long-running C function cannot be interrupted by a hook.
``string.rep`` is replaced by a size-checked wrapper, but any other such call
that outlives ``timeout`` leaves its daemon thread and runtime running until
the call returns; the trace itself is abandoned with a :class:`ReflectionError`.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

from ..exceptions import ReflectionError
from .reflection import ReflectionHook

LOG = logging.getLogger(__name__)

__all__ = ["LuaTraceHook"]

_EVENT_LIMIT_MESSAGE = "trace event limit reached"
_BUDGET_MESSAGE = "trace instruction budget exhausted"

# Instructions between two count-hook calls.
_COUNT_STEP = 1000

_HARNESS = """
return function(src, emit, max_events, budget, step, max_rep, limit_msg, budget_msg)
  local env = {}
  for _, name in ipairs({
    'assert', 'error', 'ipairs', 'next', 'pairs', 'pcall', 'select',
    'tonumber', 'tostring', 'type', 'unpack', 'rawequal', 'rawget',
    'rawset', 'setmetatable', 'getmetatable'
  }) do
    env[name] = _G[name]
  end

  local rep = string.rep
  local strings = {}
  for name, fn in pairs(string) do strings[name] = fn end
  strings.rep = function(s, n, sep)
    local size = (#tostring(s) + #tostring(sep or '')) * (tonumber(n) or 0)
    if size > max_rep then error('string.rep result too large', 2) end
    return rep(s, n, sep)
  end
  getmetatable('').__index = strings

  env.string = strings
  env.table = table
  env.math = math
  env.print = function() end
  env._G = env

  local chunk, err = load(src, '=script', 't', env)
  if not chunk then error(err, 0) end

  local count, steps = 0, 0
  debug.sethook(function(event, line)
    if event == 'count' then
      steps = steps + step
      if steps > budget then
        debug.sethook()
        error(budget_msg, 0)
      end
      return
    end
    count = count + 1
    if count > max_events then
      debug.sethook()
      error(limit_msg, 0)
    end
    emit(line)
  end, 'l', step)
  local ok, run_err = pcall(chunk)
  debug.sethook()
  return ok, run_err
end
"""


class LuaTraceHook(ReflectionHook):
    """Reflection hook that samples executed line numbers with ``lupa``."""

    def __init__(self, *, instruction_budget: int = 1_000_000, max_rep_bytes: int = 1 << 20) -> None:
        self.instruction_budget = instruction_budget
        self.max_rep_bytes = max_rep_bytes

    def trace_lines(self, text: str, *, max_events: int, timeout: float) -> List[int]:
        try:
            from lupa import LuaError, LuaRuntime
        except ImportError as exc:
            raise ReflectionError("lupa is not available; cannot trace execution") from exc

        events: List[int] = []
        holder: Dict[str, Any] = {}

        def _emit(line: Any) -> None:
            if isinstance(line, (int, float)):
                events.append(int(line))

        def _run() -> None:
            try:
                runtime = LuaRuntime(unpack_returned_tuples=True, register_eval=False)
                harness = runtime.execute(_HARNESS)
                holder["result"] = harness(
                    text,
                    _emit,
                    max_events,
                    self.instruction_budget,
                    _COUNT_STEP,
                    self.max_rep_bytes,
                    _EVENT_LIMIT_MESSAGE,
                    _BUDGET_MESSAGE,
                )
            except LuaError as exc:
                holder["error"] = exc
            except Exception as exc:  # pragma: no cover - runtime specific
                holder["error"] = exc

        thread = threading.Thread(target=_run, name="gkdecomp-lua-trace", daemon=True)
        thread.start()
        thread.join(timeout=timeout)
        if thread.is_alive():
            raise ReflectionError(f"lua trace timed out after {timeout}s")
        if "error" in holder:
            raise ReflectionError(f"lua trace failed: {holder['error']}") from holder["error"]

        result = holder.get("result")
        if isinstance(result, tuple) and result and not result[0]:
            reason = result[1] if len(result) > 1 else None
            LOG.debug("traced chunk stopped early: %s", reason)
        return list(events[:max_events])
