from __future__ import annotations

import pytest

from gkdecomp.config import DecompilerConfig
from gkdecomp.exceptions import ReflectionError
from gkdecomp.extraction.cascade import ExtractionCascade
from gkdecomp.extraction.strategies import ExecutionTraceStrategy, StrategyKind, TokenSynthesisStrategy
from gkdecomp.runtime_capture import LuaTraceHook
from gkdecomp.script import LuaScript
from gkdecomp.vm.opcodes import Opcode

pytest.importorskip("lupa")


def test_traces_executed_lines():
    lines = LuaTraceHook().trace_lines("local a = 1\nlocal b = a + 1\nreturn b\n", max_events=100, timeout=5.0)
    assert lines[0] == 1
    assert 3 in lines


def test_event_limit_stops_runaway_loops():
    lines = LuaTraceHook().trace_lines("while true do end\n", max_events=50, timeout=5.0)
    assert len(lines) == 50


def test_instruction_budget_stops_loops_below_the_event_cap():
    hook = LuaTraceHook(instruction_budget=10_000)
    lines = hook.trace_lines("local i = 0\nwhile true do i = i + 1 end\n", max_events=10**9, timeout=5.0)

    assert lines[0] == 1
    assert set(lines) == {1, 2}


@pytest.mark.parametrize(
    "source",
    ["local s = string.rep('x', 2^40)\n", "local s = ('x'):rep(2^40)\n"],
)
def test_oversized_string_rep_is_refused(source):
    lines = LuaTraceHook(max_rep_bytes=1024).trace_lines(source, max_events=100, timeout=5.0)
    assert lines == [1]


def test_small_string_rep_still_runs():
    lines = LuaTraceHook().trace_lines("local s = string.rep('ab', 3)\nreturn s\n", max_events=100, timeout=5.0)
    assert lines == [1, 2]


def test_restricted_environment_does_not_raise():
    lines = LuaTraceHook().trace_lines("os.execute('echo hi')\n", max_events=10, timeout=5.0)
    assert lines == [1]


def test_syntax_error_raises_reflection_error():
    with pytest.raises(ReflectionError):
        LuaTraceHook().trace_lines("local = =", max_events=10, timeout=5.0)


def test_cascade_uses_trace_when_deep_analysis_enabled():
    cascade = ExtractionCascade(
        [ExecutionTraceStrategy(), TokenSynthesisStrategy()],
        config=DecompilerConfig(deep_analysis=True),
        hook=LuaTraceHook(),
    )
    result = cascade.extract(LuaScript("a", source="local a = 1\nreturn a\n"))

    assert result.strategy is StrategyKind.EXECUTION_TRACE
    assert [ins.opcode for ins in result.instructions] == [Opcode.COVERAGE, Opcode.COVERAGE]
    assert [ins.operands[0] for ins in result.instructions] == [1, 2]
