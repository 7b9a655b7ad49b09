from __future__ import annotations

import logging

import pytest

from gkdecomp.vm.cfg_builder import CFGBuilder
from gkdecomp.vm.dataflow import LivenessAnalyzer, instruction_defs_uses
from gkdecomp.vm.opcodes import Opcode


def _assert_equations_hold(cfg, info):
    for block in cfg.blocks:
        expected_out = frozenset().union(*(info.live_in[succ] for succ in block.successors))
        assert info.live_out[block.id] == expected_out
        expected_in = info.uses[block.id] | (info.live_out[block.id] - info.definitions[block.id])
        assert info.live_in[block.id] == expected_in


def test_defs_are_first_operand_uses_the_rest(build):
    (instruction,) = build((Opcode.ADD, 2, 0, 1))
    assert instruction_defs_uses(instruction) == ((2,), (0, 1))


def test_branch_trace_liveness(branch_trace):
    cfg = CFGBuilder(branch_trace).build()
    info = LivenessAnalyzer().analyze(cfg)

    assert info.converged
    assert info.iterations == 2
    assert info.live_in[2] == {0, 1}
    assert info.live_out[2] == frozenset()
    assert info.live_out[0] == {0, 1}
    assert info.definitions[0] == {0, 1, 2}
    _assert_equations_hold(cfg, info)


def test_loop_reaches_fixed_point(build):
    instructions = build(
        (Opcode.LOADN, 1, 0),
        (Opcode.ADD, 2, 3, 0),
        (Opcode.JUMPBACK, -1, 4),
        (Opcode.RETURN, 0, 2),
    )
    cfg = CFGBuilder(instructions).build()
    info = LivenessAnalyzer().analyze(cfg)

    assert info.converged
    _assert_equations_hold(cfg, info)
    assert 4 in info.live_in[0]


def test_iteration_cap_returns_best_effort_and_warns(branch_trace, caplog):
    cfg = CFGBuilder(branch_trace).build()
    with caplog.at_level(logging.WARNING, logger="gkdecomp.vm.dataflow"):
        info = LivenessAnalyzer(max_iterations=1).analyze(cfg)

    assert not info.converged
    assert info.iterations == 1
    assert info.warnings
    assert any("did not converge" in record.getMessage() for record in caplog.records)


def test_empty_graph():
    info = LivenessAnalyzer().analyze(CFGBuilder([]).build())
    assert info.converged
    assert info.iterations == 0
    assert dict(info.live_in) == {}


def test_rejects_non_positive_cap():
    with pytest.raises(ValueError):
        LivenessAnalyzer(max_iterations=0)


def test_as_dict_is_json_friendly(branch_trace):
    info = LivenessAnalyzer().analyze(CFGBuilder(branch_trace).build())
    dumped = info.as_dict()
    assert dumped["live_in"]["2"] == [0, 1]
