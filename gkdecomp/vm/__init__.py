"""Instruction model, control-flow graph, liveness and source rendering."""

from __future__ import annotations

from .cfg_builder import BasicBlock, CFGBuilder, ControlFlowGraph, jump_target
from .dataflow import DataFlowInfo, LivenessAnalyzer
from .instruction import Instruction, InstructionSpec, assemble
from .opcodes import Opcode, opcode_name
from .reconstruct import SourceReconstructor

__all__ = [
    "BasicBlock",
    "CFGBuilder",
    "ControlFlowGraph",
    "DataFlowInfo",
    "Instruction",
    "InstructionSpec",
    "LivenessAnalyzer",
    "Opcode",
    "SourceReconstructor",
    "assemble",
    "jump_target",
    "opcode_name",
]
