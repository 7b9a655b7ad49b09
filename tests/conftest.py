"""Test configuration ensuring the project package is importable."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("gkdecomp")

from gkdecomp.vm.instruction import Instruction, InstructionSpec, assemble  # noqa: E402
from gkdecomp.vm.opcodes import Opcode  # noqa: E402


def make_instructions(*entries: Sequence[object]) -> List[Instruction]:
    """Build sequential instructions from ``(opcode, *operands)`` tuples."""

    specs = []
    for entry in entries:
        opcode, *operands = entry
        specs.append(InstructionSpec(Opcode(opcode), tuple(operands)))
    return list(assemble(specs))


@pytest.fixture
def build() -> Callable[..., List[Instruction]]:
    return make_instructions


@pytest.fixture
def branch_trace() -> List[Instruction]:
    """``LOADK, LOADK, ADD, JUMPIF +2, CALL, RETURN``."""

    return make_instructions(
        (Opcode.LOADK, 0, 1),
        (Opcode.LOADK, 1, 2),
        (Opcode.ADD, 2, 0, 1),
        (Opcode.JUMPIF, 2, 2),
        (Opcode.CALL, 2, 1, 1),
        (Opcode.RETURN, 0, 1),
    )
