from __future__ import annotations

import pytest

from gkdecomp.vm.opcode_constants import (
    is_block_end,
    is_block_start,
    is_jump,
    is_return,
    is_unconditional,
    normalize_mnemonic,
)
from gkdecomp.vm.opcodes import Opcode, opcode_name


def test_opcode_table_matches_luau_numbering():
    assert Opcode.NOP == 0
    assert Opcode.LOADK == 5
    assert Opcode.CALL == 21
    assert Opcode.JUMPIF == 25
    assert Opcode.JUMPX == 67
    assert Opcode.COVERAGE == 69
    assert Opcode.FASTCALL2K == 75


def test_opcode_name_handles_unknown_values():
    assert opcode_name(22) == "RETURN"
    assert opcode_name(999) == "UNKNOWN"


def test_jump_classes():
    jumps = [op for op in Opcode if is_jump(op)]
    assert len(jumps) == 11
    assert Opcode.JUMPX in jumps
    assert not is_jump(Opcode.RETURN)
    assert is_unconditional(Opcode.JUMP)
    assert is_unconditional(Opcode.RETURN)
    assert not is_unconditional(Opcode.JUMPBACK)
    assert is_return(Opcode.RETURN)


def test_block_classes():
    assert is_block_start(Opcode.FORNPREP)
    assert is_block_start(Opcode.JUMPIF)
    assert is_block_end(Opcode.FORNLOOP)
    assert not is_block_end(Opcode.JUMPIF)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("LOADK", Opcode.LOADK),
        ("loadk", Opcode.LOADK),
        ("jmp", Opcode.JUMP),
        ("RET", Opcode.RETURN),
        ("LABEL", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_mnemonic(text, expected):
    assert normalize_mnemonic(text) is expected
