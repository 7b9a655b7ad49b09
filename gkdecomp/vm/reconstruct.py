"""Linearise an instruction trace back into Lua-flavoured pseudo-source.

The rendered text is a readable skeleton: each instruction becomes one line
from a fixed template, jump targets receive synthetic ``::label_n::`` markers
and indentation follows the block-start/block-end opcode classes.  It is not a
faithful, recompilable reconstruction of the original script.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from .cfg_builder import jump_target
from .instruction import Instruction
from .opcode_constants import is_block_end, is_block_start
from .opcodes import Opcode

__all__ = ["INDENT", "MAX_PLACEHOLDER_ARGS", "SourceReconstructor", "assign_labels"]

INDENT = "  "
MAX_PLACEHOLDER_ARGS = 8

Template = Callable[[Instruction, str], str]

_BINARY_OPERATORS: Dict[Opcode, str] = {
    Opcode.ADD: "+",
    Opcode.SUB: "-",
    Opcode.MUL: "*",
    Opcode.DIV: "/",
    Opcode.MOD: "%",
    Opcode.POW: "^",
    Opcode.AND: "and",
    Opcode.OR: "or",
    Opcode.CONCAT: "..",
}

_CONSTANT_OPERATORS: Dict[Opcode, str] = {
    Opcode.ADDK: "+",
    Opcode.SUBK: "-",
    Opcode.MULK: "*",
    Opcode.DIVK: "/",
    Opcode.MODK: "%",
    Opcode.POWK: "^",
    Opcode.ANDK: "and",
    Opcode.ORK: "or",
}

_COMPARISONS: Dict[Opcode, str] = {
    Opcode.JUMPIFEQ: "==",
    Opcode.JUMPIFLE: "<=",
    Opcode.JUMPIFLT: "<",
    Opcode.JUMPIFNOTEQ: "~=",
    Opcode.JUMPIFNOTLE: ">",
    Opcode.JUMPIFNOTLT: ">=",
}


def _var(slot: int) -> str:
    return f"var{slot}"


def _placeholder_args(count: int) -> str:
    if count <= 0:
        return ""
    if count > MAX_PLACEHOLDER_ARGS:
        return "..."
    return ", ".join(f"arg{index}" for index in range(1, count + 1))


def _call(instruction: Instruction, _target: str) -> str:
    a, b = instruction.operand(0), instruction.operand(1)
    return f"{_var(a)}({_placeholder_args(b)})"


def _namecall(instruction: Instruction, _target: str) -> str:
    a, b = instruction.operand(0), instruction.operand(1)
    return f"{_var(a)} = {_var(b)}:method{instruction.operand(2)}"


_TEMPLATES: Dict[Opcode, Template] = {
    Opcode.NOP: lambda ins, _t: "-- nop",
    Opcode.LOADNIL: lambda ins, _t: f"local {_var(ins.operand(0))} = nil",
    Opcode.LOADB: lambda ins, _t: f"local {_var(ins.operand(0))} = {'true' if ins.operand(1) else 'false'}",
    Opcode.LOADN: lambda ins, _t: f"local {_var(ins.operand(0))} = {ins.operand(1)}",
    Opcode.LOADK: lambda ins, _t: f"local {_var(ins.operand(0))} = K{ins.operand(1)}",
    Opcode.LOADKX: lambda ins, _t: f"local {_var(ins.operand(0))} = K{ins.operand(1)}",
    Opcode.MOVE: lambda ins, _t: f"{_var(ins.operand(0))} = {_var(ins.operand(1))}",
    Opcode.GETGLOBAL: lambda ins, _t: f"local {_var(ins.operand(0))} = _G[K{ins.operand(1)}]",
    Opcode.SETGLOBAL: lambda ins, _t: f"_G[K{ins.operand(1)}] = {_var(ins.operand(0))}",
    Opcode.GETUPVAL: lambda ins, _t: f"local {_var(ins.operand(0))} = upvalue{ins.operand(1)}",
    Opcode.SETUPVAL: lambda ins, _t: f"upvalue{ins.operand(1)} = {_var(ins.operand(0))}",
    Opcode.GETIMPORT: lambda ins, _t: f"local {_var(ins.operand(0))} = import(K{ins.operand(1)})",
    Opcode.GETTABLE: lambda ins, _t: f"{_var(ins.operand(0))} = {_var(ins.operand(1))}[{_var(ins.operand(2))}]",
    Opcode.SETTABLE: lambda ins, _t: f"{_var(ins.operand(1))}[{_var(ins.operand(2))}] = {_var(ins.operand(0))}",
    Opcode.GETTABLEKS: lambda ins, _t: f"{_var(ins.operand(0))} = {_var(ins.operand(1))}[K{ins.operand(2)}]",
    Opcode.SETTABLEKS: lambda ins, _t: f"{_var(ins.operand(1))}[K{ins.operand(2)}] = {_var(ins.operand(0))}",
    Opcode.NEWTABLE: lambda ins, _t: f"local {_var(ins.operand(0))} = {{}}",
    Opcode.DUPTABLE: lambda ins, _t: f"local {_var(ins.operand(0))} = {{}}",
    Opcode.NEWCLOSURE: lambda ins, _t: f"local function closure{ins.operand(1)}()",
    Opcode.DUPCLOSURE: lambda ins, _t: f"local {_var(ins.operand(0))} = closure{ins.operand(1)}",
    Opcode.NAMECALL: _namecall,
    Opcode.CALL: _call,
    Opcode.FASTCALL: lambda ins, _t: f"builtin{ins.operand(0)}(...)",
    Opcode.RETURN: lambda ins, _t: "return result",
    Opcode.JUMP: lambda ins, target: f"goto {target}",
    Opcode.JUMPX: lambda ins, target: f"goto {target}",
    Opcode.JUMPBACK: lambda ins, target: f"goto {target}",
    Opcode.JUMPIF: lambda ins, target: f"if {_var(ins.operand(1))} then goto {target} end",
    Opcode.JUMPIFNOT: lambda ins, target: f"if not {_var(ins.operand(1))} then goto {target} end",
    Opcode.NOT: lambda ins, _t: f"{_var(ins.operand(0))} = not {_var(ins.operand(1))}",
    Opcode.MINUS: lambda ins, _t: f"{_var(ins.operand(0))} = -{_var(ins.operand(1))}",
    Opcode.LENGTH: lambda ins, _t: f"{_var(ins.operand(0))} = #{_var(ins.operand(1))}",
    Opcode.FORNPREP: lambda ins, _t: f"for {_var(ins.operand(0))} = start, limit, step do",
    Opcode.FORNLOOP: lambda ins, _t: "end",
    Opcode.FORGLOOP: lambda ins, _t: f"for {_var(ins.operand(0))} in iterator do",
    Opcode.FORGLOOP_INEXT: lambda ins, _t: "end",
    Opcode.GETVARARGS: lambda ins, _t: f"local {_var(ins.operand(0))} = ...",
    Opcode.COVERAGE: lambda ins, _t: f"-- line {ins.operand(0)}",
}

for _opcode, _symbol in _BINARY_OPERATORS.items():
    _TEMPLATES[_opcode] = (
        lambda ins, _t, symbol=_symbol: f"{_var(ins.operand(0))} = {_var(ins.operand(1))} {symbol} {_var(ins.operand(2))}"
    )

for _opcode, _symbol in _CONSTANT_OPERATORS.items():
    _TEMPLATES[_opcode] = (
        lambda ins, _t, symbol=_symbol: f"{_var(ins.operand(0))} = {_var(ins.operand(1))} {symbol} K{ins.operand(2)}"
    )

for _opcode, _symbol in _COMPARISONS.items():
    _TEMPLATES[_opcode] = (
        lambda ins, target, symbol=_symbol: (
            f"if {_var(ins.operand(1))} {symbol} {_var(ins.operand(2))} then goto {target} end"
        )
    )


def _fallback(instruction: Instruction) -> str:
    operands = ", ".join(str(value) for value in instruction.operands)
    return f"-- {instruction.opname} {operands}".rstrip()


def assign_labels(instructions: Sequence[Instruction]) -> Dict[int, str]:
    """Map every resolvable jump-target address to a fresh synthetic label.

    Labels are numbered ``label_1``, ``label_2``, … in address order so each
    target address owns exactly one label.
    """

    count = len(instructions)
    targets = set()
    for index, instruction in enumerate(instructions):
        target = jump_target(instruction, index, count)
        if target is not None:
            targets.add(instructions[target].address)

    labels: Dict[int, str] = {}
    for instruction in instructions:
        if instruction.address in targets and instruction.address not in labels:
            labels[instruction.address] = f"label_{len(labels) + 1}"
    return labels


class SourceReconstructor:
    """Render instructions as indented pseudo-source with goto labels."""

    def __init__(self, *, indent: str = INDENT) -> None:
        self._indent_unit = indent

    def reconstruct(self, instructions: Sequence[Instruction]) -> str:
        """Return the pseudo-source for ``instructions`` (``""`` when empty)."""

        if not instructions:
            return ""
        labels = assign_labels(instructions)

        lines: List[str] = []
        indent = 0
        count = len(instructions)
        for index, instruction in enumerate(instructions):
            label = labels.get(instruction.address)
            if label is not None:
                lines.append(f"::{label}::")

            if is_block_end(instruction.opcode):
                indent = max(0, indent - 1)

            target = jump_target(instruction, index, count)
            if target is not None:
                target_text = labels[instructions[target].address]
            else:
                target_text = f"address_{index + instruction.operand(0)}"
            lines.append(self._indent_unit * indent + self.render_instruction(instruction, target_text))

            if is_block_start(instruction.opcode):
                indent += 1
        return "\n".join(lines)

    @staticmethod
    def render_instruction(instruction: Instruction, target: str = "") -> str:
        template = _TEMPLATES.get(instruction.opcode)
        if template is None:
            return _fallback(instruction)
        return template(instruction, target)
