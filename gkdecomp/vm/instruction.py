"""Instruction records shared by extraction, graph building and rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from .opcodes import Opcode, opcode_name

__all__ = [
    "INSTRUCTION_STRIDE",
    "OPERAND_ARITY",
    "Instruction",
    "InstructionSpec",
    "assemble",
    "pad_operands",
]

INSTRUCTION_STRIDE = 4
OPERAND_ARITY = 3


def pad_operands(values: Iterable[int] = ()) -> Tuple[int, ...]:
    """Return ``values`` as a fixed-arity tuple, zero-filled on the right."""

    operands = tuple(int(value) for value in values)[:OPERAND_ARITY]
    return operands + (0,) * (OPERAND_ARITY - len(operands))


@dataclass(frozen=True)
class Instruction:
    """Single synthesized instruction.

    ``metadata`` records provenance (the strategy that produced the
    instruction and the source span it was derived from).  It is exposed as a
    read-only mapping and excluded from hashing.
    """

    opcode: Opcode
    operands: Tuple[int, ...]
    address: int
    size: int = INSTRUCTION_STRIDE
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "opcode", Opcode(self.opcode))
        object.__setattr__(self, "operands", tuple(int(value) for value in self.operands))
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def opname(self) -> str:
        return opcode_name(self.opcode)

    def operand(self, position: int, default: int = 0) -> int:
        if 0 <= position < len(self.operands):
            return self.operands[position]
        return default

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        operands = ", ".join(str(value) for value in self.operands)
        return f"<Instruction {self.address:04d} {self.opname} {operands}>"


@dataclass(frozen=True)
class InstructionSpec:
    """Address-less description of an instruction awaiting :func:`assemble`."""

    opcode: Opcode
    operands: Tuple[int, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)


def assemble(
    specs: Sequence[InstructionSpec],
    *,
    strategy: Optional[str] = None,
    limit: Optional[int] = None,
) -> Tuple[Instruction, ...]:
    """Assign sequential addresses to ``specs`` and freeze them.

    Addresses start at 0 and advance by :data:`INSTRUCTION_STRIDE` with no
    gaps.  ``limit`` truncates the sequence; ``strategy`` is stamped into every
    instruction's metadata.
    """

    if limit is not None:
        specs = specs[:limit]
    instructions = []
    for index, spec in enumerate(specs):
        metadata = dict(spec.metadata)
        if strategy is not None:
            metadata.setdefault("strategy", strategy)
        instructions.append(
            Instruction(
                opcode=spec.opcode,
                operands=pad_operands(spec.operands),
                address=index * INSTRUCTION_STRIDE,
                metadata=metadata,
            )
        )
    return tuple(instructions)
