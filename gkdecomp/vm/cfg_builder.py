"""Control-flow graph builder for synthesized instruction traces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .instruction import Instruction
from .opcode_constants import is_jump, is_return, is_unconditional

__all__ = [
    "BasicBlock",
    "ControlFlowGraph",
    "CFGBuilder",
    "jump_target",
]


def jump_target(instruction: Instruction, index: int, count: int) -> Optional[int]:
    """Return the instruction index a jump at ``index`` transfers control to.

    The target is ``index`` plus the signed offset stored in the first
    operand.  ``None`` is returned for non-jumps and for targets outside
    ``[0, count)``.
    """

    if not is_jump(instruction.opcode):
        return None
    target = index + instruction.operand(0)
    if target < 0 or target >= count:
        return None
    return target


@dataclass(frozen=True)
class BasicBlock:
    """Contiguous straight-line run of instructions.

    Edges are stored as block ids into the owning graph's arena.
    """

    id: int
    instructions: Tuple[Instruction, ...]
    start_index: int
    end_index: int
    predecessors: Tuple[int, ...] = ()
    successors: Tuple[int, ...] = ()

    @property
    def start_address(self) -> int:
        return self.instructions[0].address

    @property
    def end_address(self) -> int:
        return self.instructions[-1].address

    @property
    def last(self) -> Instruction:
        return self.instructions[-1]

    def __len__(self) -> int:
        return len(self.instructions)

    def contains_address(self, address: int) -> bool:
        return self.start_address <= address <= self.end_address


@dataclass(frozen=True)
class ControlFlowGraph:
    blocks: Tuple[BasicBlock, ...]
    entry: Optional[int]
    exits: Tuple[int, ...]

    def block(self, block_id: int) -> BasicBlock:
        return self.blocks[block_id]

    @property
    def entry_block(self) -> Optional[BasicBlock]:
        if self.entry is None:
            return None
        return self.blocks[self.entry]

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    @property
    def instruction_count(self) -> int:
        return sum(len(block) for block in self.blocks)

    def block_for_address(self, address: int) -> Optional[BasicBlock]:
        for block in self.blocks:
            if block.contains_address(address):
                return block
        return None

    def edges(self) -> List[Tuple[int, int]]:
        return [(block.id, succ) for block in self.blocks for succ in block.successors]

    def __len__(self) -> int:
        return len(self.blocks)


class CFGBuilder:
    """Partition an instruction sequence into basic blocks and link them."""

    def __init__(self, instructions: Sequence[Instruction]) -> None:
        self._instructions = tuple(instructions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self) -> ControlFlowGraph:
        if not self._instructions:
            return ControlFlowGraph(blocks=(), entry=None, exits=())
        leaders = self._collect_leaders()
        ranges, block_for_index = self._partition(leaders)
        successors = self._link_successors(ranges, block_for_index)
        predecessors: Dict[int, List[int]] = {block_id: [] for block_id in range(len(ranges))}
        for block_id, succs in enumerate(successors):
            for succ in succs:
                predecessors[succ].append(block_id)

        blocks = tuple(
            BasicBlock(
                id=block_id,
                instructions=self._instructions[start : end + 1],
                start_index=start,
                end_index=end,
                predecessors=tuple(predecessors[block_id]),
                successors=tuple(successors[block_id]),
            )
            for block_id, (start, end) in enumerate(ranges)
        )
        exits = tuple(block.id for block in blocks if not block.successors)
        return ControlFlowGraph(blocks=blocks, entry=0, exits=exits)

    # ------------------------------------------------------------------
    # Block construction helpers
    # ------------------------------------------------------------------

    def _collect_leaders(self) -> List[int]:
        count = len(self._instructions)
        leaders: Set[int] = {0}
        for index, instruction in enumerate(self._instructions):
            next_index = index + 1
            if is_jump(instruction.opcode):
                target = jump_target(instruction, index, count)
                if target is not None:
                    leaders.add(target)
                if next_index < count:
                    leaders.add(next_index)
            elif is_return(instruction.opcode) and next_index < count:
                leaders.add(next_index)
        return sorted(leaders)

    def _partition(
        self, leaders: Iterable[int]
    ) -> Tuple[List[Tuple[int, int]], Dict[int, int]]:
        starts = list(leaders)
        ranges: List[Tuple[int, int]] = []
        block_for_index: Dict[int, int] = {}
        for block_id, start in enumerate(starts):
            if block_id + 1 < len(starts):
                end = starts[block_id + 1] - 1
            else:
                end = len(self._instructions) - 1
            ranges.append((start, end))
            for index in range(start, end + 1):
                block_for_index[index] = block_id
        return ranges, block_for_index

    def _link_successors(
        self, ranges: Sequence[Tuple[int, int]], block_for_index: Dict[int, int]
    ) -> List[List[int]]:
        count = len(self._instructions)
        successors: List[List[int]] = []
        for block_id, (_start, end) in enumerate(ranges):
            last = self._instructions[end]
            succs: List[int] = []
            if is_jump(last.opcode):
                target = jump_target(last, end, count)
                if target is not None:
                    succs.append(block_for_index[target])
            if not is_unconditional(last.opcode) and block_id + 1 < len(ranges):
                fallthrough = block_id + 1
                if fallthrough not in succs:
                    succs.append(fallthrough)
            successors.append(succs)
        return successors
