"""Backward live-variable analysis over a :class:`ControlFlowGraph`.

Every instruction is treated uniformly: the first operand is the slot it
writes and the remaining operands are the slots it reads.  Individual opcode
semantics are not modelled, so the resulting sets describe the synthesized
trace rather than the behaviour of any real Luau function.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Tuple

from .cfg_builder import BasicBlock, ControlFlowGraph
from .instruction import Instruction

LOG = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_MAX_ITERATIONS",
    "DataFlowInfo",
    "LivenessAnalyzer",
    "instruction_defs_uses",
]

DEFAULT_MAX_ITERATIONS = 100

_EMPTY: FrozenSet[int] = frozenset()


def instruction_defs_uses(instruction: Instruction) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    operands = instruction.operands
    if not operands:
        return (), ()
    return (operands[0],), tuple(operands[1:])


@dataclass(frozen=True)
class DataFlowInfo:
    """Per-block liveness tables keyed by block id."""

    definitions: Mapping[int, FrozenSet[int]]
    uses: Mapping[int, FrozenSet[int]]
    live_in: Mapping[int, FrozenSet[int]]
    live_out: Mapping[int, FrozenSet[int]]
    iterations: int = 0
    converged: bool = True
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def as_dict(self) -> Dict[str, Dict[str, List[int]]]:
        def _dump(table: Mapping[int, FrozenSet[int]]) -> Dict[str, List[int]]:
            return {str(block_id): sorted(values) for block_id, values in table.items()}

        return {
            "definitions": _dump(self.definitions),
            "uses": _dump(self.uses),
            "live_in": _dump(self.live_in),
            "live_out": _dump(self.live_out),
        }


class LivenessAnalyzer:
    """Iterative fixed-point liveness solver.

    ``max_iterations`` only guards against non-termination; a finite graph
    converges well before it.  When the cap is reached the best-effort sets
    are returned with ``converged=False``.
    """

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be positive")
        self.max_iterations = max_iterations

    def analyze(self, cfg: ControlFlowGraph) -> DataFlowInfo:
        definitions: Dict[int, FrozenSet[int]] = {}
        uses: Dict[int, FrozenSet[int]] = {}
        for block in cfg.blocks:
            definitions[block.id], uses[block.id] = self._block_summary(block)

        live_in: Dict[int, FrozenSet[int]] = {block.id: _EMPTY for block in cfg.blocks}
        live_out: Dict[int, FrozenSet[int]] = {block.id: _EMPTY for block in cfg.blocks}

        order = list(reversed(cfg.blocks))
        iterations = 0
        changed = bool(order)
        while changed and iterations < self.max_iterations:
            changed = False
            iterations += 1
            for block in order:
                new_out: FrozenSet[int] = _EMPTY.union(
                    *(live_in[succ] for succ in block.successors)
                )
                new_in = uses[block.id] | (new_out - definitions[block.id])
                # live_in is checked too: on a back edge it can grow while
                # every live_out visited so far is still unchanged.
                if new_out != live_out[block.id] or new_in != live_in[block.id]:
                    changed = True
                live_out[block.id] = new_out
                live_in[block.id] = new_in

        warnings: Tuple[str, ...] = ()
        converged = not changed
        if not converged:
            message = (
                f"liveness did not converge after {iterations} iterations; "
                "returning best-effort live sets"
            )
            LOG.warning(message)
            warnings = (message,)
        else:
            LOG.debug("liveness converged after %d iterations over %d blocks", iterations, len(cfg))

        return DataFlowInfo(
            definitions=MappingProxyType(definitions),
            uses=MappingProxyType(uses),
            live_in=MappingProxyType(live_in),
            live_out=MappingProxyType(live_out),
            iterations=iterations,
            converged=converged,
            warnings=warnings,
        )

    @staticmethod
    def _block_summary(block: BasicBlock) -> Tuple[FrozenSet[int], FrozenSet[int]]:
        defs: set[int] = set()
        reads: set[int] = set()
        for instruction in block.instructions:
            written, read = instruction_defs_uses(instruction)
            defs.update(written)
            reads.update(read)
        return frozenset(defs), frozenset(reads)
