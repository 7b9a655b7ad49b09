"""End-to-end decompilation of script objects.

The pipeline chains the extraction cascade, the CFG builder, the liveness
analyzer and the source reconstructor.  Analysis problems never escape: a
script whose text cannot be read yields a result carrying a placeholder
source, and readable text that produces no instructions still runs every
stage over the empty sequence (a 0-block graph and an empty source).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cache import AnalysisCache
from .config import DecompilerConfig
from .extraction.cascade import NO_INSTRUCTIONS, ExtractionCascade, ExtractionResult
from .extraction.strategies import ExtractionStrategy, StrategyKind
from .runtime_capture.reflection import ReflectionHook
from .script import instance_metadata, is_script, walk_scripts
from .vm.cfg_builder import CFGBuilder, ControlFlowGraph
from .vm.dataflow import DataFlowInfo, LivenessAnalyzer
from .vm.instruction import Instruction
from .vm.reconstruct import SourceReconstructor

LOG = logging.getLogger(__name__)

__all__ = ["DecompilationResult", "DecompilerPipeline", "PLACEHOLDER_SOURCE"]

PLACEHOLDER_SOURCE = f"-- {NO_INSTRUCTIONS}"

SOURCE_NAMESPACE = "source"


@dataclass
class DecompilationResult:
    """Everything produced for a single script."""

    source: str
    metadata: Dict[str, Any]
    instructions: Tuple[Instruction, ...] = ()
    cfg: Optional[ControlFlowGraph] = None
    dataflow: Optional[DataFlowInfo] = None
    strategy: Optional[StrategyKind] = None
    warnings: List[str] = field(default_factory=list)
    extraction: Optional[ExtractionResult] = None
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.instructions)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "metadata": self.metadata,
            "strategy": self.strategy.value if self.strategy else None,
            "instruction_count": len(self.instructions),
            "instructions": [
                {"address": ins.address, "opcode": ins.opname, "operands": list(ins.operands)}
                for ins in self.instructions
            ],
            "source": self.source,
            "warnings": list(self.warnings),
        }
        if self.cfg is not None:
            payload["cfg"] = {
                "entry": self.cfg.entry,
                "exits": list(self.cfg.exits),
                "blocks": [
                    {
                        "id": block.id,
                        "start": block.start_address,
                        "end": block.end_address,
                        "successors": list(block.successors),
                        "predecessors": list(block.predecessors),
                    }
                    for block in self.cfg.blocks
                ],
            }
        if self.dataflow is not None:
            payload["dataflow"] = dict(
                self.dataflow.as_dict(),
                iterations=self.dataflow.iterations,
                converged=self.dataflow.converged,
            )
        if self.extraction is not None:
            payload["extraction"] = self.extraction.as_dict()
        if self.timings:
            payload["timings"] = {name: round(value, 6) for name, value in self.timings.items()}
        return payload


class DecompilerPipeline:
    """Run every analysis stage over script objects, sharing one cache."""

    def __init__(
        self,
        config: Optional[DecompilerConfig] = None,
        *,
        cache: Optional[AnalysisCache] = None,
        hook: Optional[ReflectionHook] = None,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
    ) -> None:
        self.config = config or DecompilerConfig()
        self.cache = cache if cache is not None else AnalysisCache()
        self.hook = hook
        self.cascade = ExtractionCascade(strategies, cache=self.cache, config=self.config, hook=hook)
        self.analyzer = LivenessAnalyzer(max_iterations=self.config.max_iterations)
        self.reconstructor = SourceReconstructor()

    def decompile(self, script: Any) -> DecompilationResult:
        metadata = instance_metadata(script)
        timings: Dict[str, float] = {}

        start = time.perf_counter()
        extraction = self.cascade.extract(script)
        timings["extract"] = time.perf_counter() - start

        if extraction.content_hash is None:
            LOG.info("no readable text for %s", metadata.get("Name") or script)
            return DecompilationResult(
                source=PLACEHOLDER_SOURCE,
                metadata=metadata,
                warnings=[NO_INSTRUCTIONS],
                extraction=extraction,
                timings=timings,
            )

        instructions = extraction.instructions
        warnings: List[str] = []
        if not extraction.available:
            LOG.info("no instructions available for %s", metadata.get("Name") or script)
            warnings.append(NO_INSTRUCTIONS)

        start = time.perf_counter()
        cfg = CFGBuilder(instructions).build()
        timings["cfg"] = time.perf_counter() - start

        start = time.perf_counter()
        dataflow = self.analyzer.analyze(cfg)
        timings["dataflow"] = time.perf_counter() - start
        warnings.extend(dataflow.warnings)

        start = time.perf_counter()
        if extraction.content_hash is not None:
            source = self.cache.get_or_compute(
                SOURCE_NAMESPACE,
                extraction.content_hash,
                lambda: self.reconstructor.reconstruct(instructions),
            )
        else:
            source = self.reconstructor.reconstruct(instructions)
        timings["reconstruct"] = time.perf_counter() - start

        LOG.info(
            "decompiled %s via %s (ops=%d, blocks=%d, iterations=%d)",
            metadata.get("Name") or script,
            extraction.strategy.value if extraction.strategy else "?",
            len(instructions),
            len(cfg),
            dataflow.iterations,
        )
        return DecompilationResult(
            source=source,
            metadata=metadata,
            instructions=instructions,
            cfg=cfg,
            dataflow=dataflow,
            strategy=extraction.strategy,
            warnings=warnings,
            extraction=extraction,
            timings=timings,
        )

    def decompile_tree(self, root: Any) -> List[DecompilationResult]:
        """Decompile every script reachable from ``root`` within ``max_depth``.

        Containers (anything whose class is not a script class) are walked but
        not decompiled themselves.
        """

        results: List[DecompilationResult] = []
        for node, depth in walk_scripts(root, self.config.max_depth):
            if not is_script(node):
                continue
            LOG.debug("decompiling %r at depth %d", node, depth)
            results.append(self.decompile(node))
        return results
