"""Ordered fallback over the extraction strategies, memoised by content hash."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple

from ..cache import AnalysisCache
from ..config import DecompilerConfig
from ..runtime_capture.reflection import ReflectionHook
from ..script import content_hash, resolve_text
from ..vm.instruction import Instruction
from .strategies import ExtractionStrategy, StrategyContext, StrategyKind, default_strategies

LOG = logging.getLogger(__name__)

__all__ = ["ExtractionCascade", "ExtractionResult", "NO_INSTRUCTIONS"]

NO_INSTRUCTIONS = "no instructions available"


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of running the cascade on one script."""

    instructions: Tuple[Instruction, ...]
    strategy: Optional[StrategyKind] = None
    content_hash: Optional[str] = None
    failures: Dict[str, str] = field(default_factory=dict)
    cached: bool = False

    @property
    def available(self) -> bool:
        return bool(self.instructions)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "content_hash": self.content_hash,
            "instruction_count": len(self.instructions),
            "failures": dict(self.failures),
            "cached": self.cached,
        }


class ExtractionCascade:
    """Try each strategy in order and keep the first non-empty result.

    A strategy that raises is a soft failure: the exception is logged at
    DEBUG level, recorded on the result and the next strategy is attempted.
    Results, including the empty all-failed result, are cached under the
    SHA-256 of the script text so a repeated request never re-runs a strategy.
    """

    CACHE_NAMESPACE = "instructions"

    def __init__(
        self,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
        *,
        cache: Optional[AnalysisCache] = None,
        config: Optional[DecompilerConfig] = None,
        hook: Optional[ReflectionHook] = None,
    ) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.cache = cache if cache is not None else AnalysisCache()
        self.config = config or DecompilerConfig()
        self.hook = hook

    def extract(self, script: Any) -> ExtractionResult:
        text = resolve_text(script, self.hook)
        if text is None:
            LOG.debug("no readable text for %r", script)
            return ExtractionResult(instructions=(), failures={"source": NO_INSTRUCTIONS})
        return self.extract_text(text, script=script)

    def extract_text(self, text: str, *, script: Any = None) -> ExtractionResult:
        key = content_hash(text)
        computed = []

        def _compute() -> ExtractionResult:
            computed.append(True)
            return self._run(text, key, script)

        result = self.cache.get_or_compute(self.CACHE_NAMESPACE, key, _compute)
        if not computed:
            return replace(result, cached=True)
        return result

    def _run(self, text: str, key: str, script: Any) -> ExtractionResult:
        context = StrategyContext(config=self.config, hook=self.hook, script=script)
        failures: Dict[str, str] = {}
        for strategy in self.strategies:
            name = strategy.kind.value
            if not strategy.is_enabled(context):
                failures[name] = "disabled"
                continue
            try:
                instructions = tuple(strategy.derive(text, context))
            except Exception as exc:
                LOG.debug("strategy %s failed: %s", name, exc)
                failures[name] = str(exc) or type(exc).__name__
                continue
            if not instructions:
                failures[name] = "no instructions"
                continue
            LOG.debug("strategy %s produced %d instructions", name, len(instructions))
            return ExtractionResult(
                instructions=instructions,
                strategy=strategy.kind,
                content_hash=key,
                failures=failures,
            )
        LOG.info("all extraction strategies failed for content %s", key[:12])
        return ExtractionResult(instructions=(), content_hash=key, failures=failures)
