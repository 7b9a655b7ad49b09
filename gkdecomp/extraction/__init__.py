"""Instruction extraction from script text."""

from __future__ import annotations

from .cascade import ExtractionCascade, ExtractionResult
from .strategies import (
    ExecutionTraceStrategy,
    ExtractionStrategy,
    PatternTaggingStrategy,
    SignatureScanStrategy,
    StrategyContext,
    StrategyKind,
    TokenSynthesisStrategy,
    default_strategies,
)

__all__ = [
    "ExecutionTraceStrategy",
    "ExtractionCascade",
    "ExtractionResult",
    "ExtractionStrategy",
    "PatternTaggingStrategy",
    "SignatureScanStrategy",
    "StrategyContext",
    "StrategyKind",
    "TokenSynthesisStrategy",
    "default_strategies",
]
