from __future__ import annotations

import logging
from typing import List, Optional

from gkdecomp.cache import AnalysisCache
from gkdecomp.extraction.cascade import NO_INSTRUCTIONS, ExtractionCascade
from gkdecomp.extraction.strategies import ExtractionStrategy, StrategyKind
from gkdecomp.script import LuaScript, content_hash
from gkdecomp.vm.instruction import InstructionSpec, assemble
from gkdecomp.vm.opcodes import Opcode


class CountingStrategy(ExtractionStrategy):
    def __init__(self, kind: StrategyKind, *, produce: int = 1, error: Optional[Exception] = None) -> None:
        self.kind = kind
        self.produce = produce
        self.error = error
        self.calls = 0

    def derive(self, text, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return assemble([InstructionSpec(Opcode.NOP) for _ in range(self.produce)], strategy=self.kind.value)


def _cascade(*strategies: ExtractionStrategy, cache: Optional[AnalysisCache] = None) -> ExtractionCascade:
    return ExtractionCascade(list(strategies), cache=cache)


def test_first_successful_strategy_wins():
    first = CountingStrategy(StrategyKind.PATTERN_TAGGING, produce=2)
    second = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    result = _cascade(first, second).extract(LuaScript("a", source="print(1)"))

    assert result.strategy is StrategyKind.PATTERN_TAGGING
    assert len(result.instructions) == 2
    assert second.calls == 0


def test_raising_strategy_is_a_soft_failure(caplog):
    failing = CountingStrategy(StrategyKind.PATTERN_TAGGING, error=RuntimeError("boom"))
    fallback = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    with caplog.at_level(logging.DEBUG, logger="gkdecomp.extraction.cascade"):
        result = _cascade(failing, fallback).extract(LuaScript("a", source="x()"))

    assert result.strategy is StrategyKind.TOKEN_SYNTHESIS
    assert result.failures == {"pattern_tagging": "boom"}
    assert any("boom" in record.getMessage() for record in caplog.records)


def test_empty_output_counts_as_failure():
    empty = CountingStrategy(StrategyKind.SIGNATURE_SCAN, produce=0)
    fallback = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    result = _cascade(empty, fallback).extract(LuaScript("a", source="x()"))
    assert result.strategy is StrategyKind.TOKEN_SYNTHESIS
    assert result.failures["signature_scan"] == "no instructions"


def test_repeated_extraction_hits_the_cache():
    strategy = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    cascade = _cascade(strategy)
    script = LuaScript("a", source="return 1")

    first = cascade.extract(script)
    second = cascade.extract(script)

    assert strategy.calls == 1
    assert not first.cached
    assert second.cached
    assert first.instructions == second.instructions
    assert second.content_hash == content_hash("return 1")


def test_identical_text_shares_cached_result():
    strategy = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    cascade = _cascade(strategy)
    cascade.extract(LuaScript("a", source="return 1"))
    result = cascade.extract(LuaScript("b", source="return 1"))
    assert strategy.calls == 1
    assert result.cached


def test_total_failure_is_empty_and_cached():
    failing: List[CountingStrategy] = [
        CountingStrategy(kind, error=ValueError(kind.value)) for kind in StrategyKind
    ]
    cascade = _cascade(*failing)
    result = cascade.extract(LuaScript("a", source="???"))

    assert result.instructions == ()
    assert result.strategy is None
    assert not result.available
    assert set(result.failures) == {kind.value for kind in StrategyKind}

    cascade.extract(LuaScript("a", source="???"))
    assert all(strategy.calls == 1 for strategy in failing)


def test_missing_text_yields_no_instructions():
    strategy = CountingStrategy(StrategyKind.TOKEN_SYNTHESIS)
    result = _cascade(strategy).extract(LuaScript("hidden"))

    assert not result.available
    assert result.failures == {"source": NO_INSTRUCTIONS}
    assert strategy.calls == 0


def test_default_strategies_on_empty_text():
    result = ExtractionCascade().extract(LuaScript("blank", source=""))
    assert result.instructions == ()
    assert result.strategy is None
    assert result.failures["execution_trace"] == "disabled"


def test_default_strategies_fall_back_to_token_synthesis():
    # ``local`` without a name does not parse, so pattern tagging declines.
    result = ExtractionCascade().extract(LuaScript("broken", source="local = = 1 print("))
    assert result.strategy is StrategyKind.TOKEN_SYNTHESIS
    assert "pattern_tagging" in result.failures
    assert result.available
