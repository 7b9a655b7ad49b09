from __future__ import annotations

import json

from gkdecomp.config import DecompilerConfig
from gkdecomp.extraction.strategies import StrategyKind, TokenSynthesisStrategy
from gkdecomp.pipeline import PLACEHOLDER_SOURCE, SOURCE_NAMESPACE, DecompilerPipeline
from gkdecomp.script import LuaScript, content_hash

SAMPLE = "if x then\n  print(1)\nend\nreturn\n"


def _pipeline(**config) -> DecompilerPipeline:
    return DecompilerPipeline(DecompilerConfig(**config), strategies=[TokenSynthesisStrategy()])


def test_decompile_runs_every_stage():
    result = _pipeline().decompile(LuaScript("Sample", source=SAMPLE, class_name="Script"))

    assert result.ok
    assert result.strategy is StrategyKind.TOKEN_SYNTHESIS
    assert len(result.instructions) == 6
    assert [(block.start_index, block.end_index) for block in result.cfg.blocks] == [(0, 0), (1, 4), (5, 5)]
    assert result.dataflow.converged
    assert result.warnings == []
    assert result.source.splitlines()[0] == "if var0 then goto label_1 end"
    assert "::label_1::" in result.source
    assert result.metadata["ClassName"] == "Script"


def test_reconstructed_source_is_cached_by_content():
    pipeline = _pipeline()
    first = pipeline.decompile(LuaScript("a", source=SAMPLE))
    second = pipeline.decompile(LuaScript("b", source=SAMPLE))

    assert pipeline.cache.contains(SOURCE_NAMESPACE, content_hash(SAMPLE))
    assert second.extraction.cached
    assert first.source == second.source


def test_missing_text_degrades_to_placeholder():
    result = _pipeline().decompile(LuaScript("Hidden"))

    assert not result.ok
    assert result.source == PLACEHOLDER_SOURCE
    assert result.cfg is None
    assert result.warnings == ["no instructions available"]


def test_empty_source_runs_every_stage():
    result = DecompilerPipeline().decompile(LuaScript("e", source=""))

    assert not result.ok
    assert result.instructions == ()
    assert result.source == ""
    assert result.cfg.is_empty
    assert result.cfg.entry is None
    assert not result.dataflow.live_in
    assert result.dataflow.converged
    assert result.warnings == ["no instructions available"]


def test_iteration_cap_surfaces_as_warning():
    result = _pipeline(max_iterations=1).decompile(LuaScript("a", source=SAMPLE))
    assert result.ok
    assert not result.dataflow.converged
    assert any("did not converge" in warning for warning in result.warnings)


def test_decompile_tree_skips_containers_and_deep_nodes():
    root = LuaScript("game", class_name="Folder")
    service = root.add_child(LuaScript("ReplicatedStorage", class_name="Folder"))
    service.add_child(LuaScript("Shallow", source="return 1"))
    deep = service.add_child(LuaScript("Nested", class_name="Folder"))
    deep.add_child(LuaScript("Deep", source="return 2"))

    results = _pipeline(max_depth=2).decompile_tree(root)
    assert [result.metadata["Name"] for result in results] == ["Shallow"]


def test_to_dict_is_serialisable():
    result = _pipeline().decompile(LuaScript("a", source=SAMPLE))
    payload = json.loads(json.dumps(result.to_dict()))

    assert payload["strategy"] == "token_synthesis"
    assert payload["instruction_count"] == 6
    assert payload["instructions"][0]["opcode"] == "JUMPIF"
    assert payload["cfg"]["entry"] == 0
    assert payload["dataflow"]["converged"] is True
    assert payload["extraction"]["cached"] is False
