from __future__ import annotations

import json

from gkdecomp.utils.io_utils import write_json, write_text


def test_write_text_creates_parents_and_terminates_lines(tmp_path):
    target = write_text(tmp_path / "out" / "script.lua", "return result")

    assert target.read_text(encoding="utf-8") == "return result\n"
    assert [path.name for path in target.parent.iterdir()] == ["script.lua"]


def test_write_text_keeps_empty_source_empty(tmp_path):
    target = write_text(tmp_path / "empty.lua", "")
    assert target.read_text(encoding="utf-8") == ""


def test_write_json_replaces_existing_report(tmp_path):
    path = tmp_path / "report.json"
    path.write_text("stale", encoding="utf-8")

    write_json(path, {"source": "", "warnings": ["no instructions available"]})
    assert json.loads(path.read_text(encoding="utf-8"))["warnings"] == ["no instructions available"]
