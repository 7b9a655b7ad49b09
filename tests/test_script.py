from __future__ import annotations

from gkdecomp.runtime_capture.reflection import ReflectionHook, source_from_environment
from gkdecomp.script import (
    LuaScript,
    ScriptObject,
    content_hash,
    instance_metadata,
    is_script,
    load_script_tree,
    resolve_text,
    walk_scripts,
)


class EnvHook(ReflectionHook):
    def trace_lines(self, text, *, max_events, timeout):
        return []


class BrokenHook(EnvHook):
    def read_source(self, script):
        raise RuntimeError("reflection denied")


def test_lua_script_satisfies_protocol():
    assert isinstance(LuaScript("a"), ScriptObject)


def test_resolve_text_prefers_source_property():
    script = LuaScript("a", source="return 1", properties={"_source": "return 2"})
    assert resolve_text(script, EnvHook()) == "return 1"


def test_resolve_text_falls_back_to_reflection():
    script = LuaScript("a", properties={"_code": "return 2"})
    assert resolve_text(script) is None
    assert resolve_text(script, EnvHook()) == "return 2"


def test_resolve_text_swallows_hook_failures():
    assert resolve_text(LuaScript("a"), BrokenHook()) is None


def test_source_keys_are_checked_in_order():
    env = {"code": "second", "Source": "first", "source": ""}
    assert source_from_environment(env) == "first"
    assert source_from_environment({}) is None


def test_instance_metadata():
    parent = LuaScript("ServerScriptService", class_name="Folder")
    child = parent.add_child(LuaScript("Main", source="print(1)", class_name="Script", properties={"Disabled": False}))

    metadata = instance_metadata(child)
    assert metadata["ClassName"] == "Script"
    assert metadata["Name"] == "Main"
    assert metadata["Parent"] == "ServerScriptService"
    assert metadata["Properties"] == {"Source": "print(1)", "Disabled": False}
    assert instance_metadata(parent)["Parent"] == "nil"


def test_walk_scripts_respects_depth_limit():
    root = LuaScript("root", class_name="Folder")
    level1 = root.add_child(LuaScript("level1", class_name="Folder"))
    level2 = level1.add_child(LuaScript("level2"))
    level2.add_child(LuaScript("level3"))

    names = [(node.name, depth) for node, depth in walk_scripts(root, max_depth=2)]
    assert names == [("root", 0), ("level1", 1), ("level2", 2)]


def test_content_hash_is_sha256():
    digest = content_hash("return 1")
    assert len(digest) == 64
    assert digest == content_hash("return 1")
    assert digest != content_hash("return 2")


def test_load_script_tree(tmp_path):
    (tmp_path / "shared").mkdir()
    (tmp_path / "main.server.lua").write_text("print(1)", encoding="utf-8")
    (tmp_path / "ui.client.luau").write_text("print(2)", encoding="utf-8")
    (tmp_path / "shared" / "util.lua").write_text("return {}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    root = load_script_tree(tmp_path)
    scripts = {node.name: node for node, _depth in walk_scripts(root, 20) if is_script(node)}

    assert set(scripts) == {"main", "ui", "util"}
    assert scripts["main"].class_name == "Script"
    assert scripts["ui"].class_name == "LocalScript"
    assert scripts["util"].class_name == "ModuleScript"
    assert scripts["util"].parent.name == "shared"
    assert not is_script(root)
