"""Script objects consumed by the pipeline and helpers around them."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .runtime_capture.reflection import ReflectionHook

LOG = logging.getLogger(__name__)

__all__ = [
    "SNAPSHOT_PROPERTIES",
    "SCRIPT_CLASSES",
    "is_script",
    "load_script_tree",
    "ScriptObject",
    "LuaScript",
    "content_hash",
    "resolve_text",
    "instance_metadata",
    "walk_scripts",
]

SNAPSHOT_PROPERTIES = ("Source", "Disabled", "RunContext")
SCRIPT_CLASSES = frozenset({"Script", "LocalScript", "ModuleScript"})
SCRIPT_SUFFIXES = (".lua", ".luau")


@runtime_checkable
class ScriptObject(Protocol):
    """Shape the pipeline expects from a host script instance."""

    name: str
    class_name: str

    @property
    def source(self) -> Optional[str]: ...

    @property
    def parent(self) -> Optional["ScriptObject"]: ...

    @property
    def properties(self) -> Mapping[str, Any]: ...

    @property
    def children(self) -> Sequence["ScriptObject"]: ...


@dataclass(eq=False)
class LuaScript:
    """Plain in-memory script instance.

    ``source`` is ``None`` when the host does not expose readable text; the
    pipeline then consults the reflection collaborator instead.
    """

    name: str
    source: Optional[str] = None
    class_name: str = "ModuleScript"
    parent: Optional["LuaScript"] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    children: List["LuaScript"] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path, *, class_name: str = "ModuleScript") -> "LuaScript":
        text = path.read_text(encoding="utf-8-sig", errors="replace")
        return cls(name=path.stem, source=text, class_name=class_name)

    def add_child(self, child: "LuaScript") -> "LuaScript":
        child.parent = self
        self.children.append(child)
        return child

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<LuaScript {self.class_name} {self.name!r}>"


def content_hash(text: str) -> str:
    """Return the cache key for ``text``."""

    return hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()


def resolve_text(script: Any, hook: "ReflectionHook | None" = None) -> Optional[str]:
    """Return the readable text of ``script`` or ``None`` when unavailable.

    The ``source`` property wins; otherwise the reflection collaborator is
    asked.  Collaborator failures are logged and treated as "no text".
    """

    source = getattr(script, "source", None)
    if isinstance(source, str):
        return source
    if hook is None:
        return None
    try:
        recovered = hook.read_source(script)
    except Exception as exc:
        LOG.debug("reflection source lookup failed for %r: %s", script, exc)
        return None
    if isinstance(recovered, str):
        return recovered
    return None


def instance_metadata(script: Any) -> Dict[str, Any]:
    """Snapshot of identifying properties handed to the display layer."""

    parent = getattr(script, "parent", None)
    metadata: Dict[str, Any] = {
        "ClassName": getattr(script, "class_name", type(script).__name__),
        "Name": getattr(script, "name", ""),
        "Parent": getattr(parent, "name", None) if parent is not None else "nil",
    }
    properties: Dict[str, Any] = {}
    raw_properties = getattr(script, "properties", None) or {}
    for key in SNAPSHOT_PROPERTIES:
        if key == "Source":
            value = getattr(script, "source", None)
            if value is None:
                value = raw_properties.get(key)
        else:
            value = raw_properties.get(key)
        if value is not None:
            properties[key] = value
    metadata["Properties"] = properties
    return metadata


def walk_scripts(root: Any, max_depth: int) -> Iterator[Tuple[Any, int]]:
    """Yield ``(instance, depth)`` pairs depth-first, stopping past ``max_depth``."""

    stack: List[Tuple[Any, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth:
            LOG.debug("traversal depth limit %d reached at %r", max_depth, node)
            continue
        yield node, depth
        children = getattr(node, "children", None) or ()
        for child in reversed(list(children)):
            stack.append((child, depth + 1))


def is_script(node: Any) -> bool:
    return getattr(node, "class_name", None) in SCRIPT_CLASSES


def load_script_tree(path: Path) -> LuaScript:
    """Mirror a directory as a ``Folder`` tree whose leaves are script files.

    Files ending in ``.server.lua`` become ``Script`` and ``.client.lua``
    become ``LocalScript``; any other ``.lua``/``.luau`` file is a
    ``ModuleScript``.
    """

    root = LuaScript(name=path.name, class_name="Folder")
    for entry in sorted(path.iterdir()):
        if entry.is_dir():
            root.add_child(load_script_tree(entry))
        elif entry.suffix in SCRIPT_SUFFIXES:
            stem = entry.name[: -len(entry.suffix)]
            class_name = "ModuleScript"
            if stem.endswith(".server"):
                class_name, stem = "Script", stem[: -len(".server")]
            elif stem.endswith(".client"):
                class_name, stem = "LocalScript", stem[: -len(".client")]
            script = LuaScript.from_path(entry, class_name=class_name)
            script.name = stem
            root.add_child(script)
    return root
