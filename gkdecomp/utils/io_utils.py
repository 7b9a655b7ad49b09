"""Writers for decompiled sources, DOT graphs and JSON reports.

Outputs are staged next to the destination and moved into place, so a reader
never observes a half-written file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Union

__all__ = ["write_text", "write_json"]

PathLike = Union[str, "os.PathLike[str]"]


def _replace_with(path: PathLike, content: str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    staged = target.with_name(f".{target.name}.partial")
    try:
        staged.write_text(content, encoding="utf-8")
        os.replace(staged, target)
    except OSError:
        staged.unlink(missing_ok=True)
        raise
    return target


def write_text(path: PathLike, content: str) -> Path:
    """Write rendered text, terminating non-empty content with a newline."""

    if content and not content.endswith("\n"):
        content += "\n"
    return _replace_with(path, content)


def write_json(path: PathLike, payload: Any) -> Path:
    """Write a decompilation report as indented JSON."""

    return _replace_with(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
