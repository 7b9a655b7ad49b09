"""Control-flow graph visualisation helpers.

Converts a :class:`~gkdecomp.vm.cfg_builder.ControlFlowGraph` into DOT text
and, when Graphviz is installed, an SVG image.  Node labels list the address
range and the opcodes of each block so the graph can be read without the
instruction dump next to it.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from ..utils.io_utils import write_text
from ..vm.cfg_builder import BasicBlock, ControlFlowGraph
from ..vm.dataflow import DataFlowInfo

LOGGER = logging.getLogger(__name__)

__all__ = ["render_cfg_dot", "write_cfg_visualisation"]

MAX_LABEL_OPS = 12


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\"", "\\\"")


def _summarise_block(block: BasicBlock, dataflow: Optional[DataFlowInfo]) -> List[str]:
    lines = [f"block {block.id}", f"range: {block.start_address}-{block.end_address}"]
    for instruction in block.instructions[:MAX_LABEL_OPS]:
        operands = " ".join(str(value) for value in instruction.operands)
        lines.append(f"{instruction.address:04d} {instruction.opname} {operands}".rstrip())
    hidden = len(block.instructions) - MAX_LABEL_OPS
    if hidden > 0:
        lines.append(f"... {hidden} more")
    if dataflow is not None:
        live_in = sorted(dataflow.live_in.get(block.id, ()))
        live_out = sorted(dataflow.live_out.get(block.id, ()))
        lines.append("live in: " + (", ".join(str(slot) for slot in live_in) or "-"))
        lines.append("live out: " + (", ".join(str(slot) for slot in live_out) or "-"))
    return lines


def render_cfg_dot(
    cfg: ControlFlowGraph,
    *,
    title: Optional[str] = None,
    dataflow: Optional[DataFlowInfo] = None,
) -> str:
    """Render *cfg* as DOT text."""

    lines = ["digraph CFG {"]
    lines.append("  graph [rankdir=TB, splines=true, nodesep=0.6, fontname=Helvetica, fontsize=10];")
    lines.append("  node [shape=box, style=rounded, fontname=Helvetica, fontsize=9, align=left];")
    lines.append("  edge [fontname=Helvetica, fontsize=8];")
    if title:
        lines.append(f'  label="{_escape_label(title)}";')
        lines.append("  labelloc=\"t\";")
    exits = set(cfg.exits)
    for block in cfg.blocks:
        label_text = "\\l".join(_escape_label(line) for line in _summarise_block(block, dataflow)) + "\\l"
        attrs: List[str] = [f'label="{label_text}"']
        if block.id == cfg.entry:
            attrs.extend(["peripheries=2", "shape=doubleoctagon"])
        elif block.id in exits:
            attrs.append("color=\"#b0413e\"")
        lines.append(f'  "b{block.id}" [' + ", ".join(attrs) + "];")
        fallthrough = block.id + 1
        for successor in block.successors:
            style = " [style=dashed]" if successor == fallthrough and len(block.successors) > 1 else ""
            lines.append(f'  "b{block.id}" -> "b{successor}"{style};')
    lines.append("}")
    return "\n".join(lines) + "\n"


def _try_render_with_graphviz(dot: str, destination: Path) -> bool:
    dot_exec = shutil.which("dot")
    if not dot_exec:
        return False
    try:
        proc = subprocess.run(
            [dot_exec, "-Tsvg"],
            input=dot.encode("utf-8"),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:  # pragma: no cover - environment specific
        LOGGER.debug("dot command failed: %s", exc)
        return False
    destination.write_bytes(proc.stdout)
    return True


def write_cfg_visualisation(
    cfg: ControlFlowGraph,
    dot_path: Path,
    *,
    title: Optional[str] = None,
    dataflow: Optional[DataFlowInfo] = None,
    svg: bool = False,
) -> Tuple[Path, Optional[Path]]:
    """Write the DOT text for *cfg* (and optionally an SVG) and return the paths."""

    dot_text = render_cfg_dot(cfg, title=title, dataflow=dataflow)
    write_text(dot_path, dot_text)
    if not svg:
        return dot_path, None
    svg_path = dot_path.with_suffix(".svg")
    if not _try_render_with_graphviz(dot_text, svg_path):
        LOGGER.info("graphviz 'dot' not available; skipping %s", svg_path)
        return dot_path, None
    return dot_path, svg_path
