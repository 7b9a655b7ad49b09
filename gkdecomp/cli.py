"""Command line entry point for the decompiler."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import DecompilerConfig
from .exceptions import ConfigError
from .logging_config import close_debug_logger, configure_debug_file_logger, setup_logging
from .pipeline import DecompilationResult, DecompilerPipeline
from .runtime_capture import LuaTraceHook
from .script import LuaScript, load_script_tree
from .tools.visualize_cfg_dot import write_cfg_visualisation
from .utils.io_utils import write_json, write_text

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_INSTRUCTIONS = 1
EXIT_BAD_INPUT = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gkdecomp", description="Luau script decompiler")
    sub = parser.add_subparsers(dest="command", required=True)

    decompile = sub.add_parser("decompile", help="Decompile a script file or a directory of scripts")
    decompile.add_argument("path", type=Path, help="Lua/Luau file, or a directory walked as a script tree")
    decompile.add_argument("--deep", action="store_true", help="enable execution tracing through lupa")
    decompile.add_argument("--max-iterations", type=int, help="liveness iteration cap (default: 100)")
    decompile.add_argument("--max-depth", type=int, help="directory traversal depth limit (default: 20)")
    decompile.add_argument("--config", type=Path, help="JSON file with decompiler options")
    decompile.add_argument("--json", action="store_true", help="emit a JSON report instead of source")
    decompile.add_argument("-o", "--out", type=Path, help="write the output to this path instead of stdout")
    decompile.add_argument("--dot", type=Path, help="write the control-flow graph as DOT (single file input)")
    decompile.add_argument("--debug-log", type=Path, help="write a DEBUG trace of the run to this file")
    decompile.add_argument("-v", "--verbose", action="store_true", help="log progress to stderr")
    return parser


def _load_config(args: argparse.Namespace) -> DecompilerConfig:
    config = DecompilerConfig.from_file(args.config) if args.config else DecompilerConfig()
    return config.with_overrides(
        deep_analysis=True if args.deep else None,
        max_iterations=args.max_iterations,
        max_depth=args.max_depth,
    )


def _render_sources(results: Sequence[DecompilationResult]) -> str:
    if len(results) == 1:
        return results[0].source
    sections: List[str] = []
    for result in results:
        sections.append(f"-- {result.metadata.get('ClassName')} {result.metadata.get('Name')}")
        sections.append(result.source)
        sections.append("")
    return "\n".join(sections)


def _run_decompile(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
    except ConfigError as exc:
        LOG.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    path: Path = args.path
    try:
        if path.is_dir():
            root = load_script_tree(path)
            single = None
        else:
            single = LuaScript.from_path(path)
    except OSError as exc:
        print(f"error: cannot read {path}: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    hook = LuaTraceHook() if config.deep_analysis else None
    pipeline = DecompilerPipeline(config, hook=hook)
    if single is not None:
        results = [pipeline.decompile(single)]
    else:
        results = pipeline.decompile_tree(root)

    if args.json:
        payload = results[0].to_dict() if single is not None else [result.to_dict() for result in results]
        if args.out:
            write_json(args.out, payload)
        else:
            print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        text = _render_sources(results)
        if args.out:
            write_text(args.out, text)
        else:
            print(text)

    if args.dot:
        if single is None:
            LOG.warning("--dot is only supported for single file input")
        elif results[0].cfg is not None:
            write_cfg_visualisation(results[0].cfg, args.dot, title=path.name, dataflow=results[0].dataflow)

    LOG.debug("cache stats: %s", pipeline.cache.stats.as_dict())
    if not any(result.ok for result in results):
        return EXIT_NO_INSTRUCTIONS
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        setup_logging(logging.INFO)

    trace_logger: Optional[logging.Logger] = None
    if args.debug_log:
        trace_logger = configure_debug_file_logger("gkdecomp", args.debug_log)
    try:
        if args.command == "decompile":
            return _run_decompile(args)
    finally:
        if trace_logger is not None:
            close_debug_logger(trace_logger)

    parser.error("Unhandled command")
    return EXIT_BAD_INPUT


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
