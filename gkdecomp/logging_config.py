"""Logging helpers for console output and per-run analysis traces."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "setup_logging",
    "configure_debug_file_logger",
    "close_debug_logger",
]


def setup_logging(level: int = logging.INFO) -> None:
    """Configure console logging for command line runs."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_debug_file_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing analysis traces to ``path``.

    Any previously configured trace handlers on ``name`` are removed so repeated
    invocations replace earlier traces instead of appending to them.  The file
    is opened in text mode with UTF-8 encoding.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    _remove_trace_handlers(logger)

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._gkdecomp_trace = True  # type: ignore[attr-defined]
    if formatter is None:
        formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def close_debug_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by :func:`configure_debug_file_logger`."""

    _remove_trace_handlers(logger)


def _remove_trace_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, "_gkdecomp_trace", False):
            logger.removeHandler(handler)
            handler.close()
