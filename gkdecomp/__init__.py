"""Decompile Luau scripts into readable pseudo-source.

The public surface is :class:`DecompilerPipeline`; the stages it chains are
available from the :mod:`gkdecomp.extraction` and :mod:`gkdecomp.vm`
subpackages.
"""

from __future__ import annotations

from .cache import AnalysisCache
from .config import DecompilerConfig
from .exceptions import ConfigError, DecompilerError, ExtractionError, ReflectionError
from .pipeline import DecompilationResult, DecompilerPipeline
from .script import LuaScript

__version__ = "0.1.0"

__all__ = [
    "AnalysisCache",
    "ConfigError",
    "DecompilationResult",
    "DecompilerConfig",
    "DecompilerError",
    "DecompilerPipeline",
    "ExtractionError",
    "LuaScript",
    "ReflectionError",
    "__version__",
]
