"""Custom exception hierarchy for the decompiler."""

from __future__ import annotations


class DecompilerError(Exception):
    """Base class for all decompilation related errors."""


class ConfigError(DecompilerError):
    """Raised when an options record contains invalid values."""


class ExtractionError(DecompilerError):
    """Raised by a single extraction strategy that cannot derive instructions."""


class ReflectionError(ExtractionError):
    """Raised when the reflection collaborator fails or times out."""


__all__ = ["DecompilerError", "ConfigError", "ExtractionError", "ReflectionError"]
