"""Stable constants shared across the parser, archive, and materializer."""

from __future__ import annotations

from typing import Final

# Schema version for persisted config.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Marker-prefixed format sentinel.
FILE_MARKER: Final[str] = ">>> FILE:"

# Root naming.
DEFAULT_ROOT_NAME: Final[str] = "Project"
MAX_ROOT_NAME_LENGTH: Final[int] = 100

# Parser limits.
DEFAULT_MIN_FALLBACK_CHARS: Final[int] = 50
DEFAULT_MAX_INPUT_BYTES: Final[int] = 8 * 1024 * 1024
DEFAULT_MAX_FILES: Final[int] = 2000
EXCERPT_CHARS: Final[int] = 1000
FALLBACK_FILE_NAME: Final[str] = "output.txt"

# Archive defaults.
DEFAULT_COMPRESS_LEVEL: Final[int] = 6
DEFAULT_BUFFER_SIZE: Final[int] = 8192
ARCHIVE_SUFFIX: Final[str] = ".zip"

# Strategy names in precedence order.
STRATEGY_MARKER: Final[str] = "marker"
STRATEGY_INDENTED: Final[str] = "indented"
STRATEGY_FENCED: Final[str] = "fenced"
STRATEGY_HEURISTIC: Final[str] = "heuristic"
STRATEGY_ORDER: Final[tuple[str, ...]] = (
    STRATEGY_MARKER,
    STRATEGY_INDENTED,
    STRATEGY_FENCED,
    STRATEGY_HEURISTIC,
)

__all__ = [
    "ARCHIVE_SUFFIX",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_COMPRESS_LEVEL",
    "DEFAULT_MAX_FILES",
    "DEFAULT_MAX_INPUT_BYTES",
    "DEFAULT_MIN_FALLBACK_CHARS",
    "DEFAULT_ROOT_NAME",
    "EXCERPT_CHARS",
    "FALLBACK_FILE_NAME",
    "FILE_MARKER",
    "MAX_ROOT_NAME_LENGTH",
    "STRATEGY_FENCED",
    "STRATEGY_HEURISTIC",
    "STRATEGY_INDENTED",
    "STRATEGY_MARKER",
    "STRATEGY_ORDER",
]
