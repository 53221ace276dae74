"""Text-to-file-tree parsing: strategies, engine, and marker-format rendering."""

from __future__ import annotations

from nexus_scaffold.parsing.engine import ParserEngine, ParserLimits
from nexus_scaffold.parsing.render import (
    InjectedPrompt,
    build_generation_prompt,
    render_marker_format,
)

__all__ = [
    "InjectedPrompt",
    "ParserEngine",
    "ParserLimits",
    "build_generation_prompt",
    "render_marker_format",
]
