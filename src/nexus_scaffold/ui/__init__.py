"""CLI surface: argument routing and human-readable rendering."""

from __future__ import annotations

from nexus_scaffold.ui.cli import CLIError, build_parser, run_cli
from nexus_scaffold.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]
