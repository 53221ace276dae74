"""Output rendering abstraction for the nexus-scaffold CLI.

File: src/nexus_scaffold/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin rendering layer for human-readable CLI output on a ``rich`` console.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Machine-readable output (``--json``/``--yaml``) bypasses the renderer entirely.
- Warnings and failures go to stderr so stdout stays pipeable.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

_HEADING_STYLE = Style(bold=True)
_KEY_STYLE = Style(color="cyan")
_WARNING_STYLE = Style(color="yellow")
_OK_STYLE = Style(color="green", bold=True)
_FAIL_STYLE = Style(color="red", bold=True)


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer over a pair of ``rich`` consoles."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        out_stream = stdout if stdout is not None else sys.stdout
        err_stream = stderr if stderr is not None else sys.stderr
        self.verbose = verbose
        self._out = Console(
            file=out_stream,
            no_color=not _color_allowed(no_color, out_stream),
            highlight=False,
            soft_wrap=True,
        )
        self._err = Console(
            file=err_stream,
            no_color=not _color_allowed(no_color, err_stream),
            highlight=False,
            soft_wrap=True,
        )

    def kv(self, key: str, value: object) -> None:
        line = Text()
        line.append(f"{key}:", style=_KEY_STYLE)
        line.append(f" {value}")
        self._out.print(line)

    def text(self, line: str) -> None:
        self._out.print(Text(line))

    def warning(self, text: str) -> None:
        self._err.print(Text(f"Warning: {text}", style=_WARNING_STYLE))

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._out.print(Text(f"  {prefix}{entry}"))

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a table; nothing is printed for an empty row set."""

        if not rows:
            return
        grid = Table(title=title, show_edge=False, header_style=_HEADING_STYLE)
        for header in headers:
            grid.add_column(header)
        for row in rows:
            grid.add_row(*(str(cell) for cell in row))
        self._out.print(grid)

    def detail(self, line: str) -> None:
        """Print a line only in verbose mode."""

        if self.verbose:
            self._err.print(Text(line, style=Style(dim=True)))

    def ok(self, label: str) -> None:
        line = Text()
        line.append("OK", style=_OK_STYLE)
        line.append(f"  {label}")
        self._out.print(line)

    def fail(self, label: str) -> None:
        line = Text()
        line.append("FAIL", style=_FAIL_STYLE)
        line.append(f"  {label}")
        self._err.print(line)


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
