"""
nexus-scaffold — marker-format rendering and prompt injection

File: src/nexus_scaffold/parsing/render.py
Last updated: 2026-10-18

Purpose
- Render a parsed structure back into the marker-prefixed format so output can be
  re-parsed, diffed, or fed back to a text provider.
- Prefix a user request with instructions asking the provider to answer in the
  marker-prefixed format.

Functional requirements
- Rendering rejects content that cannot round-trip (a line starting with the marker).
- Injection is skipped when the request already carries the format instructions.
- Templates render with strict undefined variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined

from nexus_scaffold.constants import FILE_MARKER
from nexus_scaffold.domain.models import ProjectStructure
from nexus_scaffold.utils.hashing import sha256_text

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_SEPARATOR: Final[str] = "\n\n## USER REQUEST:\n"
_FORMAT_HEADING: Final[str] = "OUTPUT FORMAT"

_SYSTEM_TEMPLATE: Final[str] = """\
You are a code generation assistant. Generate complete, working code files
{%- if project_name %} for the project "{{ project_name }}"{% endif %}.

{{ format_heading }}:
Each file must be prefixed with {{ marker }} followed by the file path.

Example:
{{ marker }} src/main.kt
fun main() {
    println("Hello")
}

{{ marker }} README.md
# Project Title
Description here

FORMAT RULES:
1. File paths are relative and use forward slashes.
2. No blank line between the {{ marker }} line and the file content.
3. Do not wrap file content in code fences.
4. Do not add explanations outside of files.

Start your response with {{ marker }} immediately."""

_ENVIRONMENT: Final = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    trim_blocks=False,
    lstrip_blocks=False,
    newline_sequence="\n",
    keep_trailing_newline=False,
)


@dataclass(frozen=True, slots=True)
class InjectedPrompt:
    system_prompt: str
    user_request: str
    combined_prompt: str
    was_injected: bool

    @property
    def prompt_hash(self) -> str:
        return sha256_text(self.combined_prompt)


def render_marker_format(
    source: ProjectStructure | Iterable[tuple[str, str]],
    *,
    marker: str = FILE_MARKER,
) -> str:
    """Render ``(path, content)`` pairs as marker-prefixed text."""

    pairs = source.pairs() if isinstance(source, ProjectStructure) else tuple(source)
    blocks: list[str] = []
    for path, content in pairs:
        if any(line.startswith(marker) for line in content.split("\n")):
            raise ValueError(f"content of {path!r} contains a marker line and cannot be rendered")
        blocks.append(f"{marker} {path}\n{content}")
    if not blocks:
        return ""
    return "\n".join(blocks) + "\n"


def render_system_prompt(*, project_name: str | None = None, marker: str = FILE_MARKER) -> str:
    template = _ENVIRONMENT.from_string(_SYSTEM_TEMPLATE)
    return template.render(
        project_name=project_name or "",
        marker=marker,
        format_heading=_FORMAT_HEADING,
    )


def build_generation_prompt(
    user_request: str,
    *,
    project_name: str | None = None,
    system_prompt: str | None = None,
    separator: str = DEFAULT_SEPARATOR,
) -> InjectedPrompt:
    """Place marker-format instructions ahead of ``user_request``."""

    if FILE_MARKER in user_request and _FORMAT_HEADING in user_request:
        return InjectedPrompt(
            system_prompt="",
            user_request=user_request,
            combined_prompt=user_request,
            was_injected=False,
        )

    instructions = (
        system_prompt
        if system_prompt is not None
        else render_system_prompt(project_name=project_name)
    )
    return InjectedPrompt(
        system_prompt=instructions,
        user_request=user_request,
        combined_prompt=f"{instructions}{separator}{user_request}",
        was_injected=True,
    )


__all__ = [
    "DEFAULT_SEPARATOR",
    "InjectedPrompt",
    "build_generation_prompt",
    "render_marker_format",
    "render_system_prompt",
]
