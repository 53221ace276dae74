"""Static code-fence language tag to file extension lookup."""

from __future__ import annotations

from types import MappingProxyType
from typing import Final

DEFAULT_EXTENSION: Final[str] = "txt"

LANGUAGE_EXTENSIONS: Final = MappingProxyType(
    {
        "kotlin": "kt",
        "kt": "kt",
        "java": "java",
        "python": "py",
        "py": "py",
        "javascript": "js",
        "js": "js",
        "typescript": "ts",
        "ts": "ts",
        "dart": "dart",
        "swift": "swift",
        "go": "go",
        "golang": "go",
        "rust": "rs",
        "rs": "rs",
        "c": "c",
        "cpp": "cpp",
        "c++": "cpp",
        "csharp": "cs",
        "cs": "cs",
        "c#": "cs",
        "ruby": "rb",
        "rb": "rb",
        "php": "php",
        "html": "html",
        "css": "css",
        "json": "json",
        "yaml": "yaml",
        "yml": "yaml",
        "xml": "xml",
        "sql": "sql",
        "shell": "sh",
        "bash": "sh",
        "sh": "sh",
        "markdown": "md",
        "md": "md",
        "gradle": "gradle",
        "groovy": "groovy",
    }
)


def extension_for_language(tag: str | None) -> str:
    """Map a fence language tag to an extension; unknown tags map to ``txt``."""

    if not tag:
        return DEFAULT_EXTENSION
    return LANGUAGE_EXTENSIONS.get(tag.strip().lower(), DEFAULT_EXTENSION)


__all__ = ["DEFAULT_EXTENSION", "LANGUAGE_EXTENSIONS", "extension_for_language"]
