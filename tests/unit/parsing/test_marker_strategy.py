"""Unit tests for the marker-prefixed extraction strategy."""

from __future__ import annotations

from nexus_scaffold.parsing.strategies import Candidate, MarkerStrategy


def test_marker_blocks_split_on_marker_lines() -> None:
    text = (
        ">>> FILE: src/main.kt\n"
        "fun main() {\n"
        '    println("Hello")\n'
        "}\n"
        "\n"
        ">>> FILE: README.md\n"
        "# Title\n"
        "Description\n"
    )

    assert MarkerStrategy().attempt(text) == (
        Candidate("src/main.kt", 'fun main() {\n    println("Hello")\n}'),
        Candidate("README.md", "# Title\nDescription"),
    )


def test_text_before_first_marker_is_ignored() -> None:
    text = "Sure, here you go:\n>>> FILE: a.txt\nalpha\n"

    assert MarkerStrategy().attempt(text) == (Candidate("a.txt", "alpha"),)


def test_leading_newlines_dropped_but_indentation_kept() -> None:
    text = ">>> FILE: a.py\n\n\n    indented = True\n"

    assert MarkerStrategy().attempt(text) == (Candidate("a.py", "    indented = True"),)


def test_crlf_input_is_normalized() -> None:
    text = ">>> FILE: a.txt\r\none\r\ntwo\r\n>>> FILE: b.txt\r\nthree"

    assert MarkerStrategy().attempt(text) == (
        Candidate("a.txt", "one\ntwo"),
        Candidate("b.txt", "three"),
    )


def test_blank_files_and_unsafe_or_extensionless_paths_are_dropped() -> None:
    text = (
        ">>> FILE: empty.txt\n"
        "   \n"
        ">>> FILE: ../evil.txt\n"
        "boom\n"
        ">>> FILE: Makefile\n"
        "all:\n"
        ">>> FILE: .gitignore\n"
        "build/\n"
        ">>> FILE: ok.txt\n"
        "fine\n"
    )

    assert MarkerStrategy().attempt(text) == (Candidate("ok.txt", "fine"),)


def test_marker_must_start_at_column_zero() -> None:
    text = "  >>> FILE: a.txt\ncontent\n"

    assert MarkerStrategy().attempt(text) == ()


def test_paths_are_normalized() -> None:
    text = ">>> FILE: ./src\\util\\Io.kt\nobject Io\n"

    assert MarkerStrategy().attempt(text) == (Candidate("src/util/Io.kt", "object Io"),)


def test_no_markers_yields_nothing() -> None:
    assert MarkerStrategy().attempt("just prose, no files") == ()
