"""
nexus-scaffold — CLI subprocess smoke contracts

File: tests/integration/test_cli_smoke.py
Last updated: 2026-10-18

Purpose
- Exercise `python -m nexus_scaffold` end to end: parse, pack, write, zip-dir, prompt, config.
- Verify exit codes, machine-readable output, and files written on disk.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
import zipfile
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

_ANSWER = (
    "Here is the project.\n"
    ">>> FILE: src/main.py\n"
    "print('hello')\n"
    ">>> FILE: README.md\n"
    "# Demo\n"
)


def _cli_env() -> dict[str, str]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("NEXUS_SCAFFOLD_")}
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = str(SRC_PATH) if not existing else f"{SRC_PATH}{os.pathsep}{existing}"
    env["NO_COLOR"] = "1"
    return env


def _run_cli(
    workdir: Path, *args: str, stdin: str | None = None
) -> subprocess.CompletedProcess[str]:
    env = _cli_env()
    return subprocess.run(
        [sys.executable, "-m", "nexus_scaffold", *args],
        cwd=workdir,
        input=stdin,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )


def _write(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")


def _render_failure(command_name: str, completed: subprocess.CompletedProcess[str]) -> str:
    return (
        f"{command_name} failed with exit code {completed.returncode}\n"
        f"stdout:\n{completed.stdout}\n"
        f"stderr:\n{completed.stderr}"
    )


def test_cli_parse_json_lists_files(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(tmp_path, "parse", "answer.md", "--root", "Demo", "--json")

    assert completed.returncode == 0, _render_failure("parse", completed)
    payload = json.loads(completed.stdout)
    assert payload["ok"] is True
    assert payload["root"] == "Demo"
    assert payload["strategy"] == "marker"
    assert [item["path"] for item in payload["files"]] == ["src/main.py", "README.md"]


def test_cli_parse_yaml_reads_stdin(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "parse", "-", "--yaml", stdin=_ANSWER)

    assert completed.returncode == 0, _render_failure("parse", completed)
    manifest = yaml.safe_load(completed.stdout)
    assert manifest["root"] == "Project"
    assert manifest["file_count"] == 2


def test_cli_parse_table_output(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(tmp_path, "parse", "answer.md", "--no-color")

    assert completed.returncode == 0, _render_failure("parse", completed)
    assert "Strategy: marker" in completed.stdout
    assert "src/main.py" in completed.stdout


def test_cli_parse_blank_input_exits_one(tmp_path: Path) -> None:
    _write(tmp_path / "blank.md", "   \n")

    completed = _run_cli(tmp_path, "parse", "blank.md", "--json")

    assert completed.returncode == 1
    payload = json.loads(completed.stdout)
    assert payload["ok"] is False
    assert payload["error"]["kind"] == "empty_input"


def test_cli_missing_input_file_exits_two(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "parse", "missing.md")

    assert completed.returncode == 2
    assert "input file not found" in completed.stderr


def test_cli_pack_writes_archive_to_default_location(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(tmp_path, "pack", "answer.md", "--root", "Demo", "--json")

    assert completed.returncode == 0, _render_failure("pack", completed)
    payload = json.loads(completed.stdout)
    archive_path = tmp_path / "dist" / "Demo.zip"
    assert payload["archive"]["destination"] == archive_path.resolve().as_posix()
    with zipfile.ZipFile(archive_path) as archive:
        assert archive.namelist() == ["Demo/", "Demo/src/", "Demo/src/main.py", "Demo/README.md"]
        assert archive.read("Demo/src/main.py") == b"print('hello')"


def test_cli_pack_via_sandbox_keeps_files(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(
        tmp_path, "pack", "answer.md", "-o", "out/demo.zip", "--sandbox", "work"
    )

    assert completed.returncode == 0, _render_failure("pack", completed)
    assert (tmp_path / "work" / "Project" / "README.md").read_text(encoding="utf-8") == "# Demo"
    assert zipfile.is_zipfile(tmp_path / "out" / "demo.zip")
    assert "Archive:" in completed.stdout


def test_cli_pack_streams_to_stdout(tmp_path: Path) -> None:
    completed = subprocess.run(
        [sys.executable, "-m", "nexus_scaffold", "pack", "-", "-o", "-"],
        cwd=tmp_path,
        input=_ANSWER.encode("utf-8"),
        capture_output=True,
        check=False,
        env=_cli_env(),
    )

    assert completed.returncode == 0, completed.stderr.decode("utf-8", "replace")
    target = tmp_path / "streamed.zip"
    target.write_bytes(completed.stdout)
    with zipfile.ZipFile(target) as archive:
        assert archive.read("Project/README.md") == b"# Demo"
        assert archive.testzip() is None


def test_cli_write_materializes_into_sandbox(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(
        tmp_path, "write", "answer.md", "--sandbox", "gen", "--root", "Demo", "--json"
    )

    assert completed.returncode == 0, _render_failure("write", completed)
    payload = json.loads(completed.stdout)
    assert payload["files_written"] == 2
    assert payload["written"] == ["src/main.py", "README.md"]
    assert sorted(payload["sha256"]) == ["README.md", "src/main.py"]
    assert (tmp_path / "gen" / "Demo" / "src" / "main.py").read_text(encoding="utf-8") == (
        "print('hello')"
    )


def test_cli_zip_dir_archives_directory(tmp_path: Path) -> None:
    _write(tmp_path / "app" / "a.txt", "alpha")
    _write(tmp_path / "app" / "lib" / "b.txt", "bravo")

    completed = _run_cli(tmp_path, "zip-dir", "app", "-o", "app.zip", "--json")

    assert completed.returncode == 0, _render_failure("zip-dir", completed)
    payload = json.loads(completed.stdout)
    assert payload["root"] == "app"
    assert payload["file_count"] == 2
    with zipfile.ZipFile(tmp_path / "app.zip") as archive:
        assert archive.namelist() == ["app/", "app/a.txt", "app/lib/", "app/lib/b.txt"]


def test_cli_zip_dir_rejects_output_inside_source(tmp_path: Path) -> None:
    _write(tmp_path / "app" / "a.txt", "alpha")

    completed = _run_cli(tmp_path, "zip-dir", "app", "-o", "app/self.zip")

    assert completed.returncode == 2
    assert "outside the archived directory" in completed.stderr
    assert not (tmp_path / "app" / "self.zip").exists()


def test_cli_prompt_injects_instructions(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "prompt", "A todo app", "--project", "Todo", "--json")

    assert completed.returncode == 0, _render_failure("prompt", completed)
    payload = json.loads(completed.stdout)
    assert payload["was_injected"] is True
    assert ">>> FILE:" in payload["prompt"]
    assert payload["prompt"].endswith("A todo app")


def test_cli_config_json_has_sections(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "config", "--json")

    assert completed.returncode == 0, _render_failure("config", completed)
    payload = json.loads(completed.stdout)
    assert payload["command"] == "config"
    assert payload["active_profile"] is None
    assert {"parser", "archive", "materializer", "observability"} <= set(payload["config"])


def test_cli_config_file_and_env_overrides(tmp_path: Path) -> None:
    _write(tmp_path / "custom.toml", "[parser]\ndefault_root = \"FromFile\"\n")
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(tmp_path, "parse", "answer.md", "--config", "custom.toml", "--json")

    assert completed.returncode == 0, _render_failure("parse", completed)
    assert json.loads(completed.stdout)["root"] == "FromFile"


def test_cli_missing_config_file_exits_two(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "config", "--config", "nope.toml")

    assert completed.returncode == 2
    assert "config file not found" in completed.stderr


def test_cli_invalid_config_exits_two(tmp_path: Path) -> None:
    _write(tmp_path / "scaffold.toml", "[archive]\ncompress_level = 42\n")

    completed = _run_cli(tmp_path, "config")

    assert completed.returncode == 2
    assert "compress_level" in completed.stderr


def test_cli_log_file_writes_json_lines(tmp_path: Path) -> None:
    _write(tmp_path / "answer.md", _ANSWER)

    completed = _run_cli(
        tmp_path, "parse", "answer.md", "--json", "--log-file", "--log-level", "INFO"
    )

    assert completed.returncode == 0, _render_failure("parse", completed)
    log_files = list((tmp_path / "logs").glob("*/scaffold.jsonl"))
    assert len(log_files) == 1
    events = [json.loads(line) for line in log_files[0].read_text(encoding="utf-8").splitlines()]
    assert "parser_completed" in {event["message"] for event in events}
    assert all(event["command"] == "parse" for event in events)


def test_cli_help_lists_commands(tmp_path: Path) -> None:
    completed = _run_cli(tmp_path, "--help")

    assert completed.returncode == 0
    for command in ("parse", "pack", "write", "zip-dir", "prompt", "config"):
        assert command in completed.stdout
