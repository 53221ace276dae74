"""Command-line interface router for nexus-scaffold."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog
import yaml

from nexus_scaffold.archive import ArchiveBuilder, list_entry_names
from nexus_scaffold.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
    redact_config,
)
from nexus_scaffold.constants import ARCHIVE_SUFFIX, DEFAULT_ROOT_NAME
from nexus_scaffold.domain.paths import sanitize_root_name
from nexus_scaffold.domain.results import Failure
from nexus_scaffold.main import ExitCode, exit_code_for_kind
from nexus_scaffold.materialize import FileMaterializer
from nexus_scaffold.observability import correlation_scope, setup_logging, shutdown_logging
from nexus_scaffold.parsing import build_generation_prompt
from nexus_scaffold.pipeline import GenerationPipeline, StateUpdate
from nexus_scaffold.ui.render import CLIRenderer, create_renderer
from nexus_scaffold.utils.hashing import create_manifest

STDIN_MARKER: Final[str] = "-"
_LOG_LEVEL_CHOICES: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.CONFIG_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="nexus-scaffold",
        description=(
            "nexus-scaffold — turn generated text into a project file tree.\n\n"
            "Common workflows:\n"
            "  nexus-scaffold parse answer.md          List the files found in a response\n"
            "  nexus-scaffold pack answer.md -o a.zip  Package the files as a ZIP archive\n"
            "  nexus-scaffold write answer.md          Write the files under a sandbox dir\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to scaffold TOML config (default: ./scaffold.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and log at the configured level.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument(
        "--log-level",
        choices=_LOG_LEVEL_CHOICES,
        default=None,
        help="Log level for stderr events (default: WARNING, or the config level with -v).",
    )
    common.add_argument(
        "--log-file",
        action="store_true",
        default=False,
        help="Also write JSON-lines logs under observability.log_dir/<run id>/.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # parse ---------------------------------------------------------------
    parse_parser = subparsers.add_parser(
        "parse",
        parents=[common],
        help="Parse text and show the extracted file tree",
        description=(
            "Run the extraction strategies over INPUT and print the resulting files.\n\n"
            "Examples:\n"
            "  nexus-scaffold parse answer.md\n"
            "  cat answer.md | nexus-scaffold parse - --root MyApp --json\n"
            "  nexus-scaffold parse answer.md --yaml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_input_arguments(parse_parser)
    output_format = parse_parser.add_mutually_exclusive_group()
    output_format.add_argument("--json", action="store_true", help="Emit JSON output")
    output_format.add_argument("--yaml", action="store_true", help="Emit YAML output")
    parse_parser.set_defaults(handler=_cmd_parse)

    # pack ----------------------------------------------------------------
    pack_parser = subparsers.add_parser(
        "pack",
        parents=[common],
        help="Parse text and package the files as a ZIP archive",
        description=(
            "Parse INPUT and write a ZIP archive whose entries are <root>/<path>.\n"
            "OUTPUT '-' streams the archive to stdout.\n\n"
            "Examples:\n"
            "  nexus-scaffold pack answer.md\n"
            "  nexus-scaffold pack answer.md --root Demo --output dist/demo.zip\n"
            "  nexus-scaffold pack answer.md --via-disk --sandbox build/\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_input_arguments(pack_parser)
    pack_parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Archive path (default: <archive.output_dir>/<root>.zip).",
    )
    pack_parser.add_argument(
        "--via-disk",
        action="store_true",
        help="Materialize the files first and archive the written directory.",
    )
    pack_parser.add_argument(
        "--sandbox",
        default=None,
        help="Keep materialized files under this directory (implies --via-disk).",
    )
    pack_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    pack_parser.set_defaults(handler=_cmd_pack)

    # write ---------------------------------------------------------------
    write_parser = subparsers.add_parser(
        "write",
        parents=[common],
        help="Parse text and write the files under a sandbox directory",
        description=(
            "Parse INPUT and write every file to <sandbox>/<root>/<path>.\n"
            "Nothing is written unless every path stays inside the sandbox.\n\n"
            "Examples:\n"
            "  nexus-scaffold write answer.md\n"
            "  nexus-scaffold write answer.md --sandbox out/ --root Demo\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_input_arguments(write_parser)
    write_parser.add_argument(
        "--sandbox",
        default=None,
        help="Sandbox root (default: materializer.sandbox_root).",
    )
    write_parser.add_argument(
        "--clean",
        action="store_true",
        default=None,
        help="Remove an existing project directory before writing.",
    )
    write_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    write_parser.set_defaults(handler=_cmd_write)

    # zip-dir -------------------------------------------------------------
    zip_dir_parser = subparsers.add_parser(
        "zip-dir",
        parents=[common],
        help="Archive an existing directory",
        description=(
            "Write DIRECTORY as a ZIP archive with the same entry layout as 'pack'.\n\n"
            "Examples:\n"
            "  nexus-scaffold zip-dir generated/Demo\n"
            "  nexus-scaffold zip-dir generated/Demo --root Demo -o demo.zip\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    zip_dir_parser.add_argument("directory", help="Directory to archive")
    zip_dir_parser.add_argument(
        "--root",
        default=None,
        help="Archive root name (default: the directory name).",
    )
    zip_dir_parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Archive path (default: <archive.output_dir>/<root>.zip).",
    )
    zip_dir_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    zip_dir_parser.set_defaults(handler=_cmd_zip_dir)

    # prompt --------------------------------------------------------------
    prompt_parser = subparsers.add_parser(
        "prompt",
        parents=[common],
        help="Print a request with the marker-format instructions prepended",
        description=(
            "Build the prompt sent to a text provider: format instructions, a separator,\n"
            "then REQUEST. Requests that already carry the instructions are left alone.\n\n"
            "Examples:\n"
            "  nexus-scaffold prompt 'A todo app in Kotlin' --project Todo\n"
            "  echo 'A CLI in Go' | nexus-scaffold prompt - --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    prompt_parser.add_argument("request", help="Request text, or '-' to read stdin")
    prompt_parser.add_argument("--project", default=None, help="Project name for the prompt")
    prompt_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    prompt_parser.set_defaults(handler=_cmd_prompt)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file, env, and profile.\n"
            "Sensitive values are redacted.\n\n"
            "Examples:\n"
            "  nexus-scaffold config\n"
            "  nexus-scaffold config --json\n"
            "  nexus-scaffold config --profile strict\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def _add_input_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument("input", help="Text file to parse, or '-' to read stdin")
    subparser.add_argument(
        "--root",
        default=None,
        help="Project root name (default: parser.default_root).",
    )


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        config = _load_effective_config(namespace)
        run_id = uuid.uuid4().hex[:12]
        _configure_logging(namespace, config, run_id)
        with correlation_scope(run_id=run_id, command=str(namespace.command)):
            result = handler(namespace, config)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_parse(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    pipeline = GenerationPipeline.from_config(config, logger=_logger())
    raw_text = _read_input(args.input)
    outcome = pipeline.parser.parse(raw_text, _optional_str(args.root))
    if isinstance(outcome, Failure):
        return _report_failure(args, outcome)
    structure = outcome.value
    manifest = structure.to_manifest()

    if _flag(args, "json"):
        _emit_json({"command": "parse", "ok": True, **manifest})
        return 0
    if _flag(args, "yaml"):
        sys.stdout.write(yaml.safe_dump(manifest, sort_keys=False, allow_unicode=True))
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Root", structure.root)
    renderer.kv("Strategy", structure.metadata.strategy)
    renderer.kv("Files", structure.metadata.file_count)
    renderer.kv("Total bytes", structure.metadata.total_bytes)
    renderer.table(
        ("Path", "Bytes"),
        [(item.path, str(item.size_bytes)) for item in structure.files],
    )
    renderer.detail(f"fingerprint {structure.fingerprint()}")
    return 0


def _cmd_pack(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    pipeline = GenerationPipeline.from_config(config, logger=_logger())
    raw_text = _read_input(args.input)
    root_name = _optional_str(args.root)
    sandbox = _optional_str(args.sandbox)
    via_disk = _flag(args, "via_disk") or sandbox is not None
    renderer = _get_renderer(args)

    output = _optional_str(args.output)
    if output == STDIN_MARKER:
        outcome = pipeline.package(
            raw_text,
            sys.stdout.buffer,
            root_name=root_name,
            via_disk=via_disk,
            sandbox_root=sandbox,
            on_state=_state_reporter(renderer),
        )
        if isinstance(outcome, Failure):
            return _report_failure(args, outcome)
        return 0

    destination = (
        Path(output)
        if output is not None
        else _default_archive_path(config, _resolve_root(config, root_name))
    )
    outcome = pipeline.package(
        raw_text,
        destination,
        root_name=root_name,
        via_disk=via_disk,
        sandbox_root=sandbox,
        on_state=_state_reporter(renderer),
    )
    if isinstance(outcome, Failure):
        return _report_failure(args, outcome)
    result = outcome.value

    if _flag(args, "json"):
        _emit_json({"command": "pack", "ok": True, **result.to_dict()})
        return 0

    _render_archive(renderer, result.archive.to_dict())
    if result.materialized is not None and sandbox is not None:
        renderer.kv("Materialized", result.materialized.output_dir.as_posix())
    for name in result.archive.skipped:
        renderer.warning(f"skipped entry {name}")
    renderer.ok("archive written")
    return 0


def _cmd_write(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    logger = _logger()
    pipeline = GenerationPipeline.from_config(config, logger=logger)
    raw_text = _read_input(args.input)
    parsed = pipeline.parser.parse(raw_text, _optional_str(args.root))
    if isinstance(parsed, Failure):
        return _report_failure(args, parsed)

    materializer_cfg = config.get("materializer", {})
    sandbox = _optional_str(args.sandbox) or str(materializer_cfg.get("sandbox_root"))
    clean = args.clean if args.clean is not None else bool(
        materializer_cfg.get("clean_existing", False)
    )
    materializer = FileMaterializer(clean_existing=clean, logger=logger)
    outcome = materializer.materialize(parsed.value, sandbox)
    if isinstance(outcome, Failure):
        return _report_failure(args, outcome)
    summary = outcome.value

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "write",
                "ok": True,
                **summary.to_dict(),
                "sha256": create_manifest(summary.output_dir),
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Output directory", summary.output_dir.as_posix())
    renderer.kv("Files written", summary.files_written)
    renderer.kv("Bytes written", summary.bytes_written)
    if renderer.verbose:
        renderer.items(list(summary.written))
    renderer.ok(f"wrote {summary.files_written} files")
    return 0


def _cmd_zip_dir(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    source = Path(args.directory).expanduser()
    if not source.is_dir():
        raise CLIError(f"not a directory: {source}")

    root_name = sanitize_root_name(
        _optional_str(args.root) or source.resolve().name, default=DEFAULT_ROOT_NAME
    )
    output = _optional_str(args.output)
    destination = Path(output) if output is not None else _default_archive_path(config, root_name)
    if _is_inside(destination, source):
        raise CLIError(f"archive path must be outside the archived directory: {destination}")

    builder = ArchiveBuilder.from_config(config, logger=_logger())
    outcome = builder.build_from_directory(source, destination, archive_root=root_name)
    if isinstance(outcome, Failure):
        return _report_failure(args, outcome)
    summary = outcome.value

    if _flag(args, "json"):
        _emit_json({"command": "zip-dir", "ok": True, "root": root_name, **summary.to_dict()})
        return 0

    renderer = _get_renderer(args)
    _render_archive(renderer, summary.to_dict())
    if renderer.verbose:
        renderer.items(list_entry_names(destination))
    for name in summary.skipped:
        renderer.warning(f"skipped entry {name}")
    renderer.ok("archive written")
    return 0


def _cmd_prompt(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    del config
    request = _read_input(args.request) if args.request == STDIN_MARKER else args.request
    if not request.strip():
        raise CLIError("request text is empty")
    prompt = build_generation_prompt(request, project_name=_optional_str(args.project))

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "prompt",
                "was_injected": prompt.was_injected,
                "prompt_hash": prompt.prompt_hash,
                "prompt": prompt.combined_prompt,
            }
        )
        return 0

    sys.stdout.write(prompt.combined_prompt)
    if not prompt.combined_prompt.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def _cmd_config(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    profile = _optional_str(getattr(args, "profile", None))
    redacted = redact_config(config)

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": profile,
        "config": redacted,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Create a CLI renderer from the parsed namespace."""

    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _render_archive(renderer: CLIRenderer, summary: Mapping[str, object]) -> None:
    renderer.kv("Archive", summary.get("destination") or "(stream)")
    renderer.kv("Entries", summary["entry_count"])
    renderer.kv("Files", summary["file_count"])
    renderer.kv("Directories", summary["directory_count"])
    renderer.kv(
        "Bytes",
        f"{summary['uncompressed_bytes']} -> {summary['compressed_bytes']}"
        f" ({float(summary['compression_ratio']):.1%} saved)",  # type: ignore[arg-type]
    )


def _report_failure(args: argparse.Namespace, outcome: Failure) -> int:
    exit_code = int(exit_code_for_kind(outcome.kind))
    if _flag(args, "json"):
        _emit_json({"command": str(args.command), "ok": False, "error": outcome.to_dict()})
        return exit_code

    renderer = _get_renderer(args)
    renderer.fail(outcome.describe())
    if outcome.excerpt and renderer.verbose:
        renderer.detail("input excerpt:")
        renderer.detail(outcome.excerpt)
    return exit_code


def _state_reporter(renderer: CLIRenderer) -> Any:
    def report(update: StateUpdate) -> None:
        if update.total:
            renderer.detail(f"{update.state}: {update.current}/{update.total}")
        else:
            renderer.detail(f"{update.state}: {update.message}")

    return report


# ---------------------------------------------------------------------------
# Config, input, and path helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    try:
        return load_config(config_path, profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _configure_logging(args: argparse.Namespace, config: Mapping[str, Any], run_id: str) -> None:
    observability = config.get("observability", {})
    level = _optional_str(getattr(args, "log_level", None))
    if level is None:
        level = str(observability.get("log_level", "INFO")) if _flag(args, "verbose") else "WARNING"
    try:
        setup_logging(
            observability,
            run_id=run_id,
            level=level,
            log_to_file=_flag(args, "log_file"),
        )
    except OSError as exc:
        raise CLIError(f"unable to open log directory: {exc}") from exc


def _logger() -> Any:
    return structlog.get_logger("nexus_scaffold.cli")


def _read_input(source: str) -> str:
    if source == STDIN_MARKER:
        return sys.stdin.read()
    path = Path(source).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"input file not found: {path}") from exc
    except UnicodeDecodeError as exc:
        raise CLIError(f"input file is not valid UTF-8: {path}") from exc
    except OSError as exc:
        raise CLIError(f"unable to read input file {path}: {exc}") from exc


def _resolve_root(config: Mapping[str, Any], root_name: str | None) -> str:
    default_root = str(config.get("parser", {}).get("default_root", DEFAULT_ROOT_NAME))
    return sanitize_root_name(root_name, default=sanitize_root_name(default_root))


def _default_archive_path(config: Mapping[str, Any], root_name: str) -> Path:
    output_dir = str(config.get("archive", {}).get("output_dir", "."))
    return Path(output_dir) / f"{root_name}{ARCHIVE_SUFFIX}"


def _is_inside(candidate: Path, directory: Path) -> bool:
    try:
        candidate.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument")
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = [
    "CLIError",
    "build_parser",
    "main",
    "run_cli",
]


if __name__ == "__main__":
    raise SystemExit(run_cli())
