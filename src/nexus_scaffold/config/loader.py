"""
nexus-scaffold — runtime config loader.

File: src/nexus_scaffold/config/loader.py
Last updated: 2026-10-18

Purpose
- Build the effective scaffold config from defaults, ``scaffold.toml``, a profile,
  ``NEXUS_SCAFFOLD_<SECTION>_<KEY>`` env vars, and ``section.key`` CLI overrides.

Functional requirements
- Precedence: CLI > env > profile > file > defaults; the result is schema-validated
  after every layer that can introduce bad values.
- Env vars exist only for keys that have a default; their type follows the default.
- Path settings resolve relative to the directory holding the config file.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from nexus_scaffold.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "scaffold.toml"
ENV_PREFIX: Final[str] = "NEXUS_SCAFFOLD_"
PROFILE_ENV: Final[str] = f"{ENV_PREFIX}PROFILE"

_TRUE_WORDS: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be read or an override cannot be applied."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config; see the module docstring for precedence."""

    env = os.environ if environ is None else environ
    path = (
        Path(config_path).expanduser().resolve()
        if config_path is not None
        else (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    )

    config = assert_valid_config(
        merge_config(default_config(), _read_toml(path, required=config_path is not None))
    )
    selected = _blank_to_none(profile if profile is not None else env.get(PROFILE_ENV))
    if selected is not None:
        config = apply_profile_overlay(config, selected)

    config = merge_config(config, _env_layer(env))
    config = merge_config(config, _cli_layer(cli_overrides or {}))
    config = assert_valid_config(config, active_profile=selected)
    return assert_valid_config(
        normalize_paths(config, base_dir=path.parent), active_profile=selected
    )


def env_bindings() -> dict[str, tuple[str, str]]:
    """Map each supported env var name to its ``(section, key)`` config location."""

    bindings: dict[str, tuple[str, str]] = {}
    for section, values in default_config().items():
        if section in {"meta", "profiles"} or not isinstance(values, Mapping):
            continue
        for key in values:
            bindings[env_name(section, key)] = (section, key)
    return bindings


def env_name(section: str, key: str) -> str:
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


def normalize_paths(config: Mapping[str, Any], *, base_dir: Path) -> dict[str, Any]:
    """Resolve path settings, including those inside profile overlays, against ``base_dir``."""

    result = merge_config({}, config)
    tables: list[Mapping[str, Any]] = [result]
    profiles = result.get("profiles")
    if isinstance(profiles, Mapping):
        tables.extend(overlay for overlay in profiles.values() if isinstance(overlay, Mapping))

    for table in tables:
        for section, key in PATH_FIELDS:
            values = table.get(section)
            if isinstance(values, dict) and isinstance(values.get(key), str):
                values[key] = _resolve_path(values[key], base_dir)
    return result


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return the redacted config as compact JSON with sorted keys."""

    return json.dumps(
        redact_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    defaults = default_config()
    layer: dict[str, Any] = {}
    for name, (section, key) in sorted(env_bindings().items()):
        raw = environ.get(name)
        if raw is None:
            continue
        value = _coerce(raw.strip(), defaults[section][key], name)
        layer.setdefault(section, {})[key] = value
    return layer


def _coerce(raw: str, default: object, name: str) -> object:
    # bool before int: bool is an int subclass.
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ConfigLoadError(f"{name} must be a boolean (true/false/yes/no/on/off/1/0)")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be an integer, got {raw!r}") from exc
    if isinstance(default, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    sections = {section for section, _ in env_bindings().values()}
    layer: dict[str, Any] = {}
    for dotted, value in sorted(overrides.items()):
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        if section not in sections or not key or "." in key:
            raise ConfigLoadError(f"CLI override must look like 'section.key', got {dotted!r}")
        layer.setdefault(section, {})[key] = value
    return layer


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PROFILE_ENV",
    "dump_effective_config",
    "env_bindings",
    "env_name",
    "load_config",
    "normalize_paths",
]
