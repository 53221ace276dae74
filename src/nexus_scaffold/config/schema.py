"""
nexus-scaffold — configuration schema and validation.

File: src/nexus_scaffold/config/schema.py
Last updated: 2026-10-18

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Profile overlay validation and deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support profile overlays including strict/permissive.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from nexus_scaffold.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_BUFFER_SIZE,
    DEFAULT_COMPRESS_LEVEL,
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_INPUT_BYTES,
    DEFAULT_MIN_FALLBACK_CHARS,
    DEFAULT_ROOT_NAME,
    MAX_ROOT_NAME_LENGTH,
    STRATEGY_FENCED,
    STRATEGY_INDENTED,
    STRATEGY_MARKER,
    STRATEGY_ORDER,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "permissive")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "api",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
        "auth",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "refresh_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("archive", "output_dir"),
    ("materializer", "sandbox_root"),
    ("observability", "log_dir"),
)

_SECTIONS: Final[tuple[str, ...]] = ("parser", "archive", "materializer", "observability")


class MetaConfig(TypedDict):
    schema_version: int


class ParserConfig(TypedDict):
    strategies: list[str]
    min_fallback_chars: int
    max_input_bytes: int
    max_files: int
    default_root: str


class ArchiveConfig(TypedDict):
    compress_level: int
    buffer_size: int
    reproducible: bool
    output_dir: str


class MaterializerConfig(TypedDict):
    sandbox_root: str
    clean_existing: bool


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    parser: dict[str, object]
    archive: dict[str, object]
    materializer: dict[str, object]
    observability: dict[str, object]


class ScaffoldConfig(TypedDict):
    meta: MetaConfig
    parser: ParserConfig
    archive: ArchiveConfig
    materializer: MaterializerConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[ScaffoldConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "parser": {
        "strategies": list(STRATEGY_ORDER),
        "min_fallback_chars": DEFAULT_MIN_FALLBACK_CHARS,
        "max_input_bytes": DEFAULT_MAX_INPUT_BYTES,
        "max_files": DEFAULT_MAX_FILES,
        "default_root": DEFAULT_ROOT_NAME,
    },
    "archive": {
        "compress_level": DEFAULT_COMPRESS_LEVEL,
        "buffer_size": DEFAULT_BUFFER_SIZE,
        "reproducible": False,
        "output_dir": "dist/",
    },
    "materializer": {
        "sandbox_root": "generated/",
        "clean_existing": False,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": "logs/",
        "redact_secrets": True,
    },
    "profiles": {
        "strict": {
            "parser": {"strategies": [STRATEGY_MARKER, STRATEGY_INDENTED, STRATEGY_FENCED]},
            "archive": {"reproducible": True},
        },
        "permissive": {
            "parser": {"min_fallback_chars": 0},
            "materializer": {"clean_existing": True},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ScaffoldConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade scaffold.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the nexus-scaffold runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = _deep_copy_mapping(config)
    if profile is None:
        return materialized

    selected = profile.strip()
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )

    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )

    merged = merge_config(materialized, overlay_raw)
    return assert_valid_config(merged, active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, "", issues, partial=False)

    selected_profile = active_profile.strip() if isinstance(active_profile, str) else None
    if selected_profile:
        profiles = normalized.get("profiles")
        if not isinstance(profiles, Mapping):
            issues.add("profiles", "profiles section is required")
        elif selected_profile not in profiles:
            issues.add("profiles", f"profile {selected_profile!r} is not defined")
        else:
            effective = merge_config(normalized, profiles[selected_profile])
            _validate_root(effective, "", issues, partial=False)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())

    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return deterministic redacted representation for logs and CLI output."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    if isinstance(redacted, dict):
        return redacted
    return {}


def _validate_root(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"meta", *_SECTIONS, "profiles"}
    required = {"meta", *_SECTIONS}

    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, required, path, issues)

    out: dict[str, Any] = {}
    _section(payload, key="meta", path=path, issues=issues, partial=partial, out=out)
    for key in _SECTIONS:
        _section(payload, key=key, path=path, issues=issues, partial=partial, out=out)

    profiles_raw = payload.get("profiles")
    if profiles_raw is not None:
        profiles_path = _join(path, "profiles")
        profiles_obj = _as_object(profiles_raw, profiles_path, issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, profiles_path, issues)

    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    path: str,
    issues: _IssueCollector,
    partial: bool,
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_path = _join(path, key)
    section_obj = _as_object(raw, section_path, issues)
    if section_obj is None:
        return
    validator = _VALIDATORS[key]
    out[key] = validator(section_obj, section_path, issues, partial=partial)


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_parser(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"strategies", "min_fallback_chars", "max_input_bytes", "max_files", "default_root"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "strategies" in payload:
        parsed_strategies = _as_strategy_list(
            payload["strategies"], _join(path, "strategies"), issues
        )
        if parsed_strategies is not None:
            out["strategies"] = parsed_strategies

    if "min_fallback_chars" in payload:
        parsed_min = _as_int(
            payload["min_fallback_chars"], _join(path, "min_fallback_chars"), issues, minimum=0
        )
        if parsed_min is not None:
            out["min_fallback_chars"] = parsed_min

    for key in ("max_input_bytes", "max_files"):
        if key in payload:
            parsed_limit = _as_int(payload[key], _join(path, key), issues, minimum=1)
            if parsed_limit is not None:
                out[key] = parsed_limit

    if "default_root" in payload:
        parsed_root = _as_str(payload["default_root"], _join(path, "default_root"), issues)
        if parsed_root is not None:
            if len(parsed_root) > MAX_ROOT_NAME_LENGTH:
                issues.add(
                    _join(path, "default_root"),
                    f"must be at most {MAX_ROOT_NAME_LENGTH} characters",
                )
            else:
                out["default_root"] = parsed_root

    return out


def _validate_archive(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"compress_level", "buffer_size", "reproducible", "output_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "compress_level" in payload:
        parsed_level = _as_int(
            payload["compress_level"], _join(path, "compress_level"), issues, minimum=0
        )
        if parsed_level is not None:
            if parsed_level > 9:
                issues.add(_join(path, "compress_level"), "must be <= 9")
            else:
                out["compress_level"] = parsed_level

    if "buffer_size" in payload:
        parsed_buffer = _as_int(
            payload["buffer_size"], _join(path, "buffer_size"), issues, minimum=512
        )
        if parsed_buffer is not None:
            out["buffer_size"] = parsed_buffer

    if "reproducible" in payload:
        parsed_reproducible = _as_bool(
            payload["reproducible"], _join(path, "reproducible"), issues
        )
        if parsed_reproducible is not None:
            out["reproducible"] = parsed_reproducible

    if "output_dir" in payload:
        parsed_output = _as_path_text(payload["output_dir"], _join(path, "output_dir"), issues)
        if parsed_output is not None:
            out["output_dir"] = parsed_output

    return out


def _validate_materializer(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"sandbox_root", "clean_existing"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "sandbox_root" in payload:
        parsed_sandbox = _as_path_text(
            payload["sandbox_root"], _join(path, "sandbox_root"), issues
        )
        if parsed_sandbox is not None:
            out["sandbox_root"] = parsed_sandbox

    if "clean_existing" in payload:
        parsed_clean = _as_bool(payload["clean_existing"], _join(path, "clean_existing"), issues)
        if parsed_clean is not None:
            out["clean_existing"] = parsed_clean

    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_dir", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=LOG_LEVELS,
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_format" in payload:
        parsed_log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_log_format is not None:
            out["log_format"] = parsed_log_format

    if "log_dir" in payload:
        parsed_log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_log_dir is not None:
            out["log_dir"] = parsed_log_dir

    if "redact_secrets" in payload:
        parsed_redact = _as_bool(payload["redact_secrets"], _join(path, "redact_secrets"), issues)
        if parsed_redact is not None:
            out["redact_secrets"] = parsed_redact

    return out


_VALIDATORS: Final[dict[str, Callable[..., dict[str, Any]]]] = {
    "meta": _validate_meta,
    "parser": _validate_parser,
    "archive": _validate_archive,
    "materializer": _validate_materializer,
    "observability": _validate_observability,
}


def _validate_profiles(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        raw = payload[profile_name]
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        profile_obj = _as_object(raw, profile_path, issues)
        if profile_obj is None:
            continue
        out[profile_name] = _validate_profile_overlay(profile_obj, profile_path, issues)
    return out


def _validate_profile_overlay(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(_SECTIONS), path, issues)

    out: dict[str, Any] = {}
    for section in sorted(_SECTIONS):
        _section(payload, key=section, path=path, issues=issues, partial=True, out=out)
    return out


def _as_strategy_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strategy names, got {type(value).__name__}")
        return None
    if not value:
        issues.add(path, "must name at least one strategy")
        return None
    names: list[str] = []
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        parsed = _as_enum(item, item_path, issues, allowed_values=STRATEGY_ORDER)
        if parsed is None:
            continue
        if parsed in names:
            issues.add(item_path, f"duplicate strategy {parsed!r}")
            continue
        names.append(parsed)
    if len(names) != len(value):
        return None
    return names


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "secret values do not belong in scaffold config",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            item = value[key]
            if _looks_sensitive_key(key) and isinstance(item, str):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(item, key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ProfileOverlay",
    "ScaffoldConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
