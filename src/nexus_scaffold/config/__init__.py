"""
nexus-scaffold config package public API.

File: src/nexus_scaffold/config/__init__.py
Last updated: 2026-10-18

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``scaffold.toml`` + ``NEXUS_SCAFFOLD_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from nexus_scaffold.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    PROFILE_ENV,
    ConfigLoadError,
    dump_effective_config,
    env_bindings,
    load_config,
    normalize_paths,
)
from nexus_scaffold.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ScaffoldConfig,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "PROFILE_ENV",
    "ScaffoldConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "env_bindings",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
