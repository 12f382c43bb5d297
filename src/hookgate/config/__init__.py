"""
hookgate config package public API.

File: src/hookgate/config/__init__.py
Last updated: 2026-10-19

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``hookgate.toml`` + ``HOOKGATE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from hookgate.config.loader import (
    ENV_PREFIX,
    PROFILE_ENV_VAR,
    ConfigLoadError,
    load_config,
    normalize_paths,
)
from hookgate.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    HookgateConfig,
    ProfileOverlay,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "HookgateConfig",
    "PATH_FIELDS",
    "PROFILE_ENV_VAR",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
