"""
hookgate — configuration schema and validation.

File: src/hookgate/config/schema.py
Last updated: 2026-10-19

Purpose
- Define the built-in defaults for ``hookgate.toml`` and validate candidate
  configs against them.

Functional requirements
- Validation is strict: unknown keys, missing keys, and wrongly typed values are
  all reported, each as a structured issue (dotted field path + message), and
  every issue is collected before failing.
- Profiles are partial overlays of ``[checks]`` / ``[observability]``; ``debug``
  and ``quiet`` are built in.
- Secrets never belong in ``hookgate.toml``; secret-looking keys get a dedicated
  message.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from hookgate.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CHECKS_DIR,
    DEFAULT_DISABLED_SUFFIXES,
    DEFAULT_LOG_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")

# Fields holding filesystem paths; the loader resolves them against the config file.
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("checks", "directory"),
    ("observability", "log_dir"),
)

_PROFILE_NAME = re.compile(r"^[a-z][a-z0-9_-]*$")
_CHECK_PREFIX = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_SECRET_WORDS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials"}
)
_SECRET_PHRASES: Final[tuple[str, ...]] = ("api_key", "access_token", "private_key")
_REDACTED: Final[str] = "<redacted>"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class MetaConfig(TypedDict):
    schema_version: int


class ChecksConfig(TypedDict):
    directory: str
    prefix: str
    disabled_suffixes: list[str]


class ObservabilityConfig(TypedDict):
    log_level: LogLevel
    log_format: Literal["json", "text"]
    log_to_file: bool
    log_dir: str
    log_to_stderr: bool
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    checks: dict[str, object]
    observability: dict[str, object]


class HookgateConfig(TypedDict):
    meta: MetaConfig
    checks: ChecksConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[HookgateConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "checks": {
        "directory": DEFAULT_CHECKS_DIR.as_posix(),
        "prefix": "",
        "disabled_suffixes": list(DEFAULT_DISABLED_SUFFIXES),
    },
    "observability": {
        "log_level": "WARNING",
        "log_format": "json",
        "log_to_file": False,
        "log_dir": DEFAULT_LOG_DIR.as_posix(),
        "log_to_stderr": False,
        "redact_secrets": True,
    },
    "profiles": {
        "debug": {
            "observability": {"log_level": "DEBUG", "log_to_file": True, "log_to_stderr": True},
        },
        "quiet": {
            "observability": {"log_level": "ERROR", "log_to_file": False, "log_to_stderr": False},
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
    """Validation result; ``config`` is the normalized config when there are no issues."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        rendered = (
            "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
            or "unknown validation failure"
        )
        super().__init__(f"invalid config:\n{rendered}")


class _Issues(list[ConfigValidationIssue]):
    def add(self, path: str, message: str) -> None:
        self.append(ConfigValidationIssue(path=path, message=message))


class _Invalid:
    """Marker returned by field checks that already recorded an issue."""


_INVALID: Final = _Invalid()

_FieldCheck = Callable[[object, str, _Issues], object]


def default_config() -> HookgateConfig:
    """Return a fresh copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is modified."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Merge the named profile over ``config`` and re-validate."""

    selected = (profile or "").strip()
    if not selected:
        return merge_config({}, config)

    profiles = config.get("profiles")
    overlay = profiles.get(selected) if isinstance(profiles, Mapping) else None
    if overlay is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(config, overlay))


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate a complete config and collect every issue."""

    issues = _Issues()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=tuple(issues))

    _check_keys(config, allowed=(*_SECTIONS, "profiles"), required=_SECTIONS, path="", issues=issues)

    normalized: dict[str, Any] = {}
    for section in _SECTIONS:
        if section in config:
            checked = _section(config[section], section, section, issues, partial=False)
            if checked is not None:
                normalized[section] = checked

    if "profiles" in config:
        profiles = _profiles(config["profiles"], issues)
        if profiles is not None:
            normalized["profiles"] = profiles

    selected = (active_profile or "").strip()
    if selected and selected not in normalized.get("profiles", {}):
        issues.add("profiles", f"profile {selected!r} is not defined")

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


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
    """Return a copy of ``config`` with secret-looking keys masked."""

    if not isinstance(config, Mapping):
        return {}
    return _redact(config)


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


def _string(value: object, path: str, issues: _Issues) -> object:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return _INVALID
    return value


def _path_text(value: object, path: str, issues: _Issues) -> object:
    text = _string(value, path, issues)
    if isinstance(text, str) and "\x00" in text:
        issues.add(path, "must not contain NUL bytes")
        return _INVALID
    return text


def _boolean(value: object, path: str, issues: _Issues) -> object:
    if not isinstance(value, bool):
        issues.add(path, f"expected boolean, got {type(value).__name__}")
        return _INVALID
    return value


def _one_of(choices: tuple[str, ...]) -> _FieldCheck:
    def check(value: object, path: str, issues: _Issues) -> object:
        text = _string(value, path, issues)
        if isinstance(text, str) and text not in choices:
            expected = ", ".join(sorted(choices))
            issues.add(path, f"invalid value {text!r}; expected one of: {expected}")
            return _INVALID
        return text

    return check


def _version_mismatch(found: int) -> str:
    if found < ConfigSchemaVersion:
        return (
            f"schema version {found} is older than supported {ConfigSchemaVersion}; "
            "upgrade hookgate.toml to the current schema"
        )
    return (
        f"schema version {found} is newer than supported {ConfigSchemaVersion}; "
        "upgrade the hookgate package"
    )


def _schema_version(value: object, path: str, issues: _Issues) -> object:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return _INVALID
    if value != ConfigSchemaVersion:
        issues.add(path, _version_mismatch(value))
        return _INVALID
    return value


def _check_prefix(value: object, path: str, issues: _Issues) -> object:
    text = _string(value, path, issues)
    if not isinstance(text, str):
        return _INVALID
    prefix = text.strip()
    if prefix and not _CHECK_PREFIX.fullmatch(prefix):
        issues.add(path, "must contain only letters, digits, '.', '_' or '-'")
        return _INVALID
    return prefix


def _suffix_list(value: object, path: str, issues: _Issues) -> object:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return _INVALID
    suffixes: list[str] = []
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        if not isinstance(item, str):
            issues.add(item_path, f"expected string, got {type(item).__name__}")
        elif "/" in item:
            issues.add(item_path, "must not contain path separators")
        elif item not in suffixes:
            suffixes.append(item)
    return suffixes


_SECTION_FIELDS: Final[dict[str, dict[str, _FieldCheck]]] = {
    "meta": {"schema_version": _schema_version},
    "checks": {
        "directory": _path_text,
        "prefix": _check_prefix,
        "disabled_suffixes": _suffix_list,
    },
    "observability": {
        "log_level": _one_of(LOG_LEVELS),
        "log_format": _one_of(LOG_FORMATS),
        "log_to_file": _boolean,
        "log_dir": _path_text,
        "log_to_stderr": _boolean,
        "redact_secrets": _boolean,
    },
}
_SECTIONS: Final[tuple[str, ...]] = tuple(_SECTION_FIELDS)
_PROFILE_SECTIONS: Final[tuple[str, ...]] = ("checks", "observability")


# ---------------------------------------------------------------------------
# Structure checks
# ---------------------------------------------------------------------------


def _section(
    value: object, name: str, path: str, issues: _Issues, *, partial: bool
) -> dict[str, Any] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    fields = _SECTION_FIELDS[name]
    _check_keys(value, allowed=tuple(fields), required=() if partial else tuple(fields),
                path=path, issues=issues)

    out: dict[str, Any] = {}
    for key, check in fields.items():
        if key in value:
            checked = check(value[key], f"{path}.{key}", issues)
            if checked is not _INVALID:
                out[key] = checked
    return out


def _profiles(value: object, issues: _Issues) -> dict[str, Any] | None:
    if not isinstance(value, Mapping):
        issues.add("profiles", f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, Any] = {}
    for name in sorted(value):
        path = f"profiles.{name}"
        if not isinstance(name, str) or not _PROFILE_NAME.fullmatch(name):
            issues.add(path, "profile names must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = value[name]
        if not isinstance(overlay, Mapping):
            issues.add(path, f"expected object, got {type(overlay).__name__}")
            continue
        _check_keys(overlay, allowed=_PROFILE_SECTIONS, required=(), path=path, issues=issues)
        checked: dict[str, Any] = {}
        for section in _PROFILE_SECTIONS:
            if section in overlay:
                partial = _section(
                    overlay[section], section, f"{path}.{section}", issues, partial=True
                )
                if partial is not None:
                    checked[section] = partial
        out[name] = checked
    return out


def _check_keys(
    payload: Mapping[str, object],
    *,
    allowed: Sequence[str],
    required: Sequence[str],
    path: str,
    issues: _Issues,
) -> None:
    for key in sorted(payload, key=str):
        if key in allowed:
            continue
        key_path = f"{path}.{key}" if path else str(key)
        if _is_secret_key(str(key)):
            issues.add(key_path, "embedded secret values are forbidden in hookgate.toml")
        else:
            issues.add(key_path, "unknown field")
    for key in sorted(required):
        if key not in payload:
            issues.add(f"{path}.{key}" if path else key, "missing required field")


def _is_secret_key(key: str) -> bool:
    snake = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key.strip()).lower()
    normalized = re.sub(r"[^a-z0-9]+", "_", snake).strip("_")
    if any(phrase in normalized for phrase in _SECRET_PHRASES):
        return True
    return any(word in _SECRET_WORDS for word in normalized.split("_"))


def _redact(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value, key=str):
        item = value[key]
        if _is_secret_key(str(key)):
            out[key] = _REDACTED
        elif isinstance(item, Mapping):
            out[key] = _redact(item)
        elif isinstance(item, (list, tuple)):
            out[key] = [_redact(entry) if isinstance(entry, Mapping) else entry for entry in item]
        else:
            out[key] = item
    return out


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "HookgateConfig",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "redact_config",
    "validate_config",
]
