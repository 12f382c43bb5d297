"""
hookgate — runtime config loader.

File: src/hookgate/config/loader.py
Last updated: 2026-10-19

Purpose
- Build the effective config for one gate run from built-in defaults, the
  repository's ``hookgate.toml``, an optional profile, ``HOOKGATE_*`` environment
  variables, and programmatic overrides, in that order.

Functional requirements
- A missing default ``hookgate.toml`` is not an error; a missing explicit path is.
- Every intermediate and final config is schema-validated.
- ``checks.directory`` and ``observability.log_dir`` are made absolute relative to
  the directory holding the config file (the repository root by default).
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from hookgate.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
)
from hookgate.constants import DEFAULT_CONFIG_FILE

ENV_PREFIX: Final[str] = "HOOKGATE_"
PROFILE_ENV_VAR: Final[str] = f"{ENV_PREFIX}PROFILE"

# Only these sections are reachable from the environment; meta and profiles are file-only.
_ENV_SECTIONS: Final[tuple[str, ...]] = ("checks", "observability")

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be read or an override cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    search_root: str | Path | None = None,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    ``search_root`` is where the default ``hookgate.toml`` is looked up (the
    repository root when running as a hook); it defaults to the current directory.
    ``cli_overrides`` takes dotted keys such as ``{"checks.prefix": "proj"}``.
    """

    env = os.environ if environ is None else environ
    path = _config_file_path(config_path, search_root)
    from_file = _read_toml(path, required=config_path is not None)

    config = assert_valid_config(merge_config(default_config(), from_file))

    selected = _selected_profile(profile, env)
    if selected is not None:
        config = apply_profile_overlay(config, selected)

    config = merge_config(config, _env_overrides(config, env))
    config = merge_config(config, _dotted_overrides(cli_overrides or {}))
    config = assert_valid_config(config, active_profile=selected)

    return assert_valid_config(
        normalize_paths(config, base_dir=path.parent), active_profile=selected
    )


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Make every configured path field absolute relative to ``base_dir``."""

    out = merge_config({}, config)
    for section, key in PATH_FIELDS:
        _absolutize(out.get(section), key, base_dir)

    profiles = out.get("profiles")
    if isinstance(profiles, dict):
        for overlay in profiles.values():
            if not isinstance(overlay, dict):
                continue
            for section, key in PATH_FIELDS:
                _absolutize(overlay.get(section), key, base_dir)
    return out


def _config_file_path(config_path: str | Path | None, search_root: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path).expanduser().resolve()
    root = Path.cwd() if search_root is None else Path(search_root).expanduser()
    return (root / DEFAULT_CONFIG_FILE).resolve()


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


def _selected_profile(explicit: str | None, env: Mapping[str, str]) -> str | None:
    raw = explicit if explicit is not None else env.get(PROFILE_ENV_VAR)
    if raw is None:
        return None
    return raw.strip() or None


def _env_overrides(config: Mapping[str, object], env: Mapping[str, str]) -> dict[str, Any]:
    """Map ``HOOKGATE_<SECTION>_<KEY>`` onto scalar fields, coerced to the field's type."""

    overrides: dict[str, dict[str, object]] = {}
    for section in _ENV_SECTIONS:
        current = config.get(section)
        if not isinstance(current, Mapping):
            continue
        for key in sorted(current):
            name = f"{ENV_PREFIX}{section.upper()}_{key.upper()}"
            raw = env.get(name)
            if raw is None:
                continue
            value = _coerce(raw, like=current[key], name=name)
            if value is not None:
                overrides.setdefault(section, {})[key] = value
    return overrides


def _coerce(raw: str, *, like: object, name: str) -> object | None:
    value = raw.strip()
    if isinstance(like, bool):
        lowered = value.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ConfigLoadError(f"{name} must be a boolean (true/false/1/0/yes/no/on/off)")
    if isinstance(like, int):
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} must be an integer") from exc
    if isinstance(like, str):
        return value
    # Lists (disabled_suffixes) are file-only.
    return None


def _dotted_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for dotted in sorted(overrides):
        parts = [part for part in dotted.split(".") if part]
        if not parts:
            raise ConfigLoadError(f"invalid override key {dotted!r}")
        cursor = out
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
            if not isinstance(cursor, dict):
                raise ConfigLoadError(f"override {dotted!r} conflicts with a scalar override")
        cursor[parts[-1]] = overrides[dotted]
    return out


def _absolutize(section: object, key: str, base_dir: Path) -> None:
    if not isinstance(section, dict):
        return
    raw = section.get(key)
    if not isinstance(raw, str):
        return
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    section[key] = Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "ENV_PREFIX",
    "PROFILE_ENV_VAR",
    "load_config",
    "normalize_paths",
]
