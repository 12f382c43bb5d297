"""Stable constants shared across hookgate modules."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema version for hookgate.toml.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Default on-disk layout, relative to the repository root.
DEFAULT_CONFIG_FILE: Final[str] = "hookgate.toml"
DEFAULT_HOOKS_DIR: Final[PurePosixPath] = PurePosixPath(".githooks")
DEFAULT_CHECKS_DIR: Final[PurePosixPath] = DEFAULT_HOOKS_DIR / "hooks.d"
DEFAULT_LOG_DIR: Final[PurePosixPath] = PurePosixPath(".hookgate/logs")

# Entries ending in one of these are kept on disk but never run.
DEFAULT_DISABLED_SUFFIXES: Final[tuple[str, ...]] = (".disabled", ".sample")

# Synthetic exit codes for checks that could not be launched (shell conventions).
LAUNCH_NOT_FOUND_EXIT_CODE: Final[int] = 127
LAUNCH_FAILED_EXIT_CODE: Final[int] = 126

GATE_HOOK_NAME: Final[str] = "pre-commit"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CHECKS_DIR",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_DISABLED_SUFFIXES",
    "DEFAULT_HOOKS_DIR",
    "DEFAULT_LOG_DIR",
    "GATE_HOOK_NAME",
    "LAUNCH_FAILED_EXIT_CODE",
    "LAUNCH_NOT_FOUND_EXIT_CODE",
]
