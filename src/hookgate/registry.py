"""
hookgate — check registry

File: src/hookgate/registry.py
Last updated: 2026-10-19

Purpose
- Produce the authoritative, deterministic list of checks to run for one gate
  invocation by scanning the checks directory.

Normative behavior
- Only entries directly inside the checks directory are considered (no recursion).
  Sub-directories and dot-files are not candidates.
- An entry is runnable when it is a regular file (symlinks followed), carries
  execute permission for the current user, and does not end in a disabling suffix.
- Order: numeric order key ascending, ties broken by full identifier. Identifiers
  without a numeric segment sort after every numbered one.
- Every call rescans the directory; nothing is cached.
- A missing or unreadable checks directory raises ``ConfigurationError``. An empty
  directory is not an error.
"""

from __future__ import annotations

import os
import re
import stat
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from hookgate.constants import DEFAULT_CHECKS_DIR, DEFAULT_DISABLED_SUFFIXES

_ORDER_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?:^|[-_.])(\d+)(?=[-_.]|$)")


class ConfigurationError(RuntimeError):
    """Raised when the gate cannot determine what to validate."""

    def __init__(self, directory: Path, reason: str) -> None:
        self.directory = directory
        self.reason = reason
        super().__init__(f"checks directory {directory.as_posix()} {reason}; no checks were run")


@dataclass(frozen=True, slots=True)
class CheckDescriptor:
    """One entry of the checks directory."""

    identifier: str
    path: Path
    order_key: int | None
    runnable: bool

    def sort_key(self) -> tuple[int, int, str]:
        if self.order_key is None:
            return (1, 0, self.identifier)
        return (0, self.order_key, self.identifier)

    def to_dict(self) -> dict[str, object]:
        return {
            "identifier": self.identifier,
            "path": self.path.as_posix(),
            "order_key": self.order_key,
            "runnable": self.runnable,
        }


@dataclass(frozen=True, slots=True)
class RegistrySettings:
    """Where to look for checks and which names to ignore."""

    directory: Path
    prefix: str = ""
    disabled_suffixes: tuple[str, ...] = DEFAULT_DISABLED_SUFFIXES

    @classmethod
    def from_config(cls, config: Mapping[str, object], *, repo_root: Path) -> RegistrySettings:
        """Build settings from the ``[checks]`` section of an effective config."""

        section = config.get("checks")
        checks = section if isinstance(section, Mapping) else {}

        raw_directory = checks.get("directory", DEFAULT_CHECKS_DIR.as_posix())
        directory = Path(str(raw_directory)).expanduser()
        if not directory.is_absolute():
            directory = repo_root / directory

        raw_prefix = checks.get("prefix", "")
        raw_suffixes = checks.get("disabled_suffixes", DEFAULT_DISABLED_SUFFIXES)
        suffixes = (
            tuple(str(item) for item in raw_suffixes)
            if isinstance(raw_suffixes, (list, tuple))
            else DEFAULT_DISABLED_SUFFIXES
        )
        return cls(directory=directory, prefix=str(raw_prefix).strip(), disabled_suffixes=suffixes)


class CheckRegistry:
    """Scans a checks directory into ordered ``CheckDescriptor`` sequences."""

    def __init__(self, settings: RegistrySettings) -> None:
        self.settings = settings

    @property
    def directory(self) -> Path:
        return self.settings.directory

    def scan(self) -> tuple[CheckDescriptor, ...]:
        """Return every candidate entry, runnable or not, in run order."""

        return scan_checks(
            self.settings.directory,
            prefix=self.settings.prefix,
            disabled_suffixes=self.settings.disabled_suffixes,
        )

    def discover(self) -> tuple[CheckDescriptor, ...]:
        """Return the runnable checks in run order."""

        return tuple(item for item in self.scan() if item.runnable)


def scan_checks(
    directory: Path | str,
    *,
    prefix: str = "",
    disabled_suffixes: Sequence[str] = DEFAULT_DISABLED_SUFFIXES,
) -> tuple[CheckDescriptor, ...]:
    """Describe every candidate entry of ``directory``, sorted into run order."""

    root = Path(directory)
    entries = _list_entries(root)
    name_prefix = f"{prefix}-" if prefix else ""

    descriptors: list[CheckDescriptor] = []
    for entry in entries:
        name = entry.name
        if name.startswith("."):
            continue
        if name_prefix and not name.startswith(name_prefix):
            continue
        descriptors.append(
            CheckDescriptor(
                identifier=name,
                path=entry.absolute(),
                order_key=parse_order_key(name[len(name_prefix) :]),
                runnable=_is_runnable(entry, disabled_suffixes),
            )
        )

    return tuple(sorted(descriptors, key=CheckDescriptor.sort_key))


def discover(
    directory: Path | str,
    *,
    prefix: str = "",
    disabled_suffixes: Sequence[str] = DEFAULT_DISABLED_SUFFIXES,
) -> tuple[CheckDescriptor, ...]:
    """Return the runnable checks of ``directory`` in run order."""

    return tuple(
        item
        for item in scan_checks(directory, prefix=prefix, disabled_suffixes=disabled_suffixes)
        if item.runnable
    )


def parse_order_key(identifier: str) -> int | None:
    """Return the first separator-delimited number in ``identifier``.

    ``proj-20-lint.sh`` -> ``20``; ``lint.sh`` -> ``None``.
    """

    match = _ORDER_KEY_PATTERN.search(identifier)
    if match is None:
        return None
    return int(match.group(1))


def _list_entries(root: Path) -> list[Path]:
    """Return the non-directory entries of ``root``.

    Any ``OSError`` while inspecting ``root`` or its entries means the directory
    cannot be read, including one that is listable but not searchable.
    """

    try:
        mode = root.stat().st_mode
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise ConfigurationError(root, "does not exist") from exc
    except OSError as exc:
        raise ConfigurationError(root, f"is not readable ({exc.strerror or exc})") from exc
    if not stat.S_ISDIR(mode):
        raise ConfigurationError(root, "is not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ConfigurationError(root, "is not readable (permission denied)")
    try:
        with os.scandir(root) as listing:
            return [root / item.name for item in listing if not item.is_dir()]
    except OSError as exc:
        raise ConfigurationError(root, f"is not readable ({exc.strerror or exc})") from exc


def _is_runnable(entry: Path, disabled_suffixes: Sequence[str]) -> bool:
    if any(entry.name.endswith(suffix) for suffix in disabled_suffixes):
        return False
    try:
        if not entry.is_file():
            return False
    except OSError:
        return False
    return os.access(entry, os.X_OK)


__all__ = [
    "CheckDescriptor",
    "CheckRegistry",
    "ConfigurationError",
    "RegistrySettings",
    "discover",
    "parse_order_key",
    "scan_checks",
]
