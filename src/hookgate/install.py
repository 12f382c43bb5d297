"""
hookgate — one-time hook wiring

File: src/hookgate/install.py
Last updated: 2026-10-19

Purpose
- Point git at the hooks directory so the gate runs on every commit: write a
  ``pre-commit`` dispatcher next to the checks directory, make sure the checks
  directory exists, and set ``core.hooksPath``.

Functional requirements
- Idempotent: re-running against an installed repository changes nothing.
- Never overwrite a ``pre-commit`` file that hookgate did not write, unless forced.
- ``dry_run`` reports the plan without touching the filesystem or git config.
"""

from __future__ import annotations

import logging
import shlex
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from hookgate.constants import GATE_HOOK_NAME
from hookgate.git import get_hooks_path, set_hooks_path

logger = logging.getLogger("hookgate.install")

HOOK_MARKER: Final[str] = "# installed by hookgate"

_HOOK_TEMPLATE: Final[str] = """#!/bin/sh
{marker}
# Runs every executable in {checks_dir} in order; bypass once with --no-verify.
exec {python} -m hookgate run
"""


class InstallError(RuntimeError):
    """Raised when the hook cannot be installed safely."""


@dataclass(frozen=True, slots=True)
class InstallPlan:
    """Everything ``install`` will touch, resolved up front."""

    repo_root: Path
    checks_dir: Path
    hook_path: Path
    hooks_path_value: str
    hook_script: str

    @property
    def hooks_dir(self) -> Path:
        return self.hook_path.parent


@dataclass(frozen=True, slots=True)
class InstallResult:
    plan: InstallPlan
    created_checks_dir: bool
    wrote_hook: bool
    updated_hooks_path: bool
    dry_run: bool

    @property
    def changed(self) -> bool:
        return self.created_checks_dir or self.wrote_hook or self.updated_hooks_path


def plan_install(repo_root: Path, checks_dir: Path, *, python: str | None = None) -> InstallPlan:
    """Resolve paths and render the dispatcher script for ``repo_root``."""

    root = repo_root.resolve()
    checks = checks_dir if checks_dir.is_absolute() else root / checks_dir
    checks = checks.resolve()
    hooks_dir = checks.parent
    if hooks_dir == root or hooks_dir in root.parents:
        raise InstallError(
            f"checks directory {checks.as_posix()} must sit inside a dedicated hooks "
            "directory below the repository root (for example .githooks/hooks.d)"
        )
    try:
        hooks_path_value = hooks_dir.relative_to(root).as_posix()
    except ValueError:
        hooks_path_value = hooks_dir.as_posix()

    try:
        display_checks = checks.relative_to(root).as_posix()
    except ValueError:
        display_checks = checks.as_posix()

    script = _HOOK_TEMPLATE.format(
        marker=HOOK_MARKER,
        checks_dir=display_checks,
        python=shlex.quote(python or sys.executable),
    )
    return InstallPlan(
        repo_root=root,
        checks_dir=checks,
        hook_path=hooks_dir / GATE_HOOK_NAME,
        hooks_path_value=hooks_path_value,
        hook_script=script,
    )


def install(plan: InstallPlan, *, force: bool = False, dry_run: bool = False) -> InstallResult:
    """Apply ``plan``; see module docstring for the safety rules."""

    create_checks_dir = not plan.checks_dir.is_dir()
    if plan.checks_dir.exists() and create_checks_dir:
        raise InstallError(f"{plan.checks_dir.as_posix()} exists and is not a directory")

    write_hook = _needs_hook_write(plan, force=force)
    update_hooks_path = get_hooks_path(plan.repo_root) != plan.hooks_path_value

    if not dry_run:
        if create_checks_dir:
            plan.checks_dir.mkdir(parents=True, exist_ok=True)
            logger.info("created checks directory", extra={"path": plan.checks_dir})
        if write_hook:
            plan.hook_path.parent.mkdir(parents=True, exist_ok=True)
            plan.hook_path.write_text(plan.hook_script, encoding="utf-8")
            mode = plan.hook_path.stat().st_mode
            plan.hook_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            logger.info("wrote gate hook", extra={"path": plan.hook_path})
        if update_hooks_path:
            set_hooks_path(plan.repo_root, plan.hooks_path_value)
            logger.info("set core.hooksPath", extra={"value": plan.hooks_path_value})

    return InstallResult(
        plan=plan,
        created_checks_dir=create_checks_dir,
        wrote_hook=write_hook,
        updated_hooks_path=update_hooks_path,
        dry_run=dry_run,
    )


def _needs_hook_write(plan: InstallPlan, *, force: bool) -> bool:
    if not plan.hook_path.exists():
        return True
    try:
        current = plan.hook_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        if force:
            return True
        raise InstallError(f"cannot read existing hook {plan.hook_path.as_posix()}: {exc}") from exc
    if current == plan.hook_script:
        return False
    if HOOK_MARKER in current or force:
        return True
    raise InstallError(
        f"{plan.hook_path.as_posix()} was not written by hookgate; "
        "move it into the checks directory or re-run with --force"
    )


__all__ = [
    "HOOK_MARKER",
    "InstallError",
    "InstallPlan",
    "InstallResult",
    "install",
    "plan_install",
]
