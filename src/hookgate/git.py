"""Git helpers: repository discovery, the staged set, and hooks-path wiring."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

# Added, copied, or modified; deleted paths have nothing left to validate.
STAGED_DIFF_FILTER = "ACM"


class GitError(RuntimeError):
    """Base error for git helper failures."""


@dataclass(frozen=True, slots=True)
class GitResult:
    """Captured result of one ``git`` invocation."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitCommandError(GitError):
    """A git invocation exited non-zero; the message carries git's stderr."""

    def __init__(self, result: GitResult) -> None:
        self.result = result
        self.command = result.command
        self.returncode = result.returncode
        detail = result.stderr.strip()
        super().__init__(
            f"`{' '.join(result.command)}` exited with {result.returncode}"
            + (f": {detail}" if detail else "")
        )


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | str,
    check: bool = True,
    env_overrides: Mapping[str, str] | None = None,
) -> GitResult:
    """Run ``git <args>`` in ``cwd`` without ever prompting, capturing output."""

    workdir = Path(cwd).resolve()
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", **(env_overrides or {})}
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=workdir,
            env=env,
            text=True,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found on PATH") from exc

    result = GitResult(
        command=("git", *args),
        cwd=workdir.as_posix(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and not result.ok:
        raise GitCommandError(result)
    return result


def find_repo_root(start: Path | str) -> Path | None:
    """Return the top-level directory of the work tree containing ``start``."""

    try:
        result = run_git(["rev-parse", "--show-toplevel"], cwd=start, check=False)
    except GitError:
        return None
    top = result.stdout.strip()
    return Path(top) if result.ok and top else None


def staged_files(repo_root: Path | str, *, diff_filter: str = STAGED_DIFF_FILTER) -> tuple[str, ...]:
    """Return repository-relative paths staged for the next commit.

    This is the same query a shell check runs
    (``git diff --cached --name-only --diff-filter=ACM``); Python checks can call it
    directly.
    """

    result = run_git(
        ["diff", "--cached", "--name-only", "-z", f"--diff-filter={diff_filter}"],
        cwd=repo_root,
    )
    return tuple(sorted(filter(None, result.stdout.split("\0"))))


def get_hooks_path(repo_root: Path | str) -> str | None:
    """Return the configured ``core.hooksPath`` or ``None`` when unset."""

    result = run_git(["config", "--get", "core.hooksPath"], cwd=repo_root, check=False)
    return result.stdout.strip() or None


def set_hooks_path(repo_root: Path | str, hooks_dir: str) -> None:
    run_git(["config", "core.hooksPath", hooks_dir], cwd=repo_root)


__all__ = [
    "GitCommandError",
    "GitError",
    "GitResult",
    "STAGED_DIFF_FILTER",
    "find_repo_root",
    "get_hooks_path",
    "run_git",
    "set_hooks_path",
    "staged_files",
]
