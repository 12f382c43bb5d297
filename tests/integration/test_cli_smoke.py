"""
hookgate — CLI subprocess smoke contracts

File: tests/integration/test_cli_smoke.py
Last updated: 2026-10-19

Purpose
- Enforce end-to-end behavior of ``python -m hookgate`` inside a real git repository.
- Verify exit codes, output ordering on reject, and the installed pre-commit hook.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

pytestmark = pytest.mark.integration

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"


def _env(home: Path) -> dict[str, str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    env["HOME"] = str(home)
    env["XDG_CONFIG_HOME"] = str(home / ".config")
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["NO_COLOR"] = "1"
    for key in list(env):
        if key.startswith("HOOKGATE_"):
            del env[key]
    return env


def _run_cli(repo_root: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "hookgate", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=_env(repo_root.parent / "home"),
    )


def _git(repo_root: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=_env(repo_root.parent / "home"),
    )
    if check and completed.returncode != 0:
        msg = (
            f"git command failed: git {' '.join(args)}\n"
            f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
        )
        raise AssertionError(msg)
    return completed


def _write_check(checks_dir: Path, name: str, body: str, *, mode: int = 0o755) -> Path:
    checks_dir.mkdir(parents=True, exist_ok=True)
    path = checks_dir / name
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(mode)
    return path


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    (tmp_path / "home").mkdir()
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    _git(root, "config", "user.email", "dev@example.com")
    _git(root, "config", "user.name", "Dev")
    (root / "README.md").write_text("hello\n", encoding="utf-8")
    _git(root, "add", "README.md")
    return root


@pytest.fixture
def checks_dir(repo: Path) -> Path:
    path = repo / ".githooks" / "hooks.d"
    path.mkdir(parents=True)
    return path


def test_accepts_when_every_check_passes(repo: Path, checks_dir: Path) -> None:
    _write_check(checks_dir, "proj-20-b", "echo 'b ok'")
    _write_check(checks_dir, "proj-10-a", "echo 'a ok'")

    completed = _run_cli(repo, "run")

    assert completed.returncode == 0, completed.stderr
    lines = completed.stdout.splitlines()
    assert lines == [
        "hookgate: running proj-10-a",
        "a ok",
        "hookgate: running proj-20-b",
        "b ok",
        "hookgate: 2 check(s) passed",
    ]


def test_reject_leaves_failing_check_output_last(repo: Path, checks_dir: Path) -> None:
    marker = repo.parent / "c-ran"
    _write_check(checks_dir, "proj-10-a", "echo 'a ok'")
    _write_check(checks_dir, "proj-20-b", "echo 'b: trailing whitespace in README.md'\nexit 1")
    _write_check(checks_dir, "proj-30-c", f"touch '{marker}'")

    completed = _run_cli(repo)

    assert completed.returncode == 1
    assert completed.stdout.splitlines()[-1] == "b: trailing whitespace in README.md"
    assert "proj-30-c" not in completed.stdout
    assert not marker.exists()


def test_non_executable_check_is_skipped(repo: Path, checks_dir: Path) -> None:
    _write_check(checks_dir, "proj-10-a", "exit 0")
    _write_check(checks_dir, "proj-20-b", "exit 1", mode=0o644)
    _write_check(checks_dir, "proj-30-c", "exit 0")

    completed = _run_cli(repo, "run")

    assert completed.returncode == 0, completed.stdout
    assert "proj-20-b" not in completed.stdout


def test_missing_checks_directory_is_a_config_error(repo: Path) -> None:
    completed = _run_cli(repo, "run")

    assert completed.returncode == 2
    expected_dir = (repo.resolve() / ".githooks" / "hooks.d").as_posix()
    assert completed.stderr.strip() == (
        f"hookgate: checks directory {expected_dir} does not exist; no checks were run"
    )
    assert completed.stdout == ""


def test_json_report_keeps_stdout_machine_readable(repo: Path, checks_dir: Path) -> None:
    _write_check(checks_dir, "10-a", "echo 'a says hi'")
    _write_check(checks_dir, "20-b", "echo 'b failed' >&2\nexit 5")
    _write_check(checks_dir, "30-c", "exit 0")

    completed = _run_cli(repo, "run", "--json")

    assert completed.returncode == 1
    payload = json.loads(completed.stdout)
    assert payload["verdict"] == "reject"
    assert [(item["identifier"], item["exit_code"]) for item in payload["outcomes"]] == [
        ("10-a", 0),
        ("20-b", 5),
    ]
    assert [item["identifier"] for item in payload["skipped"]] == ["30-c"]
    assert "a says hi" in completed.stderr
    assert "b failed" in completed.stderr


def test_check_sees_staged_files_from_repo_root(repo: Path, checks_dir: Path) -> None:
    _write_check(
        checks_dir,
        "10-staged",
        'git diff --cached --name-only --diff-filter=ACM | grep -qx "README.md" || exit 3',
    )

    completed = _run_cli(repo, "run")

    assert completed.returncode == 0, completed.stdout + completed.stderr


def test_debug_profile_writes_jsonl_log(repo: Path, checks_dir: Path) -> None:
    _write_check(checks_dir, "10-a", "exit 0")

    completed = _run_cli(repo, "--profile", "debug", "run")

    assert completed.returncode == 0, completed.stderr
    logs = list((repo / ".hookgate" / "logs").glob("*/hookgate.jsonl"))
    assert len(logs) == 1
    events = [json.loads(line) for line in logs[0].read_text(encoding="utf-8").splitlines()]
    messages = [event["message"] for event in events]
    assert "gate started" in messages
    assert "gate finished" in messages
    finished = [event for event in events if event["message"] == "check finished"]
    assert finished[0]["check_id"] == "10-a"


def test_installed_hook_gates_git_commit(repo: Path) -> None:
    installed = _run_cli(repo, "install")
    assert installed.returncode == 0, installed.stderr
    assert _git(repo, "config", "--get", "core.hooksPath").stdout.strip() == ".githooks"

    checks_dir = repo / ".githooks" / "hooks.d"
    _write_check(
        checks_dir,
        "10-no-todo",
        "if git diff --cached -U0 | grep -q '^+.*TODO'; then\n"
        "  echo 'no-todo: remove TODO markers before committing'\n"
        "  exit 1\n"
        "fi",
    )

    accepted = _git(repo, "commit", "-q", "-m", "initial", check=False)
    assert accepted.returncode == 0, accepted.stdout + accepted.stderr

    (repo / "notes.txt").write_text("TODO: later\n", encoding="utf-8")
    _git(repo, "add", "notes.txt")
    rejected = _git(repo, "commit", "-q", "-m", "notes", check=False)
    assert rejected.returncode != 0
    assert "no-todo: remove TODO markers before committing" in rejected.stdout + rejected.stderr

    bypassed = _git(repo, "commit", "-q", "--no-verify", "-m", "notes", check=False)
    assert bypassed.returncode == 0, bypassed.stderr


def test_install_refuses_foreign_hook(repo: Path) -> None:
    hooks = repo / ".githooks"
    hooks.mkdir()
    (hooks / "pre-commit").write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")

    completed = _run_cli(repo, "install")

    assert completed.returncode == 2
    assert "not written by hookgate" in completed.stderr
