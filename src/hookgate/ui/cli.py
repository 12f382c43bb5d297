"""Command-line interface router for hookgate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from hookgate import __version__
from hookgate.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
    redact_config,
)
from hookgate.coordinator import ExecutionContext, run_gate
from hookgate.git import GitError, find_repo_root, staged_files
from hookgate.install import InstallError, install, plan_install
from hookgate.main import ExitCode
from hookgate.observability import setup_logging, shutdown_logging
from hookgate.registry import CheckDescriptor, CheckRegistry, RegistrySettings
from hookgate.ui.render import CLIRenderer, GateProgress, create_renderer

logger = logging.getLogger("hookgate.cli")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.CONFIG_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _common_options(*, suppress_defaults: bool) -> argparse.ArgumentParser:
    # Sub-commands re-declare the options with suppressed defaults so a value
    # given before the sub-command name is not reset by the sub-parser.
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_defaults else value

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=default(None),
        help="Repository root (default: the enclosing git work tree, else the current directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=default(None),
        help="Path to hookgate TOML config (default: <repo root>/hookgate.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=default(None),
        help="Optional config profile overlay name (built-in: debug, quiet).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=default(False),
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=default(False),
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router; no sub-command means ``run``."""

    parser = argparse.ArgumentParser(
        prog="hookgate",
        description=(
            "hookgate — modular commit gate.\n\n"
            "Runs every executable check in the checks directory in order and\n"
            "rejects the commit at the first one that exits non-zero.\n\n"
            "Common workflows:\n"
            "  hookgate install            Wire git to run the gate on commit\n"
            "  hookgate list               Show discovered checks and their order\n"
            "  hookgate                    Run the gate now (what the hook does)\n"
            "  git commit --no-verify      Bypass the gate for one commit\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_options(suppress_defaults=False)],
    )
    parser.add_argument("--version", action="version", version=f"hookgate {__version__}")
    parser.set_defaults(handler=_cmd_run, json=False)
    common = _common_options(suppress_defaults=True)

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run the gate against the staged changes",
        description="Run all runnable checks in order; exit 0 to accept, 1 to reject.",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the gate report as JSON on stdout (check output goes to stderr)",
    )
    run_parser.set_defaults(handler=_cmd_run)

    list_parser = subparsers.add_parser(
        "list",
        parents=[common],
        help="List checks in run order",
        description="Show every entry of the checks directory with its order and state.",
    )
    list_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    list_parser.set_defaults(handler=_cmd_list)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
        description="Print the effective configuration after file, env, and profile merging.",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    install_parser = subparsers.add_parser(
        "install",
        parents=[common],
        help="Wire git to run the gate on every commit",
        description=(
            "Create the checks directory, write the pre-commit dispatcher next to it,\n"
            "and set core.hooksPath for this repository."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    install_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing pre-commit hook that hookgate did not write",
    )
    install_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without changing anything",
    )
    install_parser.add_argument(
        "--python",
        default=None,
        help="Interpreter the hook should use (default: the current one)",
    )
    install_parser.set_defaults(handler=_cmd_install)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"hookgate: error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)
    as_json = _flag(args, "json")
    renderer = _get_renderer(args)

    handle = setup_logging(_section(config, "observability"), run_id=_new_run_id())
    if handle.file_error is not None:
        print(f"hookgate: warning: log file disabled ({handle.file_error})", file=sys.stderr)
    try:
        registry = CheckRegistry(RegistrySettings.from_config(config, repo_root=repo_root))
        descriptors = registry.discover()
        logger.info(
            "checks discovered",
            extra={"directory": registry.directory, "count": len(descriptors)},
        )
        _log_staged_set(repo_root)

        context = ExecutionContext.for_repository(
            repo_root,
            stdout=sys.stderr if as_json else None,
        )
        observer = None if as_json else GateProgress(renderer)
        report = run_gate(descriptors, context, observer=observer)
    finally:
        shutdown_logging(handle)

    if as_json:
        _emit_json(report.to_dict())
    elif report.accepted and report.outcomes:
        renderer.text(f"hookgate: {len(report.outcomes)} check(s) passed")
    elif report.accepted and renderer.verbose:
        renderer.text(f"hookgate: no runnable checks in {registry.directory.as_posix()}")

    return int(ExitCode.ACCEPT if report.accepted else ExitCode.REJECT)


def _cmd_list(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, repo_root)
    registry = CheckRegistry(RegistrySettings.from_config(config, repo_root=repo_root))
    entries = registry.scan()

    if _flag(args, "json"):
        _emit_json(
            {
                "directory": registry.directory.as_posix(),
                "checks": [item.to_dict() for item in entries],
            }
        )
        return int(ExitCode.ACCEPT)

    renderer = _get_renderer(args)
    renderer.kv("Checks directory", registry.directory.as_posix())
    if not entries:
        renderer.text("No checks found.")
        return int(ExitCode.ACCEPT)

    rows = [
        (
            str(position) if item.runnable else "-",
            "-" if item.order_key is None else str(item.order_key),
            item.identifier,
            "runnable" if item.runnable else "disabled",
        )
        for position, item in _number_runnable(entries)
    ]
    renderer.table(("RUN", "ORDER", "CHECK", "STATE"), rows)
    return int(ExitCode.ACCEPT)


def _cmd_config(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = redact_config(_load_effective_config(args, repo_root))

    if _flag(args, "json"):
        _emit_json(config)
        return int(ExitCode.ACCEPT)

    renderer = _get_renderer(args)
    for section_name in ("checks", "observability"):
        renderer.section(f"[{section_name}]")
        section = _section(config, section_name)
        for key in sorted(section):
            renderer.kv(f"  {key}", json.dumps(section[key], ensure_ascii=False))
    profiles = config.get("profiles")
    if isinstance(profiles, Mapping) and profiles:
        renderer.section("Profiles:")
        renderer.items(sorted(str(name) for name in profiles))
    return int(ExitCode.ACCEPT)


def _cmd_install(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    if find_repo_root(repo_root) is None:
        raise CLIError(f"not a git repository: {repo_root.as_posix()}")
    config = _load_effective_config(args, repo_root)
    settings = RegistrySettings.from_config(config, repo_root=repo_root)
    try:
        plan = plan_install(repo_root, settings.directory, python=getattr(args, "python", None))
        result = install(plan, force=_flag(args, "force"), dry_run=_flag(args, "dry_run"))
    except (InstallError, GitError) as exc:
        raise CLIError(str(exc)) from exc

    renderer = _get_renderer(args)
    verb = "would" if result.dry_run else "did"
    renderer.heading("hookgate install" + (" (dry run)" if result.dry_run else ""))
    renderer.kv("Checks directory", plan.checks_dir.as_posix())
    renderer.kv("Gate hook", plan.hook_path.as_posix())
    renderer.kv("core.hooksPath", plan.hooks_path_value)
    if not result.changed:
        renderer.text("Already installed; nothing to do.")
        return int(ExitCode.ACCEPT)
    changes = []
    if result.created_checks_dir:
        changes.append(f"{verb} create {plan.checks_dir.as_posix()}")
    if result.wrote_hook:
        changes.append(f"{verb} write {plan.hook_path.as_posix()}")
    if result.updated_hooks_path:
        changes.append(f"{verb} set core.hooksPath={plan.hooks_path_value}")
    renderer.items(changes)
    if not result.dry_run:
        renderer.next_steps(
            [
                f"cp my-check.sh {plan.checks_dir.as_posix()}/<prefix>-10-my-check.sh",
                "chmod +x <that file>",
                "hookgate list",
            ]
        )
    return int(ExitCode.ACCEPT)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _number_runnable(
    entries: Sequence[CheckDescriptor],
) -> list[tuple[int, CheckDescriptor]]:
    numbered: list[tuple[int, CheckDescriptor]] = []
    position = 0
    for item in entries:
        if item.runnable:
            position += 1
        numbered.append((position, item))
    return numbered


# ---------------------------------------------------------------------------
# Helpers: config, paths, resolution
# ---------------------------------------------------------------------------


def _repo_root(args: argparse.Namespace) -> Path:
    raw = getattr(args, "repo_root", None)
    if raw is None:
        cwd = Path.cwd()
        return find_repo_root(cwd) or cwd.resolve()
    candidate = Path(str(raw)).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate.as_posix()}")
    return candidate


def _load_effective_config(args: argparse.Namespace, repo_root: Path) -> dict[str, object]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    try:
        loaded = load_config(config_path, search_root=repo_root, profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc)) from exc

    return dict(loaded)


def _log_staged_set(repo_root: Path) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    try:
        staged = staged_files(repo_root)
    except GitError as exc:
        logger.debug("staged set unavailable: %s", exc)
        return
    logger.debug("staged set", extra={"staged_count": len(staged), "staged": list(staged)})


def _section(config: Mapping[str, object], name: str) -> dict[str, object]:
    section = config.get(name)
    return dict(section) if isinstance(section, Mapping) else {}


def _new_run_id() -> str:
    return f"{datetime.now(tz=UTC):%Y%m%dT%H%M%SZ}-{uuid4().hex[:8]}"


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
