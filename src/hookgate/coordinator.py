"""
hookgate — execution coordinator

File: src/hookgate/coordinator.py
Last updated: 2026-10-19

Purpose
- Run the registry's ordered checks one at a time and compute the gate verdict.

Normative behavior
- Checks run strictly sequentially, as isolated child processes with no arguments,
  in the working directory and environment of the ``ExecutionContext``.
- A check's stdout/stderr are inherited, so its diagnostics reach the operator
  unmodified and in invocation order.
- Abort on first failure: once a check fails no further check is started; the
  remaining identifiers are reported as not invoked.
- A check that cannot be launched is a failed outcome with a synthetic exit code,
  never an engine error.
- Verdict is ``accept`` iff every invoked check passed (true for zero checks).
- No timeout is enforced; a hung check hangs the gate.
"""

from __future__ import annotations

import errno
import logging
import os
import subprocess
import sys
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import IO, Protocol

from hookgate.constants import LAUNCH_FAILED_EXIT_CODE, LAUNCH_NOT_FOUND_EXIT_CODE
from hookgate.observability import correlation_scope
from hookgate.registry import CheckDescriptor

logger = logging.getLogger("hookgate.coordinator")


class CheckStatus(StrEnum):
    """Outcome of one check."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class GateVerdict(StrEnum):
    """Decision on the attempted commit."""

    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """Recorded result of invoking one check."""

    identifier: str
    status: CheckStatus
    exit_code: int | None
    duration_ms: int = 0
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.status is CheckStatus.PASSED

    def to_dict(self) -> dict[str, object]:
        return {
            "identifier": self.identifier,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class GateReport:
    """Ordered outcomes of one gate run plus the resulting verdict."""

    outcomes: tuple[CheckOutcome, ...]
    not_invoked: tuple[str, ...] = ()

    @property
    def verdict(self) -> GateVerdict:
        if all(outcome.status is not CheckStatus.FAILED for outcome in self.outcomes):
            return GateVerdict.ACCEPT
        return GateVerdict.REJECT

    @property
    def accepted(self) -> bool:
        return self.verdict is GateVerdict.ACCEPT

    @property
    def invoked_ids(self) -> tuple[str, ...]:
        return tuple(outcome.identifier for outcome in self.outcomes)

    @property
    def failed_outcome(self) -> CheckOutcome | None:
        for outcome in self.outcomes:
            if outcome.status is CheckStatus.FAILED:
                return outcome
        return None

    @property
    def skipped(self) -> tuple[CheckOutcome, ...]:
        """Checks left unstarted by an abort, as ``skipped`` outcomes."""

        return tuple(
            CheckOutcome(identifier=identifier, status=CheckStatus.SKIPPED, exit_code=None)
            for identifier in self.not_invoked
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "verdict": self.verdict.value,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "skipped": [outcome.to_dict() for outcome in self.skipped],
        }


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Ambient inputs shared by every check of one run.

    Checks resolve their own view of the staged set (``git diff --cached``) from
    ``cwd``; the engine does not hand them a snapshot.
    """

    cwd: Path
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    stdout: IO[str] | None = None
    stderr: IO[str] | None = None

    @classmethod
    def for_repository(
        cls,
        repo_root: Path,
        *,
        env: Mapping[str, str] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> ExecutionContext:
        return cls(
            cwd=repo_root,
            env=dict(os.environ if env is None else env),
            stdout=stdout,
            stderr=stderr,
        )


CheckLauncher = Callable[[CheckDescriptor, ExecutionContext], int]


class GateObserver(Protocol):
    """Receives progress notifications in invocation order."""

    def check_started(self, descriptor: CheckDescriptor) -> None: ...

    def check_finished(self, outcome: CheckOutcome) -> None: ...


def launch_check(descriptor: CheckDescriptor, context: ExecutionContext) -> int:
    """Run one check to completion and return its raw exit status.

    Raises ``OSError`` when the process cannot be started.
    """

    _flush_streams(context)
    completed = subprocess.run(
        [str(descriptor.path)],
        cwd=context.cwd,
        env=dict(context.env),
        stdin=subprocess.DEVNULL,
        stdout=context.stdout,
        stderr=context.stderr,
        check=False,
    )
    return completed.returncode


def run_gate(
    descriptors: Sequence[CheckDescriptor],
    context: ExecutionContext,
    *,
    observer: GateObserver | None = None,
    launcher: CheckLauncher | None = None,
) -> GateReport:
    """Run ``descriptors`` in order, stopping after the first failure."""

    launch = launcher if launcher is not None else launch_check
    outcomes: list[CheckOutcome] = []
    ordered = tuple(descriptors)

    logger.info("gate started", extra={"checks": [item.identifier for item in ordered]})

    for index, descriptor in enumerate(ordered):
        with correlation_scope(check_id=descriptor.identifier):
            logger.debug("check started", extra={"path": descriptor.path})
            if observer is not None:
                observer.check_started(descriptor)
            outcome = _run_one(descriptor, context, launch)
            logger.info(
                "check finished",
                extra={"status": outcome.status.value, "exit_code": outcome.exit_code},
            )
            outcomes.append(outcome)
            if observer is not None:
                observer.check_finished(outcome)

        if outcome.status is CheckStatus.FAILED:
            not_invoked = tuple(item.identifier for item in ordered[index + 1 :])
            if not_invoked:
                logger.info("gate aborted", extra={"not_invoked": list(not_invoked)})
            report = GateReport(outcomes=tuple(outcomes), not_invoked=not_invoked)
            break
    else:
        report = GateReport(outcomes=tuple(outcomes))

    logger.info(
        "gate finished",
        extra={"verdict": report.verdict.value, "invoked": len(report.outcomes)},
    )
    return report


def _run_one(
    descriptor: CheckDescriptor,
    context: ExecutionContext,
    launch: CheckLauncher,
) -> CheckOutcome:
    started_ns = time.monotonic_ns()
    try:
        exit_code = launch(descriptor, context)
    except OSError as exc:
        message = _describe_os_error(exc)
        synthetic_code = (
            LAUNCH_NOT_FOUND_EXIT_CODE
            if isinstance(exc, FileNotFoundError)
            else LAUNCH_FAILED_EXIT_CODE
        )
        logger.warning("check could not be launched: %s", message)
        return CheckOutcome(
            identifier=descriptor.identifier,
            status=CheckStatus.FAILED,
            exit_code=synthetic_code,
            duration_ms=_elapsed_ms(started_ns),
            error=message,
        )

    status = CheckStatus.PASSED if exit_code == 0 else CheckStatus.FAILED
    return CheckOutcome(
        identifier=descriptor.identifier,
        status=status,
        exit_code=exit_code,
        duration_ms=_elapsed_ms(started_ns),
    )


def _flush_streams(context: ExecutionContext) -> None:
    for stream in (sys.stdout, sys.stderr, context.stdout, context.stderr):
        if stream is not None:
            stream.flush()


def _describe_os_error(exc: OSError) -> str:
    if exc.errno == errno.ENOEXEC:
        return "not a valid executable (missing shebang line?)"
    return exc.strerror or str(exc)


def _elapsed_ms(started_ns: int) -> int:
    return max(0, (time.monotonic_ns() - started_ns) // 1_000_000)


__all__ = [
    "CheckLauncher",
    "CheckOutcome",
    "CheckStatus",
    "ExecutionContext",
    "GateObserver",
    "GateReport",
    "GateVerdict",
    "launch_check",
    "run_gate",
]
