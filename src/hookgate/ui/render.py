"""Terminal output for the hookgate CLI.

File: src/hookgate/ui/render.py
Last updated: 2026-10-19

Purpose
- Print gate progress, listings and install summaries through ``rich``.
- Honor ``NO_COLOR`` and ``--no-color``.

Functional requirements
- Check identifiers are printed as plain text, never interpreted as markup.
- Every call prints whole lines so output interleaves cleanly with child processes.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hookgate.coordinator import CheckOutcome
    from hookgate.registry import CheckDescriptor


def _use_color(disabled: bool) -> bool:
    if disabled or os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


class CLIRenderer:
    """Line-oriented renderer; every public method prints complete lines."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._console = Console(
            color_system="auto" if _use_color(no_color) else None,
            highlight=False,
            soft_wrap=True,
            emoji=False,
        )

    def _line(self, *segments: tuple[str, str]) -> None:
        self._console.print(Text.assemble(*segments))

    def text(self, line: str) -> None:
        self._line((line, ""))

    def heading(self, line: str) -> None:
        self._line((line, "bold"))

    def section(self, title: str) -> None:
        self._console.print()
        self.heading(title)

    def kv(self, key: str, value: object) -> None:
        self._line((f"{key}: ", "bold"), (str(value), ""))

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._line((f"  {prefix}{entry}", ""))

    def ok(self, label: str) -> None:
        self._line(("  OK    ", "bold green"), (label, ""))

    def fail(self, label: str) -> None:
        self._line(("  FAIL  ", "bold red"), (label, ""))

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print left-aligned columns under a dashed rule; nothing for no rows."""

        if not rows:
            return
        cells = [[str(cell) for cell in row[: len(headers)]] for row in rows]
        widths = [
            max([len(header), *(len(row[col]) for row in cells if col < len(row))])
            for col, header in enumerate(headers)
        ]

        def render(values: Sequence[str]) -> str:
            padded = [value.ljust(width) for value, width in zip(values, widths, strict=False)]
            return "  " + "  ".join(padded).rstrip()

        self._line((render(headers), "bold"))
        self._line((render(["-" * width for width in widths]), ""))
        for row in cells:
            self._line((render(row), ""))

    def next_steps(self, commands: Sequence[str]) -> None:
        if not commands:
            return
        self.section("Next steps:")
        for command in commands:
            self._line((f"  $ {command}", ""))


class GateProgress:
    """``GateObserver`` that announces each check before it runs.

    After a failing check nothing is printed unless the check could not be
    launched, so the check's own diagnostics stay the last thing on screen.
    """

    def __init__(self, renderer: CLIRenderer) -> None:
        self._renderer = renderer

    def check_started(self, descriptor: CheckDescriptor) -> None:
        self._renderer.heading(f"hookgate: running {descriptor.identifier}")

    def check_finished(self, outcome: CheckOutcome) -> None:
        if outcome.error is not None:
            self._renderer.fail(
                f"{outcome.identifier} could not be launched ({outcome.error}); "
                f"exit code {outcome.exit_code}"
            )
        elif outcome.passed and self._renderer.verbose:
            self._renderer.ok(f"{outcome.identifier} ({outcome.duration_ms} ms)")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "GateProgress", "create_renderer"]
