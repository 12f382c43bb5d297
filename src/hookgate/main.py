"""Process boundary for ``hookgate``: turns every outcome into a documented exit code."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Process exit-code contract seen by git and by operators."""

    ACCEPT = 0
    REJECT = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 3


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m hookgate``, the console script, and the hook shim."""

    try:
        from hookgate.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:  # argparse usage errors and --help
        return _as_exit_code(exc.code)
    except BaseException as exc:  # noqa: BLE001
        config_error = _find_config_error(exc)
        if config_error is None:
            traceback.print_exception(exc, file=sys.stderr)
            return ExitCode.INTERNAL_ERROR
        detail = str(config_error).strip() or type(config_error).__name__
        print(f"hookgate: {detail}", file=sys.stderr)
        return ExitCode.CONFIG_ERROR


def _as_exit_code(code: object) -> int:
    if code is None:
        return ExitCode.ACCEPT
    if isinstance(code, int) and code in ExitCode._value2member_map_:
        return code
    if isinstance(code, str) and code.strip():
        print(code.strip(), file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _find_config_error(exc: BaseException) -> BaseException | None:
    from hookgate.config import ConfigLoadError, ConfigValidationError
    from hookgate.registry import ConfigurationError

    config_errors = (ConfigurationError, ConfigLoadError, ConfigValidationError)
    return next((item for item in _chain(exc) if isinstance(item, config_errors)), None)


def _chain(exc: BaseException) -> Iterator[BaseException]:
    """Walk ``__cause__`` / unsuppressed ``__context__`` links, stopping on cycles."""

    visited: set[int] = set()
    node: BaseException | None = exc
    while node is not None and id(node) not in visited:
        visited.add(id(node))
        yield node
        if node.__cause__ is not None:
            node = node.__cause__
        elif node.__suppress_context__:
            node = None
        else:
            node = node.__context__


__all__ = ["ExitCode", "cli_entrypoint"]
