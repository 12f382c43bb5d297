"""Structured logging for gate runs: JSON-lines or one-line text, with redaction.

Sinks are synchronous. A gate run hands the terminal to one child process at a
time, so every record is written before the next check starts.
"""

from __future__ import annotations

import contextvars
import json
import logging
import math
import re
import sys
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, Literal

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

_MASK: Final[str] = "***REDACTED***"
_LOG_FILENAME: Final[str] = "hookgate.jsonl"
_ROOT_LOGGER: Final[str] = "hookgate"

# Correlation keys are promoted to top-level event fields; everything else in
# ``extra=`` lands under "fields".
_CORRELATION_KEYS: Final[frozenset[str]] = frozenset({"run_id", "check_id"})
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.makeLogRecord({}))
) | {"message", "asctime", "taskName"}

_SECRET_KEY_PARTS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "private_key",
)
_SECRET_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b(\s*[:=]\s*)[^\s,;]+"
)
_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

_correlation: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "hookgate_log_correlation", default={}
)
_active_handle: StructuredLoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Sinks and format for one gate run."""

    run_id: str
    base_log_dir: Path | str | None = None
    logger_name: str = _ROOT_LOGGER
    level: int | str = "WARNING"
    log_format: Literal["json", "text"] = "json"
    log_filename: str = _LOG_FILENAME
    log_to_stderr: bool = False
    redactor: LogRedactor | None = None


class StructuredLoggingHandle:
    """The handlers installed for one run; ``shutdown`` removes them."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        run_id: str,
        log_path: Path | None,
        handlers: tuple[logging.Handler, ...],
        file_error: str | None = None,
    ) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_path = log_path
        # Set when the file sink was skipped.
        self.file_error = file_error
        self._handlers = handlers
        self._closed = False

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self) -> None:
        for handler in self._handlers:
            handler.flush()

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        for handler in self._handlers:
            handler.flush()
            self.logger.removeHandler(handler)
            handler.close()


class _GateFormatter(logging.Formatter):
    def __init__(self, mode: Literal["json", "text"], *, run_id: str, redactor: LogRedactor):
        super().__init__()
        self._mode = mode
        self._run_id = run_id
        self._redact = redactor

    def format(self, record: logging.LogRecord) -> str:
        message = _as_text(self._redact(record.getMessage()))
        fields = self._redact(_extra_fields(record))
        context = {"run_id": self._run_id, **_correlation.get(), **_record_correlation(record)}

        if self._mode == "text":
            parts = [f"hookgate {record.levelname.lower()}"]
            if context.get("check_id"):
                parts.append(f"[{context['check_id']}]")
            parts.append(message)
            if isinstance(fields, dict):
                parts.extend(f"{key}={_as_text(value)}" for key, value in fields.items())
            return " ".join(parts)

        event: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            **context,
        }
        if fields:
            event["fields"] = fields
        if record.exc_info is not None:
            event["exception"] = _as_text(self._redact(self.formatException(record.exc_info)))
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    logger_name: str = _ROOT_LOGGER,
) -> StructuredLoggingHandle:
    """Install sinks described by an ``[observability]`` config section.

    The file sink is only created when ``log_to_file`` is true; its path is
    ``<log_dir>/<run_id>/hookgate.jsonl``.
    """

    section = dict(observability_config or {})
    level = section.get("log_level", "WARNING")
    log_dir = section.get("log_dir")
    base_log_dir: Path | str | None = None
    if section.get("log_to_file", False) and isinstance(log_dir, (str, Path)):
        base_log_dir = log_dir

    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base_log_dir,
            logger_name=logger_name,
            level=level if isinstance(level, (int, str)) else "WARNING",
            log_format="text" if section.get("log_format") == "text" else "json",
            log_to_stderr=bool(section.get("log_to_stderr", False)),
            redactor=None if section.get("redact_secrets", True) else _no_redaction,
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Replace any active sinks with the ones ``config`` describes."""

    global _active_handle
    if _active_handle is not None:
        _active_handle.shutdown()
        _active_handle = None

    run_id = _single_path_component(config.run_id, "run_id")
    filename = _single_path_component(config.log_filename, "log_filename")
    name = config.logger_name.strip()
    if not name:
        raise ValueError("logger_name must not be empty")
    level = _level_number(config.level)
    redactor = config.redactor or default_log_redactor

    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    file_error: str | None = None
    if config.base_log_dir is not None:
        candidate = Path(config.base_log_dir) / run_id / filename
        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(candidate, encoding="utf-8")
        except OSError as exc:
            # An unusable log directory must not stop the gate.
            file_error = f"{candidate.as_posix()}: {exc.strerror or exc}"
        else:
            # Files are always JSON lines.
            file_handler.setFormatter(_GateFormatter("json", run_id=run_id, redactor=redactor))
            handlers.append(file_handler)
            log_path = candidate
    if config.log_to_stderr:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(_GateFormatter(config.log_format, run_id=run_id, redactor=redactor))
        handlers.append(stream)
    if not handlers:
        handlers.append(logging.NullHandler())

    logger = logging.getLogger(name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)

    _active_handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        handlers=tuple(handlers),
        file_error=file_error,
    )
    return _active_handle


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    """Flush and close ``handle`` (default: the active one). Safe to repeat."""

    global _active_handle
    target = handle if handle is not None else _active_handle
    if target is None:
        return
    target.shutdown()
    if _active_handle is target:
        _active_handle = None


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    return _active_handle


def get_correlation_context() -> dict[str, str]:
    return dict(_correlation.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for records logged inside the block.

    Passing ``None`` for a key unbinds it until the block exits.
    """

    state = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            state.pop(key, None)
            continue
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"correlation value for {key!r} must be a non-empty string")
        state[key] = value.strip()
    token = _correlation.set(state)
    try:
        yield
    finally:
        _correlation.reset(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask values under secret-looking keys and ``key=value`` secrets in text."""

    if isinstance(value, str):
        masked = _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{_MASK}", value)
        return _BEARER.sub(f"Bearer {_MASK}", masked)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: _MASK if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SECRET_KEY_PARTS)


def _single_path_component(value: str, label: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{label} must not be empty")
    if Path(stripped).name != stripped:
        raise ValueError(f"{label} must not include path separators")
    return stripped


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"unsupported logging level {level!r}")
    return number


def _record_correlation(record: logging.LogRecord) -> dict[str, str]:
    found: dict[str, str] = {}
    for key in _CORRELATION_KEYS:
        value = getattr(record, key, None)
        if isinstance(value, str) and value.strip():
            found[key] = value.strip()
    return found


def _extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    return {
        key: _jsonable(value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRIBUTES
        and key not in _CORRELATION_KEYS
        and not key.startswith("_")
    }


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_jsonable(item) for item in value]
        return items if isinstance(value, (list, tuple)) else sorted(items, key=str)
    return str(value)


def _as_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _utc_timestamp(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
