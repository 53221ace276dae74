"""Structured logging setup with JSON-lines output, redaction, and structlog routing."""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import sys
import threading
import time
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final, Literal, cast

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]
LogFormat = Literal["json", "text"]

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_DEFAULT_LOG_FILENAME: Final[str] = "scaffold.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "nexus_scaffold"
_DEFAULT_QUEUE_SIZE: Final[int] = 4096

_CORRELATION_KEYS: Final[tuple[str, ...]] = (
    "run_id",
    "correlation_id",
    "request_id",
)

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
    "client_secret",
)

_TRANSCRIPT_KEY_TERMS: Final[tuple[str, ...]] = (
    "provider_prompt",
    "provider_response",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_SK_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-(?:ant-)?[A-Za-z0-9_-]{12,}\b")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_CorrelationState = tuple[tuple[str, str], ...]
_CORRELATION_CONTEXT: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "nexus_scaffold_correlation", default=()
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: StructuredLoggingHandle | None = None
_ATEXIT_REGISTERED = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for queue-backed structured logging.

    ``base_log_dir=None`` disables the per-run file sink; events then go to stderr only.
    """

    run_id: str
    base_log_dir: Path | str | None = None
    logger_name: str = _DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    log_format: LogFormat = "json"
    queue_size: int = _DEFAULT_QUEUE_SIZE
    log_filename: str = _DEFAULT_LOG_FILENAME
    log_to_stderr: bool = True
    rotating_file: bool = False
    max_bytes: int = 10_000_000
    backup_count: int = 5
    redactor: LogRedactor | None = None


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
    level: int | str | None = None,
    log_to_file: bool = False,
) -> logging.Logger:
    """Configure structured logging from an ``[observability]`` mapping and return the logger.

    Parameters
    ----------
    observability_config:
        Mapping compatible with ``[observability]`` settings in ``scaffold.toml``.
    run_id:
        Correlation run identifier used for the per-run log directory and event fields.
    log_dir:
        Optional override for the base log directory.
    level:
        Optional override for ``log_level``.
    log_to_file:
        Also write ``<log_dir>/<run_id>/scaffold.jsonl``.
    """

    cfg = dict(observability_config or {})
    raw_level = level if level is not None else cfg.get("log_level", "INFO")
    resolved_level: int | str = raw_level if isinstance(raw_level, (int, str)) else "INFO"
    raw_format = cfg.get("log_format", "json")
    log_format: LogFormat = "text" if raw_format == "text" else "json"
    redact_enabled = bool(cfg.get("redact_secrets", True))

    base_log_dir: Path | str | None = None
    if log_to_file:
        raw_base_log_dir: object = log_dir if log_dir is not None else cfg.get("log_dir", "logs")
        base_log_dir = raw_base_log_dir if isinstance(raw_base_log_dir, (Path, str)) else "logs"

    redactor: LogRedactor | None = None if redact_enabled else _identity_redactor

    handle = setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base_log_dir,
            logger_name=logger_name,
            level=resolved_level,
            log_format=log_format,
            redactor=redactor,
        )
    )
    configure_structlog()
    return handle.logger


def configure_structlog() -> None:
    """Route ``structlog`` events into the stdlib logger tree configured above.

    Event keyword fields travel as one ``fields`` mapping so they never collide with
    ``LogRecord`` attributes.
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            _to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _to_log_kwargs(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> dict[str, Any]:
    event = event_dict.pop("event", "")
    exc_info = event_dict.pop("exc_info", None)
    return {"msg": str(event), "extra": {"fields": dict(event_dict)}, "exc_info": exc_info}


class _DropCounter:
    """Thread-safe counter for dropped queue records."""

    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    def value(self) -> int:
        with self._lock:
            return self._value


class _NonBlockingQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records when the queue is full."""

    def __init__(self, log_queue: queue.Queue[object], drop_counter: _DropCounter) -> None:
        super().__init__(log_queue)
        self._drop_counter = drop_counter

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        context = get_correlation_context()
        if context:
            record.correlation = context
        prepared = super().prepare(record)
        return cast("logging.LogRecord", prepared)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self._drop_counter.increment()


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(
        self,
        *,
        redactor: LogRedactor,
        base_context: Mapping[str, str],
    ) -> None:
        super().__init__()
        self._redactor = redactor
        self._base_context = dict(base_context)

    def format(self, record: logging.LogRecord) -> str:
        event = _record_payload(record, self._redactor, self._base_context)
        if record.exc_info is not None:
            event["exception"] = _coerce_log_message(
                self._redactor(_normalize_json_value(self.formatException(record.exc_info)))
            )
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _TextLineFormatter(logging.Formatter):
    """Human-oriented single-line formatter: ``time level logger event key=value ...``."""

    def __init__(
        self,
        *,
        redactor: LogRedactor,
        base_context: Mapping[str, str],
    ) -> None:
        super().__init__()
        self._redactor = redactor
        self._base_context = dict(base_context)

    def format(self, record: logging.LogRecord) -> str:
        event = _record_payload(record, self._redactor, self._base_context)
        parts = [str(event.pop("timestamp")), str(event.pop("level")), str(event.pop("logger"))]
        parts.append(str(event.pop("message")))
        fields = event.pop("fields", None)
        for key, value in sorted(event.items()):
            parts.append(f"{key}={value}")
        if isinstance(fields, dict):
            for key, value in sorted(fields.items()):
                rendered = value if isinstance(value, str) else json.dumps(value, sort_keys=True)
                parts.append(f"{key}={rendered}")
        line = " ".join(parts)
        if record.exc_info is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLoggingHandle:
    """Runtime handle for an active structured logging setup."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        run_id: str,
        log_path: Path | None,
        log_queue: queue.Queue[object],
        queue_handler: _NonBlockingQueueHandler,
        sink_handlers: tuple[logging.Handler, ...],
        listener: logging.handlers.QueueListener,
        drop_counter: _DropCounter,
    ) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_path = log_path
        self._queue = log_queue
        self._queue_handler = queue_handler
        self._sink_handlers = sink_handlers
        self._listener = listener
        self._drop_counter = drop_counter
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @property
    def dropped_records(self) -> int:
        return self._drop_counter.value()

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while self._queue.unfinished_tasks > 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        for handler in self._sink_handlers:
            handler.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._shutdown_lock:
            if self._is_shutdown:
                return

            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()

            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()

            for handler in self._sink_handlers:
                handler.flush()
                handler.close()

            self._is_shutdown = True


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Configure queue-backed structured logging for a single run."""
    _shutdown_previous_active_handle()

    run_id = _validate_run_id(config.run_id)
    queue_size = _validate_queue_size(config.queue_size)
    log_filename = _validate_log_filename(config.log_filename)
    logger_name = _validate_logger_name(config.logger_name)
    level = _parse_log_level(config.level)

    redactor = _resolve_redactor(config.redactor)
    base_context = {"run_id": run_id}
    json_formatter = _JsonLineFormatter(redactor=redactor, base_context=base_context)

    sink_handlers: list[logging.Handler] = []
    log_path: Path | None = None
    if config.base_log_dir is not None:
        run_log_dir = Path(config.base_log_dir) / run_id
        run_log_dir.mkdir(parents=True, exist_ok=True)
        log_path = run_log_dir / log_filename
        file_handler: logging.Handler
        if config.rotating_file:
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=max(1, int(config.max_bytes)),
                backupCount=max(1, int(config.backup_count)),
                encoding="utf-8",
            )
        else:
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(json_formatter)
        sink_handlers.append(file_handler)

    if config.log_to_stderr:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level)
        if config.log_format == "text":
            stderr_handler.setFormatter(
                _TextLineFormatter(redactor=redactor, base_context=base_context)
            )
        else:
            stderr_handler.setFormatter(json_formatter)
        sink_handlers.append(stderr_handler)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    log_queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
    drop_counter = _DropCounter()
    queue_handler = _NonBlockingQueueHandler(log_queue, drop_counter)
    queue_handler.setLevel(level)

    listener = logging.handlers.QueueListener(
        log_queue,
        *sink_handlers,
        respect_handler_level=True,
    )
    listener.start()

    logger.addHandler(queue_handler)

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        log_queue=log_queue,
        queue_handler=queue_handler,
        sink_handlers=tuple(sink_handlers),
        listener=listener,
        drop_counter=drop_counter,
    )

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = handle

    _register_atexit_shutdown()
    return handle


def flush_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Flush queued logs to configured sinks."""
    resolved = _resolve_handle(handle)
    if resolved is not None:
        resolved.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Shutdown logging listener and close all sinks."""
    resolved = _resolve_handle(handle)
    if resolved is None:
        return

    resolved.shutdown(timeout_seconds=timeout_seconds)

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        if _ACTIVE_HANDLE is resolved:
            _ACTIVE_HANDLE = None


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    """Return the currently active handle, if one exists."""
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


def get_correlation_context() -> dict[str, str]:
    """Return the current correlation context as a plain dictionary."""
    return dict(_CORRELATION_CONTEXT.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[_CorrelationState]:
    """Set correlation fields for the active context and return a reset token."""
    state = get_correlation_context()
    for key, value in fields.items():
        key_name = _validate_correlation_text(key, "key")
        if value is None:
            state.pop(key_name, None)
            continue
        state[key_name] = _validate_correlation_text(value, "value")
    return _CORRELATION_CONTEXT.set(tuple(state.items()))


def reset_correlation_fields(token: contextvars.Token[_CorrelationState]) -> None:
    """Reset correlation context to a previous token."""
    _CORRELATION_CONTEXT.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Temporarily bind correlation fields for log records in scope."""
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Default deep redaction for secrets and provider transcript fields."""
    return _redact_value(value, key_context=None)


def _record_payload(
    record: logging.LogRecord,
    redactor: LogRedactor,
    base_context: Mapping[str, str],
) -> dict[str, JSONValue]:
    event: dict[str, JSONValue] = {
        "timestamp": _iso8601z_from_epoch(record.created),
        "level": record.levelname,
        "logger": record.name,
        "message": _coerce_log_message(redactor(_normalize_json_value(record.getMessage()))),
    }

    correlation = _merge_correlation_context(record, base_context)
    for key, value in sorted(correlation.items()):
        event[key] = value

    extras = _extract_extra_fields(record)
    if extras:
        event["fields"] = redactor(_normalize_json_value(extras))
    return event


def _resolve_handle(handle: StructuredLoggingHandle | None) -> StructuredLoggingHandle | None:
    if handle is not None:
        return handle
    return get_active_logging_handle()


def _shutdown_previous_active_handle() -> None:
    existing = get_active_logging_handle()
    if existing is not None:
        existing.shutdown()

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = None


def _register_atexit_shutdown() -> None:
    global _ATEXIT_REGISTERED
    if _ATEXIT_REGISTERED:
        return
    atexit.register(shutdown_logging)
    _ATEXIT_REGISTERED = True


def _validate_run_id(run_id: str) -> str:
    if not isinstance(run_id, str):
        raise ValueError(f"run_id must be a string, got {type(run_id).__name__}")
    normalized = run_id.strip()
    if not normalized:
        raise ValueError("run_id must not be empty")
    return normalized


def _validate_queue_size(queue_size: int) -> int:
    if not isinstance(queue_size, int):
        raise ValueError(f"queue_size must be an integer, got {type(queue_size).__name__}")
    if queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    return queue_size


def _validate_log_filename(log_filename: str) -> str:
    normalized = log_filename.strip()
    if not normalized:
        raise ValueError("log_filename must not be empty")
    if Path(normalized).name != normalized:
        raise ValueError("log_filename must not include path separators")
    return normalized


def _validate_logger_name(logger_name: str) -> str:
    normalized = logger_name.strip()
    if not normalized:
        raise ValueError("logger_name must not be empty")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _validate_correlation_text(value: str, role: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"correlation {role} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"correlation {role} must not be empty")
    return normalized


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _merge_correlation_context(
    record: logging.LogRecord,
    base_context: Mapping[str, str],
) -> dict[str, str]:
    merged = dict(base_context)
    merged.update(get_correlation_context())

    user_context = getattr(record, "correlation", None)
    if isinstance(user_context, Mapping):
        for key, value in user_context.items():
            if isinstance(key, str) and isinstance(value, str) and key.strip() and value.strip():
                merged[key.strip()] = value.strip()

    return merged


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS:
            continue
        if key in _CORRELATION_KEYS or key == "correlation":
            continue
        if key.startswith("_"):
            continue
        if key == "fields" and isinstance(value, Mapping):
            for field_key, field_value in value.items():
                fields[str(field_key)] = _normalize_json_value(field_value)
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return _REDACTED_VALUE
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            normalized = value.replace(tzinfo=UTC)
        else:
            normalized = value.astimezone(UTC)
        return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        normalized_items = [_normalize_json_value(item) for item in value]
        return sorted(
            normalized_items,
            key=lambda item: json.dumps(
                item, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ),
        )
    return repr(value)


def _resolve_redactor(configured_redactor: LogRedactor | None) -> LogRedactor:
    if configured_redactor is not None:
        return configured_redactor
    return default_log_redactor


def _identity_redactor(value: JSONValue) -> JSONValue:
    return value


def _redact_value(value: JSONValue, *, key_context: str | None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE

    if isinstance(value, str):
        return _redact_string(value)

    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]

    if isinstance(value, dict):
        return {key: _redact_value(item, key_context=key) for key, item in value.items()}

    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS) or any(
        term in key_lower for term in _TRANSCRIPT_KEY_TERMS
    )


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)
    return _SK_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LogFormat",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
