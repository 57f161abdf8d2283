"""Structured logging setup: structlog over a queue-backed stdlib pipeline with redaction."""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import queue
import re
import sys
import threading
import time
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Final

import structlog

from defect_radar.domain.ids import generate_prefixed_id

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_LOG_FILENAME: Final[str] = "defect_radar.jsonl"
_ROOT_LOGGER_NAME: Final[str] = "defect_radar"
_DEFAULT_QUEUE_SIZE: Final[int] = 4096
_SESSION_PREFIX: Final[str] = "session"

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
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

# Keys structlog itself adds; never redacted by key name.
_RESERVED_KEYS: Final[frozenset[str]] = frozenset({"event", "level", "logger", "timestamp"})

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: LoggingHandle | None = None
_ATEXIT_REGISTERED = False


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
    """Queue handler that drops records when the queue is full.

    Records are enqueued unformatted so the listener-side ``ProcessorFormatter`` still sees
    the structlog event dict.
    """

    def __init__(self, log_queue: queue.Queue[object], drop_counter: _DropCounter) -> None:
        super().__init__(log_queue)
        self._drop_counter = drop_counter

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self._drop_counter.increment()


class LoggingHandle:
    """Runtime handle for an active logging setup."""

    def __init__(
        self,
        *,
        session_id: str,
        session_log_dir: Path,
        log_path: Path,
        log_queue: queue.Queue[object],
        queue_handler: _NonBlockingQueueHandler,
        sink_handlers: tuple[logging.Handler, ...],
        listener: logging.handlers.QueueListener,
        drop_counter: _DropCounter,
    ) -> None:
        self.session_id = session_id
        self.session_log_dir = session_log_dir
        self.log_path = log_path
        self._queue = log_queue
        self._queue_handler = queue_handler
        self._sink_handlers = sink_handlers
        self._listener = listener
        self._drop_counter = drop_counter
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @property
    def logger(self) -> Any:
        return structlog.get_logger(_ROOT_LOGGER_NAME).bind(session_id=self.session_id)

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
            logging.getLogger(_ROOT_LOGGER_NAME).removeHandler(self._queue_handler)
            self._queue_handler.close()
            for handler in self._sink_handlers:
                handler.flush()
                handler.close()
            self._is_shutdown = True


def configure_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    session_id: str | None = None,
) -> LoggingHandle:
    """Route structlog through a queue-backed stdlib pipeline.

    Parameters
    ----------
    observability_config:
        Mapping compatible with the ``[observability]`` section of ``defect_radar.toml``.
    session_id:
        Directory name for this session's log file; generated when omitted.
    """

    _shutdown_previous_active_handle()

    cfg = dict(observability_config or {})
    level = _parse_log_level(cfg.get("log_level", "INFO"))
    log_format = str(cfg.get("log_format", "json"))
    redact = bool(cfg.get("redact_secrets", True))
    log_to_stderr = bool(cfg.get("log_to_stderr", False))
    raw_dir = cfg.get("log_dir", "logs")
    base_log_dir = Path(raw_dir) if isinstance(raw_dir, (str, Path)) else Path("logs")

    resolved_session = _validate_session_id(session_id or generate_prefixed_id(_SESSION_PREFIX))
    session_log_dir = base_log_dir / resolved_session
    session_log_dir.mkdir(parents=True, exist_ok=True)
    log_path = session_log_dir / _LOG_FILENAME

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        timestamper,
    ]
    if redact:
        shared.append(redact_event_dict)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(sort_keys=True), shared))
    sink_handlers: list[logging.Handler] = [file_handler]
    if log_to_stderr:
        renderer: Any = (
            structlog.dev.ConsoleRenderer(colors=False)
            if log_format == "text"
            else structlog.processors.JSONRenderer(sort_keys=True)
        )
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level)
        stderr_handler.setFormatter(_formatter(renderer, shared))
        sink_handlers.append(stderr_handler)

    root_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.propagate = False
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
        existing.close()

    log_queue: queue.Queue[object] = queue.Queue(maxsize=_DEFAULT_QUEUE_SIZE)
    drop_counter = _DropCounter()
    queue_handler = _NonBlockingQueueHandler(log_queue, drop_counter)
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(log_queue, *sink_handlers, respect_handler_level=True)
    listener.start()
    root_logger.addHandler(queue_handler)

    handle = LoggingHandle(
        session_id=resolved_session,
        session_log_dir=session_log_dir,
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


def shutdown_logging(handle: LoggingHandle | None = None, *, timeout_seconds: float = 2.0) -> None:
    """Flush queued records, stop the listener, and close all sinks."""
    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is None:
        return
    resolved.shutdown(timeout_seconds=timeout_seconds)
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        if _ACTIVE_HANDLE is resolved:
            _ACTIVE_HANDLE = None


def get_active_logging_handle() -> LoggingHandle | None:
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


@contextmanager
def correlation_scope(**fields: object) -> Iterator[None]:
    """Bind ``fields`` to every log line emitted in this context."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def redact_event_dict(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking secret-looking keys and inline credentials."""
    for key, value in list(event_dict.items()):
        if key not in _RESERVED_KEYS and _requires_redaction_for_key(key):
            event_dict[key] = _REDACTED_VALUE
        else:
            event_dict[key] = _redact_value(value)
    return event_dict


def _formatter(renderer: Any, shared: list[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def _redact_value(value: object) -> object:
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, Mapping):
        return {
            key: _REDACTED_VALUE
            if isinstance(key, str) and _requires_redaction_for_key(key)
            else _redact_value(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    return value


def _requires_redaction_for_key(key: str) -> bool:
    lowered = key.lower()
    return any(term in lowered for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    return _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)


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


def _validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str):
        raise ValueError(f"session_id must be a string, got {type(session_id).__name__}")
    normalized = session_id.strip()
    if not normalized:
        raise ValueError("session_id must not be empty")
    if Path(normalized).name != normalized:
        raise ValueError("session_id must not include path separators")
    return normalized


def _parse_log_level(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise ValueError(f"log_level must be int or str, got {type(value).__name__}")
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


__all__ = [
    "LoggingHandle",
    "configure_logging",
    "correlation_scope",
    "get_active_logging_handle",
    "redact_event_dict",
    "shutdown_logging",
]
