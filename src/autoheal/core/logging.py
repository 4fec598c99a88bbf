"""Structured logging for autoheal.

Wraps structlog so every component logs snake_case events with a bound
component name, and so log lines emitted during a healing cycle carry the
cycle and error identifiers automatically.

Example usage:
    from autoheal.core.logging import CycleContext, configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")
    logger = get_logger("healing.ladder")

    with with_context(CycleContext()):
        logger.info("attempt_started", attempt=1)
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Keys whose values are never written to logs
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
})


@dataclass(frozen=True)
class CycleContext:
    """Correlation identifiers for one healing cycle.

    Attributes:
        cycle_id: Unique identifier of the running cycle.
        error_id: Error record currently being healed, if any.
        component: Component that set the context.
    """

    cycle_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    error_id: str | None = None
    component: str = "orchestrator"

    def for_error(self, error_id: str) -> CycleContext:
        """Return a copy scoped to a single error record."""
        return replace(self, error_id=error_id)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"cycle_id": self.cycle_id, "component": self.component}
        if self.error_id is not None:
            result["error_id"] = self.error_id
        return result


_current_context: ContextVar[CycleContext | None] = ContextVar(
    "autoheal_cycle_context", default=None
)


def get_current_context() -> CycleContext | None:
    """Return the active CycleContext, or None outside a cycle."""
    return _current_context.get()


@contextmanager
def with_context(ctx: CycleContext) -> Iterator[CycleContext]:
    """Activate ``ctx`` for the duration of the block.

    Log calls inside the block pick up ``cycle_id``, ``error_id`` and
    ``component`` through the ``_add_context`` processor. A component bound
    on the logger itself takes precedence.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _redact(key: str, value: Any) -> Any:
    key_lower = key.lower()
    if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
        return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _redact(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _redact(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the active CycleContext.

    Explicitly bound keys win over context keys.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class AutohealLogger:
    """Component logger wrapping a structlog BoundLogger.

    The underlying structlog logger is fetched on every call, so loggers
    created at import time still honour a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> AutohealLogger:
        """Return a new logger with additional bound context."""
        return AutohealLogger(**{**self._context, **context})

    def unbind(self, *keys: str) -> AutohealLogger:
        """Return a new logger without the given keys. ``component`` always stays."""
        kept = {k: v for k, v in self._context.items() if k not in keys or k == "component"}
        return AutohealLogger(**kept)

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 20,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Call once at startup, before the first cycle runs.

    Args:
        level: Minimum level to emit.
        format: ``console`` for colored human output on stderr, ``json`` for
            one JSON object per line.
        file_path: When set, log lines go to a rotating file instead of a stream.
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Rotated files to keep.
        include_timestamps: Add an ISO8601 UTC ``timestamp`` key.
        include_context: Merge the active CycleContext into every entry.
    """
    log_level = getattr(logging, level)

    handler: logging.Handler
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
    elif format == "json":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    renderer: Processor
    if format == "json" or file_path is not None:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use stays off so import-time loggers see this config
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> AutohealLogger:
    """Return a logger bound to ``component`` (e.g. ``"healing.ladder"``)."""
    return AutohealLogger(component, **initial_context)


__all__ = [
    "AutohealLogger",
    "CycleContext",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_context",
]
