"""Structured logging configuration for reelforge.

Uses structlog for structured, JSON-capable logging with reel correlation.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

import structlog

# Context variable for reel ID correlation
current_reel_id: ContextVar[str | None] = ContextVar("current_reel_id", default=None)


def add_reel_id(_logger, _method_name, event_dict):
    """Structlog processor to inject reel_id into all log events."""
    reel_id = current_reel_id.get()
    if reel_id and "reel_id" not in event_dict:
        event_dict["reel_id"] = reel_id
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON logs (for production). If False, use colored console output.
    """
    # Shared processors for both structlog and stdlib
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_reel_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Stdlib loggers (vendor clients, uvicorn) render through the same pipeline
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "google_genai",
        "google_genai.models",
        "botocore",
        "boto3",
        "urllib3.connectionpool",
        "aiosqlite",
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def set_reel_context(reel_id: str) -> None:
    """Set the current reel ID for log correlation.

    Args:
        reel_id: Reel ID to include in all subsequent log messages
    """
    current_reel_id.set(reel_id)


def clear_reel_context() -> None:
    """Clear the current reel context."""
    current_reel_id.set(None)


class PipelineTelemetry:
    """Emits one structured ``pipeline_event`` per stage boundary.

    Every event carries stage, reel_id, outcome and, when timed, duration_ms.
    Components receive an instance at construction; tests pass a recording
    subclass.
    """

    def __init__(self, logger: Any = None):
        self._logger = logger or get_logger("reel_pipeline.events")

    def event(
        self,
        stage: str,
        reel_id: str | None,
        outcome: str = "ok",
        duration_ms: float | None = None,
        level: str = "info",
        **details: Any,
    ) -> None:
        """Emit a single pipeline event."""
        fields: dict[str, Any] = {"stage": stage, "reel_id": reel_id, "outcome": outcome}
        if duration_ms is not None:
            fields["duration_ms"] = round(duration_ms, 1)
        fields.update(details)
        getattr(self._logger, level)("pipeline_event", **fields)

    @contextmanager
    def stage(self, stage: str, reel_id: str | None, **details: Any) -> Iterator[None]:
        """Time a block and emit ok or error when it exits.

        Exceptions are re-raised after the error event is emitted.
        """
        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.event(
                stage,
                reel_id,
                outcome="error",
                duration_ms=(time.perf_counter() - started) * 1000,
                level="warning",
                error=str(e),
                error_type=type(e).__name__,
                **details,
            )
            raise
        self.event(
            stage,
            reel_id,
            duration_ms=(time.perf_counter() - started) * 1000,
            **details,
        )
