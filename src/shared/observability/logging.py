"""Structured logging configuration.

Features:
- JSON and text format support
- Cluster, direction and phase correlation for pipeline runs
- Timed provider API calls
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from shared.config import LogFormat, LogLevel, get_settings

# Context variables for pipeline run tracking
cluster_name_var: ContextVar[str | None] = ContextVar("cluster_name", default=None)
phase_var: ContextVar[str | None] = ContextVar("phase", default=None)
direction_var: ContextVar[str | None] = ContextVar("direction", default=None)

_PIPELINE_VARS = (
    ("cluster_name", cluster_name_var),
    ("direction", direction_var),
    ("phase", phase_var),
)


def _enum_value(value: Any) -> str:
    # use_enum_values settings may hand us plain strings
    return value.value if hasattr(value, "value") else str(value)


def _service_context(service: str, environment: str) -> Processor:
    def processor(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["service"] = service
        event_dict["environment"] = environment
        for key, var in _PIPELINE_VARS:
            value = var.get()
            if value:
                event_dict.setdefault(key, value)
        return event_dict

    return processor


def setup_logging(
    service_name: str | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        service_name: Override service name (defaults to settings.app_name)
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = get_settings()
    level = _enum_value(log_level or settings.log_level).upper()
    fmt = _enum_value(log_format or settings.log_format).lower()

    logging.basicConfig(level=getattr(logging, level), stream=sys.stdout, format="%(message)s")

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        _service_context(service_name or settings.app_name, _enum_value(settings.environment)),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == LogFormat.JSON.value:
        renderers: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Client libraries log every request at INFO
    for noisy in ("httpx", "httpcore", "kubernetes", "botocore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class PipelineContext:
    """Context manager binding pipeline identifiers to every log event.

    Usage:
        async with PipelineContext(cluster_name="demo", direction="create"):
            async with PipelineContext(phase="git_init"):
                logger.info("Phase started")  # Includes cluster_name and phase

    Only the identifiers passed are bound; outer values stay visible.
    """

    def __init__(
        self,
        cluster_name: str | None = None,
        phase: str | None = None,
        direction: str | None = None,
    ):
        self._values = {"cluster_name": cluster_name, "phase": phase, "direction": direction}
        self._tokens: list[tuple[ContextVar[Any], Any]] = []

    def __enter__(self) -> "PipelineContext":
        for key, var in _PIPELINE_VARS:
            if self._values[key]:
                self._tokens.append((var, var.set(self._values[key])))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)

    async def __aenter__(self) -> "PipelineContext":
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


@contextmanager
def provider_call(
    logger: structlog.stdlib.BoundLogger,
    provider: str,
    operation: str,
) -> Iterator[None]:
    """Time a provider API call, logging its outcome.

    An exception raised inside the block is logged as a failed call and
    re-raised unchanged.
    """
    logger.debug("Provider call started", provider=provider, operation=operation)
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.warning(
            "Provider call failed",
            provider=provider,
            operation=operation,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            error=str(e),
        )
        raise
    logger.debug(
        "Provider call completed",
        provider=provider,
        operation=operation,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
