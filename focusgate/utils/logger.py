"""Structured logging for focusgate.

Every module logs through ``get_logger(__name__)``. Events carry key/value
fields. While a proxied request is handled its ULID is bound as
``request_id`` and merged into every event logged on its behalf.
"""

import logging
import sys
import time
from typing import Optional

import structlog
from structlog.types import Processor

# Clock scans slower than this are logged at WARNING instead of DEBUG.
SLOW_OPERATION_MS: float = 1000.0


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines if True, the coloured console renderer otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "focusgate") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    """Bind ``request_id`` to every event logged in the current context."""
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_id() -> None:
    structlog.contextvars.unbind_contextvars("request_id")


class TimedOperation:
    """Log how long a block took: DEBUG normally, WARNING past ``slow_ms``.

        with TimedOperation("Clock scan", logger):
            scan_clock_tree(root)
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        slow_ms: float = SLOW_OPERATION_MS,
    ) -> None:
        self.operation = operation
        self.logger = logger or get_logger()
        self.slow_ms = slow_ms
        self._start = 0.0

    def __enter__(self) -> "TimedOperation":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        duration_ms = (time.perf_counter() - self._start) * 1000
        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=duration_ms,
                error=str(exc_val),
            )
        elif duration_ms > self.slow_ms:
            self.logger.warning(f"{self.operation} slow", duration_ms=duration_ms)
        else:
            self.logger.debug(f"{self.operation} completed", duration_ms=duration_ms)


# Defaults until focusgate.main reconfigures from the environment
configure_logging()
