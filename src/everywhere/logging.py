"""Structured logging configuration using structlog."""

import logging
import sys

import structlog

_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "watchdog")


def configure_logging(debug: bool = False, json_logs: bool = True) -> None:
    """Configure structlog and route stdlib logging through stdout.

    Args:
        debug: Enable debug-level logging when True.
        json_logs: Render JSON lines; otherwise use the console renderer.
    """
    level = logging.DEBUG if debug else logging.INFO
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in _STDLIB_LOGGERS:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    # watchdog's emitter threads are chatty at debug level
    logging.getLogger("watchdog").setLevel(logging.INFO)
