"""Structured logging configuration using structlog."""

import logging
import sys

import structlog


def _stderr_logger(*args) -> structlog.PrintLogger:
    # looked up per logger: sys.stderr may be swapped after configuration
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structlog to write to stderr, as JSON or human-readable lines."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


def configure_default_logging() -> None:
    """Warnings and errors on stderr, unless the host application configured structlog."""
    if not structlog.is_configured():
        setup_logging("warning")


configure_default_logging()
