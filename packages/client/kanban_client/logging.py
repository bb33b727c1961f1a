"""structlog setup for applications embedding the board client."""

from __future__ import annotations

import structlog

from .config import LoggingConfig


def build_processors(fmt: str) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Route ``api.*``, ``store.*`` and ``reconciler.*`` events through structlog."""
    config = config or LoggingConfig()
    structlog.configure(
        processors=build_processors(config.format),
        wrapper_class=structlog.make_filtering_bound_logger(config.level),
    )
