"""structlog configuration shared by scripts and services."""

import logging

import structlog


def configure_logging(json: bool = False) -> None:
    """Configure structlog.

    Args:
        json: Render JSON lines at INFO level (production). Otherwise render
            human-readable console output at DEBUG level.
    """
    if json:
        renderer = structlog.processors.JSONRenderer()
        level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        level = logging.DEBUG

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
