import logging

import structlog

# Map string level to integer
LEVEL_MAP = {
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": 5,
}

_level_override: int | None = None


def set_log_level(level: str) -> None:
    """Force a log level regardless of settings (e.g. CLI ``--verbose``)."""
    global _level_override
    _level_override = LEVEL_MAP.get(level.upper(), logging.INFO)
    # Re-run configuration so loggers created at import time pick it up
    get_logger(__name__)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    from penumbra_installer.config import get_config

    config = get_config()

    log_level = _level_override or LEVEL_MAP.get(config.advanced.log_level, logging.INFO)

    renderer: structlog.types.Processor
    if config.advanced.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,  # Disable cache to allow level updates
    )

    return structlog.get_logger(name)
