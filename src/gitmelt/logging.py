from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def setup_logging(
    filename: str | Path | None = None,
    *,
    verbose: bool = False,
    reconfigure: bool = False,
) -> structlog.BoundLogger:
    """Set up structured logging for the gitmelt package.

    Only the first call configures anything, and it leaves an already configured
    root logger (or structlog) alone. The CLI passes `reconfigure=True` once its
    arguments are known, which replaces the root handlers and level.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        verbose: Log at DEBUG level instead of the default WARNING level.
        reconfigure: Replace any existing configuration.

    Returns:
        A structlog logger instance configured for the gitmelt package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if reconfigure or not _LOGGING_CONFIGURED:
        level = logging.DEBUG if verbose else logging.WARNING
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format="%(message)s",
            force=reconfigure,
        )
        if reconfigure or not structlog.is_configured():
            structlog.configure(
                processors=[
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
                wrapper_class=structlog.make_filtering_bound_logger(level),
                context_class=dict,
                logger_factory=structlog.stdlib.LoggerFactory(),
                # Module-level loggers must pick up a later reconfiguration.
                cache_logger_on_first_use=False,
            )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("gitmelt")


logger = setup_logging()
