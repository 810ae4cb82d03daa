"""Logging utilities for zalopy modules."""

import logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger that inherits its configuration from the root logger.

    The logger propagates to root, so ``logging.basicConfig()`` is enough to
    see zalopy output. When the root logger has no handlers yet the level is
    pinned to WARNING to keep library chatter out of host applications.

    Args:
        name: Logger name (``zalopy.<subsystem>``)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.propagate = True

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logger.setLevel(logging.WARNING)

    return logger


def redact(value: str, keep: int = 4) -> str:
    """Shorten a secret for log output, keeping only its first characters."""
    if not value:
        return ''
    if len(value) <= keep:
        return '*' * len(value)
    return f"{value[:keep]}...({len(value)})"
