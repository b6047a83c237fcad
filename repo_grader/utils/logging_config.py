"""Logging setup for repo_grader."""

import logging
import os
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None, name: str = "repo_grader") -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var, then INFO.
        name: Logger to configure

    Returns:
        Configured logger
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
