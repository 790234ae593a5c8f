# Copyright (c) Microsoft. All rights reserved.

import logging

from .exceptions import MonorepoScriptsException

__all__ = ["get_logger", "setup_logging"]


def setup_logging(level: str | int = logging.WARNING) -> None:
    """Setup the logging configuration for monorepo scripts.

    Args:
        level: A logging level name (``"DEBUG"``) or number.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s - %(pathname)s:%(lineno)d - %(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_logger(name: str = "monorepo_scripts") -> logging.Logger:
    """Get a logger with the specified name, defaulting to 'monorepo_scripts'.

    Args:
        name (str): The name of the logger. Defaults to 'monorepo_scripts'.

    Returns:
        logging.Logger: The configured logger instance.
    """
    if not name.startswith("monorepo_scripts"):
        raise MonorepoScriptsException("Logger name must start with 'monorepo_scripts'.")
    return logging.getLogger(name)
