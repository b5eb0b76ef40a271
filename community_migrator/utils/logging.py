"""
Logging module for the community migration tool
"""

import logging
import os
from typing import Any, Optional

LOGGER_NAME = "community_migrator"


class EnhancedFormatter(logging.Formatter):
    """
    Formatter that switches to a detailed layout in verbose mode and appends
    structured context (community, member, url...) attached by log_with_context
    """

    # Attributes present on every LogRecord; anything else came in via ``extra``
    _STANDARD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
    ) | {"message", "asctime"}

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        verbose=False,
        include_context=False,
    ):
        if verbose:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
        elif not fmt:
            fmt = "%(asctime)s - %(levelname)s - %(message)s"

        super().__init__(fmt, datefmt, style)
        self.include_context = include_context

    def format(self, record):
        result = super().format(record)

        if self.include_context:
            context = {
                key: value
                for key, value in record.__dict__.items()
                if key not in self._STANDARD_ATTRS
            }
            if context:
                rendered = ", ".join(f"{k}={v}" for k, v in sorted(context.items()))
                result += f" [{rendered}]"

        return result


def setup_main_log_file(output_dir: str) -> logging.FileHandler:
    """
    Set up a file handler writing every record of the run to migration.log.

    Args:
        output_dir: The output directory path

    Returns:
        The file handler for the main log file
    """
    os.makedirs(output_dir, exist_ok=True)
    log_file = os.path.join(output_dir, "migration.log")

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setLevel(logging.DEBUG)  # Always use DEBUG level for file handlers
    file_handler.setFormatter(
        EnhancedFormatter(
            "%(asctime)s - %(levelname)s - %(message)s", include_context=True
        )
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(file_handler)

    logger.info(f"Main log file created at: {log_file}")
    return file_handler


def setup_logger(
    verbose: bool = False, output_dir: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return the logger with appropriate formatting.

    Args:
        verbose: If True, set console handler to DEBUG level; otherwise INFO level
        output_dir: Optional output directory for the main log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Clear any existing handlers to prevent duplicate messages
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)  # Always set logger to DEBUG to capture all logs
    logger.propagate = False

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        EnhancedFormatter(verbose=verbose, include_context=verbose)
    )
    logger.addHandler(console_handler)

    if output_dir:
        setup_main_log_file(output_dir)

    # The Google and Mongo client libraries are chatty at DEBUG
    for noisy in ("googleapiclient.discovery_cache", "urllib3", "pymongo"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def log_with_context(level: int, message: str, **kwargs: Any) -> None:
    """
    Log a message with additional context information.

    Args:
        level: The logging level (e.g., logging.INFO)
        message: The log message
        **kwargs: Additional context to include in the log record
    """
    # exc_info is a logging keyword, not context
    exc_info = kwargs.pop("exc_info", None)

    # Filter out None values from kwargs
    extras = {k: v for k, v in kwargs.items() if v is not None}

    logger = logging.getLogger(LOGGER_NAME)
    logger.log(level, message, extra=extras, exc_info=exc_info)
