"""Shared CLI infrastructure: option decorators, run setup, error handlers, and the CLI group."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import click
from firebase_admin.exceptions import FirebaseError
from googleapiclient.errors import HttpError
from pymongo.errors import PyMongoError

import community_migrator
from community_migrator.cli.report import create_output_directory
from community_migrator.constants import (
    HTTP_FORBIDDEN,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
)
from community_migrator.core.config import load_config
from community_migrator.core.context import MigrationContext
from community_migrator.exceptions import MigratorError
from community_migrator.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds options shared across subcommands.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--config",
        default="config.yaml",
        show_default=True,
        help="Path to config YAML",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    return f


def build_context(config: str, verbose: bool, dry_run: bool = False) -> MigrationContext:
    """Create the run's output directory, set up logging and load the config."""
    output_dir = create_output_directory()
    setup_logger(verbose, str(output_dir))
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    return MigrationContext(
        config=load_config(Path(config)),
        output_dir=output_dir,
        dry_run=dry_run,
        verbose=verbose,
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(
    version=community_migrator.__version__, prog_name="community-migrator"
)
def cli() -> None:
    """Export communities from MongoDB and import them into Firebase."""


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_http_error(e: HttpError) -> None:
    """Handle Cloud Storage API errors with specific messages.

    Args:
        e: The Google API HTTP error to handle.
    """
    if e.resp.status == HTTP_FORBIDDEN:
        log_with_context(logging.ERROR, f"Permission denied by Cloud Storage: {e}")
        log_with_context(
            logging.INFO,
            "Check that both service accounts can read the source bucket and "
            "write the target bucket.",
        )
    elif e.resp.status == HTTP_RATE_LIMIT:
        log_with_context(logging.ERROR, f"Rate limit exceeded: {e}")
    elif e.resp.status >= HTTP_SERVER_ERROR_MIN:
        log_with_context(logging.ERROR, f"Server error from Google API: {e}")
        log_with_context(
            logging.INFO, "This is likely a temporary issue. Please try again later."
        )
    else:
        log_with_context(logging.ERROR, f"API error during migration: {e}")


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, MigratorError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, HttpError):
        handle_http_error(e)
    elif isinstance(e, FirebaseError):
        log_with_context(logging.ERROR, f"Firebase error ({e.code}): {e}")
    elif isinstance(e, PyMongoError):
        log_with_context(logging.ERROR, f"MongoDB error: {e}")
        log_with_context(
            logging.INFO, "Check source.mongo_uri and source.database in the config."
        )
    elif isinstance(e, FileNotFoundError):
        log_with_context(logging.ERROR, f"File not found: {e}")
        log_with_context(
            logging.INFO,
            "Please check that all required files exist and paths are correct.",
        )
    elif isinstance(e, KeyboardInterrupt):
        log_with_context(logging.WARNING, "Migration interrupted by user.")
        log_with_context(
            logging.INFO,
            "Documents written before the interruption remain in the target project.",
        )
    else:
        log_with_context(logging.ERROR, f"Migration failed: {e}", exc_info=True)
