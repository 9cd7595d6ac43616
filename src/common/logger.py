"""Logging utilities with rich console output.

Every shelfstock module logs through a standard ``logging.Logger`` whose
handler is a ``rich`` console handler, so unattended scheduler runs and
interactive operator commands share one format.

Usage:
    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Fetching page 3...")
    logger.warning("Classifier unavailable, continuing without genres")
    logger.error("Write failed", exc_info=True)
"""

import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

# Global console instance for consistent output
console = Console()


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    """Build the rich handler shared by module loggers and the root logger."""
    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=True,  # Allow [green]✓[/green] style markup in messages
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Get a configured logger with rich output.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, uses environment variable LOG_LEVEL or defaults to INFO.
        show_time: Show timestamp in log output
        show_path: Show file path in log output

    Returns:
        Configured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Run complete")
        Run complete
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers if logger already configured
    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(level.upper())

    logger.addHandler(_rich_handler(show_time=show_time, show_path=show_path))

    # Keep propagation so pytest's caplog sees pipeline messages
    logger.propagate = True

    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once at a CLI entry point.

    Module loggers from get_logger() already print to the console and
    propagate to the root logger, so the root logger only gets a file handler.

    Args:
        level: Default logging level for the root logger
        log_file: Optional file path to also log to a file (scheduler runs
                  typically pass one so run history survives the console)
    """
    level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)


def success(message: str) -> None:
    """Print a success line with a green checkmark.

    Example:
        >>> success("Ingestion run completed")
        ✓ Ingestion run completed
    """
    console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    """Print a warning line with a yellow warning icon."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def error(message: str) -> None:
    """Print an error line with a red X icon to stderr."""
    Console(file=sys.stderr).print(f"[red]✗[/red] {message}")
