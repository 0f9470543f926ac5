"""Logging package with Rich-based console output."""

from .rich_logger import (
    QuietProgressReporter,
    RichProgressReporter,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "QuietProgressReporter",
    "RichProgressReporter",
    "setup_logging",
    "shutdown_logging",
]
