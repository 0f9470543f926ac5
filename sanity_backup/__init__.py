"""Incremental, integrity-checked directory backup.

Copies files missing from a destination tree, verifies copies and existing
files by size and modification time, and reports corrupt files and extras.
"""

__version__ = "1.0.0"

# Core exports
from .core.config import BackupConfig, COPY_WORKER_COUNT
from .core.errors import SanityBackupError, InvalidRootError, ListingError
from .core.models import ExitStatus, FileListing, FileStat, RunReport, RunStats
from .core.paths import canonicalize, rebase

# Service exports
from .services.orchestrator import BackupOrchestrator
from .services.scanner import SourceScanner, DestinationScanner
from .services.copier import CopyWorker
from .services.shared import WorkQueue, CorruptRecords

# Logging exports
from .logging.rich_logger import RichProgressReporter, setup_logging

__all__ = [
    # Core
    "BackupConfig",
    "COPY_WORKER_COUNT",
    "SanityBackupError",
    "InvalidRootError",
    "ListingError",
    "ExitStatus",
    "FileListing",
    "FileStat",
    "RunReport",
    "RunStats",
    "canonicalize",
    "rebase",
    # Services
    "BackupOrchestrator",
    "SourceScanner",
    "DestinationScanner",
    "CopyWorker",
    "WorkQueue",
    "CorruptRecords",
    # Logging
    "RichProgressReporter",
    "setup_logging",
]
