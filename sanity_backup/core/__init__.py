"""Core configuration, models, and path helpers."""
from .config import BackupConfig, COPY_WORKER_COUNT
from .errors import (
    SanityBackupError,
    InvalidRootError,
    ListingError,
    QueueShutDownError,
    UsageError,
)
from .models import (
    ExitStatus,
    FileListing,
    FileStat,
    RunPhase,
    RunReport,
    RunStats,
)
from .paths import canonicalize, rebase

__all__ = [
    # Config
    "BackupConfig",
    "COPY_WORKER_COUNT",
    # Errors
    "SanityBackupError",
    "InvalidRootError",
    "ListingError",
    "QueueShutDownError",
    "UsageError",
    # Models
    "ExitStatus",
    "FileListing",
    "FileStat",
    "RunPhase",
    "RunReport",
    "RunStats",
    # Paths
    "canonicalize",
    "rebase",
]
