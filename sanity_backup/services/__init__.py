"""Service layer - scanning, copying and orchestration."""
from .shared import WorkQueue, CorruptRecords
from .scanner import iter_files, SourceScanner, DestinationScanner
from .copier import CopyWorker
from .orchestrator import BackupOrchestrator, report_corruption, report_extras

__all__ = [
    # Shared state
    "WorkQueue",
    "CorruptRecords",
    # Scanning
    "iter_files",
    "SourceScanner",
    "DestinationScanner",
    # Copying
    "CopyWorker",
    # Orchestration
    "BackupOrchestrator",
    "report_corruption",
    "report_extras",
]
