"""Configuration dataclasses with validation."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# Not configurable
COPY_WORKER_COUNT = 2

DEFAULT_POLL_TIMEOUT = 3.0
DEFAULT_DRAIN_REPORT_INTERVAL = 10.0


@dataclass(slots=True)
class BackupConfig:
    """Main configuration for a backup run.

    Both roots are expected to be canonical already (see
    ``core.paths.canonicalize``). This is the only configuration object
    passed through the system.
    """
    # Required
    source_root: Path
    destination_root: Path

    # Timing
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    drain_report_interval: float = DEFAULT_DRAIN_REPORT_INTERVAL

    # Logging
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.poll_timeout <= 0:
            raise ValueError("Poll timeout must be positive")

        if self.drain_report_interval <= 0:
            raise ValueError("Drain report interval must be positive")

        if self.source_root == self.destination_root:
            raise ValueError("Source and destination must be different directories")

        # A nested destination would be re-copied into itself
        if self.destination_root.is_relative_to(self.source_root):
            raise ValueError("Destination cannot be inside the source directory")
        if self.source_root.is_relative_to(self.destination_root):
            raise ValueError("Source cannot be inside the destination directory")

    @property
    def resolved_log_dir(self) -> Path:
        return self.log_dir or Path.cwd()
