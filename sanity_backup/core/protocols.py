"""Protocol definitions (interfaces) for dependency injection."""
from __future__ import annotations

from abc import abstractmethod
from typing import Optional, Protocol

from .models import RunStats


class ProgressReporter(Protocol):
    """Interface for user-facing run output.

    Implementations:
    - RichProgressReporter: header, tables and a progress bar via Rich
    - QuietProgressReporter: warnings and errors only
    """

    @abstractmethod
    def start_phase(self, name: str, total: int) -> None:
        """Start a phase with a progress bar."""
        ...

    @abstractmethod
    def update_phase(self, completed: int, total: Optional[int] = None) -> None:
        """Update the current phase."""
        ...

    @abstractmethod
    def end_phase(self) -> None:
        """End the current phase."""
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        ...

    @abstractmethod
    def success(self, message: str) -> None:
        ...

    @abstractmethod
    def warning(self, message: str) -> None:
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        ...

    @abstractmethod
    def debug(self, message: str) -> None:
        ...

    @abstractmethod
    def print_header(self, title: str) -> None:
        ...

    @abstractmethod
    def print_config(self, config_items: dict) -> None:
        ...

    @abstractmethod
    def print_summary(self, stats: RunStats) -> None:
        """Print final run statistics."""
        ...
