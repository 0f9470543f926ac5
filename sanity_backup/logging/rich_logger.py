"""Rich-based logging setup and run reporters."""
from __future__ import annotations

import logging
import sys
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TimeElapsedColumn,
    MofNCompleteColumn,
    TaskID,
    Task,
)
from rich.table import Table
from rich.panel import Panel
from rich.text import Text

from ..core.models import RunStats


LOG_FORMAT = "%(asctime)s\t%(levelname)-8s\tThread=%(threadName)s\t%(name)s\t%(message)s"
LOG_FILE_DATESTAMP = "%Y-%m-%d_%H-%M-%S_%z"

# Marks handlers installed by setup_logging so repeat calls replace them
_HANDLER_TAG = "_sanity_backup_handler"


def log_file_name(started: Optional[datetime] = None) -> str:
    """Name of the per-run log file, e.g. ``2024-01-31_18-02-59_+0100.log``."""
    started = started or datetime.now().astimezone()
    return f"{started.strftime(LOG_FILE_DATESTAMP)}.log"


def setup_logging(
    log_dir: Path,
    verbose: bool = False,
    quiet: bool = False,
    console: Optional[Console] = None,
) -> Path:
    """Configure the root logger for a run.

    Console output goes through Rich at INFO (DEBUG when verbose, WARNING
    when quiet). Everything, down to DEBUG, goes to a log file named after the
    run start time inside ``log_dir``.

    Returns:
        Path of the log file.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    if verbose:
        console_handler.setLevel(logging.DEBUG)
    elif quiet:
        console_handler.setLevel(logging.WARNING)
    else:
        console_handler.setLevel(logging.INFO)
    setattr(console_handler, _HANDLER_TAG, True)
    root.addHandler(console_handler)

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = (log_dir / log_file_name()).resolve()
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)

    return log_file


def shutdown_logging() -> None:
    """Flush and close the handlers installed by ``setup_logging``."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            handler.flush()
            root.removeHandler(handler)
            handler.close()


class CopyRateColumn(ProgressColumn):
    """Files copied per second over the last ``window`` seconds."""

    def __init__(self, window: float = 15.0):
        super().__init__()
        self._window = window
        self._history: deque[tuple[float, float]] = deque()

    def render(self, task: Task) -> Text:
        now = time.monotonic()
        self._history.append((now, task.completed))
        while len(self._history) > 2 and now - self._history[0][0] > self._window:
            self._history.popleft()

        first_at, first_done = self._history[0]
        span = now - first_at
        if span <= 0 or task.completed <= first_done:
            return Text("idle", style="dim magenta")

        rate = (task.completed - first_done) / span
        return Text(f"{rate:.1f} files/s", style="magenta")


class RichProgressReporter:
    """Run reporter using Rich for terminal output.

    Log records still go through ``logging``; this class only draws the
    header, configuration table, drain progress bar and final summary.
    """

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose: Enable verbose output.
            quiet: Suppress all non-essential output.
            console: Console to draw on (stderr by default).
        """
        self._console = console or Console(stderr=True)
        self._verbose = verbose
        self._quiet = quiet
        self._progress: Optional[Progress] = None
        self._current_task_id: Optional[TaskID] = None

    @property
    def console(self) -> Console:
        return self._console

    # --- Phase Management ---

    def start_phase(self, name: str, total: int) -> None:
        """Start a new phase with a progress bar."""
        if self._quiet:
            return

        self._progress = Progress(
            SpinnerColumn(finished_text="[green]✓"),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            CopyRateColumn(),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
            expand=True,
        )
        self._progress.start()
        self._current_task_id = self._progress.add_task(name, total=total)

    def update_phase(self, completed: int, total: Optional[int] = None) -> None:
        """Update phase progress."""
        if self._progress and self._current_task_id is not None:
            self._progress.update(self._current_task_id, completed=completed, total=total)

    def end_phase(self) -> None:
        """End the current phase."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._current_task_id = None

    # --- Messages ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[red]✗[/red] {message}", style="red")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._console.print(f"[dim]  {message}[/dim]")

    # --- Specialized Output ---

    def print_header(self, title: str) -> None:
        if self._quiet:
            return
        self._console.print(Panel(Text(title, style="bold cyan"), border_style="cyan"))

    def print_config(self, config_items: dict) -> None:
        """Print the run settings as an aligned key/value grid."""
        if self._quiet:
            return

        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold cyan", justify="right")
        grid.add_column(overflow="fold")
        for key, value in config_items.items():
            grid.add_row(f"{key}:", str(value))

        self._console.print(grid)
        self._console.print()

    def print_summary(self, stats: RunStats) -> None:
        """Print run statistics."""
        if self._quiet:
            return

        table = Table(title="Backup Complete", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")

        table.add_row("Source Files", str(stats.source_files))
        table.add_row("Destination Files", str(stats.destination_files))
        table.add_row("Queued", str(stats.queued))
        table.add_row("Copied", str(stats.copied))
        table.add_row("Verified In Place", str(stats.verified))

        if stats.copy_failed > 0:
            table.add_row("[red]Copy Failures[/red]", str(stats.copy_failed))
        if stats.corrupt_pairs > 0:
            table.add_row("[red]Corrupt Pairs[/red]", str(stats.corrupt_pairs))
        if stats.extras > 0:
            table.add_row("[yellow]Extras[/yellow]", str(stats.extras))

        if stats.elapsed_seconds > 0:
            table.add_row("", "")
            table.add_row("Time Elapsed", f"{stats.elapsed_seconds:.1f}s")

        self._console.print(table)

    # --- Context Managers ---

    def __enter__(self) -> "RichProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        self.end_phase()


class QuietProgressReporter:
    """Minimal reporter that only shows warnings and errors."""

    def start_phase(self, name: str, total: int) -> None:
        pass

    def update_phase(self, completed: int, total: Optional[int] = None) -> None:
        pass

    def end_phase(self) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        pass

    def print_header(self, title: str) -> None:
        pass

    def print_config(self, config_items: dict) -> None:
        pass

    def print_summary(self, stats: RunStats) -> None:
        pass

    def __enter__(self) -> "QuietProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        pass
