"""Shared, thread-safe state passed between scanners, workers and the orchestrator.

Instances are created by the orchestrator for a single run and injected into
each component; nothing here is a module-level global.
"""
from __future__ import annotations

import queue
import threading
from pathlib import Path
from typing import Optional

from ..core.errors import QueueShutDownError
from ..core.models import FileStat


class WorkQueue:
    """Unbounded multi-producer/multi-consumer queue of source files to copy.

    Wraps ``queue.Queue`` and adds two things the copy pipeline needs:

    - a forced shutdown that makes further ``put`` calls fail, and
    - a drain signal (``wait_drained``) that fires once every item ever put
      has been marked done with ``task_done``.
    """

    def __init__(self):
        self._queue: queue.Queue[Path] = queue.Queue()
        self._shutdown = threading.Event()
        self._lock = threading.Lock()
        self._total_enqueued = 0

    def put(self, path: Path) -> None:
        """Add a path. Raises ``QueueShutDownError`` after ``shutdown()``."""
        if self._shutdown.is_set():
            raise QueueShutDownError(f"Work queue shut down, cannot enqueue {path}")
        self._queue.put(path)
        with self._lock:
            self._total_enqueued += 1

    def get(self, timeout: float) -> Optional[Path]:
        """Wait up to ``timeout`` seconds for a path. Returns None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def wait_drained(self, timeout: Optional[float] = None) -> bool:
        """Block until every enqueued item has been processed.

        Returns:
            True if drained, False if ``timeout`` elapsed first.
        """
        done = self._queue.all_tasks_done
        with done:
            return done.wait_for(lambda: self._queue.unfinished_tasks == 0, timeout)

    def shutdown(self) -> None:
        """Refuse further puts. Items already queued stay available."""
        self._shutdown.set()

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown.is_set()

    @property
    def total_enqueued(self) -> int:
        with self._lock:
            return self._total_enqueued

    def qsize(self) -> int:
        return self._queue.qsize()


class CorruptRecords:
    """Append-only list of corrupt-report lines.

    Each mismatching pair contributes two lines, source side first. Lines are
    never removed or deduplicated.
    """

    def __init__(self):
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def add_pair(self, source: FileStat, destination: FileStat) -> None:
        """Record both sides of a size/mtime mismatch, adjacent to each other."""
        with self._lock:
            self._lines.append(source.as_record())
            self._lines.append(destination.as_record())

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    def __bool__(self) -> bool:
        return len(self) > 0
