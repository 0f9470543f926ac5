"""Directory scanning services."""
from __future__ import annotations

import logging
import os
import stat
import threading
from pathlib import Path
from typing import Iterator, Optional

from ..core.errors import QueueShutDownError
from ..core.models import FileListing, FileStat, RunStats
from ..core.paths import rebase
from .shared import CorruptRecords, WorkQueue


logger = logging.getLogger(__name__)


def iter_files(root: Path) -> Iterator[FileStat]:
    """Walk ``root`` and yield a ``FileStat`` for every file below it.

    Directories are descended but never yielded. Directory symlinks are not
    followed. Unreadable directories and files whose stat fails are logged and
    skipped; the walk carries on with the remaining entries.
    """
    try:
        with os.scandir(root) as it:
            entries = list(it)
    except OSError as e:
        logger.error("Failed to access:  %s: %s", root, e)
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            st = None if is_dir else entry.stat()
        except OSError as e:
            logger.error("Failed to access:  %s: %s", path, e)
            continue

        if is_dir:
            yield from iter_files(path)
        elif stat.S_ISDIR(st.st_mode):
            logger.warning("Not following directory symlink:  %s", path)
        else:
            yield FileStat.from_stat_result(path, st)


class SourceScanner:
    """Walks the source tree, queues missing files and verifies existing ones.

    The returned listing is complete only once ``scan`` returns; the
    orchestrator waits for it before treating the work queue as final.
    """

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        work_queue: WorkQueue,
        corrupt_records: CorruptRecords,
        stats: Optional[RunStats] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize the scanner.

        Args:
            source_root: Canonical source directory.
            destination_root: Canonical destination directory.
            work_queue: Queue receiving files that need copying.
            corrupt_records: Sink for size/mtime mismatches.
            stats: Optional run counters.
            cancel_event: When set, the walk stops at the next file.
        """
        self._source_root = source_root
        self._destination_root = destination_root
        self._work_queue = work_queue
        self._corrupt_records = corrupt_records
        self._stats = stats or RunStats()
        self._cancel_event = cancel_event or threading.Event()

    def scan(self) -> FileListing:
        """Walk the source tree once.

        Returns:
            Every source file seen, including ones that were queued or found
            corrupt.
        """
        files: set[Path] = set()

        logger.debug("Beginning source scan of %s", self._source_root)

        for source in iter_files(self._source_root):
            if self._cancel_event.is_set():
                logger.warning("Source scan cancelled after %d files", len(files))
                break

            files.add(source.path)

            expected = rebase(source.path, self._source_root, self._destination_root)
            logger.debug("Looking at expected destination of:  %s", expected)

            if not os.path.lexists(expected):
                logger.debug("%s does NOT exist and so needs copied", expected)
                try:
                    self._work_queue.put(source.path)
                except QueueShutDownError as e:
                    # Forced shutdown: keep what was gathered, stop walking
                    logger.critical("Source scan aborted: %s", e)
                    break
                self._stats.increment("queued")
                continue

            self._verify_existing(source, expected)

        self._stats.source_files = len(files)
        logger.debug("Finished source scan of %s: %d files", self._source_root, len(files))

        return FileListing(files)

    def _verify_existing(self, source: FileStat, expected: Path) -> None:
        """Compare a source file with the destination file already present."""
        try:
            destination = FileStat.of(expected)
        except OSError as e:
            logger.error("Unable to stat existing destination file %s: %s", expected, e)
            return

        self._stats.increment("verified")

        if source.matches(destination):
            return

        self._corrupt_records.add_pair(source, destination)
        self._stats.increment("corrupt_pairs")
        logger.error("Corrupt file %s to %s", source.path, destination.path)


class DestinationScanner:
    """Collects every file under the destination root.

    Runs while copies are in flight, so the listing may contain files copied
    during the scan. Those always have a source counterpart, so the extras
    report is unaffected.
    """

    def __init__(
        self,
        destination_root: Path,
        stats: Optional[RunStats] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._destination_root = destination_root
        self._stats = stats or RunStats()
        self._cancel_event = cancel_event or threading.Event()

    def scan(self) -> FileListing:
        files: set[Path] = set()

        for found in iter_files(self._destination_root):
            if self._cancel_event.is_set():
                logger.warning("Destination scan cancelled after %d files", len(files))
                break

            files.add(found.path)
            logger.debug("%s\t%d\t%s", found.path, found.size, found.mtime)

        self._stats.destination_files = len(files)
        return FileListing(files)
