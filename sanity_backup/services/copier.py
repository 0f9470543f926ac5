"""Copy worker that drains the shared work queue."""
from __future__ import annotations

import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Optional

from ..core.config import DEFAULT_POLL_TIMEOUT
from ..core.models import FileStat, RunStats
from ..core.paths import rebase
from .shared import CorruptRecords, WorkQueue


logger = logging.getLogger(__name__)


class CopyWorker:
    """Consumes source paths from a ``WorkQueue`` and copies them across.

    ``run`` is meant to be submitted to an executor. It loops until the stop
    event is set, giving every item exactly one attempt. Failures are logged
    and skipped; size/mtime mismatches after a copy are recorded as corrupt.
    """

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        work_queue: WorkQueue,
        corrupt_records: CorruptRecords,
        stop_event: threading.Event,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        stats: Optional[RunStats] = None,
    ):
        """Initialize the worker.

        Args:
            source_root: Canonical source directory.
            destination_root: Canonical destination directory.
            work_queue: Shared queue of source files to copy.
            corrupt_records: Sink for post-copy mismatches.
            stop_event: Set by the orchestrator once the queue has drained.
            poll_timeout: Seconds to wait on the queue before re-checking stop.
            stats: Optional run counters.
        """
        self._source_root = source_root
        self._destination_root = destination_root
        self._work_queue = work_queue
        self._corrupt_records = corrupt_records
        self._stop_event = stop_event
        self._poll_timeout = poll_timeout
        self._stats = stats or RunStats()

    def run(self) -> None:
        # Can't stop on an empty queue, the source scan may still be adding
        while not self._stop_event.is_set():
            source = self._work_queue.get(timeout=self._poll_timeout)
            if source is None:
                continue

            try:
                if self.copy_one(source):
                    self._stats.increment("copied")
                else:
                    self._stats.increment("copy_failed")
            except Exception:
                self._stats.increment("copy_failed")
                logger.exception("Unexpected error while copying %s", source)
            finally:
                self._work_queue.task_done()

        logger.debug("Copy worker stopping")

    def copy_one(self, source: Path) -> bool:
        """Copy one file and verify it.

        Returns:
            True if the copy was made (even if verification found a
            mismatch), False if the item was skipped.
        """
        destination = rebase(source, self._source_root, self._destination_root)

        logger.info("Copying %s", source)

        if not self._ensure_parent(source, destination):
            return False

        if os.path.lexists(destination):
            logger.error("Destination %s appeared after %s was queued, not overwriting", destination, source)
            return False

        try:
            shutil.copy2(source, destination)
        except OSError:
            logger.exception("Failed to copy %s to %s", source, destination)
            self._remove_partial(destination)
            return False

        self._verify(source, destination)
        return True

    def _ensure_parent(self, source: Path, destination: Path) -> bool:
        """Make sure the destination's parent directory exists.

        A newly created parent gets the source parent's modification time.
        Ancestors created along the way keep whatever time they were given.
        """
        parent = destination.parent

        if parent == destination:
            logger.debug("%s has no parent, probably the root of the file system", destination)
            return True

        if not os.path.lexists(parent):
            try:
                parent_stat = os.stat(source.parent)
                parent.mkdir(parents=True, exist_ok=True)
                os.utime(parent, ns=(parent_stat.st_atime_ns, parent_stat.st_mtime_ns))
            except OSError as e:
                logger.error("Failed during creation of all parent directories for destination file:  %s", destination)
                logger.debug("source was:  %s", source)
                logger.debug("destination parent was:  %s (%s)", parent, e)
                return False
            return True

        if not parent.is_dir():
            logger.error(
                "Destination %s has expected directory parent of %s BUT parent was not a directory!",
                destination,
                parent,
            )
            logger.error("Failed to copy source file:  %s", source)
            return False

        return True

    def _remove_partial(self, destination: Path) -> None:
        """Delete whatever a failed copy left behind.

        Only called after the destination was confirmed absent before the
        copy, so anything at that path now was written by this worker.
        """
        try:
            destination.unlink(missing_ok=True)
        except OSError:
            logger.error("Unable to remove partial copy at %s", destination, exc_info=True)
            return
        logger.debug("Removed partial copy at %s", destination)

    def _verify(self, source: Path, destination: Path) -> None:
        try:
            source_stat = FileStat.of(source)
            destination_stat = FileStat.of(destination)
        except OSError:
            logger.critical(
                "Unable to stat either source or destination while on source file of %s",
                source,
                exc_info=True,
            )
            return

        if source_stat.matches(destination_stat):
            logger.info("Copied %s to %s", source, destination)
            return

        logger.error("Corrupt file - MISMATCH AFTER COPY:  %s to %s", source, destination)
        self._corrupt_records.add_pair(source_stat, destination_stat)
        self._stats.increment("corrupt_pairs")
