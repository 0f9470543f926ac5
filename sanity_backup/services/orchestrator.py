"""Backup orchestrator - runs the scans and copy workers and builds the report."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional

from ..core.config import BackupConfig, COPY_WORKER_COUNT
from ..core.errors import ListingError, SanityBackupError
from ..core.models import FileListing, FileStat, RunPhase, RunReport, RunStats
from ..core.paths import rebase
from ..core.protocols import ProgressReporter
from ..logging.rich_logger import QuietProgressReporter
from .copier import CopyWorker
from .scanner import DestinationScanner, SourceScanner
from .shared import CorruptRecords, WorkQueue


logger = logging.getLogger(__name__)

CORRUPT_REPORT_HEADER = "Real Path\tSize in Bytes\tLast Modified FileTime"

# How often the drain progress bar is refreshed
PROGRESS_REFRESH_SECONDS = 0.5


def report_corruption(records: list[str]) -> None:
    """Log the corrupt-file report as a single block."""
    if not records:
        logger.info("No corrupt files found")
        return

    logger.error("CORRUPT FILES WERE FOUND!!!  MANUALLY VERIFY INTEGRITY OF SOURCE AND DEST!!!")
    logger.error("\n%s\n%s\n", CORRUPT_REPORT_HEADER, "\n".join(records))


def report_extras(
    source_listing: FileListing,
    destination_listing: FileListing,
    source_root: Path,
    destination_root: Path,
) -> list[Path]:
    """Find destination files with no counterpart in the source listing.

    Each extra is logged at WARNING with its size and modification time.

    Returns:
        The extra destination paths, in listing order.
    """
    extras: list[Path] = []

    for current in destination_listing:
        expected_source = rebase(current, destination_root, source_root)
        if expected_source in source_listing:
            continue

        extras.append(current)
        try:
            extra = FileStat.of(current)
        except OSError:
            logger.error("EXTRA FOUND, REPORT ERROR:  Unable to stat dest file at:  %s", current, exc_info=True)
            continue
        logger.warning("EXTRA FOUND IN DEST:  %s\t%d bytes\t%s", current, extra.size, extra.mtime)

    return extras


class BackupOrchestrator:
    """Runs one backup pass from start to report.

    Owns every piece of shared state for the run (work queue, corrupt
    records, counters, stop signals) and injects it into the scanners and
    copy workers. Phases follow ``RunPhase``:

        INIT -> SCANNING -> DRAINING -> SHUTTING_DOWN -> REPORTING -> DONE

    The work queue is only treated as final once the source scan has
    returned its listing.
    """

    def __init__(
        self,
        config: BackupConfig,
        reporter: Optional[ProgressReporter] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Run configuration with canonical roots.
            reporter: User-facing output; quiet if omitted.
        """
        self._config = config
        self._reporter = reporter or QuietProgressReporter()
        self._phase = RunPhase.INIT

        self.work_queue = WorkQueue()
        self.corrupt_records = CorruptRecords()
        self.stats = RunStats()
        self._stop_event = threading.Event()
        self._cancel_event = threading.Event()

    @property
    def phase(self) -> RunPhase:
        return self._phase

    def _enter(self, phase: RunPhase) -> None:
        logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    def run(self) -> RunReport:
        """Run the backup pass.

        Returns:
            The corrupt records, extras and statistics of the run.

        Raises:
            ListingError: if the source or destination listing could not be
                obtained. No report is produced in that case.
        """
        started = time.monotonic()
        source_root = self._config.source_root
        destination_root = self._config.destination_root

        self._enter(RunPhase.INIT)
        logger.info("Source directory (real canonical) is %s", source_root)
        logger.info("Destination directory (real canonical) is %s", destination_root)

        source_scanner = SourceScanner(
            source_root,
            destination_root,
            self.work_queue,
            self.corrupt_records,
            stats=self.stats,
            cancel_event=self._cancel_event,
        )
        destination_scanner = DestinationScanner(
            destination_root,
            stats=self.stats,
            cancel_event=self._cancel_event,
        )
        workers = [
            CopyWorker(
                source_root,
                destination_root,
                self.work_queue,
                self.corrupt_records,
                self._stop_event,
                poll_timeout=self._config.poll_timeout,
                stats=self.stats,
            )
            for _ in range(COPY_WORKER_COUNT)
        ]

        scan_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="scan")
        copy_executor = ThreadPoolExecutor(max_workers=COPY_WORKER_COUNT, thread_name_prefix="copy")
        try:
            source_future = scan_executor.submit(source_scanner.scan)
            worker_futures = [copy_executor.submit(worker.run) for worker in workers]
            # May list files copied during its own run
            destination_future = scan_executor.submit(destination_scanner.scan)

            self._enter(RunPhase.SCANNING)
            source_listing = self._get_listing(source_future, "source")
            logger.info("Total number of source files:  %d", len(source_listing))

            # Nothing more will be added to the work queue from here on
            self._enter(RunPhase.DRAINING)
            self._drain(worker_futures)

            self._enter(RunPhase.SHUTTING_DOWN)
            self._stop_event.set()
            logger.info("Waiting for all %s to complete", CopyWorker.__name__)
            wait(worker_futures)
            for future in worker_futures:
                if future.exception() is not None:
                    logger.error("Copy worker failed", exc_info=future.exception())

            self._enter(RunPhase.REPORTING)
            destination_listing = self._get_listing(destination_future, "destination")
            logger.debug("Found %d entries in destination listing", len(destination_listing))

            logger.info("Generating file corruption report")
            corrupt = self.corrupt_records.snapshot()
            report_corruption(corrupt)

            logger.info("Generating extras in destination report")
            extras = report_extras(source_listing, destination_listing, source_root, destination_root)
            self.stats.extras = len(extras)

            self._enter(RunPhase.DONE)
            logger.info("Sync has completed")
        except BaseException:
            self.abort()
            raise
        finally:
            self.stats.elapsed_seconds = time.monotonic() - started
            scan_executor.shutdown(wait=False, cancel_futures=True)
            copy_executor.shutdown(wait=False, cancel_futures=True)

        return RunReport(corrupt_records=corrupt, extras=extras, stats=self.stats)

    def abort(self) -> None:
        """Force everything down: refuse new work, cancel scans, stop workers."""
        self.work_queue.shutdown()
        self._cancel_event.set()
        self._stop_event.set()

    def _get_listing(self, future: Future, side: str) -> FileListing:
        try:
            return future.result()
        except Exception as e:
            logger.critical("Unable to get complete %s listing", side, exc_info=True)
            raise ListingError(side, e) from e

    def _drain(self, worker_futures: list[Future]) -> None:
        """Wait until every queued file has been processed by a worker."""
        total = self.work_queue.total_enqueued
        interval = self._config.drain_report_interval
        refresh = min(interval, PROGRESS_REFRESH_SECONDS)
        last_report = time.monotonic()

        self._reporter.start_phase("Copying", total)
        try:
            while not self.work_queue.wait_drained(timeout=refresh):
                self._reporter.update_phase(self.stats.copied + self.stats.copy_failed)

                if all(future.done() for future in worker_futures):
                    raise SanityBackupError("All copy workers exited before the work queue drained")

                now = time.monotonic()
                if now - last_report >= interval:
                    last_report = now
                    logger.info("Waiting for all source files to finish copying")
                    logger.info("%d files remaining to be copied", self.work_queue.qsize())

            self._reporter.update_phase(self.stats.copied + self.stats.copy_failed)
        finally:
            self._reporter.end_phase()
