"""Unit tests for the copy worker."""
import logging
import os
import shutil
import threading
from pathlib import Path

from sanity_backup.core.models import FileStat, RunStats
from sanity_backup.services import copier as copier_module
from sanity_backup.services.copier import CopyWorker
from sanity_backup.services.shared import CorruptRecords, WorkQueue

from .fixtures import BASE_MTIME_NS, FileFixture, TreeManager, set_mtime


class TestCopyWorker:
    """Tests for CopyWorker."""

    def setup_method(self):
        self.manager = TreeManager()
        self.work_queue = WorkQueue()
        self.corrupt = CorruptRecords()
        self.stats = RunStats()
        self.stop = threading.Event()
        self.worker = CopyWorker(
            self.manager.source,
            self.manager.destination,
            self.work_queue,
            self.corrupt,
            self.stop,
            poll_timeout=0.05,
            stats=self.stats,
        )

    def teardown_method(self):
        self.manager.teardown()

    def test_copy_preserves_size_and_mtime(self):
        """Test a copied file matches its source."""
        source = self.manager.add_source(FileFixture("a.txt", size=100, mtime_ns=BASE_MTIME_NS + 5))

        assert self.worker.copy_one(source)

        destination = self.manager.destination / "a.txt"
        assert destination.read_bytes() == source.read_bytes()
        assert FileStat.of(destination).matches(FileStat.of(source))
        assert not self.corrupt

    def test_creates_missing_parents(self):
        """Test the whole parent chain is created."""
        source = self.manager.add_source(FileFixture("one/two/three/f.bin", size=10))

        assert self.worker.copy_one(source)

        assert (self.manager.destination / "one" / "two" / "three" / "f.bin").is_file()

    def test_new_parent_gets_source_parent_mtime(self, monkeypatch):
        """Test the created parent carries the source parent's mtime at copy time."""
        source = self.manager.add_source(FileFixture("sub/c.txt"))
        parent_mtime = BASE_MTIME_NS - 3_000_000_000
        set_mtime(source.parent, parent_mtime)
        seen = {}
        real_copy2 = shutil.copy2

        def spy_copy2(src, dst):
            seen["parent_mtime"] = Path(dst).parent.stat().st_mtime_ns
            return real_copy2(src, dst)

        monkeypatch.setattr(copier_module.shutil, "copy2", spy_copy2)

        assert self.worker.copy_one(source)
        assert seen["parent_mtime"] == parent_mtime

    def test_copies_into_existing_parent(self):
        """Test copying into a parent directory that already exists."""
        source = self.manager.add_source(FileFixture("sub/c.txt"))
        (self.manager.destination / "sub").mkdir()
        set_mtime(self.manager.destination / "sub", BASE_MTIME_NS)
        set_mtime(source.parent, BASE_MTIME_NS - 10_000_000_000)

        assert self.worker.copy_one(source)
        assert (self.manager.destination / "sub" / "c.txt").is_file()

    def test_parent_is_a_file(self, caplog):
        """Test a file blocking the parent path skips the copy."""
        source = self.manager.add_source(FileFixture("sub/c.txt"))
        self.manager.add_destination(FileFixture("sub", size=1))

        with caplog.at_level(logging.ERROR):
            assert not self.worker.copy_one(source)

        assert "parent was not a directory" in caplog.text
        assert (self.manager.destination / "sub").is_file()

    def test_copy_failure_is_skipped(self, monkeypatch, caplog):
        """Test an OSError from the copy is logged and the item skipped."""
        source = self.manager.add_source(FileFixture("a.txt"))

        def failing_copy2(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(copier_module.shutil, "copy2", failing_copy2)

        with caplog.at_level(logging.ERROR):
            assert not self.worker.copy_one(source)

        assert "Failed to copy" in caplog.text
        assert not self.corrupt

    def test_failed_copy_leaves_no_partial_file(self, monkeypatch, caplog):
        """Test a copy that dies after writing some bytes removes what it wrote."""
        source = self.manager.add_source(FileFixture("sub/a.txt", size=100))
        destination = self.manager.destination / "sub" / "a.txt"

        def partial_copy2(src, dst):
            Path(dst).write_bytes(b"x" * 10)
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(copier_module.shutil, "copy2", partial_copy2)

        with caplog.at_level(logging.ERROR):
            assert not self.worker.copy_one(source)

        assert not os.path.lexists(destination)
        assert "Failed to copy" in caplog.text
        assert not self.corrupt

    def test_partial_file_cleanup_failure_is_logged(self, monkeypatch, caplog):
        """Test a partial file that cannot be removed is reported, not raised."""
        source = self.manager.add_source(FileFixture("a.txt"))

        def partial_copy2(src, dst):
            Path(dst).write_bytes(b"x")
            raise OSError(5, "Input/output error")

        def failing_unlink(self, missing_ok=False):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(copier_module.shutil, "copy2", partial_copy2)
        monkeypatch.setattr(Path, "unlink", failing_unlink)

        with caplog.at_level(logging.ERROR):
            assert not self.worker.copy_one(source)

        assert "Unable to remove partial copy" in caplog.text

    def test_verify_stat_failure_keeps_worker_going(self, monkeypatch, caplog):
        """Test a stat failure after copying is logged and later items still copy."""
        first = self.manager.add_source(FileFixture("first.txt"))
        second = self.manager.add_source(FileFixture("second.txt"))
        unstattable = self.manager.destination / "first.txt"
        real_of = FileStat.of

        def flaky_of(cls, path):
            if Path(path) == unstattable:
                raise OSError(5, "Input/output error")
            return real_of(path)

        monkeypatch.setattr(FileStat, "of", classmethod(flaky_of))
        self.work_queue.put(first)
        self.work_queue.put(second)

        with caplog.at_level(logging.CRITICAL):
            thread = threading.Thread(target=self.worker.run)
            thread.start()
            assert self.work_queue.wait_drained(timeout=5)
            self.stop.set()
            thread.join(timeout=5)

        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(critical) == 1
        assert str(first) in critical[0].getMessage()
        assert not self.corrupt
        assert self.stats.copied == 2
        assert (self.manager.destination / "second.txt").is_file()

    def test_destination_appeared_is_not_overwritten(self, caplog):
        """Test a destination created after queueing is left untouched."""
        source = self.manager.add_source(FileFixture("a.txt", size=100))
        destination = self.manager.add_destination(FileFixture("a.txt", size=3))

        with caplog.at_level(logging.ERROR):
            assert not self.worker.copy_one(source)

        assert destination.stat().st_size == 3
        assert "not overwriting" in caplog.text

    def test_mismatch_after_copy_is_recorded(self, monkeypatch):
        """Test a copy that does not match its source is recorded as corrupt."""
        source = self.manager.add_source(FileFixture("a.txt", size=100))

        def short_copy2(src, dst):
            Path(dst).write_bytes(b"x" * 10)

        monkeypatch.setattr(copier_module.shutil, "copy2", short_copy2)

        assert self.worker.copy_one(source)

        lines = self.corrupt.snapshot()
        assert len(lines) == 2
        assert lines[0].startswith(f"{source}\t100\t")
        assert lines[1].startswith(f"{self.manager.destination / 'a.txt'}\t10\t")
        assert self.stats.corrupt_pairs == 1

    def test_run_processes_queue_until_stopped(self):
        """Test the run loop copies queued items and exits on stop."""
        sources = [self.manager.add_source(FileFixture(f"f{i}.txt")) for i in range(5)]
        for source in sources:
            self.work_queue.put(source)

        thread = threading.Thread(target=self.worker.run)
        thread.start()
        assert self.work_queue.wait_drained(timeout=5)
        self.stop.set()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert self.stats.copied == 5
        for source in sources:
            assert (self.manager.destination / source.name).is_file()

    def test_run_keeps_waiting_on_empty_queue(self):
        """Test an empty queue does not end the loop by itself."""
        thread = threading.Thread(target=self.worker.run)
        thread.start()

        thread.join(timeout=0.2)
        assert thread.is_alive()

        late = self.manager.add_source(FileFixture("late.txt"))
        self.work_queue.put(late)
        assert self.work_queue.wait_drained(timeout=5)

        self.stop.set()
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert (self.manager.destination / "late.txt").is_file()

    def test_run_counts_failures_and_marks_done(self, monkeypatch):
        """Test a failed item still counts toward the drain."""
        source = self.manager.add_source(FileFixture("a.txt"))

        def boom(path):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(self.worker, "copy_one", boom)
        self.work_queue.put(source)

        thread = threading.Thread(target=self.worker.run)
        thread.start()
        assert self.work_queue.wait_drained(timeout=5)
        self.stop.set()
        thread.join(timeout=5)

        assert self.stats.copy_failed == 1
        assert self.stats.copied == 0

    def test_missing_source_is_skipped(self):
        """Test a source that vanished after queueing is skipped."""
        source = self.manager.add_source(FileFixture("sub/gone.txt"))
        os.remove(source)

        assert not self.worker.copy_one(source)
        assert not (self.manager.destination / "sub" / "gone.txt").exists()
