"""Test fixtures for backup tests.

This module provides fixture classes that write files with a known size and
modification time, and a manager that owns a source/destination pair.
"""
from __future__ import annotations

import os
import tempfile
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# 2020-09-13T12:26:40Z
BASE_MTIME_NS = 1_600_000_000 * 1_000_000_000


def set_mtime(path: Path, mtime_ns: int) -> None:
    os.utime(path, ns=(mtime_ns, mtime_ns))


@dataclass
class FileFixture:
    """A file with known content size and modification time.

    Knows how to create itself under any root, so the same fixture can be
    written into the source, the destination, or both.
    """
    relative_path: str
    size: int = 100
    mtime_ns: int = BASE_MTIME_NS
    fill: bytes = b"x"

    def create(self, root: Path) -> Path:
        """Create the file (and its parents) under ``root``."""
        path = root / self.relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.fill * self.size)
        set_mtime(path, self.mtime_ns)
        return path

    def path_in(self, root: Path) -> Path:
        return root / self.relative_path


class TreeManager:
    """Creates a canonical source/destination directory pair and cleans up."""

    def __init__(self, base: Optional[Path] = None):
        self._owns_base = base is None
        self.base = base or Path(tempfile.mkdtemp(prefix="sanity_backup_test_"))
        self.source = (self.base / "src").resolve()
        self.destination = (self.base / "dst").resolve()
        self.source.mkdir(parents=True, exist_ok=True)
        self.destination.mkdir(parents=True, exist_ok=True)

    def add_source(self, fixture: FileFixture) -> Path:
        return fixture.create(self.source)

    def add_destination(self, fixture: FileFixture) -> Path:
        return fixture.create(self.destination)

    def add_both(self, fixture: FileFixture) -> tuple[Path, Path]:
        """Create an identical copy on both sides."""
        return fixture.create(self.source), fixture.create(self.destination)

    def teardown(self) -> None:
        if self._owns_base and self.base.exists():
            shutil.rmtree(self.base)


def create_mixed_tree(manager: TreeManager) -> dict[str, list[FileFixture]]:
    """Populate a tree that exercises every outcome.

    Returns fixtures grouped by expected outcome: ``copied``, ``in_sync``,
    ``corrupt`` and ``extra``.
    """
    copied = [
        FileFixture("a.txt", size=100),
        FileFixture("sub/c.txt", size=10),
        FileFixture("sub/deeper/d.bin", size=2048, fill=b"\x00"),
    ]
    in_sync = [FileFixture("same.txt", size=42)]
    corrupt_source = FileFixture("b.txt", size=100)
    corrupt_destination = FileFixture("b.txt", size=50)
    extra = [FileFixture("extra.txt", size=7), FileFixture("old/gone.txt", size=3)]

    for fixture in copied:
        manager.add_source(fixture)
    for fixture in in_sync:
        manager.add_both(fixture)
    manager.add_source(corrupt_source)
    manager.add_destination(corrupt_destination)
    for fixture in extra:
        manager.add_destination(fixture)

    return {
        "copied": copied,
        "in_sync": in_sync,
        "corrupt": [corrupt_source],
        "extra": extra,
    }
