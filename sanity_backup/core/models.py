"""Domain models."""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from pathlib import Path
from typing import Iterable, Iterator


class ExitStatus(IntEnum):
    """Process exit status of a run."""
    OK = 0
    EXTRAS = 2
    LISTING_FAILED = 10
    CORRUPT = 101
    INTERRUPTED = 130
    USAGE = 255


class RunPhase(Enum):
    """Orchestrator state machine."""
    INIT = "init"
    SCANNING = "scanning"
    DRAINING = "draining"
    SHUTTING_DOWN = "shutting-down"
    REPORTING = "reporting"
    DONE = "done"


def format_mtime(mtime_ns: int) -> str:
    """Render a nanosecond timestamp as ISO-8601 UTC, e.g. ``2021-06-15T10:30:45.5Z``."""
    seconds, remainder = divmod(mtime_ns, 1_000_000_000)
    stamp = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    if remainder:
        stamp += "." + f"{remainder:09d}".rstrip("0")
    return stamp + "Z"


@dataclass(frozen=True, slots=True)
class FileStat:
    """Size and modification time of one file, captured at one moment."""
    path: Path
    size: int
    mtime_ns: int

    @classmethod
    def of(cls, path: Path) -> "FileStat":
        """Stat ``path`` (following symlinks). Raises ``OSError``."""
        st = os.stat(path)
        return cls(path=path, size=st.st_size, mtime_ns=st.st_mtime_ns)

    @classmethod
    def from_stat_result(cls, path: Path, st: os.stat_result) -> "FileStat":
        return cls(path=path, size=st.st_size, mtime_ns=st.st_mtime_ns)

    @property
    def mtime(self) -> str:
        return format_mtime(self.mtime_ns)

    def matches(self, other: "FileStat") -> bool:
        """Same size and same modification time."""
        return self.size == other.size and self.mtime_ns == other.mtime_ns

    def as_record(self) -> str:
        """Tab-separated corrupt-report line: path, size, mtime."""
        return f"{self.path}\t{self.size}\t{self.mtime}"


class FileListing:
    """Read-only ordered set of file paths seen by one scan.

    Iterates in lexicographic path order; membership is by path equality.
    """

    __slots__ = ("_paths", "_members")

    def __init__(self, paths: Iterable[Path] = ()):
        self._members = frozenset(paths)
        self._paths = tuple(sorted(self._members))

    def __contains__(self, path: object) -> bool:
        return path in self._members

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __repr__(self) -> str:
        return f"FileListing({len(self._paths)} files)"


@dataclass(slots=True)
class RunStats:
    """Counters for a run. Safe to update from several threads."""
    source_files: int = 0
    destination_files: int = 0
    queued: int = 0
    copied: int = 0
    copy_failed: int = 0
    verified: int = 0
    corrupt_pairs: int = 0
    extras: int = 0
    elapsed_seconds: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, amount: int = 1) -> None:
        """Atomically add ``amount`` to counter ``name``."""
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)


@dataclass(slots=True)
class RunReport:
    """Outcome of a completed run."""
    corrupt_records: list[str]
    extras: list[Path]
    stats: RunStats

    @property
    def has_corruption(self) -> bool:
        return bool(self.corrupt_records)

    @property
    def has_extras(self) -> bool:
        return bool(self.extras)

    @property
    def exit_status(self) -> ExitStatus:
        if self.has_corruption:
            return ExitStatus.CORRUPT
        if self.has_extras:
            return ExitStatus.EXTRAS
        return ExitStatus.OK
