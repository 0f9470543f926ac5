"""Path canonicalization and rebasing."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from .errors import InvalidRootError


def canonicalize(path: Union[str, Path]) -> Path:
    """Return the absolute, symlink-resolved form of an existing directory.

    Real paths are needed because the scanners swap bases back and forth and
    must not see ``..`` or symlinked prefixes.

    Raises:
        InvalidRootError: if the path does not exist or is not a directory.
    """
    candidate = Path(path).expanduser()
    try:
        resolved = candidate.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Cannot resolve {candidate}: {e}") from e

    if not resolved.is_dir():
        raise InvalidRootError(f"Not a directory: {resolved}")

    return resolved


def rebase(path: Path, from_base: Path, to_base: Path) -> Path:
    """Map ``path`` under ``from_base`` to the same sub-path under ``to_base``.

    Works when the two bases have unrelated roots (``C:\\dir\\f.txt`` to
    ``H:\\dir\\f.txt``). The result is absolute and lexically normalized;
    symlinks are not resolved.

    Raises:
        ValueError: if ``path`` is not under ``from_base``.
    """
    relative = Path(path).relative_to(from_base)
    return Path(os.path.abspath(Path(to_base) / relative))
