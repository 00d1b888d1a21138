"""Utility helpers for working with files."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Iterator

SNAPSHOT_PREFIX = "autosave_"
SNAPSHOT_SUFFIX = ".txt"
SNAPSHOT_GLOB = f"{SNAPSHOT_PREFIX}*{SNAPSHOT_SUFFIX}"

_INVALID_NAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(code) for code in range(32))


def paths_equal(left: Path | str, right: Path | str) -> bool:
    """Compare two paths ignoring case, after normalising separators."""
    return os.path.normcase(os.path.normpath(str(left))).casefold() == os.path.normcase(
        os.path.normpath(str(right))
    ).casefold()


def is_valid_file_name(name: str) -> bool:
    """Check that ``name`` is a bare file name usable on every platform."""
    if not name or not name.strip() or name in {".", ".."}:
        return False
    return not any(char in _INVALID_NAME_CHARS for char in name)


def snapshot_name(doc_id: str, when: datetime) -> str:
    """Build the file name of an autosave snapshot."""
    return f"{SNAPSHOT_PREFIX}{doc_id}_{when:%Y%m%d_%H%M%S}{SNAPSHOT_SUFFIX}"


def iter_snapshot_paths(directory: Path) -> Iterator[Path]:
    """Yield autosave snapshot files found directly inside ``directory``."""
    if not directory.is_dir():
        return
    for item in sorted(directory.glob(SNAPSHOT_GLOB)):
        if item.is_file():
            yield item
