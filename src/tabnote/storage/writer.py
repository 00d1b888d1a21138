"""Crash-safe file writes shared by save, autosave and settings persistence."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tabnote.errors import IoFailure, NotFound

LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"
ENCODING = "utf-8"
# A leading byte-order mark is dropped on read.
DECODING = "utf-8-sig"


def temp_path_for(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a sibling temp file and a rename.

    Readers of ``path`` see either the previous file or the complete new one.
    On failure, including text that cannot be encoded as UTF-8, the previous
    file is left untouched and :class:`IoFailure` is raised.
    """
    path = Path(path)
    temp_path = temp_path_for(path)
    try:
        with temp_path.open("w", encoding=ENCODING, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except (OSError, UnicodeError) as exc:
        _discard_temp(temp_path)
        raise IoFailure(f"Unable to write {path}: {exc}") from exc
    LOGGER.debug("Wrote %d characters to %s", len(content), path)


def _discard_temp(temp_path: Path) -> None:
    try:
        temp_path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.debug("Could not remove temp file %s: %s", temp_path, exc)


def read_bytes(path: Path) -> bytes:
    """Read a whole file, mapping every failure to :class:`NotFound`."""
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise NotFound(f"Unable to open {path}: {exc}") from exc


def decode_text(path: Path, data: bytes) -> str:
    try:
        return data.decode(DECODING)
    except UnicodeDecodeError as exc:
        raise NotFound(f"Unable to open {path}: not valid UTF-8 text") from exc


def read_text(path: Path) -> str:
    """Read a UTF-8 text file; raises :class:`NotFound` when it cannot be read."""
    return decode_text(path, read_bytes(path))
