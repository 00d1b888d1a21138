"""Exceptions raised by the editing core."""

from __future__ import annotations


class TabnoteError(Exception):
    """Base class for all tabnote errors."""


class IoFailure(TabnoteError, OSError):
    """A file could not be read, written or renamed."""


class InvalidOperation(TabnoteError, ValueError):
    """The requested operation is not allowed in the current state."""


class NotFound(TabnoteError, FileNotFoundError):
    """A path to open does not exist or cannot be read."""
