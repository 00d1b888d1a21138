"""Core tabnote data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tabnote.utils.text import line_column

MODIFIED_MARKER = " *"


@dataclass(slots=True, eq=False)
class Document:
    """One open text buffer and its save state."""

    title: str
    content: str = ""
    file_path: Path | None = None
    is_modified: bool = False
    caret_index: int = 0
    is_selected: bool = False
    doc_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    revision: int = 0

    @property
    def display_title(self) -> str:
        return f"{self.title}{MODIFIED_MARKER}" if self.is_modified else self.title

    @property
    def is_new(self) -> bool:
        """True until the document has been bound to a file on disk."""
        return self.file_path is None

    @property
    def caret_position(self) -> tuple[int, int]:
        return line_column(self.content, self.caret_index)

    def initialize_content(self, text: str) -> None:
        """Load text without marking the document as modified."""
        self.content = text
        self.is_modified = False
        self.caret_index = 0

    def set_content(self, text: str) -> None:
        """Replace the buffer. Always marks the document modified, even for identical text."""
        self.content = text
        self.is_modified = True
        self.revision += 1
        if self.caret_index > len(text):
            self.caret_index = len(text)

    def move_caret(self, index: int) -> None:
        self.caret_index = max(0, min(index, len(self.content)))

    def mark_saved(self, path: Path) -> None:
        self.file_path = Path(path)
        self.title = self.file_path.name
        self.is_modified = False


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Pattern plus matching options for find/replace."""

    pattern: str
    case_sensitive: bool = False
    whole_word: bool = False


@dataclass(frozen=True, slots=True)
class MatchSpan:
    """A highlighted match: offset, length and whether it is the current selection."""

    start: int
    length: int
    is_current: bool = False

    @property
    def end(self) -> int:
        return self.start + self.length


class SaveDecision(str, Enum):
    """Answer of the save-or-discard prompt."""

    SAVE = "save"
    DISCARD = "discard"
    CANCEL = "cancel"
