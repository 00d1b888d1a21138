"""Text helpers shared by the document model and the search engine."""

from __future__ import annotations


def is_word_char(char: str) -> bool:
    """Return True for letters, digits and underscore."""
    return char.isalnum() or char == "_"


def line_column(text: str, index: int) -> tuple[int, int]:
    """Return the 1-based (line, column) of ``index`` within ``text``.

    Offsets past the end of the text are clamped to the end.
    """
    if not text:
        return 1, 1

    index = max(0, min(index, len(text)))
    line = text.count("\n", 0, index) + 1
    last_newline = text.rfind("\n", 0, index)
    column = index - last_newline
    return line, column


def context_snippet(text: str, start: int, length: int, *, width: int = 30) -> str:
    """Return the text around a match collapsed to a single line."""
    left = max(0, start - width)
    right = min(len(text), start + length + width)
    snippet = text[left:right].replace("\r", " ").replace("\n", " ")
    prefix = "..." if left > 0 else ""
    suffix = "..." if right < len(text) else ""
    return f"{prefix}{snippet}{suffix}"
