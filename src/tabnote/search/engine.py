"""Find/replace over a document's text.

All functions are pure: they take the text and a :class:`SearchQuery` and
return offsets or new text. Nothing is cached between calls, so callers
recompute highlights whenever the text or the query changes.

Offsets always index into the original text. Case-insensitive matching folds
each character on its own and keeps characters whose lower-case form is
longer than one character unchanged, so folding never shifts offsets.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from tabnote.models import MatchSpan, SearchQuery
from tabnote.utils.text import is_word_char

MAX_HIGHLIGHTS = 1000


def _fold(value: str) -> str:
    folded = []
    for char in value:
        lower = char.lower()
        folded.append(lower if len(lower) == 1 else char)
    return "".join(folded)


def _prepare(text: str, query: SearchQuery) -> Tuple[str, str]:
    if query.case_sensitive:
        return text, query.pattern
    return _fold(text), _fold(query.pattern)


def is_whole_word_match(text: str, start: int, length: int) -> bool:
    """Check that ``text[start:start + length]`` is not glued to a word character."""
    left = start - 1
    right = start + length
    left_ok = left < 0 or not is_word_char(text[left])
    right_ok = right >= len(text) or not is_word_char(text[right])
    return left_ok and right_ok


def _scan_forward(
    haystack: str, needle: str, text: str, start: int, whole_word: bool, last_start: int
) -> Optional[int]:
    """First valid match starting in ``[start, last_start]``."""
    position = max(start, 0)
    while position <= last_start:
        index = haystack.find(needle, position)
        if index < 0 or index > last_start:
            return None
        if not whole_word or is_whole_word_match(text, index, len(needle)):
            return index
        position = index + 1
    return None


def _scan_backward(
    haystack: str, needle: str, text: str, start: int, whole_word: bool
) -> Optional[int]:
    """Last valid match lying entirely within ``text[: start + 1]``."""
    limit = min(start + 1, len(haystack))
    while limit >= len(needle):
        index = haystack.rfind(needle, 0, limit)
        if index < 0:
            return None
        if not whole_word or is_whole_word_match(text, index, len(needle)):
            return index
        limit = index + len(needle) - 1
    return None


def find_next(text: str, query: SearchQuery, from_index: int) -> Optional[int]:
    """Find the next match strictly after ``from_index``, wrapping to the start.

    The wrapped scan only runs when the forward scan fails and ``from_index``
    is positive; it covers matches starting in ``[0, from_index]``.
    """
    if not query.pattern or not text:
        return None

    haystack, needle = _prepare(text, query)
    index = _scan_forward(
        haystack, needle, text, from_index + 1, query.whole_word, len(haystack) - len(needle)
    )
    if index is None and from_index > 0:
        index = _scan_forward(haystack, needle, text, 0, query.whole_word, from_index)
    return index


def find_previous(text: str, query: SearchQuery, from_index: int) -> Optional[int]:
    """Find the closest match ending at or before ``from_index``, wrapping to the end.

    The backward scan starts at ``max(0, from_index - 1)``. When nothing fits
    before the caret the scan restarts from the last character.
    """
    if not query.pattern or not text:
        return None

    haystack, needle = _prepare(text, query)
    start = max(0, from_index - 1)
    index = None
    # Nothing lies before offset 0, so a caret there searches from the end.
    if from_index > 0:
        index = _scan_backward(haystack, needle, text, start, query.whole_word)
    if index is None and start < len(haystack):
        index = _scan_backward(haystack, needle, text, len(haystack) - 1, query.whole_word)
    return index


def iter_matches(text: str, query: SearchQuery) -> Iterator[int]:
    """Yield start offsets of non-overlapping matches, left to right."""
    if not query.pattern or not text:
        return

    haystack, needle = _prepare(text, query)
    last_start = len(haystack) - len(needle)
    position = 0
    while True:
        index = _scan_forward(haystack, needle, text, position, query.whole_word, last_start)
        if index is None:
            return
        yield index
        position = index + len(needle)


def replace_one(
    text: str, query: SearchQuery, replacement: str, from_index: int
) -> Optional[Tuple[str, int]]:
    """Replace the first match at or after ``from_index`` (no wraparound).

    Returns the new text and the caret offset just past the inserted
    replacement, or ``None`` when nothing matches.
    """
    if not query.pattern or not text:
        return None

    haystack, needle = _prepare(text, query)
    index = _scan_forward(
        haystack, needle, text, from_index, query.whole_word, len(haystack) - len(needle)
    )
    if index is None:
        return None

    new_text = text[:index] + replacement + text[index + len(needle) :]
    return new_text, index + len(replacement)


def replace_all(text: str, query: SearchQuery, replacement: str) -> Tuple[str, int]:
    """Replace every non-overlapping match; returns the new text and the count.

    Scanning resumes after each replaced match, so a replacement that contains
    the pattern is never matched again. An empty pattern is a no-op.
    """
    pieces: List[str] = []
    cursor = 0
    count = 0
    for index in iter_matches(text, query):
        pieces.append(text[cursor:index])
        pieces.append(replacement)
        cursor = index + len(query.pattern)
        count += 1

    if count == 0:
        return text, 0
    pieces.append(text[cursor:])
    return "".join(pieces), count


def highlight_spans(
    text: str,
    query: SearchQuery,
    selection: Optional[Tuple[int, int]] = None,
    *,
    limit: int = MAX_HIGHLIGHTS,
) -> List[MatchSpan]:
    """Spans to highlight for ``query``, capped at ``limit`` matches.

    ``selection`` is the current ``(start, length)`` selection; the span equal
    to it is flagged as current.
    """
    spans: List[MatchSpan] = []
    length = len(query.pattern)
    for index in iter_matches(text, query):
        if len(spans) >= limit:
            break
        spans.append(MatchSpan(index, length, selection == (index, length)))
    return spans
