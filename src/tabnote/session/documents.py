"""Ordered collection of open documents."""

from __future__ import annotations

import itertools
import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional

from tabnote.errors import InvalidOperation, IoFailure
from tabnote.models import Document
from tabnote.storage.writer import decode_text, read_bytes, write_atomic
from tabnote.utils.files import paths_equal

LOGGER = logging.getLogger(__name__)

UNTITLED_PREFIX = "Untitled"


class DocumentSet:
    """Documents in tab order plus the active selection.

    Once a document has been created the set is never empty: closing the
    last document replaces it with a fresh untitled one.
    """

    def __init__(self) -> None:
        self._documents: List[Document] = []
        self._active: Optional[Document] = None
        self._counter = itertools.count(1)

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents))

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc: object) -> bool:
        return any(item is doc for item in self._documents)

    @property
    def documents(self) -> List[Document]:
        return list(self._documents)

    @property
    def active(self) -> Optional[Document]:
        return self._active

    @property
    def has_unsaved_changes(self) -> bool:
        return any(doc.is_modified for doc in self._documents)

    def modified_documents(self) -> List[Document]:
        return [doc for doc in self._documents if doc.is_modified]

    def get(self, doc_id: str) -> Optional[Document]:
        for doc in self._documents:
            if doc.doc_id == doc_id:
                return doc
        return None

    def find_by_path(self, path: Path) -> Optional[Document]:
        for doc in self._documents:
            if doc.file_path is not None and paths_equal(doc.file_path, path):
                return doc
        return None

    def _add(self, doc: Document) -> Document:
        self._documents.append(doc)
        self.select(doc)
        return doc

    def select(self, doc: Document) -> None:
        if doc not in self:
            raise InvalidOperation(f"{doc.title} is not an open document")
        for item in self._documents:
            item.is_selected = item is doc
        self._active = doc

    def create(self) -> Document:
        """Open a new, never-saved document and make it active."""
        doc = Document(title=f"{UNTITLED_PREFIX}{next(self._counter)}")
        LOGGER.debug("Created %s", doc.title)
        return self._add(doc)

    def load_from(self, path: Path, data: bytes) -> Document:
        """Open already-read file contents as a clean document."""
        path = Path(path)
        text = decode_text(path, data)
        doc = Document(title=path.name, file_path=path)
        doc.initialize_content(text)
        LOGGER.info("Opened %s", path)
        return self._add(doc)

    def open(self, path: Path) -> Document:
        """Read ``path`` from disk; an already open file is just selected."""
        existing = self.find_by_path(path)
        if existing is not None:
            self.select(existing)
            return existing
        return self.load_from(path, read_bytes(Path(path)))

    def set_content(self, doc: Document, text: str) -> None:
        doc.set_content(text)

    def close(self, doc: Document) -> None:
        """Remove ``doc``; the save-or-discard decision must already be resolved."""
        if doc not in self:
            raise InvalidOperation(f"{doc.title} is not an open document")

        was_active = self._active is doc
        self._documents = [item for item in self._documents if item is not doc]
        doc.is_selected = False
        LOGGER.debug("Closed %s", doc.title)

        if not self._documents:
            self._active = None
            self.create()
        elif was_active:
            self.select(self._documents[-1])

    def save(self, doc: Document, path: Optional[Path] = None) -> Path:
        """Write ``doc`` to ``path`` (or its own path) and mark it clean.

        Raises :class:`IoFailure` with the document left unchanged when the
        write fails.
        """
        target = Path(path) if path is not None else doc.file_path
        if target is None:
            raise InvalidOperation(f"{doc.title} has never been saved; choose a path first")

        write_atomic(target, doc.content)
        doc.mark_saved(target)
        LOGGER.info("Saved %s", target)
        return target

    def rename(self, doc: Document, new_path: Path) -> bool:
        """Move the file behind ``doc`` to ``new_path``.

        Unsaved edits are written to the current path first. Returns False
        when ``new_path`` is the current path.
        """
        if doc.file_path is None:
            raise InvalidOperation("A document must be saved before it can be renamed")

        new_path = Path(new_path)
        if paths_equal(doc.file_path, new_path):
            return False
        if new_path.exists():
            raise InvalidOperation(f"Cannot rename: {new_path} already exists")

        if doc.is_modified:
            self.save(doc)

        old_path = doc.file_path
        try:
            os.rename(old_path, new_path)
        except OSError as exc:
            raise IoFailure(f"Unable to rename {old_path} to {new_path}: {exc}") from exc

        doc.mark_saved(new_path)
        LOGGER.info("Renamed %s to %s", old_path, new_path)
        return True
