"""Editing session: documents, settings and autosave wired together.

The session is the only place that talks to the UI, and it does so through
the :class:`EditorDialogs` collaborator, which answers plain questions (which
file, which name, save or discard) and never exposes UI state.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from tabnote.config import AppConfig
from tabnote.errors import InvalidOperation, IoFailure
from tabnote.models import Document, MatchSpan, SaveDecision, SearchQuery
from tabnote.search import engine
from tabnote.session.documents import DocumentSet
from tabnote.storage.autosave import AutosavePolicy, AutosaveTimer
from tabnote.storage.settings import MAX_OPACITY, MIN_OPACITY, AppSettings, SettingsStore
from tabnote.utils.files import is_valid_file_name

LOGGER = logging.getLogger(__name__)


class EditorDialogs(Protocol):
    def open_file_dialog(self) -> Optional[Path]: ...

    def save_file_dialog(self, suggested_name: str) -> Optional[Path]: ...

    def confirm_save_discard_cancel(self, document_title: str) -> SaveDecision: ...

    def prompt_new_file_name(self, current: str) -> Optional[str]: ...


class SessionState(str, Enum):
    OPEN = "open"
    CONFIRMING_CLOSE = "confirming_close"
    CLOSED = "closed"


class EditorSession:
    """Owns one editing session from startup to shutdown."""

    def __init__(
        self,
        dialogs: EditorDialogs,
        config: Optional[AppConfig] = None,
        *,
        settings_store: Optional[SettingsStore] = None,
        run_timer: bool = True,
    ) -> None:
        self.config = config or AppConfig()
        self.dialogs = dialogs
        self.settings_store = settings_store or SettingsStore(self.config.settings_path)
        self.documents = DocumentSet()
        self.lock = threading.RLock()
        self.autosave = AutosavePolicy(self.documents, self.config.autosave_dir, lock=self.lock)
        self.run_timer = run_timer
        self.state = SessionState.OPEN
        self._timer: Optional[AutosaveTimer] = None

    @property
    def settings(self) -> AppSettings:
        return self.settings_store.settings

    @property
    def active(self) -> Optional[Document]:
        return self.documents.active

    def start(self) -> None:
        """Load settings, open the first document and start autosave."""
        settings = self.settings_store.load()
        self.autosave.interval_seconds = settings.auto_save_interval_seconds
        self.autosave.enabled = settings.is_auto_save_enabled
        if len(self.documents) == 0:
            self.documents.create()
        self._sync_timer()
        LOGGER.info("Session started with data directory %s", self.config.data_dir)

    def _sync_timer(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        wanted = self.run_timer and self.autosave.enabled
        if wanted and self._timer is None:
            self._timer = AutosaveTimer(self.autosave)
            self._timer.start()
        elif not wanted and self._timer is not None:
            self._timer.stop()
            self._timer = None

    @property
    def timer(self) -> Optional[AutosaveTimer]:
        return self._timer

    def _require_open(self) -> None:
        if self.state is SessionState.CLOSED:
            raise InvalidOperation("The session is closed")

    def _resolve(self, doc: Optional[Document]) -> Document:
        doc = doc if doc is not None else self.active
        if doc is None:
            raise InvalidOperation("No document is open")
        return doc

    # Documents

    def new_document(self) -> Document:
        self._require_open()
        return self.documents.create()

    def open_document(self, path: Optional[Path] = None) -> Optional[Document]:
        """Open ``path``, or ask the dialog for one. Returns None if the user backs out."""
        self._require_open()
        if path is None:
            path = self.dialogs.open_file_dialog()
            if path is None:
                return None
        return self.documents.open(Path(path))

    def save(self, doc: Optional[Document] = None) -> bool:
        """Save to the document's path, falling back to save-as for new documents."""
        doc = self._resolve(doc)
        if doc.is_new:
            return self.save_as(doc)
        with self.lock:
            self.documents.save(doc)
        return True

    def save_as(self, doc: Optional[Document] = None) -> bool:
        doc = self._resolve(doc)
        path = self.dialogs.save_file_dialog(doc.title)
        if path is None:
            return False
        with self.lock:
            self.documents.save(doc, Path(path))
        return True

    def save_all(self) -> int:
        """Save every modified document; returns how many were saved."""
        saved = 0
        for doc in self.documents.modified_documents():
            if self.save(doc):
                saved += 1
        return saved

    def rename(self, doc: Optional[Document] = None) -> bool:
        doc = self._resolve(doc)
        if doc.file_path is None:
            raise InvalidOperation("A document must be saved before it can be renamed")

        new_name = self.dialogs.prompt_new_file_name(doc.file_path.name)
        if new_name is None:
            return False
        new_name = new_name.strip()
        if not is_valid_file_name(new_name):
            raise InvalidOperation(f"Invalid file name: {new_name!r}")

        with self.lock:
            return self.documents.rename(doc, doc.file_path.with_name(new_name))

    def _resolve_unsaved(self, doc: Document) -> bool:
        """Ask save/discard/cancel for ``doc``. Returns False when the user cancels."""
        if not doc.is_modified:
            return True
        decision = SaveDecision(self.dialogs.confirm_save_discard_cancel(doc.title))
        if decision is SaveDecision.CANCEL:
            return False
        if decision is SaveDecision.SAVE:
            return self.save(doc)
        return True

    def close_document(self, doc: Optional[Document] = None) -> bool:
        """Close one tab after resolving unsaved changes. Returns False if cancelled."""
        self._require_open()
        doc = self._resolve(doc)
        if not self._resolve_unsaved(doc):
            return False
        self.documents.close(doc)
        return True

    def request_close(self) -> bool:
        """Run the shutdown protocol. Returns True once the session is closed."""
        if self.state is SessionState.CLOSED:
            return True

        if self.documents.has_unsaved_changes:
            self.state = SessionState.CONFIRMING_CLOSE
            try:
                for doc in self.documents.modified_documents():
                    if not self._resolve_unsaved(doc):
                        LOGGER.info("Close cancelled at %s", doc.title)
                        self.state = SessionState.OPEN
                        return False
            except IoFailure:
                self.state = SessionState.OPEN
                raise

        self._shutdown()
        return True

    def _shutdown(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        self.autosave.enabled = False
        self.settings_store.flush()
        self.state = SessionState.CLOSED
        LOGGER.info("Session closed")

    # Find / replace on the active document

    def find_next(self, query: SearchQuery) -> Optional[int]:
        doc = self._resolve(None)
        index = engine.find_next(doc.content, query, doc.caret_index)
        if index is not None:
            doc.move_caret(index)
        return index

    def find_previous(self, query: SearchQuery) -> Optional[int]:
        doc = self._resolve(None)
        index = engine.find_previous(doc.content, query, doc.caret_index)
        if index is not None:
            doc.move_caret(index)
        return index

    def replace(self, query: SearchQuery, replacement: str) -> bool:
        doc = self._resolve(None)
        result = engine.replace_one(doc.content, query, replacement, doc.caret_index)
        if result is None:
            return False
        new_text, caret = result
        with self.lock:
            self.documents.set_content(doc, new_text)
        doc.move_caret(caret)
        return True

    def replace_all(self, query: SearchQuery, replacement: str) -> int:
        doc = self._resolve(None)
        new_text, count = engine.replace_all(doc.content, query, replacement)
        if count:
            with self.lock:
                self.documents.set_content(doc, new_text)
        return count

    def highlights(self, query: SearchQuery) -> List[MatchSpan]:
        doc = self._resolve(None)
        selection = (doc.caret_index, len(query.pattern))
        return engine.highlight_spans(doc.content, query, selection)

    # Preferences

    def set_topmost_preference(self, value: bool) -> None:
        self.settings_store.update(lambda s: setattr(s, "is_topmost", value))

    def toggle_theme(self) -> bool:
        dark = not self.settings.is_dark_theme
        self.settings_store.update(lambda s: setattr(s, "is_dark_theme", dark))
        return dark

    def set_opacity(self, value: float) -> float:
        value = min(max(value, MIN_OPACITY), MAX_OPACITY)
        self.settings_store.update(lambda s: setattr(s, "window_opacity", value))
        return value

    def set_autosave(self, enabled: bool, interval_seconds: Optional[int] = None) -> None:
        def apply(settings: AppSettings) -> None:
            settings.is_auto_save_enabled = enabled
            if interval_seconds is not None:
                settings.auto_save_interval_seconds = interval_seconds

        self.settings_store.update(apply)
        self._apply_autosave_settings()

    def apply_setting(self, key: str, value: object) -> AppSettings:
        """Set one setting by name, keeping autosave in step with it."""
        return self.apply_settings({key: value})

    def apply_settings(self, values: Dict[str, Any]) -> AppSettings:
        """Set several settings at once; nothing changes if any value is rejected."""
        self.settings_store.set_values(values)
        self._apply_autosave_settings()
        return self.settings

    def _apply_autosave_settings(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.autosave.enabled = self.settings.is_auto_save_enabled
        self.autosave.interval_seconds = self.settings.auto_save_interval_seconds
        self._sync_timer()
