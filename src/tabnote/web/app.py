"""FastAPI application exposing an editing session to a local UI."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tabnote.config import AppConfig
from tabnote.errors import InvalidOperation, IoFailure, NotFound, TabnoteError
from tabnote.models import Document, SaveDecision, SearchQuery
from tabnote.session.editor import EditorSession

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="tabnote", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_config: Optional[AppConfig] = None
_session: Optional[EditorSession] = None
_session_lock = threading.Lock()


@dataclass(slots=True)
class PresetDialogs:
    """Dialog answers supplied up front by the HTTP request."""

    open_path: Optional[Path] = None
    save_path: Optional[Path] = None
    decision: SaveDecision = SaveDecision.CANCEL
    new_name: Optional[str] = None

    def open_file_dialog(self) -> Optional[Path]:
        return self.open_path

    def save_file_dialog(self, suggested_name: str) -> Optional[Path]:
        return self.save_path

    def confirm_save_discard_cancel(self, document_title: str) -> SaveDecision:
        return self.decision

    def prompt_new_file_name(self, current: str) -> Optional[str]:
        return self.new_name


class OpenPayload(BaseModel):
    path: Path


class ContentPayload(BaseModel):
    content: str
    caret_index: Optional[int] = None


class SavePayload(BaseModel):
    path: Optional[Path] = None


class RenamePayload(BaseModel):
    new_name: str


class ClosePayload(BaseModel):
    decision: Optional[SaveDecision] = None
    save_path: Optional[Path] = None


class QueryPayload(BaseModel):
    pattern: str
    case_sensitive: bool = False
    whole_word: bool = False
    doc_id: Optional[str] = None

    def to_query(self) -> SearchQuery:
        return SearchQuery(self.pattern, self.case_sensitive, self.whole_word)


class FindPayload(QueryPayload):
    direction: Literal["next", "previous"] = "next"


class ReplacePayload(QueryPayload):
    replacement: str = ""
    all: bool = False


class PurgePayload(BaseModel):
    days: int = 7


def configure(config: AppConfig) -> None:
    """Set the configuration used when the session is first created."""
    global _config, _session
    with _session_lock:
        _config = config
        _session = None


def get_session() -> EditorSession:
    global _session
    with _session_lock:
        if _session is None:
            _session = EditorSession(PresetDialogs(), _config or AppConfig())
            _session.start()
        return _session


@contextmanager
def _answering(session: EditorSession, dialogs: PresetDialogs) -> Iterator[EditorSession]:
    with session.lock:
        previous = session.dialogs
        session.dialogs = dialogs
        try:
            yield session
        finally:
            session.dialogs = previous


def _http_error(exc: TabnoteError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidOperation):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, IoFailure):
        LOGGER.error("I/O failure: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _document_payload(doc: Document, *, include_content: bool = False) -> Dict[str, Any]:
    line, column = doc.caret_position
    payload: Dict[str, Any] = {
        "doc_id": doc.doc_id,
        "title": doc.title,
        "display_title": doc.display_title,
        "file_path": str(doc.file_path) if doc.file_path is not None else None,
        "is_modified": doc.is_modified,
        "is_selected": doc.is_selected,
        "caret_index": doc.caret_index,
        "line": line,
        "column": column,
    }
    if include_content:
        payload["content"] = doc.content
    return payload


def _get_document(session: EditorSession, doc_id: str) -> Document:
    doc = session.documents.get(doc_id)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {doc_id}")
    return doc


def _activate(session: EditorSession, doc_id: Optional[str]) -> Document:
    if doc_id is None:
        return session.active
    doc = _get_document(session, doc_id)
    session.documents.select(doc)
    return doc


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/documents")
def list_documents(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    active = session.active
    return {
        "documents": [_document_payload(doc) for doc in session.documents],
        "active": active.doc_id if active is not None else None,
    }


@app.post("/documents")
def new_document(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        doc = session.new_document()
    except TabnoteError as exc:
        raise _http_error(exc)
    return _document_payload(doc, include_content=True)


@app.post("/documents/open")
def open_document(
    payload: OpenPayload, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        doc = session.open_document(payload.path.expanduser())
    except TabnoteError as exc:
        raise _http_error(exc)
    return _document_payload(doc, include_content=True)


@app.get("/documents/{doc_id}")
def get_document(doc_id: str, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _document_payload(_get_document(session, doc_id), include_content=True)


@app.put("/documents/{doc_id}/content")
def set_content(
    doc_id: str, payload: ContentPayload, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    doc = _get_document(session, doc_id)
    with session.lock:
        session.documents.set_content(doc, payload.content)
    if payload.caret_index is not None:
        doc.move_caret(payload.caret_index)
    return _document_payload(doc)


@app.post("/documents/{doc_id}/select")
def select_document(doc_id: str, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    doc = _activate(session, doc_id)
    return _document_payload(doc)


@app.post("/documents/{doc_id}/save")
def save_document(
    doc_id: str, payload: SavePayload, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    doc = _get_document(session, doc_id)
    if payload.path is None and doc.is_new:
        raise HTTPException(status_code=400, detail="A path is required to save a new document")
    try:
        with _answering(session, PresetDialogs(save_path=payload.path)):
            if payload.path is not None:
                session.save_as(doc)
            else:
                session.save(doc)
    except TabnoteError as exc:
        raise _http_error(exc)
    return _document_payload(doc)


@app.post("/documents/{doc_id}/rename")
def rename_document(
    doc_id: str, payload: RenamePayload, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    doc = _get_document(session, doc_id)
    try:
        with _answering(session, PresetDialogs(new_name=payload.new_name)):
            renamed = session.rename(doc)
    except TabnoteError as exc:
        raise _http_error(exc)
    return {"renamed": renamed, "document": _document_payload(doc)}


@app.post("/documents/{doc_id}/close")
def close_document(
    doc_id: str, payload: ClosePayload, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    doc = _get_document(session, doc_id)
    if doc.is_modified and payload.decision is None:
        raise HTTPException(status_code=409, detail=f"{doc.title} has unsaved changes")
    dialogs = PresetDialogs(
        save_path=payload.save_path,
        decision=payload.decision or SaveDecision.DISCARD,
    )
    try:
        with _answering(session, dialogs):
            closed = session.close_document(doc)
    except TabnoteError as exc:
        raise _http_error(exc)
    return {"closed": closed, "active": session.active.doc_id}


@app.post("/find")
def find(payload: FindPayload, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    if not payload.pattern:
        raise HTTPException(status_code=400, detail="Empty pattern")
    doc = _activate(session, payload.doc_id)
    query = payload.to_query()
    if payload.direction == "next":
        index = session.find_next(query)
    else:
        index = session.find_previous(query)
    return {"index": index, "found": index is not None, "document": _document_payload(doc)}


@app.post("/replace")
def replace(payload: ReplacePayload, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    if not payload.pattern:
        raise HTTPException(status_code=400, detail="Empty pattern")
    doc = _activate(session, payload.doc_id)
    query = payload.to_query()
    if payload.all:
        count = session.replace_all(query, payload.replacement)
    else:
        count = 1 if session.replace(query, payload.replacement) else 0
    return {"count": count, "document": _document_payload(doc, include_content=True)}


@app.post("/highlights")
def highlights(payload: QueryPayload, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    _activate(session, payload.doc_id)
    spans = session.highlights(payload.to_query())
    items: List[Dict[str, Any]] = [
        {"start": span.start, "length": span.length, "is_current": span.is_current} for span in spans
    ]
    return {"spans": items, "count": len(items)}


@app.get("/settings")
def get_settings(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return session.settings.model_dump(by_alias=True)


@app.patch("/settings")
def update_settings(
    payload: Dict[str, Any], session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        session.apply_settings(payload)
    except InvalidOperation as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return session.settings.model_dump(by_alias=True)


@app.post("/autosave/purge")
def purge_autosave(
    payload: PurgePayload, session: EditorSession = Depends(get_session)
) -> Dict[str, int]:
    removed = session.autosave.purge_snapshots(timedelta(days=payload.days))
    return {"removed": removed}
