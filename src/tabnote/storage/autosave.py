"""Periodic autosave of modified documents."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from tabnote.errors import IoFailure
from tabnote.models import Document
from tabnote.session.documents import DocumentSet
from tabnote.storage.writer import write_atomic
from tabnote.utils.files import iter_snapshot_paths, snapshot_name

LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_RETENTION = timedelta(days=7)


@dataclass(slots=True)
class SweepStats:
    saved: int = 0
    snapshots: int = 0
    failed: int = 0

    @property
    def written(self) -> int:
        return self.saved + self.snapshots


class AutosavePolicy:
    """Writes modified documents on each tick.

    Documents with a path are saved in place and marked clean. Untitled
    documents get a recovery snapshot in ``autosave_dir``; they stay modified
    and unbound.
    """

    def __init__(
        self,
        documents: DocumentSet,
        autosave_dir: Path,
        *,
        enabled: bool = True,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.documents = documents
        self.autosave_dir = Path(autosave_dir)
        self.enabled = enabled
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.lock = lock if lock is not None else threading.RLock()

    def tick(self) -> SweepStats:
        """Run one sweep. Write failures are logged and retried next tick."""
        stats = SweepStats()
        if not self.enabled:
            return stats

        with self.lock:
            for doc in self.documents:
                if not doc.is_modified:
                    continue
                try:
                    if doc.file_path is not None:
                        self._save_in_place(doc)
                        stats.saved += 1
                    else:
                        self._write_snapshot(doc)
                        stats.snapshots += 1
                except IoFailure as exc:
                    LOGGER.warning("Autosave of %s failed: %s", doc.title, exc)
                    stats.failed += 1
        return stats

    def _save_in_place(self, doc: Document) -> None:
        revision = doc.revision
        write_atomic(doc.file_path, doc.content)
        if doc.revision == revision:
            doc.is_modified = False
        LOGGER.debug("Autosaved %s", doc.file_path)

    def _write_snapshot(self, doc: Document) -> Path:
        try:
            self.autosave_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IoFailure(f"Unable to create {self.autosave_dir}: {exc}") from exc
        target = self.autosave_dir / snapshot_name(doc.doc_id, self.clock())
        write_atomic(target, doc.content)
        LOGGER.debug("Wrote snapshot %s for %s", target.name, doc.title)
        return target

    def list_snapshots(self) -> List[Path]:
        """Snapshot files, newest first."""
        paths = list(iter_snapshot_paths(self.autosave_dir))
        return sorted(paths, key=_mtime, reverse=True)

    def purge_snapshots(self, max_age: timedelta = DEFAULT_RETENTION) -> int:
        """Delete snapshots last written before ``now - max_age``."""
        cutoff = (self.clock() - max_age).timestamp()
        removed = 0
        for path in iter_snapshot_paths(self.autosave_dir):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as exc:
                LOGGER.warning("Could not purge snapshot %s: %s", path, exc)
        if removed:
            LOGGER.info("Purged %d autosave snapshots", removed)
        return removed


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


class AutosaveTimer(threading.Thread):
    """Thread that ticks an :class:`AutosavePolicy` at its interval."""

    def __init__(self, policy: AutosavePolicy) -> None:
        super().__init__(name="tabnote-autosave", daemon=True)
        self.policy = policy
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def run(self) -> None:
        while not self._stopped.wait(self.policy.interval_seconds):
            try:
                self.policy.tick()
            except Exception:
                LOGGER.exception("Autosave tick crashed")

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking. No tick starts after this returns."""
        self._stopped.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
