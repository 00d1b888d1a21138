"""Tests for the autosave policy and timer."""

from __future__ import annotations

import os
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tabnote.errors import IoFailure
from tabnote.session.documents import DocumentSet
from tabnote.storage.autosave import AutosavePolicy, AutosaveTimer

FIXED_NOW = datetime(2024, 3, 9, 14, 5, 7)


@pytest.fixture
def documents() -> DocumentSet:
    return DocumentSet()


@pytest.fixture
def policy(documents: DocumentSet, tmp_path: Path) -> AutosavePolicy:
    return AutosavePolicy(documents, tmp_path / "autosave", clock=lambda: FIXED_NOW)


class TestTick:
    """Test a single autosave sweep."""

    def test_saves_modified_document_in_place(
        self, documents: DocumentSet, policy: AutosavePolicy, tmp_path: Path
    ) -> None:
        path = tmp_path / "note.txt"
        path.write_text("old", encoding="utf-8")
        doc = documents.open(path)
        documents.set_content(doc, "new")

        stats = policy.tick()

        assert stats.saved == 1
        assert path.read_text(encoding="utf-8") == "new"
        assert not doc.is_modified

    def test_snapshot_for_untitled_document(
        self, documents: DocumentSet, policy: AutosavePolicy
    ) -> None:
        """Snapshots keep the document modified and unbound."""
        doc = documents.create()
        documents.set_content(doc, "draft")

        stats = policy.tick()

        assert stats.snapshots == 1
        expected = policy.autosave_dir / f"autosave_{doc.doc_id}_20240309_140507.txt"
        assert expected.read_text(encoding="utf-8") == "draft"
        assert doc.is_modified
        assert doc.file_path is None

    def test_clean_documents_are_skipped(
        self, documents: DocumentSet, policy: AutosavePolicy
    ) -> None:
        documents.create()

        stats = policy.tick()

        assert stats.written == 0
        assert not policy.autosave_dir.exists()

    def test_disabled_policy_does_nothing(
        self, documents: DocumentSet, policy: AutosavePolicy
    ) -> None:
        doc = documents.create()
        documents.set_content(doc, "draft")
        policy.enabled = False

        assert policy.tick().written == 0
        assert not policy.autosave_dir.exists()

    def test_failures_are_swallowed(
        self, documents: DocumentSet, policy: AutosavePolicy, tmp_path: Path
    ) -> None:
        """A failing document does not stop the sweep and stays modified."""
        path = tmp_path / "note.txt"
        path.write_text("old", encoding="utf-8")
        saved = documents.open(path)
        documents.set_content(saved, "new")
        draft = documents.create()
        documents.set_content(draft, "draft")

        with patch(
            "tabnote.storage.autosave.write_atomic",
            side_effect=[IoFailure("disk full"), None],
        ):
            stats = policy.tick()

        assert stats.failed == 1
        assert stats.snapshots == 1
        assert saved.is_modified

    def test_unencodable_document_does_not_stop_sweep(
        self, documents: DocumentSet, policy: AutosavePolicy
    ) -> None:
        bad = documents.create()
        documents.set_content(bad, "bad \ud800")
        good = documents.create()
        documents.set_content(good, "good")

        stats = policy.tick()

        assert stats.failed == 1
        assert stats.snapshots == 1
        assert bad.is_modified
        written = [p.read_text(encoding="utf-8") for p in policy.list_snapshots()]
        assert written == ["good"]
        assert not list(policy.autosave_dir.glob("*.tmp"))

    def test_retries_on_next_tick(
        self, documents: DocumentSet, policy: AutosavePolicy, tmp_path: Path
    ) -> None:
        path = tmp_path / "note.txt"
        path.write_text("old", encoding="utf-8")
        doc = documents.open(path)
        documents.set_content(doc, "new")

        with patch("tabnote.storage.autosave.write_atomic", side_effect=IoFailure("busy")):
            policy.tick()
        assert doc.is_modified

        policy.tick()
        assert not doc.is_modified
        assert path.read_text(encoding="utf-8") == "new"

    def test_edit_during_write_keeps_modified(
        self, documents: DocumentSet, policy: AutosavePolicy, tmp_path: Path
    ) -> None:
        """An edit racing the write is not lost from the dirty flag."""
        path = tmp_path / "note.txt"
        path.write_text("old", encoding="utf-8")
        doc = documents.open(path)
        documents.set_content(doc, "v1")

        def edit_while_writing(target: Path, content: str) -> None:
            documents.set_content(doc, "v2")

        with patch("tabnote.storage.autosave.write_atomic", side_effect=edit_while_writing):
            policy.tick()

        assert doc.is_modified

    def test_invalid_interval(self, documents: DocumentSet, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            AutosavePolicy(documents, tmp_path, interval_seconds=0)


class TestSnapshots:
    """Test snapshot listing and retention."""

    def _snapshot(self, directory: Path, name: str, age: timedelta) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("x", encoding="utf-8")
        stamp = (FIXED_NOW - age).timestamp()
        os.utime(path, (stamp, stamp))
        return path

    def test_purge_removes_only_stale_snapshots(self, policy: AutosavePolicy) -> None:
        directory = policy.autosave_dir
        old = self._snapshot(directory, "autosave_a_20240101_000000.txt", timedelta(days=8))
        fresh = self._snapshot(directory, "autosave_b_20240308_000000.txt", timedelta(days=1))
        unrelated = self._snapshot(directory, "notes.txt", timedelta(days=30))

        removed = policy.purge_snapshots()

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()
        assert unrelated.exists()

    def test_purge_custom_horizon(self, policy: AutosavePolicy) -> None:
        self._snapshot(policy.autosave_dir, "autosave_a_1.txt", timedelta(days=2))

        assert policy.purge_snapshots(timedelta(days=1)) == 1

    def test_purge_missing_directory(self, policy: AutosavePolicy) -> None:
        assert policy.purge_snapshots() == 0

    def test_tick_does_not_purge(self, documents: DocumentSet, policy: AutosavePolicy) -> None:
        old = self._snapshot(policy.autosave_dir, "autosave_a_1.txt", timedelta(days=30))
        doc = documents.create()
        documents.set_content(doc, "draft")

        policy.tick()

        assert old.exists()

    def test_list_snapshots_newest_first(self, policy: AutosavePolicy) -> None:
        older = self._snapshot(policy.autosave_dir, "autosave_a_1.txt", timedelta(days=3))
        newer = self._snapshot(policy.autosave_dir, "autosave_b_1.txt", timedelta(days=1))

        assert policy.list_snapshots() == [newer, older]


class TestAutosaveTimer:
    """Test the background timer."""

    def test_ticks_until_stopped(self) -> None:
        policy = MagicMock()
        policy.interval_seconds = 0.01
        ticked = threading.Event()
        policy.tick.side_effect = lambda: ticked.set()

        timer = AutosaveTimer(policy)
        timer.start()
        assert ticked.wait(2.0)
        timer.stop()

        assert not timer.is_alive()
        calls = policy.tick.call_count
        time.sleep(0.05)
        assert policy.tick.call_count == calls

    def test_crashing_tick_keeps_running(self) -> None:
        policy = MagicMock()
        policy.interval_seconds = 0.01
        seen = threading.Event()
        calls = []

        def tick() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            seen.set()

        policy.tick.side_effect = tick
        timer = AutosaveTimer(policy)
        timer.start()
        try:
            assert seen.wait(2.0)
        finally:
            timer.stop()

    def test_stop_before_start(self) -> None:
        timer = AutosaveTimer(MagicMock(interval_seconds=30))
        timer.stop()
        assert timer.stopped
