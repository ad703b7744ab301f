"""Tests for core.versions."""

import pytest

from core.state import FileOperation
from core.versions import VersionHistory


def _history_with(*contents, capacity=None, filename="App.jsx"):
    history = VersionHistory(max_history_per_file=capacity)
    for content in contents:
        history.record_change(filename, content)
    return history


def test_undo_and_redo():
    history = _history_with("v1", "v2", "v3")
    assert history.current("App.jsx") == "v3"
    assert history.undo("App.jsx") == "v2"
    assert history.undo("App.jsx") == "v1"
    assert history.undo("App.jsx") is None
    assert history.redo("App.jsx") == "v2"
    assert history.can_redo("App.jsx") is True


def test_new_change_discards_redo_tail():
    history = _history_with("v1", "v2", "v3")
    history.undo("App.jsx")
    history.record_change("App.jsx", "v4")
    assert history.can_redo("App.jsx") is False
    assert [h["index"] for h in history.file_history("App.jsx")] == [0, 1, 2]
    assert history.current("App.jsx") == "v4"
    assert history.undo("App.jsx") == "v2"


def test_ring_evicts_oldest_versions():
    history = _history_with("v1", "v2", "v3", "v4", "v5", capacity=3)
    entries = history.file_history("App.jsx")
    assert len(entries) == 3
    assert entries[-1]["current"] is True
    assert history.undo("App.jsx") == "v4"
    assert history.undo("App.jsx") == "v3"
    assert history.undo("App.jsx") is None


def test_restore_version_records_a_new_change():
    history = _history_with("v1", "v2")
    history.restore_version("App.jsx", 0)
    assert history.current("App.jsx") == "v1"
    assert history.file_history("App.jsx")[-1]["kind"] == "restore"


def test_unknown_file():
    history = VersionHistory()
    assert history.current("Nope.jsx") is None
    assert history.undo("Nope.jsx") is None
    assert history.file_history("Nope.jsx") == []
    with pytest.raises(KeyError):
        history.restore_version("Nope.jsx", 0)


def test_diff_between_versions():
    history = _history_with("a\nb\n", "a\nc\n")
    diff = history.diff("App.jsx", 0, 1)
    assert "-b" in diff and "+c" in diff


def test_record_operations_keeps_kind():
    history = VersionHistory()
    history.record_operations([FileOperation("App.jsx", "x", "create"),
                               FileOperation("Header.jsx", "h", "modify")], "initial build")
    assert history.file_history("App.jsx")[0]["kind"] == "create"
    assert history.stats() == {"files": 2, "versions": 2, "snapshots": 0}


def test_snapshots():
    history = VersionHistory(max_snapshots=2)
    first = history.create_snapshot({"App.jsx": "v1"}, "first")
    history.record_change("App.jsx", "v2")
    history.create_snapshot({"App.jsx": "v2"})
    history.create_snapshot({"App.jsx": "v3"})
    assert len(history.list_snapshots()) == 2
    with pytest.raises(KeyError):
        history.restore_snapshot(first.snapshot_id)

    latest = history.list_snapshots()[-1]["snapshot_id"]
    assert history.restore_snapshot(latest) == {"App.jsx": "v3"}
    assert history.current("App.jsx") == "v3"
