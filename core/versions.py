"""Per-file version history: a bounded ring buffer with an undo/redo cursor."""

from __future__ import annotations

import difflib
import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass, field

from config.defaults import DEFAULTS


@dataclass
class Version:
    version_id: int
    content: str
    kind: str = "modify"        # "create", "modify", "restore"
    description: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class Snapshot:
    snapshot_id: int
    files: dict[str, str]
    description: str = ""
    timestamp: float = field(default_factory=time.time)


class _Ring:
    """Fixed-capacity arena of versions. Logical index 0 is the oldest kept version."""

    def __init__(self, capacity):
        self.capacity = capacity
        self.slots = [None] * capacity
        self.start = 0
        self.count = 0
        self.cursor = -1

    def get(self, index) -> Version:
        if not 0 <= index < self.count:
            raise IndexError(f"version index {index} out of range (0..{self.count - 1})")
        return self.slots[(self.start + index) % self.capacity]

    def append(self, version):
        # Anything after the cursor is a redo tail; a new change discards it.
        self.count = self.cursor + 1
        if self.count == self.capacity:
            self.start = (self.start + 1) % self.capacity
            self.count -= 1
        self.slots[(self.start + self.count) % self.capacity] = version
        self.count += 1
        self.cursor = self.count - 1

    def versions(self):
        return [self.get(i) for i in range(self.count)]


class VersionHistory:
    """Undo/redo and snapshots for generated files, keyed by filename."""

    def __init__(self, max_history_per_file=None, max_snapshots=None):
        self.max_history_per_file = max_history_per_file or DEFAULTS["max_history_per_file"]
        self._rings: dict[str, _Ring] = {}
        self._snapshots = deque(maxlen=max_snapshots or DEFAULTS["max_snapshots"])
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def record_change(self, filename, content, kind="modify", description="") -> Version:
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None:
                ring = self._rings[filename] = _Ring(self.max_history_per_file)
            version = Version(next(self._ids), content, kind, description)
            ring.append(version)
            return version

    def record_operations(self, operations, description=""):
        for op in operations:
            self.record_change(op.filename, op.content, op.kind, description)

    def current(self, filename):
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None or ring.cursor < 0:
                return None
            return ring.get(ring.cursor).content

    def can_undo(self, filename):
        ring = self._rings.get(filename)
        return ring is not None and ring.cursor > 0

    def can_redo(self, filename):
        ring = self._rings.get(filename)
        return ring is not None and ring.cursor < ring.count - 1

    def undo(self, filename):
        """Move the cursor back one version and return its content, or None."""
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None or ring.cursor <= 0:
                return None
            ring.cursor -= 1
            return ring.get(ring.cursor).content

    def redo(self, filename):
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None or ring.cursor >= ring.count - 1:
                return None
            ring.cursor += 1
            return ring.get(ring.cursor).content

    def file_history(self, filename):
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None:
                return []
            return [
                {
                    "index": index,
                    "version_id": v.version_id,
                    "kind": v.kind,
                    "description": v.description,
                    "timestamp": v.timestamp,
                    "current": index == ring.cursor,
                }
                for index, v in enumerate(ring.versions())
            ]

    def restore_version(self, filename, index):
        """Make an older version current by recording it as a new change."""
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None:
                raise KeyError(filename)
            content = ring.get(index).content
        return self.record_change(filename, content, "restore", f"Restored version {index}")

    def diff(self, filename, from_index, to_index):
        with self._lock:
            ring = self._rings.get(filename)
            if ring is None:
                raise KeyError(filename)
            old, new = ring.get(from_index), ring.get(to_index)
        return "".join(difflib.unified_diff(
            old.content.splitlines(keepends=True),
            new.content.splitlines(keepends=True),
            fromfile=f"{filename}@{from_index}",
            tofile=f"{filename}@{to_index}",
        ))

    # ------------------------------------------------------------------
    # Snapshots of the whole file set
    # ------------------------------------------------------------------

    def create_snapshot(self, files, description="") -> Snapshot:
        with self._lock:
            snapshot = Snapshot(next(self._ids), dict(files), description)
            self._snapshots.append(snapshot)
            return snapshot

    def restore_snapshot(self, snapshot_id):
        """Return the snapshot's file map and record each file as a restore."""
        with self._lock:
            snapshot = next((s for s in self._snapshots if s.snapshot_id == snapshot_id), None)
        if snapshot is None:
            raise KeyError(f"Snapshot not found: {snapshot_id}")
        for filename, content in snapshot.files.items():
            if self.current(filename) != content:
                self.record_change(filename, content, "restore", f"Restored snapshot {snapshot_id}")
        return dict(snapshot.files)

    def list_snapshots(self):
        with self._lock:
            return [
                {"snapshot_id": s.snapshot_id, "description": s.description,
                 "timestamp": s.timestamp, "files": sorted(s.files)}
                for s in self._snapshots
            ]

    def clear(self, filename=None):
        with self._lock:
            if filename is None:
                self._rings.clear()
                self._snapshots.clear()
            else:
                self._rings.pop(filename, None)

    def stats(self):
        with self._lock:
            return {
                "files": len(self._rings),
                "versions": sum(r.count for r in self._rings.values()),
                "snapshots": len(self._snapshots),
            }
