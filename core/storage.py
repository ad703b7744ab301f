"""Key-value backends for the memory store.

Both backends share one contract: ``read(key, default, parse_json)`` and
``write(key, value)``. Keys are slash-separated paths such as
``rules/global.md`` or ``learnings/bug-patterns.json``.
"""

import json
import logging
import os
import tempfile
import threading

LOGGER = logging.getLogger(__name__)


class InMemoryStorage:
    """Process-local backend. Values are stored in their serialized form."""

    def __init__(self, initial=None):
        self._data = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self.write(key, value)

    def read(self, key, default=None, parse_json=False):
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return default
        if not parse_json:
            return raw
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("Corrupt JSON in memory key %s, using default", key)
            return default

    def write(self, key, value):
        text = value if isinstance(value, str) else json.dumps(value, indent=2)
        with self._lock:
            self._data[key] = text

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return sorted(self._data)


class FileStorage:
    """Filesystem backend rooted at a directory (``.agent-memory`` by default)."""

    def __init__(self, root):
        self.root = os.path.abspath(root)

    def _path(self, key):
        full_path = os.path.join(self.root, key)
        resolved = os.path.realpath(full_path)
        if not resolved.startswith(os.path.realpath(self.root) + os.sep):
            raise ValueError(f"Memory key escapes storage root: {key}")
        return resolved

    def read(self, key, default=None, parse_json=False):
        path = self._path(key)
        if not os.path.exists(path):
            return default
        with open(path, encoding="utf-8") as f:
            raw = f.read()
        if not parse_json:
            return raw
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("Corrupt JSON in %s, using default", path)
            return default

    def write(self, key, value):
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        text = value if isinstance(value, str) else json.dumps(value, indent=2)
        # Write to a sibling temp file and swap it in so readers never see
        # a half-written file.
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def delete(self, key):
        path = self._path(key)
        if os.path.exists(path):
            os.unlink(path)

    def keys(self):
        found = []
        if not os.path.isdir(self.root):
            return found
        for dirpath, _, filenames in os.walk(self.root):
            for name in filenames:
                if name.startswith(".tmp_"):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.root)
                found.append(rel.replace(os.sep, "/"))
        return sorted(found)
