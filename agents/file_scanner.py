"""File scanner — walks the relative-import graph to localize a code pattern. Zero LLM calls."""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from dataclasses import dataclass, field

from config.defaults import DEFAULTS
from config.rules import IMPORT_SPECIFIER_PATTERNS

LOGGER = logging.getLogger(__name__)

_RESOLVE_SUFFIXES = ("", ".js", ".jsx", ".ts", ".tsx", ".css", ".json",
                     "/index.js", "/index.jsx", "/index.ts", "/index.tsx")
_ENTRY_CANDIDATES = ("App.jsx", "App.js", "App.tsx", "src/App.jsx", "src/App.js",
                     "index.jsx", "index.js", "main.jsx", "src/main.jsx")


@dataclass
class ScanResult:
    found: bool
    filename: str = ""
    import_path: list[str] = field(default_factory=list)   # entry -> ... -> filename
    scanned_files: list[str] = field(default_factory=list)


def find_imports(code):
    """Return (specifier, line_number) for every import/require in the code."""
    found = []
    seen = set()
    for pattern in IMPORT_SPECIFIER_PATTERNS:
        for match in pattern.finditer(code):
            key = (match.group(1), match.start(1))
            if key in seen:
                continue
            seen.add(key)
            found.append((match.group(1), code.count("\n", 0, match.start()) + 1))
    found.sort(key=lambda item: item[1])
    return found


def package_name(specifier):
    """Root package of a bare specifier: "lodash/debounce" -> "lodash", "@a/b/c" -> "@a/b"."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def is_relative(specifier):
    return specifier.startswith((".", "/"))


def resolve_import(from_file, specifier, files):
    """Map a relative specifier to a key of `files`, or None if nothing matches.

    Keys may be written with or without a leading slash.
    """
    if not is_relative(specifier):
        return None
    if specifier.startswith("/"):
        target = posixpath.normpath(specifier.lstrip("/"))
    else:
        base = posixpath.dirname(from_file.lstrip("/"))
        target = posixpath.normpath(posixpath.join(base, specifier))
    by_normalized = {name.lstrip("/"): name for name in files}
    for suffix in _RESOLVE_SUFFIXES:
        if target + suffix in by_normalized:
            return by_normalized[target + suffix]
    return None


def pick_entry_file(files):
    for candidate in _ENTRY_CANDIDATES:
        for name in files:
            if name.lstrip("/") == candidate:
                return name
    return next(iter(sorted(files)), "")


def scan_for_pattern(files, search_text, start_file=None, max_depth=None) -> ScanResult:
    """Breadth-first search from start_file through relative imports.

    Returns the first file whose content contains `search_text`, with the
    import chain that led to it. Files unreachable from the entry point are
    checked last, in name order.
    """
    max_depth = DEFAULTS["max_scan_depth"] if max_depth is None else max_depth
    if not files:
        return ScanResult(found=False)
    start = start_file if start_file in files else pick_entry_file(files)

    queue = deque([(start, [start], 0)])
    visited = set()
    scanned = []
    while queue:
        filename, path, depth = queue.popleft()
        if filename in visited:
            continue
        visited.add(filename)
        scanned.append(filename)
        content = files[filename]
        if search_text in content:
            LOGGER.debug("Found %r in %s via %s", search_text, filename, " -> ".join(path))
            return ScanResult(True, filename, path, scanned)
        if depth >= max_depth:
            continue
        for specifier, _ in find_imports(content):
            target = resolve_import(filename, specifier, files)
            if target and target not in visited:
                queue.append((target, path + [target], depth + 1))

    for filename in sorted(files):
        if filename in visited:
            continue
        scanned.append(filename)
        if search_text in files[filename]:
            return ScanResult(True, filename, [filename], scanned)
    return ScanResult(False, scanned_files=scanned)


def import_graph(files):
    """{filename: [resolved relative imports]} for the whole file set."""
    return {
        filename: [t for t in (resolve_import(filename, s, files) for s, _ in find_imports(content)) if t]
        for filename, content in files.items()
    }


class FileScannerAgent:
    """Delegate used by the debugger to find which file actually holds a bug."""

    name = "file_scanner"

    def run(self, files, search_text, start_file=None, max_depth=None) -> ScanResult:
        return scan_for_pattern(files, search_text, start_file, max_depth)
