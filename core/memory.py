"""Memory store: persistent rules, session context and learned bug patterns.

One instance is built per process and handed to every agent and
orchestrator. Rules are read-only here; they are edited by the user on
disk. Bug patterns are append-only and capped, oldest evicted first.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import Counter

from config.defaults import DEFAULTS
from core.state import BugPattern, ConversationSummary
from core.storage import FileStorage, InMemoryStorage

LOGGER = logging.getLogger(__name__)

GLOBAL_RULES_KEY = "rules/global.md"
PROJECT_RULES_KEY = "rules/project.md"
SESSION_SUMMARY_KEY = "context/session-summary.json"
CODEBASE_MAP_KEY = "context/codebase-map.json"
CONVERSATION_SUMMARIES_KEY = "context/conversation-summaries.json"
BUG_PATTERNS_KEY = "learnings/bug-patterns.json"

RULES_SEPARATOR = "\n\n---\n\n"


class MemoryStore:
    """Typed access to the three memory namespaces over a storage backend."""

    def __init__(self, storage=None, bug_pattern_cap=None, summary_cap=None):
        self.storage = storage if storage is not None else InMemoryStorage()
        self.bug_pattern_cap = bug_pattern_cap or DEFAULTS["bug_pattern_cap"]
        self.summary_cap = summary_cap or DEFAULTS["summary_cap"]
        # Guards every read-modify-write cycle on list-valued keys.
        self._write_lock = threading.Lock()

    @classmethod
    def from_directory(cls, root=None) -> MemoryStore:
        root = root or os.environ.get("STUDIO_MEMORY_DIR") or DEFAULTS["memory_dir"]
        return cls(FileStorage(root))

    # ------------------------------------------------------------------
    # Rules (read-only)
    # ------------------------------------------------------------------

    def load_global_rules(self):
        return (self.storage.read(GLOBAL_RULES_KEY, "") or "").strip()

    def load_project_rules(self):
        return (self.storage.read(PROJECT_RULES_KEY, "") or "").strip()

    def load_rules(self):
        """Global then project rules, separated by a horizontal rule. Empty if none."""
        parts = [r for r in (self.load_global_rules(), self.load_project_rules()) if r]
        return RULES_SEPARATOR.join(parts)

    # ------------------------------------------------------------------
    # Session context
    # ------------------------------------------------------------------

    def save_session_summary(self, summary, metadata=None):
        self.storage.write(SESSION_SUMMARY_KEY, {
            "summary": summary,
            "metadata": metadata or {},
            "updated_at": time.time(),
        })

    def load_session_context(self):
        return self.storage.read(SESSION_SUMMARY_KEY, None, parse_json=True)

    def clear_session_context(self):
        self.storage.write(SESSION_SUMMARY_KEY, {})
        self.storage.write(CODEBASE_MAP_KEY, {})

    def save_codebase_map(self, files):
        """Store a structural map of the current file set (names, sizes, exports)."""
        codebase = {}
        for filename, content in (files or {}).items():
            codebase[filename] = {
                "lines": content.count("\n") + 1 if content else 0,
                "imports": [line.strip() for line in content.splitlines()
                            if line.strip().startswith("import ")][:20],
                "exports": [line.strip() for line in content.splitlines()
                            if line.strip().startswith("export ")][:20],
            }
        self.storage.write(CODEBASE_MAP_KEY, {"files": codebase, "updated_at": time.time()})
        return codebase

    def load_codebase_map(self):
        data = self.storage.read(CODEBASE_MAP_KEY, {}, parse_json=True) or {}
        return data.get("files", {})

    def append_conversation_summary(self, summary: ConversationSummary):
        with self._write_lock:
            summaries = self._read_list(CONVERSATION_SUMMARIES_KEY)
            summaries.append(summary.to_dict())
            summaries = summaries[-self.summary_cap:]
            self.storage.write(CONVERSATION_SUMMARIES_KEY, summaries)

    def load_conversation_summaries(self, limit=None):
        summaries = [ConversationSummary.from_dict(s)
                     for s in self._read_list(CONVERSATION_SUMMARIES_KEY)]
        if limit:
            summaries = summaries[-limit:]
        return summaries

    # ------------------------------------------------------------------
    # Learnings (append-only, capped)
    # ------------------------------------------------------------------

    def record_bug_pattern(self, category, pattern, fix, file="") -> BugPattern:
        """Append a bug pattern and trim to the cap as one atomic step."""
        entry = BugPattern(category=str(category), pattern=pattern, fix=fix, file=file)
        with self._write_lock:
            patterns = self._read_list(BUG_PATTERNS_KEY)
            patterns.append(entry.to_dict())
            patterns = patterns[-self.bug_pattern_cap:]
            self.storage.write(BUG_PATTERNS_KEY, patterns)
        LOGGER.debug("Recorded bug pattern %s: %s", entry.category, entry.pattern)
        return entry

    def get_bug_patterns(self, category=None):
        patterns = [BugPattern.from_dict(p) for p in self._read_list(BUG_PATTERNS_KEY)
                    if isinstance(p, dict)]
        if category is not None:
            patterns = [p for p in patterns if p.category == str(category)]
        return patterns

    def get_common_bug_patterns(self, limit=5):
        """Most frequent (category, pattern) pairs with their latest fix."""
        patterns = self.get_bug_patterns()
        counts = Counter((p.category, p.pattern) for p in patterns)
        latest = {(p.category, p.pattern): p for p in patterns}
        return [
            {"category": cat, "pattern": pat, "count": count, "fix": latest[(cat, pat)].fix}
            for (cat, pat), count in counts.most_common(limit)
        ]

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def stats(self):
        patterns = self.get_bug_patterns()
        return {
            "has_global_rules": bool(self.load_global_rules()),
            "has_project_rules": bool(self.load_project_rules()),
            "bug_patterns": len(patterns),
            "bug_patterns_by_category": dict(Counter(p.category for p in patterns)),
            "conversation_summaries": len(self._read_list(CONVERSATION_SUMMARIES_KEY)),
            "has_session_context": bool(self.load_session_context()),
            "codebase_files": len(self.load_codebase_map()),
        }

    def export_all(self):
        return {
            "rules": {
                "global": self.load_global_rules(),
                "project": self.load_project_rules(),
            },
            "context": {
                "session": self.load_session_context() or {},
                "codebase_map": self.load_codebase_map(),
                "conversation_summaries": self._read_list(CONVERSATION_SUMMARIES_KEY),
            },
            "learnings": {
                "bug_patterns": self._read_list(BUG_PATTERNS_KEY),
            },
        }

    def import_all(self, data):
        """Restore an export. Rules are imported too since this is an explicit user action."""
        rules = data.get("rules", {})
        if rules.get("global"):
            self.storage.write(GLOBAL_RULES_KEY, rules["global"])
        if rules.get("project"):
            self.storage.write(PROJECT_RULES_KEY, rules["project"])
        context = data.get("context", {})
        if context.get("session"):
            self.storage.write(SESSION_SUMMARY_KEY, context["session"])
        if context.get("codebase_map"):
            self.storage.write(CODEBASE_MAP_KEY, {"files": context["codebase_map"],
                                                  "updated_at": time.time()})
        with self._write_lock:
            if "conversation_summaries" in context:
                self.storage.write(CONVERSATION_SUMMARIES_KEY,
                                   list(context["conversation_summaries"])[-self.summary_cap:])
            learnings = data.get("learnings", {})
            if "bug_patterns" in learnings:
                self.storage.write(BUG_PATTERNS_KEY,
                                   list(learnings["bug_patterns"])[-self.bug_pattern_cap:])

    def _read_list(self, key):
        value = self.storage.read(key, [], parse_json=True)
        return value if isinstance(value, list) else []
