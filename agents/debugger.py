"""Debugger agent — diagnoses runtime errors and verifies attempted fixes.

Diagnosis runs in three layers: direct clues in the error text, a closed
error category, and static scans of every file. Only when those localize
nothing does the agent spend a model call on a root-cause analysis.
"""

import logging
import re

from agents.base import BaseAgent, describe_files
from agents.file_scanner import FileScannerAgent, pick_entry_file
from agents.scanners import scan_all
from agents.validator import validate_code
from config.rules import BANNED_PACKAGES, BLOCKING_ISSUE_TYPES, ERROR_CATEGORY_RULES, NODE_API_PATTERNS
from core.errors import AgentError
from core.state import Diagnosis, ErrorCategory, ScanIssue, ValidationMode
from utils.code_cleanup import is_script

LOGGER = logging.getLogger(__name__)

# Error text -> (issue type, pattern, fix)
_DIRECT_CLUES = (
    (("require is not defined",), "browser-incompatible",
     "require() usage (detected from error)", "Convert require() statements to ES6 import syntax"),
    (("process is not defined",), "nodejs-api",
     "process API usage (detected from error)", "Remove process usage; it only exists in Node.js"),
    (("module is not defined", "exports is not defined"), "nodejs-api",
     "CommonJS module.exports usage (detected from error)", "Use ES module export syntax"),
    (("__dirname", "__filename"), "nodejs-api",
     "__dirname or __filename usage (detected from error)", "Remove Node.js path variables"),
    (("buffer is not defined",), "nodejs-api",
     "Buffer usage (detected from error)", "Use TextEncoder, atob or btoa"),
)

_LOCATION_PATTERNS = (
    re.compile(r"(?:in|Source:)\s+/?([\w./-]+\.(?:jsx?|tsx?|css)):(\d+)"),
    re.compile(r"\(/?([\w./-]+\.(?:jsx?|tsx?)):(\d+)(?::\d+)?\)"),
    re.compile(r"/?([\w./-]+\.(?:jsx?|tsx?|css)):(\d+)"),
    re.compile(r"/?([\w./-]+\.(?:jsx?|tsx?|css))\b"),
)
_MISSING_MODULE = re.compile(
    r"""(?:cannot find module|could not find dependency|module not found|failed to resolve import)"""
    r"""[:\s]*['"]?(@?[\w.-]+(?:/[\w.-]+)?)""",
    re.IGNORECASE,
)

# Issue types most likely behind each category, for tie-breaking the ranking
_CATEGORY_TYPES = {
    ErrorCategory.BROWSER_INCOMPATIBILITY: {"browser-incompatible", "nodejs-api"},
    ErrorCategory.BANNED_PACKAGE: {"banned-package"},
    ErrorCategory.INFINITE_RENDER: {"event-handler", "missing-dependencies", "state-mutation"},
    ErrorCategory.HOOKS_VIOLATION: {"hooks-rules"},
    ErrorCategory.NULL_ACCESS: {"async-state", "state-mutation"},
    ErrorCategory.SYNTAX_ERROR: {"syntax-error"},
    ErrorCategory.ASYNC_UNMOUNT: {"async-unmount", "async-state"},
    ErrorCategory.TYPE_MISMATCH: {"state-mutation", "event-handler"},
}

_TYPE_INSTRUCTIONS = {
    "browser-incompatible": ("Use ONLY ES module syntax: import X from 'y'",
                             "NEVER use require(); it crashes in the browser"),
    "nodejs-api": ("Remove ALL Node.js APIs (process, fs, path, Buffer, __dirname)",
                   "This code runs in a browser, not Node.js"),
    "syntax-error": ("Fix the syntax: every brace, bracket and parenthesis must be matched",),
    "banned-package": ("Remove the unavailable package import and use React or browser APIs",),
    "hooks-rules": ("Call hooks unconditionally at the top level of the component",),
    "preview-navigation": ("Replace <a href='#'> with <button onClick={...}>",),
    "state-mutation": ("Never mutate state; build a new array or object and pass it to the setter",),
    "event-handler": ("Pass a function to event props: onClick={() => fn()}",),
}


def categorize_error(error_message) -> ErrorCategory:
    """Map raw error text onto the closed category set. First rule wins."""
    text = (error_message or "").lower()
    for category, needles in ERROR_CATEGORY_RULES:
        if any(needle in text for needle in needles):
            return ErrorCategory(category)
    return ErrorCategory.UNKNOWN


def missing_package(error_message):
    """Package named by a module-resolution error, or None."""
    match = _MISSING_MODULE.search(error_message or "")
    if not match:
        return None
    name = match.group(1)
    if name.startswith("@"):
        return name
    return name.split("/")[0]


def parse_direct_clue(error_message):
    """An issue the error text proves on its own, or None."""
    text = (error_message or "").lower()
    for needles, issue_type, pattern, fix in _DIRECT_CLUES:
        if any(n in text for n in needles):
            return ScanIssue(issue_type, pattern, fix, "critical", 100, source="error-message")
    pkg = missing_package(error_message)
    if pkg and pkg in BANNED_PACKAGES:
        return ScanIssue("banned-package", f'Import from "{pkg}" (detected from error)',
                         f'Remove "{pkg}": {BANNED_PACKAGES[pkg]}', "critical", 100,
                         source="error-message")
    return None


def extract_error_location(error_message):
    """(filename, line) named by the error text; either may be None."""
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(error_message or "")
        if match:
            line = int(match.group(2)) if pattern.groups > 1 else None
            return match.group(1), line
    return None, None


def match_file(name, files):
    """Key of `files` that the error's file name refers to, or None."""
    if not name:
        return None
    name = name.lstrip("/")
    for key in files:
        if key.lstrip("/") == name:
            return key
    for key in files:
        stripped = key.lstrip("/")
        if stripped.endswith("/" + name) or name.endswith("/" + stripped):
            return key
    return None


def _search_text(issue):
    """Literal text to hunt for across the import graph for a browser issue."""
    pattern = issue.pattern.lower()
    for _, name, search_text, _, _ in NODE_API_PATTERNS:
        if name.lower() in pattern:
            return search_text
    return "require("


def fix_signature(issues):
    """Order-independent identity of an issue set, used for stuck detection."""
    return tuple(sorted({(i.type, i.pattern) for i in issues}))


class DebuggerAgent(BaseAgent):
    """Finds the file and cause behind a runtime error and judges fix attempts."""

    name = "debugger"
    description = "Diagnoses runtime errors and learns from successful fixes"
    role = "debugger"
    prompt_name = "debugger"

    def __init__(self, memory=None, llm=None, timeout=None, file_scanner=None):
        super().__init__(memory, llm, timeout)
        self.file_scanner = file_scanner or FileScannerAgent()

    def diagnose(self, error_message, files) -> Diagnosis:
        category = categorize_error(error_message)
        error_file, error_line = extract_error_location(error_message)
        error_file = match_file(error_file, files)
        relevant = _CATEGORY_TYPES.get(category, set())

        issues = []
        seen = set()
        for filename in sorted(files):
            if not is_script(filename):
                continue
            for issue in scan_all(files[filename], error_message, filename):
                key = (issue.pattern, issue.file)
                if key not in seen:
                    seen.add(key)
                    issues.append(issue)
        issues.sort(key=lambda i: (i.score, i.type in relevant, i.file == error_file), reverse=True)

        clue = parse_direct_clue(error_message)
        if clue is not None:
            issues.insert(0, clue)
        primary = issues[0] if issues else None

        scanned = sorted(files)
        target = None
        if primary is not None and primary.type in ("browser-incompatible", "nodejs-api"):
            result = self.file_scanner.run(files, _search_text(primary), start_file=error_file)
            scanned = result.scanned_files
            if result.found:
                LOGGER.info("Scanner traced %r to %s via %s", _search_text(primary),
                            result.filename, " -> ".join(result.import_path))
                target = result.filename
        if target is None and primary is not None and primary.file and primary.type in BLOCKING_ISSUE_TYPES:
            target = primary.file
        if target is None:
            target = error_file or (primary.file if primary else "") or pick_entry_file(files)

        target_files = [target] if target else []
        if primary is not None and primary.type in BLOCKING_ISSUE_TYPES:
            for issue in issues:
                if issue.type == primary.type and issue.file and issue.file not in target_files:
                    target_files.append(issue.file)

        if primary is None:
            recommendation = "No known pattern found; inspect the reported location"
        else:
            recommendation = f"{primary.fix} (in {target})" if target else primary.fix
        LOGGER.info("Diagnosed %s: %d issue(s), target %s", category.value, len(issues), target or "-")
        return Diagnosis(
            category=category.value,
            issues=issues,
            primary_issue=primary,
            target_file=target or "",
            target_files=target_files,
            recommendation=recommendation,
            scanned_files=scanned,
            error_line=error_line,
        )

    def analyze_root_cause(self, error_message, files, diagnosis) -> str:
        """One model call for a root cause when static scans found nothing."""
        user_message = (
            f"ERROR: {error_message}\n"
            f"CATEGORY: {diagnosis.category}\n"
            f"REPORTED FILE: {diagnosis.target_file or 'unknown'}\n\n"
            f"FILES:\n\n{describe_files(files, 15000)}"
        )
        data = self.call_json(self.system_prompt(), user_message)
        parts = [str(data.get(key) or "") for key in ("rootCause", "location", "fix")]
        text = " | ".join(p for p in parts if p)
        if not text:
            raise AgentError(self.name, "root-cause analysis was empty")
        suggested = match_file(str(data.get("file") or ""), files)
        if suggested and not diagnosis.primary_issue:
            diagnosis.target_file = suggested
            diagnosis.target_files = [suggested]
        diagnosis.root_cause = text
        return text

    def check_fix(self, code, filename, diagnosis):
        """Issues that still block the fixed file. Empty means the fix holds."""
        remaining = []
        result = validate_code(code, filename, ValidationMode.FAST)
        for issue in result.errors if not result.valid else []:
            remaining.append(ScanIssue(
                "syntax-error" if issue.rule.startswith("unbalanced") else issue.rule,
                issue.message, issue.suggestion, "critical", 100, filename, source="validator",
            ))
        if not is_script(filename):
            return remaining
        primary = diagnosis.primary_issue
        for issue in scan_all(result.code, "", filename):
            if issue.type in BLOCKING_ISSUE_TYPES or (primary is not None and issue.pattern == primary.pattern):
                remaining.append(issue)
        return remaining

    def known_patterns(self, category, limit=5):
        return self.memory.get_bug_patterns(category)[-limit:]

    def record_fix(self, diagnosis, error_message, filename):
        primary = diagnosis.primary_issue
        first_line = next(iter((error_message or "").strip().splitlines()), "")
        pattern = primary.pattern if primary else (first_line[:200] or str(diagnosis.category))
        fix = primary.fix if primary else (diagnosis.root_cause or "Model-generated fix")
        return self.memory.record_bug_pattern(diagnosis.category, pattern, fix, filename)

    def fix_instructions(self, error_message, diagnosis, history=(), patterns=(), preconverted=False):
        """Change rationale for the code writer, enriched with earlier failures."""
        primary = diagnosis.primary_issue
        lines = [f"Fix this runtime error: {error_message}", f"Category: {diagnosis.category}"]
        if primary is not None:
            lines += [f"Bug type: {primary.type}", f"Issue: {primary.pattern}", f"Suggested fix: {primary.fix}"]
        if diagnosis.error_line:
            lines.append(f"Reported line: {diagnosis.error_line}")
        if diagnosis.root_cause:
            lines.append(f"Root cause analysis: {diagnosis.root_cause}")
        lines += [
            "",
            "REQUIREMENTS:",
            "- Make only the minimal change that fixes the bug",
            "- Preserve existing functionality and design",
            "- Return the complete file",
            "- This is browser code: no Node.js syntax or APIs",
        ]

        if patterns:
            lines += ["", "FIXES THAT WORKED FOR THIS CATEGORY BEFORE:"]
            lines += [f"- {p.pattern} -> {p.fix}" for p in patterns]

        if history:
            lines += ["", "PREVIOUS ATTEMPTS FAILED. Do not repeat them:"]
            for attempt in history:
                lines.append(f"Attempt {attempt.number}:")
                if attempt.error:
                    lines.append(f"  failed: {attempt.error}")
                lines += [f"  - [{i.type}] {i.pattern}" for i in attempt.issues]
                if attempt.stuck:
                    lines.append("  (the same issues came back unchanged; try a different approach)")
            lines += ["", f"For attempt {len(history) + 1} you MUST:"]
            seen = set()
            for issue in history[-1].issues:
                if issue.type in seen:
                    continue
                seen.add(issue.type)
                lines += [f"- {text}" for text in _TYPE_INSTRUCTIONS.get(issue.type, ())]
            if not seen:
                lines.append("- Make surgical, minimal changes that address the error above")

        if preconverted:
            lines += ["", "The input has already been converted from require() to import. "
                          "Do not reintroduce require()."]
        return "\n".join(lines)
