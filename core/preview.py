"""Preview collaborator contract and a zero-LLM lint stand-in."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from agents.scanners import scan_browser_compatibility, scan_framework_patterns
from agents.validator import ValidatorAgent, validate_runtime_safety
from config.rules import BLOCKING_ISSUE_TYPES
from core.state import ValidationMode
from utils.code_cleanup import is_script


@dataclass
class RuntimeErrorReport:
    message: str
    file: str = ""
    line: int | None = None
    column: int | None = None

    def describe(self):
        """Single error string in the form the debugger's location parser reads."""
        if not self.file:
            return self.message
        location = self.file
        if self.line:
            location += f":{self.line}"
            if self.column:
                location += f":{self.column}"
        return f"{self.message} ({location})"

    def to_dict(self):
        return {"message": self.message, "file": self.file, "line": self.line, "column": self.column}


@dataclass
class PreviewReport:
    success: bool
    error: RuntimeErrorReport | None = None


class PreviewRunner(Protocol):
    def run(self, files) -> PreviewReport:
        """Execute a {filename: content} map and report success or the first runtime error."""


def _browser_message(issue):
    """Phrase a validator issue the way a browser console would."""
    if issue.rule == "commonjs":
        name = "require" if "require" in issue.message else "module"
        return f"ReferenceError: {name} is not defined"
    if issue.rule == "node-api":
        return f"ReferenceError: {issue.message.split()[0]} is not defined"
    if issue.rule == "banned-package":
        match = re.search(r'"([^"]+)"', issue.message)
        return f"Error: Cannot find module '{match.group(1) if match else '?'}'"
    if issue.rule.startswith("unbalanced") or issue.rule == "invalid-json":
        return f"SyntaxError: Unexpected token ({issue.message.lower()})"
    return issue.message


class LintPreview:
    """Reports the first blocking static issue as if it were a runtime error.

    Used when no browser sandbox is attached (CLI, tests).
    """

    def __init__(self, validator=None):
        self.validator = validator or ValidatorAgent()

    def run(self, files) -> PreviewReport:
        results = self.validator.run(files, ValidationMode.FULL)
        for filename in sorted(files):
            content = files[filename]
            result = results[filename]
            if result.errors:
                issue = result.errors[0]
                return PreviewReport(False, RuntimeErrorReport(_browser_message(issue), filename, issue.line))
            if not is_script(filename):
                continue
            safety = validate_runtime_safety(content, filename, files)
            if safety.errors:
                issue = safety.errors[0]
                return PreviewReport(False, RuntimeErrorReport(_browser_message(issue), filename, issue.line))
            for scan in (scan_browser_compatibility(content), scan_framework_patterns(content)):
                blocking = [i for i in scan if i.type in BLOCKING_ISSUE_TYPES]
                if blocking:
                    return PreviewReport(False, RuntimeErrorReport(blocking[0].pattern, filename))
        return PreviewReport(True)
