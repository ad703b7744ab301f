"""Static scanners the debugger runs once an error is known. Zero LLM calls.

Each scanner returns ScanIssue objects scored by how likely they are to be
the cause of the reported error; a higher score means more relevant.
"""

from agents.file_scanner import find_imports, is_relative, package_name
from agents.validator import count_delimiters
from config.rules import (
    ASYNC_EFFECT_UPDATE,
    BANNED_PACKAGES,
    EFFECT_CLEANUP,
    FORM_TAG,
    FRAMEWORK_PATTERNS,
    NODE_API_PATTERNS,
)
from core.state import ScanIssue


def scan_browser_compatibility(code, error_message="", filename=""):
    """Node.js-only syntax and globals that crash in the browser."""
    issues = []
    error = (error_message or "").lower()
    for pattern, name, _, message, suggestion in NODE_API_PATTERNS:
        if not pattern.search(code):
            continue
        if name == "require":
            issues.append(ScanIssue(
                type="browser-incompatible", pattern=message, fix=suggestion,
                severity="critical", score=100 if "require" in error else 80, file=filename,
            ))
        else:
            issues.append(ScanIssue(
                type="nodejs-api", pattern=message, fix=suggestion,
                severity="critical", score=100 if name.lower() in error else 70, file=filename,
            ))
    return issues


def scan_framework_patterns(code, error_message="", filename=""):
    """Known React anti-patterns and imports the preview cannot resolve."""
    issues = []
    error = (error_message or "").lower()
    for pattern, issue_type, severity, message, suggestion, base, boosted, keywords in FRAMEWORK_PATTERNS:
        if pattern.search(code):
            score = boosted if any(k in error for k in keywords) else base
            issues.append(ScanIssue(issue_type, message, suggestion, severity, score, filename))

    if FORM_TAG.search(code) and "preventDefault" not in code:
        issues.append(ScanIssue(
            "form-handling", "Form without preventDefault",
            "Call e.preventDefault() in the submit handler", "medium", 30, filename,
        ))

    if ASYNC_EFFECT_UPDATE.search(code) and not EFFECT_CLEANUP.search(code):
        issues.append(ScanIssue(
            "async-unmount", "Async state update in useEffect without cleanup",
            "Track mounted state: let active = true; return () => { active = false }",
            "high", 85 if "unmount" in error else 45, filename,
        ))

    seen = set()
    for specifier, _ in find_imports(code):
        if is_relative(specifier):
            continue
        pkg = package_name(specifier)
        if pkg in BANNED_PACKAGES and pkg not in seen:
            seen.add(pkg)
            issues.append(ScanIssue(
                "banned-package", f'Import from "{pkg}" (not available in the preview)',
                f'Remove "{pkg}": {BANNED_PACKAGES[pkg]}', "critical",
                100 if pkg in error else 80, filename,
            ))
    return issues


def scan_syntax_issues(code, filename=""):
    """Unmatched braces, brackets and parentheses."""
    issues = []
    counts = count_delimiters(code)
    for opener, closer, label in (("{", "}", "curly braces"), ("[", "]", "brackets"),
                                  ("(", ")", "parentheses")):
        balance = counts[opener]
        if balance:
            fix = f"Add missing closing {closer}" if balance > 0 else f"Remove extra closing {closer}"
            issues.append(ScanIssue("syntax-error", f"Unmatched {label}", fix, "critical", 95, filename))
    return issues


def scan_all(code, error_message="", filename=""):
    return (
        scan_browser_compatibility(code, error_message, filename)
        + scan_framework_patterns(code, error_message, filename)
        + scan_syntax_issues(code, filename)
    )
