"""Validator — deterministic rule checks on generated code. Zero LLM calls.

Every entry point returns a ValidationResult; malformed input is reported
as an error in the result, never raised.
"""

import json
import logging
import posixpath
import re

from agents.file_scanner import find_imports, is_relative, package_name, resolve_import
from config.rules import ALLOWED_PACKAGES, BANNED_PACKAGES, NODE_API_PATTERNS, ROOT_RENDER_PATTERNS
from core.state import ValidationIssue, ValidationMode, ValidationResult
from utils.code_cleanup import (
    convert_require_to_import,
    is_script,
    normalize_quotes,
    remove_prop_types,
    remove_root_render,
    strip_package_imports,
)

LOGGER = logging.getLogger(__name__)

_ENTRY_FILES = {"index.js", "index.jsx", "main.js", "main.jsx", "index.ts", "index.tsx"}
_EXPORT = re.compile(r"^\s*export\s", re.MULTILINE)
_SMART_QUOTE = re.compile("[“”‘’]")
_FENCE = re.compile(r"^```", re.MULTILINE)
_GET_ELEMENT_BY_ID = re.compile(r"\bdocument\.getElementById\s*\(")
_PROP_TYPES_USAGE = re.compile(r"\bPropTypes\.\w+|\.propTypes\s*=")
_DEFAULT_IMPORT = re.compile(r"""^\s*import\s+([\w$]+)\s*(?:,|\s+from\b)""", re.MULTILINE)
_NAMED_IMPORT = re.compile(r"""^\s*import\s+(?:[\w$]+\s*,\s*)?\{([^}]*)\}\s*from\b""", re.MULTILINE)

_PAIRS = (("{", "}", "braces"), ("[", "]", "brackets"), ("(", ")", "parentheses"))


# ---------------------------------------------------------------------------
# Primitive scanners
# ---------------------------------------------------------------------------

def count_delimiters(code):
    """Net open count for each delimiter, skipping strings, template text and comments."""
    counts = {"{": 0, "[": 0, "(": 0}
    closers = {"}": "{", "]": "[", ")": "("}
    template_braces = []    # brace depth where each ${ ... } began
    mode = None
    i, n = 0, len(code)
    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ""
        if mode == "line":
            if ch == "\n":
                mode = None
        elif mode == "block":
            if ch == "*" and nxt == "/":
                mode = None
                i += 1
        elif mode in ("'", '"'):
            if ch == "\\":
                i += 1
            elif ch == mode or ch == "\n":
                mode = None
        elif mode == "`":
            if ch == "\\":
                i += 1
            elif ch == "`":
                mode = None
            elif ch == "$" and nxt == "{":
                template_braces.append(counts["{"])
                counts["{"] += 1
                mode = None
                i += 1
        else:
            if ch == "/" and nxt == "/":
                mode = "line"
                i += 1
            elif ch == "/" and nxt == "*":
                mode = "block"
                i += 1
            elif ch in "'\"`":
                mode = ch
            elif ch in counts:
                counts[ch] += 1
            elif ch in closers:
                counts[closers[ch]] -= 1
                if ch == "}" and template_braces and counts["{"] == template_braces[-1]:
                    template_braces.pop()
                    mode = "`"
        i += 1
    return counts


def _line_of(code, index):
    return code.count("\n", 0, index) + 1


# ---------------------------------------------------------------------------
# Rule groups. Each returns (errors, warnings, fixes) where fixes is a list
# of (description, fn) applied only when errors were found.
# ---------------------------------------------------------------------------

def _check_syntax(code, filename):
    errors, warnings = [], []
    if filename.endswith(".json"):
        try:
            json.loads(code)
        except json.JSONDecodeError as e:
            errors.append(ValidationIssue("invalid-json", f"Invalid JSON: {e.msg}", line=e.lineno))
        return errors, warnings, []

    if filename.endswith((".html", ".md", ".txt", ".svg")):
        return errors, warnings, []

    counts = count_delimiters(code)
    pairs = _PAIRS[:1] if filename.endswith(".css") else _PAIRS
    for opener, closer, label in pairs:
        balance = counts[opener]
        if balance:
            hint = f"Add {balance} missing '{closer}'" if balance > 0 else f"Remove {-balance} extra '{closer}'"
            errors.append(ValidationIssue(f"unbalanced-{label}", f"Unbalanced {label}", suggestion=hint))

    basename = posixpath.basename(filename)
    if is_script(filename) and basename not in _ENTRY_FILES and not _EXPORT.search(code):
        warnings.append(ValidationIssue(
            "missing-export", "No export statement found", severity="warning",
            suggestion="Export the component or functions this module provides",
        ))
    return errors, warnings, []


def _check_module_system(code, filename):
    errors, fixes = [], []
    if not is_script(filename):
        return errors, [], fixes
    for pattern, name, _, message, suggestion in NODE_API_PATTERNS:
        if name not in ("require", "module.exports", "exports"):
            continue
        match = pattern.search(code)
        if match:
            errors.append(ValidationIssue("commonjs", message, line=_line_of(code, match.start()),
                                          suggestion=suggestion))
    if errors and any(e.message.startswith("require") for e in errors):
        fixes.append(("Converted require() to import", convert_require_to_import))
    return errors, [], fixes


def _check_packages(code, filename):
    errors, warnings, fixes = [], [], []
    if not is_script(filename):
        return errors, warnings, fixes
    flagged = set()
    for specifier, line in find_imports(code):
        if is_relative(specifier):
            continue
        pkg = package_name(specifier)
        if pkg in BANNED_PACKAGES:
            errors.append(ValidationIssue(
                "banned-package",
                f'Package "{pkg}" is not available in the preview sandbox',
                line=line,
                suggestion=BANNED_PACKAGES[pkg],
            ))
            if pkg not in flagged:
                flagged.add(pkg)
                fixes.append((f'Removed import of "{pkg}"',
                              lambda c, p=pkg: strip_package_imports(c, p)))
        elif pkg not in ALLOWED_PACKAGES:
            warnings.append(ValidationIssue(
                "external-package",
                f'External package "{pkg}" may not be installed in the preview',
                severity="warning", line=line,
                suggestion="Prefer React and browser APIs",
            ))
    if "prop-types" in flagged:
        fixes.append(("Removed propTypes declarations", remove_prop_types))
    return errors, warnings, fixes


def _check_node_apis(code, filename):
    errors = []
    if not is_script(filename):
        return errors, [], []
    for pattern, name, _, message, suggestion in NODE_API_PATTERNS:
        if name in ("require", "module.exports", "exports"):
            continue
        match = pattern.search(code)
        if match:
            errors.append(ValidationIssue("node-api", message, line=_line_of(code, match.start()),
                                          suggestion=suggestion))
    return errors, [], []


def _check_initialization(code, filename):
    errors, warnings, fixes = [], [], []
    if not is_script(filename):
        return errors, warnings, fixes
    for pattern in ROOT_RENDER_PATTERNS:
        match = pattern.search(code)
        if match:
            errors.append(ValidationIssue(
                "root-render",
                f"Direct root render call '{match.group(0).rstrip('( ')}' conflicts with the host renderer",
                line=_line_of(code, match.start()),
                suggestion="Export the root component instead of mounting it",
            ))
            break
    if errors:
        fixes.append(("Removed root render calls", remove_root_render))
    match = _GET_ELEMENT_BY_ID.search(code)
    if match:
        warnings.append(ValidationIssue(
            "direct-dom", "document.getElementById() bypasses React", severity="warning",
            line=_line_of(code, match.start()), suggestion="Use a ref",
        ))
    return errors, warnings, fixes


def _check_format(code, filename):
    errors, warnings, fixes = [], [], []
    match = _FENCE.search(code)
    if match:
        errors.append(ValidationIssue("markdown-fence", "Markdown code fence in file content",
                                      line=_line_of(code, match.start()),
                                      suggestion="Remove ``` lines"))
        fixes.append(("Stripped markdown fences",
                      lambda c: re.sub(r"^```[\w.+-]*[ \t]*\n?", "", c, flags=re.MULTILINE)))
    match = _SMART_QUOTE.search(code)
    if match and is_script(filename):
        errors.append(ValidationIssue("smart-quotes", "Typographic quotes in source code",
                                      line=_line_of(code, match.start()),
                                      suggestion="Use ASCII quotes"))
        fixes.append(("Normalized typographic quotes", normalize_quotes))
    if is_script(filename):
        first = next((line.strip() for line in code.splitlines() if line.strip()), "")
        if first and not re.match(r"""^(?:import|export|const|let|var|function|class|async|//|/\*|['"]use|@)""", first):
            warnings.append(ValidationIssue("leading-text", "File does not start with code",
                                            severity="warning", line=1))
    return errors, warnings, fixes


_MODE_CHECKS = {
    ValidationMode.SYNTAX_ONLY: (_check_syntax,),
    ValidationMode.FORMAT_ONLY: (_check_format,),
    ValidationMode.FAST: (_check_syntax, _check_module_system, _check_packages),
    ValidationMode.FULL: (_check_syntax, _check_module_system, _check_packages,
                          _check_node_apis, _check_initialization, _check_format),
}


def _run_checks(code, filename, mode):
    errors, warnings, fixes = [], [], []
    for check in _MODE_CHECKS[mode]:
        e, w, f = check(code, filename)
        errors.extend(e)
        warnings.extend(w)
        fixes.extend(f)
    return errors, warnings, fixes


def _coerce_mode(mode):
    if isinstance(mode, ValidationMode):
        return mode, None
    try:
        return ValidationMode(str(mode).lower()), None
    except ValueError:
        return ValidationMode.FULL, ValidationIssue(
            "unknown-mode", f"Unknown validation mode {mode!r}; ran FULL", severity="warning",
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_code(code, filename="App.jsx", mode=ValidationMode.FULL) -> ValidationResult:
    """Check one file and apply mechanical fixes when errors are found.

    `errors` and `warnings` describe the input. `valid` describes the
    returned `code`, which is the fixed version when `auto_fixed` is set.
    """
    if not isinstance(code, str):
        return ValidationResult(
            valid=False,
            errors=[ValidationIssue("invalid-input", f"Expected source text, got {type(code).__name__}")],
            code="",
        )
    filename = filename if isinstance(filename, str) else ""
    mode, mode_warning = _coerce_mode(mode)

    errors, warnings, fixes = _run_checks(code, filename, mode)
    if mode_warning:
        warnings.insert(0, mode_warning)

    if not errors:
        return ValidationResult(valid=True, warnings=warnings, code=code)

    if not fixes:
        return ValidationResult(valid=False, errors=errors, warnings=warnings, code=code)

    fixed = code
    applied = []
    for description, fn in fixes:
        updated = fn(fixed)
        if updated != fixed:
            applied.append(description)
            fixed = updated

    if not applied:
        return ValidationResult(valid=False, errors=errors, warnings=warnings, code=code)

    remaining, _, _ = _run_checks(fixed, filename, mode)
    LOGGER.debug("Validator auto-fixed %s: %s", filename, ", ".join(applied))
    return ValidationResult(
        valid=not remaining,
        errors=errors,
        warnings=warnings,
        fixes=applied,
        code=fixed,
        auto_fixed=True,
    )


def _unused_imports(code):
    names = []
    for match in _DEFAULT_IMPORT.finditer(code):
        names.append((match.group(1), match.start()))
    for match in _NAMED_IMPORT.finditer(code):
        for part in match.group(1).split(","):
            part = part.strip()
            if part:
                names.append((part.split(" as ")[-1].strip(), match.start()))
    unused = []
    for name, position in names:
        if name == "React":
            continue
        uses = len(re.findall(rf"(?<![\w$]){re.escape(name)}(?![\w$])", code))
        if uses <= 1:
            unused.append((name, _line_of(code, position)))
    return unused


def validate_runtime_safety(code, filename="", all_files=None) -> ValidationResult:
    """Check that code can load in the browser preview: packages, imports, CommonJS."""
    if not isinstance(code, str):
        return ValidationResult(
            valid=False,
            errors=[ValidationIssue("invalid-input", f"Expected source text, got {type(code).__name__}")],
        )
    filename = filename if isinstance(filename, str) else ""
    errors, warnings = [], []

    for specifier, line in find_imports(code):
        if is_relative(specifier):
            if all_files is not None and resolve_import(filename, specifier, all_files) is None:
                errors.append(ValidationIssue(
                    "missing-import-target", f'Import "{specifier}" does not match any file',
                    line=line, suggestion="Create the file or fix the import path",
                ))
            continue
        pkg = package_name(specifier)
        if pkg in BANNED_PACKAGES:
            errors.append(ValidationIssue(
                "banned-package", f'Package "{pkg}" is not available in the preview sandbox',
                line=line, suggestion=BANNED_PACKAGES[pkg],
            ))
        elif pkg not in ALLOWED_PACKAGES:
            warnings.append(ValidationIssue(
                "external-package", f'External package "{pkg}" may not be installed in the preview',
                severity="warning", line=line,
            ))

    require = NODE_API_PATTERNS[0][0].search(code)
    if require:
        errors.append(ValidationIssue("commonjs", "require() is not available in the browser",
                                      line=_line_of(code, require.start()),
                                      suggestion="Use ES module imports"))

    prop_types = _PROP_TYPES_USAGE.search(code)
    if prop_types:
        errors.append(ValidationIssue("prop-types", "PropTypes usage requires the prop-types package",
                                      line=_line_of(code, prop_types.start()),
                                      suggestion=BANNED_PACKAGES["prop-types"]))

    for name, line in _unused_imports(code):
        warnings.append(ValidationIssue("unused-import", f'Import "{name}" is never used',
                                        severity="warning", line=line))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, code=code)


def format_issues(issues):
    """Render issues as a numbered list for a model prompt."""
    lines = []
    for index, issue in enumerate(issues, 1):
        loc = f" (line {issue.line})" if issue.line else ""
        lines.append(f"{index}. [{issue.rule}] {issue.message}{loc}")
        if issue.suggestion:
            lines.append(f"   Fix: {issue.suggestion}")
    return "\n".join(lines)


class ValidatorAgent:
    """Runs the validator over a whole file set. Zero LLM calls."""

    name = "validator"

    def run(self, files, mode=ValidationMode.FULL):
        """Return {filename: ValidationResult} for every file in the map."""
        results = {}
        for filename, content in (files or {}).items():
            result = validate_code(content, filename, mode)
            if is_script(filename):
                safety = validate_runtime_safety(result.code, filename, files)
                extra = [e for e in safety.errors if e.rule == "missing-import-target"]
                if extra:
                    result.errors.extend(extra)
                    result.valid = False
            results[filename] = result
        return results
