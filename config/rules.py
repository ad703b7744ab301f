"""Rule tables shared by the validator, the debugger scanners and the error categorizer."""

import re

# Packages the preview sandbox cannot resolve. Each entry maps the package
# name to the browser-native alternative suggested to the model.
BANNED_PACKAGES = {
    "prop-types": "Remove PropTypes entirely; components work without runtime prop checks",
    "axios": "Use the native fetch() API",
    "lodash": "Use native array and object methods (map, filter, Object.entries)",
    "moment": "Use Date and Intl.DateTimeFormat",
    "uuid": "Use crypto.randomUUID() or Date.now().toString(36)",
    "class-validator": "Write a small inline validation function",
    "joi": "Write a small inline validation function",
    "yup": "Write a small inline validation function",
    "zod": "Write a small inline validation function",
    "dotenv": "Not needed in the browser; inline configuration constants",
    "express": "Server-only package; keep all logic client-side",
    "mongoose": "Server-only package; keep data in React state or localStorage",
}

# External packages the sandbox provides without installation.
ALLOWED_PACKAGES = {"react", "react-dom"}

# Every way a module specifier can appear in ES module or CommonJS code.
IMPORT_SPECIFIER_PATTERNS = [
    re.compile(r"""\bimport\s+[\w*{}\s,$]+?\s+from\s+["']([^"']+)["']"""),
    re.compile(r"""\bexport\s+[\w*{}\s,$]+?\s+from\s+["']([^"']+)["']"""),
    re.compile(r"""\bimport\s+["']([^"']+)["']"""),
    re.compile(r"""\bimport\s*\(\s*["']([^"']+)["']\s*\)"""),
    re.compile(r"""(?<![\w.$])require\s*\(\s*["']([^"']+)["']\s*\)"""),
]

# Node.js-only APIs that crash in the browser. Each entry:
# (pattern_regex, name, search_text, message, suggestion)
# search_text is the literal the file scanner looks for when localizing.
NODE_API_PATTERNS = [
    (
        re.compile(r"(?<![\w.$])require\s*\("),
        "require",
        "require(",
        "require() syntax (Node.js only)",
        "Convert to ES6 import statements",
    ),
    (
        re.compile(r"(?<![\w.$])process\.\w+"),
        "process",
        "process.",
        "process API (Node.js only)",
        "Remove process usage or inline the value as a constant",
    ),
    (
        re.compile(r"\b__dirname\b"),
        "__dirname",
        "__dirname",
        "__dirname (Node.js only)",
        "Remove Node.js path variables",
    ),
    (
        re.compile(r"\b__filename\b"),
        "__filename",
        "__filename",
        "__filename (Node.js only)",
        "Remove Node.js path variables",
    ),
    (
        re.compile(r"\bmodule\.exports\b"),
        "module.exports",
        "module.exports",
        "module.exports (CommonJS)",
        "Use export default / named exports",
    ),
    (
        re.compile(r"(?<![\w.$])exports\.\w+\s*="),
        "exports",
        "exports.",
        "exports.* assignment (CommonJS)",
        "Use named ES module exports",
    ),
    (
        re.compile(r"(?<![\w.$])fs\.\w+\s*\("),
        "fs",
        "fs.",
        "fs module (Node.js only)",
        "Keep data in state or localStorage instead of the filesystem",
    ),
    (
        re.compile(r"(?<![\w.$])path\.(?:join|resolve|basename|dirname|extname)\s*\("),
        "path",
        "path.",
        "path module (Node.js only)",
        "Use plain string operations",
    ),
    (
        re.compile(r"\bBuffer\.\w+"),
        "Buffer",
        "Buffer.",
        "Buffer global (Node.js only)",
        "Use TextEncoder/TextDecoder or btoa/atob",
    ),
]

# Calls that mount the app themselves and fight the host's render lifecycle.
ROOT_RENDER_PATTERNS = [
    re.compile(r"\bReactDOM\.render\s*\("),
    re.compile(r"\b(?:ReactDOM\.)?createRoot\s*\("),
    re.compile(r"\b(?:ReactDOM\.)?hydrateRoot\s*\("),
    re.compile(r"\broot\.render\s*\("),
]
REACT_DOM_IMPORT = re.compile(
    r"""^[ \t]*import\s+[^;\n]*\bfrom\s+["']react-dom(?:/client)?["'];?[ \t]*\n?""",
    re.MULTILINE,
)

# UI-framework anti-patterns. Each entry:
# (pattern_regex, issue_type, severity, message, suggestion, base_score,
#  boosted_score, boost_keywords)
# boosted_score applies when the error text contains one of boost_keywords.
FRAMEWORK_PATTERNS = [
    (
        re.compile(r"\w+\.(?:push|pop|shift|unshift|splice)\("),
        "state-mutation", "medium",
        "Direct array mutation (e.g. arr.push())",
        "Copy before updating: setItems([...items, newItem])",
        40, 40, (),
    ),
    (
        re.compile(r"useEffect\([^,]*,\s*\[\s*\]\s*\)"),
        "missing-dependencies", "low",
        "Empty dependency array might be incorrect",
        "List every value the effect reads in its dependency array",
        20, 20, (),
    ),
    (
        re.compile(r"onClick=\{\w+\([^)]*\)\}"),
        "event-handler", "medium",
        "Handler called during render: onClick={fn()}",
        "Pass a reference: onClick={() => fn()} or onClick={fn}",
        50, 50, (),
    ),
    (
        re.compile(r"(?:if|while|for)\s*\([^)]*\)\s*\{[^}]*\buse[A-Z]"),
        "hooks-rules", "critical",
        "Hook called conditionally",
        "Call hooks unconditionally at the top level of the component",
        60, 90, ("hook",),
    ),
    (
        re.compile(r"async\s+\([^)]*\)\s*=>\s*\{[^}]*\bset[A-Z]\w+\("),
        "async-state", "medium",
        "Async function with state updates",
        "Guard state updates after unmount with a mounted flag",
        35, 35, (),
    ),
    (
        re.compile(r"""<a\s+[^>]*href=["']#["']"""),
        "preview-navigation", "critical",
        '<a href="#"> reloads the preview frame (white screen)',
        "Replace with <button onClick={handler}>",
        60, 95, ("white screen", "cors", "reload"),
    ),
]

FORM_TAG = re.compile(r"<form[^>]*>")
ASYNC_EFFECT_UPDATE = re.compile(r"useEffect\s*\([\s\S]*?\.then\s*\([\s\S]*?\bset[A-Z]\w+")
EFFECT_CLEANUP = re.compile(r"useEffect\s*\([\s\S]*?return\s*(?:\(\s*\)\s*=>|function\b)")

# Error categorization. Checked in order; first match wins.
# Each entry: (category, substrings matched against the lowercased error)
ERROR_CATEGORY_RULES = [
    ("BROWSER_INCOMPATIBILITY", (
        "require is not defined", "process is not defined", "__dirname",
        "__filename", "module is not defined", "exports is not defined",
        "buffer is not defined",
    )),
    ("BANNED_PACKAGE", (
        "cannot find module", "could not find dependency", "module not found",
        "failed to resolve import",
    )),
    ("INFINITE_RENDER", (
        "too many re-renders", "maximum update depth", "maximum call stack",
    )),
    ("HOOKS_VIOLATION", (
        "rendered more hooks", "rendered fewer hooks", "invalid hook call",
        "called conditionally", "rules of hooks",
    )),
    ("NULL_ACCESS", (
        "cannot read propert", "cannot access", "undefined is not",
        "null is not", "cannot set propert",
    )),
    ("SYNTAX_ERROR", (
        "unexpected token", "unexpected end of input", "syntaxerror",
        "unexpected identifier", "unterminated",
    )),
    ("ASYNC_UNMOUNT", (
        "unmounted component", "memory leak", "can't perform a react state update",
    )),
    ("TYPE_MISMATCH", (
        "is not a function", "is not iterable", "is not defined",
        "is not a constructor", "typeerror",
    )),
]

# Issue types that fail a fix attempt outright.
BLOCKING_ISSUE_TYPES = {
    "browser-incompatible", "nodejs-api", "syntax-error", "banned-package",
    "hooks-rules", "preview-navigation",
}
