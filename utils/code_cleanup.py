"""Cleanup of model-generated code and mechanical, model-free fixes."""

import logging
import re

from config.rules import REACT_DOM_IMPORT

LOGGER = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs")

_FENCE_OPEN = re.compile(r"```[\w.+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```[ \t]*")

# A "// components/Foo.jsx" header in the middle of a reply means the model
# concatenated several files; only the first one is kept.
_MULTI_FILE_HEADER = re.compile(
    r"\n\s*//\s+(?:src/)?(?:components?|hooks?|lib|utils|styles|pages)/[\w.-]+\.(?:jsx?|tsx?|css)\s*\n",
    re.IGNORECASE,
)
_CODE_LINE_PREFIXES = (
    "import ", "export ", "const ", "let ", "var ", "function ", "class ",
    "async ", "//", "/*", "'use ", '"use ',
)

_REQUIRE_DEFAULT = re.compile(
    r"""^([ \t]*)(?:const|let|var)\s+([\w$]+)\s*=\s*require\(\s*(["'])([^"']+)\3\s*\)(?:\.default)?\s*;?""",
    re.MULTILINE,
)
_REQUIRE_DESTRUCTURED = re.compile(
    r"""^([ \t]*)(?:const|let|var)\s*\{([^}]*)\}\s*=\s*require\(\s*(["'])([^"']+)\3\s*\)\s*;?""",
    re.MULTILINE,
)
_REQUIRE_BARE = re.compile(
    r"""^([ \t]*)require\(\s*(["'])([^"']+)\2\s*\)\s*;?""",
    re.MULTILINE,
)

_PROP_TYPES_IMPORT = re.compile(
    r"""^[ \t]*import\s+PropTypes\s+from\s+["']prop-types["'];?[ \t]*\n?""",
    re.MULTILINE,
)
_PROP_TYPES_ASSIGN = re.compile(r"^[ \t]*[\w$]+\.propTypes\s*=\s*\{", re.MULTILINE)

_ROOT_RENDER_STATEMENT = re.compile(
    r"^[ \t]*(?:(?:const|let|var)\s+[\w$]+\s*=\s*)?"
    r"(?:ReactDOM\.render|(?:ReactDOM\.)?createRoot|(?:ReactDOM\.)?hydrateRoot|root\.render)\s*\(",
    re.MULTILINE,
)

_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})

_HOOK_CALL = re.compile(
    r"\b(useState|useEffect|useContext|useReducer|useCallback|useMemo|useRef|useLayoutEffect)\s*\("
)
_JSX_TAG = re.compile(r"<(?:[A-Z][\w.]*|[a-z][\w-]*)[\s/>]")
_REACT_IMPORT = re.compile(r"""\bfrom\s+["']react["']|import\s+\*\s+as\s+React\b""")


def is_script(filename):
    return filename.endswith(SCRIPT_EXTENSIONS)


def clean_generated_code(raw, filename=""):
    """Strip fences and stray prose from a single-file model reply."""
    if not isinstance(raw, str):
        return ""
    cleaned = _FENCE_OPEN.sub("", raw)
    cleaned = _FENCE_CLOSE.sub("", cleaned)

    if filename and not is_script(filename):
        return cleaned.strip()

    match = _MULTI_FILE_HEADER.search(cleaned)
    if match:
        LOGGER.warning("Model returned several files for %s; keeping the first", filename or "output")
        cleaned = cleaned[:match.start()]

    lines = cleaned.split("\n")
    for index, line in enumerate(lines):
        if line.strip().startswith(_CODE_LINE_PREFIXES):
            if index > 0:
                cleaned = "\n".join(lines[index:])
            break

    # Trailing prose after the last statement
    last_code = max(cleaned.rfind("}"), cleaned.rfind(";"))
    if 0 < last_code < len(cleaned) - 50:
        tail = cleaned[last_code + 1:].strip()
        if tail and not re.search(r"[;{}()<>=]", tail):
            cleaned = cleaned[:last_code + 1]

    return cleaned.strip()


def _destructure_to_named(names):
    parts = []
    for name in names.split(","):
        name = name.strip()
        if not name:
            continue
        if ":" in name:
            original, alias = (n.strip() for n in name.split(":", 1))
            parts.append(f"{original} as {alias}")
        else:
            parts.append(name)
    return ", ".join(parts)


def convert_require_to_import(code):
    """Rewrite CommonJS require() bindings as ES module imports."""
    code = _REQUIRE_DESTRUCTURED.sub(
        lambda m: f"{m.group(1)}import {{ {_destructure_to_named(m.group(2))} }} from {m.group(3)}{m.group(4)}{m.group(3)};",
        code,
    )
    code = _REQUIRE_DEFAULT.sub(
        lambda m: f"{m.group(1)}import {m.group(2)} from {m.group(3)}{m.group(4)}{m.group(3)};",
        code,
    )
    code = _REQUIRE_BARE.sub(
        lambda m: f"{m.group(1)}import {m.group(2)}{m.group(3)}{m.group(2)};",
        code,
    )
    return code


def strip_package_imports(code, package):
    """Remove every import or require of `package` (including subpaths)."""
    name = re.escape(package)
    spec = rf"""["']{name}(?:/[^"']*)?["']"""
    patterns = [
        rf"""^[ \t]*import\s+(?:[^;'"]*?\s+from\s+)?{spec}[ \t]*;?[ \t]*\n?""",
        rf"""^[ \t]*export\s+[^;'"]*?\s+from\s+{spec}[ \t]*;?[ \t]*\n?""",
        rf"""^[ \t]*(?:const|let|var)\s+[^=;]+=\s*require\(\s*{spec}\s*\)[^;\n]*;?[ \t]*\n?""",
    ]
    for pattern in patterns:
        code = re.sub(pattern, "", code, flags=re.MULTILINE)
    return code


def _matching_close(code, open_index, open_char="(", close_char=")"):
    """Index of the delimiter closing the one at open_index, or -1."""
    depth = 0
    quote = None
    i = open_index
    while i < len(code):
        ch = code[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def remove_prop_types(code):
    """Drop the prop-types import and every Component.propTypes = {...} block."""
    code = _PROP_TYPES_IMPORT.sub("", code)
    while True:
        match = _PROP_TYPES_ASSIGN.search(code)
        if not match:
            return code
        close = _matching_close(code, match.end() - 1, "{", "}")
        if close == -1:
            return code
        end = close + 1
        if end < len(code) and code[end] == ";":
            end += 1
        if end < len(code) and code[end] == "\n":
            end += 1
        code = code[:match.start()] + code[end:]


def remove_root_render(code):
    """Remove react-dom imports and self-mounting render statements."""
    code = REACT_DOM_IMPORT.sub("", code)
    search_from = 0
    while True:
        match = _ROOT_RENDER_STATEMENT.search(code, search_from)
        if not match:
            return code
        close = _matching_close(code, match.end() - 1)
        if close == -1:
            return code
        end = close + 1
        # Chained calls: createRoot(el).render(<App />)
        chained = re.match(r"\s*\.\s*[\w$]+\s*\(", code[end:])
        while chained:
            inner_close = _matching_close(code, end + chained.end() - 1)
            if inner_close == -1:
                break
            end = inner_close + 1
            chained = re.match(r"\s*\.\s*[\w$]+\s*\(", code[end:])
        if end < len(code) and code[end] == ";":
            end += 1
        if end < len(code) and code[end] == "\n":
            end += 1
        code = code[:match.start()] + code[end:]
        search_from = match.start()


def normalize_quotes(code):
    """Replace typographic quotes the model sometimes emits with ASCII quotes."""
    return code.translate(_SMART_QUOTES)


def ensure_react_import(code):
    """Add a React import when JSX or hooks are used without one."""
    if _REACT_IMPORT.search(code):
        return code
    hooks = sorted(set(_HOOK_CALL.findall(code)))
    if not hooks and not _JSX_TAG.search(code):
        return code
    statement = "import React from 'react';"
    if hooks:
        statement = f"import React, {{ {', '.join(hooks)} }} from 'react';"
    return statement + "\n" + code
