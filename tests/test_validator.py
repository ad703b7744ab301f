"""Tests for agents.validator — deterministic checks, auto-fixes, never raises."""

import pytest

from agents.validator import (
    ValidatorAgent,
    count_delimiters,
    format_issues,
    validate_code,
    validate_runtime_safety,
)
from config.rules import BANNED_PACKAGES
from core.state import ValidationMode

CLEAN = """import React, { useState } from 'react';

export default function App() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(count + 1)}>{count}</button>;
}
"""


def _rules(issues):
    return [i.rule for i in issues]


def test_clean_component_is_valid():
    result = validate_code(CLEAN, "App.jsx")
    assert result.valid is True
    assert result.errors == []
    assert result.auto_fixed is False
    assert result.code == CLEAN


def test_unbalanced_braces_reported():
    result = validate_code("export function f() {\n  return 1;\n", "util.js")
    assert result.valid is False
    assert "unbalanced-braces" in _rules(result.errors)


def test_delimiters_in_strings_and_comments_ignored():
    code = "const a = '{';\n// }\nconst b = `${x} {`;\n/* ( */\nexport default a;\n"
    counts = count_delimiters(code)
    assert counts == {"{": 0, "[": 0, "(": 0}


def test_banned_import_is_stripped():
    code = "import axios from 'axios';\nexport default function App() { return null; }\n"
    result = validate_code(code, "App.jsx", ValidationMode.FAST)
    assert "banned-package" in _rules(result.errors)
    assert result.auto_fixed is True
    assert "axios" not in result.code
    assert result.valid is True


def test_require_converted_to_import():
    code = "const React = require('react');\nexport default function App() { return null; }\n"
    result = validate_code(code, "App.jsx", ValidationMode.FAST)
    assert "commonjs" in _rules(result.errors)
    assert "import React from 'react';" in result.code
    assert result.valid is True


def test_root_render_removed_in_full_mode():
    code = (
        "import React from 'react';\n"
        "import ReactDOM from 'react-dom/client';\n"
        "export default function App() { return <div />; }\n"
        "ReactDOM.createRoot(document.getElementById('root')).render(<App />);\n"
    )
    result = validate_code(code, "App.jsx", ValidationMode.FULL)
    assert "root-render" in _rules(result.errors)
    assert "createRoot" not in result.code
    assert result.auto_fixed is True


def test_fast_mode_skips_root_render_check():
    code = "export default function App() { return null; }\nReactDOM.render(<App />, el);\n"
    result = validate_code(code, "App.jsx", ValidationMode.FAST)
    assert "root-render" not in _rules(result.errors)


def test_format_only_mode_strips_fences():
    code = "```jsx\nexport default 1;\n```\n"
    result = validate_code(code, "App.jsx", ValidationMode.FORMAT_ONLY)
    assert "markdown-fence" in _rules(result.errors)
    assert "```" not in result.code


def test_missing_export_is_a_warning():
    result = validate_code("const x = 1;\n", "helpers.js", ValidationMode.SYNTAX_ONLY)
    assert result.valid is True
    assert "missing-export" in _rules(result.warnings)


def test_entry_file_needs_no_export():
    result = validate_code("import App from './App';\n", "index.jsx", ValidationMode.SYNTAX_ONLY)
    assert "missing-export" not in _rules(result.warnings)


def test_invalid_json_file():
    result = validate_code("{\"a\": 1,}", "data.json")
    assert result.valid is False
    assert _rules(result.errors) == ["invalid-json"]


@pytest.mark.parametrize("code", [None, 42, b"bytes", ["list"]])
def test_never_raises_on_bad_input(code):
    result = validate_code(code, "App.jsx")
    assert result.valid is False
    assert _rules(result.errors) == ["invalid-input"]


def test_unknown_mode_falls_back_to_full():
    result = validate_code(CLEAN, "App.jsx", "paranoid")
    assert result.valid is True
    assert "unknown-mode" in _rules(result.warnings)


def test_mode_accepts_strings():
    assert validate_code(CLEAN, "App.jsx", "fast").valid is True


@pytest.mark.parametrize("package", sorted(BANNED_PACKAGES))
@pytest.mark.parametrize("template", [
    "import thing from '{pkg}';\n",
    "import {{ a, b }} from \"{pkg}\";\n",
    "import '{pkg}/sub/path';\n",
    "const thing = require('{pkg}');\n",
])
def test_runtime_safety_rejects_every_banned_package(package, template):
    code = template.format(pkg=package) + "export default function App() { return null; }\n"
    result = validate_runtime_safety(code, "App.jsx")
    assert result.valid is False
    assert any(package in e.message for e in result.errors)


def test_runtime_safety_flags_missing_relative_import():
    code = "import Header from './components/Header';\nexport default () => <Header />;\n"
    result = validate_runtime_safety(code, "App.jsx", {"App.jsx": code})
    assert "missing-import-target" in _rules(result.errors)

    files = {"App.jsx": code, "components/Header.jsx": "export default () => null;"}
    assert validate_runtime_safety(code, "App.jsx", files).valid is True


def test_runtime_safety_warnings():
    code = "import { useState, useMemo } from 'react';\nimport dayjs from 'dayjs';\n" \
           "export default function A() { const [a] = useState(dayjs()); return a; }\n"
    result = validate_runtime_safety(code, "A.jsx")
    assert result.valid is True
    assert "external-package" in _rules(result.warnings)
    assert "unused-import" in _rules(result.warnings)


def test_runtime_safety_prop_types_usage():
    code = "export default function A() { return null; }\nA.propTypes = { name: PropTypes.string };\n"
    result = validate_runtime_safety(code, "A.jsx")
    assert "prop-types" in _rules(result.errors)


def test_validation_is_deterministic():
    code = "import _ from 'lodash';\nexport const f = () => _.map([], (x) => x);\n"
    assert validate_code(code, "f.js") == validate_code(code, "f.js")


def test_format_issues_numbered():
    result = validate_code("export function f() {", "f.js")
    text = format_issues(result.errors)
    assert text.startswith("1. [unbalanced-braces]")
    assert "Fix:" in text


def test_validator_agent_checks_import_targets():
    files = {"App.jsx": "import X from './X';\nexport default X;\n"}
    results = ValidatorAgent().run(files)
    assert results["App.jsx"].valid is False
    assert "missing-import-target" in _rules(results["App.jsx"].errors)
