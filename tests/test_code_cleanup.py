"""Tests for utils.code_cleanup."""

from utils.code_cleanup import (
    clean_generated_code,
    convert_require_to_import,
    ensure_react_import,
    normalize_quotes,
    remove_prop_types,
    remove_root_render,
    strip_package_imports,
)


def test_clean_strips_fences_and_leading_prose():
    raw = "Here is the code:\n```jsx\nimport React from 'react';\nexport default 1;\n```\n"
    assert clean_generated_code(raw, "App.jsx") == "import React from 'react';\nexport default 1;"


def test_clean_keeps_first_of_several_files():
    raw = ("export default function App() {}\n"
           "// components/Header.jsx\n"
           "export default function Header() {}\n")
    assert clean_generated_code(raw, "App.jsx") == "export default function App() {}"


def test_clean_non_script_only_strips_fences():
    assert clean_generated_code("```css\nbody { margin: 0; }\n```", "index.css") == "body { margin: 0; }"
    assert clean_generated_code(None, "App.jsx") == ""


def test_require_variants_become_imports():
    code = ("const React = require('react');\n"
            "const { a, b: c } = require(\"./util\");\n"
            "require('./styles.css');\n")
    assert convert_require_to_import(code) == (
        "import React from 'react';\n"
        "import { a, b as c } from \"./util\";\n"
        "import './styles.css';\n"
    )


def test_strip_package_imports_includes_subpaths():
    code = "import axios from 'axios';\nimport get from 'axios/lib/get';\nconst x = 1;\n"
    assert strip_package_imports(code, "axios") == "const x = 1;\n"


def test_remove_prop_types():
    code = ("import PropTypes from 'prop-types';\n"
            "function A() { return null; }\n"
            "A.propTypes = {\n  name: PropTypes.string,\n};\n"
            "export default A;\n")
    assert remove_prop_types(code) == "function A() { return null; }\nexport default A;\n"


def test_remove_chained_root_render():
    code = ("import ReactDOM from 'react-dom/client';\n"
            "export default function App() { return null; }\n"
            "ReactDOM.createRoot(document.getElementById('root')).render(<App />);\n")
    assert remove_root_render(code) == "export default function App() { return null; }\n"


def test_ensure_react_import():
    code = "export default () => { const [a] = useState(0); return <div>{a}</div>; };"
    assert ensure_react_import(code).startswith("import React, { useState } from 'react';\n")
    imported = "import { useState } from 'react';\n" + code
    assert ensure_react_import(imported) == imported
    assert ensure_react_import("export const x = 1;") == "export const x = 1;"


def test_normalize_quotes():
    assert normalize_quotes("const s = “hi” + ‘x’;") == "const s = \"hi\" + 'x';"
