"""Tests for core.preview.LintPreview."""

from unittest.mock import MagicMock

from agents.validator import ValidatorAgent
from core.preview import LintPreview, RuntimeErrorReport

APP = "import React from 'react';\nexport default function App() { return <div>Hi</div>; }\n"


def test_clean_files_render():
    assert LintPreview().run({"App.jsx": APP}).success is True


def test_require_reported_like_the_browser():
    files = {"App.jsx": "const x = require('./x');\nexport default function App() { return null; }\n"}
    report = LintPreview().run(files)
    assert report.success is False
    assert report.error.message == "ReferenceError: require is not defined"
    assert report.error.file == "App.jsx"


def test_banned_package_reported_as_missing_module():
    files = {"App.jsx": "import axios from 'axios';\nexport default function App() { return null; }\n"}
    report = LintPreview().run(files)
    assert report.error.message == "Error: Cannot find module 'axios'"


def test_missing_relative_import():
    files = {"App.jsx": "import Header from './Header';\nexport default function App() { return <Header />; }\n"}
    report = LintPreview().run(files)
    assert report.success is False
    assert "Header" in report.error.message


def test_uses_injected_validator():
    validator = MagicMock(wraps=ValidatorAgent())
    files = {"App.jsx": APP}
    assert LintPreview(validator).run(files).success is True
    validator.run.assert_called_once()
    assert validator.run.call_args.args[0] == files


def test_describe_includes_location():
    error = RuntimeErrorReport("TypeError: x is undefined", "components/List.jsx", 12, 4)
    assert error.describe() == "TypeError: x is undefined (components/List.jsx:12:4)"
    assert RuntimeErrorReport("boom").describe() == "boom"
