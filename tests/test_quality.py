"""Tests for core.quality."""

from core.quality import score_code, score_plan, score_quality
from core.state import FileSpec, Plan


def _make_plan(**overrides):
    fields = dict(
        app_name="Taskly",
        tagline="Todos that stay done",
        files_to_create=["App.jsx", "components/TodoList.jsx"],
        file_details={"App.jsx": FileSpec(purpose="Root component")},
        layout_approach="Single column",
        packages=[],
    )
    fields.update(overrides)
    return Plan(**fields)


GOOD_CODE = """import React, { useState } from 'react';

export default function App() {
  const [items, setItems] = useState([]);
  return <ul>{items.map((i) => <li key={i}>{i}</li>)}</ul>;
}
"""


def test_full_plan_scores_exactly_one():
    quality = score_plan(_make_plan())
    assert quality.score == 1.0
    assert quality.passed is True
    assert quality.suggestions == []


def test_empty_plan_scores_exactly_zero():
    quality = score_plan(Plan())
    assert quality.score == 0.0
    assert quality.passed is False
    assert len(quality.suggestions) == 6


def test_only_file_details_scores_point_three():
    plan = Plan(file_details={"App.jsx": FileSpec(purpose="Root")})
    quality = score_plan(plan)
    assert quality.score == 0.3
    assert quality.checks["has_file_details"] is True


def test_each_failed_check_emits_one_suggestion():
    quality = score_plan(_make_plan(layout_approach="", packages=None))
    assert quality.score == 0.8
    assert quality.suggestions == ["Describe layout organization", "List npm dependencies"]


def test_scope_upper_bound_is_exclusive():
    files = [f"components/C{i}.jsx" for i in range(20)]
    quality = score_plan(_make_plan(files_to_create=files))
    assert quality.checks["reasonable_scope"] is False
    assert quality.checks["has_files"] is True


def test_tagline_required_for_identity():
    quality = score_plan(_make_plan(tagline=""))
    assert quality.checks["has_app_identity"] is False
    assert "Add app name and tagline" in quality.suggestions


def test_raw_model_dict_is_scored():
    raw = {
        "appIdentity": {"name": "Taskly", "tagline": "Todos"},
        "filesToCreate": ["App.jsx"],
        "fileDetails": {"App.jsx": {"purpose": "Root"}},
        "layoutApproach": "Centered card",
        "npmPackages": [],
    }
    assert score_plan(raw).score == 1.0


def test_package_list_must_be_a_list():
    raw = {"npmPackages": "react"}
    assert score_plan(raw).checks["has_dependencies"] is False


def test_threshold_override():
    plan = _make_plan(layout_approach="")
    assert score_plan(plan).passed is True            # 0.9 >= 0.85
    assert score_plan(plan, threshold=0.95).passed is False


def test_code_scoring_good_component():
    quality = score_code(GOOD_CODE)
    assert quality.score == 1.0


def test_code_scoring_flags_var_and_missing_export():
    code = "var x = 1;\nfunction f() { return [x]; }\n// padding padding padding padding"
    quality = score_code(code)
    assert quality.checks["no_var_usage"] is False
    assert quality.checks["has_exports"] is False
    assert quality.score == 0.65


def test_code_scoring_non_string_is_zero_content():
    quality = score_code(None)
    assert quality.checks["has_content"] is False


def test_scoring_is_deterministic():
    plan = _make_plan(layout_approach="")
    assert score_plan(plan) == score_plan(plan)
    assert score_code(GOOD_CODE) == score_code(GOOD_CODE)


def test_score_quality_dispatch():
    assert score_quality(_make_plan(), "plan").score == 1.0
    assert score_quality(GOOD_CODE, "code").score == 1.0
    unknown = score_quality("x", "poem")
    assert unknown.score == 0.0
    assert unknown.passed is False
