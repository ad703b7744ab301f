"""Rule-based quality scoring for plans and generated code."""

from __future__ import annotations

from config.defaults import DEFAULTS
from core.state import Plan, QualityScore

# Weights are in hundredths so sums stay exact: (check, weight, suggestion)
PLAN_CHECKS = [
    ("has_app_identity", 20, "Add app name and tagline"),
    ("has_files", 20, "Define files to create"),
    ("has_file_details", 30, "Add detailed file specifications"),
    ("has_layout_approach", 10, "Describe layout organization"),
    ("has_dependencies", 10, "List npm dependencies"),
    ("reasonable_scope", 10, "Adjust project scope"),
]

CODE_CHECKS = [
    ("has_content", 20, "Code is too short or empty"),
    ("has_exports", 20, "Add export statements"),
    ("balanced_braces", 20, "Fix unbalanced braces"),
    ("balanced_brackets", 15, "Fix unbalanced brackets"),
    ("no_var_usage", 15, "Replace var with const/let"),
    ("not_too_long", 10, "File is too long, consider splitting"),
]

MAX_PLAN_FILES = 20
MAX_CODE_LINES = 300
MIN_CODE_LENGTH = 50


def _plan_fields(plan):
    """Normalize a Plan or raw plan dict into the fields the checks read."""
    if isinstance(plan, Plan):
        return plan.to_dict()
    if isinstance(plan, dict):
        return Plan.from_dict(plan).to_dict() | {
            "packages": plan.get("npmPackages", plan.get("packages")),
        }
    return {}


def _evaluate_plan(plan):
    data = _plan_fields(plan)
    identity = data.get("app_identity") or {}
    files = data.get("files_to_create") or []
    details = data.get("file_details")
    file_count = len(files) if isinstance(files, list) else 0
    return {
        "has_app_identity": bool(identity.get("name")) and bool(identity.get("tagline")),
        "has_files": file_count > 0,
        "has_file_details": isinstance(details, dict) and len(details) > 0,
        "has_layout_approach": bool(data.get("layout_approach")),
        "has_dependencies": isinstance(data.get("packages"), list),
        "reasonable_scope": 0 < file_count < MAX_PLAN_FILES,
    }


def _evaluate_code(code):
    if not isinstance(code, str):
        code = ""
    return {
        "has_content": len(code) > MIN_CODE_LENGTH,
        "has_exports": "export" in code,
        "balanced_braces": code.count("{") == code.count("}"),
        "balanced_brackets": code.count("[") == code.count("]"),
        "no_var_usage": "var " not in code,
        "not_too_long": len(code.split("\n")) < MAX_CODE_LINES,
    }


def _score(checks, table, threshold):
    total = 0
    suggestions = []
    for name, weight, suggestion in table:
        if checks[name]:
            total += weight
        else:
            suggestions.append(suggestion)
    score = total / 100
    return QualityScore(
        score=score,
        passed=score >= threshold,
        suggestions=suggestions,
        checks=checks,
    )


def score_plan(plan, threshold=None) -> QualityScore:
    """Score a plan against the six structural plan checks."""
    threshold = DEFAULTS["quality_threshold"] if threshold is None else threshold
    return _score(_evaluate_plan(plan), PLAN_CHECKS, threshold)


def score_code(code, threshold=None) -> QualityScore:
    """Score a single code artifact against the six structural code checks."""
    threshold = DEFAULTS["quality_threshold"] if threshold is None else threshold
    return _score(_evaluate_code(code), CODE_CHECKS, threshold)


def score_quality(artifact, kind="plan", threshold=None) -> QualityScore:
    """Dispatch to plan or code scoring. Unknown kinds score zero."""
    if kind == "plan":
        return score_plan(artifact, threshold)
    if kind == "code":
        return score_code(artifact, threshold)
    return QualityScore(score=0.0, passed=False, suggestions=[f"Unknown artifact kind: {kind}"])
