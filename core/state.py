"""Data models shared across agents and orchestrators."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class Scenario(str, Enum):
    GREENFIELD = "greenfield"
    CONTEXTUAL = "contextual"
    SKIP = "skip"


class Operation(str, Enum):
    GENERATE = "generate"
    MODIFY = "modify"
    DEBUG = "debug"
    REFACTOR = "refactor"


class PlanIntent(str, Enum):
    CREATE_NEW = "CREATE_NEW"
    MODIFY = "MODIFY"
    REFACTOR = "REFACTOR"


class AnalysisMode(str, Enum):
    MODIFICATION = "MODIFICATION"
    DEBUG = "DEBUG"
    STYLE_EXTRACT = "STYLE_EXTRACT"
    EXPLAIN = "EXPLAIN"
    REFACTOR = "REFACTOR"


class ErrorCategory(str, Enum):
    BROWSER_INCOMPATIBILITY = "BROWSER_INCOMPATIBILITY"
    NULL_ACCESS = "NULL_ACCESS"
    INFINITE_RENDER = "INFINITE_RENDER"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    HOOKS_VIOLATION = "HOOKS_VIOLATION"
    SYNTAX_ERROR = "SYNTAX_ERROR"
    ASYNC_UNMOUNT = "ASYNC_UNMOUNT"
    BANNED_PACKAGE = "BANNED_PACKAGE"
    UNKNOWN = "UNKNOWN"


class ValidationMode(str, Enum):
    FULL = "full"
    FAST = "fast"
    SYNTAX_ONLY = "syntax"
    FORMAT_ONLY = "format"


def freeze_files(files) -> MappingProxyType:
    """Return a read-only snapshot of a {filename: content} map."""
    return MappingProxyType(dict(files or {}))


def _first(data, *keys, default=None):
    """Return the first present key, accepting both camelCase and snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_list(value):
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return []


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

@dataclass
class FileSpec:
    purpose: str = ""
    key_features: list[str] = field(default_factory=list)
    required_state: list[str] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_dict(cls, data) -> FileSpec:
        if isinstance(data, str):
            return cls(purpose=data)
        if not isinstance(data, dict):
            return cls()
        return cls(
            purpose=str(_first(data, "purpose", "description", default="")),
            key_features=[str(f) for f in _as_list(_first(data, "keyFeatures", "key_features"))],
            required_state=[str(s) for s in _as_list(_first(data, "requiredState", "required_state"))],
            notes=str(_first(data, "notes", "implementationNotes", default="")),
        )

    def to_dict(self):
        return {
            "purpose": self.purpose,
            "key_features": list(self.key_features),
            "required_state": list(self.required_state),
            "notes": self.notes,
        }


@dataclass
class Plan:
    app_name: str = ""
    tagline: str = ""
    files_to_create: list[str] = field(default_factory=list)
    file_details: dict[str, FileSpec] = field(default_factory=dict)
    layout_approach: str = ""
    packages: list[str] | None = None   # None when the model returned no usable list
    files_to_modify: list[str] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    summary: str = ""
    intent: str = PlanIntent.CREATE_NEW.value

    @classmethod
    def from_dict(cls, data, intent=PlanIntent.CREATE_NEW) -> Plan:
        """Build a plan from a model response, tolerating missing or mistyped fields."""
        if not isinstance(data, dict):
            data = {}
        identity = _first(data, "appIdentity", "app_identity", default={})
        if not isinstance(identity, dict):
            identity = {}
        raw_details = _first(data, "fileDetails", "file_details", default={})
        details = {}
        if isinstance(raw_details, dict):
            details = {str(name): FileSpec.from_dict(spec) for name, spec in raw_details.items()}
        packages = _first(data, "npmPackages", "packages")
        layout = _first(data, "layoutApproach", "layout_approach", default="")
        if isinstance(layout, dict):
            layout = layout.get("description") or layout.get("type") or ""
        return cls(
            app_name=str(_first(identity, "name", default="") or ""),
            tagline=str(_first(identity, "tagline", default="") or ""),
            files_to_create=[str(f) for f in _as_list(_first(data, "filesToCreate", "files_to_create"))],
            file_details=details,
            layout_approach=str(layout or ""),
            packages=[str(p) for p in packages] if isinstance(packages, list) else None,
            files_to_modify=[str(f) for f in _as_list(_first(data, "filesToModify", "files_to_modify"))],
            steps=[str(s) for s in _as_list(data.get("steps"))],
            summary=str(data.get("summary") or ""),
            intent=PlanIntent(intent).value,
        )

    def to_dict(self):
        return {
            "app_identity": {"name": self.app_name, "tagline": self.tagline},
            "files_to_create": list(self.files_to_create),
            "file_details": {name: spec.to_dict() for name, spec in self.file_details.items()},
            "layout_approach": self.layout_approach,
            "packages": list(self.packages) if self.packages is not None else None,
            "files_to_modify": list(self.files_to_modify),
            "steps": list(self.steps),
            "summary": self.summary,
            "intent": self.intent,
        }


@dataclass
class ChangeTarget:
    pattern: str                # code to find
    replacement: str            # what it becomes
    reason: str = ""


@dataclass
class AnalysisResult:
    mode: str
    files_to_modify: list[str] = field(default_factory=list)
    change_targets: dict[str, list[ChangeTarget]] = field(default_factory=dict)
    reasoning: str = ""
    explanation: str = ""       # EXPLAIN mode answer
    existing_ux: UXDesign | None = None
    fallback: bool = False      # True when analysis failed and the first file was assumed

    @classmethod
    def from_dict(cls, data, mode) -> AnalysisResult:
        if not isinstance(data, dict):
            data = {}
        targets = {}
        raw_targets = _first(data, "changeTargets", "change_targets", default={})
        if isinstance(raw_targets, dict):
            for filename, items in raw_targets.items():
                parsed = []
                for item in _as_list(items):
                    if isinstance(item, dict):
                        parsed.append(ChangeTarget(
                            pattern=str(item.get("pattern") or item.get("find") or ""),
                            replacement=str(item.get("replacement") or item.get("replace") or ""),
                            reason=str(item.get("reason") or ""),
                        ))
                    elif isinstance(item, str):
                        parsed.append(ChangeTarget(pattern="", replacement="", reason=item))
                targets[str(filename)] = parsed
        files = [str(f) for f in _as_list(_first(data, "filesToModify", "files_to_modify"))]
        for filename in targets:
            if filename not in files:
                files.append(filename)
        return cls(
            mode=AnalysisMode(mode).value,
            files_to_modify=files,
            change_targets=targets,
            reasoning=str(data.get("reasoning") or ""),
            explanation=str(data.get("explanation") or ""),
        )


@dataclass
class UXDesign:
    color_scheme: dict = field(default_factory=dict)        # role -> colour
    design_style: dict = field(default_factory=dict)        # aesthetic, corners, shadows
    interaction_patterns: list[str] = field(default_factory=list)
    layout: dict = field(default_factory=dict)
    typography: dict = field(default_factory=dict)
    source: str = "designer"    # "designer" or "extracted"

    @classmethod
    def from_dict(cls, data, source="designer") -> UXDesign:
        if not isinstance(data, dict):
            data = {}
        colors = _first(data, "colorScheme", "color_scheme", "colors", default={})
        style = _first(data, "designStyle", "design_style", default={})
        interactions = _first(data, "interactionPatterns", "interaction_patterns", default=[])
        if isinstance(interactions, dict):
            interactions = [f"{k}: {v}" for k, v in interactions.items()]
        layout = _first(data, "layout", "layoutRules", default={})
        typography = _first(data, "typography", default={})
        return cls(
            color_scheme=colors if isinstance(colors, dict) else {},
            design_style=style if isinstance(style, dict) else {"aesthetic": str(style)},
            interaction_patterns=[str(i) for i in _as_list(interactions)],
            layout=layout if isinstance(layout, dict) else {"approach": str(layout)},
            typography=typography if isinstance(typography, dict) else {},
            source=source,
        )

    def to_dict(self):
        return {
            "color_scheme": dict(self.color_scheme),
            "design_style": dict(self.design_style),
            "interaction_patterns": list(self.interaction_patterns),
            "layout": dict(self.layout),
            "typography": dict(self.typography),
            "source": self.source,
        }


# ---------------------------------------------------------------------------
# Scoring and validation
# ---------------------------------------------------------------------------

@dataclass
class QualityScore:
    score: float
    passed: bool
    suggestions: list[str] = field(default_factory=list)
    checks: dict[str, bool] = field(default_factory=dict)


@dataclass
class ValidationIssue:
    rule: str                   # "unbalanced-braces", "banned-package", ...
    message: str
    severity: str = "error"     # "error" or "warning"
    line: int | None = None
    suggestion: str = ""


@dataclass
class ValidationResult:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)
    code: str = ""
    auto_fixed: bool = False


# ---------------------------------------------------------------------------
# Code output
# ---------------------------------------------------------------------------

@dataclass
class FileOperation:
    filename: str
    content: str
    kind: str = "create"        # "create" or "modify"
    validated: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "filename": self.filename,
            "content": self.content,
            "kind": self.kind,
            "validated": self.validated,
            "warnings": list(self.warnings),
        }


@dataclass
class FileFailure:
    filename: str
    error: str


def apply_operations(files, operations):
    """Merge file operations into a copy of a file map."""
    merged = dict(files or {})
    for op in operations:
        merged[op.filename] = op.content
    return merged


# ---------------------------------------------------------------------------
# Memory and conversation
# ---------------------------------------------------------------------------

@dataclass
class BugPattern:
    category: str
    pattern: str
    fix: str
    file: str = ""
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data) -> BugPattern:
        return cls(
            category=str(data.get("category", ErrorCategory.UNKNOWN.value)),
            pattern=str(data.get("pattern", "")),
            fix=str(data.get("fix", "")),
            file=str(data.get("file", "")),
            timestamp=float(data.get("timestamp", 0)),
        )

    def to_dict(self):
        return {
            "category": self.category,
            "pattern": self.pattern,
            "fix": self.fix,
            "file": self.file,
            "timestamp": self.timestamp,
        }


@dataclass
class Turn:
    role: str                   # "user" or "assistant"
    content: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConversationSummary:
    text: str
    start_turn: int
    end_turn: int
    created_at: float = field(default_factory=time.time)
    fallback: bool = False

    def to_dict(self):
        return {
            "text": self.text,
            "start_turn": self.start_turn,
            "end_turn": self.end_turn,
            "created_at": self.created_at,
            "fallback": self.fallback,
        }

    @classmethod
    def from_dict(cls, data) -> ConversationSummary:
        return cls(
            text=str(data.get("text", "")),
            start_turn=int(data.get("start_turn", 0)),
            end_turn=int(data.get("end_turn", 0)),
            created_at=float(data.get("created_at", 0)),
            fallback=bool(data.get("fallback", False)),
        )


# ---------------------------------------------------------------------------
# Debugging
# ---------------------------------------------------------------------------

@dataclass
class ScanIssue:
    type: str                   # "browser-incompatible", "hooks-rules", ...
    pattern: str                # human-readable description, also the dedupe key
    fix: str
    severity: str = "medium"    # "low", "medium", "high", "critical"
    score: int = 0
    file: str = ""
    source: str = "scanner"     # "scanner", "error-message", "validator"


@dataclass
class Diagnosis:
    category: str
    issues: list[ScanIssue] = field(default_factory=list)
    primary_issue: ScanIssue | None = None
    target_file: str = ""
    target_files: list[str] = field(default_factory=list)
    recommendation: str = ""
    scanned_files: list[str] = field(default_factory=list)
    error_line: int | None = None
    root_cause: str = ""        # model analysis, when static scans localize nothing


@dataclass
class DebugAttempt:
    number: int
    issues: list[ScanIssue]
    signature: tuple
    success: bool
    stuck: bool = False
    changed_files: list[str] = field(default_factory=list)
    error: str = ""             # agent failure text, when the attempt never produced code


@dataclass
class DebugResult:
    success: bool
    category: str
    attempts: int
    file_operations: list[FileOperation] = field(default_factory=list)
    diagnosis: Diagnosis | None = None
    history: list[DebugAttempt] = field(default_factory=list)
    message: str = ""


# ---------------------------------------------------------------------------
# Orchestration results
# ---------------------------------------------------------------------------

@dataclass
class PlanResult:
    scenario: str
    plan: Plan | None = None
    quality: QualityScore | None = None
    ux_design: UXDesign | None = None
    analysis: AnalysisResult | None = None
    intent: str = ""
    refined: bool = False
    skip_planning: bool = False
    reason: str = ""


@dataclass
class CodeResult:
    operation: str
    success: bool
    file_operations: list[FileOperation] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    analysis: AnalysisResult | None = None
    debug: DebugResult | None = None
    message: str = ""


@dataclass
class StudioResult:
    request: str
    success: bool
    scenario: str = ""
    plan_result: PlanResult | None = None
    code_result: CodeResult | None = None
    file_operations: list[FileOperation] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)     # merged snapshot
    debug_cycles: int = 0
    error_category: str = ""
    attempts: int = 0
    message: str = ""
