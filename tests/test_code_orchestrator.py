"""Tests for core.code_orchestrator: fan-out, isolation and the debug loop."""

import threading
from unittest.mock import MagicMock

import pytest

from agents.debugger import DebuggerAgent
from core.code_orchestrator import CodeOrchestrator
from core.errors import AgentError, AgentTimeoutError, PipelineCancelled
from core.memory import MemoryStore
from core.state import (
    AnalysisResult,
    ChangeTarget,
    Diagnosis,
    FileSpec,
    Plan,
    PlanResult,
    ScanIssue,
)
from core.storage import InMemoryStorage

ORIGINAL = "export default function App() { return <div>{items.map(i => i)}</div>; }\n"
FIXED = "export default function App() { return <div>{(items || []).map(i => i)}</div>; }\n"
HOOK_ISSUE = ScanIssue("hooks-rules", "Hook called conditionally", "Move the hook up", "high", 90,
                       "App.jsx")


def _component(name):
    return f"export default function {name}() {{ return null; }}\n"


def _make_writer(fail=(), modify_results=None):
    writer = MagicMock()

    def generate(filename, spec=None, ux_design=None, plan=None, message="", context=""):
        if filename in fail:
            raise AgentError("code_writer", f"model call failed for {filename}")
        return _component(filename.split("/")[-1].split(".")[0])

    writer.generate.side_effect = generate
    if modify_results is not None:
        writer.modify.side_effect = list(modify_results)
    else:
        writer.modify.side_effect = lambda filename, code, *a, **k: code + "// changed\n"
    return writer


def _make_debugger(diagnosis=None, remaining=lambda code: [HOOK_ISSUE]):
    debugger = MagicMock()
    debugger.diagnose.return_value = diagnosis or Diagnosis(
        category="HOOKS_VIOLATION", issues=[HOOK_ISSUE], primary_issue=HOOK_ISSUE,
        target_file="App.jsx", target_files=["App.jsx"], recommendation="Move the hook up",
    )
    debugger.check_fix.side_effect = lambda code, filename, diagnosis: remaining(code)
    debugger.known_patterns.return_value = []
    debugger.fix_instructions.return_value = "Fix the hook order."
    return debugger


def _make_orchestrator(writer=None, analyzer=None, debugger=None, operation=None):
    return CodeOrchestrator(
        writer or _make_writer(),
        analyzer or MagicMock(),
        debugger or _make_debugger(),
        operation_classifier=(lambda message, files: operation) if operation else None,
        max_workers=4,
    )


def _plan_result(files):
    plan = Plan(app_name="Taskly", files_to_create=files,
                file_details={f: FileSpec(purpose=f) for f in files})
    return PlanResult(scenario="greenfield", plan=plan)


# ---------------------------------------------------------------------------
# Generate / modify
# ---------------------------------------------------------------------------

def test_generate_writes_every_planned_file():
    orchestrator = _make_orchestrator()
    result = orchestrator.run("build a todo app", {},
                              plan_result=_plan_result(["App.jsx", "components/List.jsx"]))
    assert result.operation == "generate"
    assert result.success is True
    assert sorted(op.filename for op in result.file_operations) == ["App.jsx", "components/List.jsx"]
    assert all(op.kind == "create" and op.validated for op in result.file_operations)


def test_generate_without_plan_defaults_to_app():
    writer = _make_writer()
    result = _make_orchestrator(writer).run("build a counter", {})
    assert [op.filename for op in result.file_operations] == ["App.jsx"]
    assert writer.generate.call_args.args[1].purpose == "build a counter"


def test_one_failing_file_does_not_sink_siblings():
    writer = _make_writer(fail={"components/Broken.jsx"})
    result = _make_orchestrator(writer).run(
        "build a todo app", {}, plan_result=_plan_result(["App.jsx", "components/Broken.jsx"]))
    assert [op.filename for op in result.file_operations] == ["App.jsx"]
    assert [f.filename for f in result.failures] == ["components/Broken.jsx"]
    assert result.success is False
    assert "1 failed" in result.message


def test_invalid_generated_code_is_not_success():
    writer = _make_writer()
    writer.generate.side_effect = lambda *a, **k: "export default function App() {\n"
    result = _make_orchestrator(writer).run("build a todo app", {})
    assert result.file_operations[0].validated is False
    assert result.success is False


def test_modify_uses_analysis_targets_per_file():
    files = {"App.jsx": ORIGINAL, "Header.jsx": _component("Header")}
    analyzer = MagicMock()
    analyzer.run.return_value = AnalysisResult(
        mode="MODIFICATION", files_to_modify=["Header.jsx"],
        change_targets={"Header.jsx": [ChangeTarget("<h1>", "<h1 className='x'>", "style")]},
        reasoning="only the header changes",
    )
    writer = _make_writer()
    result = _make_orchestrator(writer, analyzer).run("make the header blue", files)
    assert result.operation == "modify"
    assert [op.filename for op in result.file_operations] == ["Header.jsx"]
    assert result.file_operations[0].kind == "modify"
    filename, code, instructions, targets = writer.modify.call_args.args[:4]
    assert filename == "Header.jsx"
    assert "only the header changes" in instructions
    assert targets[0].reason == "style"


def test_modify_falls_back_to_entry_file_when_analysis_fails():
    files = {"App.jsx": ORIGINAL, "Header.jsx": _component("Header")}
    analyzer = MagicMock()
    analyzer.run.side_effect = AgentError("analyzer", "invalid JSON")
    result = _make_orchestrator(analyzer=analyzer).run("make the header blue", files)
    assert result.analysis.fallback is True
    assert [op.filename for op in result.file_operations] == ["App.jsx"]


def test_refactor_generates_new_plan_files():
    files = {"App.jsx": ORIGINAL}
    analyzer = MagicMock()
    analyzer.run.return_value = AnalysisResult(mode="REFACTOR", files_to_modify=["App.jsx"])
    plan_result = _plan_result(["App.jsx", "hooks/useItems.js"])
    result = _make_orchestrator(analyzer=analyzer).run("restructure into hooks", files,
                                                      plan_result=plan_result)
    assert result.operation == "refactor"
    kinds = {op.filename: op.kind for op in result.file_operations}
    assert kinds == {"App.jsx": "modify", "hooks/useItems.js": "create"}


def test_refactor_sends_plan_to_writer():
    files = {"App.jsx": ORIGINAL, "components/List.jsx": _component("List")}
    analyzer = MagicMock()
    analyzer.run.return_value = AnalysisResult(mode="REFACTOR", files_to_modify=["App.jsx"],
                                               reasoning="state lives in App")
    plan = Plan(
        files_to_modify=["components/List.jsx"],
        steps=["Extract a useTodos hook from App", "Read todos from the hook in List"],
        file_details={"components/List.jsx": FileSpec(purpose="Use the useTodos hook")},
    )
    writer = _make_writer()
    result = _make_orchestrator(writer, analyzer).run(
        "refactor the state logic", files,
        plan_result=PlanResult(scenario="contextual", plan=plan, intent="REFACTOR"))

    assert result.operation == "refactor"
    assert [op.filename for op in result.file_operations] == ["components/List.jsx"]
    filename, code, instructions = writer.modify.call_args.args[:3]
    assert filename == "components/List.jsx"
    assert "1. Extract a useTodos hook from App" in instructions
    assert "- components/List.jsx: Use the useTodos hook" in instructions
    assert "Analysis: state lives in App" in instructions


def test_modify_ignores_plan_steps():
    files = {"App.jsx": ORIGINAL}
    analyzer = MagicMock()
    analyzer.run.return_value = AnalysisResult(mode="MODIFICATION", files_to_modify=["App.jsx"])
    plan = Plan(steps=["Rename the title"], files_to_modify=["Other.jsx"])
    writer = _make_writer()
    _make_orchestrator(writer, analyzer, operation="modify").run(
        "change the title", files, plan_result=PlanResult(scenario="contextual", plan=plan))
    assert writer.modify.call_args.args[0] == "App.jsx"
    assert "REFACTORING PLAN" not in writer.modify.call_args.args[2]


def test_cancel_before_work_raises():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(PipelineCancelled):
        _make_orchestrator().run("build a todo app", {}, cancel_event=cancel)


# ---------------------------------------------------------------------------
# Debug loop
# ---------------------------------------------------------------------------

def test_debug_stops_after_three_attempts():
    writer = _make_writer()
    debugger = _make_debugger()
    result = _make_orchestrator(writer, debugger=debugger).fix_bugs(
        "Rendered more hooks than during the previous render", {"App.jsx": ORIGINAL})
    assert result.success is False
    assert result.attempts == 3
    assert writer.modify.call_count == 3
    assert [a.number for a in result.history] == [1, 2, 3]
    debugger.record_fix.assert_not_called()


def test_unchanged_output_is_stuck():
    writer = _make_writer(modify_results=[ORIGINAL, ORIGINAL, ORIGINAL])
    result = _make_orchestrator(writer).fix_bugs("Rendered more hooks", {"App.jsx": ORIGINAL})
    assert result.success is False
    assert all(a.stuck for a in result.history)
    assert all(a.changed_files == [] for a in result.history)


def test_same_issues_as_before_is_stuck():
    result = _make_orchestrator().fix_bugs("Rendered more hooks", {"App.jsx": ORIGINAL})
    assert result.history[0].stuck is True
    assert result.history[0].signature == (("hooks-rules", "Hook called conditionally"),)


def test_successful_fix_records_pattern():
    writer = _make_writer(modify_results=[ORIGINAL + "// try\n", FIXED])
    debugger = _make_debugger(remaining=lambda code: [] if code == FIXED else [HOOK_ISSUE])
    result = _make_orchestrator(writer, debugger=debugger).fix_bugs(
        "Rendered more hooks", {"App.jsx": ORIGINAL})
    assert result.success is True
    assert result.attempts == 2
    assert result.file_operations[0].content == FIXED
    assert result.file_operations[0].kind == "modify"
    debugger.record_fix.assert_called_once()
    assert debugger.fix_instructions.call_count == 2
    assert result.history[0].success is False


def test_timeout_counts_as_an_attempt():
    writer = _make_writer(modify_results=[AgentTimeoutError("code_writer", "call timed out after 1s"),
                                          FIXED])
    debugger = _make_debugger(remaining=lambda code: [] if code == FIXED else [HOOK_ISSUE])
    result = _make_orchestrator(writer, debugger=debugger).fix_bugs(
        "Rendered more hooks", {"App.jsx": ORIGINAL})
    assert result.success is True
    assert result.attempts == 2
    assert "timed out" in result.history[0].error


def test_missing_target_file():
    diagnosis = Diagnosis(category="UNKNOWN", target_file="Gone.jsx", target_files=["Gone.jsx"])
    debugger = _make_debugger(diagnosis)
    result = _make_orchestrator(debugger=debugger).fix_bugs("boom", {"App.jsx": ORIGINAL})
    assert result.success is False
    assert result.attempts == 0
    assert result.message == "File not found: Gone.jsx"
    debugger.analyze_root_cause.assert_called_once()


def test_require_converted_before_first_attempt():
    code = "const helpers = require('./helpers');\nexport default helpers;\n"
    diagnosis = Diagnosis(category="BROWSER_INCOMPATIBILITY", target_file="App.jsx",
                          target_files=["App.jsx"], primary_issue=HOOK_ISSUE)
    writer = _make_writer(modify_results=["import helpers from './helpers';\nexport default helpers;\n"])
    debugger = _make_debugger(diagnosis, remaining=lambda c: [HOOK_ISSUE] if "require(" in c else [])
    result = _make_orchestrator(writer, debugger=debugger).fix_bugs(
        "ReferenceError: require is not defined", {"App.jsx": code})
    assert result.success is True
    sent = writer.modify.call_args.args[1]
    assert "require(" not in sent
    assert "import helpers from './helpers';" in sent
    assert debugger.fix_instructions.call_args.args[4] is True


def test_debug_operation_routes_to_fix_bugs():
    debugger = _make_debugger(remaining=lambda code: [] if code == FIXED else [HOOK_ISSUE])
    writer = _make_writer(modify_results=[FIXED])
    result = _make_orchestrator(writer, debugger=debugger).run(
        "fix the crash", {"App.jsx": ORIGINAL}, error_message="Rendered more hooks")
    assert result.operation == "debug"
    assert result.success is True
    assert result.debug.attempts == 1
    assert debugger.diagnose.call_args.args[0] == "Rendered more hooks"


def test_empty_error_still_returns_result():
    memory = MemoryStore(InMemoryStorage())
    debugger = DebuggerAgent(memory, llm=lambda *a, **k: {"rootCause": "x", "fix": "y"}, timeout=0)
    writer = _make_writer(modify_results=["export default function App() { return <p>Hi</p>; }\n"])
    clean = "export default function App() { return <div>Hello</div>; }\n"
    result = _make_orchestrator(writer, debugger=debugger).fix_bugs("", {"App.jsx": clean})
    assert result.success is True
    assert result.category == "UNKNOWN"
    assert [p.pattern for p in memory.get_bug_patterns("UNKNOWN")] == ["UNKNOWN"]
