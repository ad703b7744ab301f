"""Code orchestrator — turns plans and change targets into validated file operations.

Also drives the bounded debug loop: diagnose, then up to N fix attempts,
each one enriched with the failures of the attempts before it.
"""

import logging

from agents.debugger import fix_signature
from agents.validator import validate_code
from config.defaults import DEFAULTS
from core.errors import AgentError, PipelineCancelled, check_cancelled
from core.progress import ProgressReporter
from core.state import (
    AnalysisMode,
    AnalysisResult,
    CodeResult,
    DebugAttempt,
    DebugResult,
    FileFailure,
    FileOperation,
    FileSpec,
    Operation,
    ValidationMode,
    freeze_files,
)
from manager.classifier import detect_operation
from utils.code_cleanup import convert_require_to_import, is_script
from utils.concurrency import map_concurrently

LOGGER = logging.getLogger(__name__)

DEFAULT_FILE = "App.jsx"


def _plan_notes(plan):
    """Refactoring plan text appended to the modification instructions."""
    lines = ["", "", "REFACTORING PLAN:"]
    if plan.summary:
        lines.append(plan.summary)
    lines += [f"{i}. {step}" for i, step in enumerate(plan.steps, 1)]
    for name, spec in plan.file_details.items():
        if spec.purpose:
            lines.append(f"- {name}: {spec.purpose}")
        lines += [f"  - {feature}" for feature in spec.key_features]
    return "\n".join(lines)


class CodeOrchestrator:
    """Dispatches generate, modify, refactor and debug work to the agents."""

    name = "code"

    def __init__(self, code_writer, analyzer, debugger, operation_classifier=None,
                 max_workers=None, max_debug_attempts=None):
        self.code_writer = code_writer
        self.analyzer = analyzer
        self.debugger = debugger
        self.operation_classifier = operation_classifier or detect_operation
        self.max_workers = max_workers or DEFAULTS["max_workers"]
        self.max_debug_attempts = max_debug_attempts or DEFAULTS["max_debug_attempts"]

    def run(self, message, files=None, plan_result=None, on_update=None, cancel_event=None,
            context="", error_message=None) -> CodeResult:
        files = freeze_files(files)
        progress = ProgressReporter(self.name, on_update)
        operation = Operation(self.operation_classifier(message, files))
        progress.emit("operation", f"Operation: {operation.value}", operation=operation.value)

        if operation is Operation.DEBUG:
            debug = self.fix_bugs(error_message or message, files, on_update, cancel_event)
            return CodeResult(operation.value, debug.success, list(debug.file_operations),
                              debug=debug, message=debug.message)

        plan = plan_result.plan if plan_result is not None else None
        ux_design = plan_result.ux_design if plan_result is not None else None
        analysis = plan_result.analysis if plan_result is not None else None

        if operation is Operation.GENERATE:
            names = (plan.files_to_create if plan is not None else None) or [DEFAULT_FILE]
            ops, failures = self._generate(names, plan, ux_design, message, context, progress, cancel_event)
            return self._result(operation, ops, failures)

        mode = AnalysisMode.REFACTOR if operation is Operation.REFACTOR else AnalysisMode.MODIFICATION
        if analysis is None or operation is Operation.REFACTOR:
            analysis = self._analyze(message, files, mode, progress, cancel_event)
        if ux_design is None:
            ux_design = analysis.existing_ux
        refactor_plan = plan if operation is Operation.REFACTOR else None
        if refactor_plan is not None and refactor_plan.files_to_modify:
            analysis.files_to_modify = list(refactor_plan.files_to_modify)

        ops, failures = self._modify(message, files, analysis, ux_design, context, progress, cancel_event,
                                     refactor_plan)
        if operation is Operation.REFACTOR and plan is not None:
            touched = {op.filename for op in ops} | {f.filename for f in failures}
            extra = [n for n in plan.files_to_create if n not in files and n not in touched]
            if extra:
                more_ops, more_failures = self._generate(extra, plan, ux_design, message, context,
                                                         progress, cancel_event)
                ops += more_ops
                failures += more_failures
        result = self._result(operation, ops, failures)
        result.analysis = analysis
        return result

    # ------------------------------------------------------------------
    # Generate / modify
    # ------------------------------------------------------------------

    def _generate(self, filenames, plan, ux_design, message, context, progress, cancel_event):
        def write(filename):
            check_cancelled(cancel_event)
            progress.emit("file", f"Writing {filename}", file=filename)
            spec = plan.file_details.get(filename) if plan is not None else FileSpec(purpose=message)
            code = self.code_writer.generate(filename, spec, ux_design, plan, message, context)
            return self._validated(filename, code, "create")

        return self._collect(map_concurrently(write, filenames, self.max_workers), progress)

    def _analyze(self, message, files, mode, progress, cancel_event):
        check_cancelled(cancel_event)
        progress.emit("analysis", f"Analyzing files ({mode.value})")
        try:
            analysis = self.analyzer.run(message, files, mode)
        except AgentError as e:
            LOGGER.warning("Analysis failed, falling back to the entry file: %s", e)
            analysis = AnalysisResult(mode=mode.value, reasoning=f"Analysis failed: {e}", fallback=True)
        if not analysis.files_to_modify and files:
            analysis.files_to_modify = [DEFAULT_FILE if DEFAULT_FILE in files else sorted(files)[0]]
            analysis.fallback = True
        return analysis

    def _modify(self, message, files, analysis, ux_design, context, progress, cancel_event, plan=None):
        instructions = message
        if analysis.reasoning and not analysis.fallback:
            instructions += f"\n\nAnalysis: {analysis.reasoning}"
        if plan is not None:
            instructions += _plan_notes(plan)

        # One call per file carries all of that file's targets, so edits to
        # the same file never race. Different files run in parallel.
        def rewrite(filename):
            check_cancelled(cancel_event)
            targets = analysis.change_targets.get(filename, [])
            if filename not in files:
                progress.emit("file", f"Creating {filename}", file=filename)
                purpose = "; ".join(t.reason for t in targets if t.reason) or message
                code = self.code_writer.generate(filename, FileSpec(purpose=purpose), ux_design,
                                                 None, message, context)
                return self._validated(filename, code, "create")
            progress.emit("file", f"Modifying {filename}", file=filename, targets=len(targets))
            code = self.code_writer.modify(filename, files[filename], instructions, targets,
                                           ux_design, context)
            return self._validated(filename, code, "modify")

        outcomes = map_concurrently(rewrite, list(dict.fromkeys(analysis.files_to_modify)), self.max_workers)
        return self._collect(outcomes, progress)

    @staticmethod
    def _validated(filename, code, kind) -> FileOperation:
        result = validate_code(code, filename, ValidationMode.FAST)
        warnings = [w.message for w in result.warnings] + [f"auto-fix: {f}" for f in result.fixes]
        if not result.valid:
            warnings += [e.message for e in result.errors]
        return FileOperation(filename, result.code if result.auto_fixed else code, kind,
                             validated=result.valid, warnings=warnings)

    @staticmethod
    def _collect(outcomes, progress):
        ops, failures = [], []
        for filename, op, error in outcomes:
            if isinstance(error, PipelineCancelled):
                raise error
            if error is not None:
                failures.append(FileFailure(filename, str(error)))
                progress.emit("file_failed", f"{filename} failed: {error}", file=filename)
            else:
                ops.append(op)
        return ops, failures

    @staticmethod
    def _result(operation, ops, failures) -> CodeResult:
        invalid = [op.filename for op in ops if not op.validated]
        success = bool(ops) and not failures and not invalid
        parts = [f"{len(ops)} file(s) written"]
        if failures:
            parts.append(f"{len(failures)} failed: " + ", ".join(f.filename for f in failures))
        if invalid:
            parts.append("validation errors in " + ", ".join(invalid))
        return CodeResult(operation.value, success, ops, failures, message="; ".join(parts))

    # ------------------------------------------------------------------
    # Debug loop
    # ------------------------------------------------------------------

    def fix_bugs(self, error_message, files, on_update=None, cancel_event=None) -> DebugResult:
        files = freeze_files(files)
        progress = ProgressReporter(self.name, on_update)
        diagnosis = self.debugger.diagnose(error_message, files)
        progress.emit("diagnosis", f"{diagnosis.category}: {diagnosis.recommendation}",
                      category=diagnosis.category, target=diagnosis.target_file)

        if diagnosis.primary_issue is None:
            check_cancelled(cancel_event)
            try:
                self.debugger.analyze_root_cause(error_message, files, diagnosis)
            except AgentError as e:
                LOGGER.warning("Root-cause analysis failed: %s", e)

        targets = [f for f in diagnosis.target_files if f in files]
        if not targets:
            return DebugResult(False, diagnosis.category, 0, diagnosis=diagnosis,
                               message=f"File not found: {diagnosis.target_file or 'none'}")

        patterns = self.debugger.known_patterns(diagnosis.category)
        originals = {}
        preconverted = False
        for filename in targets:
            code = files[filename]
            if is_script(filename) and "require(" in code:
                converted = convert_require_to_import(code)
                preconverted = preconverted or converted != code
                code = converted
            originals[filename] = code

        baseline = fix_signature(
            [i for f in targets for i in self.debugger.check_fix(files[f], f, diagnosis)]
        )
        history = []
        for number in range(1, self.max_debug_attempts + 1):
            check_cancelled(cancel_event)
            progress.emit("attempt", f"Fix attempt {number}/{self.max_debug_attempts}", attempt=number)
            instructions = self.debugger.fix_instructions(error_message, diagnosis, history,
                                                          patterns, preconverted)
            try:
                fixed = {f: self._fix_file(f, originals[f], instructions) for f in targets}
            except AgentError as e:
                history.append(DebugAttempt(number, [], (), False, error=str(e)))
                progress.emit("attempt_failed", f"Attempt {number} failed: {e}", attempt=number)
                continue

            remaining = [i for f in targets for i in self.debugger.check_fix(fixed[f], f, diagnosis)]
            signature = fix_signature(remaining)
            changed = [f for f in targets if fixed[f] != files[f]]
            previous = history[-1].signature if history else None
            stuck = not changed or (bool(signature) and signature in (baseline, previous))
            success = bool(changed) and not remaining
            history.append(DebugAttempt(number, remaining, signature, success, stuck, changed))

            if success:
                self.debugger.record_fix(diagnosis, error_message, targets[0])
                progress.emit("fixed", f"Fixed on attempt {number}", attempt=number)
                return DebugResult(
                    True, diagnosis.category, number,
                    [FileOperation(f, fixed[f], "modify", validated=True) for f in changed],
                    diagnosis, history, message=f"Fixed {diagnosis.category} in {', '.join(changed)}",
                )
            reason = "no progress" if stuck else f"{len(remaining)} issue(s) remain"
            progress.emit("attempt_failed", f"Attempt {number} failed: {reason}", attempt=number,
                          stuck=stuck)

        return DebugResult(
            False, diagnosis.category, len(history), diagnosis=diagnosis, history=history,
            message=f"Could not fix {diagnosis.category} after {len(history)} attempt(s)",
        )

    def _fix_file(self, filename, code, instructions):
        fixed = self.code_writer.modify(filename, code, instructions)
        if is_script(filename) and "require(" in fixed:
            fixed = convert_require_to_import(fixed)
        result = validate_code(fixed, filename, ValidationMode.FAST)
        return result.code if result.auto_fixed else fixed
