"""Studio orchestrator — classify, plan, write code, then preview and debug."""

import logging
import os

from agents.analyzer import AnalyzerAgent
from agents.code_writer import CodeWriterAgent
from agents.debugger import DebuggerAgent
from agents.designer import DesignerAgent
from agents.planner import PlannerAgent
from config.defaults import DEFAULTS
from core.code_orchestrator import CodeOrchestrator
from core.errors import PipelineCancelled, check_cancelled
from core.memory import MemoryStore
from core.plan_orchestrator import PlanOrchestrator
from core.progress import ProgressReporter
from core.state import StudioResult, apply_operations, freeze_files

LOGGER = logging.getLogger(__name__)


def merge_operations(earlier, later):
    """Combine two operation lists, keeping one entry per file.

    A file created earlier stays a "create" even when a later fix rewrites it.
    """
    merged = {op.filename: op for op in earlier}
    for op in later:
        previous = merged.get(op.filename)
        if previous is not None and previous.kind == "create":
            op.kind = "create"
        merged[op.filename] = op
    return list(merged.values())


class Orchestrator:
    """Runs a request end to end: plan (unless skipped) -> code -> preview/debug.

    Agent failures propagate as AgentError. A set cancel event ends the run
    at the next step boundary with a failed result.
    """

    def __init__(self, memory=None, llm=None, compressor=None, history=None, timeout=None,
                 threshold=None, max_debug_cycles=None, scenario_classifier=None):
        self.memory = memory if memory is not None else MemoryStore()
        self.planner = PlannerAgent(self.memory, llm, timeout)
        self.analyzer = AnalyzerAgent(self.memory, llm, timeout)
        self.code_writer = CodeWriterAgent(self.memory, llm, timeout)
        self.designer = DesignerAgent(self.memory, llm, timeout)
        self.debugger = DebuggerAgent(self.memory, llm, timeout)
        self.plan_orchestrator = PlanOrchestrator(
            self.planner, self.designer, self.analyzer,
            scenario_classifier=scenario_classifier, threshold=threshold,
        )
        self.code_orchestrator = CodeOrchestrator(self.code_writer, self.analyzer, self.debugger)
        self.compressor = compressor
        self.history = history
        self.max_debug_cycles = (DEFAULTS["max_debug_cycles"]
                                 if max_debug_cycles is None else max_debug_cycles)

    def agents(self):
        return [self.planner, self.analyzer, self.code_writer, self.designer, self.debugger]

    def run(self, request, files=None, on_update=None, preview=None, max_debug_cycles=None,
            cancel_event=None) -> StudioResult:
        files = freeze_files(files)
        progress = ProgressReporter("studio", on_update)
        context = self.compressor.get_compressed_context() if self.compressor else ""
        self._record_turn("user", request)
        result = StudioResult(request=request, success=False)

        try:
            plan_result = self.plan_orchestrator.run(request, files, on_update, context, cancel_event)
            result.scenario = plan_result.scenario
            result.plan_result = plan_result

            check_cancelled(cancel_event)
            code_result = self.code_orchestrator.run(request, files, plan_result, on_update,
                                                     cancel_event, context)
            result.code_result = code_result
            operations = list(code_result.file_operations)
            working = apply_operations(files, operations)
            success = code_result.success
            message = code_result.message
            if code_result.debug is not None:
                result.error_category = "" if success else code_result.debug.category
                result.attempts = code_result.debug.attempts

            if preview is not None and success:
                cycles = self.max_debug_cycles if max_debug_cycles is None else max_debug_cycles
                success, message, working, operations = self._preview_loop(
                    preview, cycles, working, operations, result, progress, on_update, cancel_event,
                )
        except PipelineCancelled:
            LOGGER.info("Request cancelled: %s", request[:80])
            result.message = "Cancelled"
            return result

        result.success = success
        result.message = message
        result.file_operations = operations
        result.files = dict(working)
        if success:
            self.memory.save_codebase_map(working)
            if self.history is not None:
                self.history.record_operations(operations, description=request[:100])
        self._record_turn("assistant", message)
        progress.emit("done", message, success=success)
        return result

    def _preview_loop(self, preview, cycles, working, operations, result, progress, on_update,
                      cancel_event):
        """Run the preview; feed each runtime error to the debug loop. Returns the final state."""
        for cycle in range(cycles + 1):
            check_cancelled(cancel_event)
            report = preview.run(freeze_files(working))
            if report.success:
                progress.emit("preview", "Preview rendered without errors")
                return True, f"{len(operations)} file(s) ready", working, operations
            error = report.error.describe() if report.error else "Unknown runtime error"
            progress.emit("preview_error", error, cycle=cycle + 1)
            if cycle == cycles:
                return False, f"Preview still failing after {cycles} debug cycle(s): {error}", working, operations

            result.debug_cycles = cycle + 1
            debug = self.code_orchestrator.fix_bugs(error, working, on_update, cancel_event)
            result.attempts += debug.attempts
            result.error_category = debug.category
            if result.code_result is not None:
                result.code_result.debug = debug
            if not debug.success:
                return False, debug.message, working, operations
            working = apply_operations(working, debug.file_operations)
            operations = merge_operations(operations, debug.file_operations)
        return False, "Preview loop ended unexpectedly", working, operations

    def debug(self, error_message, files, on_update=None, cancel_event=None):
        """Fix a reported runtime error directly, outside a generation request."""
        self._record_turn("user", f"Fix error: {error_message}")
        debug = self.code_orchestrator.fix_bugs(error_message, files, on_update, cancel_event)
        if debug.success and self.history is not None:
            self.history.record_operations(debug.file_operations, description=f"fix {debug.category}")
        self._record_turn("assistant", debug.message)
        return debug

    def _record_turn(self, role, content):
        if self.compressor is not None:
            self.compressor.add_turn(role, content)


def write_files(files, output_dir):
    """Write a {filename: content} map under output_dir. Returns the written names."""
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for filename, content in sorted(files.items()):
        full_path = os.path.join(output_dir, filename.lstrip("/"))
        resolved = os.path.realpath(full_path)
        if not resolved.startswith(os.path.realpath(output_dir) + os.sep):
            raise ValueError(f"Path escapes output directory: {filename}")
        os.makedirs(os.path.dirname(resolved), exist_ok=True)
        with open(resolved, "w", encoding="utf-8") as fp:
            fp.write(content)
        written.append(filename)
    return written
