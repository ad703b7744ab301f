"""Planner agent — turns a request into an app identity, file list and per-file specs."""

from agents.base import BaseAgent
from core.state import Plan, PlanIntent


class PlannerAgent(BaseAgent):
    """Produces a Plan for a new app, a modification or a refactor."""

    name = "planner"
    description = "Plans files, per-file specs and layout for a request"
    role = "planner"
    prompt_name = "planner"

    def run(self, message, intent=PlanIntent.CREATE_NEW, files=None, analysis=None,
            context="", improvements=None) -> Plan:
        intent = PlanIntent(intent)
        parts = [f"INTENT: {intent.value}", f"USER REQUEST: {message}"]

        if context:
            parts.append(f"CONVERSATION CONTEXT:\n{context}")

        if files:
            listing = "\n".join(
                f"- {name} ({content.count(chr(10)) + 1} lines)" for name, content in sorted(files.items())
            )
            parts.append(f"CURRENT FILES:\n{listing}")

        if analysis is not None:
            lines = [f"Reasoning: {analysis.reasoning}" if analysis.reasoning else ""]
            if analysis.files_to_modify:
                lines.append("Files to modify: " + ", ".join(analysis.files_to_modify))
            for filename, targets in analysis.change_targets.items():
                for target in targets:
                    lines.append(f"- {filename}: {target.reason or target.pattern[:80]}")
            parts.append("CODE ANALYSIS:\n" + "\n".join(line for line in lines if line))

        # Single refinement pass: the orchestrator feeds back scorer suggestions
        if improvements:
            parts.append("Improvement suggestions:\n" + "\n".join(improvements))

        data = self.call_json(self.system_prompt(intent=intent.value), "\n\n".join(parts))
        return Plan.from_dict(data, intent)
