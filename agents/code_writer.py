"""Code writer agent — writes or rewrites one file per call."""

import json

from agents.base import BaseAgent
from core.errors import AgentError
from utils.code_cleanup import clean_generated_code, ensure_react_import


def _ux_block(ux_design):
    if ux_design is None:
        return ""
    label = "EXISTING DESIGN (keep it consistent)" if ux_design.source == "extracted" else "DESIGN SYSTEM"
    return f"{label}:\n{json.dumps(ux_design.to_dict(), indent=2)}"


class CodeWriterAgent(BaseAgent):
    """Generates new files from a plan and applies targeted changes to existing ones."""

    name = "code_writer"
    description = "Writes complete source files"
    role = "code_writer"
    prompt_name = "code_writer"

    def generate(self, filename, spec=None, ux_design=None, plan=None, message="", context="") -> str:
        parts = [f"FILE TO WRITE: {filename}"]
        if plan is not None:
            parts.append(f"APP: {plan.app_name} - {plan.tagline}")
            parts.append("ALL FILES IN THIS APP: " + ", ".join(plan.files_to_create))
            if plan.layout_approach:
                parts.append(f"LAYOUT: {plan.layout_approach}")
        if spec is not None:
            parts.append(f"PURPOSE: {spec.purpose}")
            if spec.key_features:
                parts.append("KEY FEATURES:\n" + "\n".join(f"- {f}" for f in spec.key_features))
            if spec.required_state:
                parts.append("STATE:\n" + "\n".join(f"- {s}" for s in spec.required_state))
            if spec.notes:
                parts.append(f"NOTES: {spec.notes}")
        ux = _ux_block(ux_design)
        if ux:
            parts.append(ux)
        if message:
            parts.append(f"ORIGINAL USER REQUEST: {message}")
        if context:
            parts.append(f"CONVERSATION CONTEXT:\n{context}")

        raw = self.call_text(self.system_prompt(), "\n\n".join(parts))
        return self._finish(raw, filename)

    def modify(self, filename, current_code, instructions, change_targets=None,
               ux_design=None, context="") -> str:
        parts = [f"FILE: {filename}", f"REQUESTED CHANGES:\n{instructions}"]
        if change_targets:
            lines = []
            for index, target in enumerate(change_targets, 1):
                lines.append(f"{index}. {target.reason}".rstrip())
                if target.pattern:
                    lines.append(f"   FIND:\n{target.pattern}")
                if target.replacement:
                    lines.append(f"   REPLACE WITH:\n{target.replacement}")
            parts.append("CHANGE TARGETS:\n" + "\n".join(lines))
        ux = _ux_block(ux_design)
        if ux:
            parts.append(ux)
        if context:
            parts.append(f"CONVERSATION CONTEXT:\n{context}")
        parts.append(f"CURRENT CODE:\n```{filename}\n{current_code}\n```")

        raw = self.call_text(self.system_prompt("code_writer_modify"), "\n\n".join(parts))
        return self._finish(raw, filename)

    def _finish(self, raw, filename):
        code = clean_generated_code(raw, filename)
        if not code:
            raise AgentError(self.name, f"empty response for {filename}")
        if filename.endswith((".jsx", ".tsx")):
            code = ensure_react_import(code)
        return code
