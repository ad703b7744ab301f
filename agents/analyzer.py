"""Analyzer agent — reads the current files and names the exact changes to make."""

import logging

from agents.base import BaseAgent, describe_files
from agents.designer import extract_ux_from_code
from core.state import AnalysisMode, AnalysisResult

LOGGER = logging.getLogger(__name__)

_MODE_INSTRUCTIONS = {
    AnalysisMode.MODIFICATION: (
        "Identify the files and the exact snippets that must change to satisfy the "
        "request. Leave everything else untouched."
    ),
    AnalysisMode.DEBUG: (
        "The request describes a bug. Find the code responsible and describe the "
        "replacement that fixes it."
    ),
    AnalysisMode.STYLE_EXTRACT: (
        "Describe the visual design in use (colours, spacing, corners, typography) "
        "in the reasoning field. Return no change targets."
    ),
    AnalysisMode.EXPLAIN: (
        "Answer the user's question about the code in the explanation field. "
        "Return no change targets."
    ),
    AnalysisMode.REFACTOR: (
        "Plan a behaviour-preserving restructuring: extract components or hooks, "
        "remove duplication and name things clearly. New files may be listed."
    ),
}

# Modes whose result carries the design already present in the code
_DESIGN_AWARE_MODES = {AnalysisMode.MODIFICATION, AnalysisMode.STYLE_EXTRACT, AnalysisMode.REFACTOR}

MAX_FILE_CHARS = 20000


class AnalyzerAgent(BaseAgent):
    """Grounds contextual requests in the code that actually exists."""

    name = "analyzer"
    description = "Finds files and change targets for a request over existing code"
    role = "analyzer"
    prompt_name = "analyzer"

    def run(self, message, files, mode=AnalysisMode.MODIFICATION) -> AnalysisResult:
        mode = AnalysisMode(mode)
        if not files:
            return AnalysisResult(mode=mode.value, reasoning="No files to analyze")

        system = self.system_prompt(mode=mode.value, mode_instructions=_MODE_INSTRUCTIONS[mode])
        user_message = f"USER REQUEST: {message}\n\nCURRENT FILES:\n\n{describe_files(files, MAX_FILE_CHARS)}"
        data = self.call_json(system, user_message)

        result = AnalysisResult.from_dict(data, mode)
        unknown = [f for f in result.files_to_modify if f not in files]
        if unknown and mode is not AnalysisMode.REFACTOR:
            LOGGER.debug("Analyzer named files that do not exist: %s", ", ".join(unknown))
        if mode in _DESIGN_AWARE_MODES:
            result.existing_ux = extract_ux_from_code(files)
        return result
